"""
SSL Certificate Inspection.

Wraps a parsed X.509 certificate and exposes exactly what an operator needs
to decide whether to trust a registration server: names, validity window,
serial number and fingerprints.
"""

import shutil
import subprocess
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Protocol

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID
from structlog import get_logger

from sysreg.config import settings
from sysreg.exceptions import CertificateError
from sysreg.models.domain import CertificateView
from sysreg.services.fetch import Fetcher, fetch
from sysreg.services.store import save_bytes

logger = get_logger(__name__)


def _colon_hex(data: bytes) -> str:
    """
    Uppercase hex octets joined by colons.

        >>> _colon_hex(bytes([0xAB, 0x01, 0xFF]))
        'AB:01:FF'
    """
    return ":".join(f"{octet:02X}" for octet in data)


class TrustStore(Protocol):
    """System trust store the certificate can be imported into."""

    def import_certificate(self, certificate: "SslCertificate") -> None: ...


class SslCertificate:
    """An owned X.509 certificate handle with operator-facing accessors."""

    def __init__(self, x509_cert: x509.Certificate) -> None:
        self.x509_cert = x509_cert

    @classmethod
    def load(cls, data: bytes | str) -> "SslCertificate":
        """Load a PEM or DER encoded certificate."""
        raw = data.encode("ascii", errors="replace") if isinstance(data, str) else data
        try:
            if raw.lstrip().startswith(b"-----BEGIN"):
                cert = x509.load_pem_x509_certificate(raw)
            else:
                cert = x509.load_der_x509_certificate(raw)
        except ValueError as exc:
            raise CertificateError(f"Cannot parse certificate: {exc}") from exc
        return cls(cert)

    @classmethod
    def load_file(cls, path: Path | str) -> "SslCertificate":
        """Load a certificate file."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise CertificateError(f"Cannot read {path}: {exc.strerror}") from exc
        return cls.load(data)

    @classmethod
    def download(
        cls, url: str, insecure: bool = False, fetcher: Fetcher | None = None
    ) -> "SslCertificate":
        """Download a certificate; ``insecure`` applies to this one download."""
        data = (fetcher or fetch)(url, insecure)
        return cls.load(data)

    @classmethod
    def from_openssl(cls, openssl_x509: Any) -> "SslCertificate":
        """Wrap the pyOpenSSL X509 object handed to a verify callback."""
        return cls(openssl_x509.to_cryptography())

    # ------------------------------------------------------------------
    # Fingerprints
    # ------------------------------------------------------------------
    def sha1_fingerprint(self) -> str:
        return _colon_hex(self.x509_cert.fingerprint(hashes.SHA1()))

    def sha256_fingerprint(self) -> str:
        return _colon_hex(self.x509_cert.fingerprint(hashes.SHA256()))

    def fingerprint_match(self, fingerprint_type: str, fingerprint: str) -> bool:
        """
        Check whether the certificate matches an operator supplied fingerprint.

        The comparison ignores case. Unknown fingerprint types never match.
        """
        kind = fingerprint_type.upper()
        if kind == "SHA1":
            return self.sha1_fingerprint().upper() == fingerprint.upper()
        if kind == "SHA256":
            return self.sha256_fingerprint().upper() == fingerprint.upper()
        return False

    # ------------------------------------------------------------------
    # Serial and validity
    # ------------------------------------------------------------------
    def serial(self) -> str:
        """Serial number in HEX format, e.g. AB:CD:42:FF."""
        digits = f"{self.x509_cert.serial_number:X}"
        if len(digits) % 2:
            digits = "0" + digits
        return ":".join(digits[i : i + 2] for i in range(0, len(digits), 2))

    def not_before(self) -> datetime:
        return self.x509_cert.not_valid_before_utc

    def not_after(self) -> datetime:
        return self.x509_cert.not_valid_after_utc

    def issued_on(self) -> date:
        return self.not_before().astimezone().date()

    def expires_on(self) -> date:
        return self.not_after().astimezone().date()

    def valid_yet(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) > self.not_before()

    def expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) > self.not_after()

    # ------------------------------------------------------------------
    # Subject and issuer
    # ------------------------------------------------------------------
    def subject_name(self) -> str | None:
        return self._find_attribute(self.x509_cert.subject, NameOID.COMMON_NAME)

    def subject_organization(self) -> str | None:
        return self._find_attribute(self.x509_cert.subject, NameOID.ORGANIZATION_NAME)

    def subject_organization_unit(self) -> str | None:
        return self._find_attribute(self.x509_cert.subject, NameOID.ORGANIZATIONAL_UNIT_NAME)

    def issuer_name(self) -> str | None:
        return self._find_attribute(self.x509_cert.issuer, NameOID.COMMON_NAME)

    def issuer_organization(self) -> str | None:
        return self._find_attribute(self.x509_cert.issuer, NameOID.ORGANIZATION_NAME)

    def issuer_organization_unit(self) -> str | None:
        return self._find_attribute(self.x509_cert.issuer, NameOID.ORGANIZATIONAL_UNIT_NAME)

    @staticmethod
    def _find_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str | None:
        """First value of the attribute or None if not defined."""
        attributes = name.get_attributes_for_oid(oid)
        if not attributes:
            return None
        value = attributes[0].value
        return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def view(self) -> CertificateView:
        """Computed on every call, never cached."""
        return CertificateView(
            subject_name=self.subject_name(),
            subject_organization=self.subject_organization(),
            subject_organization_unit=self.subject_organization_unit(),
            issuer_name=self.issuer_name(),
            issuer_organization=self.issuer_organization(),
            issuer_organization_unit=self.issuer_organization_unit(),
            issued_on=self.issued_on(),
            expires_on=self.expires_on(),
            serial=self.serial(),
            sha1_fingerprint=self.sha1_fingerprint(),
            sha256_fingerprint=self.sha256_fingerprint(),
        )

    def to_pem(self) -> bytes:
        return self.x509_cert.public_bytes(Encoding.PEM)

    def import_to_system(self, trust_store: TrustStore | None = None) -> None:
        """Add the certificate to the system trust store."""
        (trust_store or SystemTrustStore()).import_certificate(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SslCertificate):
            return NotImplemented
        return self.x509_cert == other.x509_cert

    def __hash__(self) -> int:
        return hash(self.x509_cert)

    def __repr__(self) -> str:
        return f"SslCertificate(subject={self.subject_name()!r}, sha256={self.sha256_fingerprint()})"


class SystemTrustStore:
    """Imports certificates as trust anchors and rebuilds the system bundle."""

    FILE_NAME = "registration_server.pem"

    def __init__(self, anchors_dir: Path | None = None, update_command: str | None = None) -> None:
        self.anchors_dir = anchors_dir or settings.trust_anchors_dir
        self.update_command = update_command or settings.trust_update_command

    def import_certificate(self, certificate: SslCertificate) -> None:
        """
        Write the certificate as an anchor and run the update command.

        Raises:
            CertificateError: If the anchor cannot be written or the update fails
        """
        path = self.anchors_dir / self.FILE_NAME
        logger.info(
            "importing_certificate",
            path=str(path),
            subject=certificate.subject_name(),
            sha256=certificate.sha256_fingerprint(),
        )
        try:
            save_bytes(path, certificate.to_pem(), mode=0o644)
        except OSError as exc:
            raise CertificateError(f"Cannot write {path}: {exc.strerror}") from exc

        command = shutil.which(self.update_command)
        if command is None:
            raise CertificateError(f"{self.update_command} not found")

        result = subprocess.run([command], capture_output=True, text=True, check=False)
        if result.returncode != 0:
            logger.error(
                "trust_update_failed",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
            raise CertificateError(f"{self.update_command} failed with exit code {result.returncode}")

        logger.info("certificate_imported", path=str(path))
