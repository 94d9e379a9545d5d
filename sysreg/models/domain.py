"""
Domain Models - Internal registration models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

from sysreg.helpers import FILTERED, redact_reg_code

if TYPE_CHECKING:
    from sysreg.services.certificate import SslCertificate


@dataclass(frozen=True)
class RemoteProductIdentity:
    """Immutable product identity as known by the entitlement service."""

    arch: str
    identifier: str
    version: str
    release_type: str | None = None

    def __post_init__(self) -> None:
        """Validate identity fields."""
        if not self.identifier:
            raise ValueError("identifier cannot be empty")

    def __str__(self) -> str:
        return f"{self.identifier}/{self.version}/{self.arch}"


@dataclass(frozen=True)
class ProductDescriptor:
    """Raw product descriptor as read from the local package manager."""

    name: str
    arch: str
    version: str
    release_type: str | None = None
    reg_code: str | None = field(default=None, repr=False)
    display_name: str | None = None
    short_name: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProductDescriptor":
        """Build a descriptor from a package manager product record."""
        return cls(
            name=str(data["name"]),
            arch=str(data.get("arch", "")),
            version=str(data.get("version", "")),
            release_type=data.get("release_type"),
            reg_code=data.get("reg_code") or None,
            display_name=data.get("display_name"),
            short_name=data.get("short_name"),
        )

    def to_identity(self) -> RemoteProductIdentity:
        """Convert to RemoteProductIdentity."""
        return RemoteProductIdentity(
            arch=self.arch,
            identifier=self.name,
            version=self.version,
            release_type=self.release_type,
        )

    def for_log(self) -> dict[str, Any]:
        """Descriptor fields with the registration code filtered."""
        return redact_reg_code(
            {
                "name": self.name,
                "arch": self.arch,
                "version": self.version,
                "release_type": self.release_type,
                "reg_code": self.reg_code,
            }
        )


# A product passed to the session is either a raw descriptor or an identity
ProductRef: TypeAlias = ProductDescriptor | RemoteProductIdentity


def normalize_product(product: ProductRef) -> tuple[RemoteProductIdentity, str | None]:
    """Resolve a product reference to its remote identity and optional reg. code."""
    if isinstance(product, ProductDescriptor):
        return product.to_identity(), product.reg_code
    if isinstance(product, RemoteProductIdentity):
        return product, None
    raise TypeError(f"Unsupported product reference: {type(product).__name__}")


@dataclass(frozen=True)
class Credentials:
    """Login and password issued by the entitlement service."""

    login: str
    password: str = field(repr=False)
    path: Path

    def for_service(self, path: Path) -> "Credentials":
        """Same login and password, stored at a per-service path."""
        return replace(self, path=path)

    def __str__(self) -> str:
        return f"#<Credentials login={self.login} password={FILTERED} path={self.path}>"


# Verify callback shape used by pyOpenSSL: (connection, x509, errno, depth, ok) -> ok
VerifyCallback: TypeAlias = Callable[[Any, Any, int, int, int], bool]


@dataclass(frozen=True)
class ConnectParams:
    """Connection parameters built fresh for every remote call. Never persisted."""

    language: str | None
    verify_callback: VerifyCallback
    url: str | None = None
    debug: bool = False
    verbose: bool = False
    insecure: bool = False
    timeout: float | None = None
    token: str | None = field(default=None, repr=False)
    email: str | None = None
    trusted_certificate: "SslCertificate | None" = None


@dataclass(frozen=True)
class CertificateView:
    """Read-only projection of a certificate for operator-facing trust decisions."""

    subject_name: str | None
    subject_organization: str | None
    subject_organization_unit: str | None
    issuer_name: str | None
    issuer_organization: str | None
    issuer_organization_unit: str | None
    issued_on: date
    expires_on: date
    serial: str
    sha1_fingerprint: str
    sha256_fingerprint: str


# Former addon identifier -> current identifier
RenameMap: TypeAlias = dict[str, str]
