"""
TLS Trust-On-First-Use.

The TLS layer calls the verify callback for every certificate of the chain
and ignores exceptions raised from it, so failures are recorded as data in a
TrustDecisionStore that belongs to a single remote call. The caller inspects
the store after a failed handshake, shows the certificate to the operator and
may retry once with the confirmed certificate pinned.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from structlog import get_logger

from sysreg.config import Settings, settings
from sysreg.exceptions import CertificateError
from sysreg.observability.metrics import metrics
from sysreg.services.certificate import SslCertificate

logger = get_logger(__name__)

# OpenSSL X509_V_ERR_* codes an operator may run into
VERIFY_ERROR_MESSAGES: dict[int, str] = {
    2: "unable to get issuer certificate",
    7: "certificate signature failure",
    9: "certificate is not yet valid",
    10: "certificate has expired",
    18: "self signed certificate",
    19: "self signed certificate in certificate chain",
    20: "unable to get local issuer certificate",
    21: "unable to verify the first certificate",
    23: "certificate revoked",
    24: "invalid CA certificate",
    26: "unsupported certificate purpose",
    62: "hostname mismatch",
}

SELF_SIGNED_ERRORS = frozenset({18, 19})
UNKNOWN_ISSUER_ERRORS = frozenset({2, 20, 21})


def verify_error_message(error_code: int) -> str:
    """Human readable text for an OpenSSL verify error code."""
    return VERIFY_ERROR_MESSAGES.get(error_code, f"certificate verify failed (error {error_code})")


@dataclass(frozen=True)
class TrustFailure:
    """A certificate verification failure recorded during a handshake."""

    error_code: int
    error_message: str
    depth: int = 0
    certificate: SslCertificate | None = None

    @property
    def self_signed(self) -> bool:
        return self.error_code in SELF_SIGNED_ERRORS

    @property
    def unknown_issuer(self) -> bool:
        return self.error_code in UNKNOWN_ISSUER_ERRORS


class TrustDecisionStore:
    """
    Holder of the most recent verification failure of one remote call.

    A new failure overwrites the previous one: the callback runs for every
    certificate of the chain and the last recorded one is reported.
    """

    def __init__(self) -> None:
        self._failure: TrustFailure | None = None

    @property
    def failure(self) -> TrustFailure | None:
        return self._failure

    def record(self, failure: TrustFailure) -> None:
        self._failure = failure

    def clear(self) -> None:
        self._failure = None

    def __bool__(self) -> bool:
        return self._failure is not None


def make_verify_callback(
    store: TrustDecisionStore, config: Settings | None = None
) -> Callable[[Any, Any, int, int, int], bool]:
    """
    Build a pyOpenSSL verify callback that records failures in ``store``.

    The callback never changes the verification result, it returns the
    original decision.
    """

    def verify_callback(connection: Any, cert: Any, error_code: int, depth: int, ok: int) -> bool:
        try:
            if not ok:
                _store_ssl_error(store, cert, error_code, depth, config or settings)
            return bool(ok)
        except Exception as exc:
            # the TLS layer swallows it, log it at least
            logger.exception("verify_callback_failed", error=str(exc))
            raise

    return verify_callback


def _store_ssl_error(
    store: TrustDecisionStore, cert: Any, error_code: int, depth: int, config: Settings
) -> None:
    message = verify_error_message(error_code)
    logger.error("ssl_verification_failed", error_code=error_code, error=message, depth=depth)
    if config.metrics_enabled:
        metrics.record_tls_failure(error_code)
    store.record(
        TrustFailure(
            error_code=error_code,
            error_message=message,
            depth=depth,
            certificate=SslCertificate.from_openssl(cert) if cert is not None else None,
        )
    )


def confirm_certificate(
    failure: TrustFailure | None, fingerprint_type: str, fingerprint: str
) -> SslCertificate:
    """
    Return the failed certificate if the operator's fingerprint matches it.

    Raises:
        CertificateError: No certificate was recorded or the fingerprint differs
    """
    if failure is None or failure.certificate is None:
        raise CertificateError("No server certificate was recorded")

    certificate = failure.certificate
    if not certificate.fingerprint_match(fingerprint_type, fingerprint):
        logger.warning(
            "certificate_fingerprint_mismatch",
            fingerprint_type=fingerprint_type,
            expected=fingerprint,
            subject=certificate.subject_name(),
        )
        raise CertificateError(f"{fingerprint_type} fingerprint does not match the server certificate")

    logger.info(
        "certificate_confirmed",
        fingerprint_type=fingerprint_type,
        subject=certificate.subject_name(),
    )
    return certificate
