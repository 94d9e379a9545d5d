"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
NO RETRIES - Every error is reported to the caller, who owns retry policy.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sysreg.services.trust import TrustFailure


class RegistrationError(Exception):
    """Base exception for all registration errors."""

    pass


class TransportError(RegistrationError):
    """Raised on network, DNS, connection or TLS handshake failure."""

    def __init__(self, message: str, trust_failure: "TrustFailure | None" = None) -> None:
        self.message = message
        self.trust_failure = trust_failure
        super().__init__(f"Transport error: {message}")


class RegistrationTimeoutError(TransportError):
    """Raised when a remote call exceeds its deadline."""

    def __init__(self, message: str, timeout: float | None = None) -> None:
        self.timeout = timeout
        super().__init__(message)


class ServiceAuthError(RegistrationError):
    """Raised when the entitlement service rejects credentials or a token."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class AnnouncementError(RegistrationError):
    """Raised when the system announcement fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"System announcement failed: {reason}")


class ActivationError(RegistrationError):
    """Raised when activating or upgrading a product fails remotely."""

    def __init__(self, product: str, reason: str) -> None:
        self.product = product
        self.reason = reason
        super().__init__(f"Activation of {product} failed: {reason}")


class ServiceError(RegistrationError):
    """Raised when local repository service provisioning fails."""

    def __init__(self, service_name: str, stage: str, message: str) -> None:
        self.service_name = service_name
        self.stage = stage
        self.message = message
        super().__init__(f"Service '{service_name}' {stage} failed: {message}")


class CertificateError(RegistrationError):
    """Raised on malformed certificate input or a fingerprint mismatch."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Certificate error: {message}")


class FetchError(RegistrationError):
    """Raised when downloading a file fails."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        self.message = message
        super().__init__(f"Downloading {url} failed: {message}")


class ConfigError(RegistrationError):
    """Raised when settings or a control document cannot be parsed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Configuration error: {message}")
