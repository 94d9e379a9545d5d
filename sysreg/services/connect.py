"""
Entitlement Service Boundary.

The remote entitlement protocol is consumed through this typed interface;
the wire format belongs to the implementation.
"""

from typing import Protocol

from sysreg.models.connect import ProductDetails, ServiceDescriptor, SystemStatus, UpdateResult
from sysreg.models.domain import ConnectParams, RemoteProductIdentity


class EntitlementService(Protocol):
    """
    Remote procedures offered by the entitlement service.

    Implementations raise TransportError (or RegistrationTimeoutError) on
    network and TLS failures and ServiceAuthError when the service rejects
    the credentials or registration code. They must hand
    ``params.verify_callback`` to their TLS layer and, when
    ``params.trusted_certificate`` is set, trust it for that call only.
    """

    def announce_system(
        self, params: ConnectParams, distro_target: str | None
    ) -> tuple[str, str]:
        """Announce the system, returning (login, password)."""
        ...

    def activate_product(
        self, product: RemoteProductIdentity, params: ConnectParams, email: str | None
    ) -> ServiceDescriptor:
        """Activate a product for the announced system."""
        ...

    def upgrade_product(
        self, product: RemoteProductIdentity, params: ConnectParams
    ) -> ServiceDescriptor:
        """Upgrade an activated product to a new version."""
        ...

    def update_system(self, params: ConnectParams, target_distro: str | None) -> UpdateResult:
        """Change the registered target distribution."""
        ...

    def show_product(self, product: RemoteProductIdentity, params: ConnectParams) -> ProductDetails:
        """Product catalog entry including its extensions."""
        ...

    def status(self, params: ConnectParams) -> SystemStatus:
        """Activation status of the system."""
        ...
