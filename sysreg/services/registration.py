"""
Registration Session - announce the system and activate products.

NO DICTIONARIES - Remote results are typed models, products are normalized
to RemoteProductIdentity before every remote call.
NO RETRIES - Failures are reported to the caller immediately.

Every remote call gets a fresh ConnectParams and its own TrustDecisionStore.
A TLS verification failure of the call is attached to the raised
TransportError, so the operator can be shown the server certificate and the
call repeated once with that certificate pinned (``trust_once``).
"""

from collections.abc import Callable
from typing import Any, TypeVar

from structlog import get_logger

from sysreg.config import Settings, get_settings
from sysreg.exceptions import (
    ActivationError,
    AnnouncementError,
    RegistrationError,
    ServiceAuthError,
    ServiceError,
    TransportError,
)
from sysreg.helpers import FILTERED
from sysreg.models.connect import (
    ActivatedProduct,
    AddonCatalogEntry,
    ServiceDescriptor,
    UpdateResult,
)
from sysreg.models.domain import (
    ConnectParams,
    Credentials,
    ProductRef,
    RemoteProductIdentity,
    normalize_product,
)
from sysreg.observability.logging import log_context
from sysreg.observability.metrics import metrics, track_remote_call
from sysreg.services.addons import AddonRegistry
from sysreg.services.certificate import SslCertificate
from sysreg.services.connect import EntitlementService
from sysreg.services.credentials import read_credentials, write_credentials
from sysreg.services.package_store import PackageStore
from sysreg.services.renames import collect_renames
from sysreg.services.trust import TrustDecisionStore, make_verify_callback

logger = get_logger(__name__)

T = TypeVar("T")

# Builds the operation level error from the remote failure
ErrorWrapper = Callable[[TransportError | ServiceAuthError], RegistrationError]


def is_registered(settings: Settings | None = None) -> bool:
    """
    Whether the system has been announced.

    Only checks that the global credentials file exists, no network access.
    """
    return (settings or get_settings()).global_credentials_path.exists()


class RegistrationSession:
    """
    Registration workflow against an entitlement service.

    Args:
        connect: Entitlement service client
        package_store: Local package manager configuration
        url: Registration server, defaults to REGISTRATION_URL
        settings: Defaults to the global settings
        addons: Addon registry shared with the caller
    """

    def __init__(
        self,
        connect: EntitlementService,
        package_store: PackageStore,
        url: str | None = None,
        *,
        settings: Settings | None = None,
        addons: AddonRegistry | None = None,
    ) -> None:
        self.connect = connect
        self.package_store = package_store
        self.settings = settings or get_settings()
        self.url = url or self.settings.registration_url
        self.addons = addons if addons is not None else AddonRegistry()
        self._trusted_certificate: SslCertificate | None = None

    # ========================================================================
    # Trust
    # ========================================================================

    def trust_once(self, certificate: SslCertificate) -> None:
        """Trust an operator confirmed certificate for the next remote call only."""
        logger.info(
            "certificate_trusted_once",
            subject=certificate.subject_name(),
            sha256=certificate.sha256_fingerprint(),
        )
        self._trusted_certificate = certificate

    def _connect_params(self, store: TrustDecisionStore, **overrides: Any) -> ConnectParams:
        """Fresh connection parameters for one remote call."""
        insecure = self.settings.insecure_registration
        if insecure:
            logger.warning("ssl_certificate_check_disabled", url=self.url)

        trusted_certificate, self._trusted_certificate = self._trusted_certificate, None

        return ConnectParams(
            url=self.url,
            language=self.settings.http_language,
            debug=self.settings.sccdebug,
            verbose=self.settings.y2debug,
            insecure=insecure,
            timeout=self.settings.request_timeout,
            verify_callback=make_verify_callback(store, self.settings),
            trusted_certificate=trusted_certificate,
            **overrides,
        )

    def _remote_call(
        self,
        operation: str,
        call: Callable[[ConnectParams], T],
        trust: TrustDecisionStore | None = None,
        wrap: ErrorWrapper | None = None,
        **overrides: Any,
    ) -> T:
        store = trust if trust is not None else TrustDecisionStore()
        params = self._connect_params(store, **overrides)

        with log_context(operation=operation, registration_url=self.url), track_remote_call(
            operation, self.settings
        ):
            try:
                return call(params)
            except TransportError as exc:
                if exc.trust_failure is None:
                    exc.trust_failure = store.failure
                logger.error(
                    "remote_call_failed",
                    error=exc.message,
                    error_type=type(exc).__name__,
                    trust_error=exc.trust_failure.error_message if exc.trust_failure else None,
                )
                if wrap is None:
                    raise
                raise wrap(exc) from exc
            except ServiceAuthError as exc:
                logger.error("remote_call_rejected", error=exc.message)
                if wrap is None:
                    raise
                raise wrap(exc) from exc

    # ========================================================================
    # System
    # ========================================================================

    def register(
        self,
        email: str | None,
        reg_code: str | None,
        distro_target: str | None = None,
        *,
        trust: TrustDecisionStore | None = None,
    ) -> Credentials:
        """
        Announce the system and store the issued credentials.

        Raises:
            AnnouncementError: The announcement failed, ``__cause__`` is the
                TransportError or ServiceAuthError
            ServiceError: The configuration directory or the credentials
                could not be written
        """
        logger.info(
            "announcing_system",
            email=email,
            reg_code=FILTERED if reg_code else None,
            distro_target=distro_target,
        )

        login, password = self._remote_call(
            "announce_system",
            lambda params: self.connect.announce_system(params, distro_target),
            trust,
            wrap=lambda exc: AnnouncementError(exc.message),
            token=reg_code,
            email=email,
        )

        self.package_store.ensure_writable_config_dir()

        credentials = Credentials(
            login=login,
            password=password,
            path=self.package_store.global_credentials_path(),
        )
        try:
            write_credentials(credentials)
        except OSError as exc:
            logger.error("writing_credentials_failed", path=str(credentials.path), error=str(exc))
            raise ServiceError(credentials.path.name, "credentials", str(exc)) from exc

        logger.info("system_announced", login=login, credentials=str(credentials.path))
        return credentials

    def update_system(
        self, target_distro: str | None = None, *, trust: TrustDecisionStore | None = None
    ) -> UpdateResult:
        """Migrate the registered system to a new target distribution."""
        logger.info("updating_system", target_distro=target_distro)
        result = self._remote_call(
            "update_system",
            lambda params: self.connect.update_system(params, target_distro),
            trust,
        )
        logger.info("system_updated", target_distro=result.target_distro)
        return result

    def is_registered(self) -> bool:
        return self.package_store.global_credentials_path().exists()

    # ========================================================================
    # Products
    # ========================================================================

    def register_product(
        self,
        product: ProductRef,
        email: str | None = None,
        *,
        trust: TrustDecisionStore | None = None,
    ) -> ServiceDescriptor:
        """
        Activate a product and add its repository service.

        Raises:
            ActivationError: The activation failed remotely, nothing was changed locally
            ServiceError: The service could not be added to the package store
        """
        return self._service_for_product(
            "activate_product",
            product,
            lambda identity, params: self.connect.activate_product(identity, params, email),
            trust,
            email=email,
        )

    def upgrade_product(
        self, product: ProductRef, *, trust: TrustDecisionStore | None = None
    ) -> ServiceDescriptor:
        """Upgrade an activated product, same side effects as register_product."""
        return self._service_for_product(
            "upgrade_product",
            product,
            self.connect.upgrade_product,
            trust,
        )

    def _service_for_product(
        self,
        operation: str,
        product: ProductRef,
        call: Callable[[RemoteProductIdentity, ConnectParams], ServiceDescriptor],
        trust: TrustDecisionStore | None,
        email: str | None = None,
    ) -> ServiceDescriptor:
        identity, reg_code = normalize_product(product)

        logger.info(
            "registering_product",
            operation=operation,
            product=str(identity),
            release_type=identity.release_type,
            reg_code=FILTERED if reg_code else None,
        )

        overrides: dict[str, Any] = {"token": reg_code}
        if email is not None:
            overrides["email"] = email

        service = self._remote_call(
            operation,
            lambda params: call(identity, params),
            trust,
            wrap=lambda exc: ActivationError(str(identity), exc.message),
            **overrides,
        )

        addon = self.addons.find(identity)
        if addon is not None:
            logger.info("addon_registered", addon=addon.identifier)
            addon.registered()

        credentials = read_credentials(self.package_store.global_credentials_path())
        self.package_store.add_or_refresh_service(service, credentials)

        logger.info("product_registered", product=str(identity), service_name=service.name)
        return service

    def get_addon_list(self, *, trust: TrustDecisionStore | None = None) -> list[AddonCatalogEntry]:
        """
        Addons available for the base product.

        Publishes the addon renames to the package store; the base product
        itself is not part of the result.
        """
        base_product = self.package_store.locate_base_product()
        identity, _ = normalize_product(base_product)

        logger.info("reading_available_addons", base_product=str(identity))

        details = self._remote_call(
            "show_product",
            lambda params: self.connect.show_product(identity, params),
            trust,
        )
        catalog = details.extensions or []

        self.package_store.apply_renames(collect_renames(catalog))

        addons = [entry for entry in catalog if entry.identifier != base_product.name]
        self.addons.replace(addons)
        if self.settings.metrics_enabled:
            metrics.addons_available.set(len(addons))

        logger.info("available_addons", addons=[addon.identifier for addon in addons])
        return addons

    def activated_products(
        self, *, trust: TrustDecisionStore | None = None
    ) -> list[ActivatedProduct]:
        """Products activated for this system."""
        status = self._remote_call("status", self.connect.status, trust)
        products = status.activated_products or []
        logger.info("activated_products", products=[product.identifier for product in products])
        return products
