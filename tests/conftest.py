"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- Settings pointing at a temporary system root
- Self-signed certificates built with cryptography
- A fake entitlement service recording its calls
- A mocked package store
- Registration sessions wired to the fakes
"""

import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# Set environment variables BEFORE importing sysreg modules
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("METRICS_ENABLED", "true")
os.environ.pop("REGISTRATION_URL", None)
os.environ.pop("INSECURE_REGISTRATION", None)

from sysreg.config import Settings
from sysreg.exceptions import RegistrationError
from sysreg.models.connect import (
    ActivatedProduct,
    AddonCatalogEntry,
    ProductDetails,
    RemoteProduct,
    ServiceDescriptor,
    SystemStatus,
    UpdateResult,
)
from sysreg.models.domain import ConnectParams, ProductDescriptor, RemoteProductIdentity
from sysreg.services.certificate import SslCertificate
from sysreg.services.package_store import PackageStore
from sysreg.services.registration import RegistrationSession

# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def system_root(tmp_path: Path) -> Path:
    """Empty system root with the configuration directories."""
    for directory in ("etc/zypp/credentials.d", "etc/products.d", "etc/pki/trust/anchors"):
        (tmp_path / directory).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def test_settings(system_root: Path) -> Settings:
    """Settings with every path below the temporary system root."""
    return Settings(
        zypp_dir=system_root / "etc/zypp",
        credentials_dir=system_root / "etc/zypp/credentials.d",
        products_dir=system_root / "etc/products.d",
        trust_anchors_dir=system_root / "etc/pki/trust/anchors",
        lang="de_DE.UTF-8",
        registration_url=None,
        insecure_registration=False,
    )


# ============================================================================
# Certificate Fixtures
# ============================================================================


def create_certificate(
    common_name: str = "registration.example.com",
    organization: str | None = "Example Org",
    organization_unit: str | None = "Registration",
    issuer_name: str | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
    serial_number: int = 0x0ABCDEF1,
    ca: bool = True,
    key: ec.EllipticCurvePrivateKey | None = None,
    issuer_key: ec.EllipticCurvePrivateKey | None = None,
) -> x509.Certificate:
    """Create a certificate, self-signed unless issuer_name and issuer_key are given."""
    key = key or ec.generate_private_key(ec.SECP256R1())

    subject_attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
    if organization:
        subject_attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    if organization_unit:
        subject_attributes.append(
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, organization_unit)
        )
    subject = x509.Name(subject_attributes)
    issuer = (
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name)]) if issuer_name else subject
    )

    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(serial_number)
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(issuer_key or key, hashes.SHA256())
    )


@pytest.fixture
def certificate_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def x509_certificate(certificate_key: ec.EllipticCurvePrivateKey) -> x509.Certificate:
    return create_certificate(common_name="localhost", key=certificate_key)


@pytest.fixture
def ssl_certificate(x509_certificate: x509.Certificate) -> SslCertificate:
    return SslCertificate(x509_certificate)


# ============================================================================
# Entitlement Service Fixtures
# ============================================================================


def service_for(identity: RemoteProductIdentity) -> ServiceDescriptor:
    """Service the fake entitlement service returns for a product."""
    name = f"{identity.identifier}_{identity.version}_{identity.arch}"
    return ServiceDescriptor(
        name=name,
        url=f"https://scc.example.com/access/services/1?credentials={name}",
        product=RemoteProduct(
            identifier=identity.identifier,
            version=identity.version,
            arch=identity.arch,
            release_type=identity.release_type,
        ),
    )


class FakeEntitlementService:
    """
    In-memory entitlement service.

    Records every call with its ConnectParams. Setting ``error`` makes every
    following call raise it.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ConnectParams]] = []
        self.error: RegistrationError | None = None
        self.login = "SCC_0123456789"
        self.password = "s3cr3t-password"
        self.catalog: list[AddonCatalogEntry] = []
        self.activated: list[RemoteProductIdentity] = []

    def _call(self, name: str, params: ConnectParams) -> None:
        self.calls.append((name, params))
        if self.error is not None:
            raise self.error

    def announce_system(self, params: ConnectParams, distro_target: str | None) -> tuple[str, str]:
        self._call("announce_system", params)
        return self.login, self.password

    def activate_product(
        self, product: RemoteProductIdentity, params: ConnectParams, email: str | None
    ) -> ServiceDescriptor:
        self._call("activate_product", params)
        self.activated.append(product)
        return service_for(product)

    def upgrade_product(
        self, product: RemoteProductIdentity, params: ConnectParams
    ) -> ServiceDescriptor:
        self._call("upgrade_product", params)
        self.activated.append(product)
        return service_for(product)

    def update_system(self, params: ConnectParams, target_distro: str | None) -> UpdateResult:
        self._call("update_system", params)
        return UpdateResult(login=self.login, target_distro=target_distro)

    def show_product(self, product: RemoteProductIdentity, params: ConnectParams) -> ProductDetails:
        self._call("show_product", params)
        return ProductDetails(
            identifier=product.identifier,
            version=product.version,
            arch=product.arch,
            release_type=product.release_type,
            extensions=self.catalog,
        )

    def status(self, params: ConnectParams) -> SystemStatus:
        self._call("status", params)
        return SystemStatus(
            activated_products=[
                ActivatedProduct(
                    identifier=product.identifier,
                    version=product.version,
                    arch=product.arch,
                    release_type=product.release_type,
                    status="ACTIVE",
                )
                for product in self.activated
            ]
        )

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_connect() -> FakeEntitlementService:
    return FakeEntitlementService()


# ============================================================================
# Package Store Fixtures
# ============================================================================


@pytest.fixture
def base_product() -> ProductDescriptor:
    return ProductDescriptor(
        name="SLES",
        arch="x86_64",
        version="12",
        release_type="DVD",
        display_name="SUSE Linux Enterprise Server 12",
    )


@pytest.fixture
def mock_package_store(base_product: ProductDescriptor, test_settings: Settings) -> MagicMock:
    """PackageStore mock returning the base product."""
    store = MagicMock(spec=PackageStore)
    store.locate_base_product.return_value = base_product
    store.ensure_writable_config_dir.return_value = test_settings.zypp_dir
    store.global_credentials_path.return_value = test_settings.global_credentials_path
    return store


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def session(
    fake_connect: FakeEntitlementService,
    mock_package_store: MagicMock,
    test_settings: Settings,
) -> RegistrationSession:
    return RegistrationSession(fake_connect, mock_package_store, settings=test_settings)


@pytest.fixture
def registered_session(session: RegistrationSession) -> RegistrationSession:
    """Session of a system that has been announced."""
    session.register("admin@example.com", "REGCODE-1234")
    return session


@pytest.fixture
def addon_entry() -> AddonCatalogEntry:
    return AddonCatalogEntry(
        identifier="sle-sdk",
        version="12",
        arch="x86_64",
        release_type=None,
        friendly_name="SUSE Linux Enterprise Software Development Kit 12",
        free=True,
    )


@pytest.fixture
def make_certificate():
    """Factory for certificates with custom names, serial and validity."""
    return create_certificate
