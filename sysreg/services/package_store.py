"""
Package Store - local package manager configuration.

The registration session only talks to the PackageStore protocol. The
LocalServiceStore implementation keeps repository services as INI files
below ``<zypp_dir>/services.d`` the way libzypp stores them.

ATOMIC - Every file is replaced atomically, a failed provisioning step
leaves the previous configuration in place.
"""

import configparser
import io
import json
import os
import shutil
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from structlog import get_logger

from sysreg.config import Settings, get_settings
from sysreg.exceptions import ServiceError
from sysreg.helpers import base_version
from sysreg.models.connect import ServiceDescriptor
from sysreg.models.domain import Credentials, ProductDescriptor, RenameMap
from sysreg.observability.metrics import metrics
from sysreg.services.credentials import credentials_from_url, write_credentials
from sysreg.services.store import save_text

logger = get_logger(__name__)

BASE_PRODUCT_FILE = "baseproduct"
RENAMES_FILE = "renames.json"

# Refresh hook: service name -> success
RefreshHook = Callable[[str], bool]


class PackageStore(Protocol):
    """Local package manager operations needed by the registration workflow."""

    def locate_base_product(self) -> ProductDescriptor:
        """The installed (or to be installed) base product."""
        ...

    def add_or_refresh_service(self, service: ServiceDescriptor, credentials: Credentials) -> None:
        """Add the service, or update it when it exists, then refresh it."""
        ...

    def apply_renames(self, renames: RenameMap) -> None:
        """Publish addon renames so cached product records can be reconciled."""
        ...

    def ensure_writable_config_dir(self) -> Path:
        """Make sure the package manager configuration can be written."""
        ...

    def global_credentials_path(self) -> Path:
        """Where the credentials of the system announcement are kept."""
        ...


def base_product_label(product: ProductDescriptor | None) -> str:
    """UI label of a base product."""
    if product is None:
        return "Unknown product"
    return product.display_name or product.short_name or product.name or "Unknown product"


class LocalServiceStore:
    """
    File based PackageStore.

    Args:
        settings: Paths of the package manager configuration
        refresh_hook: Called with the service name after the service is saved,
            returns False when the refresh failed. Without a hook services are
            saved but not refreshed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        refresh_hook: RefreshHook | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.refresh_hook = refresh_hook
        self.zypp_dir = self.settings.zypp_dir

    @property
    def services_dir(self) -> Path:
        return self.zypp_dir / "services.d"

    def service_file(self, service_name: str) -> Path:
        return self.services_dir / f"{service_name}.service"

    @property
    def credentials_dir(self) -> Path:
        """Credentials directory, it follows the configuration directory when that is copied."""
        configured = self.settings.credentials_dir
        if configured.is_relative_to(self.settings.zypp_dir):
            return self.zypp_dir / configured.relative_to(self.settings.zypp_dir)
        return configured

    def global_credentials_path(self) -> Path:
        return self.credentials_dir / self.settings.global_credentials_name

    def service_aliases(self) -> list[str]:
        """Names of the configured services."""
        if not self.services_dir.is_dir():
            return []
        return sorted(path.stem for path in self.services_dir.glob("*.service"))

    # ========================================================================
    # Base product
    # ========================================================================

    def locate_base_product(self) -> ProductDescriptor:
        """
        Read the base product from ``<products_dir>/baseproduct``.

        Raises:
            ServiceError: The product file is missing or malformed
        """
        path = self.settings.products_dir / BASE_PRODUCT_FILE
        try:
            root = ET.parse(path).getroot()
        except (OSError, ET.ParseError) as exc:
            raise ServiceError(BASE_PRODUCT_FILE, "locate", str(exc)) from exc

        def text(tag: str) -> str | None:
            element = root.find(tag)
            if element is None or element.text is None:
                return None
            return element.text.strip() or None

        name = text("name")
        if not name:
            raise ServiceError(BASE_PRODUCT_FILE, "locate", f"{path} does not define a product name")

        product = ProductDescriptor(
            name=name,
            arch=text("arch") or "",
            version=base_version(text("version") or ""),
            release_type=text("flavor"),
            display_name=text("summary"),
            short_name=text("shortsummary"),
        )
        logger.info("base_product_found", product=product.for_log())
        return product

    # ========================================================================
    # Services
    # ========================================================================

    def add_or_refresh_service(self, service: ServiceDescriptor, credentials: Credentials) -> None:
        """
        Add or update a repository service and refresh it.

        Raises:
            ServiceError: The stage that failed is in ``stage``
        """
        try:
            self._provision(service, credentials)
        except ServiceError as exc:
            logger.error(
                "service_provisioning_failed",
                service=service.name,
                stage=exc.stage,
                error=exc.message,
            )
            if self.settings.metrics_enabled:
                metrics.record_service_provisioned(False)
            raise

        if self.settings.metrics_enabled:
            metrics.record_service_provisioned(True)

    def _provision(self, service: ServiceDescriptor, credentials: Credentials) -> None:
        logger.info("adding_service", service=service.name, url=service.url)

        credentials_file = credentials_from_url(service.url)
        if credentials_file:
            service_credentials = credentials.for_service(self.credentials_dir / credentials_file)
            try:
                write_credentials(service_credentials)
            except OSError as exc:
                raise ServiceError(service.name, "credentials", str(exc)) from exc

        path = self.service_file(service.name)
        parser = configparser.ConfigParser(interpolation=None)

        if path.exists():
            logger.info("updating_existing_service", service=service.name)
            stage = "update"
            try:
                parser.read(path, encoding="utf-8")
            except configparser.Error as exc:
                raise ServiceError(service.name, stage, str(exc)) from exc
        else:
            logger.info("adding_new_service", service=service.name)
            stage = "add"

        if not parser.has_section(service.name):
            parser.add_section(service.name)
        section = parser[service.name]
        section["name"] = service.name
        section["url"] = service.url
        section["enabled"] = "1"
        section["autorefresh"] = "1"
        section.setdefault("type", "ris")

        buffer = io.StringIO()
        parser.write(buffer)

        try:
            save_text(path, buffer.getvalue(), mode=0o644)
        except OSError as exc:
            raise ServiceError(service.name, "save", str(exc)) from exc

        logger.info("service_saved", service=service.name, stage=stage, path=str(path))

        if self.refresh_hook is None:
            return
        if not self.refresh_hook(service.name):
            raise ServiceError(service.name, "refresh", "refreshing the service failed")
        logger.info("service_refreshed", service=service.name)

    # ========================================================================
    # Renames
    # ========================================================================

    def apply_renames(self, renames: RenameMap) -> None:
        """Merge renames into ``renames.json`` in the package manager directory."""
        if not renames:
            return

        path = self.zypp_dir / RENAMES_FILE
        known: RenameMap = {}
        if path.exists():
            try:
                known = json.loads(path.read_text(encoding="utf-8"))
            except ValueError:
                logger.warning("ignoring_invalid_renames_file", path=str(path))
                known = {}

        known.update(renames)
        save_text(path, json.dumps(known, indent=2, sort_keys=True) + "\n", mode=0o644)
        logger.info("product_renames_applied", renames=renames, path=str(path))

    # ========================================================================
    # Configuration directory
    # ========================================================================

    def ensure_writable_config_dir(self) -> Path:
        """
        Use a writable copy of the configuration directory when it is read-only.

        The installation media mount the configuration read-only; the copy is
        used by this store from now on, credentials included.

        Raises:
            ServiceError: The directory could not be created or copied
        """
        if not self.zypp_dir.exists():
            try:
                self.zypp_dir.mkdir(parents=True)
            except OSError as exc:
                raise ServiceError(self.zypp_dir.name, "config", str(exc)) from exc
            return self.zypp_dir

        if os.access(self.zypp_dir, os.W_OK):
            return self.zypp_dir

        tmpdir = Path(tempfile.mkdtemp(prefix="sysreg-"))
        writable = tmpdir / self.zypp_dir.name
        logger.info("copying_config_to_writable_place", source=str(self.zypp_dir), target=str(writable))
        try:
            shutil.copytree(self.zypp_dir, writable, symlinks=True)
        except OSError as exc:
            raise ServiceError(self.zypp_dir.name, "config", str(exc)) from exc
        self.zypp_dir = writable
        return writable
