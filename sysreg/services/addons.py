"""
Addon Tracking.

Keeps the addons of the last catalog fetch together with the local state
the registration workflow changes: selected by the operator, registered.
"""

from collections.abc import Iterable, Sequence

from structlog import get_logger

from sysreg.models.connect import AddonCatalogEntry
from sysreg.models.domain import ProductDescriptor, RemoteProductIdentity

logger = get_logger(__name__)


class Addon:
    """A catalog addon with its local registration state."""

    def __init__(self, entry: AddonCatalogEntry) -> None:
        self.entry = entry
        self._registered = False
        self.selected = False

    @property
    def identifier(self) -> str:
        return self.entry.identifier

    @property
    def version(self) -> str:
        return self.entry.version

    @property
    def arch(self) -> str:
        return self.entry.arch

    @property
    def release_type(self) -> str | None:
        return self.entry.release_type

    def identity(self) -> RemoteProductIdentity:
        return self.entry.identity()

    def matches(self, identity: RemoteProductIdentity) -> bool:
        """Same arch, identifier, version and release type."""
        return self.identity() == identity

    def registered(self) -> None:
        """Mark the addon as registered."""
        self._registered = True

    @property
    def is_registered(self) -> bool:
        return self._registered

    def updates_addon(self, installed: ProductDescriptor) -> bool:
        """Whether this addon replaces an installed product, including renamed ones."""
        names = {self.entry.identifier}
        if self.entry.former_identifier:
            names.add(self.entry.former_identifier)
        return installed.name in names and (not installed.arch or installed.arch == self.arch)

    def __repr__(self) -> str:
        state = "registered" if self._registered else "unregistered"
        return f"Addon({self.identifier}-{self.version}-{self.arch}, {state})"


class AddonRegistry:
    """Addons of the last catalog fetch."""

    def __init__(self) -> None:
        self._addons: list[Addon] = []

    def replace(self, entries: Iterable[AddonCatalogEntry]) -> list[Addon]:
        """Replace the tracked addons, keeping the state of addons seen before."""
        previous = {addon.identity(): addon for addon in self._addons}
        addons = []
        for entry in entries:
            addon = Addon(entry)
            if (old := previous.get(addon.identity())) is not None:
                addon.selected = old.selected
                if old.is_registered:
                    addon.registered()
            addons.append(addon)
        self._addons = addons
        return list(addons)

    def find_all(self) -> list[Addon]:
        return list(self._addons)

    def find(self, identity: RemoteProductIdentity) -> Addon | None:
        return next((addon for addon in self._addons if addon.matches(identity)), None)

    def registered(self) -> list[Addon]:
        return [addon for addon in self._addons if addon.is_registered]

    def selected(self) -> list[Addon]:
        return [addon for addon in self._addons if addon.selected]


def find_addon_updates(
    addons: Iterable[Addon], installed_products: Sequence[ProductDescriptor]
) -> list[Addon]:
    """Addons that update one of the installed products."""
    updates = [
        addon
        for addon in addons
        if any(addon.updates_addon(installed) for installed in installed_products)
    ]
    logger.info("found_addon_updates", addons=[addon.identifier for addon in updates])
    return updates
