"""
Tests for addon tracking and rename collection.
"""

from sysreg.models.connect import AddonCatalogEntry
from sysreg.models.domain import ProductDescriptor, RemoteProductIdentity
from sysreg.services.addons import Addon, AddonRegistry, find_addon_updates
from sysreg.services.renames import collect_renames


def entry(identifier: str, former: str | None = None, version: str = "12") -> AddonCatalogEntry:
    return AddonCatalogEntry(
        identifier=identifier, former_identifier=former, version=version, arch="x86_64"
    )


class TestCollectRenames:
    """Tests for collect_renames."""

    def test_renamed_addon(self):
        assert collect_renames([entry("NEW", "OLD")]) == {"OLD": "NEW"}

    def test_unrenamed_addons_are_skipped(self):
        """No entry without a former identifier or with an unchanged one."""
        catalog = [entry("sle-sdk"), entry("sle-we", "sle-we"), entry("sle-ha", "")]
        assert collect_renames(catalog) == {}

    def test_mixed_catalog(self):
        catalog = [entry("sle-sdk"), entry("sle-module-web", "sle-web"), entry("sle-ha", "sle-hae")]
        assert collect_renames(catalog) == {"sle-web": "sle-module-web", "sle-hae": "sle-ha"}

    def test_idempotent(self):
        catalog = [entry("NEW", "OLD"), entry("sle-sdk")]
        assert collect_renames(catalog) == collect_renames(catalog)


class TestAddon:
    """Tests for Addon."""

    def test_initial_state(self):
        addon = Addon(entry("sle-sdk"))
        assert not addon.is_registered
        assert not addon.selected

    def test_registered(self):
        addon = Addon(entry("sle-sdk"))
        addon.registered()
        assert addon.is_registered

    def test_matches_identity(self):
        addon = Addon(entry("sle-sdk"))
        assert addon.matches(RemoteProductIdentity(arch="x86_64", identifier="sle-sdk", version="12"))
        assert not addon.matches(RemoteProductIdentity(arch="x86_64", identifier="sle-sdk", version="15"))
        assert not addon.matches(
            RemoteProductIdentity(arch="x86_64", identifier="sle-sdk", version="12", release_type="GA")
        )

    def test_updates_installed_addon(self):
        addon = Addon(entry("sle-sdk"))
        assert addon.updates_addon(ProductDescriptor(name="sle-sdk", arch="x86_64", version="11"))
        assert not addon.updates_addon(ProductDescriptor(name="sle-we", arch="x86_64", version="12"))

    def test_updates_renamed_addon(self):
        """An addon updates a product installed under its former name."""
        addon = Addon(entry("sle-module-web", "sle-web"))
        assert addon.updates_addon(ProductDescriptor(name="sle-web", arch="x86_64", version="11"))

    def test_updates_requires_same_arch(self):
        addon = Addon(entry("sle-sdk"))
        assert not addon.updates_addon(ProductDescriptor(name="sle-sdk", arch="s390x", version="11"))


class TestAddonRegistry:
    """Tests for AddonRegistry."""

    def test_replace_and_find(self):
        registry = AddonRegistry()
        registry.replace([entry("sle-sdk"), entry("sle-we")])

        assert [addon.identifier for addon in registry.find_all()] == ["sle-sdk", "sle-we"]
        found = registry.find(RemoteProductIdentity(arch="x86_64", identifier="sle-we", version="12"))
        assert found is not None
        assert found.identifier == "sle-we"

    def test_find_unknown(self):
        registry = AddonRegistry()
        registry.replace([entry("sle-sdk")])
        assert registry.find(RemoteProductIdentity(arch="x86_64", identifier="sle-ha", version="12")) is None

    def test_registered(self):
        registry = AddonRegistry()
        sdk, _ = registry.replace([entry("sle-sdk"), entry("sle-we")])
        sdk.registered()
        assert registry.registered() == [sdk]

    def test_replace_keeps_state(self):
        """Addons seen before keep their registered and selected state."""
        registry = AddonRegistry()
        sdk, we = registry.replace([entry("sle-sdk"), entry("sle-we")])
        sdk.registered()
        we.selected = True

        registry.replace([entry("sle-sdk"), entry("sle-we"), entry("sle-ha")])

        assert [addon.identifier for addon in registry.registered()] == ["sle-sdk"]
        assert [addon.identifier for addon in registry.selected()] == ["sle-we"]

    def test_replace_drops_missing(self):
        registry = AddonRegistry()
        registry.replace([entry("sle-sdk")])
        registry.replace([entry("sle-we")])
        assert [addon.identifier for addon in registry.find_all()] == ["sle-we"]


class TestFindAddonUpdates:
    """Tests for find_addon_updates."""

    def test_only_installed_addons(self):
        addons = [Addon(entry("sle-sdk")), Addon(entry("sle-we")), Addon(entry("sle-module-web", "sle-web"))]
        installed = [
            ProductDescriptor(name="sle-sdk", arch="x86_64", version="11"),
            ProductDescriptor(name="sle-web", arch="x86_64", version="11"),
        ]

        updates = find_addon_updates(addons, installed)

        assert [addon.identifier for addon in updates] == ["sle-sdk", "sle-module-web"]

    def test_nothing_installed(self):
        assert find_addon_updates([Addon(entry("sle-sdk"))], []) == []
