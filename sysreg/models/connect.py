"""
Entitlement Service Models - Pydantic models for remote call results.

NO DICTIONARIES - Results of the entitlement service are strongly typed.
"""

from pydantic import BaseModel, ConfigDict, Field

from sysreg.models.domain import RemoteProductIdentity


class RemoteProduct(BaseModel):
    """Product fields shared by catalog entries and activations."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    identifier: str = Field(..., min_length=1)
    version: str
    arch: str
    release_type: str | None = None

    def identity(self) -> RemoteProductIdentity:
        """Identity used to correlate with locally known products."""
        return RemoteProductIdentity(
            arch=self.arch,
            identifier=self.identifier,
            version=self.version,
            release_type=self.release_type,
        )


class AddonCatalogEntry(RemoteProduct):
    """An extension offered for a base product."""

    former_identifier: str | None = None
    friendly_name: str | None = None
    description: str | None = None
    free: bool = False
    available: bool = True
    eula_url: str | None = None
    extensions: list["AddonCatalogEntry"] = Field(default_factory=list)


AddonCatalogEntry.model_rebuild()


class ProductDetails(RemoteProduct):
    """show-product result: a product and its extensions."""

    friendly_name: str | None = None
    extensions: list[AddonCatalogEntry] | None = None


class ServiceDescriptor(BaseModel):
    """Repository service returned by activation or upgrade."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    product: RemoteProduct | None = None


class ActivatedProduct(RemoteProduct):
    """A product activated for this system."""

    id: int | None = None
    regcode: str | None = Field(None, repr=False)
    status: str | None = None


class SystemStatus(BaseModel):
    """status result."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    activated_products: list[ActivatedProduct] | None = None


class UpdateResult(BaseModel):
    """update-system result."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str | None = None
    target_distro: str | None = None
    message: str | None = None
