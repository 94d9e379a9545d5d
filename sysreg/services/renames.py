"""
Product Rename Resolution.

Addons occasionally get a new catalog identifier. The catalog keeps the old
one as ``former_identifier`` so locally cached records can be reconciled.
"""

from collections.abc import Iterable

from structlog import get_logger

from sysreg.models.connect import AddonCatalogEntry
from sysreg.models.domain import RenameMap

logger = get_logger(__name__)


def collect_renames(addons: Iterable[AddonCatalogEntry]) -> RenameMap:
    """Map former identifiers to current ones, skipping unrenamed addons."""
    renames: RenameMap = {}

    for addon in addons:
        if addon.former_identifier and addon.identifier != addon.former_identifier:
            renames[addon.former_identifier] = addon.identifier

    logger.info("collected_product_renames", renames=renames)

    return renames
