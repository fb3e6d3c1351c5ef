"""
SQLAlchemy read models mirroring the upstream application's records.

Importing this package registers every table on ``Base.metadata``.
"""

from analytics_kernel.models.asset import FixedAssetModel
from analytics_kernel.models.inventory import CostLayerModel, InventoryItemModel
from analytics_kernel.models.journal import JournalLineModel
from analytics_kernel.models.party import EntityModel, LedgerDocumentModel

__all__ = [
    "CostLayerModel",
    "EntityModel",
    "FixedAssetModel",
    "InventoryItemModel",
    "JournalLineModel",
    "LedgerDocumentModel",
]
