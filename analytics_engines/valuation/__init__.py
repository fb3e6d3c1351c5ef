"""
Valuation - Inventory valuation under FIFO/LIFO/average/standard cost.

Pure engine types only; the reporting service supplies the items.
"""

from analytics_engines.valuation.cost_layer import (
    ConsumptionResult,
    LayerConsumption,
    consume_layers,
    layer_currency,
    order_layers,
)
from analytics_engines.valuation.engine import (
    CategoryValuation,
    InventorySortKey,
    InventorySummary,
    InventoryValuationEngine,
    InventoryValuationReport,
    InventoryValuationResult,
    MethodComparison,
    StockStatus,
    stock_status,
)

__all__ = [
    "CategoryValuation",
    "ConsumptionResult",
    "InventorySortKey",
    "InventorySummary",
    "InventoryValuationEngine",
    "InventoryValuationReport",
    "InventoryValuationResult",
    "LayerConsumption",
    "MethodComparison",
    "StockStatus",
    "consume_layers",
    "layer_currency",
    "order_layers",
    "stock_status",
]
