"""
Module: analytics_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    reporting engines: aging, statements, depreciation, inventory
    valuation and the custom report composer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import analytics_kernel (and sibling engine modules).
    MUST NOT import analytics_config or analytics_reports.

Invariants enforced:
    - Purity: engines never read the clock.  As-of dates and snapshots are
      passed in by the reporting service.
    - Decimal-only arithmetic through ``Money``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``analytics_engines.tracer``), emitting ANALYTICS_ENGINE_TRACE records
    with engine name, version, input fingerprint and duration.

Usage:
    from analytics_engines.aging import AgingEngine
    from analytics_engines.depreciation import DepreciationEngine
    from analytics_engines.valuation import InventoryValuationEngine
    from analytics_engines.query import QueryComposer, ReportSpecification
"""

from analytics_kernel.logging_config import get_logger

logger = get_logger("engines")

from analytics_engines.aging import (
    AgedItem,
    AgingEngine,
    AgingReport,
    AgingSortKey,
    AgingSummary,
    BucketAmounts,
    EntityAging,
)
from analytics_engines.statements import Statement, StatementEngine, StatementLine, StatementSummary
from analytics_engines.depreciation import (
    AssetDepreciation,
    DepreciationEngine,
    DepreciationReport,
    DepreciationScheduleEntry,
    DepreciationSortKey,
)
from analytics_engines.valuation import (
    InventorySortKey,
    InventoryValuationEngine,
    InventoryValuationReport,
    InventoryValuationResult,
    consume_layers,
)
from analytics_engines.query import (
    CustomReportResult,
    FieldCatalog,
    FieldType,
    Operator,
    QueryComposer,
    ReportSpecification,
)
from analytics_engines.tracer import traced_engine

__all__ = [
    "AgedItem",
    "AgingEngine",
    "AgingReport",
    "AgingSortKey",
    "AgingSummary",
    "AssetDepreciation",
    "BucketAmounts",
    "CustomReportResult",
    "DepreciationEngine",
    "DepreciationReport",
    "DepreciationScheduleEntry",
    "DepreciationSortKey",
    "EntityAging",
    "FieldCatalog",
    "FieldType",
    "InventorySortKey",
    "InventoryValuationEngine",
    "InventoryValuationReport",
    "InventoryValuationResult",
    "Operator",
    "QueryComposer",
    "ReportSpecification",
    "Statement",
    "StatementEngine",
    "StatementLine",
    "StatementSummary",
    "consume_layers",
    "traced_engine",
]
