"""
Pure domain layer.

This module contains value objects, date arithmetic and immutable input
records with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (beyond the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from analytics_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from analytics_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from analytics_kernel.domain.periods import (
    AgingBucket,
    DateRange,
    FiscalCalendar,
    FiscalPeriod,
    add_months,
    age_in_days,
    bucket_by_age,
    bucket_for_age,
    months_between,
    parse_date,
    whole_months_between,
)
from analytics_kernel.domain.records import (
    AssetRecord,
    CostLayer,
    DepreciationMethod,
    DocumentKind,
    DocumentStatus,
    EntityRecord,
    EntityRole,
    InventoryItemRecord,
    JournalLineRecord,
    LedgerDocument,
    ValuationMethod,
)
from analytics_kernel.domain.values import (
    INTERNAL_DECIMAL_PLACES,
    Currency,
    ExchangeRate,
    Money,
    quantize_internal,
    to_decimal,
)

__all__ = [
    # Value objects
    "Currency",
    "Money",
    "ExchangeRate",
    "INTERNAL_DECIMAL_PLACES",
    "quantize_internal",
    "to_decimal",
    "CurrencyInfo",
    "CurrencyRegistry",
    # Periods
    "AgingBucket",
    "DateRange",
    "FiscalCalendar",
    "FiscalPeriod",
    "add_months",
    "age_in_days",
    "bucket_by_age",
    "bucket_for_age",
    "months_between",
    "parse_date",
    "whole_months_between",
    # Records
    "AssetRecord",
    "CostLayer",
    "DepreciationMethod",
    "DocumentKind",
    "DocumentStatus",
    "EntityRecord",
    "EntityRole",
    "InventoryItemRecord",
    "JournalLineRecord",
    "LedgerDocument",
    "ValuationMethod",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
