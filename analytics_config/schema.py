"""
Analytics configuration schema.

Frozen dataclasses for the two human-authored YAML artifacts:

  AnalyticsConfig   = engine settings (currency, precision, fiscal year,
                      depreciation factor, payment window, cancellation)
  CatalogDefinition = the declarative field catalog (data sources and
                      their typed fields)

The loader parses YAML into these types; nothing here reads files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Self

from analytics_kernel.domain.currency import CurrencyRegistry
from analytics_kernel.domain.periods import FiscalCalendar
from analytics_kernel.domain.records import ValuationMethod
from analytics_kernel.domain.values import INTERNAL_DECIMAL_PLACES, to_decimal
from analytics_kernel.exceptions import ConfigurationError
from analytics_kernel.logging_config import get_logger

logger = get_logger("config.schema")


class PaymentWindowPolicy(str, Enum):
    """Which paid items feed ``averagePaymentDays`` in aging reports."""

    FISCAL_YEAR_TO_DATE = "fiscal_year_to_date"
    TRAILING_DAYS = "trailing_days"
    ALL_TIME = "all_time"


# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalyticsConfig:
    """
    Engine-wide settings.

    Every value has a default, so ``AnalyticsConfig()`` is a valid
    configuration on its own.
    """

    # Default currency for reports
    default_currency: str = "USD"

    # Rounding precision for display (overridden per currency by ISO places)
    display_decimal_places: int = 2

    # Intermediate precision; must match the kernel's internal scale
    internal_decimal_places: int = INTERNAL_DECIMAL_PLACES

    # First month of the fiscal year (1 = calendar year)
    fiscal_year_start_month: int = 1

    # 2 = double-declining balance
    declining_balance_factor: Decimal = Decimal("2")

    payment_window: PaymentWindowPolicy = PaymentWindowPolicy.FISCAL_YEAR_TO_DATE
    payment_window_days: int = 365

    # Rows processed between cancellation checks
    cancellation_check_interval: int = 500

    default_valuation_method: ValuationMethod = ValuationMethod.FIFO

    # Lots expiring within this many days are flagged
    expiring_lot_days: int = 30

    def __post_init__(self) -> None:
        source = "AnalyticsConfig"
        if not CurrencyRegistry.is_valid(self.default_currency):
            raise ConfigurationError(source, f"unknown currency {self.default_currency!r}")
        if self.display_decimal_places < 0:
            raise ConfigurationError(source, "display_decimal_places cannot be negative")
        if self.internal_decimal_places != INTERNAL_DECIMAL_PLACES:
            raise ConfigurationError(
                source,
                f"internal_decimal_places must be {INTERNAL_DECIMAL_PLACES}",
            )
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ConfigurationError(source, "fiscal_year_start_month must be 1..12")
        if self.declining_balance_factor <= 0:
            raise ConfigurationError(source, "declining_balance_factor must be positive")
        if self.payment_window_days <= 0:
            raise ConfigurationError(source, "payment_window_days must be positive")
        if self.cancellation_check_interval <= 0:
            raise ConfigurationError(source, "cancellation_check_interval must be positive")
        if self.expiring_lot_days < 0:
            raise ConfigurationError(source, "expiring_lot_days cannot be negative")

    @property
    def fiscal_calendar(self) -> FiscalCalendar:
        return FiscalCalendar(self.fiscal_year_start_month)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("analytics_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a parsed mapping, coercing enums and decimals."""
        values = dict(data)
        unknown = sorted(set(values) - set(cls.__dataclass_fields__))
        if unknown:
            raise ConfigurationError("AnalyticsConfig", f"unknown keys {unknown}")
        try:
            if "declining_balance_factor" in values:
                values["declining_balance_factor"] = to_decimal(
                    str(values["declining_balance_factor"])
                )
            if "payment_window" in values:
                values["payment_window"] = PaymentWindowPolicy(values["payment_window"])
            if "default_valuation_method" in values:
                values["default_valuation_method"] = ValuationMethod(
                    values["default_valuation_method"]
                )
        except ValueError as e:
            raise ConfigurationError("AnalyticsConfig", str(e)) from e
        logger.info(
            "analytics_config_loading_from_dict",
            extra={"keys": sorted(values.keys())},
        )
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_currency": self.default_currency,
            "display_decimal_places": self.display_decimal_places,
            "internal_decimal_places": self.internal_decimal_places,
            "fiscal_year_start_month": self.fiscal_year_start_month,
            "declining_balance_factor": str(self.declining_balance_factor),
            "payment_window": self.payment_window.value,
            "payment_window_days": self.payment_window_days,
            "cancellation_check_interval": self.cancellation_check_interval,
            "default_valuation_method": self.default_valuation_method.value,
            "expiring_lot_days": self.expiring_lot_days,
        }


# ---------------------------------------------------------------------------
# Field catalog (declarative data, no executable logic)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDef:
    """One typed field of a data source."""

    id: str
    name: str
    source_table: str
    display_name: str
    type: str
    derived: bool = False


@dataclass(frozen=True)
class DataSourceDef:
    """A data source: its natural date field and its fields, in order."""

    id: str
    display_name: str
    fields: tuple[FieldDef, ...] = field(default_factory=tuple)
    date_field: str | None = None


@dataclass(frozen=True)
class CatalogDefinition:
    """The whole catalog as authored in YAML."""

    version: int
    data_sources: tuple[DataSourceDef, ...]
    checksum: str = ""
