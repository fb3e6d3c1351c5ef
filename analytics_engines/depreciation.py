"""
Module: analytics_engines.depreciation
Responsibility:
    Compute an asset's current book value, accumulated depreciation and
    fiscal-year depreciation schedule as of a date, for straight-line and
    declining-balance methods, and roll assets up into a depreciation report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - sum(schedule.depreciation) == accumulated_depreciation
      == purchase_price - current_book_value, to the cent.
    - current_book_value >= residual_value; a fully depreciated asset
      reports book == residual and accrues nothing further.
    - Straight-line rows are differences of rounded cumulative values at
      the fiscal-year boundaries, so partial first and last years are
      prorated by day count and the rows telescope exactly.
    - Declining-balance rows are rounded individually and never take the
      book value below residual; the fiscal year containing the end of
      useful life absorbs the remainder.
    - Book values are derived on every call, never stored.

Failure modes:
    - CurrencyMismatchError when a report mixes asset currencies without a
      currency selector.
    - ValueError for a non-positive declining-balance factor.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from analytics_kernel.domain.periods import (
    DateRange,
    FiscalCalendar,
    FiscalPeriod,
    add_months,
    months_between,
    whole_months_between,
)
from analytics_kernel.domain.records import AssetRecord, DepreciationMethod
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError
from analytics_kernel.logging_config import get_logger
from analytics_engines.tracer import traced_engine

logger = get_logger("engines.depreciation")

DEFAULT_DECLINING_BALANCE_FACTOR = Decimal("2")

_TWELVE = Decimal(12)


@dataclass(frozen=True)
class DepreciationScheduleEntry:
    """One fiscal year of depreciation. ``ending_value = beginning_value - depreciation``."""

    year: int
    beginning_value: Money
    depreciation: Money
    accumulated_depreciation: Money
    ending_value: Money


@dataclass(frozen=True)
class AssetDepreciation:
    """
    Derived depreciation state of one asset as of a date.

    Guarantees:
        - ``accumulated_depreciation == sum(e.depreciation for e in schedule)``.
        - ``current_book_value == purchase_price - accumulated_depreciation``.
        - ``projected_schedule`` covers the full useful life.
    """

    asset: AssetRecord
    as_of_date: date
    current_book_value: Money
    accumulated_depreciation: Money
    annual_depreciation: Money
    monthly_depreciation: Money
    remaining_life_months: int
    schedule: tuple[DepreciationScheduleEntry, ...]
    projected_schedule: tuple[DepreciationScheduleEntry, ...]

    @property
    def is_fully_depreciated(self) -> bool:
        return self.current_book_value <= self.asset.residual_value


class DepreciationSortKey(str, Enum):
    """Asset row orderings offered by the depreciation report."""

    PURCHASE_DATE = "purchaseDate"
    ASSET_NAME = "assetName"
    ASSET_TYPE = "assetType"
    PURCHASE_PRICE = "purchasePrice"
    CURRENT_BOOK_VALUE = "currentBookValue"
    ANNUAL_DEPRECIATION = "annualDepreciation"


@dataclass(frozen=True)
class CategoryTotals:
    """Per asset-category totals."""

    category: str
    count: int
    original_cost: Money
    current_value: Money


@dataclass(frozen=True)
class DepreciationSummary:
    total_assets: int
    total_original_cost: Money
    total_current_value: Money
    total_accumulated_depreciation: Money
    annual_depreciation_expense: Money
    monthly_depreciation_expense: Money


@dataclass(frozen=True)
class DepreciationReport:
    """Depreciation of every asset purchased on or before the period end."""

    period: DateRange
    currency: str
    assets: tuple[AssetDepreciation, ...]
    summary: DepreciationSummary
    categories: tuple[CategoryTotals, ...]


class DepreciationEngine:
    """
    Depreciation calculator.

    Contract:
        Pure functions -- no I/O, no clock.
    Guarantees:
        - Identical (asset, as_of_date) always yields identical results.
    Non-goals:
        - Does not post depreciation journal entries.
        - Units-of-production and sum-of-years'-digits are not offered.
    """

    def __init__(
        self,
        calendar: FiscalCalendar | None = None,
        declining_balance_factor: Decimal = DEFAULT_DECLINING_BALANCE_FACTOR,
    ):
        if declining_balance_factor <= 0:
            raise ValueError("declining_balance_factor must be positive")
        self._calendar = calendar or FiscalCalendar()
        self._factor = declining_balance_factor

    # ------------------------------------------------------------------
    # Single asset
    # ------------------------------------------------------------------

    @traced_engine("depreciation", "1.0", fingerprint_fields=("asset", "as_of_date"))
    def calculate(self, asset: AssetRecord, as_of_date: date) -> AssetDepreciation:
        """
        Depreciation state of ``asset`` as of ``as_of_date``.

        An as-of date before the purchase date yields no depreciation and
        an empty schedule.
        """
        life_end = add_months(asset.purchase_date, asset.useful_life_months)
        horizon = min(life_end, as_of_date)

        schedule = self._schedule(asset, horizon)
        projected = self._schedule(asset, life_end)

        zero = Money.zero(asset.currency)
        accumulated = Money.sum((e.depreciation for e in schedule), asset.currency)
        book = asset.purchase_price - accumulated

        if as_of_date < asset.purchase_date:
            remaining = asset.useful_life_months
        else:
            remaining = whole_months_between(as_of_date, life_end)

        annual = self._annual_depreciation(asset, book) if book > asset.residual_value else zero
        result = AssetDepreciation(
            asset=asset,
            as_of_date=as_of_date,
            current_book_value=book,
            accumulated_depreciation=accumulated,
            annual_depreciation=annual,
            monthly_depreciation=(annual / _TWELVE).round(),
            remaining_life_months=remaining,
            schedule=schedule,
            projected_schedule=projected,
        )

        logger.debug(
            "asset_depreciation_calculated",
            extra={
                "asset_id": asset.asset_id,
                "method": asset.method.value,
                "as_of_date": as_of_date.isoformat(),
                "book_value": str(book.amount),
                "accumulated": str(accumulated.amount),
                "schedule_years": len(schedule),
            },
        )
        return result

    def annual_rate(self, asset: AssetRecord) -> Decimal:
        """Declining-balance annual rate: factor / (life in years)."""
        return self._factor * _TWELVE / Decimal(asset.useful_life_months)

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    @traced_engine(
        "depreciation_report",
        "1.0",
        fingerprint_fields=("period", "category", "currency", "sort_by"),
    )
    def build_report(
        self,
        assets: Sequence[AssetRecord],
        period: DateRange,
        category: str | None = None,
        currency: str | None = None,
        sort_by: DepreciationSortKey | str = DepreciationSortKey.PURCHASE_DATE,
        default_currency: str = "USD",
    ) -> DepreciationReport:
        """
        Depreciation as of ``period.end_date`` for every asset purchased on
        or before it (optionally one category).
        """
        sort_key = DepreciationSortKey(sort_by)
        selected = [
            a
            for a in assets
            if a.purchase_date <= period.end_date
            and (category is None or a.category == category)
        ]

        if currency is None:
            codes = sorted({a.currency for a in selected})
            if len(codes) > 1:
                raise CurrencyMismatchError(
                    expected=codes[0], received=codes[1], operation="depreciate"
                )
            code = codes[0] if codes else default_currency
        else:
            code = Money.zero(currency).currency.code
            selected = [a for a in selected if a.currency == code]

        rows = [self.calculate(a, period.end_date) for a in selected]
        rows = _sort_assets(rows, sort_key)

        def total(getter) -> Money:
            return Money.sum((getter(r) for r in rows), code)

        summary = DepreciationSummary(
            total_assets=len(rows),
            total_original_cost=total(lambda r: r.asset.purchase_price),
            total_current_value=total(lambda r: r.current_book_value),
            total_accumulated_depreciation=total(lambda r: r.accumulated_depreciation),
            annual_depreciation_expense=total(lambda r: r.annual_depreciation),
            monthly_depreciation_expense=total(lambda r: r.monthly_depreciation),
        )

        by_category: dict[str, list[AssetDepreciation]] = {}
        for row in rows:
            by_category.setdefault(row.asset.category, []).append(row)
        categories = tuple(
            CategoryTotals(
                category=name,
                count=len(members),
                original_cost=Money.sum((m.asset.purchase_price for m in members), code),
                current_value=Money.sum((m.current_book_value for m in members), code),
            )
            for name, members in sorted(by_category.items())
        )

        logger.info(
            "depreciation_report_generated",
            extra={
                "as_of_date": period.end_date.isoformat(),
                "asset_count": len(rows),
                "currency": code,
                "total_current_value": str(summary.total_current_value.amount),
            },
        )
        return DepreciationReport(
            period=period,
            currency=code,
            assets=tuple(rows),
            summary=summary,
            categories=categories,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _segments(self, start: date, end: date) -> list[tuple[FiscalPeriod, date, date]]:
        """Fiscal-year slices ``[seg_start, seg_end)`` covering ``start..end``."""
        segments = []
        cursor = start
        while cursor < end:
            period = self._calendar.period_for(cursor)
            seg_end = min(period.next_start, end)
            segments.append((period, cursor, seg_end))
            cursor = seg_end
        return segments

    def _schedule(self, asset: AssetRecord, horizon: date) -> tuple[DepreciationScheduleEntry, ...]:
        if asset.method == DepreciationMethod.DECLINING_BALANCE:
            amounts = self._declining_balance_amounts(asset, horizon)
        else:
            amounts = self._straight_line_amounts(asset, horizon)

        entries = []
        accumulated = Money.zero(asset.currency)
        for year, depreciation in amounts:
            beginning = asset.purchase_price - accumulated
            accumulated = accumulated + depreciation
            entries.append(
                DepreciationScheduleEntry(
                    year=year,
                    beginning_value=beginning,
                    depreciation=depreciation,
                    accumulated_depreciation=accumulated,
                    ending_value=beginning - depreciation,
                )
            )
        return tuple(entries)

    def _straight_line_amounts(self, asset: AssetRecord, horizon: date) -> list[tuple[int, Money]]:
        base = asset.depreciable_base
        life = Decimal(asset.useful_life_months)

        def cumulative(point: date) -> Money:
            months = min(months_between(asset.purchase_date, point), life)
            return (base * months / life).round()

        return [
            (period.year, cumulative(seg_end) - cumulative(seg_start))
            for period, seg_start, seg_end in self._segments(asset.purchase_date, horizon)
        ]

    def _declining_balance_amounts(self, asset: AssetRecord, horizon: date) -> list[tuple[int, Money]]:
        life_end = add_months(asset.purchase_date, asset.useful_life_months)
        rate = self.annual_rate(asset)
        zero = Money.zero(asset.currency)

        amounts = []
        book = asset.purchase_price
        for period, seg_start, seg_end in self._segments(asset.purchase_date, horizon):
            remainder = book - asset.residual_value
            if remainder <= zero:
                depreciation = zero
            elif period.next_start >= life_end:
                # Final year of useful life takes the book value down to residual
                if seg_end >= life_end:
                    depreciation = remainder
                else:
                    elapsed = months_between(seg_start, seg_end)
                    full = months_between(seg_start, life_end)
                    depreciation = min((remainder * elapsed / full).round(), remainder)
            else:
                months = months_between(seg_start, seg_end)
                depreciation = min((book * rate * months / _TWELVE).round(), remainder)
            amounts.append((period.year, depreciation))
            book = book - depreciation
        return amounts

    def _annual_depreciation(self, asset: AssetRecord, book: Money) -> Money:
        if asset.method == DepreciationMethod.DECLINING_BALANCE:
            remainder = book - asset.residual_value
            return min((book * self.annual_rate(asset)).round(), remainder)
        years = Decimal(asset.useful_life_months) / _TWELVE
        return (asset.depreciable_base / years).round()


def _sort_assets(
    rows: list[AssetDepreciation], sort_key: DepreciationSortKey
) -> list[AssetDepreciation]:
    ordered = sorted(rows, key=lambda r: r.asset.asset_id)
    if sort_key == DepreciationSortKey.ASSET_NAME:
        return sorted(ordered, key=lambda r: r.asset.name.casefold())
    if sort_key == DepreciationSortKey.ASSET_TYPE:
        return sorted(ordered, key=lambda r: r.asset.category.casefold())
    descending = {
        DepreciationSortKey.PURCHASE_DATE: lambda r: r.asset.purchase_date,
        DepreciationSortKey.PURCHASE_PRICE: lambda r: r.asset.purchase_price.amount,
        DepreciationSortKey.CURRENT_BOOK_VALUE: lambda r: r.current_book_value.amount,
        DepreciationSortKey.ANNUAL_DEPRECIATION: lambda r: r.annual_depreciation.amount,
    }[sort_key]
    return sorted(ordered, key=descending, reverse=True)
