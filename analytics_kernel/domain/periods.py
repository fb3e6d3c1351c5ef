"""
Periods -- Date bucketing, date ranges and fiscal-period resolution.

Responsibility:
    Pure date arithmetic used by every engine: aging bucket classification,
    inclusive date ranges, month arithmetic with day-count fractions, and
    fiscal year/period resolution for a configurable fiscal year start.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no clock access.

Invariants enforced:
    - An age maps to exactly one AgingBucket (age <= 0 is current).
    - DateRange.start_date <= DateRange.end_date.
    - months_between is monotone in its end argument, so cumulative
      prorations computed from it telescope across period boundaries.

Failure modes:
    - MissingDateError when a required date is None.
    - InvalidDateRangeError when a range is inverted.
    - ValueError for a fiscal start month outside 1..12.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from analytics_kernel.exceptions import InvalidDateRangeError, MissingDateError
from analytics_kernel.domain.values import quantize_internal


class AgingBucket(str, Enum):
    """Fixed age-range classification for unpaid balances."""

    CURRENT = "current"
    DAYS_1_30 = "1-30"
    DAYS_31_60 = "31-60"
    DAYS_61_90 = "61-90"
    OVER_90 = "over90"

    @property
    def label(self) -> str:
        return _BUCKET_LABELS[self]

    @property
    def is_critical(self) -> bool:
        """True for the buckets that flag an entity as critical."""
        return self in (AgingBucket.DAYS_61_90, AgingBucket.OVER_90)


_BUCKET_LABELS = {
    AgingBucket.CURRENT: "Current",
    AgingBucket.DAYS_1_30: "1-30 Days",
    AgingBucket.DAYS_31_60: "31-60 Days",
    AgingBucket.DAYS_61_90: "61-90 Days",
    AgingBucket.OVER_90: "Over 90 Days",
}

# Upper bound (inclusive) of each bounded bucket, in ascending order
_BUCKET_LIMITS: tuple[tuple[int, AgingBucket], ...] = (
    (0, AgingBucket.CURRENT),
    (30, AgingBucket.DAYS_1_30),
    (60, AgingBucket.DAYS_31_60),
    (90, AgingBucket.DAYS_61_90),
)


def age_in_days(due_date: date | None, as_of_date: date | None) -> int:
    """Whole days from ``due_date`` to ``as_of_date`` (negative if not yet due)."""
    if due_date is None:
        raise MissingDateError("due_date")
    if as_of_date is None:
        raise MissingDateError("as_of_date")
    return (as_of_date - due_date).days


def bucket_for_age(age_days: int) -> AgingBucket:
    """Classify an age in days into its bucket."""
    for limit, bucket in _BUCKET_LIMITS:
        if age_days <= limit:
            return bucket
    return AgingBucket.OVER_90


def bucket_by_age(due_date: date | None, as_of_date: date | None) -> AgingBucket:
    """
    Classify an outstanding balance by ``as_of_date - due_date``.

    ``age <= 0 -> current``; ``1-30``; ``31-60``; ``61-90``; ``> 90 -> over90``.

    Raises:
        MissingDateError: if either date is None (never silently defaulted).
    """
    return bucket_for_age(age_in_days(due_date, as_of_date))


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar date range."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date is None:
            raise MissingDateError("start_date")
        if self.end_date is None:
            raise MissingDateError("end_date")
        if self.start_date > self.end_date:
            raise InvalidDateRangeError(
                self.start_date.isoformat(), self.end_date.isoformat()
            )

    @classmethod
    def of(cls, start: date | str, end: date | str) -> DateRange:
        """Build from dates or ISO strings."""
        return cls(start_date=parse_date(start), end_date=parse_date(end))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DateRange:
        """Build from ``{"startDate", "endDate"}`` (or snake_case) mappings."""
        start = data.get("startDate", data.get("start_date"))
        end = data.get("endDate", data.get("end_date"))
        if start is None:
            raise MissingDateError("startDate")
        if end is None:
            raise MissingDateError("endDate")
        return cls.of(start, end)

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    @property
    def days(self) -> int:
        """Number of calendar days covered (inclusive)."""
        return (self.end_date - self.start_date).days + 1

    def to_dict(self) -> dict[str, str]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


def parse_date(value: date | str) -> date:
    """Parse a date from a date object or an ISO-format string."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Cannot parse date from {value!r}")


# ---------------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------------


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def whole_months_between(start: date, end: date) -> int:
    """Largest m >= 0 with add_months(start, m) <= end (0 if end <= start)."""
    if end <= start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    while months > 0 and add_months(start, months) > end:
        months -= 1
    return months


def months_between(start: date, end: date) -> Decimal:
    """
    Elapsed months from ``start`` to ``end`` as a Decimal.

    Whole months are counted from ``start`` by anniversary; the remaining
    partial month contributes its day count divided by the length of that
    month (in days). Returns 0 when ``end <= start``.
    """
    if end <= start:
        return Decimal("0")
    whole = whole_months_between(start, end)
    anchor = add_months(start, whole)
    if anchor == end:
        return Decimal(whole)
    next_anchor = add_months(start, whole + 1)
    fraction = Decimal((end - anchor).days) / Decimal((next_anchor - anchor).days)
    return Decimal(whole) + quantize_internal(fraction)


# ---------------------------------------------------------------------------
# Fiscal calendar
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FiscalPeriod:
    """A fiscal year: label year plus its inclusive start/end dates."""

    year: int
    start_date: date
    end_date: date

    @property
    def next_start(self) -> date:
        """First day of the following fiscal year."""
        return add_months(self.start_date, 12)

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    def as_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


@dataclass(frozen=True, slots=True)
class FiscalCalendar:
    """
    Fiscal calendar with a configurable first month.

    A fiscal year is labelled by the calendar year in which it ENDS, so with
    ``start_month=7`` the year running 2024-07-01..2025-06-30 is FY2025.
    ``start_month=1`` reproduces calendar years.
    """

    start_month: int = 1

    def __post_init__(self) -> None:
        if not 1 <= self.start_month <= 12:
            raise ValueError(f"Fiscal start month must be 1..12, got {self.start_month}")

    def fiscal_year_for(self, value: date) -> int:
        if self.start_month == 1 or value.month < self.start_month:
            return value.year
        return value.year + 1

    def year_start(self, fiscal_year: int) -> date:
        if self.start_month == 1:
            return date(fiscal_year, 1, 1)
        return date(fiscal_year - 1, self.start_month, 1)

    def period_for(self, value: date) -> FiscalPeriod:
        """Resolve the fiscal year containing ``value``."""
        if value is None:
            raise MissingDateError("date")
        return self.period(self.fiscal_year_for(value))

    def period(self, fiscal_year: int) -> FiscalPeriod:
        start = self.year_start(fiscal_year)
        end = date.fromordinal(add_months(start, 12).toordinal() - 1)
        return FiscalPeriod(year=fiscal_year, start_date=start, end_date=end)

    def year_to_date(self, value: date) -> DateRange:
        """From the start of the fiscal year containing ``value`` to ``value``."""
        return DateRange(self.period_for(value).start_date, value)
