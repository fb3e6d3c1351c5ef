"""
Module: analytics_engines.query.filters
Responsibility:
    Filter clauses for custom reports: coercing raw filter values to the
    field's type at composition time, and evaluating typed comparisons
    against row values.

Architecture position:
    Engines > Query -- pure functions.

Invariants enforced:
    - A compiled filter's value already has the field's type; evaluation
      never parses strings.
    - Comparisons are typed: numeric for number/currency, calendar day for
      date, case-insensitive substring for ``contains``.
    - A missing (None) row value fails every operator except ``not_equals``.

Failure modes:
    - InvalidFilterError for an illegal operator or an uncoercible value.
    - InvalidDateRangeError for an inverted ``in_range`` value.
    - CurrencyMismatchError when a Money filter value meets a row value in
      another currency.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from analytics_kernel.domain.periods import DateRange, parse_date
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError, InvalidFilterError
from analytics_engines.query.catalog import Field, FieldCatalog, FieldType, Operator

_TRUE_STRINGS = frozenset({"true", "yes", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "0"})


@dataclass(frozen=True, slots=True)
class FilterClause:
    """A caller-supplied filter: ``field_id operator value``."""

    field_id: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FilterClause:
        """Accept ``{"fieldId", "operator", "value"}`` or snake_case keys."""
        return cls(
            field_id=data.get("fieldId", data.get("field_id")),
            operator=data.get("operator"),
            value=data.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if isinstance(value, DateRange):
            value = value.to_dict()
        return {"fieldId": self.field_id, "operator": str(self.operator), "value": value}


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def _coerce_decimal(raw: Any) -> Decimal:
    if isinstance(raw, bool):
        raise ValueError("boolean is not a number")
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, (int, float, str)):
        # Floats arrive from JSON payloads; go through str to keep the
        # decimal the caller wrote.
        try:
            return Decimal(str(raw).strip())
        except InvalidOperation as e:
            raise ValueError(f"not a number: {raw!r}") from e
    raise ValueError(f"not a number: {raw!r}")


def _coerce_scalar(field: Field, raw: Any) -> Any:
    if raw is None:
        raise ValueError("value is required")
    ft = field.type
    if ft == FieldType.TEXT:
        if not isinstance(raw, str):
            raise ValueError("expected text")
        return raw
    if ft == FieldType.NUMBER:
        return _coerce_decimal(raw)
    if ft == FieldType.CURRENCY:
        if isinstance(raw, Money):
            return raw
        if isinstance(raw, Mapping) and "amount" in raw and "currency" in raw:
            return Money.of(_coerce_decimal(raw["amount"]), raw["currency"])
        return _coerce_decimal(raw)
    if ft == FieldType.DATE:
        if isinstance(raw, datetime):
            return raw.date()
        return parse_date(raw)
    if ft == FieldType.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in _TRUE_STRINGS:
            return True
        if isinstance(raw, str) and raw.strip().lower() in _FALSE_STRINGS:
            return False
        raise ValueError("expected a boolean")
    raise ValueError(f"unsupported field type {ft}")


def _ordering_value(value: Any) -> Any:
    return value.amount if isinstance(value, Money) else value


def coerce_filter_value(field: Field, operator: Operator, raw: Any) -> Any:
    """
    Convert a raw filter value to the field's type for ``operator``.

    Raises:
        InvalidFilterError: if the value cannot be interpreted.
    """
    try:
        if operator == Operator.IN_RANGE:
            if isinstance(raw, DateRange):
                return raw
            if isinstance(raw, Mapping):
                return DateRange.from_dict(raw)
            if isinstance(raw, (list, tuple)) and len(raw) == 2:
                return DateRange.of(raw[0], raw[1])
            raise ValueError("expected a date range")
        if operator == Operator.BETWEEN:
            if not isinstance(raw, (list, tuple)) or len(raw) != 2:
                raise ValueError("expected [low, high]")
            low = _coerce_scalar(field, raw[0])
            high = _coerce_scalar(field, raw[1])
            if _ordering_value(low) > _ordering_value(high):
                raise ValueError("low bound exceeds high bound")
            return (low, high)
        return _coerce_scalar(field, raw)
    except (ValueError, TypeError) as e:
        raise InvalidFilterError(
            field.id, operator.value, field.type.value, reason=f"invalid value: {e}"
        ) from e


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _comparable(row_value: Any, filter_value: Any) -> tuple[Any, Any]:
    """Reduce a (row, filter) pair to directly comparable values."""
    if isinstance(row_value, Money):
        if isinstance(filter_value, Money):
            if row_value.currency != filter_value.currency:
                raise CurrencyMismatchError(
                    expected=filter_value.currency.code,
                    received=row_value.currency.code,
                    operation="compare",
                )
            return row_value.amount, filter_value.amount
        return row_value.amount, filter_value
    if isinstance(row_value, datetime):
        return row_value.date(), filter_value
    return row_value, filter_value


@dataclass(frozen=True, slots=True)
class CompiledFilter:
    """A validated filter whose value has the field's type."""

    field: Field
    operator: Operator
    value: Any

    @classmethod
    def compile(cls, field: Field, clause: FilterClause) -> CompiledFilter:
        operator = FieldCatalog.check_operator(field, clause.operator)
        return cls(field=field, operator=operator, value=coerce_filter_value(field, operator, clause.value))

    def matches(self, row_value: Any) -> bool:
        op = self.operator
        if row_value is None:
            return op == Operator.NOT_EQUALS

        if op == Operator.CONTAINS:
            return str(self.value).casefold() in str(row_value).casefold()

        if op == Operator.IN_RANGE:
            day = row_value.date() if isinstance(row_value, datetime) else row_value
            return self.value.contains(day)

        if op == Operator.BETWEEN:
            low, high = self.value
            value, low_cmp = _comparable(row_value, low)
            _, high_cmp = _comparable(row_value, high)
            return low_cmp <= value <= high_cmp

        value, target = _comparable(row_value, self.value)
        if op == Operator.EQUALS:
            return value == target
        if op == Operator.NOT_EQUALS:
            return value != target
        if op == Operator.GREATER_THAN:
            return value > target
        if op == Operator.LESS_THAN:
            return value < target
        raise ValueError(f"Unhandled operator {op}")

    def apply(self, row: Mapping[str, Any]) -> bool:
        return self.matches(row.get(self.field.id))
