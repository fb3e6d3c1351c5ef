"""
Tests for filter clauses.

Covers:
- Value coercion per field type and operator
- Typed matching, including None row values
- Wire form (from_dict/to_dict)
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from analytics_engines.query import (
    CompiledFilter,
    Field,
    FieldType,
    FilterClause,
    Operator,
    coerce_filter_value,
)
from analytics_kernel.domain.periods import DateRange
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidDateRangeError,
    InvalidFilterError,
)
from tests.sample_ledger import usd

TEXT = Field("description", "description", "journal_lines", "Description", FieldType.TEXT)
NUMBER = Field("quantity", "quantity", "items", "Quantity", FieldType.NUMBER)
AMOUNT = Field("amount", "amount", "journal_lines", "Amount", FieldType.CURRENCY)
DAY = Field("date", "entry_date", "journal_lines", "Date", FieldType.DATE)
FLAG = Field("flag", "flag", "items", "Flag", FieldType.BOOLEAN)


def compiled(field, operator, value) -> CompiledFilter:
    return CompiledFilter.compile(field, FilterClause(field.id, operator, value))


class TestCoercion:
    """coerce_filter_value."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("12.5", Decimal("12.5")),
            (0.1, Decimal("0.1")),
            (7, Decimal("7")),
            (" 3 ", Decimal("3")),
        ],
    )
    def test_number(self, raw, expected):
        assert coerce_filter_value(NUMBER, Operator.EQUALS, raw) == expected

    @pytest.mark.parametrize("raw", [True, "abc", None, [1]])
    def test_bad_number(self, raw):
        with pytest.raises(InvalidFilterError) as exc_info:
            coerce_filter_value(NUMBER, Operator.EQUALS, raw)
        assert exc_info.value.reason.startswith("invalid value")

    def test_currency_accepts_money_mapping(self):
        value = coerce_filter_value(AMOUNT, Operator.GREATER_THAN, {"amount": "10", "currency": "EUR"})
        assert value == Money.of("10", "EUR")

    def test_currency_accepts_plain_number(self):
        assert coerce_filter_value(AMOUNT, Operator.GREATER_THAN, "99.99") == Decimal("99.99")

    def test_date_from_iso_timestamp(self):
        assert coerce_filter_value(DAY, Operator.EQUALS, "2024-03-05T10:00:00") == date(2024, 3, 5)
        assert coerce_filter_value(DAY, Operator.EQUALS, datetime(2024, 3, 5, 10)) == date(2024, 3, 5)

    def test_bad_date(self):
        with pytest.raises(InvalidFilterError):
            coerce_filter_value(DAY, Operator.EQUALS, "next tuesday")

    @pytest.mark.parametrize("raw,expected", [("yes", True), ("FALSE", False), (True, True), ("1", True)])
    def test_boolean(self, raw, expected):
        assert coerce_filter_value(FLAG, Operator.EQUALS, raw) is expected

    def test_bad_boolean(self):
        with pytest.raises(InvalidFilterError):
            coerce_filter_value(FLAG, Operator.EQUALS, "maybe")

    def test_text_must_be_string(self):
        with pytest.raises(InvalidFilterError):
            coerce_filter_value(TEXT, Operator.CONTAINS, 42)

    def test_between(self):
        assert coerce_filter_value(NUMBER, Operator.BETWEEN, ["1", 5]) == (Decimal("1"), Decimal("5"))

    @pytest.mark.parametrize("raw", [[5, 1], [1], "1,5"])
    def test_bad_between(self, raw):
        with pytest.raises(InvalidFilterError):
            coerce_filter_value(NUMBER, Operator.BETWEEN, raw)

    def test_in_range_forms(self):
        expected = DateRange(date(2024, 1, 1), date(2024, 1, 31))
        assert coerce_filter_value(DAY, Operator.IN_RANGE, ["2024-01-01", "2024-01-31"]) == expected
        assert (
            coerce_filter_value(DAY, Operator.IN_RANGE, {"startDate": "2024-01-01", "endDate": "2024-01-31"})
            == expected
        )

    def test_inverted_in_range(self):
        with pytest.raises(InvalidDateRangeError):
            coerce_filter_value(DAY, Operator.IN_RANGE, ["2024-02-01", "2024-01-01"])


class TestMatching:
    """CompiledFilter.matches."""

    def test_contains_is_case_insensitive(self):
        f = compiled(TEXT, "contains", "PAPER")
        assert f.matches("Printer paper")
        assert not f.matches("Toner")

    def test_none_fails_everything_but_not_equals(self):
        assert not compiled(TEXT, "equals", "x").matches(None)
        assert not compiled(TEXT, "contains", "x").matches(None)
        assert not compiled(NUMBER, "greater_than", 0).matches(None)
        assert compiled(TEXT, "not_equals", "x").matches(None)

    def test_currency_against_number(self):
        f = compiled(AMOUNT, "greater_than", 1000)
        assert f.matches(usd("1000.01"))
        assert not f.matches(usd(1000))

    def test_currency_against_money(self):
        f = compiled(AMOUNT, "equals", {"amount": "250", "currency": "USD"})
        assert f.matches(usd("250.00"))

    def test_currency_mismatch(self):
        f = compiled(AMOUNT, "equals", {"amount": "250", "currency": "EUR"})
        with pytest.raises(CurrencyMismatchError):
            f.matches(usd(250))

    def test_between_is_inclusive(self):
        f = compiled(AMOUNT, "between", [250, 1000])
        assert f.matches(usd(250))
        assert f.matches(usd(1000))
        assert not f.matches(usd(1200))

    def test_in_range_accepts_datetime_rows(self):
        f = compiled(DAY, "in_range", ["2024-02-01", "2024-02-29"])
        assert f.matches(date(2024, 2, 29))
        assert f.matches(datetime(2024, 2, 10, 23, 59))
        assert not f.matches(date(2024, 3, 1))

    def test_dates_compare_by_day(self):
        f = compiled(DAY, "less_than", "2024-02-10")
        assert f.matches(date(2024, 2, 9))
        assert not f.matches(datetime(2024, 2, 10, 8))

    def test_boolean_equals(self):
        f = compiled(FLAG, "equals", "true")
        assert f.matches(True)
        assert not f.matches(False)

    def test_apply_reads_row_by_field_id(self):
        f = compiled(NUMBER, "less_than", 10)
        assert f.apply({"quantity": Decimal("5")})
        assert not f.apply({"other": Decimal("5")})


class TestFilterClause:
    def test_from_dict_camel_and_snake(self):
        a = FilterClause.from_dict({"fieldId": "amount", "operator": "equals", "value": 1})
        b = FilterClause.from_dict({"field_id": "amount", "operator": "equals", "value": 1})
        assert a == b

    def test_to_dict_renders_date_range(self):
        clause = FilterClause("date", "in_range", DateRange(date(2024, 1, 1), date(2024, 1, 31)))
        assert clause.to_dict() == {
            "fieldId": "date",
            "operator": "in_range",
            "value": {"startDate": "2024-01-01", "endDate": "2024-01-31"},
        }
