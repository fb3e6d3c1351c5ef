"""Tests for report rendering helpers."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from analytics_kernel.domain.periods import AgingBucket, DateRange
from analytics_kernel.domain.values import Money
from analytics_reports.render import camel_key, day, money, render_value
from tests.sample_ledger import usd


@dataclass(frozen=True)
class _Line:
    amount: Money
    posted: date
    note: str | None = None


class TestMoney:
    def test_rounds_half_up_to_currency_places(self):
        assert money(Money.of("10.665", "USD")) == "10.67"
        assert money(Money.of("1234.5", "JPY")) == "1235"

    def test_none(self):
        assert money(None) is None

    def test_negative(self):
        assert money(usd("-20")) == "-20.00"


class TestRenderValue:
    def test_scalars(self):
        assert render_value(Decimal("40.00")) == "40.00"
        assert render_value(True) is True
        assert render_value(3) == 3
        assert render_value(None) is None
        assert render_value(AgingBucket.OVER_90) == "over90"

    def test_dates(self):
        assert render_value(date(2024, 12, 31)) == "2024-12-31"
        assert render_value(datetime(2024, 12, 31, 17, tzinfo=timezone.utc)) == "2024-12-31T17:00:00+00:00"
        assert day(datetime(2024, 12, 31, 17)) == "2024-12-31"

    def test_uuid(self):
        value = UUID("12345678-1234-5678-1234-567812345678")
        assert render_value(value) == "12345678-1234-5678-1234-567812345678"

    def test_date_range(self):
        assert render_value(DateRange(date(2024, 1, 1), date(2024, 3, 31))) == {
            "startDate": "2024-01-01",
            "endDate": "2024-03-31",
        }

    def test_nested_containers(self):
        assert render_value({"totals": [usd(1), usd("2.5")], 7: None}) == {
            "totals": ["1.00", "2.50"],
            "7": None,
        }

    def test_dataclass(self):
        assert render_value(_Line(usd(5), date(2024, 2, 1))) == {
            "amount": "5.00",
            "posted": "2024-02-01",
            "note": None,
        }

    def test_never_floats_for_money(self):
        rendered = render_value(Money.of("0.1", "USD") + Money.of("0.2", "USD"))
        assert rendered == "0.30"
        assert isinstance(rendered, str)


class TestCamelKey:
    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Medical Equipment", "medicalEquipment"),
            ("Vehicles", "vehicles"),
            ("office-furniture & fixtures", "officeFurnitureFixtures"),
            ("IT", "it"),
            ("  ", ""),
        ],
    )
    def test_labels(self, label, expected):
        assert camel_key(label) == expected
