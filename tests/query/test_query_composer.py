"""
Tests for the custom report composer.

Covers:
- Validation before any data is read
- Pushdown vs residual (derived) filtering
- Date range scoping per data source
- Stable multi-key sorting, None-last, duplicate sort clauses
- Grouping with numeric sums
- Limit and projection
- Determinism and cancellation
"""

from datetime import date
from decimal import Decimal

import pytest

from analytics_engines.query import (
    QueryComposer,
    ReportSpecification,
    SortClause,
    SortDirection,
)
from analytics_kernel.cancellation import CancellationToken
from analytics_kernel.domain.clock import DeterministicClock
from analytics_kernel.domain.records import (
    DocumentKind,
    EntityRecord,
    EntityRole,
    JournalLineRecord,
    LedgerDocument,
)
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidDateRangeError,
    InvalidFilterError,
    InvalidSpecificationError,
    ReportCancelledError,
    UnknownDataSourceError,
    UnknownFieldError,
)
from analytics_kernel.snapshot import InMemoryRecordStore
from tests.sample_ledger import usd


def spec(data_source, fields, **kwargs) -> ReportSpecification:
    return ReportSpecification.from_dict({"dataSource": data_source, "selectedFields": fields, **kwargs})


class CancelAfter(CancellationToken):
    """Token that cancels itself after a number of polls."""

    def __init__(self, polls: int):
        super().__init__()
        self._remaining = polls

    def raise_if_cancelled(self, stage: str) -> None:
        if self._remaining == 0:
            self.cancel()
        self._remaining -= 1
        super().raise_if_cancelled(stage)


class TestValidation:
    """Everything rejected by compile() without touching data."""

    @pytest.fixture(autouse=True)
    def _composer(self, catalog):
        self.composer = QueryComposer(catalog)

    def test_unknown_data_source(self):
        with pytest.raises(UnknownDataSourceError):
            self.composer.compile(spec("payroll", ["employee"]))

    def test_unknown_selected_field(self):
        with pytest.raises(UnknownFieldError):
            self.composer.compile(spec("customers", ["customer_name", "vendor_name"]))

    def test_unknown_filter_field(self):
        with pytest.raises(UnknownFieldError):
            self.composer.compile(
                spec("customers", ["customer_name"], filters=[{"fieldId": "sku", "operator": "equals", "value": "x"}])
            )

    def test_unknown_sort_field(self):
        with pytest.raises(UnknownFieldError):
            self.composer.compile(spec("customers", ["customer_name"], sorts=[{"fieldId": "sku"}]))

    def test_unknown_group_field(self):
        with pytest.raises(UnknownFieldError):
            self.composer.compile(spec("customers", ["customer_name"], groupBy="region"))

    def test_contains_on_currency(self):
        with pytest.raises(InvalidFilterError) as exc_info:
            self.composer.compile(
                spec(
                    "transactions",
                    ["amount"],
                    filters=[{"fieldId": "amount", "operator": "contains", "value": "100"}],
                )
            )
        assert exc_info.value.field_id == "amount"

    def test_no_fields(self):
        with pytest.raises(InvalidSpecificationError):
            self.composer.compile(spec("customers", []))

    def test_duplicate_fields(self):
        with pytest.raises(InvalidSpecificationError):
            self.composer.compile(spec("customers", ["customer_name", "customer_name"]))

    @pytest.mark.parametrize("limit", [-1, "10", True, 2.5])
    def test_bad_limit(self, limit):
        with pytest.raises(InvalidSpecificationError):
            self.composer.compile(spec("customers", ["customer_name"], limit=limit))

    def test_bad_sort_direction(self):
        with pytest.raises(InvalidSpecificationError):
            spec("customers", ["customer_name"], sorts=[{"fieldId": "customer_name", "direction": "up"}])

    def test_inverted_date_range(self):
        with pytest.raises(InvalidDateRangeError):
            spec("transactions", ["date"], dateRange={"startDate": "2024-12-31", "endDate": "2024-01-01"})

    def test_missing_data_source(self):
        with pytest.raises(InvalidSpecificationError):
            ReportSpecification.from_dict({"selectedFields": ["date"]})

    def test_pushdown_split(self):
        query = self.composer.compile(
            spec(
                "customers",
                ["customer_name"],
                filters=[
                    {"fieldId": "customer_type", "operator": "equals", "value": "Corporate"},
                    {"fieldId": "total_sales", "operator": "greater_than", "value": 100},
                ],
            )
        )
        assert [f.field.id for f in query.pushdown] == ["customer_type"]
        assert [f.field.id for f in query.residual] == ["total_sales"]

    def test_non_positive_check_interval(self, catalog):
        with pytest.raises(ValueError):
            QueryComposer(catalog, check_interval=0)


class TestTransactions:
    """Transactions source over the six sample journal lines."""

    @pytest.fixture(autouse=True)
    def _composer(self, catalog):
        self.composer = QueryComposer(catalog)

    def run(self, snapshot, **kwargs):
        fields = kwargs.pop("fields", ["account_name", "amount"])
        return self.composer.run(spec("transactions", fields, **kwargs), snapshot)

    def test_all_rows_in_snapshot_order(self, snapshot):
        result = self.run(snapshot)
        assert result.row_count == 6
        assert result.rows[0] == {"account_name": "Cash", "amount": usd(1000)}

    def test_projection_follows_selection_order(self, snapshot):
        result = self.run(snapshot, fields=["amount", "date", "account_name"])
        assert list(result.rows[0]) == ["amount", "date", "account_name"]
        assert [f.id for f in result.fields] == ["amount", "date", "account_name"]

    def test_contains_filter(self, snapshot):
        result = self.run(
            snapshot,
            fields=["description"],
            filters=[{"fieldId": "description", "operator": "contains", "value": "PAPER"}],
        )
        assert [r["description"] for r in result.rows] == ["Printer paper", "Printer paper"]

    def test_between_on_currency(self, snapshot):
        result = self.run(snapshot, filters=[{"fieldId": "amount", "operator": "between", "value": [200, 1000]}])
        assert [r["amount"] for r in result.rows] == [usd(1000), usd(1000), usd(250), usd(250)]

    def test_money_filter_in_other_currency(self, snapshot):
        with pytest.raises(CurrencyMismatchError):
            self.run(
                snapshot,
                filters=[
                    {"fieldId": "amount", "operator": "equals", "value": {"amount": "1000", "currency": "EUR"}}
                ],
            )

    def test_date_range(self, snapshot):
        result = self.run(snapshot, fields=["date"], dateRange={"startDate": "2024-02-01", "endDate": "2024-02-28"})
        assert [r["date"] for r in result.rows] == [date(2024, 2, 10), date(2024, 2, 10)]

    def test_text_sort_is_stable(self, snapshot):
        result = self.run(snapshot, sorts=[{"fieldId": "account_name", "direction": "asc"}])
        assert [(r["account_name"], r["amount"]) for r in result.rows] == [
            ("Accounts Receivable", usd(1200)),
            ("Cash", usd(1000)),
            ("Cash", usd(250)),
            ("Office Supplies Expense", usd(250)),
            ("Owner Equity", usd(1000)),
            ("Sales Revenue", usd(1200)),
        ]

    def test_multi_key_sort(self, snapshot):
        result = self.run(
            snapshot,
            fields=["account_type", "amount"],
            sorts=[
                {"fieldId": "account_type", "direction": "asc"},
                {"fieldId": "amount", "direction": "desc"},
            ],
        )
        assert [(r["account_type"], r["amount"]) for r in result.rows] == [
            ("Asset", usd(1200)),
            ("Asset", usd(1000)),
            ("Asset", usd(250)),
            ("Equity", usd(1000)),
            ("Expense", usd(250)),
            ("Revenue", usd(1200)),
        ]

    def test_duplicate_sort_later_direction_wins(self, snapshot):
        result = self.run(
            snapshot,
            sorts=[
                {"fieldId": "account_name", "direction": "asc"},
                {"fieldId": "amount", "direction": "desc"},
                {"fieldId": "account_name", "direction": "desc"},
            ],
        )
        assert [(r["account_name"], r["amount"]) for r in result.rows] == [
            ("Sales Revenue", usd(1200)),
            ("Owner Equity", usd(1000)),
            ("Office Supplies Expense", usd(250)),
            ("Cash", usd(1000)),
            ("Cash", usd(250)),
            ("Accounts Receivable", usd(1200)),
        ]

    def test_group_by_sums_numeric_fields(self, snapshot):
        result = self.run(
            snapshot,
            fields=["account_type", "amount", "debit_amount", "credit_amount"],
            groupBy="account_type",
        )
        assert [r["account_type"] for r in result.rows] == ["Asset", "Equity", "Expense", "Revenue"]
        asset = result.rows[0]
        assert asset["amount"] == usd(2450)
        assert asset["debit_amount"] == usd(2200)
        assert asset["credit_amount"] == usd(250)

    def test_limit(self, snapshot):
        result = self.run(snapshot, limit=2)
        assert result.row_count == 2
        assert result.matched_rows == 6

    def test_limit_zero(self, snapshot):
        result = self.run(snapshot, limit=0)
        assert result.rows == ()
        assert result.matched_rows == 6

    def test_same_input_same_output(self, snapshot):
        kwargs = dict(sorts=[{"fieldId": "amount", "direction": "desc"}], limit=4)
        assert self.run(snapshot, **kwargs).rows == self.run(snapshot, **kwargs).rows


class TestCustomers:
    """Customer source: derived aggregates over invoices."""

    @pytest.fixture(autouse=True)
    def _composer(self, catalog):
        self.composer = QueryComposer(catalog)

    def test_derived_values(self, snapshot):
        fields = ["customer_name", "total_sales", "invoice_count", "first_sale_date", "average_sale", "outstanding_balance"]
        result = self.composer.run(spec("customers", fields), snapshot)
        acme, beta, gamma = result.rows
        assert acme["total_sales"] == usd(2100)
        assert acme["invoice_count"] == Decimal("3")
        assert acme["first_sale_date"] == date(2024, 3, 1)
        assert acme["average_sale"] == usd(700)
        assert acme["outstanding_balance"] == usd(1500)
        assert beta["outstanding_balance"] == usd(500)
        assert gamma["total_sales"] == usd(0)
        assert gamma["first_sale_date"] is None

    def test_residual_filter_on_derived_field(self, snapshot):
        result = self.composer.run(
            spec(
                "customers",
                ["customer_name", "total_sales"],
                filters=[{"fieldId": "total_sales", "operator": "greater_than", "value": 1000}],
                sorts=[{"fieldId": "total_sales", "direction": "desc"}],
            ),
            snapshot,
        )
        assert [r["customer_name"] for r in result.rows] == ["Acme Corp", "Beta LLC"]

    @pytest.mark.parametrize(
        "direction,expected",
        [
            ("asc", ["Beta LLC", "Acme Corp", "Gamma Inc"]),
            ("desc", ["Acme Corp", "Beta LLC", "Gamma Inc"]),
        ],
    )
    def test_none_sorts_last(self, snapshot, direction, expected):
        result = self.composer.run(
            spec("customers", ["customer_name"], sorts=[{"fieldId": "last_sale_date", "direction": direction}]),
            snapshot,
        )
        assert [r["customer_name"] for r in result.rows] == expected

    def test_date_range_drops_inactive_entities(self, snapshot):
        result = self.composer.run(
            spec(
                "customers",
                ["customer_name", "total_sales"],
                dateRange={"startDate": "2024-10-01", "endDate": "2024-12-31"},
            ),
            snapshot,
        )
        assert [(r["customer_name"], r["total_sales"]) for r in result.rows] == [
            ("Acme Corp", usd(1500)),
            ("Beta LLC", usd(800)),
        ]

    def test_group_by_type(self, snapshot):
        result = self.composer.run(
            spec("customers", ["customer_type", "total_sales", "invoice_count"], groupBy="customer_type"),
            snapshot,
        )
        assert result.rows == (
            {"customer_type": "Corporate", "total_sales": usd(2100), "invoice_count": Decimal("3")},
            {"customer_type": "Small Business", "total_sales": usd(1200), "invoice_count": Decimal("2")},
        )


class TestGroupingCurrencies:
    """Grouping never adds or merges amounts in different currencies."""

    @pytest.fixture(autouse=True)
    def _composer(self, catalog):
        self.composer = QueryComposer(catalog)

    def test_summing_mixed_currencies_in_one_group(self):
        invoice = DocumentKind.INVOICE
        store = InMemoryRecordStore(
            entities=[
                EntityRecord("C1", "Acme Corp", EntityRole.CUSTOMER, "Corporate"),
                EntityRecord("C2", "Euro GmbH", EntityRole.CUSTOMER, "Corporate"),
            ],
            documents=[
                LedgerDocument("INV-1", "C1", invoice, date(2024, 10, 1), usd(1000)),
                LedgerDocument("INV-2", "C2", invoice, date(2024, 10, 1), Money.of("700", "EUR")),
            ],
            clock=DeterministicClock(),
        )
        with pytest.raises(CurrencyMismatchError):
            self.composer.run(
                spec("customers", ["customer_type", "total_sales"], groupBy="customer_type"),
                store.snapshot(),
            )

    def test_grouping_by_mixed_currency_field(self):
        store = InMemoryRecordStore(
            journal_lines=[
                JournalLineRecord("JL-1", date(2024, 1, 5), "Cash", "Asset", usd(100), Money.zero("USD")),
                JournalLineRecord("JL-2", date(2024, 1, 6), "Cash", "Asset",
                                  Money.of("100", "EUR"), Money.zero("EUR")),
            ],
            clock=DeterministicClock(),
        )
        with pytest.raises(CurrencyMismatchError):
            self.composer.run(
                spec("transactions", ["amount", "account_name"], groupBy="amount"),
                store.snapshot(),
            )

    def test_single_currency_groups_still_sum(self):
        store = InMemoryRecordStore(
            entities=[
                EntityRecord("C1", "Euro AG", EntityRole.CUSTOMER, "Corporate"),
                EntityRecord("C2", "Euro GmbH", EntityRole.CUSTOMER, "Corporate"),
            ],
            documents=[
                LedgerDocument("INV-1", "C1", DocumentKind.INVOICE, date(2024, 10, 1), Money.of("300", "EUR")),
                LedgerDocument("INV-2", "C2", DocumentKind.INVOICE, date(2024, 10, 1), Money.of("700", "EUR")),
            ],
            clock=DeterministicClock(),
        )
        result = self.composer.run(
            spec("customers", ["customer_type", "total_sales"], groupBy="customer_type"),
            store.snapshot(),
        )
        assert result.rows == ({"customer_type": "Corporate", "total_sales": Money.of("1000", "EUR")},)


class TestInventoryAndAssets:
    @pytest.fixture(autouse=True)
    def _composer(self, catalog):
        self.composer = QueryComposer(catalog)

    def test_boolean_residual_filter(self, snapshot):
        result = self.composer.run(
            spec(
                "inventory",
                ["item_name", "total_value"],
                filters=[{"fieldId": "below_reorder_point", "operator": "equals", "value": True}],
            ),
            snapshot,
        )
        assert [(r["item_name"], r["total_value"]) for r in result.rows] == [
            ("Gadget", usd(100)),
            ("Gizmo", usd(0)),
        ]

    def test_inventory_sorted_by_value(self, snapshot):
        result = self.composer.run(
            spec("inventory", ["sku", "total_value"], sorts=[{"fieldId": "total_value", "direction": "desc"}]),
            snapshot,
        )
        assert [r["sku"] for r in result.rows] == ["W-1", "G-1", "Z-1"]
        assert result.rows[0]["total_value"] == usd(1240)

    def test_fully_depreciated(self, snapshot):
        result = self.composer.run(
            spec(
                "assets",
                ["asset_name", "current_book_value"],
                filters=[{"fieldId": "fully_depreciated", "operator": "equals", "value": "yes"}],
            ),
            snapshot,
        )
        assert result.rows == ({"asset_name": "Office Desk", "current_book_value": usd(0)},)

    def test_asset_values_as_of_range_end(self, snapshot):
        result = self.composer.run(
            spec(
                "assets",
                ["asset_name", "accumulated_depreciation", "depreciation_method"],
                dateRange={"startDate": "2020-01-01", "endDate": "2024-01-01"},
            ),
            snapshot,
        )
        assert result.rows == (
            {
                "asset_name": "Delivery Van",
                "accumulated_depreciation": usd(4000),
                "depreciation_method": "straight_line",
            },
            {
                "asset_name": "Server Rack",
                "accumulated_depreciation": usd(0),
                "depreciation_method": "declining_balance",
            },
        )


class TestCancellation:
    @pytest.fixture(autouse=True)
    def _composer(self, catalog):
        self.composer = QueryComposer(catalog, check_interval=1)

    def test_cancelled_before_start(self, snapshot):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ReportCancelledError) as exc_info:
            self.composer.run(spec("transactions", ["date"]), snapshot, cancellation=token)
        assert exc_info.value.stage == "validate"

    def test_cancelled_during_fetch(self, snapshot):
        with pytest.raises(ReportCancelledError) as exc_info:
            self.composer.run(spec("transactions", ["date"]), snapshot, cancellation=CancelAfter(3))
        assert exc_info.value.stage == "fetch"
        assert exc_info.value.reason == "cancelled"

    def test_validation_error_wins_over_cancellation(self, snapshot):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(UnknownDataSourceError):
            self.composer.run(spec("payroll", ["x"]), snapshot, cancellation=token)

    def test_uncancelled_token_runs_to_completion(self, snapshot):
        result = self.composer.run(spec("transactions", ["date"]), snapshot, cancellation=CancellationToken())
        assert result.row_count == 6


class TestSortClause:
    def test_round_trip_direction_case(self):
        clause = SortClause.from_dict({"fieldId": "amount", "direction": "DESC"})
        assert clause.direction == SortDirection.DESC
        assert clause.to_dict() == {"fieldId": "amount", "direction": "desc"}

    def test_default_direction(self):
        assert SortClause.from_dict({"fieldId": "amount"}).direction == SortDirection.ASC
