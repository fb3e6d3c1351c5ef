"""
Tests for the aging engine.

Covers:
- Open-item aging and bucket assignment
- Entity rows, summary and bucket analysis
- Filters (entity type, critical only) and sort keys
- Average payment days over the payment window
- Currency handling and error cases
"""

from datetime import date
from decimal import Decimal

import pytest

from analytics_engines.aging import AgingEngine, AgingSortKey, BucketAmounts
from analytics_kernel.domain.periods import AgingBucket, DateRange
from analytics_kernel.domain.records import (
    DocumentKind,
    DocumentStatus,
    EntityRecord,
    EntityRole,
    LedgerDocument,
)
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidRecordError,
    MissingDateError,
)
from tests.sample_ledger import AS_OF, usd


class TestOpenItemAging:
    """Tests for age_open_items."""

    def setup_method(self):
        self.engine = AgingEngine()

    def test_skips_closed_and_draft_documents(self, documents):
        items = self.engine.age_open_items(documents, AS_OF, kind=DocumentKind.BILL)
        ids = [i.document_id for i in items]
        assert ids == ["BILL-1", "BILL-2", "BILL-3"]

    def test_partial_payment_ages_remaining_balance(self, documents):
        items = self.engine.age_open_items(documents, AS_OF, kind=DocumentKind.INVOICE)
        inv3 = next(i for i in items if i.document_id == "INV-3")
        assert inv3.outstanding == usd(500)
        assert inv3.age_days == 45
        assert inv3.bucket == AgingBucket.DAYS_31_60

    def test_not_yet_due_is_current(self, documents):
        items = self.engine.age_open_items(documents, AS_OF, kind=DocumentKind.BILL)
        bill2 = next(i for i in items if i.document_id == "BILL-2")
        assert bill2.age_days < 0
        assert bill2.days_past_due == 0
        assert bill2.bucket == AgingBucket.CURRENT

    def test_missing_due_date_raises(self):
        doc = LedgerDocument("INV-X", "C1", DocumentKind.INVOICE, date(2024, 1, 1), usd(10))
        with pytest.raises(MissingDateError):
            self.engine.age_open_items([doc], AS_OF)

    def test_negative_outstanding_rejected(self):
        doc = LedgerDocument(
            "INV-X", "C1", DocumentKind.INVOICE, date(2024, 1, 1), usd(10),
            due_date=date(2024, 1, 31), amount_paid=usd(15),
        )
        with pytest.raises(InvalidRecordError) as exc_info:
            self.engine.age_open_items([doc], AS_OF)
        assert exc_info.value.record_id == "INV-X"

    def test_fully_paid_open_document_skipped(self):
        doc = LedgerDocument(
            "INV-X", "C1", DocumentKind.INVOICE, date(2024, 1, 1), usd(10),
            due_date=date(2024, 1, 31), amount_paid=usd(10),
        )
        assert self.engine.age_open_items([doc], AS_OF) == ()


class TestARAgingReport:
    """Receivables aging over the sample ledger."""

    def setup_method(self):
        self.engine = AgingEngine()

    def build(self, documents, entities, **kwargs):
        return self.engine.build(documents, entities, AS_OF, EntityRole.CUSTOMER, **kwargs)

    def test_entity_rows(self, documents, entities):
        report = self.build(documents, entities)
        assert [e.entity_id for e in report.entities] == ["C1", "C2"]

        acme = report.entities[0]
        assert acme.total_amount == usd(1500)
        assert acme.buckets.current == usd(500)
        assert acme.buckets.days_61_90 == usd(1000)
        assert acme.invoice_count == 2
        assert acme.oldest_invoice_date == date(2024, 10, 1)
        assert acme.last_payment_date == date(2024, 4, 10)
        assert acme.average_payment_days == Decimal("40.00")
        assert acme.credit_limit == usd(5000)
        assert acme.is_critical

        beta = report.entities[1]
        assert beta.total_amount == usd(500)
        assert beta.buckets.days_31_60 == usd(500)
        assert beta.average_payment_days == Decimal("20.00")
        assert not beta.is_critical

    def test_entities_without_open_items_are_omitted(self, documents, entities):
        report = self.build(documents, entities)
        assert "C3" not in {e.entity_id for e in report.entities}

    def test_summary(self, documents, entities):
        summary = self.build(documents, entities).summary
        assert summary.total_entities == 2
        assert summary.total_amount == usd(2000)
        assert summary.critical_entities == 1
        # (40 * 600 + 20 * 400) / 1000
        assert summary.average_payment_days == Decimal("32.00")

    def test_bucket_analysis(self, documents, entities):
        analysis = {a.bucket: a for a in self.build(documents, entities).bucket_analysis}
        assert list(analysis) == list(AgingBucket)
        assert analysis[AgingBucket.CURRENT].percentage == Decimal("25.00")
        assert analysis[AgingBucket.DAYS_31_60].percentage == Decimal("25.00")
        assert analysis[AgingBucket.DAYS_61_90].percentage == Decimal("50.00")
        assert analysis[AgingBucket.OVER_90].percentage == Decimal("0.00")
        assert analysis[AgingBucket.CURRENT].entity_count == 1

    def test_type_breakdown(self, documents, entities):
        breakdown = {b.entity_type: b for b in self.build(documents, entities).type_breakdown}
        assert breakdown["Corporate"].total_amount == usd(1500)
        assert breakdown["Small Business"].entity_count == 1

    def test_bucket_sums_equal_entity_totals(self, documents, entities):
        report = self.build(documents, entities)
        for row in report.entities:
            assert Money.sum(row.buckets.values(), "USD") == row.total_amount
        assert report.summary.buckets.total == Money.sum(
            (r.total_amount for r in report.entities), "USD"
        )

    def test_payment_window_excludes_older_payments(self, documents, entities):
        window = DateRange(date(2024, 5, 1), AS_OF)
        report = self.build(documents, entities, payment_window=window)
        by_id = {e.entity_id: e for e in report.entities}
        assert by_id["C1"].average_payment_days is None
        assert by_id["C2"].average_payment_days == Decimal("20.00")
        assert report.payment_window == window


class TestAPAgingReport:
    """Payables aging over the sample ledger."""

    def setup_method(self):
        self.engine = AgingEngine()

    def test_vendor_rows(self, documents, entities):
        report = self.engine.build(documents, entities, AS_OF, EntityRole.VENDOR)
        by_id = {e.entity_id: e for e in report.entities}
        assert by_id["V1"].buckets.over_90 == usd(2000)
        assert by_id["V1"].buckets.current == usd(750)
        assert by_id["V2"].buckets.days_1_30 == usd(300)
        assert report.summary.total_amount == usd(3050)
        assert report.summary.average_payment_days is None

    def test_draft_bill_ignored(self, documents, entities):
        report = self.engine.build(documents, entities, AS_OF, EntityRole.VENDOR)
        v2 = next(e for e in report.entities if e.entity_id == "V2")
        assert v2.invoice_count == 1

    def test_vendor_type_filter(self, documents, entities):
        report = self.engine.build(documents, entities, AS_OF, EntityRole.VENDOR, entity_type="Utility")
        assert [e.entity_id for e in report.entities] == ["V2"]
        assert report.summary.total_amount == usd(300)

    def test_critical_only(self, documents, entities):
        report = self.engine.build(documents, entities, AS_OF, EntityRole.VENDOR, critical_only=True)
        assert [e.entity_id for e in report.entities] == ["V1"]
        assert report.summary.critical_entities == 1

    @pytest.mark.parametrize(
        "sort_by,expected",
        [
            (AgingSortKey.TOTAL_AMOUNT, ["V1", "V2"]),
            (AgingSortKey.ENTITY_NAME, ["V1", "V2"]),
            ("over90", ["V1", "V2"]),
        ],
    )
    def test_sort_keys(self, documents, entities, sort_by, expected):
        report = self.engine.build(documents, entities, AS_OF, EntityRole.VENDOR, sort_by=sort_by)
        assert [e.entity_id for e in report.entities] == expected

    def test_invalid_sort_key(self, documents, entities):
        with pytest.raises(ValueError):
            self.engine.build(documents, entities, AS_OF, EntityRole.VENDOR, sort_by="bogus")

    def test_unknown_entity_rejected(self, entities):
        doc = LedgerDocument(
            "BILL-X", "V9", DocumentKind.BILL, date(2024, 12, 1), usd(10), due_date=date(2024, 12, 31)
        )
        with pytest.raises(InvalidRecordError):
            self.engine.build([doc], entities, AS_OF, EntityRole.VENDOR)

    def test_empty_ledger_is_valid_report(self, entities):
        report = self.engine.build([], entities, AS_OF, EntityRole.VENDOR)
        assert report.entities == ()
        assert report.summary.total_amount == usd(0)
        assert all(a.percentage == Decimal("0.00") for a in report.bucket_analysis)


class TestAgingCurrencies:
    """One report, one currency."""

    def setup_method(self):
        self.engine = AgingEngine()
        self.entities = [EntityRecord("V1", "Euro Parts", EntityRole.VENDOR)]
        self.documents = [
            LedgerDocument("B-USD", "V1", DocumentKind.BILL, date(2024, 12, 1), usd(100),
                           due_date=date(2024, 12, 31)),
            LedgerDocument("B-EUR", "V1", DocumentKind.BILL, date(2024, 12, 1), Money.of("80", "EUR"),
                           due_date=date(2024, 12, 31)),
        ]

    def test_mixed_currencies_rejected_without_selector(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            self.engine.build(self.documents, self.entities, AS_OF, EntityRole.VENDOR)
        assert {exc_info.value.expected, exc_info.value.received} == {"EUR", "USD"}

    def test_currency_selector(self):
        report = self.engine.build(self.documents, self.entities, AS_OF, EntityRole.VENDOR, currency="eur")
        assert report.currency == "EUR"
        assert report.summary.total_amount == Money.of("80", "EUR")

    def test_build_by_currency(self):
        reports = self.engine.build_by_currency(self.documents, self.entities, AS_OF, EntityRole.VENDOR)
        assert list(reports) == ["EUR", "USD"]
        assert reports["USD"].summary.total_amount == usd(100)


class TestBucketAmounts:
    def test_zero_and_add(self):
        a = BucketAmounts.zero("USD")
        b = BucketAmounts(usd(1), usd(2), usd(3), usd(4), usd(5))
        assert (a + b).total == usd(15)
        assert b.is_critical
        assert not BucketAmounts(usd(1), usd(2), usd(3), usd(0), usd(0)).is_critical


class TestStatusHandling:
    def test_void_invoice_ignored(self, entities):
        doc = LedgerDocument(
            "INV-V", "C1", DocumentKind.INVOICE, date(2024, 1, 1), usd(999),
            status=DocumentStatus.VOID, due_date=date(2024, 1, 31),
        )
        report = AgingEngine().build([doc], entities, AS_OF, EntityRole.CUSTOMER)
        assert report.entities == ()


class TestBackDatedAging:
    def test_documents_after_as_of_date_are_not_aged(self):
        docs = [
            LedgerDocument("INV-A", "C1", DocumentKind.INVOICE, date(2024, 1, 1), usd(10),
                           due_date=date(2024, 1, 31)),
            LedgerDocument("INV-B", "C1", DocumentKind.INVOICE, date(2024, 6, 1), usd(20),
                           due_date=date(2024, 7, 1)),
        ]
        items = AgingEngine().age_open_items(docs, date(2024, 3, 1))
        assert [item.document_id for item in items] == ["INV-A"]
