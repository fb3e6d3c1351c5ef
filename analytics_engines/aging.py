"""
Module: analytics_engines.aging
Responsibility:
    Classify open receivables/payables into the five aging buckets and roll
    them up per entity, per bucket and per entity type.  Used for the AP
    aging, AR aging and statement aging sections.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import analytics_kernel (domain, exceptions, logging).

Invariants enforced:
    - Purity: no clock access; ``as_of_date`` is always a parameter.
    - Each open item lands in exactly one bucket (``bucket_by_age``).
    - For every entity, the five bucket amounts sum exactly to its total;
      the summary buckets sum exactly to the sum of entity totals.
    - One report = one currency.  A mixed-currency portfolio is rejected
      unless a currency is selected (or ``build_by_currency`` is used).

Failure modes:
    - MissingDateError for an open item without a due date.
    - InvalidRecordError for negative outstanding amounts or documents that
      reference an unknown entity.
    - CurrencyMismatchError for a mixed-currency portfolio.

Usage:
    from analytics_engines.aging import AgingEngine
    from analytics_kernel.domain.records import EntityRole

    report = AgingEngine().build(
        documents=snapshot.documents,
        entities=snapshot.entities,
        as_of_date=date(2024, 12, 31),
        role=EntityRole.VENDOR,
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from analytics_kernel.domain.periods import (
    AgingBucket,
    DateRange,
    FiscalCalendar,
    age_in_days,
    bucket_for_age,
)
from analytics_kernel.domain.records import (
    DocumentKind,
    DocumentStatus,
    EntityRecord,
    EntityRole,
    LedgerDocument,
)
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError, InvalidRecordError
from analytics_kernel.logging_config import get_logger
from analytics_engines.tracer import traced_engine

logger = get_logger("engines.aging")

_HUNDREDTHS = Decimal("0.01")

# Which document kind carries the balance for each side of the ledger
DOCUMENT_KIND_FOR_ROLE: dict[EntityRole, DocumentKind] = {
    EntityRole.CUSTOMER: DocumentKind.INVOICE,
    EntityRole.VENDOR: DocumentKind.BILL,
}


class AgingSortKey(str, Enum):
    """Entity row orderings offered by aging reports."""

    TOTAL_AMOUNT = "totalAmount"
    ENTITY_NAME = "entityName"
    OVER_90 = "over90"
    DAYS_61_90 = "days61to90"
    AVERAGE_PAYMENT_DAYS = "averagePaymentDays"


@dataclass(frozen=True)
class AgedItem:
    """
    One open document with its age classification.

    Guarantees:
        - ``bucket == bucket_for_age(age_days)``.
        - ``outstanding`` is positive.
    """

    document_id: str
    entity_id: str
    document_date: date
    due_date: date
    outstanding: Money
    age_days: int
    bucket: AgingBucket

    @property
    def days_past_due(self) -> int:
        return max(0, self.age_days)


@dataclass(frozen=True)
class BucketAmounts:
    """The five bucket totals for one entity (or the whole report)."""

    current: Money
    days_1_30: Money
    days_31_60: Money
    days_61_90: Money
    over_90: Money

    @classmethod
    def zero(cls, currency: str) -> BucketAmounts:
        z = Money.zero(currency)
        return cls(z, z, z, z, z)

    @classmethod
    def from_items(cls, items: Iterable[AgedItem], currency: str) -> BucketAmounts:
        totals = {bucket: Money.zero(currency) for bucket in AgingBucket}
        for item in items:
            totals[item.bucket] = totals[item.bucket] + item.outstanding
        return cls(
            current=totals[AgingBucket.CURRENT],
            days_1_30=totals[AgingBucket.DAYS_1_30],
            days_31_60=totals[AgingBucket.DAYS_31_60],
            days_61_90=totals[AgingBucket.DAYS_61_90],
            over_90=totals[AgingBucket.OVER_90],
        )

    def get(self, bucket: AgingBucket) -> Money:
        return {
            AgingBucket.CURRENT: self.current,
            AgingBucket.DAYS_1_30: self.days_1_30,
            AgingBucket.DAYS_31_60: self.days_31_60,
            AgingBucket.DAYS_61_90: self.days_61_90,
            AgingBucket.OVER_90: self.over_90,
        }[bucket]

    def values(self) -> tuple[Money, ...]:
        return (self.current, self.days_1_30, self.days_31_60, self.days_61_90, self.over_90)

    @property
    def total(self) -> Money:
        return Money.sum(self.values(), self.current.currency)

    @property
    def is_critical(self) -> bool:
        """True when anything sits in 61-90 or over 90."""
        return not self.days_61_90.is_zero or not self.over_90.is_zero

    def __add__(self, other: BucketAmounts) -> BucketAmounts:
        return BucketAmounts(
            current=self.current + other.current,
            days_1_30=self.days_1_30 + other.days_1_30,
            days_31_60=self.days_31_60 + other.days_31_60,
            days_61_90=self.days_61_90 + other.days_61_90,
            over_90=self.over_90 + other.over_90,
        )


@dataclass(frozen=True)
class EntityAging:
    """
    One vendor/customer row of an aging report.

    Guarantees:
        - ``total_amount == buckets.total`` exactly.
    """

    entity_id: str
    entity_name: str
    entity_type: str
    buckets: BucketAmounts
    invoice_count: int
    oldest_invoice_date: date | None
    last_payment_date: date | None
    average_payment_days: Decimal | None
    credit_limit: Money | None = None
    payment_terms: str | None = None

    @property
    def total_amount(self) -> Money:
        return self.buckets.total

    @property
    def is_critical(self) -> bool:
        return self.buckets.is_critical


@dataclass(frozen=True)
class BucketAnalysis:
    """Share of the report total held in one bucket."""

    bucket: AgingBucket
    amount: Money
    percentage: Decimal
    entity_count: int


@dataclass(frozen=True)
class EntityTypeBreakdown:
    """Totals for one entity type (e.g. "Supplier")."""

    entity_type: str
    entity_count: int
    total_amount: Money
    average_amount: Money


@dataclass(frozen=True)
class AgingSummary:
    """Report-level totals."""

    total_entities: int
    buckets: BucketAmounts
    average_payment_days: Decimal | None
    critical_entities: int

    @property
    def total_amount(self) -> Money:
        return self.buckets.total


@dataclass(frozen=True)
class AgingReport:
    """
    Complete aging report for one side of the ledger in one currency.

    Guarantees:
        - ``summary.buckets`` is the bucket-wise sum of ``entities``.
        - ``bucket_analysis`` has one entry per AgingBucket, in bucket order.
    """

    as_of_date: date
    role: EntityRole
    currency: str
    entities: tuple[EntityAging, ...]
    summary: AgingSummary
    bucket_analysis: tuple[BucketAnalysis, ...]
    type_breakdown: tuple[EntityTypeBreakdown, ...]
    payment_window: DateRange | None = None


def _percentage(part: Money, whole: Money) -> Decimal:
    if whole.is_zero:
        return Decimal("0.00")
    return (part.amount / whole.amount * 100).quantize(_HUNDREDTHS, rounding=ROUND_HALF_UP)


def weighted_payment_days(documents: Iterable[LedgerDocument]) -> Decimal | None:
    """
    Amount-weighted mean of ``paid_date - document_date`` in days.

    Returns None when no document carries weight.
    """
    weighted = Decimal("0")
    weight = Decimal("0")
    for doc in documents:
        if doc.paid_date is None:
            continue
        days = Decimal((doc.paid_date - doc.document_date).days)
        weighted += days * doc.amount.amount
        weight += doc.amount.amount
    if weight == 0:
        return None
    return (weighted / weight).quantize(_HUNDREDTHS, rounding=ROUND_HALF_UP)


class AgingEngine:
    """
    Build aging reports from ledger documents.

    Contract:
        Pure functions -- no I/O, no database access, no clock.
    Guarantees:
        - Deterministic for identical inputs (rows are ordered by the
          requested sort key, ties by entity name then id).
    Non-goals:
        - Does not convert currencies; see ``build_by_currency``.
    """

    def __init__(self, calendar: FiscalCalendar | None = None, default_currency: str = "USD"):
        self._calendar = calendar or FiscalCalendar()
        self._default_currency = default_currency

    # ------------------------------------------------------------------
    # Item level
    # ------------------------------------------------------------------

    def age_open_items(
        self,
        documents: Iterable[LedgerDocument],
        as_of_date: date,
        kind: DocumentKind | None = None,
    ) -> tuple[AgedItem, ...]:
        """
        Age every open document with a positive outstanding balance.

        Documents that are not open, whose outstanding balance is zero, or
        that are dated after ``as_of_date`` are skipped.  Negative
        outstanding balances are rejected.
        """
        items: list[AgedItem] = []
        for doc in documents:
            if kind is not None and doc.kind != kind:
                continue
            if not doc.is_open or doc.document_date > as_of_date:
                continue
            outstanding = doc.outstanding
            if outstanding.is_negative:
                raise InvalidRecordError(doc.document_id, "outstanding amount is negative")
            if outstanding.is_zero:
                continue
            age = age_in_days(doc.due_date, as_of_date)
            items.append(
                AgedItem(
                    document_id=doc.document_id,
                    entity_id=doc.entity_id,
                    document_date=doc.document_date,
                    due_date=doc.due_date,
                    outstanding=outstanding,
                    age_days=age,
                    bucket=bucket_for_age(age),
                )
            )
        return tuple(items)

    def entity_buckets(
        self,
        entity_id: str,
        documents: Iterable[LedgerDocument],
        as_of_date: date,
        kind: DocumentKind,
        currency: str,
    ) -> BucketAmounts:
        """Bucket totals of one entity's open documents (used by statements)."""
        items = self.age_open_items(
            (d for d in documents if d.entity_id == entity_id and d.currency == currency),
            as_of_date,
            kind=kind,
        )
        return BucketAmounts.from_items(items, currency)

    # ------------------------------------------------------------------
    # Report level
    # ------------------------------------------------------------------

    def default_payment_window(self, as_of_date: date) -> DateRange:
        """Fiscal year to date of ``as_of_date``."""
        return self._calendar.year_to_date(as_of_date)

    def _report_currency(
        self, items: Sequence[AgedItem], currency: str | None
    ) -> str:
        if currency is not None:
            return Money.zero(currency).currency.code
        codes = sorted({item.outstanding.currency.code for item in items})
        if len(codes) > 1:
            raise CurrencyMismatchError(
                expected=codes[0], received=codes[1], operation="age"
            )
        return codes[0] if codes else self._default_currency

    @traced_engine(
        "aging",
        "1.0",
        fingerprint_fields=("as_of_date", "role", "currency", "entity_type", "critical_only", "sort_by"),
    )
    def build(
        self,
        documents: Sequence[LedgerDocument],
        entities: Sequence[EntityRecord],
        as_of_date: date,
        role: EntityRole,
        payment_window: DateRange | None = None,
        currency: str | None = None,
        entity_type: str | None = None,
        critical_only: bool = False,
        sort_by: AgingSortKey | str = AgingSortKey.TOTAL_AMOUNT,
    ) -> AgingReport:
        """
        Build the aging report for ``role`` as of ``as_of_date``.

        Args:
            documents: All ledger documents (other kinds are ignored).
            entities: Entity master records.
            as_of_date: Date balances are aged to.
            role: CUSTOMER (AR, invoices) or VENDOR (AP, bills).
            payment_window: Range of paid dates feeding averagePaymentDays
                (default: fiscal year to date).
            currency: Restrict to one currency; required when the open
                items span several.
            entity_type: Only include entities of this type.
            critical_only: Only include entities with 61-90 or over-90 balances.
            sort_by: Row ordering.

        Raises:
            CurrencyMismatchError: mixed currencies without a selector.
            MissingDateError: open item without a due date.
            InvalidRecordError: negative outstanding or unknown entity.
        """
        sort_key = AgingSortKey(sort_by)
        kind = DOCUMENT_KIND_FOR_ROLE[role]
        window = payment_window or self.default_payment_window(as_of_date)

        all_items = self.age_open_items(documents, as_of_date, kind=kind)
        report_currency = self._report_currency(all_items, currency)
        items = [i for i in all_items if i.outstanding.currency.code == report_currency]

        entities_by_id = {e.entity_id: e for e in entities if e.role == role}
        items_by_entity: dict[str, list[AgedItem]] = {}
        for item in items:
            if item.entity_id not in entities_by_id:
                raise InvalidRecordError(item.document_id, f"unknown entity {item.entity_id!r}")
            items_by_entity.setdefault(item.entity_id, []).append(item)

        docs_by_entity: dict[str, list[LedgerDocument]] = {}
        for doc in documents:
            if doc.kind == kind and doc.currency == report_currency:
                docs_by_entity.setdefault(doc.entity_id, []).append(doc)

        rows: list[EntityAging] = []
        for entity_id, entity_items in items_by_entity.items():
            entity = entities_by_id[entity_id]
            if entity_type is not None and entity.entity_type != entity_type:
                continue
            row = self._entity_row(
                entity,
                entity_items,
                docs_by_entity.get(entity_id, []),
                report_currency,
                window,
            )
            if critical_only and not row.is_critical:
                continue
            rows.append(row)

        rows = self._sort_rows(rows, sort_key)

        paid_in_window = [
            doc
            for row in rows
            for doc in docs_by_entity.get(row.entity_id, [])
            if self._is_paid_in_window(doc, window)
        ]
        total_buckets = BucketAmounts.zero(report_currency)
        for row in rows:
            total_buckets = total_buckets + row.buckets

        summary = AgingSummary(
            total_entities=len(rows),
            buckets=total_buckets,
            average_payment_days=weighted_payment_days(paid_in_window),
            critical_entities=sum(1 for row in rows if row.is_critical),
        )

        report = AgingReport(
            as_of_date=as_of_date,
            role=role,
            currency=report_currency,
            entities=tuple(rows),
            summary=summary,
            bucket_analysis=self._bucket_analysis(rows, total_buckets),
            type_breakdown=self._type_breakdown(rows, report_currency),
            payment_window=window,
        )

        logger.info(
            "aging_report_generated",
            extra={
                "role": role.value,
                "as_of_date": as_of_date.isoformat(),
                "currency": report_currency,
                "entity_count": summary.total_entities,
                "open_items": len(items),
                "total_amount": str(summary.total_amount.amount),
                "critical_entities": summary.critical_entities,
            },
        )
        return report

    def build_by_currency(
        self,
        documents: Sequence[LedgerDocument],
        entities: Sequence[EntityRecord],
        as_of_date: date,
        role: EntityRole,
        **options,
    ) -> dict[str, AgingReport]:
        """One report per currency present in the open items (sorted by code)."""
        kind = DOCUMENT_KIND_FOR_ROLE[role]
        currencies = sorted(
            {i.outstanding.currency.code for i in self.age_open_items(documents, as_of_date, kind=kind)}
        )
        return {
            code: self.build(documents, entities, as_of_date, role, currency=code, **options)
            for code in currencies
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _is_paid_in_window(doc: LedgerDocument, window: DateRange) -> bool:
        return (
            doc.status == DocumentStatus.PAID
            and doc.paid_date is not None
            and window.contains(doc.paid_date)
        )

    def _entity_row(
        self,
        entity: EntityRecord,
        items: list[AgedItem],
        documents: list[LedgerDocument],
        currency: str,
        window: DateRange,
    ) -> EntityAging:
        paid_dates = [d.paid_date for d in documents if d.paid_date is not None]
        return EntityAging(
            entity_id=entity.entity_id,
            entity_name=entity.name,
            entity_type=entity.entity_type,
            buckets=BucketAmounts.from_items(items, currency),
            invoice_count=len(items),
            oldest_invoice_date=min(i.document_date for i in items),
            last_payment_date=max(paid_dates) if paid_dates else None,
            average_payment_days=weighted_payment_days(
                d for d in documents if self._is_paid_in_window(d, window)
            ),
            credit_limit=entity.credit_limit,
            payment_terms=entity.payment_terms,
        )

    @staticmethod
    def _sort_rows(rows: list[EntityAging], sort_key: AgingSortKey) -> list[EntityAging]:
        ordered = sorted(rows, key=lambda r: (r.entity_name.casefold(), r.entity_id))
        if sort_key == AgingSortKey.ENTITY_NAME:
            return ordered
        if sort_key == AgingSortKey.AVERAGE_PAYMENT_DAYS:
            with_days = [r for r in ordered if r.average_payment_days is not None]
            without = [r for r in ordered if r.average_payment_days is None]
            with_days.sort(key=lambda r: r.average_payment_days, reverse=True)
            return with_days + without
        amount_of = {
            AgingSortKey.TOTAL_AMOUNT: lambda r: r.total_amount.amount,
            AgingSortKey.OVER_90: lambda r: r.buckets.over_90.amount,
            AgingSortKey.DAYS_61_90: lambda r: r.buckets.days_61_90.amount,
        }[sort_key]
        return sorted(ordered, key=amount_of, reverse=True)

    @staticmethod
    def _bucket_analysis(
        rows: Sequence[EntityAging], totals: BucketAmounts
    ) -> tuple[BucketAnalysis, ...]:
        grand_total = totals.total
        return tuple(
            BucketAnalysis(
                bucket=bucket,
                amount=totals.get(bucket),
                percentage=_percentage(totals.get(bucket), grand_total),
                entity_count=sum(1 for r in rows if r.buckets.get(bucket).is_positive),
            )
            for bucket in AgingBucket
        )

    @staticmethod
    def _type_breakdown(
        rows: Sequence[EntityAging], currency: str
    ) -> tuple[EntityTypeBreakdown, ...]:
        by_type: dict[str, list[EntityAging]] = {}
        for row in rows:
            by_type.setdefault(row.entity_type, []).append(row)
        breakdown = []
        for entity_type in sorted(by_type):
            members = by_type[entity_type]
            total = Money.sum((m.total_amount for m in members), currency)
            breakdown.append(
                EntityTypeBreakdown(
                    entity_type=entity_type,
                    entity_count=len(members),
                    total_amount=total,
                    average_amount=(total / len(members)).round(),
                )
            )
        return tuple(breakdown)
