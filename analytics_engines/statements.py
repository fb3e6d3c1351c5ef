"""
Module: analytics_engines.statements
Responsibility:
    Build customer and vendor account statements for a period: opening
    balance, the period's transactions with a running balance, period
    totals and the open-item aging at period end.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Sign convention: invoices/bills increase the balance, payments and
      credits decrease it, adjustments carry their own sign.
    - ending_balance == beginning_balance + total_invoiced
      - total_payments + total_adjustments, exactly.
    - The last transaction's running balance equals ending_balance.
    - Draft and void documents never affect a statement.

Failure modes:
    - CurrencyMismatchError when the entity's documents span currencies and
      no currency is selected.
    - InvalidDateRangeError is raised upstream by DateRange.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from analytics_kernel.domain.periods import DateRange
from analytics_kernel.domain.records import (
    DocumentKind,
    DocumentStatus,
    EntityRecord,
    EntityRole,
    LedgerDocument,
)
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError
from analytics_kernel.logging_config import get_logger
from analytics_engines.aging import DOCUMENT_KIND_FOR_ROLE, AgingEngine, BucketAmounts
from analytics_engines.tracer import traced_engine

logger = get_logger("engines.statements")

_EXCLUDED_STATUSES = frozenset({DocumentStatus.DRAFT, DocumentStatus.VOID})


def signed_amount(doc: LedgerDocument) -> Money:
    """The document's effect on the entity balance."""
    if doc.kind in (DocumentKind.INVOICE, DocumentKind.BILL):
        return doc.amount
    if doc.kind in (DocumentKind.PAYMENT, DocumentKind.CREDIT):
        return -doc.amount
    return doc.amount


@dataclass(frozen=True)
class StatementLine:
    """One transaction on a statement, with the balance after it."""

    document_id: str
    transaction_date: date
    kind: DocumentKind
    reference: str
    description: str
    amount: Money
    balance: Money


@dataclass(frozen=True)
class StatementSummary:
    """Period totals. Payments are reported as a positive magnitude."""

    beginning_balance: Money
    total_invoiced: Money
    total_payments: Money
    total_adjustments: Money
    ending_balance: Money


@dataclass(frozen=True)
class Statement:
    """A customer or vendor statement for one period in one currency."""

    entity: EntityRecord
    role: EntityRole
    period: DateRange
    currency: str
    summary: StatementSummary
    lines: tuple[StatementLine, ...]
    aging: BucketAmounts


class StatementEngine:
    """
    Build account statements.

    Contract:
        Pure functions; the caller supplies every document of the entity.
    """

    def __init__(self, aging_engine: AgingEngine | None = None, default_currency: str = "USD"):
        self._aging = aging_engine or AgingEngine(default_currency=default_currency)
        self._default_currency = default_currency

    def _statement_currency(self, documents: list[LedgerDocument], currency: str | None) -> str:
        if currency is not None:
            return Money.zero(currency).currency.code
        codes = sorted({d.currency for d in documents})
        if len(codes) > 1:
            raise CurrencyMismatchError(expected=codes[0], received=codes[1], operation="state")
        return codes[0] if codes else self._default_currency

    @traced_engine("statements", "1.0", fingerprint_fields=("entity", "period", "role", "currency"))
    def build(
        self,
        entity: EntityRecord,
        documents: Iterable[LedgerDocument],
        period: DateRange,
        role: EntityRole,
        currency: str | None = None,
    ) -> Statement:
        """
        Build the statement of ``entity`` for ``period``.

        Documents of other entities, and draft/void documents, are ignored.
        Documents dated after the period end are ignored.
        """
        relevant = [
            d
            for d in documents
            if d.entity_id == entity.entity_id and d.status not in _EXCLUDED_STATUSES
        ]
        code = self._statement_currency(relevant, currency)
        relevant = [d for d in relevant if d.currency == code]

        zero = Money.zero(code)
        balance_kind = DOCUMENT_KIND_FOR_ROLE[role]

        beginning = Money.sum(
            (signed_amount(d) for d in relevant if d.document_date < period.start_date),
            code,
        )
        in_period = sorted(
            (d for d in relevant if period.contains(d.document_date)),
            key=lambda d: (d.document_date, d.document_id),
        )

        invoiced = zero
        payments = zero
        adjustments = zero
        running = beginning
        lines: list[StatementLine] = []
        for doc in in_period:
            amount = signed_amount(doc)
            if doc.kind == balance_kind:
                invoiced = invoiced + amount
            elif doc.kind == DocumentKind.PAYMENT:
                payments = payments + doc.amount
            else:
                adjustments = adjustments + amount
            running = running + amount
            lines.append(
                StatementLine(
                    document_id=doc.document_id,
                    transaction_date=doc.document_date,
                    kind=doc.kind,
                    reference=doc.reference,
                    description=doc.description,
                    amount=amount,
                    balance=running,
                )
            )

        summary = StatementSummary(
            beginning_balance=beginning,
            total_invoiced=invoiced,
            total_payments=payments,
            total_adjustments=adjustments,
            ending_balance=beginning + invoiced - payments + adjustments,
        )

        aging = self._aging.entity_buckets(
            entity.entity_id, relevant, period.end_date, kind=balance_kind, currency=code
        )

        logger.info(
            "statement_generated",
            extra={
                "entity_id": entity.entity_id,
                "role": role.value,
                "start_date": period.start_date.isoformat(),
                "end_date": period.end_date.isoformat(),
                "transaction_count": len(lines),
                "ending_balance": str(summary.ending_balance.amount),
            },
        )
        return Statement(
            entity=entity,
            role=role,
            period=period,
            currency=code,
            summary=summary,
            lines=tuple(lines),
            aging=aging,
        )
