"""
Module: analytics_engines.query.sources
Responsibility:
    Turn a RecordSnapshot into raw report rows for each catalog data source,
    scoped to the report's date range, and compute derived field values
    (aggregates, book values, inventory valuations).

Architecture position:
    Engines > Query -- pure functions over an immutable snapshot.

Invariants enforced:
    - Stored (non-derived) values are read from the record attribute named
      by the catalog field's ``name``; enums are exposed as their value.
    - Date-range scoping uses each source's natural date:
        transactions  entry date
        customers     invoice dates (entities without one are dropped)
        vendors       bill dates (entities without one are dropped)
        inventory     last received date
        assets        purchase date; book values as of the range end
    - Derived values are computed only for rows that survive pushdown
      filtering.

Failure modes:
    - UnknownDataSourceError for a source with no materializer.
    - Engine errors (InsufficientLayerQuantityError, CurrencyMismatchError)
      propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from analytics_kernel.domain.periods import DateRange
from analytics_kernel.domain.records import (
    DocumentKind,
    DocumentStatus,
    EntityRole,
    LedgerDocument,
)
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import UnknownDataSourceError
from analytics_kernel.snapshot import RecordSnapshot
from analytics_engines.depreciation import DepreciationEngine
from analytics_engines.query.catalog import DataSource
from analytics_engines.valuation import InventoryValuationEngine

_EXCLUDED_STATUSES = frozenset({DocumentStatus.DRAFT, DocumentStatus.VOID})


@dataclass(frozen=True)
class SourceContext:
    """Everything a materializer needs besides the snapshot."""

    as_of_date: date
    date_range: DateRange | None
    default_currency: str
    depreciation: DepreciationEngine
    valuation: InventoryValuationEngine

    def in_range(self, value: date | None) -> bool:
        if self.date_range is None:
            return True
        return value is not None and self.date_range.contains(value)


@dataclass
class RawRow:
    """A mutable row under construction plus the record(s) it came from."""

    values: dict[str, Any]
    handle: Any


def _stored_value(record: Any, attribute: str) -> Any:
    value = getattr(record, attribute)
    if isinstance(value, Enum):
        return value.value
    return value


def _stored_values(source: DataSource, record: Any) -> dict[str, Any]:
    return {f.id: _stored_value(record, f.name) for f in source.fields if not f.derived}


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def _transaction_rows(
    source: DataSource, snapshot: RecordSnapshot, context: SourceContext
) -> Iterator[RawRow]:
    for line in snapshot.journal_lines:
        if context.in_range(line.entry_date):
            yield RawRow(_stored_values(source, line), line)


# ---------------------------------------------------------------------------
# Customers / vendors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _EntityActivity:
    entity: Any
    documents: tuple[LedgerDocument, ...]


def _entity_rows(role: EntityRole, kind: DocumentKind):
    def rows(source: DataSource, snapshot: RecordSnapshot, context: SourceContext) -> Iterator[RawRow]:
        by_entity: dict[str, list[LedgerDocument]] = {}
        for doc in snapshot.documents_of(kind):
            if doc.status in _EXCLUDED_STATUSES or not context.in_range(doc.document_date):
                continue
            by_entity.setdefault(doc.entity_id, []).append(doc)

        for entity in snapshot.entities_for(role):
            documents = by_entity.get(entity.entity_id, [])
            if context.date_range is not None and not documents:
                continue
            yield RawRow(
                _stored_values(source, entity),
                _EntityActivity(entity=entity, documents=tuple(documents)),
            )

    return rows


def _entity_derived(prefix: dict[str, str]):
    """Derived-value function for customer/vendor rows.

    ``prefix`` maps the generic aggregate names to the source's field ids.
    """

    def derive(raw: RawRow, context: SourceContext) -> None:
        activity: _EntityActivity = raw.handle
        docs = activity.documents
        codes = sorted({d.currency for d in docs})
        # One currency per entity row; a multi-currency entity fails in
        # Money.sum below.
        code = codes[0] if codes else context.default_currency
        total = Money.sum((d.amount for d in docs), code)
        outstanding = Money.sum((d.outstanding for d in docs if d.is_open), code)
        dates = [d.document_date for d in docs]
        values = raw.values
        values[prefix["total"]] = total
        values[prefix["count"]] = Decimal(len(docs))
        values[prefix["first"]] = min(dates) if dates else None
        values[prefix["last"]] = max(dates) if dates else None
        values[prefix["average"]] = (total / len(docs)).round() if docs else Money.zero(code)
        values["outstanding_balance"] = outstanding

    return derive


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


def _inventory_rows(
    source: DataSource, snapshot: RecordSnapshot, context: SourceContext
) -> Iterator[RawRow]:
    for item in snapshot.items:
        if context.in_range(item.last_received):
            yield RawRow(_stored_values(source, item), item)


def _inventory_derived(raw: RawRow, context: SourceContext) -> None:
    item = raw.handle
    result = context.valuation.value_item(item)
    raw.values["total_value"] = result.selected_value
    raw.values["below_reorder_point"] = item.quantity_on_hand <= item.reorder_level
    raw.values["last_movement_date"] = item.last_received


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


def _asset_rows(
    source: DataSource, snapshot: RecordSnapshot, context: SourceContext
) -> Iterator[RawRow]:
    for asset in snapshot.assets:
        if context.in_range(asset.purchase_date):
            yield RawRow(_stored_values(source, asset), asset)


def _asset_derived(raw: RawRow, context: SourceContext) -> None:
    as_of = context.date_range.end_date if context.date_range else context.as_of_date
    dep = context.depreciation.calculate(raw.handle, as_of)
    raw.values["accumulated_depreciation"] = dep.accumulated_depreciation
    raw.values["current_book_value"] = dep.current_book_value
    raw.values["fully_depreciated"] = dep.is_fully_depreciated


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


RowFactory = Callable[[DataSource, RecordSnapshot, SourceContext], Iterator[RawRow]]
Deriver = Callable[[RawRow, SourceContext], None]


@dataclass(frozen=True)
class Materializer:
    """How one data source is fetched and completed."""

    rows: RowFactory
    derive: Deriver


MATERIALIZERS: dict[str, Materializer] = {
    "transactions": Materializer(rows=_transaction_rows, derive=lambda raw, context: None),
    "customers": Materializer(
        rows=_entity_rows(EntityRole.CUSTOMER, DocumentKind.INVOICE),
        derive=_entity_derived(
            {
                "total": "total_sales",
                "count": "invoice_count",
                "first": "first_sale_date",
                "last": "last_sale_date",
                "average": "average_sale",
            }
        ),
    ),
    "vendors": Materializer(
        rows=_entity_rows(EntityRole.VENDOR, DocumentKind.BILL),
        derive=_entity_derived(
            {
                "total": "total_purchases",
                "count": "bill_count",
                "first": "first_purchase_date",
                "last": "last_purchase_date",
                "average": "average_purchase",
            }
        ),
    ),
    "inventory": Materializer(rows=_inventory_rows, derive=_inventory_derived),
    "assets": Materializer(rows=_asset_rows, derive=_asset_derived),
}


def materializer_for(data_source_id: str) -> Materializer:
    try:
        return MATERIALIZERS[data_source_id]
    except KeyError:
        raise UnknownDataSourceError(data_source_id) from None
