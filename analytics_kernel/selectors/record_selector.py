"""
Module: analytics_kernel.selectors.record_selector
Responsibility: Load a complete RecordSnapshot from the read models inside
    one session, and expose that as a RecordStore for the reporting service.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every snapshot is read inside ONE session (one transaction), so a
      report never mixes rows from before and after an upstream write.
    - Rows are converted to frozen domain records; ORM instances never
      escape this module.
    - Results are ordered by natural key so snapshot contents are
      deterministic across loads.

Failure modes:
    - InvalidCurrencyError / InvalidRecordError if a stored row violates a
      record precondition (the upstream application is trusted, but not
      blindly).
"""

from collections import defaultdict
from collections.abc import Callable
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from analytics_kernel.domain.clock import Clock, SystemClock
from analytics_kernel.domain.records import (
    AssetRecord,
    CostLayer,
    DepreciationMethod,
    DocumentKind,
    DocumentStatus,
    EntityRecord,
    EntityRole,
    InventoryItemRecord,
    JournalLineRecord,
    LedgerDocument,
    ValuationMethod,
)
from analytics_kernel.domain.values import Money
from analytics_kernel.logging_config import get_logger
from analytics_kernel.models import (
    CostLayerModel,
    EntityModel,
    FixedAssetModel,
    InventoryItemModel,
    JournalLineModel,
    LedgerDocumentModel,
)
from analytics_kernel.selectors.base import BaseSelector
from analytics_kernel.snapshot import RecordSnapshot

logger = get_logger("selectors.records")


def _money(amount: Decimal | None, currency: str) -> Money | None:
    if amount is None:
        return None
    return Money.of(amount, currency)


class RecordSelector(BaseSelector):
    """Read-only loader for every record type the engines consume."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def entities(self) -> tuple[EntityRecord, ...]:
        rows = self.session.scalars(select(EntityModel).order_by(EntityModel.entity_id))
        return tuple(
            EntityRecord(
                entity_id=row.entity_id,
                name=row.name,
                role=EntityRole(row.role),
                entity_type=row.entity_type,
                payment_terms=row.payment_terms,
                credit_limit=_money(row.credit_limit, row.currency),
            )
            for row in rows
        )

    def documents(self) -> tuple[LedgerDocument, ...]:
        rows = self.session.scalars(
            select(LedgerDocumentModel).order_by(LedgerDocumentModel.document_id)
        )
        return tuple(
            LedgerDocument(
                document_id=row.document_id,
                entity_id=row.entity_id,
                kind=DocumentKind(row.kind),
                document_date=row.document_date,
                amount=Money.of(row.amount, row.currency),
                status=DocumentStatus(row.status),
                due_date=row.due_date,
                amount_paid=_money(row.amount_paid, row.currency),
                paid_date=row.paid_date,
                reference=row.reference,
                description=row.description,
            )
            for row in rows
        )

    def journal_lines(self) -> tuple[JournalLineRecord, ...]:
        rows = self.session.scalars(
            select(JournalLineModel).order_by(JournalLineModel.line_id)
        )
        return tuple(
            JournalLineRecord(
                line_id=row.line_id,
                entry_date=row.entry_date,
                account_name=row.account_name,
                account_type=row.account_type,
                debit=Money.of(row.debit, row.currency),
                credit=Money.of(row.credit, row.currency),
                description=row.description,
                reference=row.reference,
            )
            for row in rows
        )

    def assets(self) -> tuple[AssetRecord, ...]:
        rows = self.session.scalars(select(FixedAssetModel).order_by(FixedAssetModel.asset_id))
        return tuple(
            AssetRecord(
                asset_id=row.asset_id,
                name=row.name,
                category=row.category,
                purchase_date=row.purchase_date,
                purchase_price=Money.of(row.purchase_price, row.currency),
                residual_value=Money.of(row.residual_value, row.currency),
                useful_life_months=row.useful_life_months,
                method=DepreciationMethod(row.method),
            )
            for row in rows
        )

    def inventory_items(self) -> tuple[InventoryItemRecord, ...]:
        items = list(
            self.session.scalars(select(InventoryItemModel).order_by(InventoryItemModel.item_id))
        )
        currency_by_item = {item.item_id: item.currency for item in items}

        lots: dict[str, list[CostLayer]] = defaultdict(list)
        layer_rows = self.session.scalars(
            select(CostLayerModel).order_by(
                CostLayerModel.item_id,
                CostLayerModel.received_date,
                CostLayerModel.lot_number,
            )
        )
        for row in layer_rows:
            currency = currency_by_item.get(row.item_id)
            if currency is None:
                logger.warning(
                    "orphan_cost_layer_skipped",
                    extra={"item_id": row.item_id, "lot_number": row.lot_number},
                )
                continue
            lots[row.item_id].append(
                CostLayer(
                    lot_number=row.lot_number,
                    quantity_received=row.quantity_received,
                    unit_cost=Money.of(row.unit_cost, currency),
                    received_date=row.received_date,
                    expiration_date=row.expiration_date,
                )
            )

        return tuple(
            InventoryItemRecord(
                item_id=item.item_id,
                item_code=item.item_code,
                name=item.name,
                category=item.category,
                location=item.location,
                supplier=item.supplier,
                unit_of_measure=item.unit_of_measure,
                quantity_on_hand=item.quantity_on_hand,
                reorder_level=item.reorder_level,
                max_level=item.max_level,
                standard_cost=Money.of(item.standard_cost, item.currency),
                valuation_method=(
                    ValuationMethod(item.valuation_method) if item.valuation_method else None
                ),
                lots=tuple(lots.get(item.item_id, ())),
            )
            for item in items
        )

    def load_snapshot(self) -> RecordSnapshot:
        """Read every record type and bundle them into one snapshot."""
        snapshot = RecordSnapshot(
            taken_at=self._clock.now(),
            entities=self.entities(),
            documents=self.documents(),
            journal_lines=self.journal_lines(),
            assets=self.assets(),
            items=self.inventory_items(),
        )
        logger.info(
            "snapshot_loaded",
            extra={
                "entities": len(snapshot.entities),
                "documents": len(snapshot.documents),
                "journal_lines": len(snapshot.journal_lines),
                "assets": len(snapshot.assets),
                "items": len(snapshot.items),
            },
        )
        return snapshot


class SqlRecordStore:
    """
    RecordStore that loads each snapshot inside a fresh, read-only session.

    The session is always rolled back (never committed) and closed.
    """

    def __init__(self, session_factory: Callable[[], Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def snapshot(self) -> RecordSnapshot:
        session = self._session_factory()
        try:
            return RecordSelector(session, clock=self._clock).load_snapshot()
        finally:
            session.rollback()
            session.close()
