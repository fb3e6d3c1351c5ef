"""
Tests for the SQLAlchemy record adapter.

Seeds an in-memory SQLite database with the sample ledger and checks that
SqlRecordStore produces the same snapshot as the in-memory store.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from analytics_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from analytics_kernel.models import (
    CostLayerModel,
    EntityModel,
    FixedAssetModel,
    InventoryItemModel,
    JournalLineModel,
    LedgerDocumentModel,
)
from analytics_kernel.selectors import RecordSelector, SqlRecordStore
from tests.sample_ledger import (
    make_assets,
    make_documents,
    make_entities,
    make_items,
    make_journal_lines,
)


def _seed(session) -> None:
    for e in make_entities():
        session.add(
            EntityModel(
                entity_id=e.entity_id,
                name=e.name,
                role=e.role.value,
                entity_type=e.entity_type,
                payment_terms=e.payment_terms,
                credit_limit=e.credit_limit.amount if e.credit_limit else None,
                currency="USD",
            )
        )
    for d in make_documents():
        session.add(
            LedgerDocumentModel(
                document_id=d.document_id,
                entity_id=d.entity_id,
                kind=d.kind.value,
                status=d.status.value,
                document_date=d.document_date,
                due_date=d.due_date,
                paid_date=d.paid_date,
                amount=d.amount.amount,
                amount_paid=d.amount_paid.amount if d.amount_paid else None,
                currency=d.amount.currency.code,
                reference=d.reference,
                description=d.description,
            )
        )
    for line in make_journal_lines():
        session.add(
            JournalLineModel(
                line_id=line.line_id,
                entry_date=line.entry_date,
                account_name=line.account_name,
                account_type=line.account_type,
                debit=line.debit.amount,
                credit=line.credit.amount,
                currency="USD",
                description=line.description,
                reference=line.reference,
            )
        )
    for a in make_assets():
        session.add(
            FixedAssetModel(
                asset_id=a.asset_id,
                name=a.name,
                category=a.category,
                purchase_date=a.purchase_date,
                purchase_price=a.purchase_price.amount,
                residual_value=a.residual_value.amount,
                currency="USD",
                useful_life_months=a.useful_life_months,
                method=a.method.value,
            )
        )
    for item in make_items():
        session.add(
            InventoryItemModel(
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
                standard_cost=item.standard_cost.amount,
                currency="USD",
                valuation_method=None,
            )
        )
        for lot in item.lots:
            session.add(
                CostLayerModel(
                    item_id=item.item_id,
                    lot_number=lot.lot_number,
                    quantity_received=lot.quantity_received,
                    unit_cost=lot.unit_cost.amount,
                    received_date=lot.received_date,
                    expiration_date=lot.expiration_date,
                )
            )


@pytest.fixture
def seeded_db():
    init_engine_from_url("sqlite://")
    create_tables()
    with session_scope() as session:
        _seed(session)
    yield get_session_factory()
    drop_tables()
    reset_engine()


class TestSqlRecordStore:
    def test_snapshot_matches_in_memory_records(self, seeded_db, deterministic_clock):
        snapshot = SqlRecordStore(seeded_db, clock=deterministic_clock).snapshot()

        assert snapshot.taken_at == deterministic_clock.now()
        assert list(snapshot.entities) == make_entities()
        assert list(snapshot.documents) == make_documents()
        assert list(snapshot.journal_lines) == make_journal_lines()
        assert list(snapshot.assets) == make_assets()
        assert list(snapshot.items) == make_items()

    def test_snapshot_matches_in_memory_store(self, seeded_db, snapshot, deterministic_clock):
        assert SqlRecordStore(seeded_db, clock=deterministic_clock).snapshot() == snapshot

    def test_decimal_round_trip_is_exact(self, seeded_db):
        with session_scope() as session:
            session.add(
                JournalLineModel(
                    line_id="JL-99",
                    entry_date=date(2024, 4, 1),
                    account_name="Rounding",
                    account_type="Expense",
                    debit=Decimal("0.1000000000000000055511151231257827"),
                    credit=Decimal("0"),
                    currency="USD",
                )
            )
        session = seeded_db()
        try:
            row = session.scalars(select(JournalLineModel).where(JournalLineModel.line_id == "JL-99")).one()
            assert row.debit == Decimal("0.1000000000000000055511151231257827")
            assert isinstance(row.debit, Decimal)
        finally:
            session.close()

    def test_float_amounts_are_refused(self, seeded_db):
        with pytest.raises(Exception) as exc_info:
            with session_scope() as session:
                session.add(
                    JournalLineModel(
                        line_id="JL-98",
                        entry_date=date(2024, 4, 1),
                        account_name="Cash",
                        account_type="Asset",
                        debit=0.1,
                        credit=Decimal("0"),
                        currency="USD",
                    )
                )
        assert "Float values are not allowed" in str(exc_info.value)

    def test_orphan_cost_layers_are_skipped(self, seeded_db, captured_logs):
        with session_scope() as session:
            session.add(
                CostLayerModel(
                    item_id="I404",
                    lot_number="L404",
                    quantity_received=Decimal("1"),
                    unit_cost=Decimal("1"),
                    received_date=date(2024, 1, 1),
                )
            )
        snapshot = SqlRecordStore(seeded_db).snapshot()

        lots = [lot.lot_number for item in snapshot.items for lot in item.lots]
        assert "L404" not in lots
        warnings = [r for r in captured_logs() if r["message"] == "orphan_cost_layer_skipped"]
        assert warnings[0]["lot_number"] == "L404"

    def test_snapshot_load_is_logged(self, seeded_db, captured_logs):
        SqlRecordStore(seeded_db).snapshot()
        records = [r for r in captured_logs() if r["message"] == "snapshot_loaded"]
        assert records[0]["documents"] == 10
        assert records[0]["items"] == 3


class TestRecordSelector:
    def test_selector_does_not_write(self, seeded_db):
        session = seeded_db()
        try:
            RecordSelector(session).load_snapshot()
            assert not session.new
            assert not session.dirty
            assert not session.deleted
        finally:
            session.close()

    def test_empty_database(self, deterministic_clock):
        init_engine_from_url("sqlite://")
        create_tables()
        try:
            snapshot = SqlRecordStore(get_session_factory(), clock=deterministic_clock).snapshot()
            assert snapshot.entities == ()
            assert snapshot.items == ()
        finally:
            drop_tables()
            reset_engine()
