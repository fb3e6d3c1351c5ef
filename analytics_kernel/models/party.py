"""
Module: analytics_kernel.models.party
Responsibility: Read models for customers/vendors and their ledger documents
    (invoices, bills, payments, credits, adjustments).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - entity_id and document_id are unique natural keys.
    - Every monetary column shares the row's single ``currency`` column.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from analytics_kernel.db.base import Base


class EntityModel(Base):
    """A customer or vendor row."""

    __tablename__ = "entities"

    __table_args__ = (
        UniqueConstraint("entity_id", name="uq_entity_id"),
        Index("idx_entity_role", "role"),
    )

    entity_id: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # customer | vendor
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    payment_terms: Mapped[str | None] = mapped_column(String(50), nullable=True)
    credit_limit: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    def __repr__(self) -> str:
        return f"<Entity {self.entity_id}: {self.name}>"


class LedgerDocumentModel(Base):
    """An invoice, bill, payment, credit memo or adjustment row."""

    __tablename__ = "ledger_documents"

    __table_args__ = (
        UniqueConstraint("document_id", name="uq_document_id"),
        Index("idx_document_entity", "entity_id"),
        Index("idx_document_kind_status", "kind", "status"),
    )

    document_id: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    document_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    reference: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<LedgerDocument {self.kind} {self.document_id}>"
