"""
Module: analytics_kernel.models.journal
Responsibility: Read model for posted general-ledger lines.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from analytics_kernel.db.base import Base


class JournalLineModel(Base):
    """One posted journal line. Exactly one of debit/credit is non-zero."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("line_id", name="uq_journal_line_id"),
        Index("idx_journal_line_date", "entry_date"),
    )

    line_id: Mapped[str] = mapped_column(String(50), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    debit: Mapped[Decimal] = mapped_column(nullable=False)
    credit: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    reference: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<JournalLine {self.line_id} {self.account_name}>"
