"""
Module: analytics_kernel.models.asset
Responsibility: Read model for depreciable fixed assets.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Only acquisition facts are stored; book value and accumulated
      depreciation are always recomputed by the depreciation engine.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from analytics_kernel.db.base import Base


class FixedAssetModel(Base):
    """A fixed asset row."""

    __tablename__ = "fixed_assets"

    __table_args__ = (
        UniqueConstraint("asset_id", name="uq_fixed_asset_id"),
    )

    asset_id: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(nullable=False)
    residual_value: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    useful_life_months: Mapped[int] = mapped_column(Integer, nullable=False)

    # straight_line | declining_balance
    method: Mapped[str] = mapped_column(String(30), nullable=False)

    def __repr__(self) -> str:
        return f"<FixedAsset {self.asset_id}: {self.name}>"
