"""
Module: analytics_kernel.models.inventory
Responsibility: Read models for inventory items and their cost layers (lots).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A cost layer's received quantity and unit cost are frozen at receipt.
    - Layers belong to exactly one item (FK on the item's natural key).
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from analytics_kernel.db.base import Base


class InventoryItemModel(Base):
    """An inventory item row."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("item_id", name="uq_inventory_item_id"),
        Index("idx_inventory_item_category", "category"),
    )

    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    item_code: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    location: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    supplier: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")

    quantity_on_hand: Mapped[Decimal] = mapped_column(nullable=False)
    reorder_level: Mapped[Decimal] = mapped_column(nullable=False)
    max_level: Mapped[Decimal | None] = mapped_column(nullable=True)
    standard_cost: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # fifo | lifo | average | standard (null = configured default)
    valuation_method: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryItem {self.item_id}: {self.name}>"


class CostLayerModel(Base):
    """One received lot of an inventory item."""

    __tablename__ = "cost_layers"

    __table_args__ = (
        Index("idx_cost_layer_item", "item_id"),
    )

    item_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("inventory_items.item_id"),
        nullable=False,
    )
    lot_number: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity_received: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<CostLayer {self.lot_number} ({self.item_id})>"
