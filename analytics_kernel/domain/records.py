"""
Records -- Immutable input records supplied by the upstream record store.

Responsibility:
    Typed, frozen views of the ledger, entity, asset and inventory records
    that the engines consume. The CRUD application that creates these
    records is an external collaborator; by the time records reach this
    layer they are already validated and never change.

Architecture position:
    Kernel > Domain -- pure data definitions, zero I/O.

Invariants enforced:
    - All records are frozen dataclasses; collections are tuples.
    - Monetary fields are Money (never float).
    - CostLayer.quantity_received > 0 and unit cost >= 0.
    - LedgerDocument.amount_paid shares the document currency.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from analytics_kernel.domain.values import Money, to_decimal
from analytics_kernel.exceptions import CurrencyMismatchError, InvalidRecordError


class EntityRole(str, Enum):
    """Which side of the ledger an entity sits on."""

    CUSTOMER = "customer"
    VENDOR = "vendor"


class DocumentKind(str, Enum):
    """Ledger document kinds."""

    INVOICE = "invoice"
    BILL = "bill"
    PAYMENT = "payment"
    CREDIT = "credit"
    ADJUSTMENT = "adjustment"


class DocumentStatus(str, Enum):
    """Lifecycle status of a ledger document."""

    DRAFT = "draft"
    OPEN = "open"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PAID = "paid"
    VOID = "void"

    @property
    def is_open(self) -> bool:
        return self in _OPEN_STATUSES


_OPEN_STATUSES = frozenset({DocumentStatus.OPEN, DocumentStatus.PARTIAL, DocumentStatus.OVERDUE})


class DepreciationMethod(str, Enum):
    """Supported depreciation methods."""

    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"


class ValuationMethod(str, Enum):
    """Inventory valuation methods (output contract names)."""

    FIFO = "fifo"
    LIFO = "lifo"
    AVERAGE = "average"
    STANDARD = "standard"


@dataclass(frozen=True, slots=True)
class EntityRecord:
    """A customer or vendor."""

    entity_id: str
    name: str
    role: EntityRole
    entity_type: str = "General"
    payment_terms: str | None = None
    credit_limit: Money | None = None


@dataclass(frozen=True, slots=True)
class LedgerDocument:
    """
    An invoice, bill, payment, credit memo or adjustment.

    ``amount`` is always positive for invoices/bills/payments/credits; the
    sign convention for balances is applied by the engines. Adjustments
    carry their own sign.
    """

    document_id: str
    entity_id: str
    kind: DocumentKind
    document_date: date
    amount: Money
    status: DocumentStatus = DocumentStatus.OPEN
    due_date: date | None = None
    amount_paid: Money | None = None
    paid_date: date | None = None
    reference: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if self.amount_paid is not None and self.amount_paid.currency != self.amount.currency:
            raise CurrencyMismatchError(
                expected=self.amount.currency.code,
                received=self.amount_paid.currency.code,
                operation="record payment against",
            )

    @property
    def currency(self) -> str:
        return self.amount.currency.code

    @property
    def outstanding(self) -> Money:
        """Amount still owed (amount minus payments applied)."""
        if self.amount_paid is None:
            return self.amount
        return self.amount - self.amount_paid

    @property
    def is_open(self) -> bool:
        return self.status.is_open


@dataclass(frozen=True, slots=True)
class JournalLineRecord:
    """A posted general-ledger line (used by the transactions data source)."""

    line_id: str
    entry_date: date
    account_name: str
    account_type: str
    debit: Money
    credit: Money
    description: str = ""
    reference: str = ""

    @property
    def amount(self) -> Money:
        """The non-zero side of the line."""
        return self.debit if not self.debit.is_zero else self.credit


@dataclass(frozen=True, slots=True)
class AssetRecord:
    """A depreciable fixed asset. Book values are derived, never stored."""

    asset_id: str
    name: str
    category: str
    purchase_date: date
    purchase_price: Money
    residual_value: Money
    useful_life_months: int
    method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE

    def __post_init__(self) -> None:
        if self.residual_value.currency != self.purchase_price.currency:
            raise CurrencyMismatchError(
                expected=self.purchase_price.currency.code,
                received=self.residual_value.currency.code,
                operation="depreciate",
            )
        if self.useful_life_months <= 0:
            raise InvalidRecordError(self.asset_id, "useful life must be positive")
        if self.purchase_price.is_negative or self.residual_value.is_negative:
            raise InvalidRecordError(self.asset_id, "price and residual must be non-negative")
        if self.residual_value > self.purchase_price:
            raise InvalidRecordError(self.asset_id, "residual value exceeds purchase price")

    @property
    def currency(self) -> str:
        return self.purchase_price.currency.code

    @property
    def depreciable_base(self) -> Money:
        return self.purchase_price - self.residual_value


@dataclass(frozen=True, slots=True)
class CostLayer:
    """A lot of inventory received at one unit cost. Never mutated."""

    lot_number: str
    quantity_received: Decimal
    unit_cost: Money
    received_date: date
    expiration_date: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity_received", to_decimal(self.quantity_received))
        if self.quantity_received <= 0:
            raise InvalidRecordError(self.lot_number, "lot quantity must be positive")
        if self.unit_cost.is_negative:
            raise InvalidRecordError(self.lot_number, "lot unit cost cannot be negative")

    @property
    def total_cost(self) -> Money:
        return self.unit_cost * self.quantity_received


@dataclass(frozen=True, slots=True)
class InventoryItemRecord:
    """An inventory item with its lot-level cost layers."""

    item_id: str
    name: str
    quantity_on_hand: Decimal
    standard_cost: Money
    lots: tuple[CostLayer, ...] = ()
    item_code: str = ""
    category: str = "General"
    location: str = ""
    unit_of_measure: str = "EA"
    reorder_level: Decimal = Decimal("0")
    max_level: Decimal | None = None
    valuation_method: ValuationMethod | None = None
    supplier: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity_on_hand", to_decimal(self.quantity_on_hand))
        object.__setattr__(self, "reorder_level", to_decimal(self.reorder_level))
        if self.max_level is not None:
            object.__setattr__(self, "max_level", to_decimal(self.max_level))
        object.__setattr__(self, "lots", tuple(self.lots))
        if self.quantity_on_hand < 0:
            raise InvalidRecordError(self.item_id, "quantity on hand cannot be negative")

    @property
    def currency(self) -> str:
        return self.standard_cost.currency.code

    @property
    def last_received(self) -> date | None:
        if not self.lots:
            return None
        return max(lot.received_date for lot in self.lots)

