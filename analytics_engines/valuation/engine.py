"""
Module: analytics_engines.valuation.engine
Responsibility:
    Value inventory items under FIFO, LIFO, weighted-average and standard
    cost, classify stock status, flag expiring lots and roll items up into
    an inventory valuation report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - FIFO takes the on-hand quantity from the oldest layers forward; LIFO
      from the newest end (see cost_layer.consume_layers).
    - Weighted-average cost is sum(q * c) / sum(q) over every layer ever
      received, held at internal precision.
    - 0 <= value <= sum(q * c) for FIFO, LIFO and average.
    - Item-level values are rounded half-up to the currency's places.
    - Layer tuples are never mutated.

Failure modes:
    - InsufficientLayerQuantityError when on-hand exceeds total received.
    - CurrencyMismatchError when layers (or report items) mix currencies.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from analytics_kernel.domain.records import CostLayer, InventoryItemRecord, ValuationMethod
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError, InsufficientLayerQuantityError
from analytics_kernel.logging_config import get_logger
from analytics_engines.tracer import traced_engine
from analytics_engines.valuation.cost_layer import consume_layers, layer_currency

logger = get_logger("engines.valuation")


class StockStatus(str, Enum):
    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"
    OVERSTOCK = "Overstock"


def stock_status(item: InventoryItemRecord) -> StockStatus:
    """Out of stock at zero, low at or below reorder level, over above max level."""
    if item.quantity_on_hand == 0:
        return StockStatus.OUT_OF_STOCK
    if item.quantity_on_hand <= item.reorder_level:
        return StockStatus.LOW_STOCK
    if item.max_level is not None and item.quantity_on_hand > item.max_level:
        return StockStatus.OVERSTOCK
    return StockStatus.IN_STOCK


class InventorySortKey(str, Enum):
    ITEM_NAME = "itemName"
    CATEGORY = "category"
    QUANTITY_ON_HAND = "quantityOnHand"
    UNIT_COST = "unitCost"
    TOTAL_VALUE = "totalValue"


@dataclass(frozen=True)
class InventoryValuationResult:
    """
    All four valuations of one item.

    Guarantees:
        - ``standard_variance == fifo_value - standard_value``.
        - ``selected_value`` is the value under ``selected_method``.
        - ``average_unit_cost`` is held at internal precision; round for display.
    """

    item: InventoryItemRecord
    fifo_value: Money
    lifo_value: Money
    average_value: Money
    standard_value: Money
    average_unit_cost: Money
    selected_method: ValuationMethod
    selected_value: Money
    standard_variance: Money
    stock_status: StockStatus
    total_received_quantity: Decimal
    total_received_cost: Money
    expiring_lots: tuple[CostLayer, ...] = ()

    @property
    def currency(self) -> str:
        return self.fifo_value.currency.code


@dataclass(frozen=True)
class CategoryValuation:
    category: str
    item_count: int
    quantity: Decimal
    value: Money


@dataclass(frozen=True)
class MethodComparison:
    """Total under one method and its difference from the average-cost total."""

    method: ValuationMethod
    total_value: Money
    variance: Money


@dataclass(frozen=True)
class InventorySummary:
    total_items: int
    total_quantity: Decimal
    total_value_fifo: Money
    total_value_lifo: Money
    total_value_average: Money
    total_value_standard: Money
    low_stock_items: int
    out_of_stock_items: int
    overstock_items: int


@dataclass(frozen=True)
class InventoryValuationReport:
    as_of_date: date
    currency: str
    items: tuple[InventoryValuationResult, ...]
    summary: InventorySummary
    categories: tuple[CategoryValuation, ...]
    methods: tuple[MethodComparison, ...]


class InventoryValuationEngine:
    """
    Inventory valuation calculator.

    Contract:
        Pure functions -- no I/O, no clock.
    Non-goals:
        - Does not post COGS; consumption here is a valuation walk only.
    """

    def __init__(
        self,
        default_method: ValuationMethod = ValuationMethod.FIFO,
        expiring_lot_days: int = 30,
    ):
        self._default_method = default_method
        self._expiring_days = expiring_lot_days

    @traced_engine("inventory_valuation", "1.0", fingerprint_fields=("item", "as_of_date"))
    def value_item(
        self,
        item: InventoryItemRecord,
        as_of_date: date | None = None,
    ) -> InventoryValuationResult:
        """
        Value ``item`` under every method.

        Args:
            item: The item with its cost layers.
            as_of_date: Reference date for the expiring-lot check (no lots are
                flagged when omitted).

        Raises:
            InsufficientLayerQuantityError: on-hand exceeds total received.
            CurrencyMismatchError: layers priced in different currencies, or
                in a currency other than the item's standard cost.
        """
        lots = item.lots
        code = layer_currency(lots, item.currency)
        if code != item.currency:
            raise CurrencyMismatchError(expected=item.currency, received=code, operation="value")

        on_hand = item.quantity_on_hand
        received_qty = sum((lot.quantity_received for lot in lots), Decimal("0"))
        received_cost = Money.sum((lot.total_cost for lot in lots), code)
        if on_hand > received_qty:
            raise InsufficientLayerQuantityError(item.item_id, on_hand, received_qty)

        fifo = consume_layers(item.item_id, lots, on_hand, ValuationMethod.FIFO, code).total_cost
        lifo = consume_layers(item.item_id, lots, on_hand, ValuationMethod.LIFO, code).total_cost

        if received_qty == 0:
            average_cost = Money.zero(code)
        else:
            average_cost = received_cost / received_qty
        average = average_cost * on_hand
        standard = item.standard_cost * on_hand

        values = {
            ValuationMethod.FIFO: fifo.round(),
            ValuationMethod.LIFO: lifo.round(),
            ValuationMethod.AVERAGE: average.round(),
            ValuationMethod.STANDARD: standard.round(),
        }
        method = item.valuation_method or self._default_method

        result = InventoryValuationResult(
            item=item,
            fifo_value=values[ValuationMethod.FIFO],
            lifo_value=values[ValuationMethod.LIFO],
            average_value=values[ValuationMethod.AVERAGE],
            standard_value=values[ValuationMethod.STANDARD],
            average_unit_cost=average_cost,
            selected_method=method,
            selected_value=values[method],
            standard_variance=values[ValuationMethod.FIFO] - values[ValuationMethod.STANDARD],
            stock_status=stock_status(item),
            total_received_quantity=received_qty,
            total_received_cost=received_cost,
            expiring_lots=self.expiring_lots(item, as_of_date) if as_of_date else (),
        )

        logger.debug(
            "inventory_item_valued",
            extra={
                "item_id": item.item_id,
                "quantity_on_hand": str(on_hand),
                "fifo": str(result.fifo_value.amount),
                "lifo": str(result.lifo_value.amount),
                "average": str(result.average_value.amount),
                "selected_method": method.value,
            },
        )
        return result

    def expiring_lots(self, item: InventoryItemRecord, as_of_date: date) -> tuple[CostLayer, ...]:
        """Lots whose expiration date falls within the horizon (or has passed)."""
        cutoff = as_of_date + timedelta(days=self._expiring_days)
        return tuple(
            lot
            for lot in sorted(item.lots, key=lambda lot: lot.received_date)
            if lot.expiration_date is not None and lot.expiration_date <= cutoff
        )

    @traced_engine(
        "inventory_valuation_report",
        "1.0",
        fingerprint_fields=("as_of_date", "category", "location", "currency", "sort_by"),
    )
    def build_report(
        self,
        items: Sequence[InventoryItemRecord],
        as_of_date: date,
        category: str | None = None,
        location: str | None = None,
        currency: str | None = None,
        sort_by: InventorySortKey | str = InventorySortKey.TOTAL_VALUE,
        default_currency: str = "USD",
    ) -> InventoryValuationReport:
        """Value every matching item and aggregate the totals."""
        sort_key = InventorySortKey(sort_by)
        selected = [
            i
            for i in items
            if (category is None or i.category == category)
            and (location is None or i.location == location)
        ]
        if currency is None:
            codes = sorted({i.currency for i in selected})
            if len(codes) > 1:
                raise CurrencyMismatchError(expected=codes[0], received=codes[1], operation="value")
            code = codes[0] if codes else default_currency
        else:
            code = Money.zero(currency).currency.code
            selected = [i for i in selected if i.currency == code]

        results = _sort_results([self.value_item(i, as_of_date) for i in selected], sort_key)

        def total(getter) -> Money:
            return Money.sum((getter(r) for r in results), code)

        summary = InventorySummary(
            total_items=len(results),
            total_quantity=sum((r.item.quantity_on_hand for r in results), Decimal("0")),
            total_value_fifo=total(lambda r: r.fifo_value),
            total_value_lifo=total(lambda r: r.lifo_value),
            total_value_average=total(lambda r: r.average_value),
            total_value_standard=total(lambda r: r.standard_value),
            low_stock_items=sum(1 for r in results if r.stock_status == StockStatus.LOW_STOCK),
            out_of_stock_items=sum(1 for r in results if r.stock_status == StockStatus.OUT_OF_STOCK),
            overstock_items=sum(1 for r in results if r.stock_status == StockStatus.OVERSTOCK),
        )

        by_category: dict[str, list[InventoryValuationResult]] = {}
        for r in results:
            by_category.setdefault(r.item.category, []).append(r)
        categories = tuple(
            CategoryValuation(
                category=name,
                item_count=len(members),
                quantity=sum((m.item.quantity_on_hand for m in members), Decimal("0")),
                value=Money.sum((m.selected_value for m in members), code),
            )
            for name, members in sorted(by_category.items())
        )

        method_totals = {
            ValuationMethod.FIFO: summary.total_value_fifo,
            ValuationMethod.LIFO: summary.total_value_lifo,
            ValuationMethod.AVERAGE: summary.total_value_average,
            ValuationMethod.STANDARD: summary.total_value_standard,
        }
        methods = tuple(
            MethodComparison(
                method=m,
                total_value=value,
                variance=value - summary.total_value_average,
            )
            for m, value in method_totals.items()
        )

        logger.info(
            "inventory_valuation_report_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "item_count": summary.total_items,
                "currency": code,
                "total_value_fifo": str(summary.total_value_fifo.amount),
            },
        )
        return InventoryValuationReport(
            as_of_date=as_of_date,
            currency=code,
            items=tuple(results),
            summary=summary,
            categories=categories,
            methods=methods,
        )


def _sort_results(
    results: list[InventoryValuationResult], sort_key: InventorySortKey
) -> list[InventoryValuationResult]:
    ordered = sorted(results, key=lambda r: r.item.item_id)
    if sort_key == InventorySortKey.ITEM_NAME:
        return sorted(ordered, key=lambda r: r.item.name.casefold())
    if sort_key == InventorySortKey.CATEGORY:
        return sorted(ordered, key=lambda r: r.item.category.casefold())
    descending = {
        InventorySortKey.QUANTITY_ON_HAND: lambda r: r.item.quantity_on_hand,
        InventorySortKey.UNIT_COST: lambda r: r.item.standard_cost.amount,
        InventorySortKey.TOTAL_VALUE: lambda r: r.selected_value.amount,
    }[sort_key]
    return sorted(ordered, key=descending, reverse=True)
