"""
Cost layer consumption (``analytics_engines.valuation.cost_layer``).

Walks an item's cost layers in FIFO or LIFO order and records how much
quantity and cost each layer contributes to a requested quantity.  The
layers themselves are never mutated; every result is a new frozen value.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from analytics_kernel.domain.records import CostLayer, ValuationMethod
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError, InsufficientLayerQuantityError
from analytics_kernel.logging_config import get_logger

logger = get_logger("engines.valuation.cost_layer")


def layer_currency(layers: Sequence[CostLayer], default: str) -> str:
    """
    The single currency of ``layers`` (``default`` when there are none).

    Raises:
        CurrencyMismatchError: if layers are priced in different currencies.
    """
    codes = sorted({layer.unit_cost.currency.code for layer in layers})
    if len(codes) > 1:
        raise CurrencyMismatchError(expected=codes[0], received=codes[1], operation="value")
    return codes[0] if codes else default


def order_layers(layers: Sequence[CostLayer], method: ValuationMethod) -> tuple[CostLayer, ...]:
    """
    Layers in consumption order.

    Layers are stable-sorted by received date (oldest first); LIFO walks
    that sequence from the newest end.
    """
    oldest_first = sorted(layers, key=lambda layer: layer.received_date)
    if method == ValuationMethod.LIFO:
        return tuple(reversed(oldest_first))
    return tuple(oldest_first)


@dataclass(frozen=True, slots=True)
class LayerConsumption:
    """
    Detail of consumption from a single cost layer.

    Part of a ConsumptionResult showing how much was taken from each lot.
    """

    lot_number: str
    quantity_consumed: Decimal
    unit_cost: Money
    cost_consumed: Money
    remaining_in_layer: Decimal

    @classmethod
    def create(cls, layer: CostLayer, quantity_consumed: Decimal) -> LayerConsumption:
        """Create consumption detail from a layer and quantity."""
        return cls(
            lot_number=layer.lot_number,
            quantity_consumed=quantity_consumed,
            unit_cost=layer.unit_cost,
            cost_consumed=layer.unit_cost * quantity_consumed,
            remaining_in_layer=layer.quantity_received - quantity_consumed,
        )


@dataclass(frozen=True, slots=True)
class ConsumptionResult:
    """Result of walking cost layers for a quantity."""

    item_id: str
    method: ValuationMethod
    layers_consumed: tuple[LayerConsumption, ...]
    total_quantity: Decimal
    total_cost: Money

    @property
    def layer_count(self) -> int:
        return len(self.layers_consumed)

    @property
    def average_unit_cost(self) -> Money:
        """Weighted average unit cost of the consumed quantity."""
        if self.total_quantity == 0:
            return Money.zero(self.total_cost.currency)
        return self.total_cost / self.total_quantity


def consume_layers(
    item_id: str,
    layers: Sequence[CostLayer],
    quantity: Decimal,
    method: ValuationMethod,
    currency: str = "USD",
) -> ConsumptionResult:
    """
    Take ``quantity`` from ``layers`` in FIFO or LIFO order.

    Args:
        item_id: Item the layers belong to (for errors and logs).
        layers: Cost layers in any order.
        quantity: Quantity to take (>= 0).
        method: FIFO or LIFO.
        currency: Currency of the zero result when there are no layers.

    Raises:
        ValueError: for a method other than FIFO/LIFO or a negative quantity.
        InsufficientLayerQuantityError: if ``quantity`` exceeds the layers.
        CurrencyMismatchError: if layers mix currencies.
    """
    if method not in (ValuationMethod.FIFO, ValuationMethod.LIFO):
        raise ValueError(f"Layer consumption requires FIFO or LIFO, got {method.value}")
    if quantity < 0:
        raise ValueError(f"Quantity cannot be negative: {quantity}")

    code = layer_currency(layers, currency)
    available = sum((layer.quantity_received for layer in layers), Decimal("0"))
    if quantity > available:
        raise InsufficientLayerQuantityError(item_id, quantity, available)

    remaining = quantity
    consumptions: list[LayerConsumption] = []
    for layer in order_layers(layers, method):
        if remaining <= 0:
            break
        take = min(remaining, layer.quantity_received)
        consumptions.append(LayerConsumption.create(layer, take))
        remaining -= take

    total_cost = Money.sum((c.cost_consumed for c in consumptions), code)
    logger.debug(
        "layers_consumed",
        extra={
            "item_id": item_id,
            "method": method.value,
            "quantity": str(quantity),
            "layer_count": len(consumptions),
            "total_cost": str(total_cost.amount),
        },
    )
    return ConsumptionResult(
        item_id=item_id,
        method=method,
        layers_consumed=tuple(consumptions),
        total_quantity=quantity,
        total_cost=total_cost,
    )
