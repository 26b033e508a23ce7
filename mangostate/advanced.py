"""Advanced (trigger) orders stored alongside a margin account."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator

from mangostate.errors import MangoError, MangoErrorCode
from mangostate.fixed import I80F48
from mangostate.group import DataType, MetaData
from mangostate.utils import Side

ADVANCED_ORDER_FEE = 500_000
MAX_ADVANCED_ORDERS = 32


class AdvancedOrderType(IntEnum):
    PERP_TRIGGER = 0
    SPOT_TRIGGER = 1


class TriggerCondition(IntEnum):
    ABOVE = 0
    BELOW = 1


@dataclass(frozen=True)
class PerpTriggerOrder:
    """A perp order placed on the book once the oracle price crosses ``trigger_price``."""

    market_index: int
    order_type: int
    side: Side
    trigger_condition: TriggerCondition
    reduce_only: bool
    client_order_id: int
    price: int
    quantity: int
    trigger_price: I80F48
    advanced_order_type: AdvancedOrderType = AdvancedOrderType.PERP_TRIGGER
    is_active: bool = True


def _advanced_meta() -> MetaData:
    return MetaData(DataType.ADVANCED_ORDERS, 0, True)


@dataclass
class AdvancedOrders:
    """Fixed set of slots holding an account's advanced orders."""

    meta_data: MetaData = field(default_factory=_advanced_meta)
    orders: list[PerpTriggerOrder | None] = field(
        default_factory=lambda: [None] * MAX_ADVANCED_ORDERS
    )

    def __post_init__(self) -> None:
        if len(self.orders) != MAX_ADVANCED_ORDERS:
            raise ValueError(f"orders must hold exactly {MAX_ADVANCED_ORDERS} entries")

    def add(self, order: PerpTriggerOrder) -> int:
        """Store an active copy of ``order`` in the first free slot and return its index."""
        for index, existing in enumerate(self.orders):
            if existing is None or not existing.is_active:
                self.orders[index] = dataclasses.replace(order, is_active=True)
                return index
        raise MangoError(MangoErrorCode.DEFAULT, "no free advanced order slot")

    def remove(self, order_index: int) -> bool:
        """Deactivate a slot; return True if it held an active order."""
        if not 0 <= order_index < MAX_ADVANCED_ORDERS:
            raise MangoError(MangoErrorCode.INVALID_PARAM, "advanced order index out of range")
        order = self.orders[order_index]
        if order is None or not order.is_active:
            return False
        self.orders[order_index] = dataclasses.replace(order, is_active=False)
        return True

    def active_orders(self) -> Iterator[tuple[int, PerpTriggerOrder]]:
        """Yield (index, order) for each active order."""
        for index, order in enumerate(self.orders):
            if order is not None and order.is_active:
                yield index, order