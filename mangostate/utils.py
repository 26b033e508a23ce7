"""Order sides, open-orders splitting and fixed-point exponentiation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from mangostate.fixed import ONE, I80F48


class Side(IntEnum):
    BID = 0
    ASK = 1


def invert_side(side: Side) -> Side:
    return Side.ASK if side == Side.BID else Side.BID


@dataclass(frozen=True)
class OpenOrdersAmounts:
    """Native token amounts held by a spot open-orders account."""

    native_pc_free: int = 0
    native_pc_total: int = 0
    native_coin_free: int = 0
    native_coin_total: int = 0
    referrer_rebates_accrued: int = 0

    def __post_init__(self) -> None:
        amounts = (
            self.native_pc_free,
            self.native_pc_total,
            self.native_coin_free,
            self.native_coin_total,
            self.referrer_rebates_accrued,
        )
        if any(amount < 0 for amount in amounts):
            raise ValueError("open orders amounts must be non-negative")
        if self.native_pc_free > self.native_pc_total:
            raise ValueError("free quote exceeds total quote")
        if self.native_coin_free > self.native_coin_total:
            raise ValueError("free base exceeds total base")


def split_open_orders(
    open_orders: OpenOrdersAmounts,
) -> tuple[I80F48, I80F48, I80F48, I80F48]:
    """Return (quote_free, quote_locked, base_free, base_locked)."""
    return (
        I80F48.from_num(open_orders.native_pc_free + open_orders.referrer_rebates_accrued),
        I80F48.from_num(open_orders.native_pc_total - open_orders.native_pc_free),
        I80F48.from_num(open_orders.native_coin_free),
        I80F48.from_num(open_orders.native_coin_total - open_orders.native_coin_free),
    )


def pow_i80f48(base: I80F48, exp: int) -> I80F48:
    """Raise ``base`` to an unsigned 8-bit power by repeated squaring."""
    if not 0 <= exp <= 255:
        raise ValueError("exponent must be in 0..=255")
    result = ONE
    while True:
        if exp & 1:
            result = result * base
        exp >>= 1
        if exp == 0:
            return result
        base = base * base