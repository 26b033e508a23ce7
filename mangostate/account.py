"""Margin accounts: token balances, the spot margin basket and perp open orders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from mangostate.banks import MangoCache, RootBankCache
from mangostate.errors import MangoError, MangoErrorCode, check
from mangostate.fixed import ZERO, I80F48
from mangostate.group import (
    DEFAULT_PUBKEY,
    DUST_THRESHOLD,
    FREE_ORDER_SLOT,
    INFO_LEN,
    MAX_NUM_IN_MARGIN_BASKET,
    MAX_PAIRS,
    MAX_PERP_OPEN_ORDERS,
    MAX_TOKENS,
    QUOTE_INDEX,
    DataType,
    HealthType,
    MangoGroup,
    MetaData,
)
from mangostate.perp import PerpAccount
from mangostate.utils import OpenOrdersAmounts, Side, split_open_orders


@dataclass(frozen=True)
class PerpOrder:
    """An order resting on a perp book, as far as the owning account needs to know."""

    key: int
    owner_slot: int
    quantity: int
    client_order_id: int = 0


def _math(operation) -> I80F48:
    try:
        return operation()
    except (OverflowError, ZeroDivisionError) as exc:
        raise MangoError(MangoErrorCode.MATH_ERROR) from exc


def _account_meta() -> MetaData:
    return MetaData(DataType.MANGO_ACCOUNT, 0, True)


@dataclass
class MangoAccount:
    """A user's margin account within a group."""

    meta_data: MetaData = field(default_factory=_account_meta)
    mango_group: bytes = DEFAULT_PUBKEY
    owner: bytes = DEFAULT_PUBKEY
    in_margin_basket: list[bool] = field(default_factory=lambda: [False] * MAX_PAIRS)
    num_in_margin_basket: int = 0
    deposits: list[I80F48] = field(default_factory=lambda: [ZERO] * MAX_TOKENS)
    borrows: list[I80F48] = field(default_factory=lambda: [ZERO] * MAX_TOKENS)
    spot_open_orders: list[bytes] = field(default_factory=lambda: [DEFAULT_PUBKEY] * MAX_PAIRS)
    perp_accounts: list[PerpAccount] = field(
        default_factory=lambda: [PerpAccount() for _ in range(MAX_PAIRS)]
    )
    order_market: list[int] = field(
        default_factory=lambda: [FREE_ORDER_SLOT] * MAX_PERP_OPEN_ORDERS
    )
    order_side: list[Side] = field(default_factory=lambda: [Side.BID] * MAX_PERP_OPEN_ORDERS)
    orders: list[int] = field(default_factory=lambda: [0] * MAX_PERP_OPEN_ORDERS)
    client_order_ids: list[int] = field(default_factory=lambda: [0] * MAX_PERP_OPEN_ORDERS)
    msrm_amount: int = 0
    being_liquidated: bool = False
    is_bankrupt: bool = False
    info: bytes = bytes(INFO_LEN)
    advanced_orders_key: bytes = DEFAULT_PUBKEY

    def __post_init__(self) -> None:
        for name, expected in (
            ("in_margin_basket", MAX_PAIRS),
            ("deposits", MAX_TOKENS),
            ("borrows", MAX_TOKENS),
            ("spot_open_orders", MAX_PAIRS),
            ("perp_accounts", MAX_PAIRS),
            ("order_market", MAX_PERP_OPEN_ORDERS),
            ("order_side", MAX_PERP_OPEN_ORDERS),
            ("orders", MAX_PERP_OPEN_ORDERS),
            ("client_order_ids", MAX_PERP_OPEN_ORDERS),
        ):
            if len(getattr(self, name)) != expected:
                raise ValueError(f"{name} must hold exactly {expected} entries")
        if len(self.info) != INFO_LEN:
            raise ValueError(f"info must be exactly {INFO_LEN} bytes")

    # Token balances

    def get_native_deposit(self, root_bank_cache: RootBankCache, token_i: int) -> I80F48:
        return _math(lambda: self.deposits[token_i] * root_bank_cache.deposit_index)

    def get_native_borrow(self, root_bank_cache: RootBankCache, token_i: int) -> I80F48:
        return _math(lambda: self.borrows[token_i] * root_bank_cache.borrow_index)

    def _check_one_sided(self, token_i: int) -> None:
        check(
            self.borrows[token_i].is_zero() or self.deposits[token_i].is_zero(),
            MangoErrorCode.MATH_ERROR,
        )

    def checked_add_borrow(self, token_i: int, v: I80F48) -> None:
        self.borrows[token_i] = _math(lambda: self.borrows[token_i] + v)
        self._check_one_sided(token_i)

    def checked_sub_borrow(self, token_i: int, v: I80F48) -> None:
        self.borrows[token_i] = _math(lambda: self.borrows[token_i] - v)
        check(not self.borrows[token_i].is_negative(), MangoErrorCode.MATH_ERROR)
        self._check_one_sided(token_i)

    def checked_add_deposit(self, token_i: int, v: I80F48) -> None:
        self.deposits[token_i] = _math(lambda: self.deposits[token_i] + v)
        self._check_one_sided(token_i)

    def checked_sub_deposit(self, token_i: int, v: I80F48) -> None:
        self.deposits[token_i] = _math(lambda: self.deposits[token_i] - v)
        check(not self.deposits[token_i].is_negative(), MangoErrorCode.MATH_ERROR)
        self._check_one_sided(token_i)

    def get_net(self, bank_cache: RootBankCache, token_index: int) -> I80F48:
        """Native deposits, or negative native borrows, of one token."""
        if self.deposits[token_index].is_positive():
            return self.deposits[token_index] * bank_cache.deposit_index
        if self.borrows[token_index].is_positive():
            return -(self.borrows[token_index] * bank_cache.borrow_index)
        return ZERO

    def get_spot_val(
        self,
        bank_cache: RootBankCache,
        price: I80F48,
        market_index: int,
        open_orders: OpenOrdersAmounts | None,
    ) -> tuple[I80F48, I80F48]:
        """Return unweighted (base_val, quote_val), assuming the worse side of open orders fills."""
        base_net = self.get_net(bank_cache, market_index)
        if not self.in_margin_basket[market_index] or open_orders is None:
            return base_net * price, ZERO

        quote_free, quote_locked, base_free, base_locked = split_open_orders(open_orders)
        bids_base_net = base_net + _math(lambda: quote_locked / price) + base_free + base_locked
        asks_base_net = base_net + base_free

        if abs(bids_base_net) > abs(asks_base_net):
            return bids_base_net * price, quote_free
        return asks_base_net * price, base_locked * price + quote_free + quote_locked

    # Spot margin basket

    def add_to_basket(self, market_index: int) -> None:
        """Add a market to the margin basket; call whenever a spot order is placed."""
        if self.num_in_margin_basket == MAX_NUM_IN_MARGIN_BASKET:
            check(self.in_margin_basket[market_index], MangoErrorCode.MARGIN_BASKET_FULL)
        elif not self.in_margin_basket[market_index]:
            self.in_margin_basket[market_index] = True
            self.num_in_margin_basket += 1

    def update_basket(self, market_index: int, open_orders: OpenOrdersAmounts) -> None:
        """Bring basket membership in line with the market's open-orders balances."""
        is_empty = (
            open_orders.native_pc_total == 0
            and open_orders.native_coin_total == 0
            and open_orders.referrer_rebates_accrued == 0
        )
        if self.in_margin_basket[market_index] and is_empty:
            self.in_margin_basket[market_index] = False
            self.num_in_margin_basket -= 1
        elif not self.in_margin_basket[market_index] and not is_empty:
            check(
                self.num_in_margin_basket < MAX_NUM_IN_MARGIN_BASKET,
                MangoErrorCode.MARGIN_BASKET_FULL,
            )
            self.in_margin_basket[market_index] = True
            self.num_in_margin_basket += 1

    # Bankruptcy

    def check_enter_bankruptcy(
        self,
        mango_group: MangoGroup,
        open_orders: Sequence[OpenOrdersAmounts | None],
    ) -> bool:
        """True if the account holds no assets beyond dust and should enter bankruptcy."""
        if self.deposits[QUOTE_INDEX] > DUST_THRESHOLD:
            return False
        for i in range(mango_group.num_oracles):
            if self.deposits[i] > DUST_THRESHOLD:
                return False
            oo = open_orders[i]
            if oo is not None and (oo.native_pc_total > 0 or oo.native_coin_total > 0):
                return False
            pa = self.perp_accounts[i]
            if pa.quote_position.is_positive() or pa.base_position != 0:
                return False
        return True

    def check_exit_bankruptcy(self, mango_group: MangoGroup) -> bool:
        """True if quote borrows are dust and no perp position is negative."""
        if self.borrows[QUOTE_INDEX] > DUST_THRESHOLD:
            return False
        for pa in self.perp_accounts[: mango_group.num_oracles]:
            if pa.quote_position.is_negative() or pa.base_position != 0:
                return False
        return True

    # Perp open orders

    def next_order_slot(self) -> int | None:
        return next(
            (i for i, market in enumerate(self.order_market) if market == FREE_ORDER_SLOT),
            None,
        )

    def add_order(self, market_index: int, side: Side, order: PerpOrder) -> None:
        pa = self.perp_accounts[market_index]
        if side == Side.BID:
            pa.bids_quantity += order.quantity
        else:
            pa.asks_quantity += order.quantity
        slot = order.owner_slot
        self.order_market[slot] = market_index
        self.order_side[slot] = side
        self.orders[slot] = order.key
        self.client_order_ids[slot] = order.client_order_id

    def remove_order(self, slot: int, quantity: int) -> None:
        check(self.order_market[slot] != FREE_ORDER_SLOT, MangoErrorCode.DEFAULT)
        pa = self.perp_accounts[self.order_market[slot]]
        if self.order_side[slot] == Side.BID:
            pa.bids_quantity -= quantity
        else:
            pa.asks_quantity -= quantity
        self.order_market[slot] = FREE_ORDER_SLOT
        self.order_side[slot] = Side.BID
        self.orders[slot] = 0
        self.client_order_ids[slot] = 0

    def find_order_with_client_id(
        self, market_index: int, client_id: int
    ) -> tuple[int, Side] | None:
        for market, cid, order_id, side in zip(
            self.order_market, self.client_order_ids, self.orders, self.order_side
        ):
            if market == market_index and cid == client_id:
                return order_id, side
        return None

    def find_order_side(self, market_index: int, order_id: int) -> Side | None:
        for market, oid, side in zip(self.order_market, self.orders, self.order_side):
            if market == market_index and oid == order_id:
                return side
        return None

    def max_withdrawable(
        self,
        group: MangoGroup,
        mango_cache: MangoCache,
        token_index: int,
        health: I80F48,
    ) -> int:
        """Largest native amount of a token that can be withdrawn without borrowing."""
        if not (health.is_positive() and self.deposits[token_index].is_positive()):
            return 0
        price = mango_cache.get_price(token_index)
        weight = group.get_token_asset_weight(token_index, HealthType.INIT)
        health_implied = _math(lambda: health / (price * weight)).floor()
        native_deposits = self.get_native_deposit(
            mango_cache.root_bank_cache[token_index], token_index
        ).floor()
        result = min(native_deposits, health_implied).to_int()
        check(result >= 0, MangoErrorCode.MATH_ERROR)
        return result