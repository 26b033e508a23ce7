"""Lending banks, interest indexes and the shared price/funding cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from mangostate.errors import MangoError, MangoErrorCode, check
from mangostate.fixed import ONE, ZERO, I80F48
from mangostate.group import (
    DEFAULT_PUBKEY,
    INDEX_START,
    MAX_NODE_BANKS,
    MAX_PAIRS,
    MAX_TOKENS,
    QUOTE_INDEX,
    YEAR,
    DataType,
    MangoGroup,
    MetaData,
)


@dataclass
class PriceCache:
    """Oracle price in native quote per native base."""

    price: I80F48 = ZERO
    last_update: int = 0

    def check_valid(self, mango_group: MangoGroup, now_ts: int) -> None:
        check(
            self.last_update >= now_ts - mango_group.valid_interval,
            MangoErrorCode.INVALID_PRICE_CACHE,
        )


@dataclass
class RootBankCache:
    deposit_index: I80F48 = ZERO
    borrow_index: I80F48 = ZERO
    last_update: int = 0

    def check_valid(self, mango_group: MangoGroup, now_ts: int) -> None:
        check(
            self.last_update >= now_ts - mango_group.valid_interval * 2,
            MangoErrorCode.INVALID_ROOT_BANK_CACHE,
        )


@dataclass
class PerpMarketCache:
    long_funding: I80F48 = ZERO
    short_funding: I80F48 = ZERO
    last_update: int = 0

    def check_valid(self, mango_group: MangoGroup, now_ts: int) -> None:
        check(
            self.last_update >= now_ts - mango_group.valid_interval,
            MangoErrorCode.INVALID_PERP_MARKET_CACHE,
        )


@dataclass
class MangoCache:
    """Cached prices, bank indexes and funding for all markets of a group."""

    meta_data: MetaData = field(
        default_factory=lambda: MetaData(DataType.MANGO_CACHE, 0, True)
    )
    price_cache: list[PriceCache] = field(
        default_factory=lambda: [PriceCache() for _ in range(MAX_PAIRS)]
    )
    root_bank_cache: list[RootBankCache] = field(
        default_factory=lambda: [RootBankCache() for _ in range(MAX_TOKENS)]
    )
    perp_market_cache: list[PerpMarketCache] = field(
        default_factory=lambda: [PerpMarketCache() for _ in range(MAX_PAIRS)]
    )

    def check_valid(self, mango_group: MangoGroup, active_assets, now_ts: int) -> None:
        """Raise MangoError if any cache entry needed by ``active_assets`` is stale."""
        for i in range(mango_group.num_oracles):
            spot = active_assets.spot[i]
            perp = active_assets.perps[i]
            if spot or perp:
                self.price_cache[i].check_valid(mango_group, now_ts)
            if spot:
                self.root_bank_cache[i].check_valid(mango_group, now_ts)
            if perp:
                self.perp_market_cache[i].check_valid(mango_group, now_ts)
        self.root_bank_cache[QUOTE_INDEX].check_valid(mango_group, now_ts)

    def get_price(self, i: int) -> I80F48:
        if i == QUOTE_INDEX:
            return ONE
        return self.price_cache[i].price


def _math(operation) -> I80F48:
    try:
        return operation()
    except OverflowError as exc:
        raise MangoError(MangoErrorCode.DEFAULT) from exc


@dataclass
class NodeBank:
    """One shard of a token's deposits and borrows, in index-adjusted units."""

    meta_data: MetaData = field(default_factory=lambda: MetaData(DataType.NODE_BANK, 0, True))
    deposits: I80F48 = ZERO
    borrows: I80F48 = ZERO
    vault: bytes = DEFAULT_PUBKEY

    def checked_add_borrow(self, v: I80F48) -> None:
        self.borrows = _math(lambda: self.borrows + v)

    def checked_sub_borrow(self, v: I80F48) -> None:
        self.borrows = _math(lambda: self.borrows - v)

    def checked_add_deposit(self, v: I80F48) -> None:
        self.deposits = _math(lambda: self.deposits + v)

    def checked_sub_deposit(self, v: I80F48) -> None:
        self.deposits = _math(lambda: self.deposits - v)

    def has_valid_deposits_borrows(self, root_bank_cache: RootBankCache) -> bool:
        return self.get_total_native_deposit(root_bank_cache) >= self.get_total_native_borrow(
            root_bank_cache
        )

    def get_total_native_borrow(self, root_bank_cache: RootBankCache) -> int:
        """Native borrows, rounded up."""
        native = (self.borrows * root_bank_cache.borrow_index).ceil().to_int()
        check(native >= 0, MangoErrorCode.MATH_ERROR)
        return native

    def get_total_native_deposit(self, root_bank_cache: RootBankCache) -> int:
        """Native deposits, rounded down."""
        native = (self.deposits * root_bank_cache.deposit_index).floor().to_int()
        check(native >= 0, MangoErrorCode.MATH_ERROR)
        return native

    def _check_loaded(self) -> None:
        check(self.meta_data.is_initialized, MangoErrorCode.INVALID_ACCOUNT)
        check(self.meta_data.data_type == DataType.NODE_BANK, MangoErrorCode.INVALID_ACCOUNT)


@dataclass
class RootBank:
    """Lending and borrowing state for one token across its node banks."""

    meta_data: MetaData = field(default_factory=lambda: MetaData(DataType.ROOT_BANK, 0, False))
    optimal_util: I80F48 = ZERO
    optimal_rate: I80F48 = ZERO
    max_rate: I80F48 = ZERO
    num_node_banks: int = 0
    node_banks: list[bytes] = field(default_factory=lambda: [DEFAULT_PUBKEY] * MAX_NODE_BANKS)
    deposit_index: I80F48 = ZERO
    borrow_index: I80F48 = ZERO
    last_updated: int = 0

    def __post_init__(self) -> None:
        if len(self.node_banks) != MAX_NODE_BANKS:
            raise ValueError(f"node_banks must hold exactly {MAX_NODE_BANKS} entries")

    @classmethod
    def create(
        cls,
        node_bank_key: bytes,
        optimal_util: I80F48,
        optimal_rate: I80F48,
        max_rate: I80F48,
    ) -> "RootBank":
        """Build an initialised root bank with a single node bank."""
        bank = cls(meta_data=MetaData(DataType.ROOT_BANK, 0, True))
        bank.node_banks[0] = node_bank_key
        bank.num_node_banks = 1
        bank.deposit_index = INDEX_START
        bank.borrow_index = INDEX_START
        bank.set_rate_params(optimal_util, optimal_rate, max_rate)
        return bank

    def set_rate_params(
        self, optimal_util: I80F48, optimal_rate: I80F48, max_rate: I80F48
    ) -> None:
        check(ZERO < optimal_util < ONE, MangoErrorCode.INVALID_PARAM)
        check(optimal_rate >= ZERO, MangoErrorCode.INVALID_PARAM)
        check(max_rate >= ZERO, MangoErrorCode.INVALID_PARAM)
        self.optimal_util = optimal_util
        self.optimal_rate = optimal_rate
        self.max_rate = max_rate

    def find_node_bank_index(self, node_bank_pk: bytes) -> int | None:
        return next((i for i, pk in enumerate(self.node_banks) if pk == node_bank_pk), None)

    def update_index(self, node_banks: Iterable[NodeBank], now_ts: int) -> None:
        """Accrue interest into the deposit and borrow indexes up to ``now_ts``."""
        native_deposits = ZERO
        native_borrows = ZERO
        for node_bank in node_banks:
            node_bank._check_loaded()
            native_deposits += node_bank.deposits * self.deposit_index
            native_borrows += node_bank.borrows * self.borrow_index

        utilization = native_borrows.checked_div(native_deposits)
        if utilization is None:
            utilization = ZERO

        if utilization > self.optimal_util:
            extra_util = utilization - self.optimal_util
            slope = (self.max_rate - self.optimal_rate) / (ONE - self.optimal_util)
            interest_rate = self.optimal_rate + slope * extra_util
        else:
            slope = self.optimal_rate / self.optimal_util
            interest_rate = slope * utilization

        elapsed = now_ts - self.last_updated
        check(elapsed >= 0, MangoErrorCode.MATH_ERROR)
        borrow_interest = interest_rate * I80F48.from_num(elapsed)
        deposit_interest = borrow_interest * utilization

        self.last_updated = now_ts
        if borrow_interest <= ZERO or deposit_interest <= ZERO:
            return
        self.borrow_index = self.borrow_index * borrow_interest / YEAR + self.borrow_index
        self.deposit_index = self.deposit_index * deposit_interest / YEAR + self.deposit_index

    def socialize_loss(
        self,
        token_index: int,
        mango_cache: MangoCache,
        bankrupt_account,
        node_banks: Sequence[tuple[bytes, NodeBank]],
    ) -> tuple[I80F48, I80F48]:
        """Spread a bankrupt account's borrows over lenders.

        ``node_banks`` pairs each node bank key with its state, in the order
        recorded on this root bank. Returns (native_loss, percentage_loss).
        """
        check(len(node_banks) >= self.num_node_banks, MangoErrorCode.INVALID_NODE_BANK)
        banks = list(node_banks)[: self.num_node_banks]

        static_deposits = ZERO
        for expected_key, (key, node_bank) in zip(self.node_banks, banks):
            check(key == expected_key, MangoErrorCode.INVALID_NODE_BANK)
            node_bank._check_loaded()
            static_deposits += node_bank.deposits

        native_deposits = static_deposits * self.deposit_index
        loss = bankrupt_account.borrows[token_index]
        native_loss = loss * self.borrow_index

        percentage_loss = native_loss.checked_div(native_deposits)
        if percentage_loss is None:
            raise MangoError(MangoErrorCode.MATH_ERROR)
        self.deposit_index = self.deposit_index - percentage_loss * self.deposit_index

        mango_cache.root_bank_cache[token_index].deposit_index = self.deposit_index

        for _, node_bank in banks:
            node_loss = min(loss, node_bank.borrows)
            bankrupt_account.checked_sub_borrow(token_index, node_loss)
            node_bank.checked_sub_borrow(node_loss)
            loss -= node_loss
            if loss.is_zero():
                break
        return native_loss, percentage_loss