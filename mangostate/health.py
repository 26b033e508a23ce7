"""Active-asset tracking and incremental account health computation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from mangostate.account import MangoAccount
from mangostate.banks import MangoCache
from mangostate.errors import MangoError, MangoErrorCode
from mangostate.fixed import ZERO, I80F48
from mangostate.group import (
    MAX_PAIRS,
    QUOTE_INDEX,
    AssetType,
    HealthType,
    MangoGroup,
)
from mangostate.utils import OpenOrdersAmounts

Val = tuple[I80F48, I80F48]


def _weights(info, health_type: HealthType) -> tuple[I80F48, I80F48]:
    """Return (asset_weight, liab_weight) of a market for a health type."""
    if health_type == HealthType.MAINT:
        return info.maint_asset_weight, info.maint_liab_weight
    return info.init_asset_weight, info.init_liab_weight


def _weighted(val: Val, asset_weight: I80F48, liab_weight: I80F48) -> I80F48:
    base, quote = val
    weight = liab_weight if base.is_negative() else asset_weight
    return base * weight + quote


@dataclass
class UserActiveAssets:
    """Which spot and perp markets take part in an account's health."""

    spot: list[bool] = field(default_factory=lambda: [False] * MAX_PAIRS)
    perps: list[bool] = field(default_factory=lambda: [False] * MAX_PAIRS)

    def __post_init__(self) -> None:
        if len(self.spot) != MAX_PAIRS or len(self.perps) != MAX_PAIRS:
            raise ValueError(f"spot and perps must hold exactly {MAX_PAIRS} entries")

    @classmethod
    def from_account(
        cls,
        mango_group: MangoGroup,
        mango_account: MangoAccount,
        extra: Iterable[tuple[AssetType, int]] = (),
    ) -> "UserActiveAssets":
        """Derive active markets from balances and positions, plus ``extra`` ones."""
        assets = cls()
        for i in range(mango_group.num_oracles):
            assets.spot[i] = not mango_group.spot_markets[i].is_empty() and (
                mango_account.in_margin_basket[i]
                or not mango_account.deposits[i].is_zero()
                or not mango_account.borrows[i].is_zero()
            )
            assets.perps[i] = (
                not mango_group.perp_markets[i].is_empty()
                and mango_account.perp_accounts[i].is_active()
            )
        for asset_type, index in extra:
            if asset_type == AssetType.TOKEN:
                if index != QUOTE_INDEX:
                    assets.spot[index] = True
            else:
                assets.perps[index] = True
        return assets

    def merge(self, other: "UserActiveAssets") -> "UserActiveAssets":
        """Return the union of two sets of active assets."""
        return UserActiveAssets(
            spot=[a or b for a, b in zip(self.spot, other.spot)],
            perps=[a or b for a, b in zip(self.perps, other.perps)],
        )


class HealthCache:
    """Unweighted per-market values of an account with lazily computed healths."""

    def __init__(self, active_assets: UserActiveAssets) -> None:
        self.active_assets = active_assets
        self._spot: list[Val] = [(ZERO, ZERO)] * MAX_PAIRS
        self._perp: list[Val] = [(ZERO, ZERO)] * MAX_PAIRS
        self._quote = ZERO
        self._health: dict[HealthType, I80F48] = {}

    def init_vals(
        self,
        mango_group: MangoGroup,
        mango_cache: MangoCache,
        mango_account: MangoAccount,
        open_orders: Sequence[OpenOrdersAmounts | None] | None = None,
    ) -> None:
        """Compute the unweighted value of every active market."""
        self._quote = mango_account.get_net(
            mango_cache.root_bank_cache[QUOTE_INDEX], QUOTE_INDEX
        )
        for i in range(mango_group.num_oracles):
            price = mango_cache.price_cache[i].price
            if self.active_assets.spot[i]:
                self._spot[i] = mango_account.get_spot_val(
                    mango_cache.root_bank_cache[i],
                    price,
                    i,
                    open_orders[i] if open_orders is not None else None,
                )
            if self.active_assets.perps[i]:
                self._perp[i] = mango_account.perp_accounts[i].get_val(
                    mango_group.perp_markets[i], mango_cache.perp_market_cache[i], price
                )

    def get_health(self, mango_group: MangoGroup, health_type: HealthType) -> I80F48:
        """Weighted health; computed once per type, then kept up to date by the updates."""
        health_type = HealthType(health_type)
        cached = self._health.get(health_type)
        if cached is not None:
            return cached
        health = self._quote
        for i in range(mango_group.num_oracles):
            if self.active_assets.spot[i]:
                health += _weighted(
                    self._spot[i], *_weights(mango_group.spot_markets[i], health_type)
                )
            if self.active_assets.perps[i]:
                health += _weighted(
                    self._perp[i], *_weights(mango_group.perp_markets[i], health_type)
                )
        self._health[health_type] = health
        return health

    def update_quote(self, mango_cache: MangoCache, mango_account: MangoAccount) -> None:
        quote = mango_account.get_net(mango_cache.root_bank_cache[QUOTE_INDEX], QUOTE_INDEX)
        for health_type, health in self._health.items():
            self._health[health_type] = health + quote - self._quote
        self._quote = quote

    def update_spot_val(
        self,
        mango_group: MangoGroup,
        mango_cache: MangoCache,
        mango_account: MangoAccount,
        open_orders: OpenOrdersAmounts | None,
        market_index: int,
    ) -> None:
        """Recompute one spot market's value; ``market_index`` must not be the quote."""
        new_val = mango_account.get_spot_val(
            mango_cache.root_bank_cache[market_index],
            mango_cache.price_cache[market_index].price,
            market_index,
            open_orders,
        )
        info = mango_group.spot_markets[market_index]
        self._apply_change(info, self._spot[market_index], new_val)
        self._spot[market_index] = new_val

    def update_token_val(
        self,
        mango_group: MangoGroup,
        mango_cache: MangoCache,
        mango_account: MangoAccount,
        open_orders: Sequence[OpenOrdersAmounts | None] | None,
        token_index: int,
    ) -> None:
        """Update the quote balance or one spot market, whichever ``token_index`` is."""
        if token_index == QUOTE_INDEX:
            self.update_quote(mango_cache, mango_account)
            return
        self.update_spot_val(
            mango_group,
            mango_cache,
            mango_account,
            open_orders[token_index] if open_orders is not None else None,
            token_index,
        )

    def get_health_after_sim_perp(
        self,
        mango_group: MangoGroup,
        mango_cache: MangoCache,
        mango_account: MangoAccount,
        market_index: int,
        health_type: HealthType,
        taker_base: int,
        taker_quote: int,
        bids_quantity: int,
        asks_quantity: int,
    ) -> I80F48:
        """Health after simulated changes to one perp market's pending trades and orders."""
        health_type = HealthType(health_type)
        new_val = mango_account.perp_accounts[market_index].sim_get_val(
            mango_group.perp_markets[market_index],
            mango_cache.perp_market_cache[market_index],
            mango_cache.price_cache[market_index].price,
            taker_base,
            taker_quote,
            bids_quantity,
            asks_quantity,
        )
        weights = _weights(mango_group.perp_markets[market_index], health_type)
        health = self._health.get(health_type)
        if health is None:
            raise MangoError(MangoErrorCode.DEFAULT, "health has not been computed")
        return (
            health
            + _weighted(new_val, *weights)
            - _weighted(self._perp[market_index], *weights)
        )

    def update_perp_val(
        self,
        mango_group: MangoGroup,
        mango_cache: MangoCache,
        mango_account: MangoAccount,
        market_index: int,
    ) -> None:
        new_val = mango_account.perp_accounts[market_index].get_val(
            mango_group.perp_markets[market_index],
            mango_cache.perp_market_cache[market_index],
            mango_cache.price_cache[market_index].price,
        )
        info = mango_group.perp_markets[market_index]
        self._apply_change(info, self._perp[market_index], new_val)
        self._perp[market_index] = new_val

    def _apply_change(self, info, prev_val: Val, new_val: Val) -> None:
        for health_type, health in self._health.items():
            weights = _weights(info, health_type)
            self._health[health_type] = (
                health + _weighted(new_val, *weights) - _weighted(prev_val, *weights)
            )