"""Perpetual futures markets, per-account perp positions and liquidity incentives."""

from __future__ import annotations

from dataclasses import dataclass, field

from mangostate.banks import MangoCache, PerpMarketCache
from mangostate.errors import MangoError, MangoErrorCode, check
from mangostate.fixed import ONE, ZERO, I80F48
from mangostate.group import (
    DAY,
    DEFAULT_PUBKEY,
    DataType,
    MangoGroup,
    MetaData,
    PerpMarketInfo,
)
from mangostate.utils import Side, pow_i80f48

MAX_RATE_ADJ = I80F48.from_num(4)
MIN_RATE_ADJ = I80F48.from_num("0.25")
MAX_FUNDING = I80F48.from_num("0.05")
MIN_FUNDING = I80F48.from_num("-0.05")
MAX_INCENTIVE_TIME = 864_000

_U64_MASK = (1 << 64) - 1


def _elapsed(later: int, earlier: int) -> int:
    """Difference of two unsigned timestamps; raise if it would go negative."""
    delta = later - earlier
    check(delta >= 0, MangoErrorCode.MATH_ERROR)
    return delta


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


@dataclass
class LiquidityMiningInfo:
    """Parameters and running state of a market's maker incentives."""

    rate: I80F48 = ZERO
    max_depth_bps: I80F48 = ZERO
    period_start: int = 0
    target_period_length: int = 0
    mngo_left: int = 0
    mngo_per_period: int = 0


def _perp_market_meta() -> MetaData:
    return MetaData(DataType.PERP_MARKET, 0, True)


@dataclass
class PerpMarket:
    """Top-level state of one perpetual futures market."""

    meta_data: MetaData = field(default_factory=_perp_market_meta)
    mango_group: bytes = DEFAULT_PUBKEY
    bids: bytes = DEFAULT_PUBKEY
    asks: bytes = DEFAULT_PUBKEY
    event_queue: bytes = DEFAULT_PUBKEY
    quote_lot_size: int = 0
    base_lot_size: int = 0
    long_funding: I80F48 = ZERO
    short_funding: I80F48 = ZERO
    open_interest: int = 0
    last_updated: int = 0
    seq_num: int = 0
    fees_accrued: I80F48 = ZERO
    liquidity_mining_info: LiquidityMiningInfo = field(default_factory=LiquidityMiningInfo)
    mngo_vault: bytes = DEFAULT_PUBKEY

    def gen_order_id(self, side: Side, price: int) -> int:
        """Return a new order id: price in the upper 64 bits, sequence in the lower."""
        self.seq_num = (self.seq_num + 1) & _U64_MASK
        upper = price << 64
        if side == Side.BID:
            return upper | (~self.seq_num & _U64_MASK)
        return upper | self.seq_num

    def update_funding(
        self,
        mango_group: MangoGroup,
        best_bid: int | None,
        best_ask: int | None,
        mango_cache: MangoCache,
        market_index: int,
        now_ts: int,
    ) -> None:
        """Accrue funding from the book mid price against the cached index price."""
        price_cache = mango_cache.price_cache[market_index]
        price_cache.check_valid(mango_group, now_ts)
        index_price = price_cache.price

        if best_bid is not None and best_ask is not None:
            book_price = self.lot_to_native_price(_trunc_div(best_bid + best_ask, 2))
            diff = (book_price / index_price - ONE).clamp(MIN_FUNDING, MAX_FUNDING)
        elif best_bid is not None:
            diff = MAX_FUNDING
        elif best_ask is not None:
            diff = MIN_FUNDING
        else:
            diff = ZERO

        time_factor = I80F48.from_num(_elapsed(now_ts, self.last_updated)) / DAY
        funding_delta = (
            index_price * diff * I80F48.from_num(self.base_lot_size) * time_factor
        )

        self.long_funding += funding_delta
        self.short_funding += funding_delta
        self.last_updated = now_ts

    def lot_to_native_price(self, price: int) -> I80F48:
        """Convert a book price in lots to native quote per native base."""
        return (
            I80F48.from_num(price)
            * I80F48.from_num(self.quote_lot_size)
            / I80F48.from_num(self.base_lot_size)
        )

    def socialize_loss(self, account: "PerpAccount", cache: PerpMarketCache) -> I80F48:
        """Spread the account's quote position over all open interest."""
        if self.open_interest == 0:
            socialized_loss = ZERO
        else:
            socialized_loss = account.quote_position.checked_div(
                I80F48.from_num(self.open_interest)
            )
            if socialized_loss is None:
                raise MangoError(MangoErrorCode.MATH_ERROR)
        account.quote_position = ZERO
        self.long_funding -= socialized_loss
        self.short_funding += socialized_loss

        cache.short_funding = self.short_funding
        cache.long_funding = self.long_funding
        return socialized_loss


@dataclass
class PerpAccount:
    """An account's position, open orders and pending fills in one perp market."""

    base_position: int = 0
    quote_position: I80F48 = ZERO
    long_settled_funding: I80F48 = ZERO
    short_settled_funding: I80F48 = ZERO
    bids_quantity: int = 0
    asks_quantity: int = 0
    taker_base: int = 0
    taker_quote: int = 0
    mngo_accrued: int = 0

    def add_taker_trade(self, base_change: int, quote_change: int) -> None:
        """Record a matched taker trade not yet processed from the event queue."""
        self.taker_base += base_change
        self.taker_quote += quote_change

    def remove_taker_trade(self, base_change: int, quote_change: int) -> None:
        """Forget a taker trade once its fill has been processed."""
        self.taker_base -= base_change
        self.taker_quote -= quote_change

    def _convert_points(
        self, lmi: LiquidityMiningInfo, time_final: int, points: I80F48
    ) -> None:
        points_in_period = I80F48.from_num(lmi.mngo_left).checked_div(lmi.rate)
        if points_in_period is None:
            raise MangoError(MangoErrorCode.MATH_ERROR)

        if points >= points_in_period:
            self.mngo_accrued += lmi.mngo_left
            points -= points_in_period

            elapsed = I80F48.from_num(_elapsed(time_final, lmi.period_start))
            rate_adj = elapsed.checked_div(I80F48.from_num(lmi.target_period_length))
            if rate_adj is None:
                raise MangoError(MangoErrorCode.MATH_ERROR)
            rate_adj = rate_adj.clamp(MIN_RATE_ADJ, MAX_RATE_ADJ)

            lmi.rate = lmi.rate * rate_adj
            lmi.period_start = time_final
            lmi.mngo_left = lmi.mngo_per_period

        earned_raw = points * lmi.rate
        check(not earned_raw.is_negative(), MangoErrorCode.MATH_ERROR)
        mngo_earned = min(earned_raw.to_int(), lmi.mngo_per_period)
        check(mngo_earned <= lmi.mngo_left, MangoErrorCode.MATH_ERROR)

        self.mngo_accrued += mngo_earned
        lmi.mngo_left -= mngo_earned

    def apply_size_incentives(
        self,
        perp_market: PerpMarket,
        best_initial: int,
        best_final: int,
        time_initial: int,
        time_final: int,
        quantity: int,
    ) -> None:
        """Reward resting size that was within the top contracts of the book."""
        lmi = perp_market.liquidity_mining_info
        if lmi.rate.is_zero() or lmi.mngo_per_period == 0:
            return

        time_factor = I80F48.from_num(
            min(_elapsed(time_final, time_initial), MAX_INCENTIVE_TIME)
        )

        max_depth_size = lmi.max_depth_bps
        size_dist = I80F48.from_num(max(best_final, best_initial))
        size_dist_factor = max_depth_size - size_dist
        if not size_dist_factor.is_positive():
            return

        quantity_fixed = min(I80F48.from_num(quantity), size_dist_factor)
        exp = perp_market.meta_data.extra_info[0]
        lm_size_shift = perp_market.meta_data.extra_info[1]
        size_dist_factor = size_dist_factor >> lm_size_shift
        points = pow_i80f48(size_dist_factor, exp) * time_factor * quantity_fixed

        self._convert_points(lmi, time_final, points)

    def apply_price_incentives(
        self,
        perp_market: PerpMarket,
        side: Side,
        price: int,
        best_initial: int,
        best_final: int,
        time_initial: int,
        time_final: int,
        quantity: int,
    ) -> None:
        """Reward resting orders by their distance from the best price."""
        lmi = perp_market.liquidity_mining_info
        if lmi.rate.is_zero() or lmi.mngo_per_period == 0:
            return

        best = max(best_initial, best_final) if side == Side.BID else min(best_initial, best_final)

        time_factor = I80F48.from_num(
            min(_elapsed(time_final, time_initial), MAX_INCENTIVE_TIME)
        )
        quantity_fixed = I80F48.from_num(quantity)

        if lmi.max_depth_bps.is_zero():
            if best != price:
                return
            points = time_factor * quantity_fixed
        else:
            dist_bps = I80F48.from_num(abs(best - price) * 10_000) / I80F48.from_num(best)
            dist_factor = max(lmi.max_depth_bps - dist_bps, ZERO)
            points = (
                pow_i80f48(dist_factor, perp_market.meta_data.extra_info[0])
                * time_factor
                * quantity_fixed
            )

        check(not points.is_negative(), MangoErrorCode.MATH_ERROR)
        self._convert_points(lmi, time_final, points)

    def change_base_position(self, perp_market: PerpMarket, base_change: int) -> None:
        """Move the base position and keep the market's open interest in step."""
        start = self.base_position
        self.base_position += base_change
        perp_market.open_interest += abs(self.base_position) - abs(start)

    def _unsettled_funding(self, cache: PerpMarketCache) -> I80F48:
        if self.base_position > 0:
            return (cache.long_funding - self.long_settled_funding) * I80F48.from_num(
                self.base_position
            )
        if self.base_position < 0:
            return (cache.short_funding - self.short_settled_funding) * I80F48.from_num(
                self.base_position
            )
        return ZERO

    def settle_funding(self, cache: PerpMarketCache) -> None:
        """Move unrealised funding payments into the quote position."""
        self.quote_position -= self._unsettled_funding(cache)
        self.long_settled_funding = cache.long_funding
        self.short_settled_funding = cache.short_funding

    def get_quote_position(self, pmc: PerpMarketCache) -> I80F48:
        """Quote position adjusted for unsettled funding."""
        return self.quote_position - self._unsettled_funding(pmc)

    def _value(
        self,
        pmi: PerpMarketInfo,
        pmc: PerpMarketCache,
        price: I80F48,
        taker_base: int,
        taker_quote: int,
        bids_quantity: int,
        asks_quantity: int,
    ) -> tuple[I80F48, I80F48]:
        bids_base_net = self.base_position + taker_base + bids_quantity
        asks_base_net = self.base_position + taker_base - asks_quantity
        quote_base = self.get_quote_position(pmc) + I80F48.from_num(
            taker_quote * pmi.quote_lot_size
        )
        if abs(bids_base_net) > abs(asks_base_net):
            base = I80F48.from_num(bids_base_net * pmi.base_lot_size) * price
            quote = quote_base - I80F48.from_num(bids_quantity * pmi.base_lot_size) * price
        else:
            base = I80F48.from_num(asks_base_net * pmi.base_lot_size) * price
            quote = quote_base + I80F48.from_num(asks_quantity * pmi.base_lot_size) * price
        return base, quote

    def get_val(
        self, pmi: PerpMarketInfo, pmc: PerpMarketCache, price: I80F48
    ) -> tuple[I80F48, I80F48]:
        """Return unweighted (base_val, quote_val) in the worst case for open orders."""
        return self._value(
            pmi,
            pmc,
            price,
            self.taker_base,
            self.taker_quote,
            self.bids_quantity,
            self.asks_quantity,
        )

    def sim_get_val(
        self,
        pmi: PerpMarketInfo,
        pmc: PerpMarketCache,
        price: I80F48,
        taker_base: int,
        taker_quote: int,
        bids_quantity: int,
        asks_quantity: int,
    ) -> tuple[I80F48, I80F48]:
        """Like get_val, after adding the given changes to pending trades and orders."""
        return self._value(
            pmi,
            pmc,
            price,
            self.taker_base + taker_base,
            self.taker_quote + taker_quote,
            self.bids_quantity + bids_quantity,
            self.asks_quantity + asks_quantity,
        )

    def is_active(self) -> bool:
        return (
            self.base_position != 0
            or not self.quote_position.is_zero()
            or self.bids_quantity != 0
            or self.asks_quantity != 0
            or self.taker_base != 0
            or self.taker_quote != 0
        )

    def transfer_quote_position(self, other: "PerpAccount", quantity: I80F48) -> None:
        """Decrease this quote position and increase ``other``'s by ``quantity``."""
        self.quote_position -= quantity
        other.quote_position += quantity

    def is_liquidatable(self) -> bool:
        """True when no orders are open and no fills are pending."""
        return (
            self.bids_quantity == 0
            and self.asks_quantity == 0
            and self.taker_quote == 0
            and self.taker_base == 0
        )