# mangostate

An in-memory model of the state behind a margin trading and perpetual
futures engine: token lending banks with utilisation-based interest, a
cache of prices, bank indexes and funding, spot and perp positions,
liquidity-mining incentives, trigger orders and account health.

Monetary values use `I80F48`, a signed fixed-point number with 80 integer
bits and 48 fractional bits. Arithmetic on it truncates the way the
fixed-point format does and raises `OverflowError` when a result leaves the
128-bit range.

The package has no third-party dependencies.

## Installation

```
pip install mangostate
```

To run the tests:

```
pip install "mangostate[test]"
pytest
```

## Modules

- `mangostate.fixed` — the `I80F48` type: `from_num` (int, float, decimal
  string, `Fraction`, `Decimal`), `from_bits`, `floor`, `ceil`, `to_int`,
  `is_zero`, `is_negative`, `is_positive`, `clamp` and `checked_div`, which
  returns `None` instead of raising on division by zero or overflow. The
  constants `ZERO`, `ONE` and `NEG_ONE` are defined here.
- `mangostate.errors` — `MangoErrorCode`, the `MangoError` exception (its
  `code` attribute holds the code) and `check(condition, code)`, which
  raises `MangoError` when the condition is false.
- `mangostate.utils` — `Side` and `invert_side`; `OpenOrdersAmounts`, the
  native balances of a spot open-orders account (rejects negative amounts
  and free amounts above totals); `split_open_orders`, returning
  `(quote_free, quote_locked, base_free, base_locked)`; and `pow_i80f48`,
  exponentiation by squaring for exponents 0 to 255.
- `mangostate.group` — `MangoGroup` with its `TokenInfo`, `SpotMarketInfo`
  and `PerpMarketInfo` entries, lookups by key (`find_oracle_index`,
  `find_root_bank_index`, `find_spot_market_index`,
  `find_perp_market_index`) and `get_token_asset_weight`; the enums
  `DataType`, `HealthType` and `AssetType`; `MetaData`; and the size limits
  and constants such as `MAX_TOKENS`, `MAX_PAIRS`, `QUOTE_INDEX` and
  `DUST_THRESHOLD`. Keys are 32-byte `bytes` values, all zeros meaning empty.
- `mangostate.banks` — `RootBank` (`create`, `set_rate_params`,
  `find_node_bank_index`, `update_index`, `socialize_loss`), `NodeBank`
  (checked deposit and borrow changes, native totals rounded down for
  deposits and up for borrows) and `MangoCache` with its `PriceCache`,
  `RootBankCache` and `PerpMarketCache` entries, each of which can check
  that it is not stale.
- `mangostate.perp` — `PerpMarket` (`gen_order_id`, `update_funding`,
  `lot_to_native_price`, `socialize_loss`), `PerpAccount` (pending taker
  trades, funding settlement, base position changes, worst-case valuation
  with `get_val` and `sim_get_val`, price- and size-based incentives) and
  `LiquidityMiningInfo`.
- `mangostate.account` — `MangoAccount`: checked deposits and borrows that
  never hold both at once for a token, native values, the spot margin
  basket (at most 9 markets), bankruptcy entry and exit checks, perp open
  order slots (`next_order_slot`, `add_order`, `remove_order`,
  `find_order_with_client_id`, `find_order_side`) and `max_withdrawable`.
  `PerpOrder` describes a resting perp order for `add_order`.
- `mangostate.health` — `UserActiveAssets` (`from_account`, `merge`) and
  `HealthCache`, which computes maintenance or initial health once and then
  updates it incrementally as quote, spot or perp values change, or
  simulates it with `get_health_after_sim_perp`.
- `mangostate.advanced` — `PerpTriggerOrder`, `TriggerCondition`,
  `AdvancedOrderType` and `AdvancedOrders`, a book of 32 slots with `add`
  (returns the slot used, raises `MangoError` when full), `remove` (returns
  whether an active order was deactivated) and `active_orders`.

## Examples

Accruing interest on a token bank:

```python
from mangostate.banks import NodeBank, RootBank
from mangostate.fixed import I80F48

node_bank = NodeBank()
root_bank = RootBank.create(
    b"\x01" * 32,
    optimal_util=I80F48.from_num("0.7"),
    optimal_rate=I80F48.from_num("0.06"),
    max_rate=I80F48.from_num("1.5"),
)
node_bank.checked_add_deposit(I80F48.from_num(1_000))
node_bank.checked_add_borrow(I80F48.from_num(500))
root_bank.update_index([node_bank], now_ts=86_400)
print(root_bank.borrow_index, root_bank.deposit_index)
```

Computing an account's initial health:

```python
from mangostate.account import MangoAccount
from mangostate.banks import MangoCache
from mangostate.fixed import ONE, I80F48
from mangostate.group import QUOTE_INDEX, HealthType, MangoGroup, SpotMarketInfo
from mangostate.health import HealthCache, UserActiveAssets

group = MangoGroup(num_oracles=1)
group.spot_markets[0] = SpotMarketInfo(
    spot_market=b"\x02" * 32,
    maint_asset_weight=I80F48.from_num("0.9"),
    init_asset_weight=I80F48.from_num("0.8"),
    maint_liab_weight=I80F48.from_num("1.1"),
    init_liab_weight=I80F48.from_num("1.2"),
)

cache = MangoCache()
cache.price_cache[0].price = I80F48.from_num(20)
for index in (0, QUOTE_INDEX):
    cache.root_bank_cache[index].deposit_index = ONE
    cache.root_bank_cache[index].borrow_index = ONE

account = MangoAccount()
account.checked_add_deposit(0, I80F48.from_num(10))
account.checked_add_borrow(QUOTE_INDEX, I80F48.from_num(50))

health = HealthCache(UserActiveAssets.from_account(group, account))
health.init_vals(group, cache, account)
print(health.get_health(group, HealthType.INIT))  # about 110
```

## What this package does not do

It keeps state in ordinary Python objects and does not read or write
account data in any binary layout, so there is no loading or storage.
There is no order book or matching, no event queue, and no instruction
processing: `PerpMarket.update_funding` is given the best bid and ask
prices rather than reading a book, and `AdvancedOrders` only stores trigger
orders without executing them. There is no command-line program.