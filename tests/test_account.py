import pytest

from mangostate.account import MangoAccount, PerpOrder
from mangostate.banks import MangoCache, RootBankCache
from mangostate.errors import MangoError, MangoErrorCode
from mangostate.fixed import ONE, ZERO, I80F48
from mangostate.group import (
    FREE_ORDER_SLOT,
    MAX_NUM_IN_MARGIN_BASKET,
    MAX_PAIRS,
    QUOTE_INDEX,
    MangoGroup,
)
from mangostate.utils import OpenOrdersAmounts, Side


def unit_cache() -> RootBankCache:
    return RootBankCache(deposit_index=ONE, borrow_index=ONE)


def fx(value) -> I80F48:
    return I80F48.from_num(value)


def test_deposit_and_borrow_cannot_coexist():
    account = MangoAccount()
    account.checked_add_deposit(0, fx(5))
    with pytest.raises(MangoError) as info:
        account.checked_add_borrow(0, fx(1))
    assert info.value.code == MangoErrorCode.MATH_ERROR


def test_sub_deposit_below_zero_raises():
    account = MangoAccount()
    account.checked_add_deposit(2, fx(3))
    with pytest.raises(MangoError) as info:
        account.checked_sub_deposit(2, fx(4))
    assert info.value.code == MangoErrorCode.MATH_ERROR


def test_add_then_sub_borrow_round_trip():
    account = MangoAccount()
    account.checked_add_borrow(1, fx(7))
    assert account.get_native_borrow(unit_cache(), 1) == fx(7)
    account.checked_sub_borrow(1, fx(7))
    assert account.borrows[1].is_zero()


def test_get_net_sign():
    account = MangoAccount()
    account.checked_add_deposit(0, fx(4))
    account.checked_add_borrow(1, fx(6))
    assert account.get_net(unit_cache(), 0) == fx(4)
    assert account.get_net(unit_cache(), 1) == fx(-6)
    assert account.get_net(unit_cache(), 2) == ZERO


def test_spot_val_without_open_orders():
    account = MangoAccount()
    account.checked_add_deposit(0, fx(9))
    base, quote = account.get_spot_val(unit_cache(), ONE, 0, None)
    assert base == fx(9)
    assert quote == ZERO


def test_spot_val_ignores_open_orders_outside_basket():
    account = MangoAccount()
    account.checked_add_deposit(0, fx(9))
    oo = OpenOrdersAmounts(native_pc_total=50, native_coin_total=20)
    assert account.get_spot_val(unit_cache(), ONE, 0, oo) == (fx(9), ZERO)


def test_spot_val_asks_branch_locks_quote():
    account = MangoAccount()
    account.add_to_basket(0)
    account.checked_add_borrow(0, fx(10))
    oo = OpenOrdersAmounts(native_pc_free=0, native_pc_total=4)
    base, quote = account.get_spot_val(unit_cache(), ONE, 0, oo)
    assert base == fx(-10)
    assert quote == fx(4)


def test_spot_val_bids_branch_keeps_free_quote():
    account = MangoAccount()
    account.add_to_basket(0)
    oo = OpenOrdersAmounts(native_coin_free=0, native_coin_total=4, native_pc_free=3, native_pc_total=3)
    base, quote = account.get_spot_val(unit_cache(), ONE, 0, oo)
    assert base == fx(4)
    assert quote == fx(3)


def test_basket_fills_up():
    account = MangoAccount()
    for i in range(MAX_NUM_IN_MARGIN_BASKET):
        account.add_to_basket(i)
    assert account.num_in_margin_basket == MAX_NUM_IN_MARGIN_BASKET
    account.add_to_basket(0)
    assert account.num_in_margin_basket == MAX_NUM_IN_MARGIN_BASKET
    with pytest.raises(MangoError) as info:
        account.add_to_basket(MAX_PAIRS - 1)
    assert info.value.code == MangoErrorCode.MARGIN_BASKET_FULL


def test_update_basket_adds_and_removes():
    account = MangoAccount()
    account.update_basket(3, OpenOrdersAmounts(native_pc_total=1))
    assert account.in_margin_basket[3]
    assert account.num_in_margin_basket == 1
    account.update_basket(3, OpenOrdersAmounts())
    assert not account.in_margin_basket[3]
    assert account.num_in_margin_basket == 0


def test_update_basket_full_raises():
    account = MangoAccount()
    for i in range(MAX_NUM_IN_MARGIN_BASKET):
        account.add_to_basket(i)
    with pytest.raises(MangoError) as info:
        account.update_basket(MAX_PAIRS - 1, OpenOrdersAmounts(referrer_rebates_accrued=1))
    assert info.value.code == MangoErrorCode.MARGIN_BASKET_FULL


def test_enter_bankruptcy_conditions():
    group = MangoGroup(num_oracles=1)
    no_orders = [None] * MAX_PAIRS
    account = MangoAccount()
    assert account.check_enter_bankruptcy(group, no_orders) is True

    with_orders = [OpenOrdersAmounts(native_coin_total=1)] + [None] * (MAX_PAIRS - 1)
    assert account.check_enter_bankruptcy(group, with_orders) is False

    account.checked_add_deposit(QUOTE_INDEX, fx(1))
    assert account.check_enter_bankruptcy(group, no_orders) is False


def test_enter_bankruptcy_blocked_by_perp_position():
    group = MangoGroup(num_oracles=1)
    account = MangoAccount()
    account.perp_accounts[0].base_position = 2
    assert account.check_enter_bankruptcy(group, [None] * MAX_PAIRS) is False


def test_exit_bankruptcy_conditions():
    group = MangoGroup(num_oracles=1)
    account = MangoAccount()
    assert account.check_exit_bankruptcy(group) is True
    account.perp_accounts[0].quote_position = fx(-1)
    assert account.check_exit_bankruptcy(group) is False
    account.perp_accounts[0].quote_position = ZERO
    account.checked_add_borrow(QUOTE_INDEX, fx(1))
    assert account.check_exit_bankruptcy(group) is False


def test_order_lifecycle():
    account = MangoAccount()
    slot = account.next_order_slot()
    assert slot == 0
    order = PerpOrder(key=123456, owner_slot=slot, quantity=8, client_order_id=42)
    account.add_order(2, Side.ASK, order)
    assert account.perp_accounts[2].asks_quantity == 8
    assert account.next_order_slot() == 1
    assert account.find_order_with_client_id(2, 42) == (123456, Side.ASK)
    assert account.find_order_side(2, 123456) == Side.ASK
    assert account.find_order_side(1, 123456) is None

    account.remove_order(slot, 8)
    assert account.perp_accounts[2].asks_quantity == 0
    assert account.order_market[slot] == FREE_ORDER_SLOT
    assert account.find_order_with_client_id(2, 42) is None


def test_remove_free_slot_raises():
    account = MangoAccount()
    with pytest.raises(MangoError) as info:
        account.remove_order(5, 1)
    assert info.value.code == MangoErrorCode.DEFAULT


def test_max_withdrawable_limits():
    group = MangoGroup()
    cache = MangoCache()
    cache.root_bank_cache[QUOTE_INDEX] = unit_cache()
    account = MangoAccount()
    account.checked_add_deposit(QUOTE_INDEX, fx(100))
    assert account.max_withdrawable(group, cache, QUOTE_INDEX, fx(30)) == 30
    assert account.max_withdrawable(group, cache, QUOTE_INDEX, fx(500)) == 100
    assert account.max_withdrawable(group, cache, QUOTE_INDEX, fx(-1)) == 0


def test_max_withdrawable_without_deposits():
    group = MangoGroup()
    cache = MangoCache()
    account = MangoAccount()
    assert account.max_withdrawable(group, cache, QUOTE_INDEX, fx(50)) == 0


def test_wrong_list_length_rejected():
    with pytest.raises(ValueError):
        MangoAccount(deposits=[ZERO])