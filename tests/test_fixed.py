import pytest

from mangostate.fixed import NEG_ONE, ONE, ZERO, I80F48


def test_one_has_48_fractional_bits():
    assert ONE.bits == 1 << 48
    assert I80F48.from_bits(1 << 48) == ONE
    assert I80F48.from_num(0.5).bits == 1 << 47


def test_int_round_trip():
    for n in (0, 1, -1, 86400, 31536000, -4597, 45644597):
        assert I80F48.from_num(n).to_int() == n
        assert I80F48.from_num(n) == n


def test_float_rounds_to_nearest_ties_even():
    half_ulp = 2.0 ** -49
    assert I80F48.from_num(half_ulp).is_zero()
    assert I80F48.from_num(3 * half_ulp).bits == 2


def test_decimal_string_matches_str():
    for text in ("-1.25", "6156", "0.5", "1546.75"):
        assert str(I80F48.from_num(text)) == text


def test_add_sub_round_trip():
    a = I80F48.from_num("1546.789470")
    b = I80F48.from_num("8791.150")
    assert a + b - b == a
    assert a - a == ZERO
    assert -a + a == ZERO


def test_mul_div_round_trip_with_integers():
    a = I80F48.from_num(1234567)
    b = I80F48.from_num(79846)
    assert (a * b) / b == a
    assert a * ONE == a
    assert a * NEG_ONE == -a


def test_mul_rounds_toward_negative_infinity():
    half = I80F48.from_num(0.5)
    assert (I80F48.from_bits(1) * half).is_zero()
    assert I80F48.from_bits(-1) * half == I80F48.from_bits(-1)


def test_mixed_int_arithmetic():
    a = I80F48.from_num("2.5")
    assert a + 1 == 1 + a
    assert a * 2 == a + a
    assert 10 - a == -(a - 10)


def test_floor_and_ceil_bracket_value():
    for text in ("2.75", "-2.75", "7", "-0.000001"):
        x = I80F48.from_num(text)
        lo, hi = x.floor(), x.ceil()
        assert lo <= x <= hi
        assert (hi - lo) in (ZERO, ONE)
        assert lo.floor() == lo and hi.ceil() == hi


def test_to_int_discards_fraction_downward():
    x = I80F48.from_num("-2.5")
    assert I80F48.from_num(x.to_int()) == x.floor()
    assert I80F48.from_num("2.5").to_int() == I80F48.from_num("2.5").floor().to_int()


def test_sign_predicates():
    assert NEG_ONE.is_negative() and not NEG_ONE.is_positive()
    assert ONE.is_positive() and not ONE.is_negative()
    assert ZERO.is_zero() and not ZERO.is_positive() and not ZERO.is_negative()


def test_clamp():
    low, high = I80F48.from_num(0.25), I80F48.from_num(4)
    assert I80F48.from_num(10).clamp(low, high) == high
    assert I80F48.from_num(0.1).clamp(low, high) == low
    assert ONE.clamp(low, high) == ONE
    with pytest.raises(ValueError):
        ONE.clamp(high, low)


def test_checked_div():
    assert ONE.checked_div(ZERO) is None
    big = I80F48.from_bits((1 << 127) - 1)
    assert big.checked_div(I80F48.from_bits(1)) is None
    assert I80F48.from_num(6).checked_div(2) * 2 == I80F48.from_num(6)


def test_division_by_zero_raises():
    numerator = I80F48.from_num(1)
    denominator = I80F48.from_num(0)
    with pytest.raises(ZeroDivisionError):
        numerator / denominator
    assert numerator.checked_div(denominator) is None
    assert numerator / I80F48.from_num(2) == I80F48.from_num(0.5)


def test_overflow_raises():
    with pytest.raises(OverflowError):
        I80F48.from_num(1 << 79)
    big = I80F48.from_num((1 << 79) - 1)
    with pytest.raises(OverflowError):
        big + big
    with pytest.raises(OverflowError):
        big * big


def test_shift_right_halves():
    x = I80F48.from_num(100)
    assert x >> 1 == x / 2
    assert (x >> 2) >> 1 == x >> 3


def test_ordering_and_min_max():
    a, b = I80F48.from_num(-3), I80F48.from_num("0.000001")
    assert a < b and b > a
    assert min(a, b) == a and max(a, b) == b
    assert abs(a) == -a


def test_hash_consistent_with_int():
    assert hash(I80F48.from_num(42)) == hash(42)
    assert {I80F48.from_num(7): "x"}[I80F48.from_num("7")] == "x"


def test_invalid_inputs():
    with pytest.raises(ValueError):
        I80F48.from_num(float("nan"))
    with pytest.raises(TypeError):
        I80F48.from_num(True)


def test_immutable():
    value = I80F48.from_num(3)
    with pytest.raises(AttributeError):
        value.foo = 3
    assert value == I80F48.from_num(3)