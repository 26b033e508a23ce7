"""Signed fixed-point numbers with 80 integer bits and 48 fractional bits."""

from __future__ import annotations

import math
from decimal import Decimal, localcontext
from fractions import Fraction
from functools import total_ordering
from typing import Union

FRAC_BITS = 48
_SCALE = 1 << FRAC_BITS
_MIN_BITS = -(1 << 127)
_MAX_BITS = (1 << 127) - 1

Number = Union["I80F48", int, float, str, Fraction, Decimal]


def _checked(bits: int) -> int:
    if not _MIN_BITS <= bits <= _MAX_BITS:
        raise OverflowError("I80F48 overflow")
    return bits


def _value_to_bits(value: Number) -> int:
    """Convert a number to raw bits, rounding to nearest with ties to even."""
    if isinstance(value, I80F48):
        return value._bits
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to I80F48")
    if isinstance(value, int):
        return _checked(value << FRAC_BITS)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"cannot convert {value!r} to I80F48")
        exact = Fraction(value)
    elif isinstance(value, (Fraction, Decimal, str)):
        exact = Fraction(value)
    else:
        raise TypeError(f"cannot convert {type(value).__name__} to I80F48")
    return _checked(round(exact * _SCALE))


def _operand_bits(other: object) -> int | None:
    if isinstance(other, I80F48):
        return other._bits
    if isinstance(other, int) and not isinstance(other, bool):
        return _checked(other << FRAC_BITS)
    return None


def _div_bits(numerator: int, denominator: int) -> int:
    if denominator == 0:
        raise ZeroDivisionError("I80F48 division by zero")
    shifted = numerator << FRAC_BITS
    quotient = abs(shifted) // abs(denominator)
    if (shifted < 0) != (denominator < 0):
        quotient = -quotient
    return _checked(quotient)


@total_ordering
class I80F48:
    """Immutable 128-bit fixed-point number; arithmetic raises OverflowError on overflow."""

    __slots__ = ("_bits",)

    def __init__(self, value: Number = 0) -> None:
        object.__setattr__(self, "_bits", _value_to_bits(value))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("I80F48 is immutable")

    @classmethod
    def from_num(cls, value: Number) -> "I80F48":
        """Build from an int, float, decimal string, Fraction, Decimal or I80F48."""
        return cls.from_bits(_value_to_bits(value))

    @classmethod
    def from_bits(cls, bits: int) -> "I80F48":
        """Build from the raw two's-complement representation."""
        instance = object.__new__(cls)
        object.__setattr__(instance, "_bits", _checked(int(bits)))
        return instance

    @property
    def bits(self) -> int:
        return self._bits

    def floor(self) -> "I80F48":
        return I80F48.from_bits((self._bits >> FRAC_BITS) << FRAC_BITS)

    def ceil(self) -> "I80F48":
        return I80F48.from_bits(-((-self._bits) >> FRAC_BITS) << FRAC_BITS)

    def to_int(self) -> int:
        """Integer part, discarding fractional bits (rounds toward negative infinity)."""
        return self._bits >> FRAC_BITS

    def to_fraction(self) -> Fraction:
        return Fraction(self._bits, _SCALE)

    def is_zero(self) -> bool:
        return self._bits == 0

    def is_negative(self) -> bool:
        return self._bits < 0

    def is_positive(self) -> bool:
        return self._bits > 0

    def clamp(self, low: Number, high: Number) -> "I80F48":
        low_bits = _value_to_bits(low)
        high_bits = _value_to_bits(high)
        if low_bits > high_bits:
            raise ValueError("clamp bounds are reversed")
        return I80F48.from_bits(min(max(self._bits, low_bits), high_bits))

    def checked_div(self, other: Number) -> "I80F48 | None":
        """Divide, returning None on division by zero or overflow."""
        try:
            return I80F48.from_bits(_div_bits(self._bits, _value_to_bits(other)))
        except (ZeroDivisionError, OverflowError):
            return None

    def __add__(self, other: object) -> "I80F48":
        bits = _operand_bits(other)
        if bits is None:
            return NotImplemented
        return I80F48.from_bits(self._bits + bits)

    __radd__ = __add__

    def __sub__(self, other: object) -> "I80F48":
        bits = _operand_bits(other)
        if bits is None:
            return NotImplemented
        return I80F48.from_bits(self._bits - bits)

    def __rsub__(self, other: object) -> "I80F48":
        bits = _operand_bits(other)
        if bits is None:
            return NotImplemented
        return I80F48.from_bits(bits - self._bits)

    def __mul__(self, other: object) -> "I80F48":
        bits = _operand_bits(other)
        if bits is None:
            return NotImplemented
        return I80F48.from_bits((self._bits * bits) >> FRAC_BITS)

    __rmul__ = __mul__

    def __truediv__(self, other: object) -> "I80F48":
        bits = _operand_bits(other)
        if bits is None:
            return NotImplemented
        return I80F48.from_bits(_div_bits(self._bits, bits))

    def __rtruediv__(self, other: object) -> "I80F48":
        bits = _operand_bits(other)
        if bits is None:
            return NotImplemented
        return I80F48.from_bits(_div_bits(bits, self._bits))

    def __rshift__(self, shift: int) -> "I80F48":
        if shift < 0:
            raise ValueError("negative shift count")
        return I80F48.from_bits(self._bits >> shift)

    def __neg__(self) -> "I80F48":
        return I80F48.from_bits(-self._bits)

    def __pos__(self) -> "I80F48":
        return self

    def __abs__(self) -> "I80F48":
        return I80F48.from_bits(abs(self._bits))

    def __bool__(self) -> bool:
        return self._bits != 0

    def __eq__(self, other: object) -> bool:
        if isinstance(other, I80F48):
            return self._bits == other._bits
        if isinstance(other, int) and not isinstance(other, bool):
            return self.to_fraction() == other
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, I80F48):
            return self._bits < other._bits
        if isinstance(other, int) and not isinstance(other, bool):
            return self.to_fraction() < other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_fraction())

    def __float__(self) -> float:
        return self._bits / _SCALE

    def __str__(self) -> str:
        with localcontext() as ctx:
            ctx.prec = 100
            text = format(Decimal(self._bits) / Decimal(_SCALE), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    def __repr__(self) -> str:
        return f"I80F48('{self}')"


ZERO = I80F48.from_bits(0)
ONE = I80F48.from_num(1)
NEG_ONE = I80F48.from_num(-1)