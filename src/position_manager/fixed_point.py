"""
Unsigned fixed-point decimal arithmetic.

Every ledger amount is a FixedPoint: a non-negative integer ``raw`` scaled by
10**18. All arithmetic is pure integer math.

Rounding:
- mul/div truncate toward zero (under-deliver, never over-deliver)
- mul_ceil/div_ceil round up; used only where the protocol must charge
  at least the exact amount (fee multiplier adjustment)

Bounds:
- raw is always in [0, 2**256 - 1]
- sub below zero raises Underflow
- any result above the 256-bit bound raises FixedPointOverflow

Decimal is used ONLY at the ingress boundary (from_unscaled with a string or
Decimal) and for display (to_decimal).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Union

from ..config.constants import FIXED_POINT_SCALE, UINT256_MAX
from .errors import DivideByZero, FixedPointError, FixedPointOverflow, Underflow


Unscaled = Union[int, str, Decimal]


def _checked(raw: int) -> int:
    if raw < 0:
        raise Underflow(f"fixed-point result {raw} is negative")
    if raw > UINT256_MAX:
        raise FixedPointOverflow(f"fixed-point result exceeds 256 bits: {raw}")
    return raw


@dataclass(frozen=True, order=False)
class FixedPoint:
    """
    Non-negative fixed-point number with 18 decimals.

    INVARIANTS:
    - raw is an int in [0, UINT256_MAX]
    - instances are immutable; every operation returns a new value
    """
    raw: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.raw, bool) or not isinstance(self.raw, int):
            raise FixedPointError(f"raw must be int, got {type(self.raw).__name__}")
        _checked(self.raw)

    # =========================================================================
    # INGRESS
    # =========================================================================

    @classmethod
    def from_raw(cls, raw: int) -> FixedPoint:
        """Wrap an already-scaled integer."""
        return cls(raw)

    @classmethod
    def from_unscaled(cls, value: Unscaled) -> FixedPoint:
        """
        Convert a whole-unit quantity into a FixedPoint.

        Integers are exact. Strings and Decimals may carry a fractional part;
        digits beyond 18 decimals are truncated.

        Args:
            value: Quantity in whole units (e.g., 150, "0.9", Decimal("1.5"))

        Returns:
            FixedPoint equal to value

        Raises:
            FixedPointError: If value is a float or cannot be parsed
            Underflow: If value is negative
        """
        if isinstance(value, bool) or isinstance(value, float):
            raise FixedPointError("floats are not accepted; pass int, str or Decimal")
        if isinstance(value, int):
            return cls(_checked(value * FIXED_POINT_SCALE))
        try:
            dec = Decimal(value)
        except ArithmeticError as exc:
            raise FixedPointError(f"cannot parse fixed-point value {value!r}") from exc
        scaled = (dec * FIXED_POINT_SCALE).to_integral_value(rounding=ROUND_DOWN)
        return cls(_checked(int(scaled)))

    @classmethod
    def zero(cls) -> FixedPoint:
        return cls(0)

    @classmethod
    def one(cls) -> FixedPoint:
        return cls(FIXED_POINT_SCALE)

    # =========================================================================
    # ARITHMETIC
    # =========================================================================

    def add(self, other: FixedPoint) -> FixedPoint:
        return FixedPoint(_checked(self.raw + other.raw))

    def sub(self, other: FixedPoint) -> FixedPoint:
        if other.raw > self.raw:
            raise Underflow(f"cannot subtract {other} from {self}")
        return FixedPoint(self.raw - other.raw)

    def mul(self, other: FixedPoint) -> FixedPoint:
        """Multiply, truncating toward zero at 18 decimals."""
        return FixedPoint(_checked(_checked(self.raw * other.raw) // FIXED_POINT_SCALE))

    def mul_ceil(self, other: FixedPoint) -> FixedPoint:
        """Multiply, rounding any remainder up."""
        product = _checked(self.raw * other.raw)
        result = product // FIXED_POINT_SCALE
        if product % FIXED_POINT_SCALE:
            result += 1
        return FixedPoint(_checked(result))

    def div(self, other: FixedPoint) -> FixedPoint:
        """Divide, truncating toward zero at 18 decimals."""
        if other.raw == 0:
            raise DivideByZero(f"cannot divide {self} by zero")
        return FixedPoint(_checked(_checked(self.raw * FIXED_POINT_SCALE) // other.raw))

    def div_ceil(self, other: FixedPoint) -> FixedPoint:
        """Divide, rounding any remainder up."""
        if other.raw == 0:
            raise DivideByZero(f"cannot divide {self} by zero")
        numerator = _checked(self.raw * FIXED_POINT_SCALE)
        result = numerator // other.raw
        if numerator % other.raw:
            result += 1
        return FixedPoint(_checked(result))

    def mul_int(self, n: int) -> FixedPoint:
        """Multiply by a plain integer count (e.g., seconds)."""
        if n < 0:
            raise Underflow(f"cannot scale {self} by negative {n}")
        return FixedPoint(_checked(self.raw * n))

    def div_int(self, n: int) -> FixedPoint:
        """Divide by a plain integer count, truncating."""
        if n == 0:
            raise DivideByZero(f"cannot divide {self} by zero")
        return FixedPoint(self.raw // n)

    @staticmethod
    def min(a: FixedPoint, b: FixedPoint) -> FixedPoint:
        return a if a.raw <= b.raw else b

    @staticmethod
    def max(a: FixedPoint, b: FixedPoint) -> FixedPoint:
        return a if a.raw >= b.raw else b

    # =========================================================================
    # COMPARISONS
    # =========================================================================

    def is_greater_than(self, other: FixedPoint) -> bool:
        return self.raw > other.raw

    def is_greater_than_or_equal(self, other: FixedPoint) -> bool:
        return self.raw >= other.raw

    def is_equal(self, other: FixedPoint) -> bool:
        return self.raw == other.raw

    def is_less_than(self, other: FixedPoint) -> bool:
        return self.raw < other.raw

    def is_less_than_or_equal(self, other: FixedPoint) -> bool:
        return self.raw <= other.raw

    def is_zero(self) -> bool:
        return self.raw == 0

    # =========================================================================
    # OPERATORS (delegate to the named methods)
    # =========================================================================

    def __add__(self, other: FixedPoint) -> FixedPoint:
        return self.add(other)

    def __sub__(self, other: FixedPoint) -> FixedPoint:
        return self.sub(other)

    def __mul__(self, other: FixedPoint) -> FixedPoint:
        return self.mul(other)

    def __truediv__(self, other: FixedPoint) -> FixedPoint:
        return self.div(other)

    def __lt__(self, other: FixedPoint) -> bool:
        return self.is_less_than(other)

    def __le__(self, other: FixedPoint) -> bool:
        return self.is_less_than_or_equal(other)

    def __gt__(self, other: FixedPoint) -> bool:
        return self.is_greater_than(other)

    def __ge__(self, other: FixedPoint) -> bool:
        return self.is_greater_than_or_equal(other)

    def __bool__(self) -> bool:
        return self.raw != 0

    # =========================================================================
    # EGRESS (display only)
    # =========================================================================

    def to_decimal(self) -> Decimal:
        return Decimal(self.raw) / Decimal(FIXED_POINT_SCALE)

    def __str__(self) -> str:
        text = format(self.to_decimal(), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    def __repr__(self) -> str:
        return f"FixedPoint({self})"


ZERO = FixedPoint(0)
ONE = FixedPoint(FIXED_POINT_SCALE)


def fp(value: Unscaled) -> FixedPoint:
    """Shorthand for FixedPoint.from_unscaled."""
    return FixedPoint.from_unscaled(value)
