"""
Segmented Stream - Fixed-Point Arithmetic.

============================================================
PURPOSE
============================================================
18-decimal fixed-point numbers backed by plain Python ints.

- SD59x18: signed, raw value fits int256
- UD60x18: unsigned, raw value fits uint256
- UD2x18: unsigned, raw value fits uint64 (segment exponents)

============================================================
HARD INVARIANT
============================================================
All authoritative arithmetic is integer math only. Decimal is
used ONLY for ingress (parsing rates from config or callers)
and display.

Rounding is explicit and matches the 18-decimal fixed-point
semantics streams are defined against:
- mul / div truncate toward zero
- log2 uses the iterative binary approximation (59 bits)
- exp2 works in 192.64 binary fixed-point and multiplies
  one precomputed 2^(2^-k) factor per set fractional bit
- pow(x, y) = exp2(log2(x) * y)

Amounts and durations are "raw-wrapped": an amount of 1000
base units is the fixed-point value whose raw integer is 1000.
Ratios and products then come out in base units directly.

============================================================
"""

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Tuple, Union

from .errors import FixedPointDomainError, FixedPointOverflow


# ============================================================
# CONSTANTS
# ============================================================

UNIT = 10**18
HALF_UNIT = 5 * 10**17
DOUBLE_UNIT = 2 * 10**18
UNIT_SQUARED = 10**36

INT256_MIN = -(2**255)
INT256_MAX = 2**255 - 1
UINT256_MAX = 2**256 - 1
UINT128_MAX = 2**128 - 1
UINT64_MAX = 2**64 - 1
UINT40_MAX = 2**40 - 1

EXP2_MAX_INPUT = 192 * UNIT - 1
"""Largest input whose power of two still fits 192.64 binary fixed-point."""

EXP2_MIN_NEGATIVE_INPUT = -59_794705707972522261
"""Below this, the inverse of exp2 truncates to zero."""

DecimalLike = Union[str, int, Decimal]


def _build_exp2_factors() -> Tuple[int, ...]:
    """
    Compute 2^(2^-k) for k = 1..64 in 64.64 binary fixed-point.

    Each factor is rounded to nearest. Successive square roots are
    taken at 256 fractional bits so the rounding is exact.
    """
    precision = 256
    shift = precision - 64
    value = 2 << precision
    factors = []
    for _ in range(64):
        value = math.isqrt(value << precision)
        factors.append((value + (1 << (shift - 1))) >> shift)
    return tuple(factors)


_EXP2_FACTORS = _build_exp2_factors()


# ============================================================
# INTEGER KERNELS
# ============================================================

def _msb(x: int) -> int:
    """Index of the most significant set bit."""
    return x.bit_length() - 1


def _exp2_192x64(x: int) -> int:
    """
    Binary exponent of a 192.64 fixed-point number, as an 18-decimal value.

    Starts from 0.5 in 192.64 format and multiplies in the factor of
    every set fractional bit, most significant first. The final shift
    applies the integer part (plus one, to undo the 0.5 start) and
    converts to 18 decimals.
    """
    result = 1 << 191
    for k in range(64):
        if x & (1 << (63 - k)):
            result = (result * _EXP2_FACTORS[k]) >> 64
    result *= UNIT
    result >>= 191 - (x >> 64)
    return result


def _log2_at_least_unit(x: int) -> int:
    """log2 of an 18-decimal value >= 1, as a non-negative 18-decimal value."""
    n = _msb(x // UNIT)
    result = n * UNIT
    y = x >> n
    if y == UNIT:
        return result

    delta = HALF_UNIT
    while delta > 0:
        y = (y * y) // UNIT
        # y^2 in [2, 4): record the bit and halve
        if y >= DOUBLE_UNIT:
            result += delta
            y >>= 1
        delta >>= 1
    return result


def _parse_decimal(value: DecimalLike, name: str) -> Decimal:
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise FixedPointDomainError(name, value)
    if not parsed.is_finite():
        raise FixedPointDomainError(name, value)
    return parsed


def _scale_decimal(value: DecimalLike, name: str) -> int:
    """Scale a decimal to 18 fractional digits, truncating extra digits."""
    parsed = _parse_decimal(value, name)
    with localcontext() as ctx:
        ctx.prec = 100
        return int(parsed.scaleb(18).to_integral_value(rounding=ROUND_DOWN))


def _raw_to_decimal(raw: int) -> Decimal:
    return Decimal(raw) / Decimal(UNIT)


# ============================================================
# SD59x18
# ============================================================

@dataclass(frozen=True, order=True)
class SD59x18:
    """Signed 18-decimal fixed-point number."""

    raw: int

    def __post_init__(self):
        if not INT256_MIN <= self.raw <= INT256_MAX:
            raise FixedPointOverflow("SD59x18", self.raw)

    @classmethod
    def from_raw(cls, raw: int) -> "SD59x18":
        return cls(raw)

    @classmethod
    def from_int(cls, value: int) -> "SD59x18":
        """Scale a whole number, e.g. 3 -> 3.0."""
        return cls(value * UNIT)

    @classmethod
    def from_decimal(cls, value: DecimalLike) -> "SD59x18":
        return cls(_scale_decimal(value, "SD59x18.from_decimal"))

    def to_int(self) -> int:
        """Whole part, truncated toward zero."""
        if self.raw < 0:
            return -(-self.raw // UNIT)
        return self.raw // UNIT

    def to_decimal(self) -> Decimal:
        return _raw_to_decimal(self.raw)

    def __str__(self) -> str:
        return str(self.to_decimal())

    # --------------------------------------------------------
    # ARITHMETIC
    # --------------------------------------------------------

    def mul(self, other: "SD59x18") -> "SD59x18":
        """x * y / 1e18, truncated toward zero."""
        x, y = self.raw, other.raw
        if x == INT256_MIN or y == INT256_MIN:
            raise FixedPointOverflow("SD59x18.mul", x if x == INT256_MIN else y)
        result_abs = (abs(x) * abs(y)) // UNIT
        if result_abs > INT256_MAX:
            raise FixedPointOverflow("SD59x18.mul", result_abs)
        negative = (x < 0) != (y < 0)
        return SD59x18(-result_abs if negative else result_abs)

    def div(self, other: "SD59x18") -> "SD59x18":
        """x * 1e18 / y, truncated toward zero."""
        x, y = self.raw, other.raw
        if y == 0:
            raise FixedPointDomainError("SD59x18.div", "division by zero")
        if x == INT256_MIN or y == INT256_MIN:
            raise FixedPointOverflow("SD59x18.div", x if x == INT256_MIN else y)
        result_abs = (abs(x) * UNIT) // abs(y)
        if result_abs > INT256_MAX:
            raise FixedPointOverflow("SD59x18.div", result_abs)
        negative = (x < 0) != (y < 0)
        return SD59x18(-result_abs if negative else result_abs)

    def log2(self) -> "SD59x18":
        """Binary logarithm. Inputs below 1 are inverted and the sign flipped."""
        x = self.raw
        if x <= 0:
            raise FixedPointDomainError("SD59x18.log2", x)
        if x >= UNIT:
            return SD59x18(_log2_at_least_unit(x))
        return SD59x18(-_log2_at_least_unit(UNIT_SQUARED // x))

    def exp2(self) -> "SD59x18":
        """Binary exponent. Negative inputs use 1 / exp2(-x)."""
        x = self.raw
        if x < 0:
            if x < EXP2_MIN_NEGATIVE_INPUT:
                return SD_ZERO
            return SD59x18(UNIT_SQUARED // SD59x18(-x).exp2().raw)
        if x > EXP2_MAX_INPUT:
            raise FixedPointOverflow("SD59x18.exp2", x)
        return SD59x18(_exp2_192x64((x << 64) // UNIT))

    def pow(self, exponent: "SD59x18") -> "SD59x18":
        """
        x^y = exp2(log2(x) * y).

        Special cases: 0^0 = 1, 0^y = 0, 1^y = 1, x^0 = 1, x^1 = x.
        """
        x, y = self.raw, exponent.raw
        if x == 0:
            return SD_UNIT if y == 0 else SD_ZERO
        if x == UNIT:
            return SD_UNIT
        if y == 0:
            return SD_UNIT
        if y == UNIT:
            return self
        return self.log2().mul(exponent).exp2()

    # --------------------------------------------------------
    # CONVERSIONS
    # --------------------------------------------------------

    def into_uint(self, max_value: int = UINT256_MAX) -> int:
        """Raw value as an unsigned integer, range-checked."""
        if not 0 <= self.raw <= max_value:
            raise FixedPointOverflow("SD59x18.into_uint", self.raw)
        return self.raw


# ============================================================
# UD60x18
# ============================================================

@dataclass(frozen=True, order=True)
class UD60x18:
    """Unsigned 18-decimal fixed-point number."""

    raw: int

    def __post_init__(self):
        if not 0 <= self.raw <= UINT256_MAX:
            raise FixedPointOverflow("UD60x18", self.raw)

    @classmethod
    def from_raw(cls, raw: int) -> "UD60x18":
        return cls(raw)

    @classmethod
    def from_int(cls, value: int) -> "UD60x18":
        return cls(value * UNIT)

    @classmethod
    def from_decimal(cls, value: DecimalLike) -> "UD60x18":
        return cls(_scale_decimal(value, "UD60x18.from_decimal"))

    def to_int(self) -> int:
        return self.raw // UNIT

    def to_decimal(self) -> Decimal:
        return _raw_to_decimal(self.raw)

    def __str__(self) -> str:
        return str(self.to_decimal())

    def mul(self, other: "UD60x18") -> "UD60x18":
        """x * y / 1e18, rounded down."""
        return UD60x18((self.raw * other.raw) // UNIT)

    def div(self, other: "UD60x18") -> "UD60x18":
        """x * 1e18 / y, rounded down."""
        if other.raw == 0:
            raise FixedPointDomainError("UD60x18.div", "division by zero")
        return UD60x18((self.raw * UNIT) // other.raw)

    def log2(self) -> "UD60x18":
        """Binary logarithm, defined for x >= 1."""
        if self.raw < UNIT:
            raise FixedPointDomainError("UD60x18.log2", self.raw)
        return UD60x18(_log2_at_least_unit(self.raw))

    def exp2(self) -> "UD60x18":
        if self.raw > EXP2_MAX_INPUT:
            raise FixedPointOverflow("UD60x18.exp2", self.raw)
        return UD60x18(_exp2_192x64((self.raw << 64) // UNIT))

    def pow(self, exponent: "UD60x18") -> "UD60x18":
        """
        x^y = exp2(log2(x) * y), with x < 1 computed as 1 / (1/x)^y.
        """
        x, y = self.raw, exponent.raw
        if x == 0:
            return UD_UNIT if y == 0 else UD_ZERO
        if x == UNIT:
            return UD_UNIT
        if y == 0:
            return UD_UNIT
        if y == UNIT:
            return self
        if x > UNIT:
            return self.log2().mul(exponent).exp2()
        inverse = UD60x18(UNIT_SQUARED // x)
        w = inverse.log2().mul(exponent).exp2()
        return UD60x18(UNIT_SQUARED // w.raw)

    def into_sd59x18(self) -> SD59x18:
        if self.raw > INT256_MAX:
            raise FixedPointOverflow("UD60x18.into_sd59x18", self.raw)
        return SD59x18(self.raw)


# ============================================================
# UD2x18
# ============================================================

@dataclass(frozen=True, order=True)
class UD2x18:
    """
    Unsigned 18-decimal fixed-point number stored in 64 bits.

    Used for segment exponents: at most ~18.446744073709551615.
    """

    raw: int

    def __post_init__(self):
        if not 0 <= self.raw <= UINT64_MAX:
            raise FixedPointOverflow("UD2x18", self.raw)

    @classmethod
    def from_raw(cls, raw: int) -> "UD2x18":
        return cls(raw)

    @classmethod
    def from_decimal(cls, value: DecimalLike) -> "UD2x18":
        return cls(_scale_decimal(value, "UD2x18.from_decimal"))

    def to_decimal(self) -> Decimal:
        return _raw_to_decimal(self.raw)

    def __str__(self) -> str:
        return str(self.to_decimal())

    def into_sd59x18(self) -> SD59x18:
        return SD59x18(self.raw)

    def into_ud60x18(self) -> UD60x18:
        return UD60x18(self.raw)


SD_ZERO = SD59x18(0)
SD_UNIT = SD59x18(UNIT)
UD_ZERO = UD60x18(0)
UD_UNIT = UD60x18(UNIT)
LINEAR_EXPONENT = UD2x18(UNIT)
