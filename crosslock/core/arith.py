"""
crosslock/core/arith.py

Fixed-width checked arithmetic.

Python integers never overflow, so every amount or timestamp that the
protocol stores in a fixed-width field is bounded here. Leaving the width
raises ArithmeticOverflow and aborts the transition.
"""

from crosslock.core.exceptions import ArithmeticOverflow

U16_MAX  = (1 << 16) - 1
U24_MAX  = (1 << 24) - 1
U32_MAX  = (1 << 32) - 1
U64_MAX  = (1 << 64) - 1
U256_MAX = (1 << 256) - 1

_BOUNDS = {16: U16_MAX, 24: U24_MAX, 32: U32_MAX, 64: U64_MAX, 256: U256_MAX}


def check_width(value: int, bits: int) -> int:
    """Return value if it fits in an unsigned `bits`-wide word, else raise."""
    if value < 0 or value > _BOUNDS[bits]:
        raise ArithmeticOverflow(details={"value": value, "bits": bits})
    return value


def checked_add(a: int, b: int, bits: int = 64) -> int:
    return check_width(a + b, bits)


def mul_div_ceil(value: int, numerator: int, denominator: int, bits: int = 256) -> int:
    """ceil(value * numerator / denominator); the result must fit in `bits`."""
    if denominator == 0:
        raise ArithmeticOverflow("Division by zero")
    return check_width(-((-value * numerator) // denominator), bits)

