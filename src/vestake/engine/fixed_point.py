"""Fixed-point helpers for scaled integer arithmetic.

Python integers never wrap, so widths are enforced explicitly: every scaled
product is checked against the intermediate width and every stored value
against the width of the field it lands in.
"""

from .errors import ArithmeticOverflow

SCALE = 10 ** 18

UINT32_MAX = 2 ** 32 - 1
UINT96_MAX = 2 ** 96 - 1
UINT128_MAX = 2 ** 128 - 1
UINT256_MAX = 2 ** 256 - 1

# Field widths
TIMESTAMP_MAX = UINT32_MAX
RATE_MAX = UINT96_MAX
ACCUMULATOR_MAX = UINT128_MAX
INTERMEDIATE_MAX = UINT256_MAX


def check_width(value: int, limit: int, name: str) -> int:
    """Return ``value`` if it lies in ``[0, limit]``, else raise ArithmeticOverflow."""
    if value < 0 or value > limit:
        raise ArithmeticOverflow(
            f"{name} out of range: {value}",
            details={"field": name, "value": value, "limit": limit},
        )
    return value


def checked_mul(*factors: int, limit: int = INTERMEDIATE_MAX, name: str = "product") -> int:
    """Multiply non-negative factors, failing closed if any partial product exceeds ``limit``."""
    result = 1
    for factor in factors:
        result *= factor
        check_width(result, limit, name)
    return result


def mul_div(a: int, b: int, denominator: int, name: str = "product") -> int:
    """Compute ``a * b // denominator`` with the intermediate product checked."""
    return checked_mul(a, b, name=name) // denominator
