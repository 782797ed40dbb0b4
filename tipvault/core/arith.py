"""
Checked integer arithmetic.

Token amounts, fee rates and timestamps are unsigned 256-bit quantities.
Python integers never wrap, so the bounds are enforced here instead: any
result outside [0, MAX_UINT256] raises rather than being stored.
"""

from tipvault.core.errors import ArithmeticOverflowError, ArithmeticUnderflowError

MAX_UINT256 = 2**256 - 1


def checked_add(a: int, b: int) -> int:
    """a + b, rejecting results above MAX_UINT256."""
    result = a + b
    if result > MAX_UINT256:
        raise ArithmeticOverflowError(f"{a} + {b} overflows uint256")
    return result


def checked_sub(a: int, b: int) -> int:
    """a - b, rejecting negative results."""
    if b > a:
        raise ArithmeticUnderflowError(f"{a} - {b} underflows", {"a": a, "b": b})
    return a - b


def checked_mul(a: int, b: int) -> int:
    """a * b, rejecting results above MAX_UINT256."""
    result = a * b
    if result > MAX_UINT256:
        raise ArithmeticOverflowError(f"{a} * {b} overflows uint256")
    return result


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    floor(a * b / denominator) with a checked intermediate product.

    Args:
        a: First factor
        b: Second factor
        denominator: Divisor, must be positive

    Returns:
        Floor of the scaled product
    """
    if denominator <= 0:
        raise ZeroDivisionError("denominator must be positive")
    return checked_mul(a, b) // denominator


def saturating_sub(a: int, b: int) -> int:
    """max(a - b, 0)."""
    return a - b if a > b else 0
