"""Fixed-point primitives matching the ledger's uint256 integer semantics.

Python integers are unbounded, so ``a * b`` never loses precision before the
division. Results are truncated toward zero, which for the non-negative
operands the ledger deals in is the same as Solidity's ``a * b / d``.
"""
from __future__ import annotations

from ..errors import DivisionByZero, FixedPointOverflow
from ..models import WAD_DECIMALS, ScaledValue

UINT256_MAX = 2**256 - 1

ONE_WAD = ScaledValue.one(WAD_DECIMALS)


def mul_div_raw(a: int, b: int, denominator: int) -> int:
    """Compute ``a * b / denominator`` truncated toward zero.

    Raises:
        DivisionByZero: ``denominator`` is zero.
        FixedPointOverflow: the result does not fit in a uint256.
    """
    if denominator == 0:
        raise DivisionByZero(f"mul_div({a}, {b}, 0)")

    product = a * b
    quotient = abs(product) // abs(denominator)
    if (product < 0) != (denominator < 0):
        quotient = -quotient

    if abs(quotient) > UINT256_MAX:
        raise FixedPointOverflow(f"mul_div result exceeds uint256: {quotient}")
    return quotient


def mul_div(a: ScaledValue, b: ScaledValue, denominator: ScaledValue) -> ScaledValue:
    """Scale-aware ``a * b / denominator``.

    The result carries ``a.decimals + b.decimals - denominator.decimals``
    decimals, e.g. shares(18) * underlying(6) / shares(18) -> underlying(6).
    """
    decimals = a.decimals + b.decimals - denominator.decimals
    if decimals < 0:
        raise ValueError(
            f"mul_div would produce negative decimals "
            f"({a.decimals} + {b.decimals} - {denominator.decimals})"
        )
    return ScaledValue(mul_div_raw(a.raw, b.raw, denominator.raw), decimals)
