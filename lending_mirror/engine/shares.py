"""Collateral share <-> underlying conversion."""
from __future__ import annotations

from ..errors import ScaleMismatch
from ..models import ScaledValue
from .fixed_point import mul_div


def shares_to_underlying(
    user_shares: ScaledValue,
    total_shares: ScaledValue,
    total_underlying: ScaledValue,
) -> ScaledValue:
    """Underlying collateral claimed by ``user_shares``.

    underlying = user_shares * total_underlying / total_shares

    With no shares minted there is no exchange rate, so the result is zero.
    """
    if user_shares.decimals != total_shares.decimals:
        raise ScaleMismatch(
            f"share balance has {user_shares.decimals} decimals, "
            f"total shares {total_shares.decimals}"
        )
    if total_shares.is_zero:
        return ScaledValue.zero(total_underlying.decimals)
    return mul_div(user_shares, total_underlying, total_shares)


def underlying_to_shares(
    amount: ScaledValue,
    total_shares: ScaledValue,
    total_underlying: ScaledValue,
) -> ScaledValue:
    """Shares corresponding to ``amount`` of underlying (withdraw preview).

    An empty pool mints 1:1, rescaled to the share token's decimals.
    """
    if amount.decimals != total_underlying.decimals:
        raise ScaleMismatch(
            f"amount has {amount.decimals} decimals, "
            f"total underlying {total_underlying.decimals}"
        )
    if total_shares.is_zero or total_underlying.is_zero:
        return amount.rescale(total_shares.decimals)
    return mul_div(amount, total_shares, total_underlying)
