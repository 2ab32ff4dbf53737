"""Health factor, risk tiering, borrow capacity and withdraw previews.

All ratios here are integer-exact. Values are in USD-WAD (18 decimals) and
the health factor is WAD-scaled, so 1.0 is ``10**18``.
"""
from __future__ import annotations

from ..errors import ScaleMismatch
from ..models import (
    WAD_DECIMALS,
    BorrowCheck,
    PoolState,
    RiskTier,
    RiskView,
    ScaledValue,
    UserPosition,
    WithdrawCheck,
)
from .fixed_point import ONE_WAD, mul_div
from .shares import shares_to_underlying, underlying_to_shares

PRICE_DECIMALS = 18
PRICE_SCALE = ScaledValue.one(PRICE_DECIMALS)

# Tier boundaries; a factor equal to a boundary falls into the riskier tier.
LIQUIDATION_HF = ScaledValue.one(WAD_DECIMALS)
WARNING_HF = ScaledValue(12 * 10 ** (WAD_DECIMALS - 1), WAD_DECIMALS)


def token_value(amount: ScaledValue, price: ScaledValue) -> ScaledValue:
    """USD-WAD value of a token amount at an oracle price (USD-WAD per token)."""
    if price.decimals != PRICE_DECIMALS:
        raise ScaleMismatch(f"price must have {PRICE_DECIMALS} decimals, got {price.decimals}")
    return mul_div(amount.rescale(WAD_DECIMALS), price, PRICE_SCALE)


def classify(health_factor: ScaledValue | None, has_collateral_data: bool = True) -> RiskTier:
    """Map a health factor onto a risk tier.

    ``None`` means no debt: SAFE when collateral is known, else UNKNOWN.
    """
    if health_factor is None:
        return RiskTier.SAFE if has_collateral_data else RiskTier.UNKNOWN
    if health_factor < LIQUIDATION_HF:
        return RiskTier.DANGER
    if health_factor < WARNING_HF:
        return RiskTier.WARNING
    return RiskTier.SAFE


def assess(
    collateral_underlying: ScaledValue | None,
    oracle_price: ScaledValue | None,
    debt_value: ScaledValue | None,
    liquidation_threshold: ScaledValue,
) -> RiskView:
    """Combine collateral, price, debt and threshold into a :class:`RiskView`.

    collateral_value = collateral * price / PRICE_SCALE
    max_borrow_value = collateral_value * threshold / WAD
    health_factor    = collateral_value * threshold / debt_value
    """
    if collateral_underlying is None or oracle_price is None:
        return RiskView(
            collateral_value=None,
            debt_value=debt_value,
            health_factor=None,
            tier=RiskTier.UNKNOWN,
        )

    collateral_value = token_value(collateral_underlying, oracle_price)
    max_borrow_value = mul_div(collateral_value, liquidation_threshold, ONE_WAD)

    if debt_value is None:
        return RiskView(
            collateral_value=collateral_value,
            debt_value=None,
            health_factor=None,
            tier=RiskTier.UNKNOWN,
            max_borrow_value=max_borrow_value,
        )

    if debt_value.is_zero:
        health_factor = None
    else:
        health_factor = mul_div(collateral_value, liquidation_threshold, debt_value)

    available = max_borrow_value - debt_value
    if available.is_negative:
        available = ScaledValue.zero(available.decimals)

    return RiskView(
        collateral_value=collateral_value,
        debt_value=debt_value,
        health_factor=health_factor,
        tier=classify(health_factor),
        max_borrow_value=max_borrow_value,
        available_borrow_value=available,
    )


def check_borrow(
    view: RiskView,
    pool: PoolState,
    requested_amount: ScaledValue,
    borrow_price: ScaledValue,
) -> BorrowCheck:
    """Pre-flight check for borrowing ``requested_amount`` more.

    Mirrors the pool's own checks: the minimum borrow size, available cash,
    and the post-borrow debt staying within ``max_borrow_value``.
    """
    if requested_amount.is_zero or requested_amount.is_negative:
        return BorrowCheck(allowed=False, reason="Borrow amount must be greater than 0")

    if pool.min_borrow is not None and requested_amount < pool.min_borrow:
        return BorrowCheck(
            allowed=False,
            reason=f"Borrow amount must be at least {pool.min_borrow}",
        )

    if requested_amount > pool.cash:
        return BorrowCheck(
            allowed=False,
            reason=f"Pool only has {pool.cash} available to borrow",
        )

    if view.max_borrow_value is None or view.debt_value is None:
        return BorrowCheck(allowed=False, reason="Position data unavailable")

    headroom = view.available_borrow_value or ScaledValue.zero(WAD_DECIMALS)
    requested_value = token_value(requested_amount, borrow_price)
    if view.debt_value + requested_value > view.max_borrow_value:
        return BorrowCheck(
            allowed=False,
            reason=f"Borrow exceeds max allowed; headroom is {headroom.to_decimal_string(2)} USD",
            max_additional_value=headroom,
        )
    return BorrowCheck(allowed=True, max_additional_value=headroom)


def check_withdraw(
    pool: PoolState,
    user: UserPosition,
    collateral_price: ScaledValue,
    debt_value: ScaledValue | None,
    amount: ScaledValue,
) -> WithdrawCheck:
    """Preview withdrawing ``amount`` of underlying collateral.

    Converts the amount into the shares the pool would burn and reassesses
    the position on the remaining collateral. A withdraw that leaves the
    position liquidatable is rejected, as the pool would revert it.
    """
    if amount.is_zero or amount.is_negative:
        return WithdrawCheck(allowed=False, reason="Withdraw amount must be greater than 0")

    if debt_value is None:
        return WithdrawCheck(allowed=False, reason="Position data unavailable")

    shares = underlying_to_shares(
        amount, pool.total_collateral_shares, pool.total_collateral_underlying
    )
    if shares > user.share_balance:
        return WithdrawCheck(
            allowed=False,
            reason=f"Withdraw needs {shares} shares but only {user.share_balance} are held",
            shares=shares,
        )

    remaining = shares_to_underlying(
        user.share_balance - shares,
        pool.total_collateral_shares,
        pool.total_collateral_underlying,
    )
    after = assess(remaining, collateral_price, debt_value, pool.liquidation_threshold)
    if after.tier is RiskTier.DANGER:
        return WithdrawCheck(
            allowed=False,
            reason="Withdraw would leave the position liquidatable",
            shares=shares,
            health_factor_after=after.health_factor,
            tier_after=after.tier,
        )
    return WithdrawCheck(
        allowed=True,
        shares=shares,
        health_factor_after=after.health_factor,
        tier_after=after.tier,
    )
