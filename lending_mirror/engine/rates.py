"""Per-second borrow rate -> annualized APR/APY.

These are informational projections, so the compounded APY is computed in
floating point. The linear APR is also kept as an exact WAD integer.
"""
from __future__ import annotations

import math

from ..models import WAD_DECIMALS, RateProjection, ScaledValue

SECONDS_PER_YEAR = 365 * 24 * 60 * 60


def annualize(rate_per_second: ScaledValue) -> RateProjection:
    """Project a per-second rate over one year.

    apr = r * SECONDS_PER_YEAR
    apy = (1 + r) ** SECONDS_PER_YEAR - 1
    """
    rate = rate_per_second.rescale(WAD_DECIMALS)
    if rate.is_zero:
        return RateProjection(apr=0.0, apy=0.0, apr_wad=ScaledValue.zero(WAD_DECIMALS))

    apr_wad = ScaledValue(rate.raw * SECONDS_PER_YEAR, WAD_DECIMALS)
    r = rate.to_float()
    try:
        # expm1/log1p keep precision for the tiny per-second rates seen in practice
        apy = math.expm1(SECONDS_PER_YEAR * math.log1p(r))
    except OverflowError:
        apy = math.inf

    return RateProjection(apr=apr_wad.to_float(), apy=apy, apr_wad=apr_wad)
