"""Pure position math — no I/O, no mutable state."""
from .debt import IndexWatermark, accrued_interest, current_debt
from .fixed_point import mul_div, mul_div_raw
from .rates import SECONDS_PER_YEAR, annualize
from .risk import PRICE_SCALE, assess, check_borrow, check_withdraw, classify
from .shares import shares_to_underlying, underlying_to_shares

__all__ = [
    "IndexWatermark",
    "PRICE_SCALE",
    "SECONDS_PER_YEAR",
    "accrued_interest",
    "annualize",
    "assess",
    "check_borrow",
    "check_withdraw",
    "classify",
    "current_debt",
    "mul_div",
    "mul_div_raw",
    "shares_to_underlying",
    "underlying_to_shares",
]
