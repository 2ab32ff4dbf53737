"""Data models — all frozen (immutable)."""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum

from .errors import ScaleMismatch

WAD_DECIMALS = 18
WAD = 10**WAD_DECIMALS

_DECIMAL_RE = re.compile(r"([+-]?)(\d*)(?:\.(\d*))?", re.ASCII)


@dataclass(frozen=True)
class ScaledValue:
    """Integer amount with its decimal scale attached.

    ``ScaledValue(1_500_000, 6)`` is 1.5 in a 6-decimals unit (e.g. USDC).
    Addition, subtraction and ordering require both sides to share a scale;
    use :meth:`rescale` to convert explicitly.
    """

    raw: int
    decimals: int

    def __post_init__(self) -> None:
        if isinstance(self.raw, bool) or not isinstance(self.raw, int):
            raise TypeError(f"raw must be an int, got {type(self.raw).__name__}")
        if self.decimals < 0:
            raise ValueError(f"decimals must be >= 0, got {self.decimals}")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def zero(cls, decimals: int) -> ScaledValue:
        return cls(0, decimals)

    @classmethod
    def one(cls, decimals: int) -> ScaledValue:
        return cls(10**decimals, decimals)

    @classmethod
    def parse(cls, text: str, decimals: int) -> ScaledValue:
        """Decode a decimal string such as ``"12.5"`` without going through float.

        Raises ValueError for malformed input or for more significant
        fractional digits than ``decimals`` can hold.
        """
        match = _DECIMAL_RE.fullmatch(text.strip())
        if match is None:
            raise ValueError(f"Not a decimal number: {text!r}")
        sign, whole, frac = match.group(1), match.group(2), match.group(3) or ""
        if not whole and not frac:
            raise ValueError(f"Not a decimal number: {text!r}")

        if len(frac) > decimals:
            if frac[decimals:].strip("0"):
                raise ValueError(
                    f"{text!r} has more than {decimals} fractional digits"
                )
            frac = frac[:decimals]

        raw = int(whole or "0") * 10**decimals + int(frac.ljust(decimals, "0") or "0")
        return cls(-raw if sign == "-" else raw, decimals)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def to_decimal_string(self, places: int | None = None) -> str:
        """Encode as an exact decimal string.

        Args:
            places: Truncate the fractional part to this many digits. ``None``
                keeps every significant digit.
        """
        sign = "-" if self.raw < 0 else ""
        whole, frac = divmod(abs(self.raw), 10**self.decimals)
        if self.decimals == 0 or places == 0:
            return f"{sign}{whole}"

        frac_str = str(frac).rjust(self.decimals, "0")
        if places is not None:
            frac_str = frac_str[:places].ljust(places, "0")
        else:
            frac_str = frac_str.rstrip("0") or "0"
        return f"{sign}{whole}.{frac_str}"

    def to_float(self) -> float:
        """Approximate value for display and informational projections only."""
        return self.raw / 10**self.decimals

    def __str__(self) -> str:
        return self.to_decimal_string()

    # ------------------------------------------------------------------
    # Scale handling
    # ------------------------------------------------------------------

    def rescale(self, decimals: int) -> ScaledValue:
        """Convert to another scale; exact upwards, truncating toward zero downwards."""
        if decimals == self.decimals:
            return self
        if decimals > self.decimals:
            return ScaledValue(self.raw * 10 ** (decimals - self.decimals), decimals)
        factor = 10 ** (self.decimals - decimals)
        quotient = abs(self.raw) // factor
        return ScaledValue(-quotient if self.raw < 0 else quotient, decimals)

    def _check_scale(self, other: object) -> ScaledValue:
        if not isinstance(other, ScaledValue):
            raise TypeError(f"Expected ScaledValue, got {type(other).__name__}")
        if other.decimals != self.decimals:
            raise ScaleMismatch(
                f"Cannot combine values with {self.decimals} and {other.decimals} decimals"
            )
        return other

    @property
    def is_zero(self) -> bool:
        return self.raw == 0

    @property
    def is_negative(self) -> bool:
        return self.raw < 0

    # ------------------------------------------------------------------
    # Same-scale arithmetic and ordering
    # ------------------------------------------------------------------

    def __add__(self, other: ScaledValue) -> ScaledValue:
        other = self._check_scale(other)
        return ScaledValue(self.raw + other.raw, self.decimals)

    def __sub__(self, other: ScaledValue) -> ScaledValue:
        other = self._check_scale(other)
        return ScaledValue(self.raw - other.raw, self.decimals)

    def __lt__(self, other: ScaledValue) -> bool:
        return self.raw < self._check_scale(other).raw

    def __le__(self, other: ScaledValue) -> bool:
        return self.raw <= self._check_scale(other).raw

    def __gt__(self, other: ScaledValue) -> bool:
        return self.raw > self._check_scale(other).raw

    def __ge__(self, other: ScaledValue) -> bool:
        return self.raw >= self._check_scale(other).raw


# ---------------------------------------------------------------------------
# Raw ledger state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolState:
    """Pool-wide totals as read from the lending pool."""

    total_collateral_underlying: ScaledValue
    total_collateral_shares: ScaledValue
    total_borrows: ScaledValue
    borrow_index: ScaledValue
    cash: ScaledValue
    liquidation_threshold: ScaledValue
    min_borrow: ScaledValue | None = None


@dataclass(frozen=True)
class UserPosition:
    """A single account's raw position."""

    share_balance: ScaledValue
    principal_borrow: ScaledValue
    user_borrow_index: ScaledValue

    @property
    def has_borrowed(self) -> bool:
        return not self.principal_borrow.is_zero


@dataclass(frozen=True)
class InterestSample:
    rate_per_second: ScaledValue


@dataclass(frozen=True)
class PriceQuote:
    """Oracle prices in USD-WAD per whole token."""

    collateral_price: ScaledValue
    borrow_price: ScaledValue


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateProjection:
    """Annualized borrow rate; ``apr``/``apy`` are fractions (0.05 == 5%)."""

    apr: float
    apy: float
    apr_wad: ScaledValue

    @property
    def apr_percent(self) -> float:
        return self.apr * 100

    @property
    def apy_percent(self) -> float:
        return self.apy * 100


class RiskTier(StrEnum):
    UNKNOWN = "Unknown"
    DANGER = "Danger"
    WARNING = "Warning"
    SAFE = "Safe"


# Ordering from most to least severe, used to detect a worsening tier.
TIER_SEVERITY: dict[RiskTier, int] = {
    RiskTier.DANGER: 3,
    RiskTier.WARNING: 2,
    RiskTier.SAFE: 1,
    RiskTier.UNKNOWN: 0,
}


@dataclass(frozen=True)
class RiskView:
    """Risk assessment of a position.

    ``health_factor`` is ``None`` when there is no debt: the ratio is
    undefined and the position cannot be liquidated.
    """

    collateral_value: ScaledValue | None
    debt_value: ScaledValue | None
    health_factor: ScaledValue | None
    tier: RiskTier
    max_borrow_value: ScaledValue | None = None
    available_borrow_value: ScaledValue | None = None

    @property
    def has_debt(self) -> bool:
        return self.debt_value is not None and not self.debt_value.is_zero


@dataclass(frozen=True)
class BorrowCheck:
    """Outcome of a borrow pre-flight check."""

    allowed: bool
    reason: str = ""
    max_additional_value: ScaledValue | None = None


@dataclass(frozen=True)
class WithdrawCheck:
    """Outcome of a withdraw preview: shares to burn and the resulting health."""

    allowed: bool
    reason: str = ""
    shares: ScaledValue | None = None
    health_factor_after: ScaledValue | None = None
    tier_after: RiskTier | None = None


class SnapshotFlag(StrEnum):
    INCONSISTENT = "inconsistent"
    STALE = "stale"


@dataclass(frozen=True)
class PositionSnapshot:
    """One consistent, point-in-time view of an account's position."""

    sequence: int
    account: str
    timestamp: datetime
    block_number: int
    pool: PoolState
    user: UserPosition
    interest: InterestSample
    prices: PriceQuote
    collateral_underlying: ScaledValue | None
    current_debt: ScaledValue | None
    rates: RateProjection
    risk: RiskView
    flags: frozenset[SnapshotFlag] = frozenset()
    issues: tuple[str, ...] = ()

    @property
    def is_stale(self) -> bool:
        return SnapshotFlag.STALE in self.flags

    @property
    def is_inconsistent(self) -> bool:
        return SnapshotFlag.INCONSISTENT in self.flags

    @property
    def is_actionable(self) -> bool:
        """Whether figures may back a borrow/withdraw decision."""
        return not self.flags

    def mark_stale(self, reason: str) -> PositionSnapshot:
        return replace(
            self,
            flags=self.flags | {SnapshotFlag.STALE},
            issues=self.issues + (reason,),
        )


# ---------------------------------------------------------------------------
# Ledger events
# ---------------------------------------------------------------------------


class LedgerEventKind(StrEnum):
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    BORROW = "Borrow"
    REPAY = "Repay"


@dataclass(frozen=True)
class LedgerEvent:
    """A state-changing pool event, used only as a refresh trigger."""

    kind: LedgerEventKind
    account: str
    block_number: int = 0
    tx_hash: str = ""


def same_account(a: str, b: str) -> bool:
    """Compare two hex addresses ignoring checksum casing."""
    return a.lower() == b.lower()

