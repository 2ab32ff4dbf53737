"""Position snapshot orchestration — one consistent view per refresh."""
from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TypeVar

from ..engine.debt import IndexWatermark, current_debt
from ..engine.rates import annualize
from ..engine.risk import assess, token_value
from ..engine.shares import shares_to_underlying
from ..errors import DivisionByZero, FixedPointOverflow, InconsistentState, ReadFailure
from ..interfaces.ledger import LedgerReader
from ..models import (
    InterestSample,
    PoolState,
    PositionSnapshot,
    PriceQuote,
    RiskTier,
    RiskView,
    SnapshotFlag,
    UserPosition,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that make a figure unknowable without making the reads wrong.
_COMPUTE_ERRORS = (DivisionByZero, FixedPointOverflow, InconsistentState)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PositionSnapshotService:
    """Read raw ledger state and derive a :class:`PositionSnapshot`.

    Sequence numbers are taken when a refresh *starts*, so a slow refresh
    that finishes after a newer one carries the lower number and is rejected
    at publication.
    """

    def __init__(
        self,
        ledger: LedgerReader,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ledger = ledger
        self._clock = clock
        self._sequence = itertools.count(1)
        self._watermark = IndexWatermark()

    def reset(self) -> None:
        """Forget per-account history (call on account or chain switch)."""
        self._watermark.reset()

    async def refresh(self, account: str) -> PositionSnapshot:
        """Read everything at one block and compute a snapshot.

        Raises:
            ReadFailure: any read failed; nothing from this attempt is kept.
        """
        sequence = next(self._sequence)

        try:
            block = await self._ledger.block_number()
            pool, user, prices = await self._read_batch(account, block)
            interest = await self._ledger.read_interest_sample(pool, block)
        except ReadFailure:
            raise
        except Exception as e:
            raise ReadFailure(f"Ledger read failed: {e}") from e

        snapshot = self.compute(sequence, account, block, pool, user, prices, interest)
        logger.info(
            "Snapshot #%d for %s at block %d: tier %s, HF %s%s",
            snapshot.sequence,
            account,
            block,
            snapshot.risk.tier,
            snapshot.risk.health_factor.to_decimal_string(4)
            if snapshot.risk.health_factor is not None
            else "n/a",
            " (inconsistent)" if snapshot.is_inconsistent else "",
        )
        return snapshot

    async def _read_batch(
        self, account: str, block: int
    ) -> tuple[PoolState, UserPosition, PriceQuote]:
        """Read pool, user and prices concurrently; the first failure cancels the rest."""
        try:
            async with asyncio.TaskGroup() as group:
                pool = group.create_task(self._ledger.read_pool_state(block))
                user = group.create_task(self._ledger.read_user_position(account, block))
                prices = group.create_task(self._ledger.read_prices(block))
        except ExceptionGroup as e:
            raise e.exceptions[0] from None
        return pool.result(), user.result(), prices.result()

    def compute(
        self,
        sequence: int,
        account: str,
        block: int,
        pool: PoolState,
        user: UserPosition,
        prices: PriceQuote,
        interest: InterestSample,
    ) -> PositionSnapshot:
        """Derive all figures from one joined batch of reads."""
        issues: list[str] = []

        try:
            self._watermark.observe(pool.borrow_index)
        except InconsistentState as e:
            issues.append(str(e))

        if user.share_balance > pool.total_collateral_shares:
            issues.append(
                f"share balance {user.share_balance} exceeds total shares "
                f"{pool.total_collateral_shares}"
            )

        collateral = self._guard(
            issues,
            "collateral",
            lambda: shares_to_underlying(
                user.share_balance,
                pool.total_collateral_shares,
                pool.total_collateral_underlying,
            ),
        )
        debt = self._guard(
            issues,
            "debt",
            lambda: current_debt(
                user.principal_borrow, user.user_borrow_index, pool.borrow_index
            ),
        )
        if debt is not None and debt < user.principal_borrow:
            issues.append(f"current debt {debt} is below principal {user.principal_borrow}")

        debt_value = None
        if debt is not None:
            debt_value = self._guard(
                issues, "debt value", lambda: token_value(debt, prices.borrow_price)
            )

        risk = self._guard(
            issues,
            "risk",
            lambda: assess(
                collateral,
                prices.collateral_price,
                debt_value,
                pool.liquidation_threshold,
            ),
        )
        if risk is None:
            risk = RiskView(
                collateral_value=None,
                debt_value=debt_value,
                health_factor=None,
                tier=RiskTier.UNKNOWN,
            )

        for issue in issues:
            logger.warning("Inconsistent ledger data for %s: %s", account, issue)

        return PositionSnapshot(
            sequence=sequence,
            account=account,
            timestamp=self._clock(),
            block_number=block,
            pool=pool,
            user=user,
            interest=interest,
            prices=prices,
            collateral_underlying=collateral,
            current_debt=debt,
            rates=annualize(interest.rate_per_second),
            risk=risk,
            flags=frozenset({SnapshotFlag.INCONSISTENT}) if issues else frozenset(),
            issues=tuple(issues),
        )

    @staticmethod
    def _guard(issues: list[str], label: str, compute: Callable[[], T]) -> T | None:
        try:
            return compute()
        except _COMPUTE_ERRORS as e:
            issues.append(f"{label}: {e}")
            return None
