"""Application wiring — builds the engine for one account and renders snapshots."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..chains.evm import EvmEventPoller, EvmLedgerClient
from ..config import AppConfig
from ..engine.risk import check_borrow, check_withdraw
from ..interfaces.notifier import Notifier
from ..models import (
    TIER_SEVERITY,
    BorrowCheck,
    PositionSnapshot,
    RiskTier,
    ScaledValue,
    WithdrawCheck,
)
from ..notifications import TelegramNotifier
from .scheduler import RefreshScheduler
from .snapshot_service import PositionSnapshotService
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

_TIER_STATUS = {
    RiskTier.SAFE: "✅ Safe: position healthy",
    RiskTier.WARNING: "⚠️ Warning: health factor low",
    RiskTier.DANGER: "🚨 Danger: position can be liquidated",
    RiskTier.UNKNOWN: "❔ Unknown",
}


class Monitor:
    """Runs the refresh scheduler for the active account and reports snapshots."""

    def __init__(self, config: AppConfig, account_label: str | None = None) -> None:
        self._config = config
        self._account = config.account(account_label)
        self._tokens = config.tokens

        self._client = EvmLedgerClient(config.chain, config.contracts, config.tokens)
        self._service = PositionSnapshotService(self._client)
        self._store = SnapshotStore(self._account.address)
        self._last_tier: RiskTier | None = None

        # Build notifiers
        self._notifiers: list[Notifier] = []
        if config.notifications.telegram.enabled:
            self._notifiers.append(TelegramNotifier(config.notifications.telegram))

    @property
    def store(self) -> SnapshotStore:
        return self._store

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_wallet(address: str) -> str:
        if len(address) > 16:
            return f"{address[:10]}...{address[-6:]}"
        return address

    @staticmethod
    def _get_status(tier: RiskTier) -> str:
        return _TIER_STATUS[tier]

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    @staticmethod
    def _amount(value: ScaledValue | None, places: int = 4) -> str:
        return "—" if value is None else value.to_decimal_string(places)

    @staticmethod
    def _usd(value: ScaledValue | None) -> str:
        return "—" if value is None else f"${value.to_decimal_string(2)}"

    @staticmethod
    def _hf(health_factor: ScaledValue | None, tier: RiskTier | None) -> str:
        if health_factor is not None:
            return health_factor.to_decimal_string(5)
        if tier is RiskTier.SAFE:
            return "∞ (no debt)"
        return "—"

    def build_log_message(self, snapshot: PositionSnapshot) -> str:
        risk = snapshot.risk
        tokens = self._tokens
        hf = self._hf(risk.health_factor, risk.tier)

        lines = [
            f"📊 {self._account.label} · {self._config.chain.name.upper()}",
            "",
            self._get_status(risk.tier),
            "",
            f"Collateral: {self._amount(snapshot.collateral_underlying)} "
            f"{tokens.collateral_symbol} — {self._usd(risk.collateral_value)}",
            f"Debt: {self._amount(snapshot.current_debt)} "
            f"{tokens.borrow_symbol} — {self._usd(risk.debt_value)}",
            f"Health Factor: {hf}",
            f"Max borrow: {self._usd(risk.max_borrow_value)} · "
            f"Available: {self._usd(risk.available_borrow_value)}",
            f"Borrow APR: {snapshot.rates.apr_percent:.2f}% · "
            f"APY: {snapshot.rates.apy_percent:.2f}%",
        ]
        if snapshot.is_stale:
            lines += ["", "⏳ Data may be outdated"]
        if snapshot.is_inconsistent:
            lines += ["", "⚠️ Figures flagged inconsistent — do not act on them:"]
            lines += [f"  - {issue}" for issue in snapshot.issues]
        lines += [
            "",
            f"Block {snapshot.block_number} · #{snapshot.sequence} · "
            f"{snapshot.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        ]
        return "\n".join(lines)

    def format_borrow_check(self, check: BorrowCheck) -> str:
        lines = ["✅ Borrow allowed" if check.allowed else f"❌ Borrow rejected: {check.reason}"]
        if check.max_additional_value is not None:
            lines.append(f"Available to borrow: {self._usd(check.max_additional_value)}")
        return "\n".join(lines)

    def format_withdraw_check(self, check: WithdrawCheck) -> str:
        lines = [
            "✅ Withdraw allowed" if check.allowed else f"❌ Withdraw rejected: {check.reason}"
        ]
        if check.shares is not None:
            lines.append(f"Shares to burn: {self._amount(check.shares)}")
        if check.tier_after is not None:
            lines.append(
                f"Health Factor after: {self._hf(check.health_factor_after, check.tier_after)} "
                f"({check.tier_after})"
            )
        return "\n".join(lines)

    def _build_alert(self, snapshot: PositionSnapshot) -> str:
        risk = snapshot.risk
        action = (
            "⚠️ Add collateral or repay debt immediately!"
            if risk.tier is RiskTier.DANGER
            else "Consider adding collateral or repaying part of the debt."
        )
        hf = self._amount(risk.health_factor, 4)
        return (
            f"{self._get_status(risk.tier)} — HF {hf}\n"
            f"\n"
            f"{self._account.label} · {self._config.chain.name.upper()}\n"
            f"\n"
            f"Collateral: {self._usd(risk.collateral_value)}\n"
            f"Debt: {self._usd(risk.debt_value)}\n"
            f"\n"
            f"{action}\n"
            f"\n"
            f"Wallet: {self._format_wallet(snapshot.account)}\n"
            f"{self._now_str()} UTC"
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send_log(self, message: str, silent: bool = False) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=silent)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Snapshot callbacks
    # ------------------------------------------------------------------

    async def on_publish(self, snapshot: PositionSnapshot) -> None:
        """Report a freshly published snapshot; alert when the tier worsens."""
        await self._send_log(self.build_log_message(snapshot), silent=True)

        tier = snapshot.risk.tier
        previous = self._last_tier
        self._last_tier = tier
        if snapshot.is_inconsistent or tier not in (RiskTier.WARNING, RiskTier.DANGER):
            return
        if previous is not None and TIER_SEVERITY[tier] <= TIER_SEVERITY[previous]:
            return

        subject = (
            "🚨 DANGER: Liquidation Risk!"
            if tier is RiskTier.DANGER
            else "⚠️ WARNING: Health factor low"
        )
        await self._send_alert(self._build_alert(snapshot), subject=subject)

    async def on_stale(self, snapshot: PositionSnapshot) -> None:
        logger.warning(
            "Showing snapshot #%d from block %d; data may be outdated",
            snapshot.sequence,
            snapshot.block_number,
        )

    # ------------------------------------------------------------------
    # Core workflows
    # ------------------------------------------------------------------

    def build_scheduler(
        self,
        interval_seconds: int | None = None,
        with_events: bool = True,
        notify: bool = True,
    ) -> RefreshScheduler:
        monitor_cfg = self._config.monitor
        events = None
        if with_events:
            events = EvmEventPoller(
                self._client,
                poll_seconds=monitor_cfg.event_poll_seconds,
                lookback_blocks=monitor_cfg.event_lookback_blocks,
            )
        return RefreshScheduler(
            self._service,
            self._store,
            interval_seconds or monitor_cfg.refresh_interval_seconds,
            event_source=events,
            on_publish=self.on_publish if notify else None,
            on_stale=self.on_stale,
            event_retry_seconds=monitor_cfg.event_poll_seconds,
        )

    async def check(self, notify: bool = True) -> PositionSnapshot | None:
        """Single refresh of the active account."""
        scheduler = self.build_scheduler(with_events=False, notify=notify)
        return await scheduler.request_refresh("manual")

    async def borrow_check(self, amount: str) -> BorrowCheck | None:
        """Refresh, then pre-flight borrowing ``amount`` of the borrow asset.

        Returns ``None`` when the position could not be read.

        Raises:
            ValueError: ``amount`` is not a decimal in the borrow token's units.
        """
        requested = ScaledValue.parse(amount, self._tokens.borrow_decimals)
        snapshot = await self.check(notify=False)
        if snapshot is None:
            return None
        if not snapshot.is_actionable:
            return BorrowCheck(allowed=False, reason=self._not_actionable(snapshot))
        return check_borrow(
            snapshot.risk, snapshot.pool, requested, snapshot.prices.borrow_price
        )

    async def withdraw_check(self, amount: str) -> WithdrawCheck | None:
        """Refresh, then preview withdrawing ``amount`` of underlying collateral."""
        requested = ScaledValue.parse(amount, self._tokens.collateral_decimals)
        snapshot = await self.check(notify=False)
        if snapshot is None:
            return None
        if not snapshot.is_actionable:
            return WithdrawCheck(allowed=False, reason=self._not_actionable(snapshot))
        return check_withdraw(
            snapshot.pool,
            snapshot.user,
            snapshot.prices.collateral_price,
            snapshot.risk.debt_value,
            requested,
        )

    @staticmethod
    def _not_actionable(snapshot: PositionSnapshot) -> str:
        issues = "; ".join(snapshot.issues) or "unknown"
        return f"Position data flagged {', '.join(sorted(snapshot.flags))}: {issues}"

    async def run_continuous(self, interval_seconds: int | None = None) -> None:
        """Refresh on the interval and on ledger events until cancelled."""
        await self.build_scheduler(interval_seconds).run()
