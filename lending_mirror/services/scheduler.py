"""Interval + event driven refresh with a single coalescing gate."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..errors import ReadFailure, StaleSequence
from ..interfaces.events import LedgerEventSource
from ..models import LedgerEvent, PositionSnapshot, same_account
from .snapshot_service import PositionSnapshotService
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[PositionSnapshot], Awaitable[None]]


class RefreshScheduler:
    """Decides when the active account's snapshot is recomputed.

    Two triggers share one gate: a fixed interval and ledger events for the
    active account. At most one refresh is in flight; a trigger that arrives
    meanwhile waits for, and is satisfied by, the running refresh.
    """

    def __init__(
        self,
        service: PositionSnapshotService,
        store: SnapshotStore,
        interval_seconds: float,
        event_source: LedgerEventSource | None = None,
        on_publish: SnapshotCallback | None = None,
        on_stale: SnapshotCallback | None = None,
        event_retry_seconds: float = 5,
    ) -> None:
        self._service = service
        self._store = store
        self._interval = interval_seconds
        self._events = event_source
        self._on_publish = on_publish
        self._on_stale = on_stale
        self._event_retry = event_retry_seconds
        self._inflight: asyncio.Task[PositionSnapshot | None] | None = None
        self._stopping = asyncio.Event()

    @property
    def account(self) -> str:
        return self._store.account

    @property
    def refresh_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ------------------------------------------------------------------
    # Refresh gate
    # ------------------------------------------------------------------

    async def request_refresh(self, reason: str = "manual") -> PositionSnapshot | None:
        """Trigger a refresh, or join the one already running.

        Returns the published snapshot, or ``None`` when the refresh failed,
        was cancelled by an account switch, or was dropped as stale.
        """
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._refresh(self._store.account, reason))
            self._inflight = task
        else:
            logger.debug("Refresh already in flight; %s trigger coalesced", reason)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            raise

    async def _refresh(self, account: str, reason: str) -> PositionSnapshot | None:
        logger.debug("Refreshing %s (%s)", account, reason)
        try:
            snapshot = await self._service.refresh(account)
        except ReadFailure as e:
            logger.warning("Refresh of %s failed, keeping last snapshot: %s", account, e)
            stale = self._store.mark_stale(str(e))
            if stale is not None and self._on_stale is not None:
                await self._on_stale(stale)
            return None

        try:
            self._store.publish(snapshot)
        except StaleSequence as e:
            logger.debug("Dropped snapshot: %s", e)
            return None

        if self._on_publish is not None:
            await self._on_publish(snapshot)
        return snapshot

    def switch_account(self, account: str) -> None:
        """Make ``account`` active, abandoning any in-flight refresh."""
        task = self._inflight
        self._inflight = None
        if task is not None and not task.done():
            task.cancel()
        self._service.reset()
        self._store.switch_account(account)

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _interval_loop(self) -> None:
        while True:
            try:
                await self.request_refresh("interval")
            except Exception as e:
                logger.error("Error in refresh loop: %s", e)
            await asyncio.sleep(self._interval)

    async def _event_loop(self) -> None:
        assert self._events is not None
        while True:
            try:
                async for event in self._events.events():
                    await self._on_event(event)
                logger.warning("Event stream ended, restarting")
            except Exception as e:
                logger.error("Event stream failed, restarting: %s", e)
            await asyncio.sleep(self._event_retry)

    async def _on_event(self, event: LedgerEvent) -> None:
        if not same_account(event.account, self._store.account):
            return
        logger.info("%s by %s; refreshing", event.kind, event.account)
        try:
            await self.request_refresh(event.kind.value.lower())
        except Exception as e:
            logger.error("Error refreshing after %s: %s", event.kind, e)

    async def run(self) -> None:
        """Run both trigger loops until :meth:`stop` is called or cancelled."""
        logger.info(
            "Starting refresh scheduler for %s (every %ss%s)",
            self._store.account,
            self._interval,
            ", plus ledger events" if self._events is not None else "",
        )
        self._stopping.clear()
        loops = [asyncio.create_task(self._interval_loop())]
        if self._events is not None:
            loops.append(asyncio.create_task(self._event_loop()))

        try:
            await self._stopping.wait()
        finally:
            for loop in loops:
                loop.cancel()
            if self._inflight is not None:
                self._inflight.cancel()
            await asyncio.gather(*loops, return_exceptions=True)
            logger.info("Refresh scheduler stopped")

    def stop(self) -> None:
        self._stopping.set()
