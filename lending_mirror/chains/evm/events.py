"""Polling event source for pool Deposit/Withdraw/Borrow/Repay logs."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from ...errors import ReadFailure
from ...models import LedgerEvent
from .client import EvmLedgerClient

logger = logging.getLogger(__name__)


class EvmEventPoller:
    """Turn ``eth_getLogs`` polling into an async stream of ledger events.

    Starts at the current head (minus ``lookback_blocks``) and never yields
    the same block twice. A failed poll is logged and retried on the next
    tick from the same block.
    """

    def __init__(
        self,
        client: EvmLedgerClient,
        poll_seconds: float = 5,
        lookback_blocks: int = 0,
    ) -> None:
        self._client = client
        self._poll_seconds = poll_seconds
        self._lookback_blocks = lookback_blocks
        self._next_block: int | None = None

    async def poll_once(self) -> list[LedgerEvent]:
        """Fetch events from the next unseen block up to the current head."""
        head = await self._client.block_number()
        if self._next_block is None:
            self._next_block = max(head + 1 - self._lookback_blocks, 0)
        if head < self._next_block:
            return []

        events = await self._client.fetch_events(self._next_block, head)
        self._next_block = head + 1
        return events

    async def events(self) -> AsyncIterator[LedgerEvent]:
        while True:
            try:
                batch = await self.poll_once()
            except ReadFailure as e:
                logger.warning("Event poll failed: %s", e)
                batch = []

            for event in batch:
                logger.debug(
                    "%s by %s in block %d", event.kind, event.account, event.block_number
                )
                yield event

            await asyncio.sleep(self._poll_seconds)
