"""Ledger reader protocol — read-only view of the lending contracts."""
from typing import Protocol

from ..models import InterestSample, PoolState, PriceQuote, UserPosition


class LedgerReader(Protocol):
    """Abstract interface for point-in-time reads against the ledger.

    Every read takes the block to read at so a batch of reads describes one
    ledger state. Implementations raise ``ReadFailure`` on any failure.
    """

    async def block_number(self) -> int: ...

    async def read_pool_state(self, block: int) -> PoolState: ...

    async def read_user_position(self, account: str, block: int) -> UserPosition: ...

    async def read_prices(self, block: int) -> PriceQuote: ...

    async def read_interest_sample(
        self, pool: PoolState, block: int
    ) -> InterestSample: ...
