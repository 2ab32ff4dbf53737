"""Ledger event source protocol — state-changing pool events."""
from collections.abc import AsyncIterator
from typing import Protocol

from ..models import LedgerEvent


class LedgerEventSource(Protocol):
    """Abstract interface for a stream of deposit/withdraw/borrow/repay events."""

    def events(self) -> AsyncIterator[LedgerEvent]: ...
