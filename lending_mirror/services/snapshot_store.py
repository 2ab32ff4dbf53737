"""The single published-snapshot reference shared with readers."""
from __future__ import annotations

import logging

from ..errors import StaleSequence
from ..models import PositionSnapshot, same_account

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Holds the currently published snapshot for the active account.

    Publication swaps one reference, so readers see either the old snapshot
    or the new one, never a mix.
    """

    def __init__(self, account: str) -> None:
        self._account = account
        self._current: PositionSnapshot | None = None

    @property
    def account(self) -> str:
        return self._account

    @property
    def current(self) -> PositionSnapshot | None:
        return self._current

    def publish(self, snapshot: PositionSnapshot) -> None:
        """Make ``snapshot`` current.

        Raises:
            StaleSequence: the snapshot belongs to another account or is not
                newer than the published one.
        """
        if not same_account(snapshot.account, self._account):
            raise StaleSequence(
                f"snapshot #{snapshot.sequence} is for {snapshot.account}, "
                f"active account is {self._account}"
            )
        current = self._current
        if current is not None and snapshot.sequence <= current.sequence:
            raise StaleSequence(
                f"snapshot #{snapshot.sequence} is not newer than #{current.sequence}"
            )
        self._current = snapshot

    def mark_stale(self, reason: str) -> PositionSnapshot | None:
        """Flag the published snapshot as possibly outdated and return it."""
        current = self._current
        if current is None:
            return None
        if not current.is_stale:
            self._current = current.mark_stale(reason)
        return self._current

    def switch_account(self, account: str) -> None:
        """Discard everything published for the previous account."""
        logger.info("Active account switched from %s to %s", self._account, account)
        self._account = account
        self._current = None
