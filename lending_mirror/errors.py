"""Error taxonomy for the mirror engine."""
from __future__ import annotations


class MirrorError(Exception):
    """Base class for all engine errors."""


class ReadFailure(MirrorError):
    """A ledger read did not complete (RPC error, timeout, bad response)."""


class DivisionByZero(MirrorError, ZeroDivisionError):
    """A fixed-point division was asked to divide by zero."""


class FixedPointOverflow(MirrorError, OverflowError):
    """A fixed-point result does not fit in a uint256."""


class ScaleMismatch(MirrorError, ValueError):
    """Two scaled values with different decimals were combined directly."""


class InconsistentState(MirrorError):
    """Ledger data contradicts itself (e.g. the borrow index went backwards)."""


class StaleSequence(MirrorError):
    """A snapshot older than the published one was offered for publication."""
