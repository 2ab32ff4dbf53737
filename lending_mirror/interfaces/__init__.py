"""Protocol interfaces for the mirror engine's collaborators."""
from .events import LedgerEventSource
from .ledger import LedgerReader
from .notifier import Notifier

__all__ = ["LedgerEventSource", "LedgerReader", "Notifier"]
