"""EVM ledger collaborator built on web3.py."""
from .client import EvmLedgerClient
from .events import EvmEventPoller

__all__ = ["EvmEventPoller", "EvmLedgerClient"]
