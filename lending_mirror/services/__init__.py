"""Service modules"""
from .monitor import Monitor
from .scheduler import RefreshScheduler
from .snapshot_service import PositionSnapshotService
from .snapshot_store import SnapshotStore

__all__ = ["Monitor", "PositionSnapshotService", "RefreshScheduler", "SnapshotStore"]
