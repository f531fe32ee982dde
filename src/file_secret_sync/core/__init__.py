"""Core synchronization logic package."""

from .errors import SyncEngineError
from .snapshot import Snapshot, SnapshotReadError, read_snapshot, path_to_key
from .change_detector import has_data_changed
from .sync_engine import SyncEngine, SyncResult, SyncAction
from .watch_loop import WatchLoop, DebounceTimer, TimerState

__all__ = [
    "SyncEngineError",
    "Snapshot",
    "SnapshotReadError",
    "read_snapshot",
    "path_to_key",
    "has_data_changed",
    "SyncEngine",
    "SyncResult",
    "SyncAction",
    "WatchLoop",
    "DebounceTimer",
    "TimerState"
]
