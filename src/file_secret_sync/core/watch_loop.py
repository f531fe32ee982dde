"""Debounced watch loop that decides when to run a sync pass."""

import asyncio
import os
import time
from enum import Enum
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Set, Union

from .errors import SyncEngineError
from .sync_engine import SyncEngine, SyncResult
from ..stores.base import SecretStoreError
from ..watcher.base import BaseNotifier, EventKind, WatchEvent
from ..utils.logging import get_logger


Clock = Callable[[], float]


class TimerState(str, Enum):
    """States of a debounce timer."""
    IDLE = "idle"
    ARMED = "armed"


class DebounceTimer:
    """A single re-armable deadline.

    Arming replaces any pending deadline rather than adding to it. The timer
    never fires on its own; the owner asks whether it has expired.
    """

    def __init__(self, window: float, clock: Clock = time.monotonic):
        if window <= 0:
            raise ValueError(f"Timer window must be positive, got {window}")
        self.window = window
        self._clock = clock
        self._deadline: Optional[float] = None

    @property
    def state(self) -> TimerState:
        return TimerState.IDLE if self._deadline is None else TimerState.ARMED

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def arm(self) -> None:
        self._deadline = self._clock() + self.window

    def disarm(self) -> None:
        self._deadline = None

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when idle."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline


class WatchLoop:
    """Consumes change events and runs debounced sync passes.

    All state here (the timers and the set of watched directories) is owned
    by the single task running ``run()``. Passes run inline, so no two passes
    ever overlap; events that arrive meanwhile wait in the notifier queue.
    """

    def __init__(
        self,
        engine: SyncEngine,
        notifier: BaseNotifier,
        root: Union[str, Path],
        debounce_seconds: float = 1.0,
        resync_interval_seconds: Optional[float] = None,
        clock: Clock = time.monotonic
    ):
        """Initialize the watch loop.

        Args:
            engine: Engine performing the sync passes
            notifier: Source of change events
            root: Directory tree to watch
            debounce_seconds: Quiet period after the last event before a pass
            resync_interval_seconds: If set, also run a pass after this long without one
            clock: Monotonic clock used by the timers
        """
        self.engine = engine
        self.notifier = notifier
        self.root = os.fspath(root)
        self.logger = get_logger(self.__class__.__name__).bind(folder=self.root)

        self.debounce = DebounceTimer(debounce_seconds, clock)
        self.resync_timer: Optional[DebounceTimer] = None
        if resync_interval_seconds:
            self.resync_timer = DebounceTimer(resync_interval_seconds, clock)

        self._watched: Set[str] = set()

        # Statistics
        self.passes = 0
        self.failed_passes = 0
        self.last_result: Optional[SyncResult] = None

    @property
    def state(self) -> TimerState:
        return self.debounce.state

    @property
    def watched(self) -> FrozenSet[str]:
        return frozenset(self._watched)

    def subscribe(self) -> None:
        """Watch the root and every directory below it.

        Raises:
            NotifierError: If a directory cannot be watched
            OSError: If the tree cannot be walked
        """
        self._watch_tree(self.root, strict=True)
        self.logger.info("Watching folder", directories=len(self._watched))

    async def run(self) -> None:
        """Process events until the notifier is closed."""
        self.logger.info("Starting file system monitoring")

        if self.resync_timer is not None and self.resync_timer.state is TimerState.IDLE:
            self.resync_timer.arm()

        while True:
            timeout = self._next_timeout()
            try:
                item = await asyncio.wait_for(self.notifier.get(), timeout)
            except asyncio.TimeoutError:
                await self._on_deadline()
                continue

            if item is None:
                self.logger.info("Watcher closed, stopping monitoring")
                return

            if isinstance(item, Exception):
                self.logger.warning("Watcher error", error=str(item))
                continue

            self.on_change(item)

    def on_change(self, event: WatchEvent) -> None:
        """Handle a change event: track directories, then restart the debounce window."""
        self.logger.debug("File event", kind=event.kind.value, path=event.path)

        if event.is_directory and event.kind is EventKind.CREATED:
            self.logger.info("Adding new directory to watcher", path=event.path)
            self._watch_tree(event.path, strict=False)

        elif event.is_directory and event.kind in (EventKind.REMOVED, EventKind.RENAMED):
            self._forget_tree(event.path)

        self.debounce.arm()

    async def on_timer_expired(self) -> None:
        """Handle debounce expiry: go idle and run exactly one pass."""
        self.debounce.disarm()
        self.logger.info("Debounce timer expired, syncing files")
        await self._reconcile()

    async def _on_deadline(self) -> None:
        if self.debounce.expired():
            await self.on_timer_expired()
        elif self.resync_timer is not None and self.resync_timer.expired():
            self.logger.info("Resync interval elapsed, syncing files")
            await self._reconcile()

    async def _reconcile(self) -> None:
        """Run one pass; failures are logged and never stop the loop."""
        try:
            self.last_result = await self.engine.reconcile_once()
        except (SyncEngineError, SecretStoreError) as e:
            self.failed_passes += 1
            self.logger.error(
                "Sync failed",
                secret=self.engine.secret_identity,
                error_type=type(e).__name__,
                error=str(e)
            )
        except Exception as e:
            self.failed_passes += 1
            self.logger.exception(
                "Sync failed with unexpected error",
                secret=self.engine.secret_identity,
                error=str(e)
            )
        finally:
            self.passes += 1
            if self.resync_timer is not None:
                self.resync_timer.arm()

    def _next_timeout(self) -> Optional[float]:
        remaining = [
            timer.remaining()
            for timer in (self.debounce, self.resync_timer)
            if timer is not None and timer.state is TimerState.ARMED
        ]
        return min(remaining) if remaining else None

    def _watch_tree(self, directory: str, strict: bool) -> None:
        """Watch ``directory`` and everything below it.

        When not strict, a directory that cannot be watched (it may already
        be gone again) comes back through the notifier as an error item and
        the next pass still sees the final state of the tree.
        """
        def on_walk_error(error: OSError) -> None:
            if strict:
                raise error
            self.logger.warning("Failed to scan directory", path=error.filename, error=str(error))

        for dirpath, _dirnames, _filenames in os.walk(directory, onerror=on_walk_error):
            if dirpath in self._watched:
                continue
            if strict:
                self.notifier.watch(dirpath)
            elif not self.notifier.try_watch(dirpath):
                continue
            self._watched.add(dirpath)

    def _forget_tree(self, directory: str) -> None:
        prefix = directory.rstrip(os.sep) + os.sep
        for path in [p for p in self._watched if p == directory or p.startswith(prefix)]:
            self._watched.discard(path)
            self.notifier.unwatch(path)
            self.logger.debug("Stopped watching directory", path=path)
