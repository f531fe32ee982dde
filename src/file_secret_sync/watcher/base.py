"""Filesystem change notifier interface."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..utils.logging import get_logger


class EventKind(str, Enum):
    """Kinds of filesystem change events."""
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


@dataclass(frozen=True)
class WatchEvent:
    """A change to a path inside a watched directory."""
    
    path: str
    kind: EventKind
    is_directory: bool = False


class NotifierError(Exception):
    """Raised or delivered when the notifier fails at runtime."""
    pass


NotifierItem = Union[WatchEvent, Exception, None]


class BaseNotifier(ABC):
    """Delivers change events from watched directories to an asyncio consumer.
    
    Producers may run on other threads; items are handed to the event loop
    with ``call_soon_threadsafe``. ``get()`` yields a ``WatchEvent``, an
    exception for a notifier error, or ``None`` once the notifier is closed.
    """
    
    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        self._queue: "asyncio.Queue[NotifierItem]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False
    
    @property
    def closed(self) -> bool:
        return self._closed
    
    def start(self) -> None:
        """Bind to the running event loop and begin delivering events."""
        self._loop = asyncio.get_running_loop()
        self._start()
    
    def watch(self, path: str) -> None:
        """Start watching a single directory (not its subdirectories)."""
        if self._closed:
            raise NotifierError("Notifier is closed")
        self._watch(path)
    
    def try_watch(self, path: str) -> bool:
        """Watch a directory, delivering a failure to the consumer as an error item.
        
        Returns:
            True if the directory is now watched
        """
        try:
            self.watch(path)
        except NotifierError as e:
            self.emit_error(e)
            return False
        return True
    
    def unwatch(self, path: str) -> None:
        """Stop watching a directory."""
        if not self._closed:
            self._unwatch(path)
    
    async def get(self) -> NotifierItem:
        """Wait for the next event, error or close marker."""
        return await self._queue.get()
    
    def close(self) -> None:
        """Stop watching and wake the consumer with the close marker."""
        if self._closed:
            return
        self._closed = True
        self._stop()
        self._put(None)
    
    def emit_event(self, event: WatchEvent) -> None:
        """Queue an event; safe to call from any thread."""
        self._put(event)
    
    def emit_error(self, error: Exception) -> None:
        """Queue an error; safe to call from any thread."""
        self._put(error)
    
    def _put(self, item: NotifierItem) -> None:
        if self._loop is None or self._loop.is_closed():
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
    
    def _start(self) -> None:
        pass
    
    @abstractmethod
    def _watch(self, path: str) -> None:
        pass
    
    @abstractmethod
    def _unwatch(self, path: str) -> None:
        pass
    
    def _stop(self) -> None:
        pass
