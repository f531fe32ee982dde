"""Notifier backed by watchdog's native observer."""

import os
from typing import Dict, Optional

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from .base import BaseNotifier, EventKind, NotifierError, WatchEvent


_EVENT_KINDS = {
    EVENT_TYPE_CREATED: EventKind.CREATED,
    EVENT_TYPE_MODIFIED: EventKind.MODIFIED,
    EVENT_TYPE_DELETED: EventKind.REMOVED,
    EVENT_TYPE_MOVED: EventKind.RENAMED,
}


def _decode_path(path) -> str:
    return os.fsdecode(path)


class _ForwardingHandler(FileSystemEventHandler):
    """Translates watchdog events into ``WatchEvent`` items."""
    
    def __init__(self, notifier: "WatchdogNotifier"):
        super().__init__()
        self.notifier = notifier
    
    def dispatch(self, event: FileSystemEvent) -> None:
        # Runs on the observer thread, which an escaping exception would kill
        try:
            super().dispatch(event)
        except Exception as e:
            self.notifier.emit_error(
                NotifierError(f"Failed to handle {event.event_type} event for {event.src_path}: {e}")
            )
    
    def on_any_event(self, event: FileSystemEvent) -> None:
        kind = _EVENT_KINDS.get(event.event_type)
        if kind is None:
            # opened/closed events carry no content change of their own
            return
        
        self.notifier.emit_event(
            WatchEvent(_decode_path(event.src_path), kind, event.is_directory)
        )
        
        # The destination of a move is new content for the consumer
        if event.event_type == EVENT_TYPE_MOVED and event.dest_path:
            self.notifier.emit_event(
                WatchEvent(_decode_path(event.dest_path), EventKind.CREATED, event.is_directory)
            )


class WatchdogNotifier(BaseNotifier):
    """Watches individual directories with a watchdog observer."""
    
    def __init__(self, observer: Optional[BaseObserver] = None):
        super().__init__()
        self.observer = observer or Observer()
        self.handler = _ForwardingHandler(self)
        self._watches: Dict[str, ObservedWatch] = {}
    
    def _start(self) -> None:
        self.observer.start()
    
    def _watch(self, path: str) -> None:
        if path in self._watches:
            return
        if self._loop is not None and not self.observer.is_alive():
            raise NotifierError(f"Failed to watch {path}: observer is not running")
        try:
            self._watches[path] = self.observer.schedule(self.handler, path, recursive=False)
        except OSError as e:
            raise NotifierError(f"Failed to watch {path}: {e}") from e
        self.logger.debug("Watching directory", path=path)
    
    def _unwatch(self, path: str) -> None:
        watch = self._watches.pop(path, None)
        if watch is None:
            return
        try:
            self.observer.unschedule(watch)
        except (KeyError, OSError) as e:
            # The emitter for a deleted directory may already be gone
            self.logger.debug("Unwatch failed", path=path, error=str(e))
    
    def _stop(self) -> None:
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
        self._watches.clear()
