"""Filesystem change notification package."""

from .base import (
    BaseNotifier,
    EventKind,
    NotifierError,
    WatchEvent
)

from .watchdog_notifier import WatchdogNotifier

__all__ = [
    "BaseNotifier",
    "EventKind",
    "NotifierError",
    "WatchEvent",
    "WatchdogNotifier"
]
