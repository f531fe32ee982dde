"""Exceptions raised by the sync core."""


class SyncEngineError(Exception):
    """Base exception for sync engine errors."""
    pass
