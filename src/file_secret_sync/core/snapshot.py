"""Directory snapshots: a flat key/content view of a directory tree."""

import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Union

from .errors import SyncEngineError
from ..utils.logging import get_logger


logger = get_logger(__name__)

Snapshot = Mapping[str, bytes]

KEY_DELIMITER = "."


class SnapshotReadError(SyncEngineError):
    """Raised when a directory tree cannot be read into a snapshot."""
    
    def __init__(self, message: str, path: Union[str, Path, None] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


def path_to_key(relative_path: str) -> str:
    """Turn a root-relative path into a secret key, e.g. ``b/c.txt`` -> ``b.c.txt``."""
    key = relative_path.replace(os.sep, KEY_DELIMITER)
    if os.altsep:
        key = key.replace(os.altsep, KEY_DELIMITER)
    return key


def read_snapshot(root: Union[str, Path]) -> Snapshot:
    """Read every file below ``root`` into an immutable snapshot.
    
    Directories are walked but contribute no key. Every other entry, symlinks
    included, is read through a plain open; a symlink to a directory therefore
    fails the read like any other I/O error.
    
    Args:
        root: Directory to read
        
    Returns:
        Read-only mapping of key to file content
        
    Raises:
        SnapshotReadError: On any I/O error; no partial snapshot is returned
    """
    root = os.fspath(root)
    data: Dict[str, bytes] = {}
    
    _read_directory(root, root, data)
    
    return MappingProxyType(data)


def _read_directory(root: str, directory: str, data: Dict[str, bytes]) -> None:
    try:
        with os.scandir(directory) as entries:
            children = list(entries)
    except OSError as e:
        raise SnapshotReadError(f"Failed to read directory {directory}: {e}", directory) from e
    
    for entry in children:
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as e:
            raise SnapshotReadError(f"Failed to stat {entry.path}: {e}", entry.path) from e
        
        if is_dir:
            _read_directory(root, entry.path, data)
            continue
        
        try:
            with open(entry.path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise SnapshotReadError(f"Failed to read file {entry.path}: {e}", entry.path) from e
        
        key = path_to_key(os.path.relpath(entry.path, root))
        data[key] = content
        
        logger.debug("Read file", path=entry.path, key=key, size=len(content))
