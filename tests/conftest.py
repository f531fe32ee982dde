"""Shared fixtures for the test suite."""

import os
import sys
from pathlib import Path
from typing import Dict, Iterable, Union

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from file_secret_sync.stores import InMemorySecretStore
from file_secret_sync.watcher.base import BaseNotifier, NotifierError


class RecordingNotifier(BaseNotifier):
    """Notifier that records watch calls instead of touching the OS."""
    
    def __init__(self, fail_on: Iterable[str] = ()):
        super().__init__()
        self.watched = []
        self.unwatched = []
        self.fail_on = {str(path) for path in fail_on}
    
    def _watch(self, path: str) -> None:
        if path in self.fail_on:
            raise NotifierError(f"Failed to watch {path}")
        self.watched.append(path)
    
    def _unwatch(self, path: str) -> None:
        self.unwatched.append(path)


def _write_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    for relative_path, content in files.items():
        full_path = root / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        full_path.write_bytes(content)
    return root


@pytest.fixture
def write_tree():
    """Write ``{relative_path: content}`` below a directory."""
    return _write_tree


@pytest.fixture
def notifier_factory():
    return RecordingNotifier


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return InMemorySecretStore()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run with no sync settings in the environment and no .env file."""
    for name in list(os.environ):
        upper = name.upper()
        if upper in ("FOLDER_TO_READ", "SECRET_TO_WRITE", "SECRET_STORE_BACKEND",
                     "FAIL_ON_INITIAL_SYNC_ERROR", "ENVIRONMENT") or upper.startswith(("WATCH_", "KUBE_", "LOG_")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
