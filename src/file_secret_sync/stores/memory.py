"""In-process secret store.

Used as a dry-run backend and as the store double in tests. It enforces
resource versions the same way the API server does.
"""

import copy
from typing import Dict, List, Optional, Tuple

from .base import (
    BaseSecretStore,
    SecretObject,
    SecretNotFoundError,
    SecretConflictError
)


class InMemorySecretStore(BaseSecretStore):
    """Secret store that keeps secrets in a dictionary."""
    
    def __init__(self, secrets: Optional[List[SecretObject]] = None, **kwargs):
        super().__init__(**kwargs)
        self._secrets: Dict[Tuple[str, str], SecretObject] = {}
        self._version = 0
        self._failures: Dict[str, List[Exception]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        
        for secret in secrets or []:
            self._store(secret.namespace, secret)
    
    def fail_next(self, operation: str, error: Exception) -> None:
        """Make the next call of ``operation`` ("get", "create" or "update") raise ``error``."""
        self._failures.setdefault(operation, []).append(error)
    
    def writes(self) -> List[Tuple[str, str, str]]:
        """Recorded create and update calls."""
        return [call for call in self.calls if call[0] in ("create", "update")]
    
    async def get(self, namespace: str, name: str) -> SecretObject:
        self._record("get", namespace, name)
        
        secret = self._secrets.get((namespace, name))
        if secret is None:
            raise SecretNotFoundError(f"Secret {namespace}/{name} not found", status=404)
        return copy.deepcopy(secret)
    
    async def create(self, namespace: str, secret: SecretObject) -> SecretObject:
        self._record("create", namespace, secret.name)
        
        if (namespace, secret.name) in self._secrets:
            raise SecretConflictError(
                f"Secret {namespace}/{secret.name} already exists", status=409
            )
        return copy.deepcopy(self._store(namespace, secret))
    
    async def update(self, namespace: str, secret: SecretObject) -> SecretObject:
        self._record("update", namespace, secret.name)
        
        current = self._secrets.get((namespace, secret.name))
        if current is None:
            raise SecretNotFoundError(f"Secret {namespace}/{secret.name} not found", status=404)
        if secret.resource_version and secret.resource_version != current.resource_version:
            raise SecretConflictError(
                f"Secret {namespace}/{secret.name} was modified "
                f"(have {secret.resource_version}, stored {current.resource_version})",
                status=409
            )
        return copy.deepcopy(self._store(namespace, secret))
    
    def _record(self, operation: str, namespace: str, name: str) -> None:
        self.calls.append((operation, namespace, name))
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)
    
    def _store(self, namespace: str, secret: SecretObject) -> SecretObject:
        self._version += 1
        stored = copy.deepcopy(secret)
        stored.namespace = namespace
        stored.resource_version = str(self._version)
        self._secrets[(namespace, secret.name)] = stored
        return stored
