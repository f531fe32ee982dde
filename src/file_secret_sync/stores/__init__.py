"""Remote secret store package."""

from .base import (
    BaseSecretStore,
    SecretObject,
    SecretStoreError,
    SecretNotFoundError,
    SecretConflictError,
    MANAGED_BY_LABEL
)

from .kubernetes import KubernetesSecretStore
from .memory import InMemorySecretStore
from .factory import SecretStoreFactory

__all__ = [
    # Base classes and exceptions
    "BaseSecretStore",
    "SecretObject",
    "SecretStoreError",
    "SecretNotFoundError",
    "SecretConflictError",
    "MANAGED_BY_LABEL",
    
    # Store implementations
    "KubernetesSecretStore",
    "InMemorySecretStore",
    
    # Factory
    "SecretStoreFactory"
]
