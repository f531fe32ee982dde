"""Base secret store interface and common types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..utils.logging import get_logger


MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"


@dataclass
class SecretObject:
    """A key-value secret as held by the remote store."""
    
    name: str
    namespace: str
    data: Dict[str, bytes] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    resource_version: Optional[str] = None
    secret_type: str = "Opaque"


class BaseSecretStore(ABC):
    """Abstract base class for remote secret stores."""
    
    def __init__(self, **kwargs):
        self.logger = get_logger(self.__class__.__name__)
    
    @abstractmethod
    async def get(self, namespace: str, name: str) -> SecretObject:
        """Fetch a secret.
        
        Raises:
            SecretNotFoundError: If the secret does not exist
            SecretStoreError: For any other failure
        """
        pass
    
    @abstractmethod
    async def create(self, namespace: str, secret: SecretObject) -> SecretObject:
        """Create a secret and return it as stored."""
        pass
    
    @abstractmethod
    async def update(self, namespace: str, secret: SecretObject) -> SecretObject:
        """Replace an existing secret and return it as stored.
        
        Raises:
            SecretConflictError: If ``secret.resource_version`` is stale
        """
        pass


class SecretStoreError(Exception):
    """Raised when a secret store operation fails."""
    
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SecretNotFoundError(SecretStoreError):
    """Raised when the requested secret does not exist."""
    pass


class SecretConflictError(SecretStoreError):
    """Raised when a write loses an optimistic concurrency check."""
    pass
