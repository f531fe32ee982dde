"""Core sync engine: mirrors a directory snapshot into one remote secret."""

import asyncio
import dataclasses
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .change_detector import has_data_changed
from .snapshot import Snapshot, read_snapshot
from ..config.settings import DEFAULT_MANAGED_BY
from ..stores.base import (
    BaseSecretStore,
    SecretObject,
    SecretNotFoundError,
    MANAGED_BY_LABEL
)
from ..utils.logging import get_logger


class SyncAction(str, Enum):
    """Outcome of a successful sync pass."""
    
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED_EMPTY = "skipped_empty"


@dataclass
class SyncResult:
    """Result of a sync pass."""
    
    action: SyncAction
    namespace: str
    secret_name: str
    keys: int = 0
    sync_duration: Optional[float] = None


class SyncEngine:
    """Performs create-or-update passes of a folder into a secret."""
    
    def __init__(
        self,
        store: BaseSecretStore,
        folder_path: Union[str, Path],
        namespace: str,
        secret_name: str,
        managed_by: str = DEFAULT_MANAGED_BY
    ):
        """Initialize sync engine.
        
        Args:
            store: Remote secret store
            folder_path: Directory whose files become the secret's data
            namespace: Namespace of the target secret
            secret_name: Name of the target secret
            managed_by: Value of the ownership label put on created secrets
        """
        self.store = store
        self.folder_path = Path(folder_path)
        self.namespace = namespace
        self.secret_name = secret_name
        self.managed_by = managed_by
        self.logger = get_logger(self.__class__.__name__).bind(
            folder=str(self.folder_path),
            namespace=namespace,
            secret=secret_name
        )
    
    @property
    def secret_identity(self) -> str:
        return f"{self.namespace}/{self.secret_name}"
    
    async def reconcile_once(self) -> SyncResult:
        """Run one sync pass.
        
        Returns:
            SyncResult describing what the pass did
            
        Raises:
            SnapshotReadError: If the folder cannot be read
            SecretStoreError: If fetching, creating or updating the secret fails
        """
        start_time = time.monotonic()
        
        self.logger.info("Reading files from folder")
        snapshot = await asyncio.to_thread(read_snapshot, self.folder_path)
        
        # skip-on-empty: an empty folder never creates or clears the secret
        if not snapshot:
            self.logger.info("No files found in folder, skipping sync")
            return self._result(SyncAction.SKIPPED_EMPTY, snapshot, start_time)
        
        try:
            secret = await self.store.get(self.namespace, self.secret_name)
        except SecretNotFoundError:
            await self._create_secret(snapshot)
            return self._result(SyncAction.CREATED, snapshot, start_time)
        
        if not has_data_changed(secret.data, snapshot):
            self.logger.info("Secret is up to date", keys=len(snapshot))
            return self._result(SyncAction.UNCHANGED, snapshot, start_time)
        
        await self._update_secret(secret, snapshot)
        return self._result(SyncAction.UPDATED, snapshot, start_time)
    
    async def _create_secret(self, snapshot: Snapshot) -> None:
        secret = SecretObject(
            name=self.secret_name,
            namespace=self.namespace,
            data=dict(snapshot),
            labels={MANAGED_BY_LABEL: self.managed_by},
        )
        
        await self.store.create(self.namespace, secret)
        self.logger.info("Created secret", keys=len(snapshot))
    
    async def _update_secret(self, secret: SecretObject, snapshot: Snapshot) -> None:
        # resource_version is carried over so a concurrent writer causes a conflict
        updated = dataclasses.replace(secret, data=dict(snapshot))
        
        await self.store.update(self.namespace, updated)
        self.logger.info("Updated secret", keys=len(snapshot))
    
    def _result(self, action: SyncAction, snapshot: Snapshot, start_time: float) -> SyncResult:
        return SyncResult(
            action=action,
            namespace=self.namespace,
            secret_name=self.secret_name,
            keys=len(snapshot),
            sync_duration=time.monotonic() - start_time
        )
