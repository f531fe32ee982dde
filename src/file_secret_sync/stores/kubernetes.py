"""Secret store backed by the Kubernetes core API."""

import asyncio
import base64
from typing import Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .base import (
    BaseSecretStore,
    SecretObject,
    SecretStoreError,
    SecretNotFoundError,
    SecretConflictError
)


def load_kubernetes_config(in_cluster: bool = True, kubeconfig: Optional[str] = None) -> None:
    """Load API credentials, preferring the pod's service account.
    
    Falls back to a kubeconfig file when not running inside a cluster.
    
    Raises:
        ConfigException: If no usable credentials are found
    """
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        return
    
    if in_cluster:
        try:
            config.load_incluster_config()
            return
        except ConfigException:
            pass
    
    config.load_kube_config()


def encode_data(data: Dict[str, bytes]) -> Dict[str, str]:
    """Encode raw secret values the way the API expects them."""
    return {key: base64.b64encode(value).decode("ascii") for key, value in data.items()}


def decode_data(data: Optional[Dict[str, str]]) -> Dict[str, bytes]:
    """Decode API secret values into raw bytes."""
    return {key: base64.b64decode(value) for key, value in (data or {}).items()}


class KubernetesSecretStore(BaseSecretStore):
    """Secret store using ``CoreV1Api`` secrets in a namespace.
    
    The kubernetes client is synchronous, so every call runs in a worker thread.
    """
    
    def __init__(
        self,
        api: Optional[client.CoreV1Api] = None,
        request_timeout: Optional[float] = None,
        **kwargs
    ):
        """Initialize the store.
        
        Args:
            api: Preconfigured CoreV1Api; one is built from the loaded config if omitted
            request_timeout: Per-request timeout in seconds
        """
        super().__init__(**kwargs)
        self.api = api or client.CoreV1Api()
        self.request_timeout = request_timeout
    
    def _request_kwargs(self) -> Dict[str, float]:
        if self.request_timeout is None:
            return {}
        return {"_request_timeout": self.request_timeout}
    
    async def get(self, namespace: str, name: str) -> SecretObject:
        try:
            secret = await asyncio.to_thread(
                self.api.read_namespaced_secret, name, namespace, **self._request_kwargs()
            )
        except ApiException as e:
            raise self._translate_error("get", namespace, name, e) from e
        
        return self._from_v1(secret)
    
    async def create(self, namespace: str, secret: SecretObject) -> SecretObject:
        body = self._to_v1(secret)
        try:
            created = await asyncio.to_thread(
                self.api.create_namespaced_secret, namespace, body, **self._request_kwargs()
            )
        except ApiException as e:
            raise self._translate_error("create", namespace, secret.name, e) from e
        
        self.logger.debug("Secret created", namespace=namespace, secret=secret.name)
        return self._from_v1(created)
    
    async def update(self, namespace: str, secret: SecretObject) -> SecretObject:
        body = self._to_v1(secret)
        try:
            replaced = await asyncio.to_thread(
                self.api.replace_namespaced_secret,
                secret.name,
                namespace,
                body,
                **self._request_kwargs()
            )
        except ApiException as e:
            raise self._translate_error("update", namespace, secret.name, e) from e
        
        self.logger.debug("Secret replaced", namespace=namespace, secret=secret.name)
        return self._from_v1(replaced)
    
    def _translate_error(
        self,
        operation: str,
        namespace: str,
        name: str,
        error: ApiException
    ) -> SecretStoreError:
        """Map an API exception onto the store error hierarchy."""
        message = f"Failed to {operation} secret {namespace}/{name}: {error.status} {error.reason}"
        
        if error.status == 404:
            return SecretNotFoundError(message, status=404)
        if error.status == 409:
            return SecretConflictError(message, status=409)
        return SecretStoreError(message, status=error.status)
    
    @staticmethod
    def _to_v1(secret: SecretObject) -> client.V1Secret:
        return client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=client.V1ObjectMeta(
                name=secret.name,
                namespace=secret.namespace,
                labels=dict(secret.labels) or None,
                resource_version=secret.resource_version,
            ),
            type=secret.secret_type,
            data=encode_data(secret.data),
        )
    
    @staticmethod
    def _from_v1(secret: client.V1Secret) -> SecretObject:
        metadata = secret.metadata
        return SecretObject(
            name=metadata.name,
            namespace=metadata.namespace,
            data=decode_data(secret.data),
            labels=dict(metadata.labels or {}),
            resource_version=metadata.resource_version,
            secret_type=secret.type or "Opaque",
        )
