"""Secret store factory for creating the configured backend."""

from typing import Dict, Type

from ..config.settings import KubernetesSettings
from .base import BaseSecretStore
from .kubernetes import KubernetesSecretStore, load_kubernetes_config
from .memory import InMemorySecretStore


class SecretStoreFactory:
    """Factory for creating secret store instances."""
    
    _store_classes: Dict[str, Type[BaseSecretStore]] = {
        "kubernetes": KubernetesSecretStore,
        "memory": InMemorySecretStore,
    }
    
    @classmethod
    def create_store(
        cls,
        backend: str,
        kube_settings: KubernetesSettings,
        **kwargs
    ) -> BaseSecretStore:
        """Create a secret store instance.
        
        Args:
            backend: Backend name ("kubernetes" or "memory")
            kube_settings: Kubernetes API configuration
            **kwargs: Additional parameters passed to the store
            
        Returns:
            Configured secret store
            
        Raises:
            ValueError: If the backend is not supported
            ConfigException: If Kubernetes credentials cannot be loaded
        """
        if backend not in cls._store_classes:
            raise ValueError(f"Unsupported secret store backend: {backend}")
        
        store_class = cls._store_classes[backend]
        
        if backend == "kubernetes" and "api" not in kwargs:
            load_kubernetes_config(
                in_cluster=kube_settings.in_cluster,
                kubeconfig=kube_settings.kubeconfig
            )
            kwargs["request_timeout"] = kube_settings.request_timeout_seconds
        
        return store_class(**kwargs)
