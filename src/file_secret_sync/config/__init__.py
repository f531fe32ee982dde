"""Configuration package for file-secret-sync."""

from .settings import (
    AppSettings,
    WatchSettings,
    KubernetesSettings,
    LoggingSettings,
    DEFAULT_MANAGED_BY,
    DEFAULT_NAMESPACE_FILE
)

from .loader import (
    ConfigurationError,
    load_settings,
    validate_folder,
    get_current_namespace
)

__all__ = [
    "AppSettings",
    "WatchSettings",
    "KubernetesSettings",
    "LoggingSettings",
    "DEFAULT_MANAGED_BY",
    "DEFAULT_NAMESPACE_FILE",
    
    "ConfigurationError",
    "load_settings",
    "validate_folder",
    "get_current_namespace"
]
