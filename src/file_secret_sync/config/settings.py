"""Application configuration settings."""

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
DEFAULT_MANAGED_BY = "file-secret-sync"


def _env_config(prefix: str = "") -> SettingsConfigDict:
    # Sub-settings are built by default_factory, so each reads .env itself
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class WatchSettings(BaseSettings):
    """Directory watch configuration."""
    
    debounce_seconds: float = Field(default=1.0, gt=0)
    resync_interval_seconds: Optional[float] = Field(default=None, gt=0)
    
    model_config = _env_config("WATCH_")


class KubernetesSettings(BaseSettings):
    """Kubernetes API configuration."""
    
    namespace: Optional[str] = None
    namespace_file: str = DEFAULT_NAMESPACE_FILE
    kubeconfig: Optional[str] = None
    in_cluster: bool = True
    managed_by: str = DEFAULT_MANAGED_BY
    request_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)
    
    model_config = _env_config("KUBE_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""
    
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file_path: Optional[str] = None
    
    model_config = _env_config("LOG_")
    
    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class AppSettings(BaseSettings):
    """Main application settings."""
    
    # Required
    folder_to_read: str = Field(..., min_length=1)
    secret_to_write: str = Field(..., min_length=1)
    
    app_name: str = "File Secret Sync"
    app_version: str = "1.0.0"
    environment: str = "production"
    
    secret_store_backend: Literal["kubernetes", "memory"] = "kubernetes"
    fail_on_initial_sync_error: bool = False
    
    # Sub-settings
    watch: WatchSettings = Field(default_factory=WatchSettings)
    kube: KubernetesSettings = Field(default_factory=KubernetesSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    
    model_config = _env_config()
