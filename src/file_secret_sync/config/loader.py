"""Settings loading, startup validation and namespace discovery."""

import os
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from .settings import AppSettings, KubernetesSettings
from ..utils.logging import get_logger


logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration loading fails."""
    pass


def load_settings(**overrides: Any) -> AppSettings:
    """Load application settings from the environment.
    
    Args:
        **overrides: Values that take precedence over the environment
        
    Returns:
        Validated AppSettings object
        
    Raises:
        ConfigurationError: If a required setting is missing or invalid
    """
    try:
        settings = AppSettings(**overrides)
    except ValidationError as e:
        missing = [
            ".".join(str(part) for part in error["loc"]).upper()
            for error in e.errors()
            if error["type"] == "missing"
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}"
            ) from e
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    
    logger.debug(
        "Settings loaded",
        folder=settings.folder_to_read,
        secret=settings.secret_to_write,
        backend=settings.secret_store_backend,
    )
    return settings


def validate_folder(folder_path: Union[str, Path]) -> Path:
    """Check that the folder to mirror exists and can be read.
    
    Raises:
        ConfigurationError: If the folder is missing, not a directory or unreadable
    """
    path = Path(folder_path)
    
    if not path.exists():
        raise ConfigurationError(f"Folder to read does not exist: {path}")
    if not path.is_dir():
        raise ConfigurationError(f"Folder to read is not a directory: {path}")
    if not os.access(path, os.R_OK | os.X_OK):
        raise ConfigurationError(f"Folder to read is not readable: {path}")
    
    return path


def get_current_namespace(kube_settings: KubernetesSettings) -> str:
    """Resolve the namespace the secret lives in.
    
    An explicit namespace setting wins; otherwise the namespace is read from
    the service account file mounted into the pod.
    
    Raises:
        ConfigurationError: If no namespace can be determined
    """
    if kube_settings.namespace:
        return kube_settings.namespace.strip()
    
    namespace_file = Path(kube_settings.namespace_file)
    try:
        namespace = namespace_file.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read namespace from {namespace_file}: {e}"
        ) from e
    
    if not namespace:
        raise ConfigurationError(f"Namespace file is empty: {namespace_file}")
    
    return namespace
