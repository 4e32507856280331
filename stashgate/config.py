"""
Configuration loading for Stashgate.

Configuration lives in a YAML file and is loaded into dataclasses. The file
path comes from the caller, else the STASHGATE_CONFIG environment variable,
else built-in defaults are used. STASHGATE_VERSION and STASHGATE_ORIGIN
override the deployed version label and the application origin.

Example config.yaml::

    app_name: material-collector
    version: v1
    origin: http://localhost:3000
    api_prefix: /api/
    root_url: /
    asset_manifest:
      - /
      - /manifest.json
      - /icons/icon-192.png
      - /icons/icon-512.png
    skip_waiting: true

    storage:
      backend: file
      path: ~/.stashgate/store

    network:
      timeout_seconds: 30

    logging:
      level: INFO
      json_format: false
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from stashgate.exceptions import ConfigurationError
from stashgate.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "STASHGATE_CONFIG"
VERSION_ENV_VAR = "STASHGATE_VERSION"
ORIGIN_ENV_VAR = "STASHGATE_ORIGIN"

DEFAULT_ASSET_MANIFEST = [
    "/",
    "/manifest.json",
    "/icons/icon-192.png",
    "/icons/icon-512.png",
]


@dataclass
class StorageConfig:
    """
    Store backend configuration.

    Attributes:
        backend: "memory" or "file"
        path: Root directory for the file backend
        max_entries_per_generation: Optional bound on entries per generation
            (memory backend only). Entries are never evicted: storing a new key
            in a full generation fails with StorageWriteError
    """
    backend: str = "memory"
    path: str = "~/.stashgate/store"
    max_entries_per_generation: Optional[int] = None


@dataclass
class NetworkConfig:
    """
    Network fetcher configuration.

    Attributes:
        timeout_seconds: Total fetch timeout; None disables the timeout
        max_connections: Connection pool size
    """
    timeout_seconds: Optional[float] = 30.0
    max_connections: int = 100


@dataclass
class NotificationConfig:
    """Defaults applied to push notifications."""
    default_title: str = "资料收集"
    default_body: str = "你有新的资料需要整理"
    icon: str = "/icons/icon-192.png"
    badge: str = "/icons/icon-72.png"
    vibrate: List[int] = field(default_factory=lambda: [100, 50, 100])
    primary_key: int = 1
    view_label: str = "查看"
    close_label: str = "关闭"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json_format: bool = True
    file: Optional[str] = None


@dataclass
class GatewayConfig:
    """
    Top level gateway configuration.

    Attributes:
        app_name: Prefix for generation names
        version: Version label of the deployed gateway logic
        origin: Application origin that relative URLs resolve against
        api_prefix: URL path prefix of the API namespace
        root_url: Pinned application shell document
        asset_manifest: Ordered keys fetched into the static generation at install
        skip_waiting: Activate right after install instead of waiting for old clients
    """
    app_name: str = "material-collector"
    version: str = "v1"
    origin: str = "http://localhost"
    api_prefix: str = "/api/"
    root_url: str = "/"
    asset_manifest: List[str] = field(default_factory=lambda: list(DEFAULT_ASSET_MANIFEST))
    skip_waiting: bool = False
    storage: StorageConfig = field(default_factory=StorageConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If any value is invalid
        """
        if not self.app_name:
            raise ConfigurationError("app_name is required")
        if not self.version:
            raise ConfigurationError("version is required")
        if not self.origin.startswith(("http://", "https://")):
            raise ConfigurationError(f"origin must be an http(s) URL, got {self.origin!r}")
        if not self.api_prefix.startswith("/"):
            raise ConfigurationError(f"api_prefix must start with '/', got {self.api_prefix!r}")
        if self.storage.backend not in ("memory", "file"):
            raise ConfigurationError(
                f"storage.backend must be 'memory' or 'file', got {self.storage.backend!r}"
            )
        if self.storage.max_entries_per_generation is not None and self.storage.max_entries_per_generation <= 0:
            raise ConfigurationError("storage.max_entries_per_generation must be positive")
        if (
            self.storage.max_entries_per_generation is not None
            and self.storage.max_entries_per_generation < len(self.asset_manifest)
        ):
            raise ConfigurationError(
                f"storage.max_entries_per_generation ({self.storage.max_entries_per_generation}) "
                f"cannot hold the {len(self.asset_manifest)} asset_manifest entries"
            )
        if self.network.timeout_seconds is not None and self.network.timeout_seconds <= 0:
            raise ConfigurationError("network.timeout_seconds must be positive")
        if self.network.max_connections <= 0:
            raise ConfigurationError("network.max_connections must be positive")


def _build_section(cls, data: Optional[Dict[str, Any]], section: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{section}' section must be a mapping")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid '{section}' section: {e}") from e


def config_from_dict(data: Dict[str, Any]) -> GatewayConfig:
    """
    Build a GatewayConfig from a plain dictionary.

    Args:
        data: Parsed configuration mapping

    Returns:
        Validated GatewayConfig

    Raises:
        ConfigurationError: If the mapping has unknown keys or invalid values
    """
    data = dict(data)
    sections = {
        "storage": StorageConfig,
        "network": NetworkConfig,
        "notifications": NotificationConfig,
        "logging": LoggingConfig,
    }
    kwargs: Dict[str, Any] = {
        name: _build_section(cls, data.pop(name, None), name)
        for name, cls in sections.items()
    }

    try:
        config = GatewayConfig(**data, **kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    config.validate()
    return config


def load_config(path: Optional[str] = None) -> GatewayConfig:
    """
    Load gateway configuration.

    Priority for the file: *path* → STASHGATE_CONFIG → defaults.
    Environment overrides for version and origin are applied last.

    Args:
        path: Optional path to a YAML config file

    Returns:
        Validated GatewayConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    data: Dict[str, Any] = {}

    if path:
        config_file = Path(path).expanduser()
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a mapping")
        logger.debug(f"Loaded configuration from {config_file}")

    version = os.environ.get(VERSION_ENV_VAR)
    if version:
        data["version"] = version
    origin = os.environ.get(ORIGIN_ENV_VAR)
    if origin:
        data["origin"] = origin

    return config_from_dict(data)
