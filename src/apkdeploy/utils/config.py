"""Configuration management with YAML files and CLI overrides"""
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from apkdeploy.core.protocols import ConfigLoader, FileSystemService
from apkdeploy.cache.remote import REMOTE_CACHE_ROOT

DEFAULT_CONFIG_PATH = "configs/apkdeploy.yaml"


@dataclass
class DeployConfig:
    """Settings for one deployment session.

    A cache limit of 0 disables the corresponding cache where that is
    supported (the remote package cache).
    """
    device: Optional[str] = None
    adb_path: str = "adb"
    adb_exec_timeout: float = 20.0
    install_timeout: float = 60.0
    remote_cache_root: str = REMOTE_CACHE_ROOT
    remote_cache_limit: int = 10
    bundle_cache_limit: int = 10


def load_config(
    config_loader: ConfigLoader,
    filesystem: FileSystemService,
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> DeployConfig:
    """Load configuration, layering file values and overrides over defaults.

    Args:
        config_loader: YAML loading abstraction
        filesystem: Filesystem abstraction (existence check)
        config_path: Explicit config file; it must exist. When omitted the
            default path is used if present.
        overrides: Values that win over the file (e.g., CLI flags); None
            values are ignored

    Returns:
        DeployConfig

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ValueError: On unknown keys or invalid values
    """
    values: Dict[str, Any] = {}

    if config_path is not None:
        if not filesystem.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        values.update(_section(config_loader.load_yaml(config_path), config_path))
    elif filesystem.exists(DEFAULT_CONFIG_PATH):
        values.update(_section(config_loader.load_yaml(DEFAULT_CONFIG_PATH), DEFAULT_CONFIG_PATH))

    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(DeployConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    config = replace(DeployConfig(), **values)
    _validate(config)
    return config


def _section(data: Any, path: str) -> Dict[str, Any]:
    # Settings may sit at top level or under an `apkdeploy:` key
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    section = data.get('apkdeploy', data)
    if not isinstance(section, dict):
        raise ValueError(f"{path}: 'apkdeploy' must be a mapping")
    return section


def _validate(config: DeployConfig) -> None:
    if config.remote_cache_limit < 0:
        raise ValueError("remote_cache_limit must be >= 0")
    if config.bundle_cache_limit < 1:
        raise ValueError("bundle_cache_limit must be >= 1")
    if config.adb_exec_timeout <= 0 or config.install_timeout <= 0:
        raise ValueError("timeouts must be positive")
