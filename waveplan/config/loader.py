"""Configuration loader with validation."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .models import WaveplanConfig


class ConfigError(Exception):
    """Configuration error."""

    pass


def load_config(config_path: Path) -> WaveplanConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated WaveplanConfig instance

    Raises:
        ConfigError: If config file missing or invalid
    """
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if not data:
        raise ConfigError(f"Empty configuration file: {config_path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping: {config_path}")

    # Resolve project root relative to config file
    project = data.get("project") or {}
    if "root" in project:
        root_path = Path(project["root"])
        if not root_path.is_absolute():
            project["root"] = (config_path.parent / root_path).resolve()
        data["project"] = project

    try:
        return WaveplanConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}")


def load_config_or_default(config_path: Path, root: Optional[Path] = None) -> WaveplanConfig:
    """Load config if present, otherwise defaults rooted at ``root``.

    Raises:
        ConfigError: If the file exists but is invalid
    """
    if config_path.exists():
        return load_config(config_path)
    return WaveplanConfig(project={"root": root or Path.cwd()})


def create_default_config(
    config_path: Path,
    profile_type: str = "app",
    root: Optional[Path] = None,
) -> None:
    """Create default configuration file.

    Args:
        config_path: Path where config should be created
        profile_type: Project profile type to record
        root: Project root (default: current directory), stored relative to the config file
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    root = (root or Path.cwd()).resolve()
    relative_root = os.path.relpath(root, config_path.parent.resolve())

    default_config = {
        "project": {
            "root": relative_root,
            "profile_type": profile_type,
            "catalog_path": "docs/requirements/FEATURE_CATALOG.md",
        },
        "state": {
            "state_dir": ".waveplan",
            "write_status_file": True,
        },
        "scheduling": {
            "foundation_prefixes": ["AUTH", "ACCT"],
        },
        "logging": {
            "level": "INFO",
            "log_dir": ".waveplan/logs",
            "rotation_mb": 10,
            "retention_days": 7,
        },
    }

    with open(config_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
