"""Configuration loading and saving (YAML)."""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .schema import Config

CONFIG_ENV_VAR = "VESTAKE_CONFIG"
DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def resolve_config_path(yaml_path: Optional[Union[str, Path]] = None) -> Path:
    """Explicit path, then $VESTAKE_CONFIG, then the packaged defaults."""
    if yaml_path is not None:
        return Path(yaml_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULTS_PATH


def load_config(yaml_path: Optional[Union[str, Path]] = None) -> Config:
    """
    Load configuration from a YAML file.

    Args:
        yaml_path: Path to YAML file (see resolve_config_path for fallbacks)

    Returns:
        Validated Config
    """
    with open(resolve_config_path(yaml_path), 'r') as f:
        data = yaml.safe_load(f) or {}
    return Config.from_dict(data)


def save_config(config: Config, yaml_path: Union[str, Path]) -> Path:
    """Write ``config`` as YAML and return the path written."""
    path = Path(yaml_path)
    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
    return path


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Validate a configuration dictionary."""
    return Config.from_dict(data)
