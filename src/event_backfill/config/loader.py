"""Platform config loader: built-in defaults, user YAML and ${VAR} substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from event_backfill.config.defaults import load_defaults, merge_configs
from event_backfill.config.models import PlatformConfig

# Environment variable naming a platform YAML used when no path is given.
CONFIG_ENV_VAR = "EVENT_BACKFILL_CONFIG"

# ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _substitute(match: re.Match[str]) -> str:
    name, default = match.group(1), match.group(2)
    value = os.environ.get(name)
    if value is not None:
        return value
    if default is None:
        msg = f"Environment variable '{name}' is not set and no default provided"
        raise ValueError(msg)
    return default.replace("\\}", "}")


def resolve_env_vars(data: Any) -> Any:
    """Recursively substitute ${VAR} / ${VAR:-default} in parsed YAML values."""
    if isinstance(data, str):
        return _ENV_PATTERN.sub(_substitute, data)
    if isinstance(data, dict):
        return {key: resolve_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML mapping from *path*, with environment substitution."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return cast(dict[str, Any], resolve_env_vars(data))


def load_platform_config(path: str | Path | None = None) -> PlatformConfig:
    """Build the platform config from defaults merged with an optional YAML file.

    When *path* is omitted, the file named by ``EVENT_BACKFILL_CONFIG`` is used
    if that variable is set.
    """
    if path is None and os.environ.get(CONFIG_ENV_VAR):
        path = os.environ[CONFIG_ENV_VAR]
    config = resolve_env_vars(load_defaults())
    if path is not None:
        config = merge_configs(config, load_yaml(path))
    try:
        return PlatformConfig.model_validate(config)
    except ValidationError as exc:
        source = path or "built-in defaults"
        msg = f"Invalid platform config ({source}):\n{exc}"
        raise ValueError(msg) from exc
