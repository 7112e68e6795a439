"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from overall.core.config.models import OverallConfig
from overall.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: OverallConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Path to ~/.config/overall/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "overall" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """Path to .overall.json in the given (or current) directory."""
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".overall.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"sync": {"concurrency": 3, "max_retries": 2}}, {"sync": {"concurrency": 5}})
        {'sync': {'concurrency': 5, 'max_retries': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON object from a file.

    Returns:
        Parsed dict, or None if the file is missing or unreadable
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None
    if isinstance(data, dict):
        return data
    logger.warning("Ignoring config at %s: top level is not an object", path)
    return None


def _set_nested(config: dict[str, Any], section: str, key: str, value: Any) -> None:
    config.setdefault(section, {})
    config[section] = {**config[section], key: value}


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        OVERALL_DB_PATH - overrides database.path
        OVERALL_CONCURRENCY - overrides sync.concurrency
        OVERALL_REMOTE_TIMEOUT - overrides sync.remote_timeout
        OVERALL_REPO_LIMIT - overrides github.repo_limit

    Invalid numeric values are logged and ignored.
    """
    result = config_dict.copy()

    if db_path := os.environ.get("OVERALL_DB_PATH"):
        _set_nested(result, "database", "path", db_path)

    if concurrency := os.environ.get("OVERALL_CONCURRENCY"):
        try:
            _set_nested(result, "sync", "concurrency", int(concurrency))
        except ValueError:
            logger.warning("Invalid OVERALL_CONCURRENCY value '%s', ignoring", concurrency)

    if timeout := os.environ.get("OVERALL_REMOTE_TIMEOUT"):
        try:
            _set_nested(result, "sync", "remote_timeout", float(timeout))
        except ValueError:
            logger.warning("Invalid OVERALL_REMOTE_TIMEOUT value '%s', ignoring", timeout)

    if limit := os.environ.get("OVERALL_REPO_LIMIT"):
        try:
            _set_nested(result, "github", "repo_limit", int(limit))
        except ValueError:
            logger.warning("Invalid OVERALL_REPO_LIMIT value '%s', ignoring", limit)

    return result


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> OverallConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (OVERALL_*)
        2. Project config (.overall.json)
        3. User config (~/.config/overall/config.json)
        4. Model defaults

    Raises:
        ConfigError: If the merged config fails validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged: dict[str, Any] = {}

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    try:
        config = OverallConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    _config_cache = config
    return config


def clear_cache() -> None:
    """Clear the cached configuration."""
    global _config_cache
    _config_cache = None
