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

from .models import AgileboardConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: AgileboardConfig | None = None


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
    """Path to ~/.config/agileboard/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "agileboard" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .agileboard.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".agileboard.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 30}})
        {'a': 1, 'b': {'x': 10, 'y': 30}}
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
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient to a broken file
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    result.setdefault(section, {})
    result[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        SUPABASE_URL - overrides backend.url
        SUPABASE_KEY - overrides backend.key
        AGILEBOARD_BACKEND - overrides backend.name
        AGILEBOARD_DATA_FILE - overrides backend.data_file
        AGILEBOARD_REALTIME - overrides realtime.enabled

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if url := os.environ.get("SUPABASE_URL"):
        _set(result, "backend", "url", url.strip())

    if key := os.environ.get("SUPABASE_KEY"):
        _set(result, "backend", "key", key.strip())

    if backend_name := os.environ.get("AGILEBOARD_BACKEND"):
        _set(result, "backend", "name", backend_name.strip().lower())

    if data_file := os.environ.get("AGILEBOARD_DATA_FILE"):
        _set(result, "backend", "data_file", data_file)

    if realtime_str := os.environ.get("AGILEBOARD_REALTIME"):
        _set(result, "realtime", "enabled", realtime_str.lower() not in ("false", "0", ""))

    return result


def get_default_config() -> dict[str, Any]:
    """Hardcoded default configuration."""
    return {
        "storage": {"avatars_bucket": "avatars", "attachments_bucket": "attachments"},
        "realtime": {"enabled": True, "channel": "schema-db-changes"},
        "sprints": {"length_days": 14},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> AgileboardConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (SUPABASE_*, AGILEBOARD_*)
        2. Project config (.agileboard.json)
        3. User config (~/.config/agileboard/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .agileboard.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated AgileboardConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = AgileboardConfig(**merged)

    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None


def update_project_config(updates: dict[str, Any], project_dir: Path | None = None) -> Path:
    """
    Deep merge ``updates`` into the project's .agileboard.json.

    Creates the file when missing and clears the config cache.

    Args:
        updates: Nested values to write
        project_dir: Project directory (defaults to cwd)

    Returns:
        Path of the written file

    Raises:
        OSError: If the file cannot be written
    """
    path = get_project_config_path(project_dir)
    current = load_json_file(path) or {}
    merged = deep_merge(current, updates)
    with path.open("w", encoding="utf-8") as f:
        json.dump(merged, f, indent=2)
        f.write("\n")
    clear_cache()
    return path
