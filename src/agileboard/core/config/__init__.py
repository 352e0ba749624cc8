"""
Configuration models and loading.

This module provides Pydantic models for agileboard configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .env import credential_sources, load_layered_env
from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
    update_project_config,
)
from .models import (
    AgileboardConfig,
    BackendConfig,
    DateSyncConfig,
    RealtimeConfig,
    SprintConfig,
    StorageConfig,
)

__all__ = [
    # Models
    "AgileboardConfig",
    "BackendConfig",
    "DateSyncConfig",
    "RealtimeConfig",
    "SprintConfig",
    "StorageConfig",
    # Loader functions
    "clear_cache",
    "credential_sources",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
    "update_project_config",
]
