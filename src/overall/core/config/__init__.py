"""
Configuration models and loading.

Multi-layer merging: defaults < user < project < env vars.
"""

from overall.core.config.env import load_layered_env
from overall.core.config.loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from overall.core.config.models import (
    DatabaseConfig,
    GitHubConfig,
    OverallConfig,
    ServerConfig,
    SyncConfig,
)

__all__ = [
    # Models
    "DatabaseConfig",
    "GitHubConfig",
    "OverallConfig",
    "ServerConfig",
    "SyncConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
]
