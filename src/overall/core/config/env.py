"""
Layered .env loading.

Precedence, highest first:
    process environment > project .env > user ~/.config/overall/.env

Values from .env files never replace a variable that was already set
in the process environment before loading started.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values

from overall.core.config.loader import get_xdg_config_home


def read_env_file(path: Path) -> dict[str, str]:
    """Read a .env file, dropping keys without a value. Missing files read as empty."""
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if key and value is not None}


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_path: Path | None = None,
) -> dict[str, str]:
    """
    Load the user and project .env files into ``os.environ``.

    Args:
        project_dir: Directory holding the project .env (defaults to cwd)
        user_env_path: User .env file (defaults to the XDG config location)

    Returns:
        The variables that were applied
    """
    project_dir = project_dir or Path.cwd()
    user_env_path = user_env_path or get_xdg_config_home() / "overall" / ".env"

    layered = {**read_env_file(user_env_path), **read_env_file(project_dir / ".env")}
    applied = {key: value for key, value in layered.items() if key not in os.environ}
    os.environ.update(applied)
    return applied
