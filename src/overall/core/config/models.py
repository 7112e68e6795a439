"""
Configuration data models for overall.

These models define the structure of .overall.json and
~/.config/overall/config.json, with validation via Pydantic.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from overall.core.github.models import validate_owner


def get_xdg_data_home() -> Path:
    """Get XDG data home directory (defaults to ~/.local/share)."""
    if xdg_data := os.environ.get("XDG_DATA_HOME"):
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def default_db_path() -> str:
    return str(get_xdg_data_home() / "overall" / "overall.db")


class GitHubConfig(BaseModel):
    """
    Which accounts to track on GitHub.

    Owners listed here seed the tracked-owner table the first time the
    database has none; after that the database is authoritative.
    """

    owners: list[str] = Field(
        default_factory=list,
        description="GitHub users or organizations to track",
    )
    repo_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum repositories listed per owner",
    )

    @field_validator("owners")
    @classmethod
    def validate_owners(cls, v: list[str]) -> list[str]:
        return [validate_owner(owner.strip()) for owner in v]


class SyncConfig(BaseModel):
    """Concurrency, timeouts and retries for synchronization."""

    concurrency: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Repositories synced in parallel",
    )
    remote_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for each gh invocation",
    )
    local_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for each git invocation",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Extra fetch attempts when the remote is unavailable",
    )
    retry_backoff: float = Field(
        default=0.5,
        ge=0,
        description="Base backoff in seconds between fetch attempts",
    )


class DatabaseConfig(BaseModel):
    """Location of the SQLite cache."""

    path: str = Field(
        default_factory=default_db_path,
        description="Path to the SQLite database file",
    )

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class ServerConfig(BaseModel):
    """Settings for the HTTP API server."""

    host: str = Field(default="127.0.0.1", description="Interface to bind")
    port: int = Field(default=8080, ge=1, le=65535, description="Port to listen on")
    export_path: Optional[str] = Field(
        default=None,
        description="If set, repos.json is rewritten here after every mutation",
    )


class OverallConfig(BaseModel):
    """
    Top-level configuration.

    Example:
        >>> config = OverallConfig()
        >>> config.sync.concurrency
        3
    """

    model_config = ConfigDict(extra="ignore")

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
