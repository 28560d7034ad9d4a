"""
Configuration management for branch-rescue.

Loads configuration from .branchrescuerc files in the following priority:
1. Path specified via --config flag
2. .branchrescuerc in current directory
3. .branchrescuerc.toml in current directory
4. ~/.config/branch-rescue/config.toml
5. ~/.branchrescuerc
"""

import logging
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, ValidationError

from branch_rescue.core.retention import (
    DEFAULT_RETENTION_DAYS,
    MAX_RETENTION_DAYS,
    MIN_RETENTION_DAYS,
)

logger = logging.getLogger(__name__)


class ConfigFileError(Exception):
    """Raised when a config file exists but cannot be used."""


class HistoryConfig(BaseModel):
    """Configuration for the deletion history."""

    retention_days: int = Field(
        default=DEFAULT_RETENTION_DAYS,
        ge=MIN_RETENTION_DAYS,
        le=MAX_RETENTION_DAYS,
        description="Days a deleted branch stays in the history",
    )
    storage_path: Optional[str] = Field(
        default=None,
        description="State file path (default: ~/.branch-rescue/state.json)",
    )
    sync_across_machines: bool = Field(
        default=False,
        description="Flag the deletion history for cross-machine sync",
    )


class ReflogConfig(BaseModel):
    """Configuration for reflog scans."""

    timeout_seconds: int = Field(
        default=60,
        ge=1,
        description="Kill the reflog read after this many seconds",
    )


class PreviewConfig(BaseModel):
    """Configuration for restore previews."""

    enabled: bool = Field(
        default=True,
        description="Show a file-level preview before restoring a branch",
    )


class Config(BaseModel):
    """Main configuration model for branch-rescue."""

    history: HistoryConfig = Field(default_factory=HistoryConfig)
    reflog: ReflogConfig = Field(default_factory=ReflogConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)

    @property
    def storage_path(self) -> Optional[Path]:
        if self.history.storage_path:
            return Path(self.history.storage_path).expanduser()
        return None


def config_search_paths(config_path: Optional[str] = None) -> list[Path]:
    """Candidate config files in priority order."""
    paths = [
        Path(config_path) if config_path else None,
        Path.cwd() / ".branchrescuerc",
        Path.cwd() / ".branchrescuerc.toml",
        Path.home() / ".config" / "branch-rescue" / "config.toml",
        Path.home() / ".branchrescuerc",
    ]
    return [path for path in paths if path is not None]


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Optional explicit path to config file.

    Returns:
        Config instance with loaded or default values.
    """
    for path in config_search_paths(config_path):
        if path.exists():
            try:
                return read_config_file(path)
            except ConfigFileError as e:
                logger.warning(f"Ignoring invalid config file {path}: {e}")
                continue

    return Config()


def read_config_file(path: Path) -> Config:
    """
    Parse one config file.

    Raises:
        ConfigFileError: If the file cannot be read, is not valid toml, or
            fails validation.
    """
    try:
        data = toml.load(path)
        return Config(**data)
    except (toml.TomlDecodeError, ValidationError, OSError, TypeError) as e:
        raise ConfigFileError(str(e)) from e


def find_config_path(config_path: Optional[str] = None) -> Path:
    """The explicit path, else the file load_config() would read, else the default location."""
    if config_path:
        return Path(config_path)

    for path in config_search_paths():
        if path.exists():
            return path
    return get_default_config_path()


def save_config(config: Config, path: Path) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save.
        path: Path to save the config file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(exclude_none=True)
    with open(path, "w") as f:
        toml.dump(data, f)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".config" / "branch-rescue" / "config.toml"
