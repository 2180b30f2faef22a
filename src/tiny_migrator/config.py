"""Configuration management for tiny-migrator."""

import logging
import os
import shutil
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_CONFIG_PATH, ENV_CONFIG
from .log import Logger
from .migrator import MigratorOptions
from .utils import ensure_dir, expand_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TEMPLATE_PATH = Path(__file__).with_name("config.toml")


def _load_default_template() -> dict[str, Any]:
    """Load the packaged default config template."""
    with open(DEFAULT_CONFIG_TEMPLATE_PATH, "rb") as f:
        return tomllib.load(f)


def _merge_config_data(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge config dictionaries recursively."""
    merged = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_config_data(base_value, value)
        else:
            merged[key] = value
    return merged


def _copy_default_config(config_path: Path) -> None:
    """Copy packaged template to the user config path."""
    ensure_dir(config_path.parent)
    shutil.copyfile(DEFAULT_CONFIG_TEMPLATE_PATH, config_path)


class DatabaseConfig(BaseModel):
    """Database location."""

    path: Path
    collection: str = Field(default="migrations", min_length=1)

    @field_validator("path", mode="before")
    @classmethod
    def expand_paths(cls, v: str | Path) -> Path:
        """Expand path strings with ~ and environment variables."""
        if isinstance(v, str):
            return expand_path(v)
        return v


class MigrationsConfig(BaseModel):
    """Where migration definitions are loaded from."""

    module: str | None = None


class LoggingConfig(BaseModel):
    """Logging switches."""

    enabled: bool = True
    log_if_latest: bool = True


class LockConfig(BaseModel):
    """Lock behaviour."""

    lease_seconds: float = Field(default=0, ge=0, description="0 disables the lease")


class BackupConfig(BaseModel):
    """Database backup before migrating."""

    enabled: bool = False


class Config(BaseModel):
    """Configuration for tiny-migrator."""

    database: DatabaseConfig
    migrations: MigrationsConfig = Field(default_factory=MigrationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)

    @property
    def migrations_module(self) -> str | None:
        """Module migrations are loaded from."""
        return self.migrations.module

    def to_options(self, logger: Logger | None = None) -> MigratorOptions:
        """
        Build migrator options from this configuration.

        Args:
            logger: Optional sink to use instead of the default one

        Returns:
            MigratorOptions instance
        """
        return MigratorOptions(
            db=self.database.path,
            collection_name=self.database.collection,
            log=self.logging.enabled,
            log_if_latest=self.logging.log_if_latest,
            logger=logger,
            lock_lease_seconds=self.lock.lease_seconds or None,
            backup=self.backup.enabled,
        )

    def save(self, config_path: Path) -> None:
        """
        Write configuration to a TOML file.

        Args:
            config_path: Destination path
        """
        data = self.model_dump(mode="json", exclude_none=True)
        ensure_dir(config_path.parent)
        with open(config_path, "wb") as f:
            tomli_w.dump(data, f)


def get_config_path() -> Path:
    """
    Get configuration file path.

    Priority:
    1. TINY_MIGRATOR_CONFIG environment variable
    2. Default: ~/.config/tiny-migrator/config.toml

    Returns:
        Path to config file
    """
    env_config = os.environ.get(ENV_CONFIG)
    if env_config:
        return expand_path(env_config)

    return expand_path(DEFAULT_CONFIG_PATH)


def create_default_config() -> Config:
    """Create default configuration from packaged template."""
    return Config.model_validate(_load_default_template())


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML file using Pydantic validation.

    Missing files are created from the packaged template. Keys the file
    leaves out take their template values.

    Args:
        config_path: Optional custom config path

    Returns:
        Config instance with validated values

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        config_path = get_config_path()

    defaults = _load_default_template()

    if not config_path.exists():
        try:
            _copy_default_config(config_path)
        except OSError as e:
            logger.warning(f"Could not copy default config to {config_path}: {e}")

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        return Config.model_validate(_merge_config_data(defaults, data))

    return Config.model_validate(defaults)
