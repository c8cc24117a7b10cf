"""Module containing the default ddfsync configuration."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Final

import dacite
import yaml

from .errors import ConfigError

DEFAULT_REPOSITORY: Final[str] = "github.com/open-numbers/ddf--gapminder--systema_globalis"
"""Upstream repository synchronized when nothing else is configured."""

DEFAULT_IDLE_TIMEOUT: Final[float] = 240.0
"""Seconds without receiving data after which we abort a download."""

TRANSPORTS: Final[tuple[str, ...]] = ("git", "http")


@dataclass(frozen=True, kw_only=True)
class SyncConfig:
    """
    Configuration of a synchronization run.

    Attributes:
        repository: host/owner/name of the upstream repository
        archive_url_template: URL containing a `{version}` placeholder; when
            empty we derive it from the repository
        staging_dir: directory holding the downloaded and unpacked archive
        destination_dir: directory receiving the dataset contents
        archive_name: file name of the downloaded archive
        unpack_dir: name of the extraction directory inside staging_dir
        idle_timeout: seconds without data before aborting the download
        connect_timeout: seconds to wait when connecting to the remote
        transport: either `git` (TCP port 9418) or `http` (smart HTTP)
    """

    version: int = 0
    repository: str = DEFAULT_REPOSITORY
    archive_url_template: str = ""
    staging_dir: str = "temp"
    destination_dir: str = "target"
    archive_name: str = "dl.zip"
    unpack_dir: str = "unpacked"
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    connect_timeout: float = 30.0
    transport: str = "git"

    def __post_init__(self):
        if self.version != 0:
            raise ValueError(f"Unsupported config version: {self.version} (only v=0 supported)")
        if self.transport not in TRANSPORTS:
            raise ValueError(f"Unsupported transport: {self.transport}")
        if self.idle_timeout <= 0:
            raise ValueError(f"idle_timeout must be positive: {self.idle_timeout}")

    def staging_path(self) -> Path:
        """Returns the absolute path of the staging directory."""
        return Path(self.staging_dir).resolve()

    def destination_path(self) -> Path:
        """Returns the absolute path of the destination directory."""
        return Path(self.destination_dir).resolve()

    def with_overrides(self, **overrides: Any) -> SyncConfig:
        """Return a copy replacing the fields whose override is not None."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(config_path: str | Path) -> SyncConfig:
    """Load the synchronization configuration from a YAML file."""
    config_path = Path(config_path)
    try:
        content = config_path.read_text()
    except FileNotFoundError as exc:
        raise ConfigError(f"Config not found: {config_path}") from exc

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping.")

    try:
        return dacite.from_dict(
            SyncConfig,
            data,
            config=dacite.Config(type_hooks={float: float}, strict=True),
        )
    except (dacite.DaciteError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config: {exc}") from exc
