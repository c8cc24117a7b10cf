"""
Module synchronizing a local directory with the latest dataset release.

The `DatasetSync` class runs the following pipeline:

    resolve version -> download archive -> unpack -> copy into destination

The staging directory is removed before and after each run, including
when a stage fails, so partial downloads never leak between runs.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

import requests
from filelock import BaseFileLock, FileLock

from .config import SyncConfig
from .extract import DEFAULT_EXTRACTOR, Extractor, single_top_level_dir
from .fetch import DownloadTask, download
from .tags import RemoteRepository, TagResolver, make_transport

LEGACY_VERSION_PLACEHOLDER: Final[str] = "#version#"

log = logging.getLogger("sync")


class SyncState(str, Enum):
    """State of a synchronization run."""

    IDLE = "idle"
    RESOLVING_VERSION = "resolving_version"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    COPYING = "copying"
    DONE = "done"
    FAILED = "failed"


ProgressObserver = Callable[[SyncState, str], None]
"""Callback receiving the new state and a human-readable status message."""


@dataclass(frozen=True, kw_only=True)
class SyncResult:
    """Outcome of a successful synchronization run."""

    version: str
    url: str
    destination: Path


def remove_dir(path: Path) -> None:
    """Remove a directory tree, doing nothing if it does not exist."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass


def copy_tree(source: Path, dest: Path) -> None:
    """Recursively merge source into dest, overwriting existing files."""
    shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)


class DatasetSync:
    """
    Synchronize a destination directory with the latest tagged release.

    Runs must be serialized by the caller when they share the staging or
    the destination directory; `lock()` returns a lock suitable for that.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        resolver: TagResolver | None = None,
        extractor: Extractor | None = None,
        session: requests.Session | None = None,
        on_download_progress: Callable[[int, int | None], None] | None = None,
    ) -> None:
        self.config = config if config is not None else SyncConfig()
        self.repository = RemoteRepository.parse(self.config.repository)
        if resolver is None:
            transport = make_transport(
                self.config.transport,
                connect_timeout=self.config.connect_timeout,
            )
            resolver = TagResolver(transport)
        self.resolver = resolver
        self.extractor = extractor if extractor is not None else DEFAULT_EXTRACTOR
        self.session = session
        self.on_download_progress = on_download_progress
        self.state = SyncState.IDLE
        self._observers: list[ProgressObserver] = []

    def subscribe(self, observer: ProgressObserver) -> None:
        """Register an observer notified at each stage boundary."""
        self._observers.append(observer)

    def lock(self) -> BaseFileLock:
        """Return a FileLock guarding the staging directory."""
        staging = self.config.staging_path()
        staging.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(staging.with_name(f"{staging.name}.lock"))

    def archive_url(self, version: str) -> str:
        """Return the URL of the archive of the given version."""
        template = self.config.archive_url_template or self.repository.archive_url_template()
        return template.replace(LEGACY_VERSION_PLACEHOLDER, version).replace("{version}", version)

    def run(self, version: str | None = None) -> SyncResult:
        """
        Run the whole pipeline and return the synchronized version.

        When version is None we sync the latest tag, otherwise we sync
        the given version. Any failure moves the run to FAILED and the
        original exception propagates after removing the staging dir.
        """
        staging = self.config.staging_path()
        try:
            remove_dir(staging)
            result = self._run_stages(staging, version)
            remove_dir(staging)
        except BaseException:
            self.state = SyncState.FAILED
            self._discard_staging(staging)
            raise
        self._transition(SyncState.DONE, f"Dataset updated to version {result.version}")
        return result

    def _run_stages(self, staging: Path, version: str | None) -> SyncResult:
        if version is None:
            self._transition(SyncState.RESOLVING_VERSION, "Resolving latest dataset version...")
            version = self.resolver.resolve(self.repository)
        else:
            self._transition(SyncState.RESOLVING_VERSION, f"Using pinned dataset version {version}")

        url = self.archive_url(version)
        self._transition(SyncState.DOWNLOADING, "Downloading dataset archive...")
        archive = download(
            DownloadTask(url=url, dest_dir=staging, file_name=self.config.archive_name),
            idle_timeout=self.config.idle_timeout,
            connect_timeout=self.config.connect_timeout,
            session=self.session,
            on_progress=self.on_download_progress,
        )

        self._transition(SyncState.EXTRACTING, "Unpacking dataset archive...")
        unpacked = self.extractor.extract(archive, staging / self.config.unpack_dir)
        content_dir = single_top_level_dir(unpacked)

        destination = self.config.destination_path()
        self._transition(SyncState.COPYING, "Updating existing dataset...")
        log.info("copying %s to %s... start", content_dir, destination)
        copy_tree(content_dir, destination)
        log.info("copying %s to %s... ok", content_dir, destination)
        return SyncResult(version=version, url=url, destination=destination)

    def _transition(self, state: SyncState, message: str) -> None:
        self.state = state
        log.debug("state: %s", state.value)
        for observer in self._observers:
            observer(state, message)

    def _discard_staging(self, staging: Path) -> None:
        try:
            remove_dir(staging)
        except OSError as exc:
            log.warning("removing %s... failure: %s", staging, exc)
