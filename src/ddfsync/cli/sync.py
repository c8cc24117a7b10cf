"""Sync command."""

from __future__ import annotations

from contextlib import AbstractContextManager, nullcontext
from pathlib import Path

import click
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)

from ..config import TRANSPORTS, SyncConfig, load_config
from ..errors import ConfigError
from ..sync import DatasetSync, SyncResult, SyncState
from . import cli
from .interceptor import Interceptor
from .logger import configure_logging, log


def resolve_config(config_file: str | None, **overrides: object) -> SyncConfig:
    """Load the config file, if any, and apply the command line overrides."""
    try:
        config = load_config(Path(config_file)) if config_file else SyncConfig()
        return config.with_overrides(**overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except ValueError as exc:
        raise click.ClickException(f"Invalid config: {exc}") from exc


class _DownloadProgress:
    """Render the archive download using a rich progress bar."""

    def __init__(self, progress: Progress, description: str) -> None:
        self.progress = progress
        self.description = description
        self.task_id: TaskID | None = None

    def __call__(self, received: int, total: int | None) -> None:
        if self.task_id is None:
            self.task_id = self.progress.add_task(self.description, total=total)
        self.progress.update(self.task_id, completed=received, total=total)


def _log_status(state: SyncState, message: str) -> None:
    log.info("%s", message)


def _run(config: SyncConfig, pinned_version: str | None, use_lock: bool) -> SyncResult:
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        transient=True,
    ) as progress:
        syncer = DatasetSync(
            config,
            on_download_progress=_DownloadProgress(progress, config.archive_name),
        )
        syncer.subscribe(_log_status)
        lock: AbstractContextManager = syncer.lock() if use_lock else nullcontext()
        with lock:
            return syncer.run(pinned_version)


@cli.command()
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    metavar="CONFIG",
    help="Path to YAML config file",
)
@click.option("-r", "--repository", default=None, help="Upstream repository as host/owner/name")
@click.option("-s", "--staging-dir", default=None, help="Staging directory (default: ./temp)")
@click.option(
    "-d",
    "--dest",
    "destination_dir",
    default=None,
    help="Destination directory (default: ./target)",
)
@click.option(
    "--pin",
    "pinned_version",
    default=None,
    metavar="VERSION",
    help="Sync VERSION instead of the latest tag",
)
@click.option(
    "--transport",
    type=click.Choice(TRANSPORTS),
    default=None,
    help="Protocol used to list the tags (default: git)",
)
@click.option(
    "--idle-timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Abort the download after SECONDS without data (default: 240)",
)
@click.option("--no-lock", is_flag=True, default=False, help="Do not lock the staging directory.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def sync(
    config_file: str | None,
    repository: str | None,
    staging_dir: str | None,
    destination_dir: str | None,
    pinned_version: str | None,
    transport: str | None,
    idle_timeout: float | None,
    no_lock: bool,
    verbose: bool,
) -> None:
    """Update the destination directory with the latest dataset release."""
    configure_logging(verbose)
    config = resolve_config(
        config_file,
        repository=repository,
        staging_dir=staging_dir,
        destination_dir=destination_dir,
        transport=transport,
        idle_timeout=idle_timeout,
    )
    interceptor = Interceptor()
    with interceptor:
        result = _run(config, pinned_version, use_lock=not no_lock)
        click.echo(f"ok {result.version}")
    raise SystemExit(interceptor.exitcode())
