"""Latest command."""

import click

from ..config import TRANSPORTS
from ..tags import TagResolver, make_transport
from . import cli
from .interceptor import Interceptor
from .logger import configure_logging
from .sync import resolve_config


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
@click.option(
    "--transport",
    type=click.Choice(TRANSPORTS),
    default=None,
    help="Protocol used to list the tags (default: git)",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def latest(
    config_file: str | None,
    repository: str | None,
    transport: str | None,
    verbose: bool,
) -> None:
    """Print the latest version tag of the upstream repository."""
    configure_logging(verbose)
    config = resolve_config(config_file, repository=repository, transport=transport)
    interceptor = Interceptor()
    with interceptor:
        resolver = TagResolver(
            make_transport(config.transport, connect_timeout=config.connect_timeout)
        )
        click.echo(resolver.resolve(config.repository))
    raise SystemExit(interceptor.exitcode())
