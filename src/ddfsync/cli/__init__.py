"""Command line: `ddfsync sync`, `ddfsync latest`, `ddfsync version`."""

import click

from .. import __version__


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, message="%(version)s")
def cli() -> None:
    """Keep a local directory in sync with the latest dataset release."""


@cli.command(hidden=True)
@click.pass_context
def help(ctx: click.Context) -> None:
    """Show usage information."""
    click.echo(ctx.parent.get_usage() if ctx.parent else "")
    click.echo('Use "ddfsync <command> --help" for help on a specific command.')


@cli.command("version")
def version_cmd() -> None:
    """Print the version number."""
    click.echo(__version__)


# Subcommands attach themselves to cli on import.
from . import latest as _latest  # noqa: E402, F401
from . import sync as _sync  # noqa: E402, F401
