"""Command line interface for the dice service."""

from typing import Optional

import typer
from typing_extensions import Annotated
from importlib.metadata import version as metadata_version

from dicetel_cli.console.console import Console
from dicetel_cli.commands.serve import app as serve_command
from dicetel_cli.commands.version import app as version_command


# Create typer app
app = typer.Typer(
    name='dicetel',
    help='Dice rolling service with traces, metrics and correlated logs.',
    no_args_is_help=True,
    add_completion=False,
    pretty_exceptions_enable=False,
)

console = Console()


def version_callback(value: bool):
    if value:
        try:
            dicetel_version = metadata_version('dicetel')
        except Exception:
            dicetel_version = 'Development version'

        console.info(f'Version: {dicetel_version}')
        raise typer.Exit()


@app.callback()
def callback(
    version: Annotated[
        Optional[bool],
        typer.Option(
            '--version',
            callback=version_callback,
            is_eager=True,
            help='Show dicetel version',
        ),
    ] = None,
):
    """Define the common command options"""


app.add_typer(serve_command)
app.add_typer(version_command)


def main():
    """Entry point for the CLI."""
    app()
