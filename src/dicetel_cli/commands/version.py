"""Report the installed dicetel and OpenTelemetry versions."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as metadata_version

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from dicetel_cli.console.console import Console
from dicetel_core.models.config import DicetelTelemetryConfig

app = typer.Typer()

console = Console()

TELEMETRY_DISTRIBUTIONS = (
    'opentelemetry-sdk',
    'opentelemetry-exporter-otlp-proto-grpc',
    'opentelemetry-exporter-otlp-proto-http',
)


def installed_version(distribution: str) -> str | None:
    try:
        return metadata_version(distribution)
    except PackageNotFoundError:
        return None


@app.command()
def version(
    telemetry: Annotated[
        bool,
        typer.Option(
            '--telemetry',
            '-t',
            help='Also list the OpenTelemetry packages and the configured collector.',
        ),
    ] = False,
):
    """Print the dicetel version and the telemetry stack it exports with."""
    console.highlight(f'dicetel {installed_version("dicetel") or "(not installed)"}')

    if not telemetry:
        return

    console.newline()
    for distribution in TELEMETRY_DISTRIBUTIONS:
        found = installed_version(distribution)
        if found:
            console.success(f'{distribution} {found}')
        else:
            console.warning(f'{distribution} is not installed')

    try:
        config = DicetelTelemetryConfig()
    except ValidationError as exc:
        console.error(f'Invalid telemetry configuration: {exc.error_count()} error(s)')
        raise typer.Exit(2)

    if not config.enable:
        console.muted('Telemetry export is disabled.')
        return
    console.info(f'Collector: {config.endpoint} ({config.protocol})')
