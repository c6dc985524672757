"""Run the dice service over HTTP."""

from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError
from typing_extensions import Annotated

from dicetel_api.main import create_app
from dicetel_api.routers import dice
from dicetel_cli.console.console import Console
from dicetel_core.models.config import DicetelConfig
from dicetel_core.telemetry import Telemetry


app = typer.Typer()

console = Console()


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option('--host', help='Interface to bind. Default from DICETEL_HOST.'),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option('--port', '-p', help='Port to listen on. Default from DICETEL_PORT.'),
    ] = None,
    endpoint: Annotated[
        Optional[str],
        typer.Option(
            '--endpoint',
            '-e',
            help='OTLP collector endpoint. Default from DICETEL_TELEMETRY_ENDPOINT.',
        ),
    ] = None,
):
    """Serve GET /rolldice and export its telemetry.

    Exits with code 1 when pending telemetry could not be flushed in time
    during shutdown.
    """
    try:
        config = DicetelConfig()
        if endpoint:
            config.telemetry = config.telemetry.model_copy(
                update={
                    'endpoint': endpoint,
                    'traces_endpoint': f'{endpoint.rstrip("/")}/v1/traces',
                    'metrics_endpoint': f'{endpoint.rstrip("/")}/v1/metrics',
                    'logs_endpoint': f'{endpoint.rstrip("/")}/v1/logs',
                }
            )
    except ValidationError as e:
        console.error(f'Invalid configuration: {e}')
        raise typer.Exit(2)

    telemetry = Telemetry(config.telemetry, instrumentation_name=dice.__name__)
    telemetry.register_exit_hook()

    host = host or config.host
    port = port or config.port

    console.info(f'Serving on http://{host}:{port}/rolldice')
    if telemetry.is_enabled:
        console.muted(f'Exporting telemetry to {config.telemetry.endpoint}')

    uvicorn.run(create_app(config, telemetry), host=host, port=port, log_config=None)

    # uvicorn returns once the lifespan has shut the telemetry down
    if not telemetry.shutdown():
        console.warning('Telemetry flush timed out, some spans, logs or metrics were lost')
        raise typer.Exit(1)

    console.success('Telemetry flushed')
