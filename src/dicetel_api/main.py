import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from dicetel_api.routers import dice
from dicetel_core.logging import create_isolated_logger
from dicetel_core.models.config import DicetelConfig
from dicetel_core.services import Dice
from dicetel_core.telemetry import Telemetry

APP_LOGGER = 'dicetel_api'


def create_app(
    config: Optional[DicetelConfig] = None,
    telemetry: Optional[Telemetry] = None,
    dice_service: Optional[Dice] = None,
) -> FastAPI:
    """Create the dice application.

    Telemetry is acquired when the application starts and always shut down
    when it stops, which flushes every pending span, log record and metric
    and shuts the exporters down.

    Parameters
    ----------
    config : DicetelConfig, optional
        Application settings. Read from the environment when omitted.
    telemetry : Telemetry, optional
        Telemetry to use. Built from ``config.telemetry`` when omitted.
    dice_service : Dice, optional
        The die to roll.
    """
    config = config or DicetelConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.telemetry = telemetry or Telemetry(
            config.telemetry, instrumentation_name=dice.__name__
        )

        create_isolated_logger(
            APP_LOGGER,
            level=config.logging_level or logging.INFO,
            add_file_handler=config.logging_file is not None,
            file_path=config.logging_file,
            filters=[app.state.telemetry.context_filter()],
        )
        app.state.telemetry.instrument_logging(APP_LOGGER)

        logging.getLogger(APP_LOGGER).info('Dice service started.')
        try:
            yield
        finally:
            app.state.telemetry.shutdown()

    app = FastAPI(title='dicetel', lifespan=lifespan)
    app.state.config = config
    app.state.dice = dice_service or Dice()
    app.include_router(dice.router)
    return app
