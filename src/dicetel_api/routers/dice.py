import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from opentelemetry.trace import Status, StatusCode

from dicetel_core.models.config import DicetelConfig
from dicetel_core.models.models import TraceContext
from dicetel_core.services import Dice
from dicetel_core.telemetry import Telemetry

router = APIRouter()
logger = logging.getLogger(__name__)

REQUEST_COUNTER = 'dice_roll_requests'


def get_telemetry(request: Request) -> Telemetry:
    return request.app.state.telemetry


def get_dice(request: Request) -> Dice:
    return request.app.state.dice


def get_config(request: Request) -> DicetelConfig:
    return request.app.state.config


@router.get('/rolldice', response_class=PlainTextResponse)
def rolldice(
    player: Optional[str] = None,
    telemetry: Telemetry = Depends(get_telemetry),
    dice: Dice = Depends(get_dice),
    config: DicetelConfig = Depends(get_config),
) -> str:
    return roll_dice(telemetry, dice, player, work_delay_millis=config.work_delay_millis)


def roll_dice(
    telemetry: Telemetry,
    dice: Dice,
    player: Optional[str] = None,
    work_delay_millis: int = 100,
) -> str:
    """Roll the die for ``player`` inside a new trace.

    The root span context is passed down explicitly to the child span, and
    made current only for the duration of this call so concurrent requests
    never see each other's context.
    """
    logger.info('Received request to /rolldice endpoint')

    requests_counter = telemetry.meter.counter(
        REQUEST_COUNTER,
        description='Counts number of requests to /rolldice endpoint',
        unit='1',
    )

    span, context = telemetry.spans.start_span('roll_dice_operation', parent=None)
    try:
        with telemetry.spans.activate(context):
            result = dice.roll(1, 6)

            if player:
                span.set_attribute('player.name', player)
                logger.info(f'{player} is rolling the dice: {result}')
            else:
                logger.info(f'Anonymous player is rolling the dice: {result}')
            span.set_attribute('dice.result', result)

            work(telemetry, context, work_delay_millis)

            requests_counter.add(1)
    except Exception as exc:
        span.set_status(Status(StatusCode.ERROR, str(exc)))
        span.record_exception(exc)
        raise
    finally:
        telemetry.spans.end_span(span)

    return str(result)


def work(telemetry: Telemetry, parent: TraceContext, delay_millis: int) -> None:
    with telemetry.spans.span('work', parent=parent):
        logger.info('Doing some work...')
        time.sleep(delay_millis / 1000)
        logger.info('Work done.')
