"""Test suite for the serve command."""

from unittest.mock import MagicMock, patch

import pytest
from click.utils import strip_ansi
from typer.testing import CliRunner

from dicetel_cli.commands.serve import app


@pytest.fixture
def runner():
    """Fixture providing a CLI runner."""
    return CliRunner()


@pytest.fixture
def mock_server():
    """Patch the server and the telemetry so nothing binds or exports."""
    with (
        patch('dicetel_cli.commands.serve.uvicorn.run') as run,
        patch('dicetel_cli.commands.serve.create_app') as create_app,
        patch('dicetel_cli.commands.serve.Telemetry') as telemetry_class,
    ):
        telemetry = MagicMock()
        telemetry.is_enabled = True
        telemetry.shutdown.return_value = True
        telemetry_class.return_value = telemetry
        yield run, create_app, telemetry_class, telemetry


def test_serve_runs_app_and_flushes(runner, mock_server):
    run, create_app, _, telemetry = mock_server

    result = runner.invoke(app, ['--host', '127.0.0.1', '--port', '9000'])

    assert result.exit_code == 0
    run.assert_called_once()
    assert run.call_args.args == (create_app.return_value,)
    assert run.call_args.kwargs['host'] == '127.0.0.1'
    assert run.call_args.kwargs['port'] == 9000
    telemetry.register_exit_hook.assert_called_once()
    telemetry.shutdown.assert_called_once()
    assert 'Telemetry flushed' in strip_ansi(result.stdout)


def test_serve_exits_with_error_when_flush_times_out(runner, mock_server):
    _, _, _, telemetry = mock_server
    telemetry.shutdown.return_value = False

    result = runner.invoke(app, [])

    assert result.exit_code == 1
    assert 'Telemetry flush timed out' in strip_ansi(result.stdout)


def test_serve_endpoint_option_overrides_collector(runner, mock_server):
    _, _, telemetry_class, _ = mock_server

    result = runner.invoke(app, ['--endpoint', 'http://collector:4318'])

    assert result.exit_code == 0
    config = telemetry_class.call_args.args[0]
    assert config.endpoint == 'http://collector:4318'
    assert config.traces_endpoint == 'http://collector:4318/v1/traces'
    assert config.logs_endpoint == 'http://collector:4318/v1/logs'


def test_serve_rejects_invalid_configuration(runner, mock_server, monkeypatch):
    run, _, _, _ = mock_server
    monkeypatch.setenv('DICETEL_WORK_DELAY_MILLIS', '-5')

    result = runner.invoke(app, [])

    assert result.exit_code == 2
    assert 'Invalid configuration' in strip_ansi(result.stdout)
    run.assert_not_called()
