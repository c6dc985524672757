"""Tests for the themed console used by the CLI commands."""

import os
from unittest.mock import patch

from dicetel_cli.console.console import COLORS_DARK, COLORS_LIGHT, Console
from dicetel_core.models.config import DicetelConfig


class TestConsoleTheme:
    def test_theme_from_config(self):
        assert Console.detect_terminal_background(DicetelConfig(theme='light')) == 'light'

    @patch.dict(os.environ, {'COLORFGBG': '0;15'})
    def test_theme_from_colorfgbg(self):
        console = Console()
        assert console.theme_mode == 'light'
        assert console.COLORS == COLORS_LIGHT

    @patch.dict(os.environ, {'COLORFGBG': 'not;a-number'})
    def test_unparseable_colorfgbg_falls_back_to_dark(self):
        assert Console.detect_terminal_background() == 'dark'

    def test_config_overrides_environment(self):
        with patch.dict(os.environ, {'COLORFGBG': '0;7'}):
            console = Console(config=DicetelConfig(theme='dark'))
        assert console.COLORS == COLORS_DARK


class TestConsoleOutput:
    @patch('dicetel_cli.console.console.RichConsole.print')
    def test_muted_uses_muted_style(self, mock_print):
        Console().muted('Exporting telemetry')
        mock_print.assert_called_once_with('Exporting telemetry', style='muted')

    @patch('dicetel_cli.console.console.RichConsole.print')
    def test_newline_prints_requested_count(self, mock_print):
        Console().newline(2)
        assert mock_print.call_count == 2
