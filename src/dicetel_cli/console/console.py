"""
Flexoki-themed Console class for Rich library
Uses the warm, inky Flexoki color scheme by Steph Ango
https://stephango.com/flexoki
"""

import os

from rich.console import Console as RichConsole
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from dicetel_core.models.config import DicetelConfig

# Flexoki color palette (dark theme - 400 series)
COLORS_DARK = {
    'tx_3': '#B7B5AC',
    'tx_2': '#CECDC3',
    'tx': '#E6E4D9',
    'red': '#D14D41',
    'orange': '#DA702C',
    'yellow': '#D0A215',
    'green': '#879A39',
    'cyan': '#3AA99F',
    'blue': '#4385BE',
}

# Flexoki color palette (light theme - 600 series)
COLORS_LIGHT = {
    'tx_3': '#6F6E69',
    'tx_2': '#403E3C',
    'tx': '#100F0F',
    'red': '#AF3029',
    'orange': '#BC5215',
    'yellow': '#AD8301',
    'green': '#66800B',
    'cyan': '#24837B',
    'blue': '#205EA6',
}


class Console:
    """
    A themed console wrapper using the Flexoki color scheme.
    Automatically detects terminal background and uses appropriate theme.
    """

    @staticmethod
    def detect_terminal_background(config: DicetelConfig = None):
        """
        Detect if the terminal has a light or dark background.
        Returns 'dark' or 'light'.

        Detection methods:
        1. Check DicetelConfig theme setting
        2. Check COLORFGBG environment variable
        3. Default to 'dark' if uncertain
        """
        if config is not None and config.theme is not None:
            return config.theme

        # Format is typically "foreground;background" where background color:
        # 0-6 or 8 = dark background, 7 or 15 = light background
        colorfgbg = os.environ.get('COLORFGBG', '')
        if colorfgbg:
            parts = colorfgbg.split(';')
            if len(parts) >= 2:
                try:
                    if int(parts[-1]) in (7, 15):
                        return 'light'
                except ValueError:
                    pass

        return 'dark'

    def __init__(self, theme_mode=None, config: DicetelConfig = None):
        """
        Initialize the console with Flexoki theme.

        Args:
            theme_mode: Optional theme mode ('light' or 'dark').
                       If None, auto-detects based on config or terminal background.
            config: Optional DicetelConfig instance for loading theme from configuration.
        """
        if theme_mode is None:
            theme_mode = self.detect_terminal_background(config)

        self.theme_mode = theme_mode
        self.COLORS = COLORS_LIGHT if theme_mode == 'light' else COLORS_DARK

        self.theme = Theme(
            {
                'default': f'{self.COLORS["tx"]}',
                'muted': f'{self.COLORS["tx_2"]}',
                'faint': f'{self.COLORS["tx_3"]}',
                'success': f'bold {self.COLORS["green"]}',
                'info': f'{self.COLORS["cyan"]}',
                'warning': f'bold {self.COLORS["orange"]}',
                'error': f'bold {self.COLORS["red"]}',
                'highlight': f'bold {self.COLORS["yellow"]}',
                'link': f'underline {self.COLORS["blue"]}',
            }
        )

        self.console = RichConsole(theme=self.theme)

    def print(self, *args, style=None, **kwargs):
        """Print with optional style."""
        self.console.print(*args, style=style, **kwargs)

    def _icon_and_text(self, message: str, icon: str, icon_style: str):
        grid = Table.grid(padding=(0, 1), expand=False)
        grid.add_column(width=1)
        grid.add_column()
        grid.add_row(Text(icon, style=icon_style), Text(message))
        return grid

    def success(self, message: str, prefix: str = '✓'):
        """Print a success message."""
        self.print(self._icon_and_text(message, prefix, 'success'))

    def info(self, message: str, prefix: str = 'ℹ'):
        """Print an info message."""
        self.print(self._icon_and_text(message, prefix, 'info'))

    def warning(self, message: str, prefix: str = '⚠'):
        """Print a warning message."""
        self.print(self._icon_and_text(message, prefix, 'warning'))

    def error(self, message: str, prefix: str = '✗'):
        """Print an error message."""
        self.print(self._icon_and_text(message, prefix, 'error'))

    def muted(self, message: str):
        """Print muted text."""
        self.print(message, style='muted')

    def highlight(self, message: str):
        """Print highlighted text."""
        self.print(message, style='highlight')

    def newline(self, count: int = 1):
        """Print empty lines."""
        for _ in range(count):
            self.console.print()
