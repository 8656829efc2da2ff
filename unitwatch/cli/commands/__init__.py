from unitwatch.cli.commands.services import services
from unitwatch.cli.commands.timers import timers
from unitwatch.cli.commands.tui import tui

__all__ = [
    'services',
    'timers',
    'tui',
]
