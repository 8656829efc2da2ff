from unitwatch.command.executor import (
    ALLOWED_PROGRAMS,
    DEFAULT_TIMEOUT,
    CommandExecutor,
    SystemCommandExecutor,
    format_command,
)
from unitwatch.command.models import CommandOutcome
from unitwatch.command.recording import RecordingCommandExecutor

__all__ = [
    'ALLOWED_PROGRAMS',
    'DEFAULT_TIMEOUT',
    'CommandExecutor',
    'CommandOutcome',
    'RecordingCommandExecutor',
    'SystemCommandExecutor',
    'format_command',
]
