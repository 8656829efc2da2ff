from unitwatch.command.executor import CommandExecutor
from unitwatch.config import AppSettings, HistoryBackend
from unitwatch.history.base import HistoryReader
from unitwatch.history.journal import JournalHistoryReader
from unitwatch.history.log_files import LogFileHistoryReader


def create_history_reader(
    settings: AppSettings,
    executor: CommandExecutor,
) -> HistoryReader:
    """Build the history strategy selected by `settings.history_backend`.
    """
    if settings.history_backend == HistoryBackend.FILES:
        return LogFileHistoryReader(
            log_dir=settings.log_dir,
            max_output_bytes=settings.max_output_bytes,
            default_limit=settings.history_limit,
        )
    if settings.history_backend == HistoryBackend.JOURNAL:
        return JournalHistoryReader(
            executor,
            since=settings.journal_since,
            max_output_bytes=settings.max_output_bytes,
            default_limit=settings.history_limit,
            timeout=settings.command_timeout,
        )
    raise ValueError(f'Unknown history backend: {settings.history_backend}')
