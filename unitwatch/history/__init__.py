from unitwatch.history.base import HistoryReader, OutputBuffer
from unitwatch.history.factory import create_history_reader
from unitwatch.history.journal import JournalHistoryReader
from unitwatch.history.log_files import LogFileHistoryReader
from unitwatch.history.models import (
    ExecutionDetails,
    ExecutionRecord,
    ExecutionStatus,
    TriggerType,
)

__all__ = [
    'ExecutionDetails',
    'ExecutionRecord',
    'ExecutionStatus',
    'HistoryReader',
    'JournalHistoryReader',
    'LogFileHistoryReader',
    'OutputBuffer',
    'TriggerType',
    'create_history_reader',
]
