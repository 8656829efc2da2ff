import logging
import os
import sys
from enum import StrEnum
from pathlib import Path
from typing import Final, Self

from pydantic import Field, field_validator

from unitwatch.utils import BaseModel


ENV_PREFIX: Final[str] = 'UNITWATCH_'

SERVICES_PLUGIN_ID: Final[str] = 'systemd-services'
TIMERS_PLUGIN_ID: Final[str] = 'systemd-timers'


class HistoryBackend(StrEnum):
    """Where execution history is reconstructed from.
    """

    JOURNAL = 'journal'
    FILES = 'files'


class Defaults:
    """Default values for the runtime settings."""

    COMMAND_TIMEOUT: Final[float] = 10.0
    HISTORY_BACKEND: Final[HistoryBackend] = HistoryBackend.JOURNAL
    LOG_DIR: Final[str] = '/var/log/timers'
    JOURNAL_SINCE: Final[str] = '7 days ago'
    HISTORY_LIMIT: Final[int] = 20
    MAX_HISTORY_LIMIT: Final[int] = 500
    MAX_OUTPUT_BYTES: Final[int] = 100 * 1024
    LOG_LINES: Final[int] = 100
    MAX_LOG_LINES: Final[int] = 10_000
    DATA_DIR: Final[str] = '/var/lib/unitwatch'
    LOG_LEVEL: Final[str] = 'INFO'
    LOG_JOURNAL: Final[bool] = False


class AppSettings(BaseModel):
    """Runtime settings shared by both plugins.

    Args:
        command_timeout: Wall-clock bound for every systemctl/journalctl call
        history_backend: Which history strategy to construct
        log_dir: Root of the per-unit execution log directories
        journal_since: How far back the journal strategy looks
        history_limit: Default number of history records returned
        max_output_bytes: Ceiling for captured output of one execution
        log_lines: Default number of journal lines for service logs
        data_dir: Directory holding the JSON key-value files
        log_level: Level for the unitwatch logger
        log_journal: Send logs to the systemd journal instead of stderr;
            needs the `journal` extra
    """
    model_config = {'frozen': True}

    command_timeout: float = Field(Defaults.COMMAND_TIMEOUT, gt=0)
    history_backend: HistoryBackend = Field(Defaults.HISTORY_BACKEND)
    log_dir: Path = Field(Path(Defaults.LOG_DIR))
    journal_since: str = Field(Defaults.JOURNAL_SINCE, min_length=1)
    history_limit: int = Field(
        Defaults.HISTORY_LIMIT,
        ge=1,
        le=Defaults.MAX_HISTORY_LIMIT,
    )
    max_output_bytes: int = Field(Defaults.MAX_OUTPUT_BYTES, ge=1024)
    log_lines: int = Field(Defaults.LOG_LINES, ge=1, le=Defaults.MAX_LOG_LINES)
    data_dir: Path = Field(Path(Defaults.DATA_DIR))
    log_level: str = Field(Defaults.LOG_LEVEL)
    log_journal: bool = Field(Defaults.LOG_JOURNAL)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f'Unknown log level: {v}')
        return level

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Self:
        """Build settings from `UNITWATCH_*` environment variables.

        Unset variables keep their defaults; invalid values raise
        pydantic's ValidationError.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f'{ENV_PREFIX}{name.upper()}')
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls(**values)


def setup_logger(
    level: str = Defaults.LOG_LEVEL,
    journal: bool = Defaults.LOG_JOURNAL,
) -> logging.Logger:
    """Configure the `unitwatch` logger.

    Logs go to stderr unless `journal` is set, in which case they go to
    the systemd journal through systemd-python.
    """
    app_logger = logging.getLogger('unitwatch')
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    if journal:
        from systemd.journal import JournalHandler

        handler: logging.Handler = JournalHandler(
            SYSLOG_IDENTIFIER='unitwatch',
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))

    app_logger.addHandler(handler)
    return app_logger
