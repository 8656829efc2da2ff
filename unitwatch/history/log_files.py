import asyncio
import logging
import re
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta
from pathlib import Path
from typing import BinaryIO, Final

from pydantic import ValidationError

from unitwatch.config import Defaults
from unitwatch.errors import ExecutionNotFoundError
from unitwatch.history.base import (
    HistoryReader,
    OutputBuffer,
    clamp_limit,
    newest_first,
)
from unitwatch.history.models import (
    ExecutionDetails,
    ExecutionRecord,
    TriggerType,
)
from unitwatch.systemd.parser import sanitize_text
from unitwatch.systemd.types import UnitKind
from unitwatch.systemd.validation import UnitName, validate_unit_name
from unitwatch.time import SystemdTimeConverter, parse_time_span, utc_now


START_MARKER: Final[str] = '[START]'
END_MARKER: Final[str] = '[END]'
LATEST_LOG: Final[str] = 'latest.log'
LOG_SUFFIX: Final[str] = '.log'
TOKEN_FORMAT: Final[str] = '%Y-%m-%d_%H%M%S'

_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r'^\d{4}-\d{2}-\d{2}_\d{6}$')
_KEY_VALUE: Final[re.Pattern[str]] = re.compile(r'(\w+)=(\S+)')

# Bytes read from the end of a file to find its END marker
_TAIL_CHUNK: Final[int] = 4096


class LogFileHistoryReader(HistoryReader):
    """Reads executions from per-run log files.

    Layout: `<log_dir>/<service base name>/YYYY-MM-DD_HHMMSS.log`, one file
    per execution, plus a `latest.log` alias that is ignored. Each file
    starts with `[START] <iso time> <unit> [trigger=manual]` and, once the
    run finished, ends with `[END] <iso time> exit_code=N duration=Ns`.
    """

    def __init__(
        self,
        log_dir: Path = Path(Defaults.LOG_DIR),
        max_output_bytes: int = Defaults.MAX_OUTPUT_BYTES,
        default_limit: int = Defaults.HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._clock = clock
        self._log_dir = Path(log_dir)
        self._max_output_bytes = max_output_bytes
        self._default_limit = default_limit
        self._time_converter = SystemdTimeConverter()

    def unit_directory(self, unit: UnitName) -> Path:
        return self._log_dir / unit.base_name

    async def list_executions(
        self,
        unit: UnitName,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        unit = validate_unit_name(unit, UnitKind.SERVICE)
        limit = clamp_limit(limit, self._default_limit)
        return await asyncio.to_thread(self._list_executions, unit, limit)

    async def get_details(
        self,
        unit: UnitName,
        execution_id: str,
    ) -> ExecutionDetails:
        unit = validate_unit_name(unit, UnitKind.SERVICE)
        if not _TOKEN_PATTERN.match(execution_id):
            raise ExecutionNotFoundError(unit, execution_id)

        path = self.unit_directory(unit) / f'{execution_id}{LOG_SUFFIX}'
        if not path.is_file():
            raise ExecutionNotFoundError(unit, execution_id)

        return await asyncio.to_thread(self._read_details, path)

    def _list_executions(self, unit: UnitName, limit: int) -> list[ExecutionRecord]:
        directory = self.unit_directory(unit)
        if not directory.is_dir():
            self._logger.debug('No log directory for %s at %s', unit, directory)
            return []

        paths = sorted(
            (
                path for path in directory.iterdir()
                if path.name != LATEST_LOG
                and path.suffix == LOG_SUFFIX
                and _TOKEN_PATTERN.match(path.stem)
            ),
            key=lambda path: path.stem,
            reverse=True,
        )

        records = []
        for path in paths:
            if len(records) >= limit:
                break
            try:
                records.append(self._read_summary(path))
            except (OSError, ValueError, ValidationError) as e:
                self._logger.warning('Skipping unreadable log file %s: %s', path, e)

        return newest_first(records)

    def _read_summary(self, path: Path) -> ExecutionRecord:
        """Build a record from the first line and the tail of a log file.
        """
        with path.open('rb') as handle:
            first_line = _decode(handle.readline(_TAIL_CHUNK))
            size = handle.seek(0, 2)
            handle.seek(max(0, size - _TAIL_CHUNK))
            tail = handle.read()

        last_line = ''
        for raw in reversed(tail.splitlines()):
            candidate = _decode(raw)
            if candidate.strip():
                last_line = candidate
                break

        return self._build_record(path, first_line, last_line)

    def _read_details(self, path: Path) -> ExecutionDetails:
        buffer = OutputBuffer(self._max_output_bytes)
        first_line = ''
        pending: list[str] = []
        with path.open('rb') as handle:
            # One byte over the cap so the buffer flags trimmed lines
            lines = read_bounded_lines(handle, self._max_output_bytes + 1)
            for index, raw in enumerate(lines):
                line = _decode(raw)
                if index == 0:
                    first_line = line
                    if line.startswith(START_MARKER):
                        continue
                if line.strip():
                    buffer.extend(pending)
                    pending = [line]
                else:
                    pending.append(line)

        last_line = pending[0] if pending else ''
        if self._parse_end(last_line) is None:
            buffer.extend(pending)

        record = self._build_record(path, first_line, last_line)
        return ExecutionDetails.from_record(record, buffer.lines, buffer.truncated)

    def _build_record(
        self,
        path: Path,
        first_line: str,
        last_line: str,
    ) -> ExecutionRecord:
        token = path.stem
        start_time, trigger = self._parse_start(first_line)
        if start_time is None:
            start_time = self._token_to_datetime(token)

        end = self._parse_end(last_line)
        if end is None:
            return ExecutionRecord.running(token, start_time, trigger, self._clock())

        end_time, exit_code, duration = end
        if end_time is None:
            if duration is not None:
                end_time = start_time + timedelta(seconds=duration)
            else:
                end_time = self._time_converter.ensure_aware(
                    datetime.fromtimestamp(path.stat().st_mtime),
                )
        if duration is None:
            duration = max(0, int((end_time - start_time).total_seconds()))

        return ExecutionRecord.finished(
            token,
            start_time,
            end_time,
            exit_code,
            trigger,
            duration_secs=duration,
        )

    def _parse_start(self, line: str) -> tuple[datetime | None, TriggerType]:
        if not line.startswith(START_MARKER):
            return None, TriggerType.SCHEDULED

        fields = line[len(START_MARKER):].split()
        start_time = self._time_converter.parse_iso(fields[0]) if fields else None
        values = dict(_KEY_VALUE.findall(line))
        trigger = TriggerType.SCHEDULED
        if values.get('trigger', '').lower() == TriggerType.MANUAL:
            trigger = TriggerType.MANUAL
        return start_time, trigger

    def _parse_end(
        self,
        line: str,
    ) -> tuple[datetime | None, int, int | None] | None:
        """Parse an END line into end time, exit code and duration.

        Returns None when the line is not an END line or carries no
        readable exit code, which leaves the execution running.
        """
        if not line.startswith(END_MARKER):
            return None

        values = dict(_KEY_VALUE.findall(line))
        raw_exit = values.get('exit_code', '')
        if not raw_exit.lstrip('-').isdigit():
            self._logger.warning('END line without exit code: %.200r', line)
            return None

        fields = line[len(END_MARKER):].split()
        end_time = None
        if fields and '=' not in fields[0]:
            end_time = self._time_converter.parse_iso(fields[0])

        duration = None
        if 'duration' in values:
            try:
                duration = parse_time_span(values['duration'])
            except ValueError:
                self._logger.warning('Unreadable duration in END line: %.200r', line)

        return end_time, int(raw_exit), duration

    def _token_to_datetime(self, token: str) -> datetime:
        return self._time_converter.ensure_aware(
            datetime.strptime(token, TOKEN_FORMAT),
        )


def read_bounded_lines(handle: BinaryIO, max_bytes: int) -> Iterator[bytes]:
    """Yield the lines of a binary file, never holding more than about
    `max_bytes` of one line in memory.

    Lines longer than `max_bytes` are read in pieces and only their last
    `max_bytes` bytes are yielded.
    """
    pending = bytearray()
    while True:
        chunk = handle.readline(max_bytes)
        if not chunk:
            break
        pending += chunk
        if len(pending) > max_bytes:
            del pending[:-max_bytes]
        if chunk.endswith(b'\n'):
            yield bytes(pending)
            pending.clear()
    if pending:
        yield bytes(pending)


def _decode(raw: bytes) -> str:
    """Decode one line of captured output, escaping undecodable bytes.
    """
    text = raw.decode('utf-8', errors='backslashreplace')
    return sanitize_text(text.rstrip('\r\n'))
