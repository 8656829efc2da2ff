import logging
import re
import signal
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Final

from unitwatch.command.executor import CommandExecutor
from unitwatch.config import Defaults
from unitwatch.errors import ExecutionNotFoundError, ParseError
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
from unitwatch.systemd.parser import (
    iter_journal_entries,
    journal_field,
    journal_message,
    journal_timestamp,
)
from unitwatch.systemd.types import Program, UnitKind
from unitwatch.systemd.validation import UnitName, validate_unit_name
from unitwatch.time import utc_now


INVOCATION_FIELDS: Final[tuple[str, ...]] = (
    'INVOCATION_ID',
    '_SYSTEMD_INVOCATION_ID',
)

_INVOCATION_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r'^[0-9a-f]{32}$')

_NO_ENTRIES_MARKERS: Final[tuple[str, ...]] = (
    'No journal files were found',
    'No entries',
)

# sd-messages.h: unit succeeded, failed, failure result, stopped
_TERMINAL_MESSAGE_IDS: Final[frozenset[str]] = frozenset({
    '7ad2d189f7e94e70a38c781354912448',
    'be02cf6855d2428ba40df7e9d022f03d',
    'd9b373ed55a64feb8242e02dbe79a49c',
    '9d1aaa27d60140bd96365438aad20286',
})
_FAILED_MESSAGE_IDS: Final[frozenset[str]] = frozenset({
    'be02cf6855d2428ba40df7e9d022f03d',
    'd9b373ed55a64feb8242e02dbe79a49c',
})

_SCHEDULED_MARKERS: Final[tuple[str, ...]] = ('timer', 'scheduled')
_MANUAL_MARKERS: Final[tuple[str, ...]] = ('manual', 'systemctl start')


class JournalHistoryReader(HistoryReader):
    """Reconstructs executions by grouping journal entries per invocation id.

    A group becomes finished once it carries an exit status or one of the
    terminal unit messages; until then it is reported as running.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        since: str = Defaults.JOURNAL_SINCE,
        max_output_bytes: int = Defaults.MAX_OUTPUT_BYTES,
        default_limit: int = Defaults.HISTORY_LIMIT,
        timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._executor = executor
        self._since = since
        self._max_output_bytes = max_output_bytes
        self._default_limit = default_limit
        self._timeout = timeout
        self._clock = clock

    async def list_executions(
        self,
        unit: UnitName,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        unit = validate_unit_name(unit, UnitKind.SERVICE)
        limit = clamp_limit(limit, self._default_limit)
        groups = self._group(await self._read_journal(unit))

        now = self._clock()
        records = []
        for invocation_id, entries in groups.items():
            record = self._build_record(invocation_id, entries, now)
            if record is not None:
                records.append(record)

        return newest_first(records)[:limit]

    async def get_details(
        self,
        unit: UnitName,
        execution_id: str,
    ) -> ExecutionDetails:
        unit = validate_unit_name(unit, UnitKind.SERVICE)
        if not _INVOCATION_ID_PATTERN.match(execution_id):
            raise ExecutionNotFoundError(unit, execution_id)

        entries = self._group(await self._read_journal(unit)).get(execution_id)
        record = None
        if entries:
            record = self._build_record(execution_id, entries, self._clock())
        if record is None:
            raise ExecutionNotFoundError(unit, execution_id)

        buffer = OutputBuffer(self._max_output_bytes)
        for entry in entries:
            message = journal_message(entry)
            if message:
                buffer.extend(message.splitlines())

        return ExecutionDetails.from_record(record, buffer.lines, buffer.truncated)

    async def _read_journal(self, unit: UnitName) -> list[dict[str, Any]]:
        args = ['-u', unit, '--since', self._since, '-o', 'json', '--no-pager']
        outcome = await self._executor.execute(
            Program.JOURNALCTL,
            args,
            timeout=self._timeout,
        )
        if not outcome.success:
            if any(marker in outcome.stderr for marker in _NO_ENTRIES_MARKERS):
                return []
            raise ParseError(
                f'journalctl for {unit} failed with exit code {outcome.exit_code}',
                outcome.stderr,
            )
        return list(iter_journal_entries(outcome.stdout))

    def _group(
        self,
        entries: list[dict[str, Any]],
    ) -> dict[str, list[dict[str, Any]]]:
        """Group entries by invocation id, dropping entries without a valid one.
        """
        groups: dict[str, list[dict[str, Any]]] = {}
        for entry in entries:
            invocation_id = self._invocation_id(entry)
            if invocation_id is None:
                continue
            if journal_timestamp(entry) is None:
                self._logger.warning(
                    'Skipping journal entry of %s without a timestamp',
                    invocation_id,
                )
                continue
            groups.setdefault(invocation_id, []).append(entry)
        return groups

    def _build_record(
        self,
        invocation_id: str,
        entries: list[dict[str, Any]],
        now: datetime,
    ) -> ExecutionRecord | None:
        timestamps = [journal_timestamp(entry) for entry in entries]
        timestamps = [ts for ts in timestamps if ts is not None]
        if not timestamps:
            return None

        start_time = min(timestamps)
        trigger = self.detect_trigger(journal_message(e) for e in entries)
        exit_code = self._exit_code(entries)

        if exit_code is None:
            return ExecutionRecord.running(invocation_id, start_time, trigger, now)

        return ExecutionRecord.finished(
            invocation_id,
            start_time,
            max(timestamps),
            exit_code,
            trigger,
        )

    @staticmethod
    def detect_trigger(messages: Iterable[str]) -> TriggerType:
        """Classify an invocation by the first message that names its trigger.
        """
        for message in messages:
            lowered = message.lower()
            if any(marker in lowered for marker in _SCHEDULED_MARKERS):
                return TriggerType.SCHEDULED
            if any(marker in lowered for marker in _MANUAL_MARKERS):
                return TriggerType.MANUAL
        return TriggerType.SCHEDULED

    def _invocation_id(self, entry: dict[str, Any]) -> str | None:
        for field in INVOCATION_FIELDS:
            value = journal_field(entry, field)
            if value and _INVOCATION_ID_PATTERN.match(value):
                return value
        return None

    def _exit_code(self, entries: list[dict[str, Any]]) -> int | None:
        """Exit code of a finished group, None while it is still running.
        """
        exit_code = None
        terminal = False
        failed = False
        for entry in entries:
            status = journal_field(entry, 'EXIT_STATUS')
            if status is not None:
                parsed = _parse_exit_status(status)
                if parsed is not None:
                    exit_code = parsed
                    terminal = True

            message_id = journal_field(entry, 'MESSAGE_ID')
            if message_id in _TERMINAL_MESSAGE_IDS:
                terminal = True
                failed = failed or message_id in _FAILED_MESSAGE_IDS

            unit_result = journal_field(entry, 'UNIT_RESULT')
            if unit_result is not None:
                terminal = True
                failed = failed or unit_result != 'success'

            job_result = journal_field(entry, 'JOB_RESULT')
            if job_result is not None and job_result != 'done':
                terminal = True
                failed = True

        if not terminal:
            return None
        if exit_code is not None:
            return exit_code
        return 1 if failed else 0


def _parse_exit_status(value: str) -> int | None:
    """`1` gives 1; a signal name such as `TERM` gives 128 + its number.
    """
    value = value.strip()
    if value.lstrip('-').isdigit():
        return int(value)
    name = value.upper()
    if not name.startswith('SIG'):
        name = f'SIG{name}'
    try:
        return 128 + signal.Signals[name].value
    except KeyError:
        return None
