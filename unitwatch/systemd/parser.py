"""Parsers for the text and JSON that systemctl and journalctl print.

Everything here is pure: no process is spawned and no clock is read.
"""
import json
import logging
import re
from collections.abc import Iterator
from datetime import datetime
from typing import Any, Final

from unitwatch.errors import ParseError
from unitwatch.systemd.models import LogEntry, UnitSummary
from unitwatch.time import SystemdTimeConverter


logger = logging.getLogger(__name__)

_STATUS_MARKERS: Final[str] = '●○*× '
_CONTROL_CHARACTERS: Final[re.Pattern[str]] = re.compile(
    r'[\x00-\x08\x0b-\x1f\x7f]'
)
_CLAUSE_BODY: Final[re.Pattern[str]] = re.compile(
    r'(?P<key>On[A-Za-z]+)=(?P<value>[^;}]*)'
)

_converter = SystemdTimeConverter()


def parse_unit_list(stdout: str) -> list[UnitSummary]:
    """Parse `systemctl list-units --plain --no-legend` output.

    Columns are UNIT LOAD ACTIVE SUB DESCRIPTION; the description may
    contain spaces. Lines with fewer than four columns are skipped.
    """
    units = []
    for line in stdout.splitlines():
        line = line.strip().lstrip(_STATUS_MARKERS)
        if not line:
            continue
        parts = line.split(None, 4)
        if len(parts) < 4:
            logger.debug('Skipping unit list line: %r', line)
            continue
        units.append(UnitSummary(
            name=parts[0],
            load_state=parts[1],
            active_state=parts[2],
            sub_state=parts[3],
            description=parts[4] if len(parts) > 4 else '',
        ))
    return units


def iter_show_properties(stdout: str) -> Iterator[tuple[str, str]]:
    """Yield `(key, value)` pairs of `systemctl show` output in order.

    Array properties such as TimersCalendar appear once per element.
    """
    for line in stdout.splitlines():
        key, sep, value = line.partition('=')
        key = key.strip()
        if sep and key:
            yield key, value.strip()


def parse_show_output(stdout: str) -> dict[str, str]:
    """Collect `systemctl show` output into a mapping, last value winning.
    """
    return dict(iter_show_properties(stdout))


def require_property(properties: dict[str, str], key: str, raw: str) -> str:
    try:
        return properties[key]
    except KeyError:
        raise ParseError(f'Missing {key} in systemctl output', raw) from None


def extract_timer_clause(value: str) -> str | None:
    """Pull the clause out of one TimersCalendar/TimersMonotonic element.

    `{ OnCalendar=Mon..Fri 07..21:00:00 ; next_elapse=... }` gives the
    bare calendar expression, `{ OnUnitActiveUSec=1h ; ... }` gives
    `OnUnitActiveSec=1h`.
    """
    match = _CLAUSE_BODY.search(value)
    if match is None:
        return None
    body = match.group('value').strip()
    if not body:
        return None
    key = match.group('key')
    if key == 'OnCalendar':
        return body
    if key.endswith('USec'):
        key = f'{key[:-4]}Sec'
    return f'{key}={body}'


def parse_timer_clauses(stdout: str) -> list[str]:
    """All schedule clauses of a timer in the order systemctl lists them.
    """
    clauses = []
    for key, value in iter_show_properties(stdout):
        if key not in ('TimersCalendar', 'TimersMonotonic'):
            continue
        clause = extract_timer_clause(value)
        if clause is not None:
            clauses.append(clause)
    return clauses


def parse_pid(value: str | None) -> int | None:
    if not value or not value.strip().isdigit():
        return None
    pid = int(value)
    return pid if pid > 0 else None


def load_journal_line(line: str) -> dict[str, Any] | None:
    """Decode one `journalctl -o json` line, None if it is not an object.
    """
    line = line.strip()
    if not line:
        return None
    try:
        entry = json.loads(line)
    except ValueError:
        logger.warning('Skipping undecodable journal line: %.200r', line)
        return None
    if not isinstance(entry, dict):
        logger.warning('Skipping non-object journal line: %.200r', line)
        return None
    return entry


def iter_journal_entries(stdout: str) -> Iterator[dict[str, Any]]:
    for line in stdout.splitlines():
        entry = load_journal_line(line)
        if entry is not None:
            yield entry


def journal_field(entry: dict[str, Any], key: str) -> str | None:
    """Read a journal field as text.

    journalctl renders non-UTF-8 fields as byte arrays and repeated fields
    as lists of strings; both become a single string here.
    """
    value = entry.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        if all(isinstance(item, int) and 0 <= item < 256 for item in value):
            return bytes(value).decode('utf-8', errors='replace')
        if value and isinstance(value[-1], str):
            return value[-1]
        return None
    if isinstance(value, int | float):
        return str(value)
    return None


def journal_message(entry: dict[str, Any]) -> str:
    message = journal_field(entry, 'MESSAGE') or ''
    return sanitize_text(message)


def sanitize_text(text: str) -> str:
    """Drop control characters other than tab and newline.
    """
    return _CONTROL_CHARACTERS.sub('', text)


def journal_timestamp(entry: dict[str, Any]) -> datetime | None:
    raw = journal_field(entry, '__REALTIME_TIMESTAMP')
    if raw is None or not raw.isdigit():
        return None
    return _converter.realtime_usec_to_datetime(int(raw))


def journal_int(entry: dict[str, Any], key: str) -> int | None:
    raw = journal_field(entry, key)
    if raw is None:
        return None
    raw = raw.strip()
    if raw.lstrip('-').isdigit():
        return int(raw)
    return None


def parse_log_entries(stdout: str) -> list[LogEntry]:
    """Parse `journalctl --output=json` into log entries, oldest first.

    Lines that are not JSON objects are skipped.
    """
    entries = []
    for entry in iter_journal_entries(stdout):
        priority = journal_int(entry, 'PRIORITY')
        if priority is not None and not 0 <= priority <= 7:
            priority = None
        entries.append(LogEntry(
            timestamp=journal_timestamp(entry),
            message=journal_message(entry),
            priority=priority,
        ))
    return entries
