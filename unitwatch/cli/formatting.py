from collections.abc import Sequence
from datetime import datetime

from unitwatch.history import ExecutionRecord
from unitwatch.systemd.models import (
    LogEntry,
    ServiceStatus,
    TimerInfo,
    UnitSummary,
)
from unitwatch.time import humanize_duration


def format_relative_time(dt: datetime | None) -> str:
    """Format a datetime relative to now for table display.
    """
    if dt is None:
        return 'N/A'

    now = datetime.now(dt.tzinfo)
    diff = (dt - now).total_seconds()

    if diff < 0:
        diff = -diff
        if diff < 3600:
            return f'{int(diff / 60)}m ago'
        elif diff < 86400:
            return f'{int(diff / 3600)}h ago'
        elif diff < 604800:
            return f'{int(diff / 86400)}d ago'
        else:
            return dt.strftime('%Y-%m-%d')
    else:
        if diff < 3600:
            return f'in {int(diff / 60)}m'
        elif diff < 86400:
            return f'in {int(diff / 3600)}h {int((diff % 3600) / 60)}m'
        else:
            return dt.strftime('%Y-%m-%d %H:%M')


def format_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    empty: str,
) -> str:
    """Left-aligned columns; the last column is not padded.
    """
    if not rows:
        return empty

    widths = [
        max(len(headers[i]), *(len(row[i]) for row in rows))
        for i in range(len(headers) - 1)
    ]

    def render(cells: Sequence[str]) -> str:
        padded = [f'{cell:<{width}}' for cell, width in zip(cells, widths)]
        return ' '.join([*padded, cells[-1]]).rstrip()

    header = render(headers)
    lines = [header, '-' * len(header)]
    lines.extend(render(row) for row in rows)
    return '\n'.join(lines)


def format_services_table(services: list[ServiceStatus]) -> str:
    rows = [
        (
            s.name,
            s.status.value,
            f'{s.active_state or "-"}/{s.sub_state or "-"}',
            str(s.main_pid) if s.main_pid else '-',
            humanize_duration(s.uptime_seconds) if s.uptime_seconds is not None else '-',
            s.error or '',
        )
        for s in services
    ]
    return format_table(
        ('SERVICE', 'STATUS', 'STATE', 'PID', 'UPTIME', 'NOTE'),
        rows,
        'No watched services.',
    )


def format_timers_table(timers: list[TimerInfo]) -> str:
    rows = [
        (
            t.name,
            'enabled' if t.enabled else 'disabled',
            format_relative_time(t.next_run),
            format_relative_time(t.last_run),
            t.last_result or '-',
            t.error or t.schedule_human,
        )
        for t in timers
    ]
    return format_table(
        ('TIMER', 'BOOT', 'NEXT', 'LAST', 'RESULT', 'SCHEDULE'),
        rows,
        'No watched timers.',
    )


def format_units_table(units: list[UnitSummary], label: str) -> str:
    rows = [
        (u.name, u.load_state, u.active_state, u.sub_state, u.description)
        for u in sorted(units, key=lambda u: u.name)
    ]
    return format_table(
        (label.upper(), 'LOAD', 'ACTIVE', 'SUB', 'DESCRIPTION'),
        rows,
        f'No {label}s found.',
    )


def format_history_table(records: list[ExecutionRecord]) -> str:
    rows = []
    for r in records:
        if r.duration_secs is not None:
            duration = humanize_duration(r.duration_secs)
        elif r.elapsed_secs is not None:
            duration = f'{humanize_duration(r.elapsed_secs)} so far'
        else:
            duration = '-'
        rows.append((
            r.invocation_id,
            r.start_time.astimezone().strftime('%Y-%m-%d %H:%M:%S'),
            duration,
            r.status.value,
            '-' if r.exit_code is None else str(r.exit_code),
            r.trigger.value,
        ))
    return format_table(
        ('EXECUTION', 'STARTED', 'DURATION', 'STATUS', 'EXIT', 'TRIGGER'),
        rows,
        'No executions found.',
    )


def format_log_entries(entries: list[LogEntry]) -> str:
    if not entries:
        return 'No log entries.'
    lines = []
    for entry in entries:
        stamp = (
            entry.timestamp.astimezone().strftime('%Y-%m-%d %H:%M:%S')
            if entry.timestamp else '-'
        )
        lines.append(f'{stamp} {entry.message}')
    return '\n'.join(lines)
