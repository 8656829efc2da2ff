import re
from collections.abc import Iterable
from typing import Final

from unitwatch.time.spans import humanize_duration, parse_time_span


NO_SCHEDULE: Final[str] = 'Schedule not available'

_WEEKDAYS: Final[dict[str, str]] = {
    'mon': 'Mon', 'monday': 'Mon',
    'tue': 'Tue', 'tuesday': 'Tue',
    'wed': 'Wed', 'wednesday': 'Wed',
    'thu': 'Thu', 'thursday': 'Thu',
    'fri': 'Fri', 'friday': 'Fri',
    'sat': 'Sat', 'saturday': 'Sat',
    'sun': 'Sun', 'sunday': 'Sun',
}

_SHORTHANDS: Final[dict[str, str]] = {
    'minutely': 'Every minute',
    'hourly': 'Hourly',
    'daily': 'Daily at 00:00',
    'weekly': 'Every Mon at 00:00',
    'monthly': 'Monthly on the 1st at 00:00',
    'yearly': 'Yearly on Jan 1st at 00:00',
    'annually': 'Yearly on Jan 1st at 00:00',
    'quarterly': 'Quarterly',
    'semiannually': 'Semiannually',
}

_MONOTONIC_TEMPLATES: Final[dict[str, str]] = {
    'OnBootSec': '{} after boot',
    'OnStartupSec': '{} after startup',
    'OnActiveSec': '{} after timer activation',
    'OnUnitActiveSec': 'Every {} after activation',
    'OnUnitInactiveSec': 'Every {} after deactivation',
}

_CLAUSE_KEY: Final[re.Pattern[str]] = re.compile(r'^(On[A-Za-z]+?)(U?Sec)?=(.*)$')
_DATE: Final[re.Pattern[str]] = re.compile(
    r'^(?P<year>\*|\d{4})-(?P<month>\*|\d{1,2})-(?P<day>\*|\d{1,2})$'
)
_TIME: Final[re.Pattern[str]] = re.compile(
    r'^(?P<hour>[\d*./]+):(?P<minute>[\d*/]+)(?::(?P<second>[\d*.]+))?$'
)
_WEEKDAY_TOKEN: Final[re.Pattern[str]] = re.compile(
    r'^[A-Za-z]+(?:(?:\.\.|,)[A-Za-z]+)*$'
)
_ZONE_TOKEN: Final[re.Pattern[str]] = re.compile(r'^(?:[A-Z]{2,5}|[A-Za-z_]+/[A-Za-z_/+\-0-9]+)$')


def ordinal(number: int) -> str:
    """`1` -> `1st`, `12` -> `12th`, `22` -> `22nd`.
    """
    if 10 <= number % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(number % 10, 'th')
    return f'{number}{suffix}'


def humanize_clause(clause: str) -> str:
    """Describe one schedule clause in plain words.

    Clauses look like `OnCalendar=Mon,Wed 08:00:00`, a bare calendar
    expression, or a monotonic `OnBootSec=5min`. Unrecognized syntax is
    returned verbatim.
    """
    text = clause.strip()
    if not text:
        return clause
    try:
        described = _describe(text)
    except ValueError:
        described = None
    return described if described is not None else clause


def humanize_schedule(clauses: Iterable[str]) -> str:
    """Humanize every clause independently and join them in order.
    """
    parts = [humanize_clause(clause) for clause in clauses]
    return ', '.join(parts) if parts else NO_SCHEDULE


def _describe(text: str) -> str | None:
    key_match = _CLAUSE_KEY.match(text)
    if key_match:
        key = key_match.group(1)
        value = key_match.group(3).strip()
        if key == 'OnCalendar':
            return _describe_calendar(value)
        template = _MONOTONIC_TEMPLATES.get(f'{key}Sec')
        if template is None:
            return None
        try:
            span = humanize_duration(parse_time_span(value))
        except ValueError:
            span = value
        return template.format(span)

    return _describe_calendar(text)


def _describe_calendar(expression: str) -> str | None:
    shorthand = _SHORTHANDS.get(expression.lower())
    if shorthand is not None:
        return shorthand

    tokens = expression.split()
    zone = None
    if len(tokens) > 1 and _ZONE_TOKEN.match(tokens[-1]):
        zone = tokens.pop()

    days = None
    if tokens and _WEEKDAY_TOKEN.match(tokens[0]):
        days = _describe_weekdays(tokens.pop(0))
        if days is None:
            return None

    day_of_month = None
    if tokens and _DATE.match(tokens[0]):
        date = _DATE.match(tokens.pop(0))
        if date.group('year') != '*' or date.group('month') != '*':
            return None
        if date.group('day') != '*':
            day_of_month = int(date.group('day'))
            if not 1 <= day_of_month <= 31:
                return None

    if len(tokens) > 1:
        return None
    time_match = _TIME.match(tokens[0]) if tokens else _TIME.match('00:00:00')
    if time_match is None:
        return None

    described = _compose(days, day_of_month, time_match)
    if described is None:
        return None
    return f'{described} ({zone})' if zone else described


def _describe_weekdays(token: str) -> str | None:
    parts = []
    for item in token.split(','):
        bounds = item.split('..')
        names = [_WEEKDAYS.get(bound.lower()) for bound in bounds]
        if None in names or len(names) > 2:
            return None
        parts.append('-'.join(names))
    return ', '.join(parts)


def _compose(
    days: str | None,
    day_of_month: int | None,
    time_match: re.Match[str],
) -> str | None:
    hour = time_match.group('hour')
    minute = time_match.group('minute')
    timing = _describe_time(hour, minute)
    if timing is None:
        return None
    phrase, fixed = timing

    if day_of_month is not None:
        if days is not None or not fixed:
            return None
        return f'Monthly on the {ordinal(day_of_month)} at {phrase}'

    if days is None:
        if fixed:
            return f'Daily at {phrase}'
        if phrase[0].isdigit():
            return f'Daily {phrase}'
        return phrase

    if fixed:
        single = ',' not in days and '-' not in days
        return f'Every {days} at {phrase}' if single else f'{days} at {phrase}'
    if phrase[0].isdigit():
        return f'{days} {phrase}'
    return f'{phrase} on {days}'


def _describe_time(hour: str, minute: str) -> tuple[str, bool] | None:
    """Describe the time part and say whether it is one fixed time of day.
    """
    if minute.isdigit():
        mm = int(minute)
        if mm > 59:
            return None
        if hour.isdigit():
            hh = int(hour)
            if hh > 23:
                return None
            return f'{hh:02d}:{mm:02d}', True
        if '..' in hour:
            start, _, end = hour.partition('..')
            if not (start.isdigit() and end.isdigit()):
                return None
            return f'{int(start):02d}-{int(end):02d}:{mm:02d}', False
        if hour == '*':
            return ('Hourly', False) if mm == 0 else (f'Hourly at :{mm:02d}', False)
        step = _step(hour)
        if step is not None:
            return (f'Every {step} hours', False) if step != 1 else ('Hourly', False)
        return None

    if minute == '*' and hour == '*':
        return 'Every minute', False

    step = _step(minute)
    if step is not None and hour == '*':
        return (f'Every {step} minutes', False) if step != 1 else ('Every minute', False)
    return None


def _step(value: str) -> int | None:
    start, slash, step = value.partition('/')
    if not slash or not step.isdigit() or int(step) == 0:
        return None
    if start != '*' and not start.isdigit():
        return None
    return int(step)
