import re
from typing import Final


_UNIT_SECONDS: Final[dict[str, float]] = {
    'usec': 1e-6,
    'us': 1e-6,
    'µs': 1e-6,
    'msec': 1e-3,
    'ms': 1e-3,
    'seconds': 1,
    'second': 1,
    'sec': 1,
    's': 1,
    '': 1,
    'minutes': 60,
    'minute': 60,
    'min': 60,
    'm': 60,
    'hours': 3600,
    'hour': 3600,
    'hr': 3600,
    'h': 3600,
    'days': 86400,
    'day': 86400,
    'd': 86400,
    'weeks': 604800,
    'week': 604800,
    'w': 604800,
    'months': 2629800,
    'month': 2629800,
    'M': 2629800,
    'years': 31557600,
    'year': 31557600,
    'y': 31557600,
}

_SPAN_TOKEN: Final[re.Pattern[str]] = re.compile(
    r'(\d+(?:\.\d+)?)\s*([A-Za-zµ]*)'
)


def parse_time_span(expr: str) -> int:
    """Parse a systemd time span such as `5min`, `1h 30min` or `120`.

    Returns:
        The span in whole seconds

    Raises:
        ValueError: If the expression is not a time span
    """
    text = expr.strip()
    if not text:
        raise ValueError('Empty time span')

    total = 0.0
    position = 0
    for match in _SPAN_TOKEN.finditer(text):
        if text[position:match.start()].strip():
            raise ValueError(f'Invalid time span: {expr!r}')
        unit = match.group(2)
        factor = _UNIT_SECONDS.get(unit)
        if factor is None:
            factor = _UNIT_SECONDS.get(unit.lower())
        if factor is None:
            raise ValueError(f'Unknown time unit {unit!r} in {expr!r}')
        total += float(match.group(1)) * factor
        position = match.end()

    if position == 0 or text[position:].strip():
        raise ValueError(f'Invalid time span: {expr!r}')

    return int(total)


def humanize_duration(seconds: int) -> str:
    """Render seconds with at most two units: `90` -> `1min 30s`.
    """
    if seconds < 60:
        return f'{seconds}s'
    if seconds < 3600:
        minutes, secs = divmod(seconds, 60)
        return f'{minutes}min' if secs == 0 else f'{minutes}min {secs}s'
    if seconds < 86400:
        hours, rest = divmod(seconds, 3600)
        minutes = rest // 60
        return f'{hours}h' if minutes == 0 else f'{hours}h {minutes}min'
    days, rest = divmod(seconds, 86400)
    hours = rest // 3600
    return f'{days}d' if hours == 0 else f'{days}d {hours}h'
