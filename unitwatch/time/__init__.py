from unitwatch.time.converters import SystemdTimeConverter, utc_now
from unitwatch.time.spans import humanize_duration, parse_time_span

__all__ = [
    'SystemdTimeConverter',
    'humanize_duration',
    'parse_time_span',
    'utc_now',
]
