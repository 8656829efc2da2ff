import re
from datetime import UTC, datetime
from typing import Final


_EMPTY_VALUES: Final[frozenset[str]] = frozenset({'', '0', 'n/a', 'infinity'})
_UTC_NAMES: Final[frozenset[str]] = frozenset({'UTC', 'GMT', 'Z', 'UCT'})

# "Wed 2024-01-10 10:00:00 UTC", "2024-01-10 10:00:00.123456 CET"
_SYSTEMD_TIMESTAMP: Final[re.Pattern[str]] = re.compile(
    r'^(?:[A-Z][a-z]{2}\s+)?'
    r'(?P<date>\d{4}-\d{2}-\d{2})\s+'
    r'(?P<time>\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d{1,6}))?'
    r'(?:\s+(?P<zone>\S+))?$'
)


class SystemdTimeConverter:
    """Converts the timestamp renderings systemd tools print into datetimes.

    All returned datetimes are timezone-aware.
    """

    def realtime_usec_to_datetime(self, realtime_usec: int) -> datetime:
        """Convert realtime microseconds since the epoch to a datetime.
        """
        return datetime.fromtimestamp(realtime_usec / 1_000_000, tz=UTC)

    def parse(self, value: str | None) -> datetime | None:
        """Parse a property value such as `ActiveEnterTimestamp`.

        Accepts microsecond integers, `@<epoch seconds>`, systemctl's
        `Day YYYY-MM-DD HH:MM:SS TZ` form and ISO-8601. Empty, zero and
        `n/a` values mean "never" and give None; anything else
        unrecognized also gives None.
        """
        if value is None:
            return None
        value = value.strip()
        if value.lower() in _EMPTY_VALUES:
            return None

        if value.isdigit():
            return self.realtime_usec_to_datetime(int(value))

        if value.startswith('@'):
            try:
                return datetime.fromtimestamp(float(value[1:]), tz=UTC)
            except (ValueError, OverflowError, OSError):
                return None

        match = _SYSTEMD_TIMESTAMP.match(value)
        if match:
            return self._from_systemd_match(match)

        return self.parse_iso(value)

    def parse_iso(self, value: str) -> datetime | None:
        """Parse ISO-8601, treating naive values as local time.
        """
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return self.ensure_aware(parsed)

    def ensure_aware(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.astimezone()
        return value

    def _from_systemd_match(self, match: re.Match[str]) -> datetime | None:
        fraction = (match.group('fraction') or '').ljust(6, '0')
        try:
            naive = datetime.strptime(
                f'{match.group("date")} {match.group("time")}',
                '%Y-%m-%d %H:%M:%S',
            )
        except ValueError:
            return None
        naive = naive.replace(microsecond=int(fraction or 0))

        zone = match.group('zone')
        if zone and zone.upper() in _UTC_NAMES:
            return naive.replace(tzinfo=UTC)
        # systemctl prints the local zone abbreviation
        return naive.astimezone()


def utc_now() -> datetime:
    return datetime.now(UTC)
