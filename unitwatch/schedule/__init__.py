from unitwatch.schedule.humanizer import (
    NO_SCHEDULE,
    humanize_clause,
    humanize_schedule,
    ordinal,
)
from unitwatch.schedule.models import ScheduleSpec

__all__ = [
    'NO_SCHEDULE',
    'ScheduleSpec',
    'humanize_clause',
    'humanize_schedule',
    'ordinal',
]
