from unitwatch.settings.store import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)
from unitwatch.settings.watched import (
    WATCHED_SERVICES_KEY,
    WATCHED_TIMERS_KEY,
    WatchedList,
    WatchedUnits,
)

__all__ = [
    'FileKeyValueStore',
    'KeyValueStore',
    'MemoryKeyValueStore',
    'WATCHED_SERVICES_KEY',
    'WATCHED_TIMERS_KEY',
    'WatchedList',
    'WatchedUnits',
]
