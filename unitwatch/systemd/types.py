from enum import StrEnum
from typing import Final


class Program(StrEnum):
    """External programs the executor may spawn.
    """

    SYSTEMCTL = 'systemctl'
    JOURNALCTL = 'journalctl'


class UnitKind(StrEnum):
    """Unit types the plugins manage, valued by their file suffix.
    """

    SERVICE = 'service'
    TIMER = 'timer'

    @property
    def suffix(self) -> str:
        return f'.{self.value}'


class UnitOperation(StrEnum):
    """Control verbs issued through systemctl.
    """

    START = 'start'
    STOP = 'stop'
    RESTART = 'restart'
    ENABLE = 'enable'
    DISABLE = 'disable'
    RUN = 'run'
    TEST = 'test'


class ServiceState(StrEnum):
    """Coarse state shown for a watched unit.
    """

    RUNNING = 'running'
    STOPPED = 'stopped'
    FAILED = 'failed'
    UNKNOWN = 'unknown'


class UnitActiveState(StrEnum):
    """Systemd unit active states.
    """

    ACTIVE = 'active'
    RELOADING = 'reloading'
    INACTIVE = 'inactive'
    FAILED = 'failed'
    ACTIVATING = 'activating'
    DEACTIVATING = 'deactivating'
    MAINTENANCE = 'maintenance'


class UnitFileState(StrEnum):
    """Systemd unit file states.
    """

    ENABLED = 'enabled'
    ENABLED_RUNTIME = 'enabled-runtime'
    LINKED = 'linked'
    LINKED_RUNTIME = 'linked-runtime'
    ALIAS = 'alias'
    MASKED = 'masked'
    MASKED_RUNTIME = 'masked-runtime'
    STATIC = 'static'
    DISABLED = 'disabled'
    INDIRECT = 'indirect'
    GENERATED = 'generated'
    TRANSIENT = 'transient'
    BAD = 'bad'
    INVALID = 'invalid'


class UnitLoadState(StrEnum):
    """Systemd unit load states.
    """

    LOADED = 'loaded'
    STUB = 'stub'
    ERROR = 'error'
    NOT_FOUND = 'not-found'
    BAD_SETTING = 'bad-setting'
    MERGED = 'merged'
    MASKED = 'masked'


class ServiceProperties(StrEnum):
    """Properties queried for a service status.
    """

    LOAD_STATE = 'LoadState'
    ACTIVE_STATE = 'ActiveState'
    SUB_STATE = 'SubState'
    MAIN_PID = 'MainPID'
    ACTIVE_ENTER_TIMESTAMP = 'ActiveEnterTimestamp'


class TimerProperties(StrEnum):
    """Properties queried for a timer.
    """

    ID = 'Id'
    LOAD_STATE = 'LoadState'
    UNIT_FILE_STATE = 'UnitFileState'
    ACTIVE_STATE = 'ActiveState'
    UNIT = 'Unit'
    NEXT_ELAPSE_REALTIME = 'NextElapseUSecRealtime'
    LAST_TRIGGER = 'LastTriggerUSec'
    TIMERS_CALENDAR = 'TimersCalendar'
    TIMERS_MONOTONIC = 'TimersMonotonic'


BOOT_ENABLED_STATES: Final[frozenset[str]] = frozenset({
    UnitFileState.ENABLED,
    UnitFileState.ENABLED_RUNTIME,
})

KNOWN_UNIT_SUFFIXES: Final[tuple[str, ...]] = (
    '.service',
    '.timer',
    '.socket',
    '.target',
    '.path',
    '.mount',
    '.automount',
    '.swap',
    '.slice',
    '.scope',
    '.device',
)
