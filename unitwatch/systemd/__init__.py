from unitwatch.systemd.models import (
    LogEntry,
    ServiceStatus,
    TimerInfo,
    UnitOperationResult,
    UnitSummary,
)
from unitwatch.systemd.types import (
    Program,
    ServiceState,
    UnitKind,
    UnitOperation,
)
from unitwatch.systemd.validation import UnitName, validate_unit_name

__all__ = [
    'LogEntry',
    'Program',
    'ServiceState',
    'ServiceStatus',
    'TimerInfo',
    'UnitKind',
    'UnitName',
    'UnitOperation',
    'UnitOperationResult',
    'UnitSummary',
    'validate_unit_name',
]
