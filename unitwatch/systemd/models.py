from datetime import datetime

from pydantic import Field, field_validator

from unitwatch.systemd.types import ServiceState, UnitKind, UnitOperation
from unitwatch.utils import BaseModel


class UnitSummary(BaseModel):
    """One row of a unit listing.

    Args:
        name: Full unit name including suffix
        description: Unit description, may be empty
        load_state: LOAD column
        active_state: ACTIVE column
        sub_state: SUB column
    """
    model_config = {'frozen': True}

    name: str = Field(..., min_length=1)
    description: str = Field('')
    load_state: str = Field('')
    active_state: str = Field('')
    sub_state: str = Field('')

    @property
    def kind(self) -> UnitKind | None:
        for kind in UnitKind:
            if self.name.endswith(kind.suffix):
                return kind
        return None


class ServiceStatus(BaseModel):
    """Status of one watched unit.

    Args:
        name: Unit name
        status: Coarse state derived from ActiveState and SubState
        active_state: Raw ActiveState, None when the query failed
        sub_state: Raw SubState, None when the query failed
        main_pid: Main process id, None when there is none
        uptime_seconds: Seconds since the unit became active
        error: Why the status could not be resolved
    """
    model_config = {'frozen': True}

    name: str = Field(..., min_length=1)
    status: ServiceState = Field(...)
    active_state: str | None = Field(None)
    sub_state: str | None = Field(None)
    main_pid: int | None = Field(None)
    uptime_seconds: int | None = Field(None, ge=0)
    error: str | None = Field(None)

    @field_validator('main_pid')
    @classmethod
    def validate_main_pid(cls, v: int | None) -> int | None:
        # systemd reports 0 when no main process exists
        if v is not None and v <= 0:
            return None
        return v

    @classmethod
    def unknown(cls, name: str, error: str) -> 'ServiceStatus':
        return cls(name=name, status=ServiceState.UNKNOWN, error=error)


class TimerInfo(BaseModel):
    """Information about a watched timer.

    Args:
        name: Timer unit name
        service: Service unit the timer activates
        enabled: Whether the timer starts at boot
        active_state: Raw ActiveState of the timer
        schedule: Raw schedule clauses in systemd order
        schedule_human: Humanized schedule
        next_run: Next trigger time, None when disabled or never again
        last_run: Start time of the most recent execution
        last_result: Outcome of the most recent execution, None if never run
        error: Why the timer could not be resolved
    """
    model_config = {'frozen': True}

    name: str = Field(..., min_length=1)
    service: str | None = Field(None)
    enabled: bool = Field(False)
    active_state: str | None = Field(None)
    schedule: list[str] = Field(default_factory=list)
    schedule_human: str = Field('')
    next_run: datetime | None = Field(None)
    last_run: datetime | None = Field(None)
    last_result: str | None = Field(None)
    error: str | None = Field(None)

    @classmethod
    def unknown(cls, name: str, error: str) -> 'TimerInfo':
        return cls(name=name, error=error)


class LogEntry(BaseModel):
    """One journal line of a unit.

    Args:
        timestamp: When the entry was written
        message: Message text, control characters stripped
        priority: Syslog priority 0-7 when present
    """
    model_config = {'frozen': True}

    timestamp: datetime | None = Field(None)
    message: str = Field('')
    priority: int | None = Field(None, ge=0, le=7)


class UnitOperationResult(BaseModel):
    """Result of a control operation.

    Args:
        success: Whether every systemctl step succeeded
        unit: Unit the operation targeted
        operation: Operation performed
        message: Human-readable outcome
        commands: systemctl argument vectors issued, in order
    """
    model_config = {'frozen': True}

    success: bool = Field(...)
    unit: str = Field(..., min_length=1)
    operation: UnitOperation = Field(...)
    message: str = Field('', max_length=1000)
    commands: list[list[str]] = Field(default_factory=list)
