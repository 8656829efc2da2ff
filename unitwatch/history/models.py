from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import Field, model_validator

from unitwatch.utils import BaseModel


class ExecutionStatus(StrEnum):
    """Outcome of one execution.
    """

    SUCCESS = 'success'
    FAILED = 'failed'
    RUNNING = 'running'


class TriggerType(StrEnum):
    """What started an execution.
    """

    SCHEDULED = 'scheduled'
    MANUAL = 'manual'


class ExecutionRecord(BaseModel):
    """One execution of a unit, reconstructed from its logs.

    Args:
        invocation_id: Journal invocation id or log file timestamp token
        start_time: When the execution started
        end_time: When it finished, None while running
        duration_secs: Whole seconds it ran, None while running
        status: success, failed or running
        exit_code: Exit status, None while running
        trigger: Whether the timer or a person started it
        elapsed_secs: Seconds since start for a running execution
    """
    model_config = {'frozen': True}

    invocation_id: str = Field(..., min_length=1)
    start_time: datetime = Field(...)
    end_time: datetime | None = Field(None)
    duration_secs: int | None = Field(None, ge=0)
    status: ExecutionStatus = Field(...)
    exit_code: int | None = Field(None)
    trigger: TriggerType = Field(TriggerType.SCHEDULED)
    elapsed_secs: int | None = Field(None, ge=0)

    @model_validator(mode='after')
    def validate_completion_fields(self) -> Self:
        finished = (
            self.end_time is not None,
            self.duration_secs is not None,
            self.exit_code is not None,
        )
        if self.status == ExecutionStatus.RUNNING:
            if any(finished):
                raise ValueError(
                    'A running execution has no end time, duration or exit code'
                )
            return self

        if not all(finished):
            raise ValueError(
                'A finished execution needs end time, duration and exit code'
            )
        expected = (
            ExecutionStatus.SUCCESS if self.exit_code == 0
            else ExecutionStatus.FAILED
        )
        if self.status != expected:
            raise ValueError(
                f'Status {self.status} contradicts exit code {self.exit_code}'
            )
        if self.elapsed_secs is not None:
            raise ValueError('Only running executions report elapsed time')
        return self

    @classmethod
    def finished(
        cls,
        invocation_id: str,
        start_time: datetime,
        end_time: datetime,
        exit_code: int,
        trigger: TriggerType = TriggerType.SCHEDULED,
        duration_secs: int | None = None,
    ) -> Self:
        """Build a completed record; duration defaults to end minus start.
        """
        if duration_secs is None:
            duration_secs = max(0, int((end_time - start_time).total_seconds()))
        return cls(
            invocation_id=invocation_id,
            start_time=start_time,
            end_time=end_time,
            duration_secs=duration_secs,
            status=(
                ExecutionStatus.SUCCESS if exit_code == 0
                else ExecutionStatus.FAILED
            ),
            exit_code=exit_code,
            trigger=trigger,
        )

    @classmethod
    def running(
        cls,
        invocation_id: str,
        start_time: datetime,
        trigger: TriggerType = TriggerType.SCHEDULED,
        now: datetime | None = None,
    ) -> Self:
        elapsed = None
        if now is not None:
            elapsed = max(0, int((now - start_time).total_seconds()))
        return cls(
            invocation_id=invocation_id,
            start_time=start_time,
            status=ExecutionStatus.RUNNING,
            trigger=trigger,
            elapsed_secs=elapsed,
        )


class ExecutionDetails(ExecutionRecord):
    """An execution together with the output it produced.

    Args:
        output: Captured output lines, oldest first
        truncated: Whether older output was dropped to respect the size cap
    """

    output: list[str] = Field(default_factory=list)
    truncated: bool = Field(False)

    @classmethod
    def from_record(
        cls,
        record: ExecutionRecord,
        output: list[str],
        truncated: bool = False,
    ) -> Self:
        return cls(
            **record.model_dump(),
            output=output,
            truncated=truncated,
        )
