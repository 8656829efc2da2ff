from pydantic import Field

from unitwatch.utils import BaseModel


class CommandOutcome(BaseModel):
    """Result of one external program invocation.

    Args:
        exit_code: Process exit status, negative when killed by a signal
        stdout: Captured standard output
        stderr: Captured standard error
        duration: Wall-clock seconds the process ran
    """
    model_config = {'frozen': True}

    exit_code: int = Field(...)
    stdout: str = Field('')
    stderr: str = Field('')
    duration: float = Field(0.0, ge=0)

    @property
    def success(self) -> bool:
        return self.exit_code == 0
