from collections.abc import Sequence
from typing import Self

from unitwatch.command.executor import CommandExecutor, format_command
from unitwatch.command.models import CommandOutcome
from unitwatch.errors import CommandTimeoutError, SpawnError


CommandKey = tuple[str, tuple[str, ...]]


class RecordingCommandExecutor(CommandExecutor):
    """Deterministic executor returning pre-programmed outcomes.

    Outcomes are keyed by the exact (program, args) pair. Every call is
    recorded, including calls that have no programmed response; those fail
    with SpawnError as if the program did not exist.
    """

    def __init__(self) -> None:
        self._responses: dict[CommandKey, CommandOutcome | Exception] = {}
        self.calls: list[CommandKey] = []

    def expect(
        self,
        program: str,
        args: Sequence[str],
        outcome: CommandOutcome | Exception,
    ) -> Self:
        """Program the response for one command.
        """
        self._responses[(program, tuple(args))] = outcome
        return self

    def expect_stdout(
        self,
        program: str,
        args: Sequence[str],
        stdout: str,
    ) -> Self:
        return self.expect(program, args, CommandOutcome(exit_code=0, stdout=stdout))

    def expect_error(
        self,
        program: str,
        args: Sequence[str],
        exit_code: int,
        stderr: str,
    ) -> Self:
        return self.expect(
            program,
            args,
            CommandOutcome(exit_code=exit_code, stderr=stderr),
        )

    def expect_timeout(
        self,
        program: str,
        args: Sequence[str],
        timeout: float = 10.0,
    ) -> Self:
        return self.expect(
            program,
            args,
            CommandTimeoutError(format_command(program, args), timeout),
        )

    def calls_for(self, program: str) -> list[tuple[str, ...]]:
        """Argument vectors recorded for one program, in call order.
        """
        return [args for called, args in self.calls if called == program]

    async def execute(
        self,
        program: str,
        args: Sequence[str],
        timeout: float | None = None,
    ) -> CommandOutcome:
        key = (program, tuple(args))
        self.calls.append(key)

        response = self._responses.get(key)
        if response is None:
            raise SpawnError(
                f'No programmed response for {format_command(program, args)!r}'
            )
        if isinstance(response, Exception):
            raise response
        return response
