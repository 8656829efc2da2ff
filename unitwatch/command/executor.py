import asyncio
import logging
import shlex
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Final

from unitwatch.command.models import CommandOutcome
from unitwatch.errors import CommandTimeoutError, SpawnError
from unitwatch.systemd.types import Program


DEFAULT_TIMEOUT: Final[float] = 10.0
ALLOWED_PROGRAMS: Final[frozenset[str]] = frozenset(p.value for p in Program)


def format_command(program: str, args: Sequence[str]) -> str:
    """Render a command for logs and error messages only.
    """
    return shlex.join([program, *args])


class CommandExecutor(ABC):
    """Runs an external program with an argument vector and a timeout.
    """

    @abstractmethod
    async def execute(
        self,
        program: str,
        args: Sequence[str],
        timeout: float | None = None,
    ) -> CommandOutcome:
        """Run `program` with `args` and capture its output.

        Args:
            program: Executable name, restricted to an allow-list
            args: Argument vector, passed without shell interpretation
            timeout: Seconds before the process is killed

        Returns:
            CommandOutcome with exit code and captured output

        Raises:
            CommandTimeoutError: If the process outlived the timeout
            SpawnError: If the process could not be started
        """


class SystemCommandExecutor(CommandExecutor):
    """Spawns real processes through asyncio, never through a shell.
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        allowed_programs: Iterable[str] = ALLOWED_PROGRAMS,
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._default_timeout = default_timeout
        self._allowed_programs = frozenset(allowed_programs)

    async def execute(
        self,
        program: str,
        args: Sequence[str],
        timeout: float | None = None,
    ) -> CommandOutcome:
        if program not in self._allowed_programs:
            raise ValueError(f'Program not allowed: {program!r}')

        timeout = self._default_timeout if timeout is None else timeout
        command = format_command(program, args)
        self._logger.debug('Executing %s (timeout %ss)', command, timeout)

        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnError(f'Failed to spawn {command!r}: {e}') from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout,
            )
        except TimeoutError:
            await self._terminate(process)
            self._logger.warning('Command %s timed out after %ss', command, timeout)
            raise CommandTimeoutError(command, timeout) from None

        outcome = CommandOutcome(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode('utf-8', errors='replace'),
            stderr=stderr.decode('utf-8', errors='replace'),
            duration=time.monotonic() - started,
        )
        self._logger.debug(
            'Command %s exited with %d in %.3fs',
            command,
            outcome.exit_code,
            outcome.duration,
        )
        return outcome

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill a process that overran its timeout and reap it.
        """
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
