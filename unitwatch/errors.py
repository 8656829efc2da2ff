class UnitwatchError(Exception):
    """Base class for all errors raised by unitwatch.

    Every subclass carries the HTTP status code the plugin routers answer
    with when the error escapes a request handler.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidUnitNameError(UnitwatchError):
    """A unit name failed validation and was rejected before any command ran.
    """

    status_code = 400

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f'Invalid unit name {name!r}: {reason}')
        self.name = name
        self.reason = reason


class UnitNotFoundError(UnitwatchError):
    """systemd reported that the unit does not exist.
    """

    status_code = 404

    def __init__(self, name: str, detail: str = '') -> None:
        message = f'Unit not found: {name}'
        if detail:
            message = f'{message} ({detail})'
        super().__init__(message)
        self.name = name


class PermissionDeniedError(UnitwatchError):
    """systemd refused the operation for lack of privilege.
    """

    status_code = 403


class CommandTimeoutError(UnitwatchError):
    """An external command exceeded its wall-clock bound and was killed.
    """

    status_code = 504

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f'Command {command!r} timed out after {timeout:g}s')
        self.command = command
        self.timeout = timeout


class SpawnError(UnitwatchError):
    """An external command could not be started at all.
    """

    status_code = 502


class ParseError(UnitwatchError):
    """External output did not match any recognized shape.

    Args:
        message: What was expected
        raw: The offending text, kept for diagnosis
    """

    status_code = 400

    def __init__(self, message: str, raw: str = '') -> None:
        super().__init__(message)
        self.raw = raw

    def __str__(self) -> str:
        if not self.raw:
            return self.message
        return f'{self.message}: {self.raw.strip()[:500]}'


class ExecutionNotFoundError(UnitwatchError):
    """A history lookup for a specific invocation found nothing.
    """

    status_code = 404

    def __init__(self, unit: str, execution_id: str) -> None:
        super().__init__(f'Execution {execution_id!r} not found for {unit}')
        self.unit = unit
        self.execution_id = execution_id


__all__ = [
    'CommandTimeoutError',
    'ExecutionNotFoundError',
    'InvalidUnitNameError',
    'ParseError',
    'PermissionDeniedError',
    'SpawnError',
    'UnitNotFoundError',
    'UnitwatchError',
]
