import asyncio
import logging
import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Final

from unitwatch.command.executor import CommandExecutor
from unitwatch.command.models import CommandOutcome
from unitwatch.config import Defaults
from unitwatch.errors import (
    ParseError,
    PermissionDeniedError,
    UnitNotFoundError,
    UnitwatchError,
)
from unitwatch.history.base import HistoryReader
from unitwatch.schedule import ScheduleSpec
from unitwatch.systemd.models import (
    LogEntry,
    ServiceStatus,
    TimerInfo,
    UnitOperationResult,
    UnitSummary,
)
from unitwatch.systemd.parser import (
    parse_log_entries,
    parse_pid,
    parse_show_output,
    parse_timer_clauses,
    parse_unit_list,
    require_property,
)
from unitwatch.systemd.types import (
    BOOT_ENABLED_STATES,
    Program,
    ServiceProperties,
    ServiceState,
    TimerProperties,
    UnitActiveState,
    UnitKind,
    UnitLoadState,
    UnitOperation,
)
from unitwatch.systemd.validation import UnitName, validate_unit_name
from unitwatch.time import SystemdTimeConverter, utc_now


_NOT_FOUND_PATTERN: Final[re.Pattern[str]] = re.compile(
    r'not[ -]found|could not be found|no such (?:unit|file)|does not exist'
    r'|not loaded',
    re.IGNORECASE,
)
_PERMISSION_PATTERN: Final[re.Pattern[str]] = re.compile(
    r'permission denied|access denied|interactive authentication required'
    r'|not authorized|authentication is required',
    re.IGNORECASE,
)
_ALREADY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r'already (?:enabled|disabled)',
    re.IGNORECASE,
)
_NO_JOURNAL_MARKERS: Final[tuple[str, ...]] = (
    'No journal files were found',
    'No entries',
)

# LSB exit codes systemctl uses for control verbs
_EXIT_INSUFFICIENT_PRIVILEGE: Final[int] = 4
_EXIT_NOT_INSTALLED: Final[int] = 5

_PAST_TENSE: Final[dict[UnitOperation, str]] = {
    UnitOperation.START: 'started',
    UnitOperation.STOP: 'stopped',
    UnitOperation.RESTART: 'restarted',
    UnitOperation.ENABLE: 'enabled and started',
    UnitOperation.DISABLE: 'stopped and disabled',
}


class UnitInspector:
    """Lists, inspects and controls systemd units through systemctl.

    Every name is validated before it reaches the executor. Nothing is
    cached; each call re-reads the state from systemd.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        history: HistoryReader | None = None,
        timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the inspector.

        Args:
            executor: Runs systemctl and journalctl
            history: Source of last-run information for timers
            timeout: Per-command timeout, executor default when None
            clock: Current time source, used for uptime
        """
        self._logger = logging.getLogger(__name__)
        self._executor = executor
        self._history = history
        self._timeout = timeout
        self._clock = clock
        self._time_converter = SystemdTimeConverter()

    async def list_units(self, kind: UnitKind) -> list[UnitSummary]:
        """List all loaded and inactive units of one kind.
        """
        args = [
            'list-units',
            f'--type={kind.value}',
            '--all',
            '--no-pager',
            '--plain',
            '--no-legend',
        ]
        outcome = await self._systemctl(args)
        if not outcome.success:
            raise self._map_failure(outcome, kind.value, args)
        return [
            unit for unit in parse_unit_list(outcome.stdout)
            if unit.kind == kind
        ]

    async def get_status(
        self,
        name: str,
        kind: UnitKind = UnitKind.SERVICE,
    ) -> ServiceStatus:
        """Query a unit and map its state onto a coarse status.

        Args:
            name: Unit name, the suffix of `kind` is appended if missing
            kind: Unit type implied by the caller

        Returns:
            ServiceStatus with uptime when the unit is active

        Raises:
            InvalidUnitNameError: If the name fails validation
            UnitNotFoundError: If systemd does not know the unit
        """
        unit = validate_unit_name(name, kind)
        properties = ','.join(p.value for p in ServiceProperties)
        args = ['show', unit, f'--property={properties}']
        outcome = await self._systemctl(args)
        if not outcome.success:
            raise self._map_failure(outcome, unit, args)

        values = parse_show_output(outcome.stdout)
        if values.get(ServiceProperties.LOAD_STATE) == UnitLoadState.NOT_FOUND:
            raise UnitNotFoundError(unit)

        active_state = require_property(
            values,
            ServiceProperties.ACTIVE_STATE,
            outcome.stdout,
        )
        sub_state = require_property(
            values,
            ServiceProperties.SUB_STATE,
            outcome.stdout,
        )

        uptime = None
        if active_state == UnitActiveState.ACTIVE:
            entered = self._time_converter.parse(
                values.get(ServiceProperties.ACTIVE_ENTER_TIMESTAMP),
            )
            if entered is not None:
                uptime = max(0, int((self._clock() - entered).total_seconds()))

        return ServiceStatus(
            name=unit,
            status=self.coarse_state(active_state, sub_state),
            active_state=active_state,
            sub_state=sub_state,
            main_pid=parse_pid(values.get(ServiceProperties.MAIN_PID)),
            uptime_seconds=uptime,
        )

    async def get_statuses(
        self,
        names: Sequence[str],
        kind: UnitKind = UnitKind.SERVICE,
    ) -> list[ServiceStatus]:
        """Resolve several units independently, in the order given.

        A unit that cannot be resolved becomes an `unknown` entry carrying
        the error instead of failing the whole batch.
        """
        async def resolve(name: str) -> ServiceStatus:
            try:
                return await self.get_status(name, kind)
            except UnitwatchError as e:
                self._logger.warning('Failed to get status for %s: %s', name, e)
                return ServiceStatus.unknown(name, str(e))

        return list(await asyncio.gather(*(resolve(name) for name in names)))

    async def get_timer_info(self, name: str) -> TimerInfo:
        """Query a timer, humanize its schedule and look up its last run.

        Raises:
            InvalidUnitNameError: If the name fails validation
            UnitNotFoundError: If systemd does not know the timer
        """
        timer = validate_unit_name(name, UnitKind.TIMER)
        properties = ','.join(p.value for p in TimerProperties)
        args = ['show', timer, f'--property={properties}']
        outcome = await self._systemctl(args)
        if not outcome.success:
            raise self._map_failure(outcome, timer, args)

        values = parse_show_output(outcome.stdout)
        if values.get(TimerProperties.LOAD_STATE) == UnitLoadState.NOT_FOUND:
            raise UnitNotFoundError(timer)

        service = self._activated_service(timer, values.get(TimerProperties.UNIT))
        schedule = ScheduleSpec.from_clauses(parse_timer_clauses(outcome.stdout))

        last_run = self._time_converter.parse(
            values.get(TimerProperties.LAST_TRIGGER),
        )
        last_result = None
        if self._history is not None:
            try:
                latest = await self._history.latest(service)
            except UnitwatchError as e:
                self._logger.warning('Failed to read history of %s: %s', service, e)
                latest = None
            if latest is not None:
                last_run = latest.start_time
                last_result = latest.status.value

        return TimerInfo(
            name=values.get(TimerProperties.ID) or timer,
            service=service,
            enabled=values.get(TimerProperties.UNIT_FILE_STATE) in BOOT_ENABLED_STATES,
            active_state=values.get(TimerProperties.ACTIVE_STATE),
            schedule=list(schedule.clauses),
            schedule_human=schedule.humanize(),
            next_run=self._time_converter.parse(
                values.get(TimerProperties.NEXT_ELAPSE_REALTIME),
            ),
            last_run=last_run,
            last_result=last_result,
        )

    async def get_timer_infos(self, names: Sequence[str]) -> list[TimerInfo]:
        """Resolve several timers independently, in the order given.
        """
        async def resolve(name: str) -> TimerInfo:
            try:
                return await self.get_timer_info(name)
            except UnitwatchError as e:
                self._logger.warning('Failed to get timer %s: %s', name, e)
                return TimerInfo.unknown(name, str(e))

        return list(await asyncio.gather(*(resolve(name) for name in names)))

    async def get_logs(
        self,
        name: str,
        lines: int = Defaults.LOG_LINES,
        kind: UnitKind = UnitKind.SERVICE,
    ) -> list[LogEntry]:
        """Tail the journal of a unit.

        Args:
            name: Unit name
            lines: Number of most recent entries, clamped to 1..10000
            kind: Unit type implied by the caller

        Returns:
            Log entries, oldest first; empty when the journal has none
        """
        unit = validate_unit_name(name, kind)
        lines = max(1, min(lines, Defaults.MAX_LOG_LINES))
        args = ['-u', unit, '-n', str(lines), '--no-pager', '--output=json']
        outcome = await self._executor.execute(
            Program.JOURNALCTL,
            args,
            timeout=self._timeout,
        )
        if not outcome.success:
            if any(marker in outcome.stderr for marker in _NO_JOURNAL_MARKERS):
                return []
            raise self._map_failure(outcome, unit, args)
        return parse_log_entries(outcome.stdout)

    async def start(
        self,
        name: str,
        kind: UnitKind = UnitKind.SERVICE,
    ) -> UnitOperationResult:
        return await self._control(name, kind, UnitOperation.START, [['start']])

    async def stop(
        self,
        name: str,
        kind: UnitKind = UnitKind.SERVICE,
    ) -> UnitOperationResult:
        return await self._control(name, kind, UnitOperation.STOP, [['stop']])

    async def restart(
        self,
        name: str,
        kind: UnitKind = UnitKind.SERVICE,
    ) -> UnitOperationResult:
        return await self._control(name, kind, UnitOperation.RESTART, [['restart']])

    async def enable(
        self,
        name: str,
        kind: UnitKind = UnitKind.TIMER,
    ) -> UnitOperationResult:
        """Enable for boot, then start now.
        """
        return await self._control(
            name,
            kind,
            UnitOperation.ENABLE,
            [['enable'], ['start']],
        )

    async def disable(
        self,
        name: str,
        kind: UnitKind = UnitKind.TIMER,
    ) -> UnitOperationResult:
        """Stop now, then disable for boot.
        """
        return await self._control(
            name,
            kind,
            UnitOperation.DISABLE,
            [['stop'], ['disable']],
        )

    async def run_timer(
        self,
        name: str,
        test_mode: bool = False,
    ) -> UnitOperationResult:
        """Start the service a timer activates without waiting for it.

        Test mode issues the same command; the environment a test run uses
        is the business of the service itself.
        """
        timer = validate_unit_name(name, UnitKind.TIMER)
        service = await self.associated_service(timer)
        args = ['start', '--no-block', service]
        outcome = await self._systemctl(args)
        if not outcome.success:
            raise self._map_failure(outcome, service, args)

        operation = UnitOperation.TEST if test_mode else UnitOperation.RUN
        mode = 'test mode' if test_mode else 'production mode'
        self._logger.info('Triggered %s for %s (%s)', service, timer, mode)
        return UnitOperationResult(
            success=True,
            unit=timer,
            operation=operation,
            message=f'Timer {timer} triggered in {mode}',
            commands=[args],
        )

    async def associated_service(self, timer: UnitName) -> UnitName:
        """The service a timer activates, from its Unit= property.
        """
        args = [
            'show',
            timer,
            f'--property={TimerProperties.LOAD_STATE},{TimerProperties.UNIT}',
        ]
        outcome = await self._systemctl(args)
        if not outcome.success:
            raise self._map_failure(outcome, timer, args)
        values = parse_show_output(outcome.stdout)
        if values.get(TimerProperties.LOAD_STATE) == UnitLoadState.NOT_FOUND:
            raise UnitNotFoundError(timer)
        return self._activated_service(timer, values.get(TimerProperties.UNIT))

    @staticmethod
    def coarse_state(active_state: str, sub_state: str) -> ServiceState:
        """Map ActiveState/SubState onto running, stopped or failed.
        """
        if active_state == UnitActiveState.FAILED:
            return ServiceState.FAILED
        if active_state == UnitActiveState.ACTIVE and sub_state == 'running':
            return ServiceState.RUNNING
        return ServiceState.STOPPED

    def _activated_service(self, timer: UnitName, unit: str | None) -> UnitName:
        if unit:
            try:
                return validate_unit_name(unit, UnitKind.SERVICE)
            except UnitwatchError as e:
                self._logger.warning(
                    'Ignoring Unit=%r of %s: %s',
                    unit,
                    timer,
                    e,
                )
        return timer.with_kind(UnitKind.SERVICE)

    async def _control(
        self,
        name: str,
        kind: UnitKind,
        operation: UnitOperation,
        steps: list[list[str]],
    ) -> UnitOperationResult:
        unit = validate_unit_name(name, kind)
        issued = []
        for step in steps:
            args = [*step, unit]
            issued.append(args)
            outcome = await self._systemctl(args)
            if outcome.success:
                continue
            idempotent = step[0] in ('enable', 'disable')
            if idempotent and _ALREADY_PATTERN.search(outcome.stderr):
                self._logger.debug('%s is already %sd', unit, step[0])
                continue
            raise self._map_failure(outcome, unit, args)

        self._logger.info('%s %s succeeded', operation.value.capitalize(), unit)
        return UnitOperationResult(
            success=True,
            unit=unit,
            operation=operation,
            message=f'{unit} {_PAST_TENSE[operation]}',
            commands=issued,
        )

    async def _systemctl(self, args: Sequence[str]) -> CommandOutcome:
        return await self._executor.execute(
            Program.SYSTEMCTL,
            args,
            timeout=self._timeout,
        )

    def _map_failure(
        self,
        outcome: CommandOutcome,
        unit: str,
        args: Sequence[str],
    ) -> UnitwatchError:
        stderr = outcome.stderr.strip()
        if _PERMISSION_PATTERN.search(stderr):
            return PermissionDeniedError(f'Permission denied for {unit}: {stderr}')
        if _NOT_FOUND_PATTERN.search(stderr):
            return UnitNotFoundError(unit, stderr)
        if outcome.exit_code == _EXIT_NOT_INSTALLED:
            return UnitNotFoundError(unit, stderr)
        if outcome.exit_code == _EXIT_INSUFFICIENT_PRIVILEGE:
            return PermissionDeniedError(f'Permission denied for {unit}: {stderr}')
        return ParseError(
            f'{" ".join(args[:1])} for {unit} failed with exit code '
            f'{outcome.exit_code}',
            outcome.stderr or outcome.stdout,
        )
