import logging
from collections.abc import Iterable
from typing import Self

from unitwatch.command.executor import CommandExecutor, SystemCommandExecutor
from unitwatch.config import TIMERS_PLUGIN_ID, AppSettings
from unitwatch.history import (
    ExecutionDetails,
    ExecutionRecord,
    HistoryReader,
    create_history_reader,
)
from unitwatch.services.models import TimerOverview
from unitwatch.settings import (
    FileKeyValueStore,
    KeyValueStore,
    WatchedList,
    WatchedUnits,
)
from unitwatch.systemd.inspector import UnitInspector
from unitwatch.systemd.models import TimerInfo, UnitOperationResult, UnitSummary
from unitwatch.systemd.types import UnitKind
from unitwatch.systemd.validation import validate_unit_name


class TimerService:
    """A service for watching and controlling systemd timers.
    """

    def __init__(
        self,
        inspector: UnitInspector,
        history: HistoryReader,
        watched: WatchedUnits,
    ) -> None:
        """Initialise the service.

        Args:
            inspector: Queries and controls timers; should share `history`
            history: Execution history of the activated services
            watched: The persisted watch list
        """
        self._logger = logging.getLogger(__name__)
        self._inspector = inspector
        self._history = history
        self._watched = watched

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        executor: CommandExecutor | None = None,
        store: KeyValueStore | None = None,
    ) -> Self:
        """Wire a timer service from runtime settings.

        Args:
            settings: Runtime settings, selecting the history backend
            executor: Process host, a real one when None
            store: Watch list storage, the plugin's JSON file when None
        """
        if executor is None:
            executor = SystemCommandExecutor(settings.command_timeout)
        if store is None:
            store = FileKeyValueStore(
                settings.data_dir / f'{TIMERS_PLUGIN_ID}.json',
            )
        history = create_history_reader(settings, executor)
        inspector = UnitInspector(
            executor,
            history=history,
            timeout=settings.command_timeout,
        )
        return cls(inspector, history, WatchedUnits.timers(store))

    async def get_watched_timers(self) -> TimerOverview:
        """Resolve every watched timer; one bad unit never fails the rest.
        """
        watched = await self._watched.load()
        timers = await self._inspector.get_timer_infos(watched.units)
        return TimerOverview(timers=timers, warning=watched.warning)

    async def get_timer(self, name: str) -> TimerInfo:
        return await self._inspector.get_timer_info(name)

    async def get_available_timers(self) -> list[UnitSummary]:
        return await self._inspector.list_units(UnitKind.TIMER)

    async def run(self, name: str, test_mode: bool = False) -> UnitOperationResult:
        """Trigger the timer's service now.
        """
        return await self._inspector.run_timer(name, test_mode=test_mode)

    async def enable(self, name: str) -> UnitOperationResult:
        return await self._inspector.enable(name, UnitKind.TIMER)

    async def disable(self, name: str) -> UnitOperationResult:
        return await self._inspector.disable(name, UnitKind.TIMER)

    async def get_history(
        self,
        name: str,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        """List executions of the service a timer activates, newest first.
        """
        timer = validate_unit_name(name, UnitKind.TIMER)
        service = await self._inspector.associated_service(timer)
        return await self._history.list_executions(service, limit)

    async def get_execution(
        self,
        name: str,
        execution_id: str,
    ) -> ExecutionDetails:
        """Get one execution of a timer's service with its output.
        """
        timer = validate_unit_name(name, UnitKind.TIMER)
        service = await self._inspector.associated_service(timer)
        return await self._history.get_details(service, execution_id)

    async def get_settings(self) -> WatchedList:
        return await self._watched.load()

    async def save_settings(self, names: Iterable[str]) -> list[str]:
        return await self._watched.save(names)
