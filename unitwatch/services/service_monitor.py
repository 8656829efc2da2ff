import logging
from collections.abc import Iterable
from typing import Self

from unitwatch.command.executor import CommandExecutor, SystemCommandExecutor
from unitwatch.config import SERVICES_PLUGIN_ID, AppSettings, Defaults
from unitwatch.services.models import ServiceOverview
from unitwatch.settings import (
    FileKeyValueStore,
    KeyValueStore,
    WatchedList,
    WatchedUnits,
)
from unitwatch.systemd.inspector import UnitInspector
from unitwatch.systemd.models import LogEntry, UnitOperationResult, UnitSummary
from unitwatch.systemd.types import UnitKind, UnitOperation


SERVICE_OPERATIONS: tuple[UnitOperation, ...] = (
    UnitOperation.START,
    UnitOperation.STOP,
    UnitOperation.RESTART,
)


class ServiceMonitor:
    """Monitors and controls the services a user chose to watch.
    """

    def __init__(
        self,
        inspector: UnitInspector,
        watched: WatchedUnits,
        log_lines: int = Defaults.LOG_LINES,
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._inspector = inspector
        self._watched = watched
        self._log_lines = log_lines

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        executor: CommandExecutor | None = None,
        store: KeyValueStore | None = None,
    ) -> Self:
        """Wire a monitor from runtime settings.

        Args:
            settings: Runtime settings
            executor: Process host, a real one when None
            store: Watch list storage, the plugin's JSON file when None
        """
        if executor is None:
            executor = SystemCommandExecutor(settings.command_timeout)
        if store is None:
            store = FileKeyValueStore(
                settings.data_dir / f'{SERVICES_PLUGIN_ID}.json',
            )
        inspector = UnitInspector(executor, timeout=settings.command_timeout)
        return cls(inspector, WatchedUnits.services(store), settings.log_lines)

    async def get_watched_services(self) -> ServiceOverview:
        """Resolve every watched service; one bad unit never fails the rest.
        """
        watched = await self._watched.load()
        statuses = await self._inspector.get_statuses(
            watched.units,
            UnitKind.SERVICE,
        )
        return ServiceOverview(services=statuses, warning=watched.warning)

    async def get_available_services(self) -> list[UnitSummary]:
        return await self._inspector.list_units(UnitKind.SERVICE)

    async def control(
        self,
        name: str,
        operation: UnitOperation | str,
    ) -> UnitOperationResult:
        """Start, stop or restart a service.

        Raises:
            ValueError: If the operation is not a service operation
        """
        try:
            operation = UnitOperation(operation)
        except ValueError:
            raise ValueError(f'Unknown service action: {operation}') from None
        if operation not in SERVICE_OPERATIONS:
            raise ValueError(f'Unknown service action: {operation}')

        if operation == UnitOperation.START:
            return await self._inspector.start(name, UnitKind.SERVICE)
        if operation == UnitOperation.STOP:
            return await self._inspector.stop(name, UnitKind.SERVICE)
        return await self._inspector.restart(name, UnitKind.SERVICE)

    async def get_logs(self, name: str, lines: int | None = None) -> list[LogEntry]:
        return await self._inspector.get_logs(
            name,
            self._log_lines if lines is None else lines,
            UnitKind.SERVICE,
        )

    async def get_settings(self) -> WatchedList:
        return await self._watched.load()

    async def save_settings(self, names: Iterable[str]) -> list[str]:
        return await self._watched.save(names)
