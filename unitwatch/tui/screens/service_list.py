from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header

from unitwatch.errors import UnitwatchError
from unitwatch.services.service_monitor import ServiceMonitor
from unitwatch.time import humanize_duration


class ServiceListScreen(Screen):
    """A screen to display the watched systemd services.
    """

    BINDINGS = [
        Binding('r', 'refresh', 'Refresh'),
    ]

    def __init__(self, service_monitor: ServiceMonitor) -> None:
        super().__init__()
        self._service_monitor = service_monitor
        self._services_table = DataTable()

    def compose(self) -> ComposeResult:
        yield Header()
        yield self._services_table
        yield Footer()

    async def on_mount(self) -> None:
        self.title = 'Systemd Services'
        self._services_table.add_column('Name')
        self._services_table.add_column('Status')
        self._services_table.add_column('State')
        self._services_table.add_column('PID')
        self._services_table.add_column('Uptime')
        await self.action_refresh()

    async def action_refresh(self) -> None:
        self._services_table.clear()
        try:
            overview = await self._service_monitor.get_watched_services()
        except UnitwatchError as e:
            self.notify(str(e), severity='error')
            return

        if overview.warning:
            self.notify(overview.warning, severity='warning')

        for service in overview.services:
            uptime = '-'
            if service.uptime_seconds is not None:
                uptime = humanize_duration(service.uptime_seconds)
            state = service.error or f'{service.active_state}/{service.sub_state}'
            self._services_table.add_row(
                service.name,
                service.status.value,
                state,
                str(service.main_pid) if service.main_pid else '-',
                uptime,
            )
