from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header

from unitwatch.errors import UnitwatchError
from unitwatch.services.timer_service import TimerService


class TimerListScreen(Screen):
    """A screen to display the watched systemd timers.
    """

    BINDINGS = [
        Binding('r', 'refresh', 'Refresh'),
    ]

    def __init__(self, timer_service: TimerService) -> None:
        """Initialise the screen.
        """
        super().__init__()
        self._timer_service = timer_service
        self._timers_table = DataTable()

    def compose(self) -> ComposeResult:
        """Compose the screen.
        """
        yield Header()
        yield self._timers_table
        yield Footer()

    async def on_mount(self) -> None:
        """Mount the screen.
        """
        self.title = 'Scheduled Tasks'
        self._timers_table.add_column('Name')
        self._timers_table.add_column('Schedule')
        self._timers_table.add_column('Next Run')
        self._timers_table.add_column('Last Run')
        self._timers_table.add_column('Result')
        await self.action_refresh()

    async def action_refresh(self) -> None:
        self._timers_table.clear()
        try:
            overview = await self._timer_service.get_watched_timers()
        except UnitwatchError as e:
            self.notify(str(e), severity='error')
            return

        if overview.warning:
            self.notify(overview.warning, severity='warning')

        for timer in overview.timers:
            # Format without microseconds: YYYY-MM-DD HH:MM:SS
            next_run = 'Not scheduled'
            if timer.next_run:
                next_run = timer.next_run.astimezone().strftime('%Y-%m-%d %H:%M:%S')
            last_run = 'Never'
            if timer.last_run:
                last_run = timer.last_run.astimezone().strftime('%Y-%m-%d %H:%M:%S')

            self._timers_table.add_row(
                timer.name,
                timer.error or timer.schedule_human,
                next_run,
                last_run,
                timer.last_result or '-',
            )
