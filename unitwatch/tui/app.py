from textual.app import App
from textual.binding import Binding

from unitwatch.services import ServiceMonitor, TimerService
from unitwatch.tui.screens import ServiceListScreen, TimerListScreen


class UnitwatchApp(App[None]):
    """A textual application showing watched timers and services.
    """

    BINDINGS = [
        Binding('t', 'show_timers', 'Timers'),
        Binding('s', 'show_services', 'Services'),
        Binding('q', 'quit', 'Quit'),
    ]

    def __init__(
        self,
        timer_service: TimerService,
        service_monitor: ServiceMonitor,
        *args,
        **kwargs,
    ):
        """Initialize the app with the facades its screens read from.
        """
        super().__init__(*args, **kwargs)
        self._timer_service = timer_service
        self._service_monitor = service_monitor

    async def on_mount(self) -> None:
        """Mount the timers screen.
        """
        self.push_screen(TimerListScreen(self._timer_service))

    def action_show_timers(self) -> None:
        self.switch_screen(TimerListScreen(self._timer_service))

    def action_show_services(self) -> None:
        self.switch_screen(ServiceListScreen(self._service_monitor))
