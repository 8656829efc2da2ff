from unitwatch.tui.screens.service_list import ServiceListScreen
from unitwatch.tui.screens.timer_list import TimerListScreen

__all__ = [
    'ServiceListScreen',
    'TimerListScreen',
]
