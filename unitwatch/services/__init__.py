from unitwatch.services.models import ServiceOverview, TimerOverview
from unitwatch.services.service_monitor import SERVICE_OPERATIONS, ServiceMonitor
from unitwatch.services.timer_service import TimerService

__all__ = [
    'SERVICE_OPERATIONS',
    'ServiceMonitor',
    'ServiceOverview',
    'TimerOverview',
    'TimerService',
]
