from pydantic import Field

from unitwatch.systemd.models import ServiceStatus, TimerInfo
from unitwatch.utils import BaseModel


class ServiceOverview(BaseModel):
    """Statuses of all watched services.

    Args:
        services: One status per watched name, in watch-list order
        warning: Set when the stored watch list could not be read
    """
    model_config = {'frozen': True}

    services: list[ServiceStatus] = Field(default_factory=list)
    warning: str | None = Field(None)


class TimerOverview(BaseModel):
    """Information about all watched timers.

    Args:
        timers: One entry per watched name, in watch-list order
        warning: Set when the stored watch list could not be read
    """
    model_config = {'frozen': True}

    timers: list[TimerInfo] = Field(default_factory=list)
    warning: str | None = Field(None)
