from pydantic import Field

from unitwatch.plugin.http import (
    HttpRequest,
    HttpResponse,
    json_response,
    success_response,
)
from unitwatch.plugin.metadata import SERVICES_METADATA
from unitwatch.plugin.router import SEGMENT, PluginRouter, int_param, parse_body
from unitwatch.services import ServiceMonitor
from unitwatch.settings import WATCHED_SERVICES_KEY
from unitwatch.utils import BaseModel


WARNING_HEADER = 'X-Settings-Warning'


class ServiceSettings(BaseModel):
    """Body of the services settings routes.

    Args:
        watched_services: Service names shown on the main page
    """

    watched_services: list[str] = Field(default_factory=list)


class ServicesPlugin(PluginRouter):
    """HTTP surface of the systemd services plugin.

    Routes:
        GET  /                         plugin info
        GET  /services                 watched services with status
        GET  /services/available       all service units
        GET  /services/settings        watched list
        POST /services/settings        replace watched list
        POST /services/:name/start|stop|restart
        GET  /services/:name/logs?lines=N
    """

    def __init__(self, monitor: ServiceMonitor) -> None:
        super().__init__(SERVICES_METADATA)
        self._monitor = monitor
        self.add('GET', '/services', self._get_services)
        self.add('GET', '/services/available', self._get_available)
        self.add('GET', '/services/settings', self._get_settings)
        self.add('POST', '/services/settings', self._save_settings)
        self.add(
            'POST',
            f'/services/(?P<name>{SEGMENT})/(?P<action>start|stop|restart)',
            self._control,
        )
        self.add('GET', f'/services/(?P<name>{SEGMENT})/logs', self._get_logs)

    async def _get_services(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        overview = await self._monitor.get_watched_services()
        headers = {WARNING_HEADER: overview.warning} if overview.warning else None
        return json_response(200, overview.services, headers)

    async def _get_available(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        return json_response(200, await self._monitor.get_available_services())

    async def _get_settings(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        watched = await self._monitor.get_settings()
        body = {WATCHED_SERVICES_KEY: watched.units}
        if watched.warning:
            body['warning'] = watched.warning
        return json_response(200, body)

    async def _save_settings(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        settings = parse_body(request, ServiceSettings)
        saved = await self._monitor.save_settings(settings.watched_services)
        return success_response('Settings saved', **{WATCHED_SERVICES_KEY: saved})

    async def _control(
        self,
        request: HttpRequest,
        query: dict[str, str],
        name: str,
        action: str,
    ) -> HttpResponse:
        result = await self._monitor.control(name, action)
        return success_response(result.message)

    async def _get_logs(
        self,
        request: HttpRequest,
        query: dict[str, str],
        name: str,
    ) -> HttpResponse:
        lines = int_param(query, 'lines')
        return json_response(200, await self._monitor.get_logs(name, lines))
