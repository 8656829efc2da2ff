from pydantic import Field

from unitwatch.plugin.http import (
    HttpRequest,
    HttpResponse,
    json_response,
    success_response,
)
from unitwatch.plugin.metadata import TIMERS_METADATA
from unitwatch.plugin.router import SEGMENT, PluginRouter, int_param, parse_body
from unitwatch.plugin.services_plugin import WARNING_HEADER
from unitwatch.services import TimerService
from unitwatch.settings import WATCHED_TIMERS_KEY
from unitwatch.utils import BaseModel


class TimerSettings(BaseModel):
    """Body of the timers settings routes.

    Args:
        watched_timers: Timer names shown on the main page
    """

    watched_timers: list[str] = Field(default_factory=list)


class TimersPlugin(PluginRouter):
    """HTTP surface of the systemd timers plugin.

    Routes:
        GET  /                          plugin info
        GET  /timers                    watched timers
        GET  /timers/available          all timer units
        GET  /timers/settings           watched list
        POST /timers/settings           replace watched list
        POST /timers/:name/run|test     trigger the timer's service now
        POST /timers/:name/enable|disable
        GET  /timers/:name/history?limit=N
        GET  /timers/:name/history/:id
    """

    def __init__(self, service: TimerService) -> None:
        super().__init__(TIMERS_METADATA)
        self._service = service
        self.add('GET', '/timers', self._get_timers)
        self.add('GET', '/timers/available', self._get_available)
        self.add('GET', '/timers/settings', self._get_settings)
        self.add('POST', '/timers/settings', self._save_settings)
        self.add(
            'POST',
            f'/timers/(?P<name>{SEGMENT})/(?P<mode>run|test)',
            self._run,
        )
        self.add(
            'POST',
            f'/timers/(?P<name>{SEGMENT})/(?P<action>enable|disable)',
            self._toggle,
        )
        self.add('GET', f'/timers/(?P<name>{SEGMENT})/history', self._get_history)
        self.add(
            'GET',
            f'/timers/(?P<name>{SEGMENT})/history/(?P<execution_id>{SEGMENT})',
            self._get_execution,
        )

    async def _get_timers(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        overview = await self._service.get_watched_timers()
        headers = {WARNING_HEADER: overview.warning} if overview.warning else None
        return json_response(200, overview.timers, headers)

    async def _get_available(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        return json_response(200, await self._service.get_available_timers())

    async def _get_settings(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        watched = await self._service.get_settings()
        body = {WATCHED_TIMERS_KEY: watched.units}
        if watched.warning:
            body['warning'] = watched.warning
        return json_response(200, body)

    async def _save_settings(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        settings = parse_body(request, TimerSettings)
        saved = await self._service.save_settings(settings.watched_timers)
        return success_response('Settings saved', **{WATCHED_TIMERS_KEY: saved})

    async def _run(
        self,
        request: HttpRequest,
        query: dict[str, str],
        name: str,
        mode: str,
    ) -> HttpResponse:
        test_mode = mode == 'test'
        result = await self._service.run(name, test_mode=test_mode)
        return success_response(
            result.message,
            mode='test' if test_mode else 'production',
        )

    async def _toggle(
        self,
        request: HttpRequest,
        query: dict[str, str],
        name: str,
        action: str,
    ) -> HttpResponse:
        if action == 'enable':
            result = await self._service.enable(name)
        else:
            result = await self._service.disable(name)
        return success_response(result.message)

    async def _get_history(
        self,
        request: HttpRequest,
        query: dict[str, str],
        name: str,
    ) -> HttpResponse:
        limit = int_param(query, 'limit')
        return json_response(200, await self._service.get_history(name, limit))

    async def _get_execution(
        self,
        request: HttpRequest,
        query: dict[str, str],
        name: str,
        execution_id: str,
    ) -> HttpResponse:
        details = await self._service.get_execution(name, execution_id)
        return json_response(200, details)
