from unitwatch.plugin.http import (
    HttpRequest,
    HttpResponse,
    error_response,
    json_response,
    parse_query_params,
    path_without_query,
    success_response,
)
from unitwatch.plugin.metadata import (
    SERVICES_METADATA,
    TIMERS_METADATA,
    PluginMetadata,
)
from unitwatch.plugin.router import PluginRouter
from unitwatch.plugin.services_plugin import ServicesPlugin
from unitwatch.plugin.timers_plugin import TimersPlugin

__all__ = [
    'SERVICES_METADATA',
    'TIMERS_METADATA',
    'HttpRequest',
    'HttpResponse',
    'PluginMetadata',
    'PluginRouter',
    'ServicesPlugin',
    'TimersPlugin',
    'error_response',
    'json_response',
    'parse_query_params',
    'path_without_query',
    'success_response',
]
