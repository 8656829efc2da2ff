import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any, Final, TypeVar
from urllib.parse import unquote

from pydantic import ValidationError

from unitwatch.errors import ParseError, UnitwatchError
from unitwatch.plugin.http import (
    HttpRequest,
    HttpResponse,
    error_response,
    json_response,
    parse_query_params,
    path_without_query,
)
from unitwatch.plugin.metadata import PluginMetadata
from unitwatch.utils import BaseModel


Handler = Callable[..., Awaitable[HttpResponse]]
ModelT = TypeVar('ModelT', bound=BaseModel)

# A single path segment, e.g. a unit name
SEGMENT: Final[str] = r'[^/]+'


class Route:
    """One method + path pattern bound to a handler.
    """

    def __init__(self, method: str, pattern: str, handler: Handler) -> None:
        self.method = method.upper()
        self.pattern = re.compile(f'^{pattern}$')
        self.handler = handler

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if method.upper() != self.method:
            return None
        found = self.pattern.match(path)
        if found is None:
            return None
        return {key: unquote(value) for key, value in found.groupdict().items()}


class PluginRouter:
    """Dispatches host HTTP requests to handlers and renders failures.

    Handlers receive the request, its query parameters and the named groups
    of their path pattern. Errors raised by the core become
    `{"success": false, "error": ...}` with the status code the error
    carries.
    """

    def __init__(self, metadata: PluginMetadata) -> None:
        self._logger = logging.getLogger(__name__)
        self._metadata = metadata
        self._routes: list[Route] = []
        self.add('GET', '/?', self._handle_info)

    @property
    def metadata(self) -> PluginMetadata:
        return self._metadata

    def add(self, method: str, pattern: str, handler: Handler) -> None:
        self._routes.append(Route(method, pattern, handler))

    async def handle(self, request: HttpRequest) -> HttpResponse:
        """Route one request and always produce a response.
        """
        path = path_without_query(request.path)
        query = parse_query_params(request.path)
        self._logger.debug('HTTP request: %s %s', request.method, request.path)

        for route in self._routes:
            params = route.match(request.method, path)
            if params is None:
                continue
            try:
                return await route.handler(request, query, **params)
            except UnitwatchError as e:
                log = self._logger.warning if e.status_code >= 500 else self._logger.info
                log('%s %s failed: %s', request.method, path, e)
                return error_response(e.status_code, str(e))
            except ValidationError as e:
                return error_response(400, _validation_message(e))
            except ValueError as e:
                return error_response(400, str(e))

        return error_response(404, 'Not found')

    async def _handle_info(
        self,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        return json_response(200, self._metadata.info())


def parse_body(request: HttpRequest, model: type[ModelT]) -> ModelT:
    """Decode a JSON request body into `model`.

    Raises:
        ParseError: If the body is missing or not JSON
        ValidationError: If the JSON does not fit the model
    """
    if not request.body:
        raise ParseError('Request body is required')
    try:
        data: Any = json.loads(request.body)
    except ValueError as e:
        raise ParseError(f'Invalid JSON body: {e}', request.body) from e
    return model.model_validate(data)


def int_param(
    query: dict[str, str],
    name: str,
    default: int | None = None,
) -> int | None:
    """Read an integer query parameter.

    Raises:
        ValueError: If the parameter is present but not a positive integer
    """
    raw = query.get(name)
    if raw is None or raw == '':
        return default
    if not raw.isdigit() or int(raw) < 1:
        raise ValueError(f'Invalid {name} parameter: {raw!r}')
    return int(raw)


def _validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item['loc'])
        parts.append(f'{location}: {item["msg"]}' if location else item['msg'])
    return 'Invalid request: ' + '; '.join(parts)
