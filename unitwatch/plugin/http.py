import json
from typing import Any, Final
from urllib.parse import parse_qsl

from pydantic import BaseModel as PydanticBaseModel
from pydantic import Field

from unitwatch.utils import BaseModel


JSON_CONTENT_TYPE: Final[str] = 'application/json'


class HttpRequest(BaseModel):
    """An HTTP request forwarded by the plugin host.

    Args:
        method: HTTP verb
        path: Path relative to the plugin route, query string included
        headers: Request headers
        body: Raw request body
    """
    model_config = {'frozen': True}

    method: str = Field(..., min_length=1)
    path: str = Field('/')
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = Field(None)


class HttpResponse(BaseModel):
    """An HTTP response handed back to the plugin host.

    Args:
        status: HTTP status code
        headers: Response headers
        body: Serialized body
    """
    model_config = {'frozen': True}

    status: int = Field(..., ge=100, le=599)
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = Field(None)

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


def to_jsonable(data: Any) -> Any:
    """Turn models, and containers of models, into plain JSON values.
    """
    if isinstance(data, PydanticBaseModel):
        return data.model_dump(mode='json')
    if isinstance(data, list | tuple):
        return [to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: to_jsonable(value) for key, value in data.items()}
    return data


def json_response(
    status: int,
    data: Any,
    headers: dict[str, str] | None = None,
) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers={'Content-Type': JSON_CONTENT_TYPE, **(headers or {})},
        body=json.dumps(to_jsonable(data), ensure_ascii=False),
    )


def error_response(status: int, error: str) -> HttpResponse:
    return json_response(status, {'success': False, 'error': error})


def success_response(message: str, **extra: Any) -> HttpResponse:
    return json_response(200, {'success': True, 'message': message, **extra})


def parse_query_params(path: str) -> dict[str, str]:
    """Query parameters of a request path; repeated keys keep the last value.
    """
    _, sep, query = path.partition('?')
    if not sep:
        return {}
    return dict(parse_qsl(query, keep_blank_values=True))


def path_without_query(path: str) -> str:
    return path.partition('?')[0]
