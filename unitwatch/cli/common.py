import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from unitwatch.config import AppSettings
from unitwatch.errors import UnitwatchError
from unitwatch.plugin.http import to_jsonable
from unitwatch.plugin.metadata import PluginMetadata
from unitwatch.services import ServiceMonitor, TimerService


T = TypeVar('T')


def settings_from(ctx: click.Context) -> AppSettings:
    return ctx.obj['settings']


def service_monitor(ctx: click.Context) -> ServiceMonitor:
    return ServiceMonitor.from_settings(
        settings_from(ctx),
        executor=ctx.obj.get('executor'),
        store=ctx.obj.get('store'),
    )


def timer_service(ctx: click.Context) -> TimerService:
    return TimerService.from_settings(
        settings_from(ctx),
        executor=ctx.obj.get('executor'),
        store=ctx.obj.get('store'),
    )


def run_command(call: Callable[[], Awaitable[T]]) -> T:
    """Run an async command body, turning core errors into exit code 1.
    """
    try:
        return asyncio.run(call())
    except (UnitwatchError, ValueError) as e:
        click.echo(f'Error: {e}', err=True)
        raise SystemExit(1) from None


def echo_json(data: Any) -> None:
    click.echo(json.dumps(to_jsonable(data), indent=2, ensure_ascii=False))


def metadata_option(metadata: PluginMetadata) -> Callable[[T], T]:
    """Eager `--metadata` flag printing the plugin description and exiting.
    """
    def print_metadata(ctx: click.Context, param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        echo_json(metadata)
        ctx.exit()

    return click.option(
        '--metadata',
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=print_metadata,
        help='Print plugin metadata as JSON and exit.',
    )


json_option = click.option(
    '--json',
    'as_json',
    is_flag=True,
    help='Print JSON instead of a table.',
)
