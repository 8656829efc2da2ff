import click

from unitwatch.cli.common import (
    echo_json,
    json_option,
    metadata_option,
    run_command,
    service_monitor,
)
from unitwatch.cli.formatting import (
    format_log_entries,
    format_services_table,
    format_units_table,
)
from unitwatch.plugin.metadata import SERVICES_METADATA
from unitwatch.systemd.types import UnitOperation


@click.group('services')
@metadata_option(SERVICES_METADATA)
def services() -> None:
    """Monitor and control systemd services.
    """
    pass


@services.command('list')
@json_option
@click.pass_context
def list_services(ctx: click.Context, as_json: bool) -> None:
    """Show the status of every watched service.
    """
    overview = run_command(service_monitor(ctx).get_watched_services)
    if overview.warning:
        click.echo(f'Warning: {overview.warning}', err=True)
    if as_json:
        echo_json(overview.services)
    else:
        click.echo(format_services_table(overview.services))


@services.command('available')
@json_option
@click.pass_context
def available_services(ctx: click.Context, as_json: bool) -> None:
    """List all service units systemd knows about.
    """
    units = run_command(service_monitor(ctx).get_available_services)
    if as_json:
        echo_json(units)
    else:
        click.echo(format_units_table(units, 'service'))


def _control_command(operation: UnitOperation) -> click.Command:
    @click.command(operation.value, help=f'{operation.value.capitalize()} a service.')
    @click.argument('name')
    @click.pass_context
    def control(ctx: click.Context, name: str) -> None:
        monitor = service_monitor(ctx)
        result = run_command(lambda: monitor.control(name, operation))
        click.echo(result.message)

    return control


for _operation in (UnitOperation.START, UnitOperation.STOP, UnitOperation.RESTART):
    services.add_command(_control_command(_operation))


@services.command('logs')
@click.argument('name')
@click.option('-n', '--lines', type=click.IntRange(1, None), default=None,
              help='Number of journal lines to show.')
@json_option
@click.pass_context
def service_logs(
    ctx: click.Context,
    name: str,
    lines: int | None,
    as_json: bool,
) -> None:
    """Show the most recent journal lines of a service.
    """
    monitor = service_monitor(ctx)
    entries = run_command(lambda: monitor.get_logs(name, lines))
    if as_json:
        echo_json(entries)
    else:
        click.echo(format_log_entries(entries))


@services.command('watch')
@click.argument('names', nargs=-1)
@click.option('--clear', is_flag=True, help='Empty the watch list.')
@click.pass_context
def watch_services(ctx: click.Context, names: tuple[str, ...], clear: bool) -> None:
    """Show the watch list, or replace it with NAMES.
    """
    monitor = service_monitor(ctx)
    if names or clear:
        saved = run_command(lambda: monitor.save_settings(names))
        click.echo(f'Watching {len(saved)} services.')
        for name in saved:
            click.echo(name)
        return

    watched = run_command(monitor.get_settings)
    if watched.warning:
        click.echo(f'Warning: {watched.warning}', err=True)
    for name in watched.units:
        click.echo(name)
