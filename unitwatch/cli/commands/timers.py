import click

from unitwatch.cli.common import (
    echo_json,
    json_option,
    metadata_option,
    run_command,
    timer_service,
)
from unitwatch.cli.formatting import (
    format_history_table,
    format_relative_time,
    format_timers_table,
    format_units_table,
)
from unitwatch.plugin.metadata import TIMERS_METADATA
from unitwatch.systemd.models import TimerInfo


@click.group('timers')
@metadata_option(TIMERS_METADATA)
def timers() -> None:
    """Monitor and control systemd timers.
    """
    pass


@timers.command('list')
@json_option
@click.pass_context
def list_timers(ctx: click.Context, as_json: bool) -> None:
    """Show every watched timer with its schedule and last result.
    """
    overview = run_command(timer_service(ctx).get_watched_timers)
    if overview.warning:
        click.echo(f'Warning: {overview.warning}', err=True)
    if as_json:
        echo_json(overview.timers)
    else:
        click.echo(format_timers_table(overview.timers))


@timers.command('available')
@json_option
@click.pass_context
def available_timers(ctx: click.Context, as_json: bool) -> None:
    """List all timer units systemd knows about.
    """
    units = run_command(timer_service(ctx).get_available_timers)
    if as_json:
        echo_json(units)
    else:
        click.echo(format_units_table(units, 'timer'))


@timers.command('show')
@click.argument('name')
@json_option
@click.pass_context
def show_timer(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show details of one timer.
    """
    service = timer_service(ctx)
    info = run_command(lambda: service.get_timer(name))
    if as_json:
        echo_json(info)
    else:
        click.echo(_describe_timer(info))


@timers.command('run')
@click.argument('name')
@click.option('--test', 'test_mode', is_flag=True, help='Run in test mode.')
@click.pass_context
def run_timer(ctx: click.Context, name: str, test_mode: bool) -> None:
    """Start the service of a timer now.
    """
    service = timer_service(ctx)
    result = run_command(lambda: service.run(name, test_mode=test_mode))
    click.echo(result.message)


@timers.command('test')
@click.argument('name')
@click.pass_context
def test_timer(ctx: click.Context, name: str) -> None:
    """Start the service of a timer now, in test mode.
    """
    service = timer_service(ctx)
    result = run_command(lambda: service.run(name, test_mode=True))
    click.echo(result.message)


@timers.command('enable')
@click.argument('name')
@click.pass_context
def enable_timer(ctx: click.Context, name: str) -> None:
    """Enable a timer for boot and start it.
    """
    service = timer_service(ctx)
    click.echo(run_command(lambda: service.enable(name)).message)


@timers.command('disable')
@click.argument('name')
@click.pass_context
def disable_timer(ctx: click.Context, name: str) -> None:
    """Stop a timer and disable it for boot.
    """
    service = timer_service(ctx)
    click.echo(run_command(lambda: service.disable(name)).message)


@timers.command('history')
@click.argument('name')
@click.argument('execution_id', required=False)
@click.option('-n', '--limit', type=click.IntRange(1, None), default=None,
              help='Maximum number of executions.')
@json_option
@click.pass_context
def timer_history(
    ctx: click.Context,
    name: str,
    execution_id: str | None,
    limit: int | None,
    as_json: bool,
) -> None:
    """List executions of a timer, or show one execution with its output.
    """
    service = timer_service(ctx)
    if execution_id is not None:
        details = run_command(lambda: service.get_execution(name, execution_id))
        if as_json:
            echo_json(details)
            return
        click.echo(format_history_table([details]))
        if details.truncated:
            click.echo('[output truncated]')
        for line in details.output:
            click.echo(line)
        return

    records = run_command(lambda: service.get_history(name, limit))
    if as_json:
        echo_json(records)
    else:
        click.echo(format_history_table(records))


@timers.command('watch')
@click.argument('names', nargs=-1)
@click.option('--clear', is_flag=True, help='Empty the watch list.')
@click.pass_context
def watch_timers(ctx: click.Context, names: tuple[str, ...], clear: bool) -> None:
    """Show the watch list, or replace it with NAMES.
    """
    service = timer_service(ctx)
    if names or clear:
        saved = run_command(lambda: service.save_settings(names))
        click.echo(f'Watching {len(saved)} timers.')
        for name in saved:
            click.echo(name)
        return

    watched = run_command(service.get_settings)
    if watched.warning:
        click.echo(f'Warning: {watched.warning}', err=True)
    for name in watched.units:
        click.echo(name)


def _describe_timer(info: TimerInfo) -> str:
    lines = [
        f'Timer:    {info.name}',
        f'Service:  {info.service or "-"}',
        f'Boot:     {"enabled" if info.enabled else "disabled"}',
        f'State:    {info.active_state or "-"}',
        f'Schedule: {info.schedule_human}',
    ]
    lines.extend(f'          {clause}' for clause in info.schedule)
    lines.append(f'Next run: {format_relative_time(info.next_run)}')
    lines.append(f'Last run: {format_relative_time(info.last_run)}')
    lines.append(f'Result:   {info.last_result or "-"}')
    return '\n'.join(lines)
