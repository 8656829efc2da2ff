import click

from unitwatch import __version__
from unitwatch.cli.commands import services, timers, tui
from unitwatch.config import AppSettings, setup_logger


@click.group()
@click.version_option(__version__, prog_name='unitwatch')
@click.option('--log-level', default=None, help='Override UNITWATCH_LOG_LEVEL.')
@click.option(
    '--journal/--no-journal',
    default=None,
    help='Log to the systemd journal. Overrides UNITWATCH_LOG_JOURNAL.',
)
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str | None,
    journal: bool | None,
) -> None:
    """unitwatch - Monitor and control systemd services and timers.
    """
    ctx.ensure_object(dict)
    settings = ctx.obj.get('settings')
    if settings is None:
        settings = AppSettings.from_env()
        ctx.obj['settings'] = settings
    setup_logger(
        log_level.upper() if log_level else settings.log_level,
        settings.log_journal if journal is None else journal,
    )


def run_cli() -> None:
    """Run the CLI interface.
    """
    cli()


cli.add_command(services)
cli.add_command(timers)
cli.add_command(tui)


__all__ = [
    'cli',
    'run_cli',
]
