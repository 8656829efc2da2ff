import click

from unitwatch.cli.common import service_monitor, timer_service


@click.command('tui')
@click.pass_context
def tui(ctx: click.Context) -> None:
    """Open the interactive terminal interface.
    """
    from unitwatch.tui import UnitwatchApp

    app = UnitwatchApp(timer_service(ctx), service_monitor(ctx))
    app.run()
