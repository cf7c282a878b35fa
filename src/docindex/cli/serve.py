"""docindex serve command - run the management server and reindex triggers."""

import asyncio

import click
from rich.console import Console

from docindex import __version__
from docindex.cli.utils import load_cli_config
from docindex.core.errors import DocIndexError
from docindex.engine.client import SearchEngineClient
from docindex.indexing.coordinator import IndexCoordinator


def _print_banner(host: str, port: int, engine_url: str, schedule: str | None) -> None:
    console = Console(stderr=True)
    banner_width = 64
    rule_line = "─" * banner_width
    base_url = f"http://{host}:{port}"

    console.print()
    console.print(rule_line, style="dim cyan", highlight=False)
    console.print(
        f"docindex v{__version__} · Ready".center(banner_width), style="bold cyan", highlight=False
    )
    console.print(rule_line, style="dim cyan", highlight=False)
    console.print()
    console.print(f"  Reindex:         {base_url}/reindex", style="green", highlight=False)
    console.print(f"  Health Check:    {base_url}/health", highlight=False)
    console.print(f"  Status:          {base_url}/status", highlight=False)
    console.print(f"  Engine:          {engine_url}", style="dim", highlight=False)
    console.print(f"  Schedule:        {schedule or 'off'}", style="dim", highlight=False)
    console.print()


@click.command()
@click.option("--host", help="Override management bind address")
@click.option("--port", "-p", type=int, help="Override management port")
@click.pass_context
def serve_command(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the management server with startup and scheduled reindexing.

    Runs in foreground until interrupted. Waits for an in-flight reindex
    before exiting.
    """
    from docindex.daemon.lifecycle import ServerController, run_server

    config = load_cli_config(ctx)
    if host is not None:
        config.management.host = host
    if port is not None:
        config.management.port = port

    with SearchEngineClient.from_config(config.engine) as client:
        coordinator = IndexCoordinator.from_config(config, client)
        controller = ServerController(
            coordinator=coordinator,
            indexing_config=config.indexing,
            management_config=config.management,
        )
        _print_banner(
            config.management.host, config.management.port, client.base_url, controller.schedule
        )
        try:
            asyncio.run(run_server(controller))
        except KeyboardInterrupt:
            click.echo("\nStopped")
        except DocIndexError as e:
            raise click.ClickException(e.message) from e
