"""docindex CLI - docindex command."""

from pathlib import Path

import click

from docindex import __version__
from docindex.cli.reindex import recover_command, reindex_command
from docindex.cli.serve import serve_command
from docindex.cli.status import status_command
from docindex.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="docindex")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: ./docindex.yaml when present)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """docindex - Zero-downtime reindexing of crawled documentation."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(serve_command, name="serve")
cli.add_command(reindex_command, name="reindex")
cli.add_command(recover_command, name="recover")
cli.add_command(status_command, name="status")


if __name__ == "__main__":
    cli()
