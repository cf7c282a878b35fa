"""docindex reindex / recover commands - one-shot runs without the server."""

import json

import click

from docindex.cli.utils import load_cli_config
from docindex.core.errors import DocIndexError
from docindex.engine.client import SearchEngineClient
from docindex.indexing.coordinator import IndexCoordinator


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output the run summary as JSON")
@click.pass_context
def reindex_command(ctx: click.Context, as_json: bool) -> None:
    """Rebuild every index from every source once, then exit.

    The previous indexes stay live until the new ones are committed; on
    failure they are left untouched.
    """
    config = load_cli_config(ctx)
    with SearchEngineClient.from_config(config.engine) as client:
        coordinator = IndexCoordinator.from_config(config, client)
        try:
            summary = coordinator.reindex(trigger="cli")
        except DocIndexError as e:
            if as_json and coordinator.last_run is not None:
                click.echo(json.dumps(coordinator.last_run.to_dict(), indent=2))
            raise click.ClickException(e.message) from e

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    warnings = sum(1 for failure in summary.failures if failure["severity"] == "warning")
    click.echo(
        f"Indexed {summary.documents_indexed} documents in {summary.duration_sec:.1f}s"
        f" ({warnings} warnings)"
    )


@click.command()
@click.pass_context
def recover_command(ctx: click.Context) -> None:
    """Delete indexes left behind by an interrupted reindex.

    Safe to run repeatedly; does nothing when every alias points at a single
    index.
    """
    config = load_cli_config(ctx)
    with SearchEngineClient.from_config(config.engine) as client:
        coordinator = IndexCoordinator.from_config(config, client)
        try:
            recovered = coordinator.recover()
        except DocIndexError as e:
            raise click.ClickException(e.message) from e

    if recovered:
        click.echo("Recovered inconsistent index aliases.")
    else:
        click.echo("Index aliases are consistent. Nothing to do.")
