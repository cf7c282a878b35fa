"""docindex status command - query a running server."""

import json

import click
import httpx
from rich.console import Console
from rich.table import Table

from docindex.cli.utils import load_cli_config


@click.command()
@click.option("--url", help="Management server URL (default: from config)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status_command(ctx: click.Context, url: str | None, as_json: bool) -> None:
    """Show reindexing status of a running docindex server."""
    if url is None:
        management = load_cli_config(ctx).management
        url = f"http://{management.host}:{management.port}"

    try:
        response = httpx.get(f"{url.rstrip('/')}/status", timeout=5.0)
        response.raise_for_status()
        status_data = response.json()
    except (httpx.HTTPError, json.JSONDecodeError) as e:
        if as_json:
            click.echo(json.dumps({"running": False, "url": url, "error": str(e)}))
        else:
            click.echo(f"Server: not reachable at {url} ({e})")
        raise SystemExit(1) from e

    if as_json:
        click.echo(json.dumps(status_data, indent=2))
        return

    reindex = status_data.get("reindex", {})
    table = Table(title=f"docindex {status_data.get('version', '?')} at {url}", show_header=False)
    table.add_column("key", style="cyan")
    table.add_column("value")
    table.add_row("Engine", str(status_data.get("engine_url")))
    table.add_row("Indexes", ", ".join(status_data.get("indexes", [])))
    table.add_row("Reindexing", "in progress" if reindex.get("in_progress") else "idle")
    table.add_row("Schedule", reindex.get("schedule") or "off")
    table.add_row("Next run", reindex.get("next_scheduled") or "-")

    last_run = status_data.get("last_run")
    if last_run:
        outcome = {True: "success", False: "failed", None: "running"}[last_run.get("success")]
        table.add_row("Last run", f"{last_run['trigger']} at {last_run['started_at']} ({outcome})")
        table.add_row("Documents", str(last_run.get("documents_indexed", 0)))
        if last_run.get("error"):
            table.add_row("Error", last_run["error"], style="red")
        table.add_row("Failures", str(len(last_run.get("failures", []))))
    else:
        table.add_row("Last run", "none")

    Console().print(table)
