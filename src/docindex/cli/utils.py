"""CLI utilities."""

from pathlib import Path

import click

from docindex.config.loader import load_config
from docindex.config.models import DocIndexConfig
from docindex.core.errors import ConfigError
from docindex.core.logging import configure_logging


def load_cli_config(ctx: click.Context) -> DocIndexConfig:
    """Load configuration for a command and apply its logging section.

    ``-v`` on the group overrides the configured log level.

    Raises:
        click.ClickException: If the configuration cannot be loaded
    """
    obj = ctx.ensure_object(dict)
    config_path: Path | None = obj.get("config_path")
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(e.message) from e

    if obj.get("verbose"):
        config.logging.level = "DEBUG"
    configure_logging(config=config.logging)
    return config
