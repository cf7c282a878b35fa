"""Structured logging for docindex.

Events are structlog event dicts rendered by stdlib handlers, one handler per
configured output, each with its own level and format.

While a reindex runs, every event carries ``run_id`` and ``trigger``; while a
source is being drained, events also carry ``origin``. These are bound as
structlog context variables, so batch workers that run with a copy of the
submitting thread's context log with the same fields.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from structlog.contextvars import bound_contextvars, get_contextvars, merge_contextvars

if TYPE_CHECKING:
    from docindex.config.models import LoggingConfig, LogOutputConfig

# HTTP stack loggers, one line per request below WARNING
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def new_run_id() -> str:
    return uuid4().hex[:12]


def get_run_id() -> str | None:
    """The id of the reindex run the current context belongs to, if any."""
    return get_contextvars().get("run_id")


@contextmanager
def run_context(trigger: str, run_id: str | None = None) -> Iterator[str]:
    """Tag every event logged inside the block with ``run_id`` and ``trigger``."""
    rid = run_id or new_run_id()
    with bound_contextvars(run_id=rid, trigger=trigger):
        yield rid


@contextmanager
def source_context(origin: str) -> Iterator[None]:
    """Tag every event logged inside the block with the source ``origin``."""
    with bound_contextvars(origin=origin):
        yield


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and the root logger's handlers.

    Without ``config``, logs go to stderr at ``level``, as JSON when
    ``json_format`` is set. Safe to call again; earlier handlers are closed.
    """
    from docindex.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level.upper(),
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = logging.getLevelNamesMapping()[config.level]

    pre_chain: list[structlog.types.Processor] = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration (CLI -v, config reload) must reach existing loggers
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers = [_output_handler(output, config.level, pre_chain) for output in config.outputs]
    root.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _output_handler(
    output: LogOutputConfig,
    default_level: str,
    pre_chain: list[structlog.types.Processor],
) -> logging.Handler:
    handler: logging.Handler
    if output.destination in ("stderr", "stdout"):
        stream = getattr(sys, output.destination)
        handler = logging.StreamHandler(stream)
        colors = stream.isatty()
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        colors = False

    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)

    handler.setLevel(output.level or default_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )
    return handler
