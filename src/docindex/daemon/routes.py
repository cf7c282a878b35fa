"""HTTP routes for the docindex management server.

Provides liveness, diagnostics, and the on-demand reindex trigger.
"""

from __future__ import annotations

import importlib.metadata
import os
import sys
import time
from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from docindex.core.errors import DocIndexError, ReindexInProgressError

if TYPE_CHECKING:
    from docindex.daemon.lifecycle import ServerController


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return importlib.metadata.version("docindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _get_runtime_info() -> dict[str, Any]:
    return {
        "python_version": sys.version.split()[0],
        "pid": os.getpid(),
    }


def create_routes(controller: ServerController) -> list[Route]:
    """Create HTTP routes bound to the server controller."""
    start_time = time.time()
    version = _get_version()

    async def health(request: Request) -> JSONResponse:
        """Liveness probe. Says nothing about the engine; see /status."""
        _ = request  # unused
        return JSONResponse(
            {
                "status": "healthy",
                "version": version,
                "uptime_seconds": round(time.time() - start_time, 1),
            }
        )

    async def status(request: Request) -> JSONResponse:
        """Reindexing state and the outcome of the latest run."""
        _ = request  # unused
        coordinator = controller.coordinator
        last_run = coordinator.last_run

        response: dict[str, Any] = {
            "version": version,
            "uptime_seconds": round(time.time() - start_time, 1),
            "runtime": _get_runtime_info(),
            "engine_url": coordinator.client.base_url,
            "indexes": [index.name for index in coordinator.indexes],
            "reindex": {
                "in_progress": coordinator.in_progress,
                "schedule": controller.schedule,
                "next_scheduled": controller.next_scheduled(),
            },
            "last_run": last_run.to_dict() if last_run is not None else None,
        }
        return JSONResponse(response)

    async def reindex(request: Request) -> PlainTextResponse:
        """Run a full reindex and answer once it is published (or failed)."""
        _ = request  # unused
        try:
            await run_in_threadpool(controller.coordinator.reindex, "on_demand")
        except ReindexInProgressError as e:
            return PlainTextResponse(e.message, status_code=409)
        except DocIndexError as e:
            return PlainTextResponse(e.message, status_code=500)
        return PlainTextResponse("Success")

    return [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/reindex", reindex, methods=["GET"]),
    ]
