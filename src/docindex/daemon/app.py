"""Starlette application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.routing import BaseRoute

from docindex.daemon.routes import create_routes

if TYPE_CHECKING:
    from docindex.daemon.lifecycle import ServerController


def create_app(controller: ServerController) -> Starlette:
    """Create the management application.

    Controller start/stop is handled by ``run_server`` rather than the app
    lifespan, so triggers are stopped even if the lifespan exit times out.
    """
    routes: list[BaseRoute] = list(create_routes(controller))
    return Starlette(routes=routes)
