"""docindex management server - reindex triggers and HTTP endpoints."""

from docindex.daemon.app import create_app
from docindex.daemon.lifecycle import ServerController, run_server
from docindex.daemon.scheduler import CronScheduler

__all__ = [
    "CronScheduler",
    "ServerController",
    "create_app",
    "run_server",
]
