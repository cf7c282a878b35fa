"""Tests for daemon/routes.py module.

Covers:
- create_routes() function
- /health endpoint
- /status endpoint
- /reindex endpoint
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from starlette.routing import Router
from starlette.testclient import TestClient

from docindex.config.models import IndexingConfig, ScheduledConfig
from docindex.core.errors import IndexingError, ReindexInProgressError
from docindex.daemon.lifecycle import ServerController
from docindex.daemon.routes import create_routes
from docindex.engine.client import SearchEngineClient
from docindex.engine.models import LogicalIndex
from docindex.indexing.coordinator import IndexCoordinator, RunSummary
from docindex.indexing.documents import Document
from docindex.indexing.sinks import EngineDocumentSink
from docindex.indexing.sources import StaticDocumentSource

if TYPE_CHECKING:
    from conftest import FakeEngine


@pytest.fixture
def mock_controller() -> MagicMock:
    """Create mock ServerController."""
    controller = MagicMock()
    coordinator = controller.coordinator
    coordinator.last_run = None
    coordinator.in_progress = False
    coordinator.client.base_url = "http://engine.test:9200"
    coordinator.indexes = [LogicalIndex("guide"), LogicalIndex("quickstart")]
    controller.schedule = "0 0 * * *"
    controller.next_scheduled.return_value = "2026-10-19T00:00:00+00:00"
    return controller


@pytest.fixture
def client(mock_controller: MagicMock) -> TestClient:
    """Create test client with routes."""
    return TestClient(Router(routes=create_routes(mock_controller)))


class TestCreateRoutes:
    """Tests for create_routes function."""

    def test_defines_management_routes(self, mock_controller: MagicMock) -> None:
        routes = create_routes(mock_controller)
        assert [r.path for r in routes] == ["/health", "/status", "/reindex"]


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_returns_healthy(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert data["uptime_seconds"] >= 0

    def test_does_not_touch_the_engine(
        self, client: TestClient, mock_controller: MagicMock
    ) -> None:
        client.get("/health")
        mock_controller.coordinator.client.ping.assert_not_called()


class TestStatusEndpoint:
    """Tests for /status endpoint."""

    def test_idle_before_first_run(self, client: TestClient) -> None:
        data = client.get("/status").json()

        assert data["engine_url"] == "http://engine.test:9200"
        assert data["indexes"] == ["guide", "quickstart"]
        assert data["reindex"] == {
            "in_progress": False,
            "schedule": "0 0 * * *",
            "next_scheduled": "2026-10-19T00:00:00+00:00",
        }
        assert data["last_run"] is None
        assert "python_version" in data["runtime"]

    def test_reports_last_run(self, client: TestClient, mock_controller: MagicMock) -> None:
        started = datetime(2026, 10, 18, 3, 0, tzinfo=UTC)
        mock_controller.coordinator.last_run = RunSummary(
            run_id="abc123",
            trigger="scheduled",
            started_at=started,
            finished_at=started.replace(minute=2),
            success=True,
            documents_indexed=42,
        )
        mock_controller.coordinator.in_progress = True

        data = client.get("/status").json()

        assert data["reindex"]["in_progress"] is True
        assert data["last_run"]["run_id"] == "abc123"
        assert data["last_run"]["documents_indexed"] == 42
        assert data["last_run"]["duration_sec"] == 120.0
        assert data["last_run"]["started_at"] == "2026-10-18T03:00:00+00:00"


class TestReindexEndpoint:
    """Tests for /reindex endpoint."""

    def test_success(self, client: TestClient, mock_controller: MagicMock) -> None:
        response = client.get("/reindex")

        assert response.status_code == 200
        assert response.text == "Success"
        mock_controller.coordinator.reindex.assert_called_once_with("on_demand")

    def test_in_progress_is_conflict(
        self, client: TestClient, mock_controller: MagicMock
    ) -> None:
        mock_controller.coordinator.reindex.side_effect = ReindexInProgressError.create()

        response = client.get("/reindex")

        assert response.status_code == 409
        assert "already in progress" in response.text

    def test_failure_is_server_error(
        self, client: TestClient, mock_controller: MagicMock
    ) -> None:
        mock_controller.coordinator.reindex.side_effect = IndexingError.batch_failed(
            10, "engine rejected documents"
        )

        response = client.get("/reindex")

        assert response.status_code == 500
        assert "engine rejected documents" in response.text

    def test_post_is_not_allowed(self, client: TestClient) -> None:
        assert client.post("/reindex").status_code == 405


class TestReindexEndToEnd:
    """/reindex driving a real coordinator against the in-memory engine."""

    def test_publishes_documents(
        self, engine: FakeEngine, engine_client: SearchEngineClient
    ) -> None:
        # Given
        guide = LogicalIndex("guide")
        coordinator = IndexCoordinator(
            engine_client,
            [guide],
            [lambda failures: StaticDocumentSource("quarkus", [Document(id="a", origin="quarkus")])],
            EngineDocumentSink(engine_client, [guide]),
            IndexingConfig(batch_size=10, parallelism=1, timeout_sec=5.0),
        )
        controller = ServerController(
            coordinator=coordinator,
            indexing_config=IndexingConfig(scheduled=ScheduledConfig(cron="off")),
        )
        client = TestClient(Router(routes=create_routes(controller)))

        # When
        response = client.get("/reindex")

        # Then
        assert response.text == "Success"
        assert list(engine.documents("guide-read")) == ["a"]
        status = client.get("/status").json()
        assert status["reindex"]["schedule"] is None
        assert status["last_run"]["trigger"] == "on_demand"
        assert status["last_run"]["success"] is True
