"""Fixtures for CLI tests: isolated config and an engine-backed client."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import yaml

from docindex.config.models import EngineConfig
from docindex.engine.client import SearchEngineClient

if TYPE_CHECKING:
    from conftest import FakeEngine


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """No global config, no DOCINDEX__ env vars; root log handlers restored afterwards."""
    for key in list(os.environ):
        if key.upper().startswith("DOCINDEX__"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("docindex.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml")

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield tmp_path
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def guides_file(tmp_path: Path) -> Path:
    path = tmp_path / "guides.jsonl"
    path.write_text(
        "\n".join(json.dumps({"id": i, "title": f"Guide {i}"}) for i in ("a", "b")) + "\n"
    )
    return path


@pytest.fixture
def config_file(tmp_path: Path, guides_file: Path) -> Path:
    """Project config with one file source; logs quiet enough to parse stdout."""
    config: dict[str, Any] = {
        "logging": {"level": "WARNING"},
        "engine": {"url": "http://engine.test:9200"},
        "indexing": {"batch_size": 10, "parallelism": 1},
        "sources": [{"origin": "quarkus", "location": str(guides_file)}],
    }
    path = tmp_path / "docindex.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


@pytest.fixture
def cli_engine(engine: FakeEngine, monkeypatch: pytest.MonkeyPatch) -> FakeEngine:
    """Route clients built by CLI commands to the in-memory engine."""

    def from_config(
        cls: type[SearchEngineClient],
        config: EngineConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> SearchEngineClient:
        return cls(config.url, transport=engine.transport())

    monkeypatch.setattr(SearchEngineClient, "from_config", classmethod(from_config))
    return engine
