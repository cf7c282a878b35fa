"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides an in-memory search engine for tests that talk HTTP.
"""

from __future__ import annotations

import json
import re
import sys
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest
import structlog

# Insert local src directory at the beginning of sys.path
# This ensures that the local docindex package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of docindex modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("docindex"):
        del sys.modules[module_name]

from docindex.engine.client import SearchEngineClient  # noqa: E402

ENGINE_URL = "http://engine.test:9200"

_GENERATION = re.compile(r"^(?P<prefix>.*-)(?P<number>\d+)$")


@dataclass
class Fault:
    """Fail matching requests with ``status`` after letting ``after`` of them through."""

    method: str
    path: re.Pattern[str]
    status: int = 500
    times: int = 1
    after: int = 0


class FakeEngine:
    """In-memory engine implementing the REST subset docindex uses.

    Indexes, aliases and documents live in plain dicts guarded by one lock.
    Alias updates are applied all-or-nothing, as the real engine does.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.indexes: dict[str, dict[str, Any]] = {}
        self.reachable = True
        self.healthy = True
        self.requests: list[tuple[str, str]] = []
        self.alias_updates: list[list[dict[str, Any]]] = []
        self.bulk_batches: list[list[str]] = []
        self.faults: list[Fault] = []

    # -----------------------------------------------------------------
    # Test setup helpers
    # -----------------------------------------------------------------

    def create(
        self,
        name: str,
        *,
        aliases: dict[str, bool] | None = None,
        documents: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        """Create a physical index; ``aliases`` maps alias name to is_write_index."""
        self.indexes[name] = {
            "aliases": {
                alias: {"is_write_index": is_write} for alias, is_write in (aliases or {}).items()
            },
            "documents": dict(documents or {}),
            "body": {},
        }

    def create_logical(self, name: str, generation: int = 1, **kwargs: Any) -> str:
        """Create ``<name>-00000N`` bound to both aliases, as after a clean publish."""
        physical = f"{name}-{generation:06d}"
        self.create(physical, aliases={f"{name}-read": False, f"{name}-write": True}, **kwargs)
        return physical

    def fail(
        self, method: str, path: str, *, status: int = 500, times: int = 1, after: int = 0
    ) -> None:
        self.faults.append(Fault(method, re.compile(path), status, times, after))

    def resolve(self, target: str) -> list[str]:
        """Physical indexes a name or alias resolves to."""
        if target in self.indexes:
            return [target]
        return sorted(name for name, index in self.indexes.items() if target in index["aliases"])

    def aliases_of(self, name: str) -> dict[str, bool]:
        return {
            alias: bool(meta.get("is_write_index"))
            for alias, meta in self.indexes[name]["aliases"].items()
        }

    def documents(self, target: str) -> dict[str, dict[str, Any]]:
        docs: dict[str, dict[str, Any]] = {}
        for name in self.resolve(target):
            docs.update(self.indexes[name]["documents"])
        return docs

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # -----------------------------------------------------------------
    # HTTP handling
    # -----------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        with self.lock:
            self.requests.append((method, path))
            if not self.reachable:
                raise httpx.ConnectError("Connection refused", request=request)
            if (fault := self._matching_fault(method, path)) is not None:
                return _error(fault.status, "injected_failure", f"{method} {path}")
            return self._route(request, method, path)

    def _matching_fault(self, method: str, path: str) -> Fault | None:
        for fault in self.faults:
            if fault.method != method or not fault.path.search(path) or fault.times <= 0:
                continue
            if fault.after > 0:
                fault.after -= 1
                return None
            fault.times -= 1
            return fault
        return None

    def _route(self, request: httpx.Request, method: str, path: str) -> httpx.Response:
        segments = [s for s in path.split("/") if s]
        if method == "GET" and not segments:
            return httpx.Response(200, json={"version": {"number": "fake"}})
        if segments == ["_cluster", "health"]:
            if self.healthy:
                return httpx.Response(200, json={"status": "green"})
            return httpx.Response(408, json={"status": "red", "timed_out": True})
        if segments == ["_aliases"]:
            if method == "GET":
                return httpx.Response(
                    200,
                    json={
                        name: {"aliases": json.loads(json.dumps(index["aliases"]))}
                        for name, index in self.indexes.items()
                    },
                )
            return self._update_aliases(json.loads(request.content)["actions"])
        if segments == ["_bulk"] and method == "POST":
            return self._bulk(request.content.decode("utf-8"))
        if len(segments) == 2 and segments[1] == "_rollover" and method == "POST":
            return self._rollover(segments[0], json.loads(request.content))
        if len(segments) == 2 and segments[1] == "_refresh" and method == "POST":
            return self._for_targets(segments[0], lambda names: {"_shards": {"failed": 0}})
        if len(segments) == 2 and segments[1] == "_count" and method == "GET":
            return self._for_targets(
                segments[0],
                lambda names: {"count": sum(len(self.indexes[n]["documents"]) for n in names)},
            )
        if len(segments) == 1 and method == "PUT":
            return self._create_index(segments[0], json.loads(request.content or b"{}"))
        return _error(404, "no_handler", f"{method} {path}")

    def _for_targets(self, targets: str, respond: Any) -> httpx.Response:
        names: set[str] = set()
        for target in targets.split(","):
            resolved = self.resolve(target)
            if not resolved:
                return _error(404, "index_not_found_exception", target)
            names.update(resolved)
        return httpx.Response(200, json=respond(sorted(names)))

    def _create_index(self, name: str, body: dict[str, Any]) -> httpx.Response:
        if name in self.indexes:
            return _error(400, "resource_already_exists_exception", name)
        aliases = body.pop("aliases", {})
        self.indexes[name] = {"aliases": aliases, "documents": {}, "body": body}
        return httpx.Response(200, json={"acknowledged": True, "index": name})

    def _write_index(self, alias: str) -> str | None:
        holders = self.resolve(alias)
        writers = [n for n in holders if self.indexes[n]["aliases"][alias].get("is_write_index")]
        if writers:
            return writers[0]
        return holders[0] if len(holders) == 1 else None

    def _rollover(self, alias: str, body: dict[str, Any]) -> httpx.Response:
        old = self._write_index(alias)
        if old is None:
            return _error(400, "illegal_argument_exception", f"no write index for [{alias}]")
        match = _GENERATION.match(old)
        if match is None:
            return _error(400, "illegal_argument_exception", f"cannot increment [{old}]")
        number = match["number"]
        new = f"{match['prefix']}{int(number) + 1:0{len(number)}d}"
        if new in self.indexes:
            return _error(400, "resource_already_exists_exception", new)

        self.indexes[old]["aliases"][alias] = {"is_write_index": False}
        self.indexes[new] = {
            "aliases": {alias: {"is_write_index": True}, **body.get("aliases", {})},
            "documents": {},
            "body": {k: v for k, v in body.items() if k != "aliases"},
        }
        return httpx.Response(
            200, json={"acknowledged": True, "old_index": old, "new_index": new, "rolled_over": True}
        )

    def _update_aliases(self, actions: list[dict[str, Any]]) -> httpx.Response:
        staged = json.loads(json.dumps(self.indexes))
        for action in actions:
            ((kind, params),) = action.items()
            index = params["index"]
            if index not in staged:
                return _error(404, "index_not_found_exception", index)
            if kind == "add":
                meta = {k: v for k, v in params.items() if k not in ("index", "alias")}
                staged[index]["aliases"][params["alias"]] = meta
            elif kind == "remove":
                staged[index]["aliases"].pop(params["alias"], None)
            elif kind == "remove_index":
                del staged[index]
            else:
                return _error(400, "illegal_argument_exception", kind)
        self.indexes = staged
        self.alias_updates.append(actions)
        return httpx.Response(200, json={"acknowledged": True})

    def _bulk(self, payload: str) -> httpx.Response:
        lines = [json.loads(line) for line in payload.splitlines() if line.strip()]
        items: list[dict[str, Any]] = []
        ids: list[str] = []
        for action, source in zip(lines[::2], lines[1::2], strict=True):
            params = action["index"]
            target = self._write_index(params["_index"])
            ids.append(params["_id"])
            if target is None:
                items.append(
                    {"index": {"_id": params["_id"], "status": 404, "error": "index_not_found"}}
                )
                continue
            self.indexes[target]["documents"][params["_id"]] = source
            items.append({"index": {"_index": target, "_id": params["_id"], "status": 201}})
        self.bulk_batches.append(ids)
        errors = any("error" in item["index"] for item in items)
        return httpx.Response(200, json={"took": 1, "errors": errors, "items": items})


def _error(status: int, kind: str, reason: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"type": kind, "reason": reason}, "status": status})


@pytest.fixture
def engine() -> FakeEngine:
    """Empty in-memory engine."""
    return FakeEngine()


@pytest.fixture
def engine_client(engine: FakeEngine) -> Iterator[SearchEngineClient]:
    """SearchEngineClient wired to the in-memory engine."""
    client = SearchEngineClient(ENGINE_URL, transport=engine.transport())
    yield client
    client.close()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by a test (CLI commands configure logging)."""
    yield
    structlog.reset_defaults()
