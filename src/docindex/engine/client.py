"""HTTP client for the search engine REST API.

Only the handful of endpoints the reindexing protocol needs are exposed.
Every transport or HTTP failure surfaces as an ``EngineError``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from docindex.core.errors import EngineError

if TYPE_CHECKING:
    from docindex.config.models import EngineConfig

logger = structlog.get_logger()

HEALTH_PATH = "/_cluster/health"


class SearchEngineClient:
    """Thin synchronous wrapper over ``httpx.Client``.

    Safe to share between the indexing worker threads.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_config(
        cls, config: EngineConfig, transport: httpx.BaseTransport | None = None
    ) -> SearchEngineClient:
        return cls(config.url, timeout=config.request_timeout_sec, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> SearchEngineClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -----------------------------------------------------------------
    # Probes
    # -----------------------------------------------------------------

    def ping(self) -> bool:
        """Whether the engine answers at all."""
        try:
            self._request("GET", "/")
            return True
        except EngineError as e:
            logger.debug("engine_not_reachable", error=str(e))
            return False

    def is_healthy(self) -> bool:
        """Whether the cluster reports green status right now."""
        try:
            self._request(
                "GET", HEALTH_PATH, params={"wait_for_status": "green", "timeout": "0s"}
            )
            return True
        except EngineError as e:
            logger.debug("engine_not_healthy", error=str(e))
            return False

    # -----------------------------------------------------------------
    # Indexes and aliases
    # -----------------------------------------------------------------

    def rollover(
        self, write_alias: str, mappings: dict[str, Any], settings: dict[str, Any]
    ) -> tuple[str, str]:
        """Create a new index behind ``write_alias``. Returns ``(old_index, new_index)``.

        The empty ``aliases`` object keeps the read alias from being copied over:
        only the write alias moves to the new index.
        """
        path = f"/{write_alias}/_rollover"
        body = {"mappings": mappings, "settings": settings, "aliases": {}}
        data = self._json("POST", path, json_body=body)
        try:
            return str(data["old_index"]), str(data["new_index"])
        except KeyError as e:
            raise EngineError.bad_response("POST", path, f"missing {e}") from e

    def get_aliases(self) -> dict[str, Any]:
        """Map of physical index name to ``{"aliases": {alias: metadata}}``."""
        return self._json("GET", "/_aliases")

    def update_aliases(self, actions: list[dict[str, Any]]) -> None:
        """Apply all alias actions in one request; the engine applies them atomically."""
        self._request("POST", "/_aliases", json_body={"actions": actions})

    def create_index(self, name: str, body: dict[str, Any]) -> None:
        self._request("PUT", f"/{name}", json_body=body)

    def refresh(self, targets: list[str]) -> None:
        self._request("POST", f"/{','.join(targets)}/_refresh")

    def count(self, targets: list[str]) -> int:
        path = f"/{','.join(targets)}/_count"
        data = self._json("GET", path)
        try:
            return int(data["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise EngineError.bad_response("GET", path, f"no usable count: {e}") from e

    def bulk(self, operations: list[dict[str, Any]]) -> dict[str, Any]:
        """Send NDJSON bulk operations (action and source lines interleaved)."""
        payload = "".join(json.dumps(op, separators=(",", ":")) + "\n" for op in operations)
        return self._json(
            "POST",
            "/_bulk",
            content=payload.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
        )

    # -----------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = self._http.request(
                method, path, json=json_body, content=content, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            raise EngineError.unreachable(self.base_url, str(e)) from e

        if response.is_error:
            raise EngineError.request_failed(method, path, response.status_code, response.text)
        return response

    def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = self._request(method, path, **kwargs)
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise EngineError.bad_response(method, path, str(e)) from e
        if not isinstance(data, dict):
            raise EngineError.bad_response(method, path, "expected a JSON object")
        return data
