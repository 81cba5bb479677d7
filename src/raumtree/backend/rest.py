"""HTTP/JSON object-tree backend.

Talks to a REST facade over the object store:

* ``GET|POST|PUT|DELETE {base}/v1/object/{id}``
* ``GET|PATCH|DELETE {base}/v1/state/{id}``
* ``GET {base}/v1/objects?filter={prefix}.*``

State timestamps travel as epoch milliseconds.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError
from yarl import URL

from raumtree.exceptions import BackendUnavailableError, RaumtreeError
from raumtree.models.tree import LeafState, TreeObject
from raumtree.tree.paths import is_direct_child

_logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    # Strict JSON has no NaN; an unparseable number is sent as null.
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _to_epoch_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def _from_epoch_ms(value: Any) -> datetime:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    return datetime.now(UTC)


class RestObjectTree:
    """aiohttp client for the object-tree REST facade.

    Usage::

        async with RestObjectTree("http://iobroker:8093") as backend:
            reconciler = TopologyReconciler(backend)
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._external_session = session is not None
        self._http_session = session

    async def __aenter__(self) -> RestObjectTree:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise RaumtreeError("Backend not open. Use 'async with RestObjectTree(...) as backend:'")
        return self._http_session

    def _url(self, kind: str, path: str) -> URL:
        return URL(f"{self._base_url}/v1/{kind}/{quote(path, safe='')}", encoded=True)

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self._token:
            headers["authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        url: URL,
        *,
        path: str,
        body: Any = None,
        params: dict[str, str] | None = None,
        allow: frozenset[int] = frozenset(),
    ) -> tuple[int, Any]:
        """Send a request; returns ``(status, decoded JSON or None)``.

        2xx and any status in *allow* are returned; everything else raises.
        """
        session = self._require_session()
        headers = self._headers()
        data: str | None = None
        if body is not None:
            headers["content-type"] = "application/json"
            data = json.dumps(body, separators=(",", ":"))

        _logger.debug("%s %s", method, url)
        try:
            async with session.request(method, url, data=data, params=params, headers=headers) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise BackendUnavailableError(f"{method} {path} failed: {exc}", path=path) from exc
        except TimeoutError as exc:
            raise BackendUnavailableError(f"{method} {path} timed out", path=path) from exc

        if status in allow:
            return status, None
        if not 200 <= status < 300:
            raise BackendUnavailableError(
                f"HTTP {status} from {method} {path}: {text[:200]}",
                status_code=status,
                path=path,
            )
        if not text.strip():
            return status, None
        try:
            return status, json.loads(text)
        except json.JSONDecodeError as exc:
            raise BackendUnavailableError(
                f"Invalid JSON from {method} {path}: {text[:200]}",
                status_code=status,
                path=path,
            ) from exc

    # ------------------------------------------------------------------
    # ObjectTreeBackend
    # ------------------------------------------------------------------

    async def get_object(self, path: str) -> TreeObject | None:
        status, payload = await self._request("GET", self._url("object", path), path=path, allow=frozenset({404}))
        if status == 404 or not isinstance(payload, dict):
            return None
        try:
            return TreeObject.model_validate(payload)
        except ValidationError as exc:
            raise BackendUnavailableError(f"Unexpected object at {path}: {exc}", path=path) from exc

    async def create_if_absent(self, path: str, descriptor: TreeObject) -> bool:
        if await self.get_object(path) is not None:
            return False
        status, _ = await self._request(
            "POST",
            self._url("object", path),
            path=path,
            body=descriptor.model_dump(mode="json", exclude_none=True),
            allow=frozenset({409}),
        )
        # 409: created concurrently between the read and the write.
        return status != 409

    async def create_or_replace(self, path: str, descriptor: TreeObject) -> None:
        await self._request(
            "PUT",
            self._url("object", path),
            path=path,
            body=descriptor.model_dump(mode="json", exclude_none=True),
        )

    async def write_value(self, path: str, value: Any, *, ack: bool, ts: datetime | None = None) -> None:
        body: dict[str, Any] = {"val": _json_value(value), "ack": ack}
        if ts is not None:
            body["ts"] = _to_epoch_ms(ts)
        await self._request("PATCH", self._url("state", path), path=path, body=body)

    async def get_state(self, path: str) -> LeafState | None:
        status, payload = await self._request("GET", self._url("state", path), path=path, allow=frozenset({404}))
        if status == 404 or not isinstance(payload, dict):
            return None
        return LeafState(val=payload.get("val"), ack=bool(payload.get("ack")), ts=_from_epoch_ms(payload.get("ts")))

    async def delete_value(self, path: str) -> None:
        await self._request("DELETE", self._url("state", path), path=path, allow=frozenset({404}))

    async def delete_node(self, path: str, *, recursive: bool = False) -> None:
        params = {"recursive": "true"} if recursive else None
        await self._request("DELETE", self._url("object", path), path=path, params=params, allow=frozenset({404}))

    async def list_children(self, prefix: str) -> list[str]:
        url = URL(f"{self._base_url}/v1/objects", encoded=True)
        _, payload = await self._request("GET", url, path=prefix, params={"filter": f"{prefix}.*"})
        if not isinstance(payload, dict):
            raise BackendUnavailableError(f"Unexpected object listing for {prefix}", path=prefix)
        return sorted(path for path in payload if is_direct_child(prefix, path))
