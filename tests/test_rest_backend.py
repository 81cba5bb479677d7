from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from raumtree.backend.rest import RestObjectTree
from raumtree.exceptions import BackendUnavailableError
from raumtree.ingestion.snapshot import parse_snapshot
from raumtree.models.tree import NodeType, TreeObject, ValueType
from raumtree.reconcile import TopologyReconciler

TOKEN = "secret-token"


@dataclass
class FakeObjectApi:
    objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    states: dict[str, dict[str, Any]] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_status: int | None = None

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._guard])
        app.router.add_get("/v1/object/{id}", self.get_object)
        app.router.add_post("/v1/object/{id}", self.post_object)
        app.router.add_put("/v1/object/{id}", self.put_object)
        app.router.add_delete("/v1/object/{id}", self.delete_object)
        app.router.add_get("/v1/state/{id}", self.get_state)
        app.router.add_patch("/v1/state/{id}", self.patch_state)
        app.router.add_delete("/v1/state/{id}", self.delete_state)
        app.router.add_get("/v1/objects", self.list_objects)
        return app

    @web.middleware
    async def _guard(self, request: web.Request, handler: Any) -> web.StreamResponse:
        self.calls.append((request.method, request.match_info.get("id", "")))
        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return web.json_response({"error": "unauthorized"}, status=401)
        if self.fail_status is not None:
            return web.json_response({"error": "unavailable"}, status=self.fail_status)
        return await handler(request)

    async def get_object(self, request: web.Request) -> web.Response:
        obj = self.objects.get(request.match_info["id"])
        if obj is None:
            return web.json_response({"error": "not found"}, status=404)
        return web.json_response(obj)

    async def post_object(self, request: web.Request) -> web.Response:
        object_id = request.match_info["id"]
        if object_id in self.objects:
            return web.json_response({"error": "exists"}, status=409)
        self.objects[object_id] = await request.json()
        return web.json_response({"id": object_id}, status=201)

    async def put_object(self, request: web.Request) -> web.Response:
        self.objects[request.match_info["id"]] = await request.json()
        return web.json_response({"id": request.match_info["id"]})

    async def delete_object(self, request: web.Request) -> web.Response:
        object_id = request.match_info["id"]
        if request.query.get("recursive") == "true":
            doomed = [key for key in self.objects if key == object_id or key.startswith(object_id + ".")]
        else:
            doomed = [object_id] if object_id in self.objects else []
        if not doomed:
            return web.json_response({"error": "not found"}, status=404)
        for key in doomed:
            self.objects.pop(key, None)
            self.states.pop(key, None)
        return web.json_response({})

    async def get_state(self, request: web.Request) -> web.Response:
        state = self.states.get(request.match_info["id"])
        if state is None:
            return web.json_response({"error": "not found"}, status=404)
        return web.json_response(state)

    async def patch_state(self, request: web.Request) -> web.Response:
        self.states[request.match_info["id"]] = await request.json()
        return web.json_response({})

    async def delete_state(self, request: web.Request) -> web.Response:
        if self.states.pop(request.match_info["id"], None) is None:
            return web.json_response({"error": "not found"}, status=404)
        return web.json_response({})

    async def list_objects(self, request: web.Request) -> web.Response:
        pattern = request.query.get("filter", "*")
        prefix = pattern[:-1] if pattern.endswith("*") else pattern
        return web.json_response({key: obj for key, obj in self.objects.items() if key.startswith(prefix)})


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_reconcile_against_rest_backend() -> None:
    api = FakeObjectApi()
    first = parse_snapshot(
        {
            "zones": [{"rooms": [{"name": "Schlafzimmer", "powerState": "ACTIVE", "udn": "uuid:8b4e"}]}],
            "unassignedRooms": [{"name": "Küche", "udn": "uuid:kueche"}],
        }
    )
    second = parse_snapshot({"zones": [{"rooms": [{"name": "Schlafzimmer", "udn": "uuid:8b4e"}]}]})

    async with TestServer(api.app()) as server:
        async with RestObjectTree(f"http://{server.host}:{server.port}", token=TOKEN) as backend:
            reconciler = TopologyReconciler(backend, clock=_dt)
            report = await reconciler.reconcile(first)
            assert report.ok

            assert api.objects["rooms.Schlafzimmer"]["type"] == "device"
            assert api.objects["rooms.Küche"]["common"]["name"] == "Küche"
            assert api.objects["rooms.Schlafzimmer.powerState"]["common"]["type"] == "string"
            assert api.states["rooms.Schlafzimmer.powerState"] == {
                "val": "ACTIVE",
                "ack": True,
                "ts": int(_dt().timestamp() * 1000),
            }

            report = await reconciler.reconcile(second)

            assert report.removed == ["rooms.Küche"]
            assert "rooms.Schlafzimmer.powerState" not in api.objects
            assert "rooms.Schlafzimmer.powerState" not in api.states
            assert not any(key.startswith("rooms.Küche") for key in api.objects)

            state = await backend.get_state("rooms.Schlafzimmer.udn")
            assert state is not None
            assert state.val == "uuid:8b4e"
            assert state.ts == _dt()


@pytest.mark.asyncio
async def test_create_if_absent_and_replace() -> None:
    api = FakeObjectApi()

    async with TestServer(api.app()) as server:
        async with RestObjectTree(f"http://{server.host}:{server.port}", token=TOKEN) as backend:
            descriptor = TreeObject.node("Living Room", NodeType.DEVICE)
            assert await backend.create_if_absent("rooms.Living Room", descriptor) is True
            assert await backend.create_if_absent("rooms.Living Room", descriptor) is False

            await backend.create_or_replace("rooms.Living Room", TreeObject.node("Wohnzimmer", NodeType.CHANNEL))
            stored = await backend.get_object("rooms.Living Room")
            assert stored is not None
            assert stored.type == NodeType.CHANNEL
            assert stored.common.name == "Wohnzimmer"

            assert await backend.list_children("rooms") == ["rooms.Living Room"]
            assert await backend.get_object("rooms.missing") is None
            assert await backend.get_state("rooms.missing") is None


@pytest.mark.asyncio
async def test_nan_is_sent_as_null() -> None:
    api = FakeObjectApi()

    async with TestServer(api.app()) as server:
        async with RestObjectTree(f"http://{server.host}:{server.port}", token=TOKEN) as backend:
            await backend.create_if_absent("rooms.Bad.volume", TreeObject.leaf("volume", ValueType.NUMBER))
            await backend.write_value("rooms.Bad.volume", math.nan, ack=True)

    assert api.states["rooms.Bad.volume"]["val"] is None


@pytest.mark.asyncio
async def test_http_errors_raise_backend_unavailable() -> None:
    api = FakeObjectApi(fail_status=503)

    async with TestServer(api.app()) as server:
        async with RestObjectTree(f"http://{server.host}:{server.port}", token=TOKEN) as backend:
            with pytest.raises(BackendUnavailableError) as excinfo:
                await backend.write_value("rooms.Bad.name", "Bad", ack=True)

    assert excinfo.value.status_code == 503
    assert excinfo.value.path == "rooms.Bad.name"


@pytest.mark.asyncio
async def test_missing_token_is_rejected() -> None:
    api = FakeObjectApi()

    async with TestServer(api.app()) as server:
        async with RestObjectTree(f"http://{server.host}:{server.port}") as backend:
            with pytest.raises(BackendUnavailableError) as excinfo:
                await backend.list_children("rooms")

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_connection_failure_raises_backend_unavailable() -> None:
    async with RestObjectTree("http://127.0.0.1:1", timeout=2.0) as backend:
        with pytest.raises(BackendUnavailableError):
            await backend.get_object("rooms.Bad")
