import asyncio
import json

import httpx
import pytest


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Hermetic: in-memory DB, no Hue bridge.
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.delenv("HUE_BRIDGE_HOST", raising=False)
    monkeypatch.delenv("HUE_APPLICATION_KEY", raising=False)


@pytest.mark.asyncio
async def test_healthz():
    from room_gateway.app import app, lifespan

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/healthz")
            assert resp.status_code == 200
            assert resp.json() == {"ok": True}


@pytest.mark.asyncio
async def test_actions_success_envelope():
    from room_gateway.app import app, lifespan

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            created = await client.post("/v1/actions", json={"action": "room.create", "args": {"name": "Den"}})
            assert created.status_code == 200
            body = created.json()
            assert set(body.keys()) == {"requestId", "action", "ok", "result"}
            assert body["ok"] is True
            room_id = body["result"]["id"]

            on = await client.post(
                "/v1/actions",
                json={"requestId": "r2", "action": "room.turn_on", "args": {"roomId": room_id}},
            )
            assert on.status_code == 200
            assert on.json() == {"requestId": "r2", "action": "room.turn_on", "ok": True, "result": {"roomId": room_id, "on": True}}

            listed = await client.post("/v1/actions", json={"action": "room.list"})
            assert [room["id"] for room in listed.json()["result"]["rooms"]] == [room_id]


@pytest.mark.asyncio
async def test_actions_error_envelopes():
    from room_gateway.app import app, lifespan

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            unknown = await client.post("/v1/actions", json={"action": "room.paint", "args": {}})
            assert unknown.status_code == 400
            assert unknown.json()["error"]["code"] == "unknown_action"

            invalid = await client.post("/v1/actions", json={"action": "room.create", "args": {}})
            assert invalid.status_code == 400
            assert invalid.json()["error"]["code"] == "invalid_args"

            broken = await client.post(
                "/v1/actions",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
            assert broken.status_code == 400
            assert broken.json()["error"]["code"] == "invalid_json"

            missing = await client.post("/v1/actions", json={"action": "room.get", "args": {"roomId": "nope"}})
            assert missing.status_code == 404
            body = missing.json()
            assert set(body.keys()) == {"requestId", "action", "ok", "error"}
            assert set(body["error"].keys()) == {"code", "message", "details"}
            assert body["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_events_stream_relays_room_warnings():
    from room_gateway.app import app, events_stream, lifespan

    async with lifespan(app):
        resp = await events_stream()
        await app.state.state.hub.publish_warning(room_id="r1", message="Failed to set room lights in db")

        first = await asyncio.wait_for(resp.body_iterator.__anext__(), timeout=3.0)  # type: ignore[attr-defined]
        if isinstance(first, bytes):
            first = first.decode("utf-8", "ignore")
        assert first.startswith("data: ")
        payload = json.loads(first[len("data: ") :].strip())
        assert payload["type"] == "room.warning"
        assert payload["room"] == {"id": "r1"}
        assert payload["data"] == {"message": "Failed to set room lights in db"}
        await resp.body_iterator.aclose()  # type: ignore[attr-defined]
