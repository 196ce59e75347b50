from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Callable

from fastapi import Body, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from room_gateway.actions import ActionDispatcher
from room_gateway.config import AppConfig
from room_gateway.db import Database
from room_gateway.event_hub import EventHub
from room_gateway.hue_client import HueClient
from room_gateway.nanoleaf_client import NanoleafClient
from room_gateway.orchestrator import RoomManager
from room_gateway.schemas import ActionRequest, ActionResponse, HealthResponse
from room_gateway.store import LightStore, RoomStore
from room_gateway.strategies import StrategyTable


@dataclass
class AppState:
    config: AppConfig
    db: Database
    hue: HueClient
    nanoleaf: NanoleafClient
    manager: RoomManager
    dispatcher: ActionDispatcher
    hub: EventHub


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = AppConfig.from_env()
    db = Database(db_path=config.db_path)
    await db.connect()

    # Env wins; DB is fallback.
    bridge_host = config.bridge_host or await db.get_setting("bridge_host")
    application_key = config.application_key or await db.get_setting("application_key")
    config = replace(config, bridge_host=bridge_host, application_key=application_key)

    hue = HueClient(
        bridge_host=config.bridge_host,
        application_key=config.application_key,
        max_attempts=config.retry_max_attempts,
        base_delay_ms=config.retry_base_delay_ms,
    )
    nanoleaf = NanoleafClient(port=config.nanoleaf_port)
    hub = EventHub()
    manager = RoomManager(
        rooms=RoomStore(db),
        lights=LightStore(db),
        strategies=StrategyTable.default(hue=hue, nanoleaf=nanoleaf),
        hub=hub,
        operation_timeout=config.operation_timeout_seconds,
    )
    dispatcher = ActionDispatcher(db=db, hue=hue, manager=manager)

    app.state.state = AppState(
        config=config,
        db=db,
        hue=hue,
        nanoleaf=nanoleaf,
        manager=manager,
        dispatcher=dispatcher,
        hub=hub,
    )
    try:
        yield
    finally:
        await manager.drain()
        await hue.close()
        await nanoleaf.close()
        await db.close()


app = FastAPI(
    title="Room Gateway",
    version="0.1.0",
    description=(
        "# Room Gateway API\n\n"
        "Groups Phillips Hue and Nanoleaf lights into rooms and applies room-wide operations.\n\n"
        "## Endpoints\n"
        "- `GET /healthz` liveness\n"
        "- `POST /v1/actions` single action endpoint (`action` discriminator)\n"
        "- `GET /v1/events/stream` SSE stream of room events and soft warnings\n\n"
        "## Common errors\n"
        "- **400** invalid JSON / invalid args / unknown action\n"
        "- **404** unknown room or light\n"
        "- **502** a vendor or store step of the room operation failed\n"
    ),
    lifespan=lifespan,
)

logger = logging.getLogger("room_gateway")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    code = "invalid_request"
    message = "Request validation failed"
    details: dict = {"errors": json.loads(json.dumps(exc.errors(), default=str))}
    errors = exc.errors()
    types = {err.get("type") for err in errors}
    if "json_invalid" in types:
        code = "invalid_json"
        message = "Request body must be valid JSON"
        err = next(err for err in errors if err.get("type") == "json_invalid")
        details = {"error": str(err.get("msg", "invalid json"))}
    elif "union_tag_invalid" in types:
        code = "unknown_action"
        message = "Unknown action"
    elif "union_tag_not_found" in types:
        code = "invalid_action"
        message = "Field 'action' must be a non-empty string"
    else:
        for err in errors:
            loc = tuple(err.get("loc") or ())
            # Discriminated unions put the action tag between "body" and "args".
            if len(loc) >= 2 and loc[0] == "body" and "args" in loc[1:3]:
                code = "invalid_args"
                message = "Field 'args' must match the action schema"
                break

    payload = {
        "requestId": request.headers.get("x-request-id"),
        "action": "",
        "ok": False,
        "error": {"code": code, "message": message, "details": details},
    }
    return JSONResponse(payload, status_code=status.HTTP_400_BAD_REQUEST)


@app.middleware("http")
async def access_log(request: Request, call_next: Callable[[Request], Response]):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s -> %s (%.1fms) rid=%s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        request.headers.get("x-request-id", ""),
    )
    return response


@app.get("/healthz", summary="Liveness check", response_model=HealthResponse, tags=["meta"])
async def healthz() -> HealthResponse:
    return {"ok": True}


@app.post(
    "/v1/actions",
    summary="Single action endpoint",
    response_model=ActionResponse,
    responses={
        400: {"description": "Bad request / invalid JSON / unknown action / invalid args."},
        404: {"description": "Unknown room or light."},
        502: {"description": "Room operation failed at a vendor or the store."},
        500: {"description": "Internal server error."},
    },
    tags=["actions"],
)
async def actions(
    payload: ActionRequest = Body(
        ...,
        openapi_examples={
            "room_create": {
                "summary": "Create a room",
                "value": {"action": "room.create", "args": {"name": "Living room"}},
            },
            "room_turn_on": {
                "summary": "Turn a room on",
                "value": {"action": "room.turn_on", "args": {"roomId": "<room id>"}},
            },
            "room_set_state": {
                "summary": "Dim a room to 40% warm red",
                "value": {
                    "action": "room.set_state",
                    "args": {"roomId": "<room id>", "state": {"on": True, "brightness": 0.4, "hue": 10.0}},
                },
            },
        },
    ),
) -> ActionResponse:
    state: AppState = app.state.state
    response = await state.dispatcher.dispatch(payload=payload.model_dump(mode="json"))
    return JSONResponse(response.body, status_code=response.status_code)


@app.get(
    "/v1/events/stream",
    summary="Room event stream (SSE)",
    description=(
        "Each event is one `data: <json>` frame. Soft warnings (e.g. failing to mirror a room's "
        "state into the store) arrive as `room.warning` events. `: keepalive` comments are sent "
        "while idle.\n"
    ),
    tags=["events"],
    responses={200: {"content": {"text/event-stream": {"schema": {"type": "string"}}}}},
)
async def events_stream():
    state: AppState = app.state.state
    subscription = await state.hub.subscribe()

    async def _gen():
        try:
            while True:
                try:
                    event = await asyncio.wait_for(subscription.queue.get(), timeout=15.0)
                    yield f"data: {json.dumps(event, separators=(',', ':'))}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            await subscription.unsubscribe()

    return StreamingResponse(_gen(), media_type="text/event-stream")
