from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from room_gateway.db import Database
from room_gateway.hue_client import HueClient
from room_gateway.models import OFF_STATE, IntegrationType, Light, LightState, Result, Room
from room_gateway.orchestrator import RoomManager
from room_gateway.store import StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionHTTPResponse:
    status_code: int
    body: dict[str, Any]


class ActionError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


Handler = Callable[[str | None, dict[str, Any]], Awaitable[Any]]


def room_to_dict(room: Room) -> dict[str, Any]:
    return {
        "id": room.id,
        "name": room.name,
        "lightIds": list(room.light_ids),
        "integrationIds": {integration.value: group_id for integration, group_id in room.integration_ids.items()},
    }


def light_to_dict(light: Light) -> dict[str, Any]:
    return {
        "id": light.id,
        "name": light.name,
        "integrationType": light.integration_type.value,
        "integrationId": light.integration_id,
        "address": light.address,
        "state": light.state.to_dict(),
    }


def _state_from_args(value: Any) -> LightState:
    if not isinstance(value, dict):
        raise ActionError(status_code=400, code="invalid_state", message="state must be an object")
    on = value.get("on")
    brightness = value.get("brightness")
    if not isinstance(on, bool):
        raise ActionError(status_code=400, code="invalid_state", message="state.on must be boolean")
    if not isinstance(brightness, (int, float)) or isinstance(brightness, bool):
        raise ActionError(status_code=400, code="invalid_state", message="state.brightness must be number")
    try:
        return LightState(
            on=on,
            brightness=float(brightness),
            hue=float(value["hue"]) if value.get("hue") is not None else None,
            saturation=float(value["saturation"]) if value.get("saturation") is not None else None,
        )
    except (TypeError, ValueError) as exc:
        raise ActionError(status_code=400, code="invalid_state", message=str(exc)) from exc


def _integration_from_args(value: Any) -> IntegrationType:
    try:
        return IntegrationType(value)
    except ValueError as exc:
        raise ActionError(
            status_code=400,
            code="invalid_integrationType",
            message=f"integrationType must be one of {[i.value for i in IntegrationType]}",
        ) from exc


def _unwrap(result: Result) -> Any:
    if not result.ok:
        raise ActionError(
            status_code=502,
            code="operation_failed",
            message=result.message or "Operation failed",
        )
    return result.value


class ActionDispatcher:
    def __init__(self, *, db: Database, hue: HueClient, manager: RoomManager) -> None:
        self.db = db
        self.hue = hue
        self.manager = manager
        self._handlers: dict[str, Handler] = {
            "bridge.configure": self._bridge_configure,
            "light.upsert": self._light_upsert,
            "light.list": self._light_list,
            "room.create": self._room_create,
            "room.get": self._room_get,
            "room.list": self._room_list,
            "room.add_lights": self._room_add_lights,
            "room.remove_light": self._room_remove_light,
            "room.turn_on": self._room_turn_on,
            "room.turn_off": self._room_turn_off,
            "room.set_state": self._room_set_state,
            "room.delete": self._room_delete,
            "room.delete_all": self._room_delete_all,
            "room.integrations": self._room_integrations,
            "room.lights": self._room_lights,
        }

    async def dispatch(self, *, payload: dict[str, Any]) -> ActionHTTPResponse:
        request_id = payload.get("requestId")
        action = payload.get("action")
        args = payload.get("args") or {}

        if not isinstance(action, str) or not action:
            return self._error_response(
                request_id=request_id,
                action="",
                err=ActionError(
                    status_code=400,
                    code="invalid_action",
                    message="Field 'action' must be a non-empty string",
                ),
            )
        if not isinstance(args, dict):
            return self._error_response(
                request_id=request_id,
                action=action,
                err=ActionError(status_code=400, code="invalid_args", message="Field 'args' must be an object"),
            )

        handler = self._handlers.get(action)
        if not handler:
            return self._error_response(
                request_id=request_id,
                action=action,
                err=ActionError(status_code=400, code="unknown_action", message=f"Unknown action: {action}"),
            )

        try:
            result = await handler(request_id, args)
            return ActionHTTPResponse(
                status_code=200,
                body={"requestId": request_id, "action": action, "ok": True, "result": result},
            )
        except ActionError as err:
            return self._error_response(request_id=request_id, action=action, err=err)
        except StoreError as err:
            return self._error_response(
                request_id=request_id,
                action=action,
                err=ActionError(status_code=500, code="store_error", message=str(err)),
            )
        except Exception as err:
            logger.exception("Action %s failed", action)
            return self._error_response(
                request_id=request_id,
                action=action,
                err=ActionError(status_code=500, code="internal_error", message=str(err)),
            )

    @staticmethod
    def _error_response(*, request_id: str | None, action: str, err: ActionError) -> ActionHTTPResponse:
        body: dict[str, Any] = {
            "requestId": request_id,
            "action": action,
            "ok": False,
            "error": {"code": err.code, "message": err.message, "details": err.details},
        }
        return ActionHTTPResponse(status_code=err.status_code, body=body)

    async def _load_room(self, args: dict[str, Any]) -> Room:
        room_id = args.get("roomId")
        if not isinstance(room_id, str) or not room_id:
            raise ActionError(status_code=400, code="invalid_roomId", message="roomId must be a string")
        rooms = _unwrap(await self.manager.list_rooms())
        for room in rooms:
            if room.id == room_id:
                return room
        raise ActionError(status_code=404, code="not_found", message=f"No room with id was found: {room_id}")

    async def _load_lights(self, ids: Any) -> list[Light]:
        if not isinstance(ids, list) or not all(isinstance(i, str) and i for i in ids):
            raise ActionError(status_code=400, code="invalid_lightIds", message="lightIds must be a list of strings")
        lights = await self.manager.lights.get_lights_for_ids(ids)
        missing = sorted(set(ids) - {light.id for light in lights})
        if missing:
            raise ActionError(
                status_code=404,
                code="not_found",
                message="Unknown light ids",
                details={"missing": missing},
            )
        return lights

    async def _bridge_configure(self, request_id: str | None, args: dict[str, Any]):
        host = args.get("bridgeHost")
        if not isinstance(host, str) or not host.strip():
            raise ActionError(status_code=400, code="invalid_bridgeHost", message="bridgeHost must be a string")
        host = host.strip()
        if "://" in host or "/" in host or " " in host:
            raise ActionError(
                status_code=400,
                code="invalid_bridgeHost",
                message="bridgeHost must be an IP/hostname only (no scheme/path)",
            )
        application_key = args.get("applicationKey")
        if application_key is not None and (not isinstance(application_key, str) or not application_key):
            raise ActionError(status_code=400, code="invalid_applicationKey", message="applicationKey must be a string")

        await self.db.set_setting("bridge_host", host)
        if application_key:
            await self.db.set_setting("application_key", application_key)
        self.hue.configure(bridge_host=host, application_key=application_key or self.hue.application_key)
        return {"bridgeHost": host, "applicationKeyStored": bool(application_key), "stored": True}

    async def _light_upsert(self, request_id: str | None, args: dict[str, Any]):
        light_id = args.get("id")
        name = args.get("name")
        if not isinstance(light_id, str) or not light_id:
            raise ActionError(status_code=400, code="invalid_id", message="id must be a string")
        if not isinstance(name, str) or not name:
            raise ActionError(status_code=400, code="invalid_name", message="name must be a string")
        state = _state_from_args(args["state"]) if args.get("state") is not None else OFF_STATE
        light = Light(
            id=light_id,
            name=name,
            integration_type=_integration_from_args(args.get("integrationType")),
            state=state,
            integration_id=args.get("integrationId"),
            address=args.get("address"),
            access_token=args.get("accessToken"),
        )
        await self.manager.lights.upsert_light(light)
        return light_to_dict(light)

    async def _light_list(self, request_id: str | None, args: dict[str, Any]):
        return {"lights": [light_to_dict(light) for light in await self.manager.lights.list_lights()]}

    async def _room_create(self, request_id: str | None, args: dict[str, Any]):
        name = args.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ActionError(status_code=400, code="invalid_name", message="name must be a string")
        room = _unwrap(await self.manager.create_room(name.strip()))
        return room_to_dict(room)

    async def _room_get(self, request_id: str | None, args: dict[str, Any]):
        return room_to_dict(await self._load_room(args))

    async def _room_list(self, request_id: str | None, args: dict[str, Any]):
        rooms = _unwrap(await self.manager.list_rooms())
        return {"rooms": [room_to_dict(room) for room in rooms]}

    async def _room_add_lights(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        lights = await self._load_lights(args.get("lightIds", []))
        _unwrap(await self.manager.add_lights_to_room(room, lights))
        return room_to_dict(room)

    async def _room_remove_light(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        lights = await self._load_lights([args.get("lightId")])
        _unwrap(await self.manager.remove_light_from_room(room, lights[0]))
        return room_to_dict(room)

    async def _room_turn_on(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        _unwrap(await self.manager.turn_on_room_lights(room))
        return {"roomId": room.id, "on": True}

    async def _room_turn_off(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        _unwrap(await self.manager.turn_off_room_lights(room))
        return {"roomId": room.id, "on": False}

    async def _room_set_state(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        state = _state_from_args(args.get("state"))
        _unwrap(await self.manager.set_room_light_state(room, state))
        return {"roomId": room.id, "state": state.to_dict()}

    async def _room_delete(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        _unwrap(await self.manager.delete_room(room))
        return {"roomId": room.id, "deleted": True}

    async def _room_delete_all(self, request_id: str | None, args: dict[str, Any]):
        deleted = _unwrap(await self.manager.delete_all_rooms())
        return {"deleted": deleted}

    async def _room_integrations(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        integrations = _unwrap(await self.manager.get_room_integration_types(room))
        return {"roomId": room.id, "integrationTypes": sorted(i.value for i in integrations)}

    async def _room_lights(self, request_id: str | None, args: dict[str, Any]):
        room = await self._load_room(args)
        integration = _integration_from_args(args.get("integrationType"))
        lights = _unwrap(await self.manager.get_room_lights_of_integration(room, integration))
        return {"roomId": room.id, "lights": [light_to_dict(light) for light in lights]}
