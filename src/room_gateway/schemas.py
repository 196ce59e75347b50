from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, RootModel

from room_gateway.models import IntegrationType


class HealthResponse(BaseModel):
    ok: bool = Field(..., description="Process is alive.")


class _BaseActionRequest(BaseModel):
    requestId: str | None = Field(
        default=None,
        description="Optional client-provided id used for correlating logs and responses.",
        examples=["req-123"],
    )


class _RoomArgs(BaseModel):
    roomId: str = Field(..., min_length=1, description="Room id as returned by `room.create`.")


class _NoArgs(BaseModel):
    pass


class LightStateArgs(BaseModel):
    on: bool = Field(..., description="Turn on/off.")
    brightness: float = Field(..., ge=0.0, le=1.0, description="Normalized brightness 0.0-1.0.")
    hue: float | None = Field(default=None, ge=0.0, lt=360.0, description="Hue in degrees; omitted keeps the current hue.")
    saturation: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Saturation 0.0-1.0; omitted keeps the current saturation."
    )


class BridgeConfigureArgs(BaseModel):
    bridgeHost: str = Field(..., min_length=1, description="Hue Bridge IP/hostname on the LAN (no scheme/path).")
    applicationKey: str | None = Field(default=None, description="Hue application key (username) issued by the bridge.")


class BridgeConfigureRequest(_BaseActionRequest):
    action: Literal["bridge.configure"] = Field("bridge.configure", description="Persist Hue bridge settings.")
    args: BridgeConfigureArgs


class LightUpsertArgs(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    integrationType: IntegrationType
    integrationId: str | None = Field(default=None, description="Vendor-side device id (Hue bridge light number).")
    address: str | None = Field(default=None, description="Device host for Nanoleaf controllers.")
    accessToken: str | None = Field(default=None, description="Device auth token for Nanoleaf controllers.")
    state: LightStateArgs | None = None


class LightUpsertRequest(_BaseActionRequest):
    action: Literal["light.upsert"] = Field("light.upsert", description="Create or update a light record.")
    args: LightUpsertArgs


class LightListRequest(_BaseActionRequest):
    action: Literal["light.list"] = Field("light.list", description="List stored lights.")
    args: _NoArgs = Field(default_factory=_NoArgs)


class RoomCreateArgs(BaseModel):
    name: str = Field(..., min_length=1, examples=["Living room"])


class RoomCreateRequest(_BaseActionRequest):
    action: Literal["room.create"] = Field("room.create", description="Create an empty room.")
    args: RoomCreateArgs


class RoomGetRequest(_BaseActionRequest):
    action: Literal["room.get"] = Field("room.get", description="Fetch one room.")
    args: _RoomArgs


class RoomListRequest(_BaseActionRequest):
    action: Literal["room.list"] = Field("room.list", description="List rooms.")
    args: _NoArgs = Field(default_factory=_NoArgs)


class RoomAddLightsArgs(_RoomArgs):
    lightIds: list[str] = Field(default_factory=list)


class RoomAddLightsRequest(_BaseActionRequest):
    action: Literal["room.add_lights"] = Field("room.add_lights", description="Add lights to a room.")
    args: RoomAddLightsArgs


class RoomRemoveLightArgs(_RoomArgs):
    lightId: str = Field(..., min_length=1)


class RoomRemoveLightRequest(_BaseActionRequest):
    action: Literal["room.remove_light"] = Field("room.remove_light", description="Remove one light from a room.")
    args: RoomRemoveLightArgs


class RoomTurnOnRequest(_BaseActionRequest):
    action: Literal["room.turn_on"] = Field("room.turn_on", description="Turn every light of the room on.")
    args: _RoomArgs


class RoomTurnOffRequest(_BaseActionRequest):
    action: Literal["room.turn_off"] = Field("room.turn_off", description="Turn every light of the room off.")
    args: _RoomArgs


class RoomSetStateArgs(_RoomArgs):
    state: LightStateArgs


class RoomSetStateRequest(_BaseActionRequest):
    action: Literal["room.set_state"] = Field("room.set_state", description="Apply one state to every light.")
    args: RoomSetStateArgs


class RoomDeleteRequest(_BaseActionRequest):
    action: Literal["room.delete"] = Field("room.delete", description="Delete a room and its vendor groups.")
    args: _RoomArgs


class RoomDeleteAllRequest(_BaseActionRequest):
    action: Literal["room.delete_all"] = Field("room.delete_all", description="Delete every room.")
    args: _NoArgs = Field(default_factory=_NoArgs)


class RoomIntegrationsRequest(_BaseActionRequest):
    action: Literal["room.integrations"] = Field("room.integrations", description="Integration types used by a room.")
    args: _RoomArgs


class RoomLightsArgs(_RoomArgs):
    integrationType: IntegrationType


class RoomLightsRequest(_BaseActionRequest):
    action: Literal["room.lights"] = Field("room.lights", description="Room lights of one integration type.")
    args: RoomLightsArgs


_ActionUnion = Annotated[
    Union[
        BridgeConfigureRequest,
        LightUpsertRequest,
        LightListRequest,
        RoomCreateRequest,
        RoomGetRequest,
        RoomListRequest,
        RoomAddLightsRequest,
        RoomRemoveLightRequest,
        RoomTurnOnRequest,
        RoomTurnOffRequest,
        RoomSetStateRequest,
        RoomDeleteRequest,
        RoomDeleteAllRequest,
        RoomIntegrationsRequest,
        RoomLightsRequest,
    ],
    Field(discriminator="action"),
]


class ActionRequest(RootModel[_ActionUnion]):
    """One action request; the `action` field selects the concrete model."""


class ActionError(BaseModel):
    code: str = Field(..., description="Machine-readable error code.")
    message: str = Field(..., description="Human-readable error message.")
    details: dict[str, Any] = Field(default_factory=dict)


class ActionSuccessResponse(BaseModel):
    requestId: str | None = None
    action: str
    ok: Literal[True] = True
    result: Any


class ActionFailureResponse(BaseModel):
    requestId: str | None = None
    action: str
    ok: Literal[False] = False
    error: ActionError


ActionResponse = ActionSuccessResponse | ActionFailureResponse
