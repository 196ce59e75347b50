from __future__ import annotations

from typing import Any

import httpx

from room_gateway.models import Light, LightState
from room_gateway.vendor_http import VendorHTTPClient, VendorTransportError


def nanoleaf_state_payload(state: LightState) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "on": {"value": state.on},
        "brightness": {"value": max(0, min(100, int(round(state.brightness * 100))))},
    }
    if state.hue is not None:
        payload["hue"] = {"value": int(round(state.hue)) % 360}
    if state.saturation is not None:
        payload["sat"] = {"value": max(0, min(100, int(round(state.saturation * 100))))}
    return payload


class NanoleafClient(VendorHTTPClient):
    """
    Per-device client: every Nanoleaf controller is its own HTTP endpoint,
    so requests carry absolute URLs built from the light record.
    """

    vendor_name = "Nanoleaf"

    def __init__(
        self,
        *,
        port: int = 16021,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport=transport)
        self._port = port

    def state_url(self, light: Light) -> str:
        if not light.address:
            raise VendorTransportError(f"Nanoleaf light {light.id} has no address")
        if not light.access_token:
            raise VendorTransportError(f"Nanoleaf light {light.id} has no access token")
        host = light.address if ":" in light.address else f"{light.address}:{self._port}"
        return f"http://{host}/api/v1/{light.access_token}/state"

    async def set_light_state(self, light: Light, state: LightState) -> None:
        # Not retried: the sequential strategy fails fast per device.
        await self.request_jsonish(method="PUT", path=self.state_url(light), json_body=nanoleaf_state_payload(state))
