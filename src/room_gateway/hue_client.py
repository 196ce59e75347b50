from __future__ import annotations

from typing import Any

import httpx

from room_gateway.models import LightState
from room_gateway.vendor_http import (
    JSONishResult,
    VendorHTTPClient,
    VendorProtocolError,
    VendorTransportError,
    VendorUpstreamError,
)


def hue_state_payload(state: LightState) -> dict[str, Any]:
    # Hue v1 ranges: bri 1-254, hue 0-65535, sat 0-254.
    payload: dict[str, Any] = {
        "on": state.on,
        "bri": max(1, min(254, int(round(state.brightness * 254)))),
    }
    if state.hue is not None:
        payload["hue"] = int(round(state.hue / 360.0 * 65535)) % 65536
    if state.saturation is not None:
        payload["sat"] = max(0, min(254, int(round(state.saturation * 254))))
    return payload


class HueClient(VendorHTTPClient):
    """Hue bridge REST (v1) client limited to group management and group actions."""

    vendor_name = "Hue bridge"

    def __init__(
        self,
        *,
        bridge_host: str | None,
        application_key: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = 1,
        base_delay_ms: int = 200,
    ) -> None:
        super().__init__(transport=transport, verify=False)
        self._bridge_host = bridge_host
        self._application_key = application_key
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms

    def configure(self, *, bridge_host: str | None, application_key: str | None) -> None:
        changed = (bridge_host != self._bridge_host) or (application_key != self._application_key)
        self._bridge_host = bridge_host
        self._application_key = application_key
        if changed:
            self._drop_client()

    @property
    def bridge_host(self) -> str | None:
        return self._bridge_host

    @property
    def application_key(self) -> str | None:
        return self._application_key

    def _base_url(self) -> str:
        if not self._bridge_host:
            raise VendorTransportError("bridge_host not configured")
        return f"https://{self._bridge_host}"

    def _groups_path(self, group_id: str | None = None) -> str:
        if not self._application_key:
            raise VendorTransportError("application_key not configured")
        path = f"/api/{self._application_key}/groups"
        return f"{path}/{group_id}" if group_id is not None else path

    def _raise_for_bridge_errors(self, result: JSONishResult) -> Any:
        # The v1 API reports failures as 200 + [{"error": {...}}].
        body = result.body
        if isinstance(body, list):
            errors = [item["error"] for item in body if isinstance(item, dict) and "error" in item]
            if errors:
                raise VendorUpstreamError(status_code=result.status_code, body=errors, vendor=self.vendor_name)
        return body

    async def create_group_with_lights(self, *, name: str, light_ids: list[str]) -> str:
        result = await self.request_jsonish(
            method="POST",
            path=self._groups_path(),
            json_body={"name": name, "lights": list(light_ids), "type": "LightGroup"},
        )
        body = self._raise_for_bridge_errors(result)
        # Expected: [{"success": {"id": "<group id>"}}]
        try:
            group_id = body[0]["success"]["id"]
        except (IndexError, KeyError, TypeError) as exc:
            raise VendorProtocolError(f"Unexpected group creation response: {body!r}") from exc
        if not isinstance(group_id, (str, int)) or isinstance(group_id, bool):
            raise VendorProtocolError(f"Unexpected group id in response: {group_id!r}")
        return str(group_id)

    async def set_group_light_state(self, *, group_id: str, state: LightState) -> None:
        result = await self.request_jsonish(
            method="PUT",
            path=f"{self._groups_path(group_id)}/action",
            json_body=hue_state_payload(state),
            retry=True,
            max_attempts=self._max_attempts,
            base_delay_ms=self._base_delay_ms,
        )
        self._raise_for_bridge_errors(result)

    async def set_group_lights(self, *, group_id: str, light_ids: list[str]) -> None:
        result = await self.request_jsonish(
            method="PUT",
            path=self._groups_path(group_id),
            json_body={"lights": list(light_ids)},
            retry=True,
            max_attempts=self._max_attempts,
            base_delay_ms=self._base_delay_ms,
        )
        self._raise_for_bridge_errors(result)

    async def delete_group(self, *, group_id: str) -> None:
        result = await self.request_jsonish(method="DELETE", path=self._groups_path(group_id))
        self._raise_for_bridge_errors(result)
