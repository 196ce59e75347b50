import json

import httpx
import pytest

from room_gateway.models import LightState
from room_gateway.nanoleaf_client import NanoleafClient, nanoleaf_state_payload
from room_gateway.vendor_http import VendorTransportError, VendorUpstreamError


@pytest.mark.asyncio
async def test_set_light_state_puts_to_device_url(nanoleaf_light):
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    client = NanoleafClient(transport=httpx.MockTransport(handler))
    try:
        await client.set_light_state(nanoleaf_light(5), LightState(on=True, brightness=0.4, hue=350.0, saturation=0.5))
        assert seen["method"] == "PUT"
        assert seen["url"] == "http://10.0.0.5:16021/api/v1/tok5/state"
        assert seen["body"] == {
            "on": {"value": True},
            "brightness": {"value": 40},
            "hue": {"value": 350},
            "sat": {"value": 50},
        }
    finally:
        await client.close()


def test_state_url_keeps_explicit_port(nanoleaf_light):
    light = nanoleaf_light(1)
    light.address = "panel.local:8080"
    assert NanoleafClient().state_url(light) == "http://panel.local:8080/api/v1/tok1/state"


def test_state_url_requires_token(nanoleaf_light):
    light = nanoleaf_light(1)
    light.access_token = None
    with pytest.raises(VendorTransportError):
        NanoleafClient().state_url(light)


@pytest.mark.asyncio
async def test_device_error_is_not_retried(nanoleaf_light):
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(500, text="oops")

    client = NanoleafClient(transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(VendorUpstreamError) as exc:
            await client.set_light_state(nanoleaf_light(1), LightState(on=False, brightness=0.0))
        assert exc.value.vendor == "Nanoleaf"
        assert calls["n"] == 1
    finally:
        await client.close()


def test_state_payload_wraps_hue_rounding_up_to_a_full_turn():
    payload = nanoleaf_state_payload(LightState(on=True, brightness=1.0, hue=359.6))
    assert payload["hue"] == {"value": 0}
    assert payload["brightness"] == {"value": 100}


@pytest.mark.asyncio
async def test_invalid_device_url_is_a_transport_error(nanoleaf_light):
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.InvalidURL("Invalid port")

    client = NanoleafClient(transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(VendorTransportError):
            await client.set_light_state(nanoleaf_light(1), LightState(on=True, brightness=1.0))
    finally:
        await client.close()
