import pytest

from room_gateway.classifier import classify, lights_of_integration
from room_gateway.models import IntegrationType, LightState, Room


def test_classify_is_order_and_duplicate_insensitive(hue_light, nanoleaf_light):
    a = hue_light(1)
    b = nanoleaf_light(1)
    assert classify([a, b, a]) == classify([b, a]) == {IntegrationType.PHILLIPS_HUE, IntegrationType.NANOLEAF}
    assert classify([]) == set()


def test_lights_of_integration_keeps_input_order(hue_light, nanoleaf_light):
    lights = [hue_light(2), nanoleaf_light(1), hue_light(1)]
    assert [light.id for light in lights_of_integration(lights, IntegrationType.PHILLIPS_HUE)] == ["hue-2", "hue-1"]
    assert lights_of_integration(lights[1:2], IntegrationType.PHILLIPS_HUE) == []


def test_partial_update_keeps_color_when_not_given():
    current = LightState(on=False, brightness=0.0, hue=120.0, saturation=0.5)
    updated = LightState(on=True, brightness=0.7).apply_to(current)
    assert updated == LightState(on=True, brightness=0.7, hue=120.0, saturation=0.5)

    recolored = LightState(on=True, brightness=0.7, hue=10.0).apply_to(current)
    assert recolored.hue == 10.0
    assert recolored.saturation == 0.5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"on": True, "brightness": 1.5},
        {"on": True, "brightness": -0.1},
        {"on": True, "brightness": 0.5, "hue": 360.0},
        {"on": True, "brightness": 0.5, "saturation": 2.0},
    ],
)
def test_light_state_rejects_out_of_range_values(kwargs):
    with pytest.raises(ValueError):
        LightState(**kwargs)


def test_room_membership_has_set_semantics():
    room = Room(id="r1", name="Den")
    room.add_light_ids(["a", "b", "a"])
    room.add_light_ids(["b", "c"])
    assert room.light_ids == ["a", "b", "c"]
    room.remove_light_id("b")
    room.remove_light_id("missing")
    assert room.light_ids == ["a", "c"]
