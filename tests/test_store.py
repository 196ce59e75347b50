import asyncio

import pytest

from room_gateway.models import IntegrationType, LightState
from room_gateway.store import LightStore, RoomStore, StoreError


@pytest.mark.asyncio
async def test_room_round_trip_with_members_and_group(db, hue_light, nanoleaf_light):
    rooms = RoomStore(db)
    lights = LightStore(db)
    for light in (hue_light(1), nanoleaf_light(1)):
        await lights.upsert_light(light)

    room = await rooms.create_room("Den")
    await rooms.set_room_lights(room, ["leaf-1", "hue-1"])
    await rooms.set_room_integration_id(room.id, IntegrationType.PHILLIPS_HUE, "3")
    await rooms.set_room_integration_id(room.id, IntegrationType.PHILLIPS_HUE, "4")

    [stored] = await rooms.get_user_defined_rooms()
    assert stored.id == room.id
    assert stored.name == "Den"
    assert stored.light_ids == ["leaf-1", "hue-1"]
    assert stored.integration_ids == {IntegrationType.PHILLIPS_HUE: "4"}


@pytest.mark.asyncio
async def test_membership_must_reference_existing_lights(db):
    rooms = RoomStore(db)
    room = await rooms.create_room("Den")
    with pytest.raises(StoreError):
        await rooms.set_room_lights(room, ["ghost"])
    [stored] = await rooms.get_user_defined_rooms()
    assert stored.light_ids == []


@pytest.mark.asyncio
async def test_set_room_lights_for_missing_room_fails(db, hue_light):
    rooms = RoomStore(db)
    await LightStore(db).upsert_light(hue_light(1))
    room = await rooms.create_room("Den")
    assert await rooms.delete_room(room.id) is True
    with pytest.raises(StoreError):
        await rooms.set_room_lights(room, ["hue-1"])


@pytest.mark.asyncio
async def test_delete_room_reports_missing_record_and_cascades(db, hue_light):
    rooms = RoomStore(db)
    await LightStore(db).upsert_light(hue_light(1))
    room = await rooms.create_room("Den")
    await rooms.set_room_lights(room, ["hue-1"])
    await rooms.set_room_integration_id(room.id, IntegrationType.PHILLIPS_HUE, "3")

    assert await rooms.delete_room(room.id) is True
    assert await rooms.delete_room(room.id) is False
    assert await rooms.get_user_defined_rooms() == []
    async with db.conn.execute("SELECT COUNT(*) FROM room_lights") as cursor:
        assert (await cursor.fetchone())[0] == 0
    async with db.conn.execute("SELECT COUNT(*) FROM room_integrations") as cursor:
        assert (await cursor.fetchone())[0] == 0


@pytest.mark.asyncio
async def test_get_lights_for_ids_keeps_order_and_skips_unknown(db, hue_light, nanoleaf_light):
    lights = LightStore(db)
    for light in (hue_light(1), hue_light(2), nanoleaf_light(1)):
        await lights.upsert_light(light)

    found = await lights.get_lights_for_ids(["leaf-1", "ghost", "hue-2", "leaf-1"])
    assert [light.id for light in found] == ["leaf-1", "hue-2"]
    assert found[0].integration_type is IntegrationType.NANOLEAF
    assert found[0].address == "10.0.0.1"
    assert await lights.get_lights_for_ids([]) == []


@pytest.mark.asyncio
async def test_update_multiple_lights_persists_state(db, hue_light):
    lights = LightStore(db)
    light = hue_light(1)
    await lights.upsert_light(light)

    light.state = LightState(on=True, brightness=0.25, hue=90.0)
    await lights.update_multiple_lights([light])

    [stored] = await lights.list_lights()
    assert stored.state == LightState(on=True, brightness=0.25, hue=90.0)


@pytest.mark.asyncio
async def test_transactions_do_not_interleave(db):
    order: list[str] = []

    async def first():
        async with db.transaction():
            order.append("first:start")
            await asyncio.sleep(0.02)
            order.append("first:end")

    async def second():
        await asyncio.sleep(0.005)
        async with db.transaction():
            order.append("second")

    await asyncio.gather(first(), second())
    assert order == ["first:start", "first:end", "second"]


@pytest.mark.asyncio
async def test_failed_write_does_not_discard_concurrent_state_update(db, hue_light):
    rooms = RoomStore(db)
    lights = LightStore(db)
    light = hue_light(1)
    await lights.upsert_light(light)
    gone = await rooms.create_room("Den")
    await rooms.delete_room(gone.id)

    light.state = LightState(on=True, brightness=0.8)
    results = await asyncio.gather(
        rooms.set_room_lights(gone, ["hue-1"]),
        lights.update_multiple_lights([light]),
        return_exceptions=True,
    )

    assert isinstance(results[0], StoreError)
    assert results[1] is None
    [stored] = await lights.list_lights()
    assert stored.state == LightState(on=True, brightness=0.8)
