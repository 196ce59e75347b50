"""SQLite-backed room and light records."""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from typing import Any

from room_gateway.db import Database
from room_gateway.models import IntegrationType, Light, LightState, Room


class StoreError(Exception):
    pass


def _state_json(state: LightState) -> str:
    return json.dumps(state.to_dict(), separators=(",", ":"))


def _light_from_row(row: Any) -> Light:
    light_id, name, integration_type, state_json, integration_id, address, access_token = row
    return Light(
        id=str(light_id),
        name=str(name),
        integration_type=IntegrationType(integration_type),
        state=LightState.from_dict(json.loads(state_json)),
        integration_id=integration_id,
        address=address,
        access_token=access_token,
    )


class RoomStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_room(self, name: str) -> Room:
        room = Room(id=uuid.uuid4().hex, name=name)
        now = int(time.time())
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    "INSERT INTO rooms (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                    (room.id, room.name, now, now),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to create room: {exc}") from exc
        return room

    async def set_room_lights(self, room: Room, light_ids: list[str]) -> None:
        """Replace the room's membership with `light_ids`."""
        now = int(time.time())
        try:
            async with self.db.transaction() as conn:
                cur = await conn.execute("UPDATE rooms SET updated_at = ? WHERE id = ?", (now, room.id))
                if cur.rowcount == 0:
                    raise StoreError(f"Room not found: {room.id}")
                await conn.execute("DELETE FROM room_lights WHERE room_id = ?", (room.id,))
                await conn.executemany(
                    "INSERT OR IGNORE INTO room_lights (room_id, light_id) VALUES (?, ?)",
                    [(room.id, light_id) for light_id in light_ids],
                )
        except sqlite3.IntegrityError as exc:
            raise StoreError(f"Room lights must reference existing lights: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to set room lights: {exc}") from exc

    async def set_room_integration_id(self, room_id: str, integration: IntegrationType, integration_id: str) -> None:
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO room_integrations (room_id, integration_type, integration_id)
                    VALUES (?, ?, ?)
                    ON CONFLICT(room_id, integration_type) DO UPDATE SET integration_id=excluded.integration_id
                    """,
                    (room_id, integration.value, integration_id),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to set room integration id: {exc}") from exc

    async def delete_room(self, room_id: str) -> bool:
        """Returns False when no record was deleted."""
        try:
            async with self.db.transaction() as conn:
                cur = await conn.execute("DELETE FROM rooms WHERE id = ?", (room_id,))
                return cur.rowcount > 0
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to delete room: {exc}") from exc

    async def get_user_defined_rooms(self) -> list[Room]:
        try:
            async with self.db.conn.execute("SELECT id, name FROM rooms ORDER BY created_at, id") as cursor:
                room_rows = await cursor.fetchall()
            async with self.db.conn.execute("SELECT room_id, light_id FROM room_lights ORDER BY rowid") as cursor:
                member_rows = await cursor.fetchall()
            async with self.db.conn.execute(
                "SELECT room_id, integration_type, integration_id FROM room_integrations"
            ) as cursor:
                integration_rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read rooms: {exc}") from exc

        rooms = {str(room_id): Room(id=str(room_id), name=str(name)) for room_id, name in room_rows}
        for room_id, light_id in member_rows:
            room = rooms.get(str(room_id))
            if room:
                room.light_ids.append(str(light_id))
        for room_id, integration_type, integration_id in integration_rows:
            room = rooms.get(str(room_id))
            if room:
                room.integration_ids[IntegrationType(integration_type)] = str(integration_id)
        return list(rooms.values())


class LightStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def upsert_light(self, light: Light) -> None:
        now = int(time.time())
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO lights (id, name, integration_type, state_json, integration_id, address, access_token, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                      name=excluded.name,
                      integration_type=excluded.integration_type,
                      state_json=excluded.state_json,
                      integration_id=excluded.integration_id,
                      address=excluded.address,
                      access_token=excluded.access_token,
                      updated_at=excluded.updated_at
                    """,
                    (
                        light.id,
                        light.name,
                        light.integration_type.value,
                        _state_json(light.state),
                        light.integration_id,
                        light.address,
                        light.access_token,
                        now,
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to store light: {exc}") from exc

    async def get_lights_for_ids(self, ids: list[str]) -> list[Light]:
        """Lights in the order of `ids`; unknown ids are skipped."""
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        try:
            async with self.db.conn.execute(
                f"""
                SELECT id, name, integration_type, state_json, integration_id, address, access_token
                FROM lights WHERE id IN ({placeholders})
                """,
                tuple(ids),
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read lights: {exc}") from exc
        by_id = {str(row[0]): _light_from_row(row) for row in rows}
        return [by_id[light_id] for light_id in dict.fromkeys(ids) if light_id in by_id]

    async def list_lights(self) -> list[Light]:
        try:
            async with self.db.conn.execute(
                """
                SELECT id, name, integration_type, state_json, integration_id, address, access_token
                FROM lights ORDER BY name, id
                """
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read lights: {exc}") from exc
        return [_light_from_row(row) for row in rows]

    async def update_multiple_lights(self, lights: list[Light]) -> None:
        now = int(time.time())
        try:
            async with self.db.transaction() as conn:
                await conn.executemany(
                    "UPDATE lights SET state_json = ?, updated_at = ? WHERE id = ?",
                    [(_state_json(light.state), now, light.id) for light in lights],
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update lights: {exc}") from exc
