from __future__ import annotations

import asyncio
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite


class Database:
    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        # One shared connection: writers must not interleave commits and rollbacks.
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        dir_name = os.path.dirname(self._db_path)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute("PRAGMA journal_mode=WAL;")
        await self._conn.execute("PRAGMA synchronous=NORMAL;")
        await self._conn.execute("PRAGMA foreign_keys=ON;")
        await self._init_schema()
        await self._conn.commit()

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Database not connected")
        return self._conn

    async def _init_schema(self) -> None:
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL,
              updated_at INTEGER NOT NULL
            );
            """
        )
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS lights (
              id TEXT PRIMARY KEY,
              name TEXT NOT NULL,
              integration_type TEXT NOT NULL,
              state_json TEXT NOT NULL,
              integration_id TEXT,
              address TEXT,
              access_token TEXT,
              updated_at INTEGER NOT NULL
            );
            """
        )
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS rooms (
              id TEXT PRIMARY KEY,
              name TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              updated_at INTEGER NOT NULL
            );
            """
        )
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS room_lights (
              room_id TEXT NOT NULL REFERENCES rooms (id) ON DELETE CASCADE,
              light_id TEXT NOT NULL REFERENCES lights (id) ON DELETE CASCADE,
              PRIMARY KEY (room_id, light_id)
            );
            """
        )
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS room_integrations (
              room_id TEXT NOT NULL REFERENCES rooms (id) ON DELETE CASCADE,
              integration_type TEXT NOT NULL,
              integration_id TEXT NOT NULL,
              PRIMARY KEY (room_id, integration_type)
            );
            """
        )
        await self.conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_room_lights_light_id ON room_lights (light_id);
            """
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._write_lock:
            try:
                yield self.conn
            except BaseException:
                await self.conn.rollback()
                raise
            else:
                await self.conn.commit()

    async def get_setting(self, key: str) -> str | None:
        async with self.conn.execute(
            "SELECT value FROM settings WHERE key = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        return str(row[0])

    async def set_setting(self, key: str, value: str) -> None:
        now = int(time.time())
        async with self.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO settings (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """,
                (key, value, now),
            )

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
