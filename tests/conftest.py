from typing import Callable

import pytest
import pytest_asyncio

from room_gateway.config import AppConfig
from room_gateway.db import Database
from room_gateway.models import IntegrationType, Light


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        port=8000,
        db_path=":memory:",
        bridge_host="bridge.test",
        application_key="key",
        nanoleaf_port=16021,
        operation_timeout_seconds=5.0,
        retry_max_attempts=1,
        retry_base_delay_ms=1,
    )


@pytest_asyncio.fixture
async def db():
    database = Database(":memory:")
    await database.connect()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
def hue_light() -> Callable[[int], Light]:
    def _make(n: int) -> Light:
        return Light(
            id=f"hue-{n}",
            name=f"Hue {n}",
            integration_type=IntegrationType.PHILLIPS_HUE,
            integration_id=str(n),
        )

    return _make


@pytest.fixture
def nanoleaf_light() -> Callable[[int], Light]:
    def _make(n: int) -> Light:
        return Light(
            id=f"leaf-{n}",
            name=f"Nanoleaf {n}",
            integration_type=IntegrationType.NANOLEAF,
            address=f"10.0.0.{n}",
            access_token=f"tok{n}",
        )

    return _make
