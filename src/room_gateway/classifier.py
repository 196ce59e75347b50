from __future__ import annotations

from typing import Iterable

from room_gateway.models import IntegrationType, Light


def classify(lights: Iterable[Light]) -> set[IntegrationType]:
    return {light.integration_type for light in lights}


def lights_of_integration(lights: Iterable[Light], integration: IntegrationType) -> list[Light]:
    return [light for light in lights if light.integration_type == integration]
