"""Per-vendor command strategies and the table that selects them."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterator, Mapping

from room_gateway.hue_client import HueClient
from room_gateway.models import IntegrationType, Light, LightState, Result, Room
from room_gateway.nanoleaf_client import NanoleafClient
from room_gateway.vendor_http import (
    VendorProtocolError,
    VendorTransportError,
    VendorUpstreamError,
    describe_vendor_error,
)

logger = logging.getLogger(__name__)

_VENDOR_ERRORS = (VendorTransportError, VendorUpstreamError, VendorProtocolError)


class CommandStrategy(ABC):
    """Translates a desired light state into one vendor's wire calls."""

    @property
    @abstractmethod
    def integration_type(self) -> IntegrationType:
        """Integration type this strategy serves."""

    @abstractmethod
    async def apply_state(self, room: Room, lights: list[Light], state: LightState) -> Result:
        """Apply `state` to this vendor's `lights` in `room`. Never raises for vendor errors."""


class GroupCommandStrategy(CommandStrategy):
    """Strategy for vendors that keep a server-side group per room."""

    @abstractmethod
    async def create_group(self, room: Room, lights: list[Light]) -> Result:
        """Create a vendor group holding `lights`. Result value is the group id."""

    @abstractmethod
    async def set_group_lights(self, room: Room, lights: list[Light]) -> Result:
        """Replace the membership of the room's vendor group with `lights`."""

    @abstractmethod
    async def delete_group(self, room: Room) -> Result:
        """Delete the room's vendor group."""

    def group_id(self, room: Room) -> str | None:
        return room.integration_ids.get(self.integration_type)


class HueGroupStrategy(GroupCommandStrategy):
    def __init__(self, hue: HueClient) -> None:
        self.hue = hue

    @property
    def integration_type(self) -> IntegrationType:
        return IntegrationType.PHILLIPS_HUE

    @staticmethod
    def _device_ids(lights: list[Light]) -> list[str]:
        return [light.integration_id or light.id for light in lights]

    async def apply_state(self, room: Room, lights: list[Light], state: LightState) -> Result:
        group_id = self.group_id(room)
        if not group_id:
            return Result.failure(f"Room {room.id} has no Phillips Hue group")
        try:
            await self.hue.set_group_light_state(group_id=group_id, state=state)
        except _VENDOR_ERRORS as exc:
            logger.info("Hue group %s state update failed: %s", group_id, exc)
            return Result.failure(describe_vendor_error(exc))
        return Result.success()

    async def create_group(self, room: Room, lights: list[Light]) -> Result:
        try:
            group_id = await self.hue.create_group_with_lights(name=room.name, light_ids=self._device_ids(lights))
        except _VENDOR_ERRORS as exc:
            logger.info("Hue group creation for room %s failed: %s", room.id, exc)
            return Result.failure(describe_vendor_error(exc))
        return Result.success(group_id)

    async def set_group_lights(self, room: Room, lights: list[Light]) -> Result:
        group_id = self.group_id(room)
        if not group_id:
            return Result.failure(f"Room {room.id} has no Phillips Hue group")
        try:
            await self.hue.set_group_lights(group_id=group_id, light_ids=self._device_ids(lights))
        except _VENDOR_ERRORS as exc:
            return Result.failure(describe_vendor_error(exc))
        return Result.success()

    async def delete_group(self, room: Room) -> Result:
        group_id = self.group_id(room)
        if not group_id:
            return Result.failure(f"Room {room.id} has no Phillips Hue group")
        try:
            await self.hue.delete_group(group_id=group_id)
        except _VENDOR_ERRORS as exc:
            return Result.failure(describe_vendor_error(exc))
        return Result.success()


class NanoleafSequentialStrategy(CommandStrategy):
    """
    Commands Nanoleaf devices one at a time.

    The device LAN API drops concurrent requests, so device k+1 is only
    addressed after device k acknowledged. The first failure stops the run.
    """

    def __init__(self, nanoleaf: NanoleafClient) -> None:
        self.nanoleaf = nanoleaf

    @property
    def integration_type(self) -> IntegrationType:
        return IntegrationType.NANOLEAF

    async def apply_state(self, room: Room, lights: list[Light], state: LightState) -> Result:
        for index, light in enumerate(lights):
            try:
                await self.nanoleaf.set_light_state(light, state)
            except _VENDOR_ERRORS as exc:
                logger.info(
                    "Nanoleaf light %s failed (%d/%d), skipping the rest: %s",
                    light.id,
                    index + 1,
                    len(lights),
                    exc,
                )
                return Result.failure(describe_vendor_error(exc))
        return Result.success()


class StrategyTable(Mapping[IntegrationType, CommandStrategy]):
    def __init__(self, strategies: list[CommandStrategy]) -> None:
        self._strategies: dict[IntegrationType, CommandStrategy] = {}
        for strategy in strategies:
            if strategy.integration_type in self._strategies:
                raise ValueError(f"Duplicate strategy for {strategy.integration_type.value}")
            self._strategies[strategy.integration_type] = strategy

    @staticmethod
    def default(*, hue: HueClient, nanoleaf: NanoleafClient) -> "StrategyTable":
        return StrategyTable([HueGroupStrategy(hue), NanoleafSequentialStrategy(nanoleaf)])

    def __getitem__(self, integration: IntegrationType) -> CommandStrategy:
        return self._strategies[integration]

    def __iter__(self) -> Iterator[IntegrationType]:
        return iter(self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)

    def group_strategy(self, integration: IntegrationType) -> GroupCommandStrategy | None:
        strategy = self._strategies.get(integration)
        return strategy if isinstance(strategy, GroupCommandStrategy) else None
