"""Room lifecycle orchestration across vendor integrations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Coroutine, Iterable

from room_gateway.classifier import classify, lights_of_integration
from room_gateway.coordinator import CompletionCoordinator
from room_gateway.event_hub import EventHub
from room_gateway.models import OFF_STATE, ON_STATE, IntegrationType, Light, LightState, Result, Room
from room_gateway.store import LightStore, RoomStore, StoreError
from room_gateway.strategies import GroupCommandStrategy, StrategyTable

logger = logging.getLogger(__name__)

VendorCall = Callable[[IntegrationType], Awaitable[Result]]


class RoomManager:
    """
    Entry point for room operations.

    Every public operation returns a `Result`; store and vendor failures are
    reported through it and never raised.
    """

    def __init__(
        self,
        *,
        rooms: RoomStore,
        lights: LightStore,
        strategies: StrategyTable,
        hub: EventHub | None = None,
        coordinator: CompletionCoordinator | None = None,
        operation_timeout: float | None = None,
    ) -> None:
        self.rooms = rooms
        self.lights = lights
        self.strategies = strategies
        self.hub = hub
        self.coordinator = coordinator or CompletionCoordinator()
        self.operation_timeout = operation_timeout if operation_timeout and operation_timeout > 0 else None
        self._background: set[asyncio.Task[Any]] = set()

    # Queries

    async def create_room(self, name: str) -> Result[Room]:
        try:
            room = await self.rooms.create_room(name)
        except StoreError as exc:
            return Result.failure(str(exc))
        logger.info("Created room %s (%s)", room.id, room.name)
        return Result.success(room)

    async def list_rooms(self) -> Result[list[Room]]:
        try:
            return Result.success(await self.rooms.get_user_defined_rooms())
        except StoreError as exc:
            return Result.failure(str(exc))

    async def get_room_for_id(self, room_id: str) -> Result[Room]:
        listed = await self.list_rooms()
        if not listed.ok:
            return listed
        for room in listed.value or []:
            if room.id == room_id:
                return Result.success(room)
        return Result.failure(f"No room with id was found: {room_id}")

    async def get_room_integration_types(self, room: Room) -> Result[set[IntegrationType]]:
        resolved = await self._room_lights(room)
        if not resolved.ok:
            return resolved
        return Result.success(classify(resolved.value or []))

    async def get_room_lights_of_integration(self, room: Room, integration: IntegrationType) -> Result[list[Light]]:
        resolved = await self._room_lights(room)
        if not resolved.ok:
            return resolved
        return Result.success(lights_of_integration(resolved.value or [], integration))

    # Membership

    async def add_lights_to_room(self, room: Room, lights: list[Light]) -> Result:
        if not lights:
            return Result.success()

        membership = list(room.light_ids)
        for light in lights:
            if light.id not in membership:
                membership.append(light.id)
        try:
            await self.rooms.set_room_lights(room, membership)
        except StoreError as exc:
            return Result.failure(str(exc))
        room.light_ids = membership

        resolved: Result[list[Light]] | None = None
        for integration in sorted(classify(lights), key=lambda i: i.value):
            strategy = self.strategies.group_strategy(integration)
            if strategy is None:
                continue
            if strategy.group_id(room) is None:
                # The group covers every light of the room, including earlier additions.
                if resolved is None:
                    resolved = await self._room_lights(room)
                if not resolved.ok:
                    return resolved
                synced = await self._create_group(
                    room, strategy, lights_of_integration(resolved.value or [], integration)
                )
            else:
                synced = await self._sync_group_members(room, strategy)
            if not synced.ok:
                return synced
        return Result.success()

    async def remove_light_from_room(self, room: Room, light: Light) -> Result:
        room.remove_light_id(light.id)

        vendor_result: Result = Result.success()
        strategy = self.strategies.group_strategy(light.integration_type)
        if strategy is not None and strategy.group_id(room) is not None:
            vendor_result = await self._sync_group_members(room, strategy)
            if not vendor_result.ok:
                logger.warning("Vendor group update for room %s failed: %s", room.id, vendor_result.message)

        # Persisted only after the vendor update has completed, whatever its outcome.
        try:
            await self.rooms.set_room_lights(room, room.light_ids)
        except StoreError as exc:
            return vendor_result if not vendor_result.ok else Result.failure(str(exc))
        return vendor_result

    # State

    async def turn_on_room_lights(self, room: Room) -> Result:
        return await self.set_room_light_state(room, ON_STATE)

    async def turn_off_room_lights(self, room: Room) -> Result:
        return await self.set_room_light_state(room, OFF_STATE)

    async def set_room_light_state(self, room: Room, state: LightState) -> Result:
        resolved = await self._room_lights(room)
        if not resolved.ok:
            return resolved
        lights = resolved.value or []

        self._spawn(self._mirror_soft(room, lights, state))

        async def _apply(integration: IntegrationType) -> Result:
            strategy = self.strategies.get(integration)
            if strategy is None:
                return Result.failure(f"No command strategy registered for {integration.value}")
            return await strategy.apply_state(room, lights_of_integration(lights, integration), state)

        result = await self._run_coordinated(classify(lights), _apply, operation=f"set state of room {room.id}")
        if self.hub:
            await self.hub.publish_room_event(
                event_type="room.state_set",
                room_id=room.id,
                data={"state": state.to_dict(), "ok": result.ok, "message": result.message},
            )
        return result

    async def mirror_room_light_state(self, room: Room, state: LightState) -> Result:
        resolved = await self._room_lights(room)
        if not resolved.ok:
            return resolved
        return await self._mirror(resolved.value or [], state)

    # Deletion

    async def delete_room(self, room: Room) -> Result:
        failure: str | None = None
        try:
            if not await self.rooms.delete_room(room.id):
                failure = "Failed to delete room"
        except StoreError as exc:
            failure = str(exc)

        # Vendor cleanup is attempted even when the store deletion failed.
        cleanup = await self._delete_vendor_groups(room)
        if failure is None and not cleanup.ok:
            failure = cleanup.message

        if failure is not None:
            logger.warning("Deleting room %s failed: %s", room.id, failure)
            return Result.failure(failure)
        if self.hub:
            await self.hub.publish_room_event(event_type="room.deleted", room_id=room.id)
        return Result.success()

    async def delete_all_rooms(self) -> Result[int]:
        listed = await self.list_rooms()
        if not listed.ok:
            return listed
        first_failure: str | None = None
        deleted = 0
        for room in listed.value or []:
            result = await self.delete_room(room)
            if result.ok:
                deleted += 1
            elif first_failure is None:
                first_failure = result.message
        if first_failure is not None:
            return Result.failure(first_failure, value=deleted)
        return Result.success(deleted)

    # Background work

    async def drain(self) -> None:
        """Wait for outstanding store mirroring tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # Helpers

    async def _room_lights(self, room: Room) -> Result[list[Light]]:
        try:
            return Result.success(await self.lights.get_lights_for_ids(room.light_ids))
        except StoreError as exc:
            return Result.failure(str(exc))

    async def _create_group(self, room: Room, strategy: GroupCommandStrategy, lights: list[Light]) -> Result:
        created = await strategy.create_group(room, lights)
        if not created.ok:
            return created
        group_id = str(created.value)
        room.integration_ids[strategy.integration_type] = group_id
        try:
            await self.rooms.set_room_integration_id(room.id, strategy.integration_type, group_id)
        except StoreError as exc:
            return Result.failure(str(exc))
        logger.info("Room %s now has %s group %s", room.id, strategy.integration_type.value, group_id)
        return Result.success()

    async def _sync_group_members(self, room: Room, strategy: GroupCommandStrategy) -> Result:
        resolved = await self._room_lights(room)
        if not resolved.ok:
            return resolved
        return await strategy.set_group_lights(
            room, lights_of_integration(resolved.value or [], strategy.integration_type)
        )

    async def _delete_vendor_groups(self, room: Room) -> Result:
        integrations = set(room.integration_ids)
        resolved = await self._room_lights(room)
        if resolved.ok:
            integrations |= classify(resolved.value or [])
        else:
            logger.warning("Could not resolve lights of room %s: %s", room.id, resolved.message)

        participants = set()
        for integration in integrations:
            strategy = self.strategies.group_strategy(integration)
            if strategy is not None and strategy.group_id(room) is not None:
                participants.add(integration)

        async def _delete(integration: IntegrationType) -> Result:
            strategy = self.strategies.group_strategy(integration)
            if strategy is None:
                return Result.failure(f"No group strategy registered for {integration.value}")
            return await strategy.delete_group(room)

        return await self._run_coordinated(participants, _delete, operation=f"delete groups of room {room.id}")

    async def _run_coordinated(
        self,
        participants: Iterable[IntegrationType],
        call: VendorCall,
        *,
        operation: str,
    ) -> Result:
        loop = asyncio.get_running_loop()
        done: asyncio.Future[Result] = loop.create_future()

        def _resolve(result: Result) -> None:
            if not done.done():
                done.set_result(result)

        def _on_done(result: Result) -> None:
            # May be called from any thread.
            loop.call_soon_threadsafe(_resolve, result)

        participants = set(participants)
        handle = self.coordinator.begin(participants, _on_done)

        async def _run(integration: IntegrationType) -> None:
            try:
                outcome = await call(integration)
            except Exception as exc:
                logger.exception("%s: %s sub-operation crashed", operation, integration.value)
                outcome = Result.failure(str(exc) or exc.__class__.__name__)
            self.coordinator.report(handle, integration, outcome)

        tasks = [asyncio.create_task(_run(integration)) for integration in participants]

        if self.operation_timeout is None:
            return await done
        try:
            return await asyncio.wait_for(asyncio.shield(done), self.operation_timeout)
        except asyncio.TimeoutError:
            self.coordinator.expire(handle, f"Timed out after {self.operation_timeout}s: {operation}")
            for task in tasks:
                task.cancel()
            return await done

    async def _mirror(self, lights: list[Light], state: LightState) -> Result:
        updated = [replace(light, state=state.apply_to(light.state)) for light in lights]
        try:
            await self.lights.update_multiple_lights(updated)
        except StoreError as exc:
            return Result.failure(str(exc))
        return Result.success(updated)

    async def _mirror_soft(self, room: Room, lights: list[Light], state: LightState) -> None:
        result = await self._mirror(lights, state)
        if result.ok:
            return
        logger.warning("Failed to set room lights in db for room %s: %s", room.id, result.message)
        if self.hub:
            await self.hub.publish_warning(room_id=room.id, message="Failed to set room lights in db")
