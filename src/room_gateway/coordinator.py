"""Fan-in of per-vendor sub-operations into one completion callback."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from room_gateway.models import IntegrationType, Result

logger = logging.getLogger(__name__)

Completion = Callable[[Result], None]


class OperationHandle:
    """
    Tracking state for one in-flight room-wide operation.

    Each `CompletionCoordinator.begin` call owns exactly one handle; handles are never reused.
    """

    def __init__(self, participants: Iterable[IntegrationType], on_done: Completion) -> None:
        self._outstanding: set[IntegrationType] = set(participants)
        self._on_done = on_done
        self._lock = threading.Lock()
        self._failure_message: str | None = None
        self._failed = False
        self._done = False

    @property
    def outstanding(self) -> frozenset[IntegrationType]:
        with self._lock:
            return frozenset(self._outstanding)

    @property
    def done(self) -> bool:
        with self._lock:
            return self._done


class CompletionCoordinator:
    def begin(self, participants: Iterable[IntegrationType], on_done: Completion) -> OperationHandle:
        handle = OperationHandle(participants, on_done)
        if not handle._outstanding:
            handle._done = True
            on_done(Result.success())
        return handle

    def report(self, handle: OperationHandle, integration: IntegrationType, outcome: Result) -> None:
        with handle._lock:
            if handle._done or integration not in handle._outstanding:
                return
            handle._outstanding.discard(integration)
            if not outcome.ok and not handle._failed:
                handle._failed = True
                handle._failure_message = outcome.message or f"{integration.value} operation failed"
            if handle._outstanding:
                return
            handle._done = True
            if handle._failed:
                result = Result.failure(handle._failure_message or "operation failed")
            else:
                result = Result.success()

        # Invoked outside the lock; the done flag already guarantees a single call.
        handle._on_done(result)

    def expire(self, handle: OperationHandle, message: str) -> None:
        """
        Fail every still-outstanding integration so the completion fires.
        """
        pending = handle.outstanding
        if pending:
            logger.warning("Expiring operation with outstanding integrations: %s", sorted(i.value for i in pending))
        for integration in pending:
            self.report(handle, integration, Result.failure(message))
