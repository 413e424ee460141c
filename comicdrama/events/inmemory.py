"""In-process event bus."""

from __future__ import annotations

import logging
from typing import List

from .base import BaseEventBus, Listener, Unsubscribe
from .models import WorkflowEvent

logger = logging.getLogger(__name__)


class InMemoryEventBus(BaseEventBus):
    """Synchronous broadcast to in-process listeners.

    Events published while nobody is subscribed are dropped. A listener that
    raises is logged and skipped; delivery continues with the next one.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def publish(self, event: WorkflowEvent) -> None:
        # Snapshot so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    f"Event listener {listener!r} failed on {event.type} "
                    f"for project_id={event.project_id}"
                )

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)
        active = True

        def unsubscribe() -> None:
            nonlocal active
            if not active:
                return
            active = False
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
