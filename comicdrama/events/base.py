"""Base event bus interface."""

from __future__ import annotations

import abc
from typing import Callable

from .models import WorkflowEvent

Listener = Callable[[WorkflowEvent], None]
Unsubscribe = Callable[[], None]


class BaseEventBus(metaclass=abc.ABCMeta):
    """Abstract publish/subscribe channel for workflow events."""

    @abc.abstractmethod
    def publish(self, event: WorkflowEvent) -> None:
        """Deliver ``event`` to every current subscriber."""
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register ``listener`` and return a callable that removes it."""
        raise NotImplementedError
