"""Workflow event models and in-process event bus."""

from __future__ import annotations

from .base import BaseEventBus, Listener, Unsubscribe
from .inmemory import InMemoryEventBus
from .logger import EventLogger
from .models import (
    StepCompleteEvent,
    StepFailEvent,
    StepProgressEvent,
    StepStartEvent,
    WorkflowCompleteEvent,
    WorkflowEvent,
    WorkflowFailEvent,
    parse_event,
)

__all__ = [
    "BaseEventBus",
    "EventLogger",
    "InMemoryEventBus",
    "Listener",
    "StepCompleteEvent",
    "StepFailEvent",
    "StepProgressEvent",
    "StepStartEvent",
    "Unsubscribe",
    "WorkflowCompleteEvent",
    "WorkflowEvent",
    "WorkflowFailEvent",
    "parse_event",
]
