"""Workflow lifecycle events broadcast by the engine."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..contracts import StepType, utcnow


class _BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    timestamp: datetime = Field(default_factory=utcnow)


class StepStartEvent(_BaseEvent):
    type: Literal["stepStart"] = "stepStart"
    step_type: StepType


class StepProgressEvent(_BaseEvent):
    type: Literal["stepProgress"] = "stepProgress"
    step_type: StepType
    progress: int


class StepCompleteEvent(_BaseEvent):
    type: Literal["stepComplete"] = "stepComplete"
    step_type: StepType


class StepFailEvent(_BaseEvent):
    type: Literal["stepFail"] = "stepFail"
    step_type: StepType
    error: str


class WorkflowCompleteEvent(_BaseEvent):
    type: Literal["workflowComplete"] = "workflowComplete"


class WorkflowFailEvent(_BaseEvent):
    type: Literal["workflowFail"] = "workflowFail"
    error: str


WorkflowEvent = Annotated[
    Union[
        StepStartEvent,
        StepProgressEvent,
        StepCompleteEvent,
        StepFailEvent,
        WorkflowCompleteEvent,
        WorkflowFailEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[WorkflowEvent] = TypeAdapter(WorkflowEvent)


def parse_event(data: str | bytes) -> WorkflowEvent:
    """Deserialize an event from JSON, dispatching on its ``type`` tag."""
    return _event_adapter.validate_json(data)
