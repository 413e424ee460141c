"""Core data contracts for comic drama projects."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_AI_PROVIDER,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_DURATION_SECONDS,
    DEFAULT_IMAGE_PROVIDER,
    DEFAULT_STYLE,
    DEFAULT_TTS_PROVIDER,
    DEFAULT_VIDEO_PROVIDER,
    STEP_TEMPLATE,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepType(str, Enum):
    SCRIPT = "script"
    STORYBOARD = "storyboard"
    CHARACTER = "character"
    SCENE = "scene"
    IMAGE = "image"
    DUBBING = "dubbing"
    VIDEO = "video"
    EDIT = "edit"
    EXPORT = "export"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ProjectStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


DONE_STEP_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.SKIPPED})


class WorkflowConfig(BaseModel):
    """Creation-time parameters of a project.

    Unknown fields are rejected. Credentials are opaque and passed through
    to the executors untouched.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: Literal[1] = CONFIG_SCHEMA_VERSION
    name: str
    description: str = ""

    ai_provider: str = DEFAULT_AI_PROVIDER
    ai_api_key: Optional[str] = None
    image_provider: str = DEFAULT_IMAGE_PROVIDER
    image_api_key: Optional[str] = None
    video_provider: str = DEFAULT_VIDEO_PROVIDER
    video_api_key: Optional[str] = None
    tts_provider: str = DEFAULT_TTS_PROVIDER

    style: Literal["realistic", "anime", "3d", "chinese"] = DEFAULT_STYLE
    aspect_ratio: Literal["16:9", "9:16", "1:1"] = DEFAULT_ASPECT_RATIO
    duration: int = Field(default=DEFAULT_DURATION_SECONDS, gt=0)
    auto_proceed: bool = True

    @field_validator(
        "name", "ai_provider", "image_provider", "video_provider", "tts_provider"
    )
    @classmethod
    def _ensure_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()


class WorkflowStep(BaseModel):
    """One stage of the pipeline."""

    id: str
    type: StepType
    name: str
    description: str = ""
    status: StepStatus = StepStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None
    output: Any = None

    def reset(self) -> None:
        """Return the step to a fresh ``pending`` state."""
        self.status = StepStatus.PENDING
        self.progress = 0
        self.started_at = None
        self.completed_at = None
        self.duration_ms = None
        self.error = None
        self.output = None


class Project(BaseModel):
    """Aggregate root for one pipeline run.

    ``loop_active`` is set while some engine, in any process, owns the step
    loop. ``pause_requested`` asks that owner to stop at the next step
    boundary, or sooner if its executor honours cancellation.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    config: WorkflowConfig
    steps: List[WorkflowStep] = Field(default_factory=list)
    current_step_index: int = 0
    status: ProjectStatus = ProjectStatus.IDLE
    loop_active: bool = False
    pause_requested: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_template(cls, name: str, config: WorkflowConfig) -> "Project":
        """Build a project with every template step ``pending``."""
        steps = [
            WorkflowStep(
                id=f"step-{index + 1}-{step_type}",
                type=StepType(step_type),
                name=step_name,
                description=description,
            )
            for index, (step_type, step_name, description) in enumerate(STEP_TEMPLATE)
        ]
        return cls(name=name, config=config, steps=steps)

    @property
    def current_step(self) -> Optional[WorkflowStep]:
        if self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None

    def is_finished(self) -> bool:
        """Return ``True`` when every step is completed or skipped."""
        return all(step.status in DONE_STEP_STATUSES for step in self.steps)

    def running_steps(self) -> List[WorkflowStep]:
        return [step for step in self.steps if step.status == StepStatus.RUNNING]

    def outputs(self) -> Dict[str, Any]:
        """Outputs of completed steps keyed by step type."""
        return {
            step.type.value: step.output
            for step in self.steps
            if step.status == StepStatus.COMPLETED
        }

    def release_loop(self) -> None:
        """Clear loop ownership and any pending pause request."""
        self.loop_active = False
        self.pause_requested = False

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Project":
        return cls.model_validate_json(data)
