"""Comicdrama: workflow orchestration for novel-to-comic-drama pipelines."""

from .contracts import (
    Project,
    ProjectStatus,
    StepStatus,
    StepType,
    WorkflowConfig,
    WorkflowStep,
)
from .engine import WorkflowEngine
from .events import InMemoryEventBus, WorkflowEvent
from .executors import (
    CancellationToken,
    ExecutorRegistry,
    SimulatedExecutor,
    StepExecutor,
)
from .persistence import get_repository

__version__ = "0.1.0"
__all__ = [
    "CancellationToken",
    "ExecutorRegistry",
    "InMemoryEventBus",
    "Project",
    "ProjectStatus",
    "SimulatedExecutor",
    "StepExecutor",
    "StepStatus",
    "StepType",
    "WorkflowConfig",
    "WorkflowEngine",
    "WorkflowEvent",
    "WorkflowStep",
    "get_repository",
]
