"""Mapping from step types to their executors."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Mapping, Optional

from ..contracts import StepType
from .base import StepExecutor

logger = logging.getLogger(__name__)


class ExecutorNotRegistered(LookupError):
    def __init__(self, step_type: StepType) -> None:
        super().__init__(f"No executor registered for step type '{step_type.value}'")
        self.step_type = step_type


class ExecutorRegistry:
    """Explicit registry of step executors, injected into the engine."""

    def __init__(
        self, executors: Optional[Mapping[StepType | str, StepExecutor]] = None
    ) -> None:
        self._executors: Dict[StepType, StepExecutor] = {}
        for step_type, executor in (executors or {}).items():
            self.register(step_type, executor)

    @classmethod
    def simulated(cls, ticks: int | None = None, tick_delay: float | None = None) -> "ExecutorRegistry":
        """Registry with a ``SimulatedExecutor`` for every step type."""
        from .simulated import SimulatedExecutor

        kwargs = {}
        if ticks is not None:
            kwargs["ticks"] = ticks
        if tick_delay is not None:
            kwargs["tick_delay"] = tick_delay
        return cls({step_type: SimulatedExecutor(**kwargs) for step_type in StepType})

    def register(self, step_type: StepType | str, executor: StepExecutor) -> None:
        """Register ``executor`` for ``step_type``, replacing any previous one."""
        step_type = StepType(step_type)
        if step_type in self._executors:
            logger.debug(f"Replacing executor for step type {step_type.value}")
        self._executors[step_type] = executor

    def get(self, step_type: StepType | str) -> StepExecutor:
        step_type = StepType(step_type)
        try:
            return self._executors[step_type]
        except KeyError:
            raise ExecutorNotRegistered(step_type) from None

    def __contains__(self, step_type: object) -> bool:
        try:
            return StepType(step_type) in self._executors
        except ValueError:
            return False

    def __iter__(self) -> Iterator[StepType]:
        return iter(self._executors)

    def __len__(self) -> int:
        return len(self._executors)
