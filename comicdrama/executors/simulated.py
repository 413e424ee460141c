"""Executors that do not call any external provider."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from ..constants import SIMULATED_TICK_DELAY, SIMULATED_TICKS
from ..contracts import Project, WorkflowStep
from ..errors import ExecutorFailure
from .base import CancellationToken, ProgressCallback, StepExecutor

logger = logging.getLogger(__name__)


class SimulatedExecutor(StepExecutor):
    """Fake a step by reporting progress in equal ticks.

    Honours cancellation between ticks. When ``fail_with`` is set the step
    fails with that message once ``fail_at_tick`` ticks have been reported.
    """

    def __init__(
        self,
        ticks: int = SIMULATED_TICKS,
        tick_delay: float = SIMULATED_TICK_DELAY,
        fail_with: Optional[str] = None,
        fail_at_tick: int = 0,
    ) -> None:
        if ticks < 1:
            raise ValueError("ticks must be at least 1")
        self.ticks = ticks
        self.tick_delay = tick_delay
        self.fail_with = fail_with
        self.fail_at_tick = fail_at_tick
        self.calls = 0

    async def execute(
        self,
        step: WorkflowStep,
        project: Project,
        on_progress: ProgressCallback,
        cancel_token: CancellationToken,
    ) -> Any:
        self.calls += 1
        inputs = list(project.outputs())
        for tick in range(1, self.ticks + 1):
            if self.fail_with is not None and tick > self.fail_at_tick:
                raise ExecutorFailure(self.fail_with)
            await cancel_token.sleep(self.tick_delay)
            await on_progress(tick * 100 // self.ticks)

        logger.debug(f"Simulated {step.type.value} for project_id={project.id}")
        return {
            "step": step.type.value,
            "summary": f"{step.name} for '{project.name}' ({project.config.style}, {project.config.aspect_ratio})",
            "inputs": inputs,
        }


class CallableExecutor(StepExecutor):
    """Adapt a plain async function into a step executor."""

    def __init__(
        self,
        func: Callable[
            [WorkflowStep, Project, ProgressCallback, CancellationToken], Awaitable[Any]
        ],
    ) -> None:
        self._func = func

    async def execute(
        self,
        step: WorkflowStep,
        project: Project,
        on_progress: ProgressCallback,
        cancel_token: CancellationToken,
    ) -> Any:
        return await self._func(step, project, on_progress, cancel_token)
