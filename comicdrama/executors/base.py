"""Step executor contract."""

from __future__ import annotations

import abc
import asyncio
from typing import Any, Awaitable, Callable

from ..contracts import Project, WorkflowStep
from ..errors import StepCancelled

ProgressCallback = Callable[[int], Awaitable[None]]


class CancellationToken:
    """Advisory cancellation signal handed to an executor.

    The engine sets it when a pause or delete is requested. Executors check
    it at convenient points and stop by raising ``StepCancelled``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StepCancelled("Step cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early with ``StepCancelled``."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise StepCancelled("Step cancelled")


class StepExecutor(metaclass=abc.ABCMeta):
    """Performs the work of one pipeline step type."""

    @abc.abstractmethod
    async def execute(
        self,
        step: WorkflowStep,
        project: Project,
        on_progress: ProgressCallback,
        cancel_token: CancellationToken,
    ) -> Any:
        """Run the step and return its output.

        ``on_progress`` may be awaited any number of times with
        non-decreasing percentages. Raise ``StepCancelled`` when stopping
        because ``cancel_token`` fired; any other exception marks the step
        failed.
        """
        raise NotImplementedError
