"""Workflow engine driving comic drama projects through the pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from .contracts import (
    Project,
    ProjectStatus,
    StepStatus,
    WorkflowConfig,
    utcnow,
)
from .errors import (
    AlreadyCompleted,
    AlreadyRunning,
    InvalidConfig,
    InvalidProjectState,
    NotPaused,
    NotRunning,
    ProjectNotFound,
    StepCancelled,
)
from .events import (
    BaseEventBus,
    InMemoryEventBus,
    Listener,
    StepCompleteEvent,
    StepFailEvent,
    StepProgressEvent,
    StepStartEvent,
    Unsubscribe,
    WorkflowCompleteEvent,
    WorkflowEvent,
    WorkflowFailEvent,
)
from .executors import CancellationToken, ExecutorRegistry
from .persistence import ProjectRepository

logger = logging.getLogger(__name__)


class _Execution:
    """In-process handle on one active step loop."""

    def __init__(self, project_id: str, single_step: bool = False) -> None:
        self.project_id = project_id
        self.single_step = single_step
        self.token = CancellationToken()
        self.pause_requested = False
        self.deleted = False

    def cancel(self, deleted: bool = False) -> None:
        self.pause_requested = True
        self.deleted = self.deleted or deleted
        self.token.cancel()


def _elapsed_ms(started_at, completed_at) -> Optional[int]:
    if started_at is None:
        return None
    return int((completed_at - started_at).total_seconds() * 1000)


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class WorkflowEngine:
    """Orchestrates project lifecycle and step execution.

    The repository is the single source of truth; the engine only keeps
    track of which projects have a loop running in this process so that
    pause and delete requests can reach the in-flight executor.
    """

    def __init__(
        self,
        repository: ProjectRepository,
        executors: ExecutorRegistry,
        event_bus: BaseEventBus | None = None,
    ) -> None:
        self._repository = repository
        self._executors = executors
        self._event_bus = event_bus or InMemoryEventBus()
        self._executions: Dict[str, _Execution] = {}

    # ------------------------------------------------------------------
    # Project management
    async def create_project(
        self, name: str, config: WorkflowConfig | Mapping[str, Any]
    ) -> Project:
        """Create a project with every pipeline step ``pending``.

        A mapping ``config`` without a ``name`` takes the project name.
        """
        if not name or not name.strip():
            raise InvalidConfig("Project name must not be blank")
        if not isinstance(config, WorkflowConfig):
            data = dict(config)
            data.setdefault("name", name.strip())
            try:
                config = WorkflowConfig.model_validate(data)
            except ValidationError as exc:
                raise InvalidConfig(str(exc)) from exc

        project = Project.from_template(name.strip(), config)
        created = await self._repository.create_project(project)
        logger.info(f"Created project {created.name!r} project_id={created.id}")
        return created

    async def get_project(self, project_id: str) -> Project | None:
        return await self._repository.get_project(project_id)

    async def get_all_projects(self) -> list[Project]:
        return await self._repository.list_projects()

    async def delete_project(self, project_id: str) -> None:
        """Remove the project, cancelling any in-flight step first."""
        execution = self._executions.get(project_id)
        if execution is not None:
            execution.cancel(deleted=True)
        await self._repository.delete_project(project_id)
        logger.info(f"Deleted project_id={project_id}")

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._event_bus.subscribe(listener)

    def is_active(self, project_id: str) -> bool:
        """Return ``True`` while a step loop for the project runs here."""
        return project_id in self._executions

    # ------------------------------------------------------------------
    # Execution control
    async def run_workflow(self, project_id: str) -> Project | None:
        """Run the step loop from ``current_step_index``.

        Returns the project once it is completed, failed or paused (or, with
        ``auto_proceed`` off, after one step). Returns ``None`` if the project
        was deleted while running.
        """

        def start(project: Project) -> None:
            if project.status == ProjectStatus.RUNNING:
                raise AlreadyRunning(project.id, project.status.value)
            if project.status == ProjectStatus.COMPLETED:
                raise AlreadyCompleted(project.id, project.status.value)
            if project.status == ProjectStatus.FAILED:
                raise InvalidProjectState(
                    project.id,
                    project.status.value,
                    f"Project {project.id} failed; retry the step or restart the workflow",
                )
            project.status = ProjectStatus.RUNNING

        return await self._start(project_id, start)

    async def resume_workflow(self, project_id: str) -> Project | None:
        """Continue a paused project at its stored step index."""

        def resume(project: Project) -> None:
            if project.status != ProjectStatus.PAUSED:
                raise NotPaused(project.id, project.status.value)
            project.status = ProjectStatus.RUNNING

        return await self._start(project_id, resume)

    async def advance_workflow(self, project_id: str) -> Project | None:
        """Run exactly one step. Used when ``auto_proceed`` is off."""

        def advance(project: Project) -> None:
            if project.status == ProjectStatus.COMPLETED:
                raise AlreadyCompleted(project.id, project.status.value)
            if project.status == ProjectStatus.FAILED:
                raise InvalidProjectState(project.id, project.status.value)
            project.status = ProjectStatus.RUNNING

        return await self._start(project_id, advance, single_step=True)

    async def retry_step(self, project_id: str) -> Project | None:
        """Reset only the failed step to ``pending`` and resume from it."""

        def retry(project: Project) -> None:
            step = project.current_step
            if (
                project.status != ProjectStatus.FAILED
                or step is None
                or step.status != StepStatus.FAILED
            ):
                raise InvalidProjectState(
                    project.id,
                    project.status.value,
                    f"Project {project.id} has no failed step to retry",
                )
            step.reset()
            project.status = ProjectStatus.RUNNING

        return await self._start(project_id, retry)

    async def reset_project(self, project_id: str) -> Project:
        """Return every step to ``pending`` so the pipeline can run again."""
        self._ensure_inactive(project_id)

        def reset(project: Project) -> None:
            self._ensure_unowned(project)
            for step in project.steps:
                step.reset()
            project.current_step_index = 0
            project.status = ProjectStatus.IDLE

        project = await self._repository.update_project(project_id, reset)
        logger.info(f"Reset project_id={project_id}")
        return project

    async def restart_workflow(self, project_id: str) -> Project | None:
        await self.reset_project(project_id)
        return await self.run_workflow(project_id)

    async def skip_step(self, project_id: str) -> Project:
        """Mark the pending step at the current index ``skipped``."""
        self._ensure_inactive(project_id)
        skipped: Dict[str, Any] = {}

        def skip(project: Project) -> None:
            self._ensure_unowned(project)
            step = project.current_step
            if project.status == ProjectStatus.COMPLETED or step is None:
                raise AlreadyCompleted(project.id, project.status.value)
            if step.status != StepStatus.PENDING:
                raise InvalidProjectState(
                    project.id,
                    project.status.value,
                    f"Step {step.id} is {step.status.value} and cannot be skipped",
                )
            step.status = StepStatus.SKIPPED
            skipped["type"] = step.type
            project.current_step_index += 1
            if project.current_step_index >= len(project.steps):
                project.status = ProjectStatus.COMPLETED

        project = await self._repository.update_project(project_id, skip)
        logger.info(f"Skipped step {skipped['type'].value} for project_id={project_id}")
        if project.status == ProjectStatus.COMPLETED:
            self._publish(WorkflowCompleteEvent(project_id=project_id))
        return project

    async def pause_workflow(self, project_id: str) -> None:
        """Request a pause.

        With a step in flight the executor is cancelled and the ``paused``
        transition happens once it settles. When the loop belongs to another
        engine the request is stored on the project for that engine to pick
        up. Otherwise the transition happens now.
        """
        execution = self._executions.get(project_id)
        if execution is not None:
            if await self._repository.get_project(project_id) is None:
                raise ProjectNotFound(project_id)
            logger.info(f"Pause requested for project_id={project_id}")
            execution.cancel()
            return

        def pause(project: Project) -> None:
            if project.status != ProjectStatus.RUNNING:
                raise NotRunning(project.id, project.status.value)
            if project.loop_active:
                project.pause_requested = True
            else:
                project.status = ProjectStatus.PAUSED

        project = await self._repository.update_project(project_id, pause)
        if project.pause_requested:
            logger.info(f"Pause recorded for project_id={project_id}; loop runs elsewhere")
        else:
            logger.info(f"Paused project_id={project_id}")

    async def recover_interrupted(self) -> list[str]:
        """Pause projects left ``running`` without a loop in this process.

        Any step still marked ``running`` is returned to ``pending`` and loop
        ownership is cleared. Call it only when no other engine shares the
        store, e.g. at startup after a crash.
        """
        recovered = []
        for project in await self._repository.list_projects():
            if project.status != ProjectStatus.RUNNING or self.is_active(project.id):
                continue
            try:
                await self._repository.update_project(project.id, self._revert_to_paused)
            except ProjectNotFound:
                continue
            recovered.append(project.id)
            logger.warning(f"Recovered interrupted project_id={project.id} as paused")
        return recovered

    # ------------------------------------------------------------------
    # Step loop
    def _ensure_inactive(self, project_id: str) -> None:
        if project_id in self._executions:
            raise AlreadyRunning(project_id, ProjectStatus.RUNNING.value)

    @staticmethod
    def _ensure_unowned(project: Project) -> None:
        if project.loop_active:
            raise AlreadyRunning(project.id, project.status.value)

    async def _start(
        self,
        project_id: str,
        precondition: Callable[[Project], None],
        single_step: bool = False,
    ) -> Project | None:
        self._ensure_inactive(project_id)
        execution = _Execution(project_id, single_step=single_step)
        # Registered before the first await so a concurrent start or pause
        # sees this loop.
        self._executions[project_id] = execution

        def claim(project: Project) -> None:
            self._ensure_unowned(project)
            precondition(project)
            project.loop_active = True
            project.pause_requested = False

        try:
            await self._repository.update_project(project_id, claim)
        except BaseException:
            self._release(execution)
            raise
        logger.info(f"Workflow started for project_id={project_id}")
        return await self._drive(execution)

    def _release(self, execution: _Execution) -> None:
        if self._executions.get(execution.project_id) is execution:
            del self._executions[execution.project_id]

    async def _drive(self, execution: _Execution) -> Project | None:
        project_id = execution.project_id
        steps_run = 0
        try:
            while True:
                if execution.deleted:
                    raise ProjectNotFound(project_id)
                project = await self._repository.get_project(project_id)
                if project is None:
                    raise ProjectNotFound(project_id)

                if project.current_step_index >= len(project.steps):
                    return await self._complete_workflow(project_id)
                if execution.pause_requested:
                    return await self._pause_at_boundary(project_id)
                if steps_run and (
                    execution.single_step or not project.config.auto_proceed
                ):
                    return await self._wait_for_advance(project_id)

                stopped = await self._run_step(execution, project)
                if stopped is not None:
                    return stopped
                steps_run += 1
        except ProjectNotFound:
            logger.info(f"Project_id={project_id} deleted while running; loop stopped")
            return None
        except asyncio.CancelledError:
            logger.warning(f"Step loop cancelled for project_id={project_id}; pausing")
            try:
                await self._repository.update_project(project_id, self._revert_to_paused)
            except ProjectNotFound:
                pass
            raise
        except Exception as exc:
            logger.exception(f"Step loop crashed for project_id={project_id}")
            return await self._abort(project_id, _error_message(exc))
        finally:
            self._release(execution)

    async def _run_step(self, execution: _Execution, project: Project) -> Project | None:
        """Run the step at the current index.

        Returns ``None`` when the step completed and the loop may continue,
        otherwise the project in its stopped state.
        """
        project_id = project.id
        index = project.current_step_index

        def mark_running(p: Project) -> None:
            if p.pause_requested:
                p.status = ProjectStatus.PAUSED
                p.release_loop()
                return
            step = p.steps[index]
            step.status = StepStatus.RUNNING
            step.progress = 0
            step.started_at = utcnow()
            step.completed_at = None
            step.duration_ms = None
            step.error = None

        project = await self._repository.update_project(project_id, mark_running)
        if project.status == ProjectStatus.PAUSED:
            logger.info(f"Paused project_id={project_id} at step {index} on stored request")
            return project
        step = project.steps[index]
        self._publish(StepStartEvent(project_id=project_id, step_type=step.type))
        logger.info(f"Step {step.type.value} started for project_id={project_id}")

        async def on_progress(percent: int) -> None:
            value = max(0, min(100, int(percent)))
            applied = False

            def record(p: Project) -> None:
                nonlocal applied
                s = p.steps[index]
                if s.status != StepStatus.RUNNING:
                    return
                s.progress = max(s.progress, value)
                applied = True

            updated = await self._repository.update_project(project_id, record)
            if not applied:
                logger.warning(
                    f"Ignoring progress for settled step {step.type.value} project_id={project_id}"
                )
                return
            progress = updated.steps[index].progress
            logger.debug(f"Step {step.type.value} progress {progress}% project_id={project_id}")
            self._publish(
                StepProgressEvent(
                    project_id=project_id, step_type=step.type, progress=progress
                )
            )
            if updated.pause_requested and not execution.token.cancelled:
                logger.info(f"Stored pause request seen; cancelling step for project_id={project_id}")
                execution.cancel()

        try:
            executor = self._executors.get(step.type)
            output = await executor.execute(step, project, on_progress, execution.token)
        except StepCancelled:
            if execution.deleted:
                raise ProjectNotFound(project_id)
            paused = await self._repository.update_project(
                project_id, self._revert_to_paused
            )
            logger.info(f"Step {step.type.value} cancelled; project_id={project_id} paused")
            return paused
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if execution.deleted or isinstance(exc, ProjectNotFound):
                raise ProjectNotFound(project_id)
            return await self._fail_step(project_id, index, _error_message(exc))

        def complete(p: Project) -> None:
            s = p.steps[index]
            s.status = StepStatus.COMPLETED
            s.progress = 100
            s.output = output
            s.completed_at = utcnow()
            s.duration_ms = _elapsed_ms(s.started_at, s.completed_at)
            p.current_step_index = index + 1

        await self._repository.update_project(project_id, complete)
        self._publish(StepCompleteEvent(project_id=project_id, step_type=step.type))
        logger.info(f"Step {step.type.value} completed for project_id={project_id}")
        return None

    async def _fail_step(self, project_id: str, index: int, message: str) -> Project:
        def fail(p: Project) -> None:
            s = p.steps[index]
            s.status = StepStatus.FAILED
            s.error = message
            s.completed_at = utcnow()
            s.duration_ms = _elapsed_ms(s.started_at, s.completed_at)
            p.status = ProjectStatus.FAILED
            p.release_loop()

        project = await self._repository.update_project(project_id, fail)
        step_type = project.steps[index].type
        logger.error(f"Step {step_type.value} failed for project_id={project_id}: {message}")
        self._publish(StepFailEvent(project_id=project_id, step_type=step_type, error=message))
        self._publish(WorkflowFailEvent(project_id=project_id, error=message))
        return project

    async def _complete_workflow(self, project_id: str) -> Project:
        def complete(p: Project) -> None:
            p.status = ProjectStatus.COMPLETED
            p.release_loop()

        project = await self._repository.update_project(project_id, complete)
        logger.info(f"Workflow completed for project_id={project_id}")
        self._publish(WorkflowCompleteEvent(project_id=project_id))
        return project

    async def _pause_at_boundary(self, project_id: str) -> Project:
        def pause(p: Project) -> None:
            p.status = ProjectStatus.PAUSED
            p.release_loop()

        project = await self._repository.update_project(project_id, pause)
        logger.info(f"Paused project_id={project_id} at step {project.current_step_index}")
        return project

    async def _wait_for_advance(self, project_id: str) -> Project:
        """Give up the loop between steps, honouring a stored pause request."""

        def idle(p: Project) -> None:
            if p.pause_requested:
                p.status = ProjectStatus.PAUSED
            p.release_loop()

        project = await self._repository.update_project(project_id, idle)
        logger.info(
            f"Waiting for advance at step {project.current_step_index} for project_id={project_id}"
        )
        return project

    async def _abort(self, project_id: str, message: str) -> Project | None:
        """Put the project into ``failed`` after an unexpected loop error.

        A crash after the last step blames that step, so a failed project
        always has a failed step at its current index.
        """

        def fail(p: Project) -> None:
            if p.current_step is None and p.steps:
                p.current_step_index = len(p.steps) - 1
            for s in p.running_steps():
                s.status = StepStatus.PENDING
            step = p.current_step
            if step is not None:
                step.status = StepStatus.FAILED
                step.error = message
            p.status = ProjectStatus.FAILED
            p.release_loop()

        project: Project | None = None
        try:
            project = await self._repository.update_project(project_id, fail)
        except Exception:
            logger.exception(f"Could not record failure for project_id={project_id}")
        self._publish(WorkflowFailEvent(project_id=project_id, error=message))
        return project

    @staticmethod
    def _revert_to_paused(project: Project) -> None:
        for step in project.running_steps():
            step.status = StepStatus.PENDING
            step.started_at = None
        project.status = ProjectStatus.PAUSED
        project.release_loop()

    def _publish(self, event: WorkflowEvent) -> None:
        self._event_bus.publish(event)
