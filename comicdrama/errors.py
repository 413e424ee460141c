"""Exception taxonomy for the workflow engine."""

from __future__ import annotations


class ComicDramaError(Exception):
    """Base class for all engine errors."""


class InvalidConfig(ComicDramaError):
    """Project creation input was rejected."""


class ProjectNotFound(ComicDramaError):
    """No project exists with the given id."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class WorkflowStateError(ComicDramaError):
    """An operation was requested in a project state that does not allow it."""

    def __init__(self, project_id: str, status: str, message: str | None = None) -> None:
        super().__init__(message or f"Project {project_id} is {status}")
        self.project_id = project_id
        self.status = status


class AlreadyRunning(WorkflowStateError):
    pass


class NotRunning(WorkflowStateError):
    pass


class AlreadyCompleted(WorkflowStateError):
    pass


class NotPaused(WorkflowStateError):
    pass


class InvalidProjectState(WorkflowStateError):
    pass


class ExecutorFailure(ComicDramaError):
    """Raised by step executors to report a failed step."""


class StepCancelled(ComicDramaError):
    """Raised by step executors that stopped because of a pause request.

    This is not a failure: the engine reverts the step to pending.
    """
