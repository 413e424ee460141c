"""Event subscriber that writes the workflow feed to the log."""

from __future__ import annotations

import logging

from .models import WorkflowEvent

logger = logging.getLogger(__name__)


class EventLogger:
    """Log one line per workflow event.

    Progress events go to ``DEBUG`` so a busy pipeline does not flood the
    default log level.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def __call__(self, event: WorkflowEvent) -> None:
        prefix = f"[{event.project_id}]"
        if event.type == "stepStart":
            self._log.info(f"{prefix} Step started: {event.step_type.value}")
        elif event.type == "stepProgress":
            self._log.debug(
                f"{prefix} Step progress: {event.step_type.value} - {event.progress}%"
            )
        elif event.type == "stepComplete":
            self._log.info(f"{prefix} Step completed: {event.step_type.value}")
        elif event.type == "stepFail":
            self._log.error(
                f"{prefix} Step failed: {event.step_type.value} - {event.error}"
            )
        elif event.type == "workflowComplete":
            self._log.info(f"{prefix} Workflow completed")
        elif event.type == "workflowFail":
            self._log.error(f"{prefix} Workflow failed: {event.error}")
