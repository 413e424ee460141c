"""Repository abstraction for project state persistence."""

from __future__ import annotations

from typing import Callable, Protocol

from ..contracts import Project

ProjectMutator = Callable[[Project], None]


class ProjectRepository(Protocol):
    """Protocol for project persistence backends.

    Every read returns an independent copy. ``update_project`` is an atomic
    read-modify-write: writers on the same id are serialized, writers on
    different ids never wait on each other.
    """

    async def create_project(self, project: Project) -> Project:
        """Persist a new project."""

    async def get_project(self, project_id: str) -> Project | None:
        """Retrieve the project by id."""

    async def update_project(self, project_id: str, mutator: ProjectMutator) -> Project:
        """Apply ``mutator`` to the stored project and persist the result.

        Raises ``ProjectNotFound`` for unknown ids. If ``mutator`` raises, the
        stored project is left untouched and the exception propagates.
        """

    async def list_projects(self) -> list[Project]:
        """Return all persisted projects, oldest first."""

    async def delete_project(self, project_id: str) -> None:
        """Remove the project. Unknown ids are ignored."""
