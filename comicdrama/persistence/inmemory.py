"""In-memory implementation of the project repository."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import DefaultDict, Dict

from ..contracts import Project
from ..errors import ProjectNotFound
from .repository import ProjectMutator, ProjectRepository


class InMemoryProjectRepository(ProjectRepository):
    """Store project state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._projects: Dict[str, Project] = {}
        self._locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    async def create_project(self, project: Project) -> Project:
        async with self._locks[project.id]:
            if project.id in self._projects:
                raise ValueError(f"Project {project.id} already exists")
            self._projects[project.id] = project.model_copy(deep=True)
        return project.model_copy(deep=True)

    async def get_project(self, project_id: str) -> Project | None:
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    async def update_project(self, project_id: str, mutator: ProjectMutator) -> Project:
        async with self._locks[project_id]:
            stored = self._projects.get(project_id)
            if stored is None:
                raise ProjectNotFound(project_id)
            project = stored.model_copy(deep=True)
            mutator(project)
            project.touch()
            self._projects[project_id] = project
            return project.model_copy(deep=True)

    async def list_projects(self) -> list[Project]:
        projects = sorted(self._projects.values(), key=lambda p: p.created_at)
        return [p.model_copy(deep=True) for p in projects]

    async def delete_project(self, project_id: str) -> None:
        async with self._locks[project_id]:
            self._projects.pop(project_id, None)
        self._locks.pop(project_id, None)
