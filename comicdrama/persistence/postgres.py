"""PostgreSQL implementation of the project repository."""

from __future__ import annotations

import asyncpg

from ..contracts import Project
from ..errors import ProjectNotFound
from .repository import ProjectMutator, ProjectRepository


class PostgresProjectRepository(ProjectRepository):
    """Persist project snapshots using PostgreSQL.

    Updates lock the row with ``SELECT ... FOR UPDATE`` so concurrent writers
    on one project are serialized even across processes.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS comic_projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                data JSONB NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    async def create_project(self, project: Project) -> Project:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO comic_projects (id, name, status, created_at, updated_at, data) VALUES ($1, $2, $3, $4, $5, $6::jsonb)",
                project.id,
                project.name,
                project.status.value,
                project.created_at,
                project.updated_at,
                project.to_json(),
            )
        except asyncpg.UniqueViolationError as exc:
            raise ValueError(f"Project {project.id} already exists") from exc
        finally:
            await conn.close()
        return project.model_copy(deep=True)

    async def get_project(self, project_id: str) -> Project | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data FROM comic_projects WHERE id = $1", project_id
            )
        finally:
            await conn.close()
        return Project.from_json(row["data"]) if row else None

    async def update_project(self, project_id: str, mutator: ProjectMutator) -> Project:
        conn = await self._connect()
        try:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT data FROM comic_projects WHERE id = $1 FOR UPDATE",
                    project_id,
                )
                if not row:
                    raise ProjectNotFound(project_id)
                project = Project.from_json(row["data"])
                mutator(project)
                project.touch()
                await conn.execute(
                    "UPDATE comic_projects SET name = $1, status = $2, updated_at = $3, data = $4::jsonb WHERE id = $5",
                    project.name,
                    project.status.value,
                    project.updated_at,
                    project.to_json(),
                    project_id,
                )
        finally:
            await conn.close()
        return project

    async def list_projects(self) -> list[Project]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT data FROM comic_projects ORDER BY created_at"
            )
        finally:
            await conn.close()
        return [Project.from_json(r["data"]) for r in rows]

    async def delete_project(self, project_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM comic_projects WHERE id = $1", project_id)
        finally:
            await conn.close()
