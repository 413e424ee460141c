"""SQLite implementation of the project repository."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any, DefaultDict

from ..contracts import Project
from ..errors import ProjectNotFound
from .repository import ProjectMutator, ProjectRepository


class SQLiteProjectRepository(ProjectRepository):
    """Persist project snapshots using SQLite.

    Each project is stored as one JSON document alongside a few columns
    kept for listing and ad-hoc inspection.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn_lock = threading.Lock()
        self._locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._conn_lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._conn_lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._conn_lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    async def _load(self, project_id: str) -> Project | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM projects WHERE id = ?", project_id
        )
        if not row:
            return None
        return Project.from_json(row["data"])

    # ------------------------------------------------------------------
    # Repository API
    async def create_project(self, project: Project) -> Project:
        try:
            await asyncio.to_thread(
                self._execute,
                "INSERT INTO projects (id, name, status, created_at, updated_at, data) VALUES (?, ?, ?, ?, ?, ?)",
                project.id,
                project.name,
                project.status.value,
                project.created_at.isoformat(),
                project.updated_at.isoformat(),
                project.to_json(),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Project {project.id} already exists") from exc
        return project.model_copy(deep=True)

    async def get_project(self, project_id: str) -> Project | None:
        return await self._load(project_id)

    def _update(self, project_id: str, mutator: ProjectMutator) -> Project:
        # BEGIN IMMEDIATE takes the database write lock before the read, so
        # other connections to the same file cannot interleave their own
        # read-modify-write.
        with self._conn_lock:
            cur = self._conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            try:
                cur.execute("SELECT data FROM projects WHERE id = ?", (project_id,))
                row = cur.fetchone()
                if not row:
                    raise ProjectNotFound(project_id)
                project = Project.from_json(row["data"])
                mutator(project)
                project.touch()
                cur.execute(
                    "UPDATE projects SET name = ?, status = ?, updated_at = ?, data = ? WHERE id = ?",
                    (
                        project.name,
                        project.status.value,
                        project.updated_at.isoformat(),
                        project.to_json(),
                        project_id,
                    ),
                )
            except BaseException:
                self._conn.rollback()
                raise
            self._conn.commit()
            return project

    async def update_project(self, project_id: str, mutator: ProjectMutator) -> Project:
        async with self._locks[project_id]:
            return await asyncio.to_thread(self._update, project_id, mutator)

    async def list_projects(self) -> list[Project]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT data FROM projects ORDER BY created_at"
        )
        return [Project.from_json(row["data"]) for row in rows]

    async def delete_project(self, project_id: str) -> None:
        async with self._locks[project_id]:
            await asyncio.to_thread(
                self._execute, "DELETE FROM projects WHERE id = ?", project_id
            )
        self._locks.pop(project_id, None)

    def close(self) -> None:
        with self._conn_lock:
            self._conn.close()
