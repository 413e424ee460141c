"""Persistence layer for comic drama projects."""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..config import ComicDramaConfig, load_config
from ..constants import DATABASE_URL_ENV_VAR
from .inmemory import InMemoryProjectRepository
from .repository import ProjectMutator, ProjectRepository
from .sqlite import SQLiteProjectRepository

logger = logging.getLogger(__name__)

_repository_instance: ProjectRepository | None = None
_repository_url: str | None = None


def _resolve_url(
    database_url: Optional[str], config: Optional[ComicDramaConfig]
) -> str | None:
    config = config or load_config()
    return (
        database_url
        or os.getenv(DATABASE_URL_ENV_VAR)
        or os.getenv("DATABASE_URL")
        or config.database_url
    )


def _open(database_url: str | None) -> ProjectRepository:
    if not database_url:
        return InMemoryProjectRepository()
    if database_url.startswith("sqlite://"):
        return SQLiteProjectRepository(database_url.replace("sqlite://", "", 1))
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresProjectRepository

        return PostgresProjectRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_repository(
    database_url: Optional[str] = None, config: Optional[ComicDramaConfig] = None
) -> ProjectRepository:
    """Return the shared project repository, opening it on first use.

    The backend is selected from ``database_url``, the environment variables
    ``COMICDRAMA_DATABASE_URL`` / ``DATABASE_URL``, or the loaded
    configuration, falling back to an in-memory store. Asking for a different
    URL replaces the shared repository; a replaced SQLite store is closed.
    """

    global _repository_instance, _repository_url
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    url = _resolve_url(database_url, config)
    if _repository_instance is not None and url == _repository_url:
        return _repository_instance

    repository = _open(url)
    if isinstance(_repository_instance, SQLiteProjectRepository):
        logger.info(f"Closing project store {_repository_instance.db_path}")
        _repository_instance.close()
    _repository_instance = repository
    _repository_url = url
    return repository


__all__ = [
    "InMemoryProjectRepository",
    "ProjectMutator",
    "ProjectRepository",
    "SQLiteProjectRepository",
    "get_repository",
]
