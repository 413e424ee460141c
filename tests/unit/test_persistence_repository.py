import asyncio

import pytest

from comicdrama.contracts import Project, ProjectStatus, WorkflowConfig
from comicdrama.errors import ProjectNotFound
from comicdrama.persistence import InMemoryProjectRepository, SQLiteProjectRepository


def _project(name: str = "Demo") -> Project:
    return Project.from_template(name, WorkflowConfig(name=name))


@pytest.fixture(params=["inmemory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "inmemory":
        return InMemoryProjectRepository()
    return SQLiteProjectRepository(tmp_path / "projects.db")


@pytest.mark.asyncio
async def test_repository_crud(repo):
    project = _project()
    await repo.create_project(project)

    stored = await repo.get_project(project.id)
    assert stored == project

    def pause(p):
        p.status = ProjectStatus.PAUSED
        p.current_step_index = 3

    updated = await repo.update_project(project.id, pause)
    assert updated.status == ProjectStatus.PAUSED
    assert updated.updated_at >= project.updated_at

    stored = await repo.get_project(project.id)
    assert stored.status == ProjectStatus.PAUSED
    assert stored.current_step_index == 3

    all_projects = await repo.list_projects()
    assert [p.id for p in all_projects] == [project.id]

    await repo.delete_project(project.id)
    assert await repo.get_project(project.id) is None
    assert await repo.list_projects() == []


@pytest.mark.asyncio
async def test_create_rejects_duplicate_ids(repo):
    project = _project()
    await repo.create_project(project)
    with pytest.raises(ValueError):
        await repo.create_project(project)


@pytest.mark.asyncio
async def test_update_unknown_project_raises(repo):
    with pytest.raises(ProjectNotFound):
        await repo.update_project("missing", lambda p: None)


@pytest.mark.asyncio
async def test_failing_mutator_leaves_project_untouched(repo):
    project = _project()
    await repo.create_project(project)

    def broken(p):
        p.status = ProjectStatus.FAILED
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError):
        await repo.update_project(project.id, broken)

    stored = await repo.get_project(project.id)
    assert stored.status == ProjectStatus.IDLE


@pytest.mark.asyncio
async def test_delete_is_idempotent(repo):
    await repo.delete_project("missing")
    project = _project()
    await repo.create_project(project)
    await repo.delete_project(project.id)
    await repo.delete_project(project.id)
    assert await repo.get_project(project.id) is None


@pytest.mark.asyncio
async def test_reads_are_copies(repo):
    project = _project()
    await repo.create_project(project)

    snapshot = await repo.get_project(project.id)
    snapshot.status = ProjectStatus.COMPLETED
    snapshot.steps[0].progress = 99

    listed = await repo.list_projects()
    listed[0].current_step_index = 5

    stored = await repo.get_project(project.id)
    assert stored.status == ProjectStatus.IDLE
    assert stored.steps[0].progress == 0
    assert stored.current_step_index == 0


@pytest.mark.asyncio
async def test_list_is_ordered_by_creation(repo):
    first = _project("first")
    second = _project("second")
    await repo.create_project(first)
    await repo.create_project(second)

    assert [p.name for p in await repo.list_projects()] == ["first", "second"]


@pytest.mark.asyncio
async def test_updates_on_one_project_are_serialized(repo):
    project = _project()
    await repo.create_project(project)

    def bump(p):
        p.current_step_index += 1

    await asyncio.gather(*(repo.update_project(project.id, bump) for _ in range(20)))

    stored = await repo.get_project(project.id)
    assert stored.current_step_index == 20


@pytest.mark.asyncio
async def test_sqlite_repository_survives_reopen(tmp_path):
    db_path = tmp_path / "projects.db"
    repo = SQLiteProjectRepository(db_path)
    project = _project()
    project.steps[0].output = {"script": "text"}
    await repo.create_project(project)
    repo.close()

    reopened = SQLiteProjectRepository(db_path)
    stored = await reopened.get_project(project.id)
    assert stored == project
