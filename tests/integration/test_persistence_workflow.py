import asyncio

import pytest

from comicdrama.contracts import ProjectStatus, StepStatus, StepType
from comicdrama.engine import WorkflowEngine
from comicdrama.errors import AlreadyRunning
from comicdrama.executors import CallableExecutor, ExecutorRegistry
from comicdrama.persistence import SQLiteProjectRepository


def _registry(**overrides) -> ExecutorRegistry:
    registry = ExecutorRegistry.simulated(ticks=2, tick_delay=0)
    for step_type, executor in overrides.items():
        registry.register(step_type, executor)
    return registry


@pytest.mark.asyncio
async def test_completed_project_survives_reopen(tmp_path):
    db_path = tmp_path / "projects.db"
    repo = SQLiteProjectRepository(db_path)
    engine = WorkflowEngine(repo, _registry())
    project = await engine.create_project("Demo", {"name": "Demo", "style": "3d"})

    await engine.run_workflow(project.id)
    repo.close()

    reopened = WorkflowEngine(SQLiteProjectRepository(db_path), _registry())
    stored = await reopened.get_project(project.id)
    assert stored.status == ProjectStatus.COMPLETED
    assert stored.config.style == "3d"
    assert stored.current_step_index == len(StepType)
    assert all(step.status == StepStatus.COMPLETED for step in stored.steps)
    assert stored.steps[-1].output["inputs"] == [
        step_type.value for step_type in StepType if step_type != StepType.EXPORT
    ]


@pytest.mark.asyncio
async def test_paused_project_resumes_in_new_process(tmp_path):
    db_path = tmp_path / "projects.db"
    started = asyncio.Event()

    async def slow_scene(step, project, on_progress, token):
        await on_progress(10)
        started.set()
        await token.wait()
        token.raise_if_cancelled()

    repo = SQLiteProjectRepository(db_path)
    engine = WorkflowEngine(repo, _registry(scene=CallableExecutor(slow_scene)))
    project = await engine.create_project("Demo", {"name": "Demo"})

    task = asyncio.create_task(engine.run_workflow(project.id))
    await asyncio.wait_for(started.wait(), timeout=5)
    await engine.pause_workflow(project.id)
    paused = await asyncio.wait_for(task, timeout=5)
    repo.close()

    assert paused.status == ProjectStatus.PAUSED
    assert paused.current_step_index == 3

    events = []
    second = WorkflowEngine(SQLiteProjectRepository(db_path), _registry())
    second.subscribe(events.append)
    result = await second.resume_workflow(project.id)

    assert result.status == ProjectStatus.COMPLETED
    starts = [e.step_type for e in events if e.type == "stepStart"]
    assert starts == list(StepType)[3:]


@pytest.mark.asyncio
async def test_recover_after_crash(tmp_path):
    db_path = tmp_path / "projects.db"
    repo = SQLiteProjectRepository(db_path)
    engine = WorkflowEngine(repo, _registry())
    project = await engine.create_project("Demo", {"name": "Demo"})

    def crash_during_image(p):
        for step in p.steps[:4]:
            step.status = StepStatus.COMPLETED
        p.current_step_index = 4
        p.steps[4].status = StepStatus.RUNNING
        p.steps[4].progress = 60
        p.status = ProjectStatus.RUNNING

    await repo.update_project(project.id, crash_during_image)
    repo.close()

    restarted = WorkflowEngine(SQLiteProjectRepository(db_path), _registry())
    assert await restarted.recover_interrupted() == [project.id]

    recovered = await restarted.get_project(project.id)
    assert recovered.status == ProjectStatus.PAUSED
    assert recovered.steps[4].status == StepStatus.PENDING
    assert recovered.steps[4].progress == 60

    result = await restarted.resume_workflow(project.id)
    assert result.status == ProjectStatus.COMPLETED
    assert await restarted.recover_interrupted() == []


@pytest.mark.asyncio
async def test_pause_from_second_process_stops_running_step(tmp_path):
    db_path = tmp_path / "projects.db"
    reported = asyncio.Event()

    async def chatty_script(step, project, on_progress, token):
        for percent in range(1, 100):
            await on_progress(percent)
            reported.set()
            await token.sleep(0.01)
        return "script"

    runner = WorkflowEngine(
        SQLiteProjectRepository(db_path), _registry(script=CallableExecutor(chatty_script))
    )
    other = WorkflowEngine(SQLiteProjectRepository(db_path), _registry())
    project = await runner.create_project("Demo", {"name": "Demo"})

    task = asyncio.create_task(runner.run_workflow(project.id))
    await asyncio.wait_for(reported.wait(), timeout=5)
    await other.pause_workflow(project.id)

    seen = await other.get_project(project.id)
    assert seen.status == ProjectStatus.RUNNING
    assert seen.pause_requested

    paused = await asyncio.wait_for(task, timeout=5)
    assert paused.status == ProjectStatus.PAUSED
    assert paused.steps[0].status == StepStatus.PENDING
    assert paused.running_steps() == []
    assert not paused.loop_active

    result = await other.resume_workflow(project.id)
    assert result.status == ProjectStatus.COMPLETED


@pytest.mark.asyncio
async def test_second_process_cannot_run_a_step_twice(tmp_path):
    db_path = tmp_path / "projects.db"
    started = asyncio.Event()
    release = asyncio.Event()
    starts = []

    async def slow_script(step, project, on_progress, token):
        started.set()
        await release.wait()
        return "script"

    runner = WorkflowEngine(
        SQLiteProjectRepository(db_path), _registry(script=CallableExecutor(slow_script))
    )
    other = WorkflowEngine(SQLiteProjectRepository(db_path), _registry())
    runner.subscribe(lambda e: starts.append(("runner", e.step_type)) if e.type == "stepStart" else None)
    other.subscribe(lambda e: starts.append(("other", e.step_type)) if e.type == "stepStart" else None)
    project = await runner.create_project("Demo", {"name": "Demo", "auto_proceed": False})

    task = asyncio.create_task(runner.run_workflow(project.id))
    await asyncio.wait_for(started.wait(), timeout=5)

    with pytest.raises(AlreadyRunning):
        await other.advance_workflow(project.id)

    await other.pause_workflow(project.id)
    release.set()
    paused = await asyncio.wait_for(task, timeout=5)

    assert paused.status == ProjectStatus.PAUSED
    assert paused.current_step_index == 1
    assert starts == [("runner", StepType.SCRIPT)]

    advanced = await other.advance_workflow(project.id)
    assert advanced.current_step_index == 2
    assert starts[-1] == ("other", StepType.STORYBOARD)
