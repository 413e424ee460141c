"""Command line interface for managing comic drama projects."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from comicdrama.config import load_config
from comicdrama.contracts import Project
from comicdrama.engine import WorkflowEngine
from comicdrama.errors import ComicDramaError
from comicdrama.events import EventLogger, InMemoryEventBus
from comicdrama.executors import ExecutorRegistry
from comicdrama.persistence import get_repository

app = typer.Typer(help="CLI for comic drama workflows")

project_app = typer.Typer(help="Commands for managing projects")
app.add_typer(project_app, name="project")

T = TypeVar("T")


@app.callback()
def main() -> None:
    """Comicdrama CLI entry point."""
    pass


def _build_engine() -> WorkflowEngine:
    config = load_config()
    logging.basicConfig(level=config.log_level.upper())
    event_bus = InMemoryEventBus()
    event_bus.subscribe(EventLogger())
    executors = ExecutorRegistry.simulated(
        ticks=config.simulation.ticks, tick_delay=config.simulation.tick_delay
    )
    return WorkflowEngine(get_repository(), executors, event_bus)


def _call(action: Callable[[WorkflowEngine], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh engine, turning engine errors into exit code 1."""
    engine = _build_engine()
    try:
        return asyncio.run(action(engine))
    except ComicDramaError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _echo_project(project: Optional[Project]) -> None:
    if project is None:
        typer.echo("Project not found")
        raise typer.Exit(code=1)
    typer.echo(f"Project {project.id}: {project.name} [{project.status.value}]")
    typer.echo(
        f"Style: {project.config.style}, aspect ratio: {project.config.aspect_ratio}, "
        f"auto proceed: {project.config.auto_proceed}"
    )
    for index, step in enumerate(project.steps):
        marker = ">" if index == project.current_step_index else "-"
        line = f"{marker} {step.type.value}: {step.status.value} {step.progress}%"
        if step.duration_ms is not None:
            line += f" ({step.duration_ms} ms)"
        if step.error:
            line += f" error: {step.error}"
        typer.echo(line)


@project_app.command("create")
def project_create(
    name: str,
    description: str = "",
    ai_provider: Optional[str] = None,
    image_provider: Optional[str] = None,
    video_provider: Optional[str] = None,
    tts_provider: Optional[str] = None,
    style: Optional[str] = None,
    aspect_ratio: Optional[str] = None,
    duration: Optional[int] = None,
    manual: bool = typer.Option(
        False, help="Stop after every step and wait for 'project advance'"
    ),
) -> None:
    """
    Create a new project with every pipeline step pending.

    Example:
        comicdrama project create "My first drama" --style chinese --aspect-ratio 9:16
    """
    options = {
        "ai_provider": ai_provider,
        "image_provider": image_provider,
        "video_provider": video_provider,
        "tts_provider": tts_provider,
        "style": style,
        "aspect_ratio": aspect_ratio,
        "duration": duration,
    }
    config = {key: value for key, value in options.items() if value is not None}
    config.update(description=description, auto_proceed=not manual)

    project = _call(lambda engine: engine.create_project(name, config))
    typer.echo(f"Created project {project.id}")


@project_app.command("list")
def project_list() -> None:
    """List all projects with their status."""
    projects = _call(lambda engine: engine.get_all_projects())
    if not projects:
        typer.echo("No projects found")
        return
    for project in projects:
        step = project.current_step
        typer.echo(
            f"{project.id}\t{project.status.value}\t{project.name}\t"
            f"{step.name if step else 'finished'}"
        )


@project_app.command("show")
def project_show(project_id: str) -> None:
    """Show a project and the state of each step."""
    _echo_project(_call(lambda engine: engine.get_project(project_id)))


@project_app.command("run")
def project_run(project_id: str) -> None:
    """Run the workflow until it completes, fails or pauses."""
    _echo_project(_call(lambda engine: engine.run_workflow(project_id)))


@project_app.command("resume")
def project_resume(project_id: str) -> None:
    """Resume a paused workflow from its current step."""
    _echo_project(_call(lambda engine: engine.resume_workflow(project_id)))


@project_app.command("advance")
def project_advance(project_id: str) -> None:
    """Run exactly one step of the workflow."""
    _echo_project(_call(lambda engine: engine.advance_workflow(project_id)))


@project_app.command("retry")
def project_retry(project_id: str) -> None:
    """Retry the failed step and continue the workflow."""
    _echo_project(_call(lambda engine: engine.retry_step(project_id)))


@project_app.command("skip")
def project_skip(project_id: str) -> None:
    """Skip the current pending step."""
    _echo_project(_call(lambda engine: engine.skip_step(project_id)))


@project_app.command("reset")
def project_reset(project_id: str) -> None:
    """Reset every step so the workflow can run again from the start."""
    _echo_project(_call(lambda engine: engine.reset_project(project_id)))


@project_app.command("pause")
def project_pause(project_id: str) -> None:
    """Pause a project that is waiting between steps."""
    _call(lambda engine: engine.pause_workflow(project_id))
    typer.echo(f"Pause requested for {project_id}")


@project_app.command("recover")
def project_recover() -> None:
    """Pause projects left running by an interrupted process."""
    recovered = _call(lambda engine: engine.recover_interrupted())
    if not recovered:
        typer.echo("No interrupted projects")
        return
    for project_id in recovered:
        typer.echo(f"Recovered {project_id}")


@project_app.command("delete")
def project_delete(project_id: str) -> None:
    """Delete a project. Deleting an unknown id is not an error."""
    _call(lambda engine: engine.delete_project(project_id))
    typer.echo(f"Deleted {project_id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
