"""Data contract tests."""

import pytest
from pydantic import ValidationError

from comicdrama.contracts import (
    Project,
    ProjectStatus,
    StepStatus,
    StepType,
    WorkflowConfig,
)


def test_template_builds_pipeline_in_order():
    project = Project.from_template("Demo", WorkflowConfig(name="Demo"))

    assert [step.type for step in project.steps] == [
        StepType.SCRIPT,
        StepType.STORYBOARD,
        StepType.CHARACTER,
        StepType.SCENE,
        StepType.IMAGE,
        StepType.DUBBING,
        StepType.VIDEO,
        StepType.EDIT,
        StepType.EXPORT,
    ]
    assert len({step.id for step in project.steps}) == len(project.steps)
    assert all(step.status == StepStatus.PENDING for step in project.steps)
    assert project.current_step_index == 0
    assert project.status == ProjectStatus.IDLE
    assert project.current_step.type == StepType.SCRIPT


def test_config_defaults_match_creation_form():
    config = WorkflowConfig(name="Demo")

    assert config.ai_provider == "baidu"
    assert config.image_provider == "bytedance-seedream"
    assert config.video_provider == "bytedance-seedance"
    assert config.tts_provider == "edge"
    assert config.style == "anime"
    assert config.aspect_ratio == "16:9"
    assert config.duration == 5
    assert config.auto_proceed is True
    assert config.schema_version == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "   "},
        {"ai_provider": ""},
        {"tts_provider": "  "},
        {"aspect_ratio": "4:3"},
        {"duration": 0},
        {"unknown_field": "x"},
        {"schema_version": 2},
    ],
)
def test_config_rejects_invalid_input(overrides):
    data = {"name": "Demo", **overrides}
    with pytest.raises(ValidationError):
        WorkflowConfig(**data)


def test_config_is_immutable():
    config = WorkflowConfig(name="Demo")
    with pytest.raises(ValidationError):
        config.style = "3d"


def test_credentials_are_opaque():
    config = WorkflowConfig(name="Demo", ai_api_key="  not-validated ", image_api_key="")
    assert config.ai_api_key == "  not-validated "
    assert config.image_api_key == ""


def test_project_snapshot_roundtrip_preserves_state():
    project = Project.from_template("Demo", WorkflowConfig(name="Demo", style="chinese"))
    project.current_step_index = 2
    project.status = ProjectStatus.PAUSED
    project.steps[0].status = StepStatus.COMPLETED
    project.steps[0].progress = 100
    project.steps[0].duration_ms = 1234
    project.steps[0].output = {"script": "Once upon a time", "scenes": [1, 2]}
    project.steps[1].status = StepStatus.SKIPPED
    project.steps[2].progress = 40

    restored = Project.from_json(project.to_json())

    assert restored == project
    assert restored.current_step_index == 2
    assert restored.steps[0].duration_ms == 1234
    assert restored.steps[2].progress == 40


def test_outputs_only_include_completed_steps():
    project = Project.from_template("Demo", WorkflowConfig(name="Demo"))
    project.steps[0].status = StepStatus.COMPLETED
    project.steps[0].output = "script text"
    project.steps[1].status = StepStatus.FAILED
    project.steps[1].output = "partial"

    assert project.outputs() == {"script": "script text"}


def test_step_reset_clears_run_data():
    project = Project.from_template("Demo", WorkflowConfig(name="Demo"))
    step = project.steps[0]
    step.status = StepStatus.FAILED
    step.progress = 70
    step.error = "boom"
    step.output = {"x": 1}

    step.reset()

    assert step.status == StepStatus.PENDING
    assert step.progress == 0
    assert step.error is None
    assert step.output is None
