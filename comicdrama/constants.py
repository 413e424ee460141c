"""Shared constants for the comic drama workflow engine."""

from __future__ import annotations

CONFIG_ENV_VAR = "COMICDRAMA_CONFIG"
DATABASE_URL_ENV_VAR = "COMICDRAMA_DATABASE_URL"

CONFIG_SCHEMA_VERSION = 1

DEFAULT_AI_PROVIDER = "baidu"
DEFAULT_IMAGE_PROVIDER = "bytedance-seedream"
DEFAULT_VIDEO_PROVIDER = "bytedance-seedance"
DEFAULT_TTS_PROVIDER = "edge"
DEFAULT_STYLE = "anime"
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_DURATION_SECONDS = 5

# (type, name, description) in pipeline order. Later steps consume the
# outputs of earlier ones, so the order must not change.
STEP_TEMPLATE: list[tuple[str, str, str]] = [
    ("script", "Script Generation", "Turn the novel text into a scene-based script"),
    ("storyboard", "Storyboard", "Split the script into storyboard panels"),
    ("character", "Character Design", "Design consistent character appearances"),
    ("scene", "Scene Rendering", "Render comic-style scene backgrounds"),
    ("image", "Image Generation", "Generate the final panel images"),
    ("dubbing", "Dubbing", "Synthesize narration and dialogue with TTS"),
    ("video", "Video Generation", "Animate panels into video clips"),
    ("edit", "Editing", "Assemble clips, transitions and subtitles"),
    ("export", "Export", "Render and export the finished video"),
]

SIMULATED_TICKS = 4
SIMULATED_TICK_DELAY = 0.05
