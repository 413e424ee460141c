from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VAR,
    SIMULATED_TICK_DELAY,
    SIMULATED_TICKS,
)


class SimulationConfig(BaseModel):
    """Settings for the simulated step executors."""

    tick_delay: float = Field(default=SIMULATED_TICK_DELAY, ge=0)
    ticks: int = Field(default=SIMULATED_TICKS, ge=1)


class ComicDramaConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    simulation: SimulationConfig = SimulationConfig()


def load_config(path: Optional[str] = None) -> ComicDramaConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to COMICDRAMA_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR, "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ComicDramaConfig(**data)
    else:
        config = ComicDramaConfig()

    env_db_url = os.getenv(DATABASE_URL_ENV_VAR) or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
