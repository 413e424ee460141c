"""Step executor contract and built-in executors."""

from __future__ import annotations

from .base import CancellationToken, ProgressCallback, StepExecutor
from .registry import ExecutorNotRegistered, ExecutorRegistry
from .simulated import CallableExecutor, SimulatedExecutor

__all__ = [
    "CallableExecutor",
    "CancellationToken",
    "ExecutorNotRegistered",
    "ExecutorRegistry",
    "ProgressCallback",
    "SimulatedExecutor",
    "StepExecutor",
]
