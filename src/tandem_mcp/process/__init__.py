"""Subprocess execution for the assistant CLIs."""

from .runner import (
    DEFAULT_KILL_GRACE_MS,
    ExecutionOutcome,
    FakeProcessRunner,
    OutputPolicy,
    ProcessRunner,
    ProcessState,
)
from .utils import build_environment, clean_output, platform_executable

__all__ = [
    "DEFAULT_KILL_GRACE_MS",
    "ExecutionOutcome",
    "FakeProcessRunner",
    "OutputPolicy",
    "ProcessRunner",
    "ProcessState",
    "build_environment",
    "clean_output",
    "platform_executable",
]
