"""Session-aware executors for the assistant CLIs."""

from .audit import AuditLog
from .base import ExecutionOptions, ResolvedSession, SessionAwareExecutor
from .claude import ClaudeExecutor
from .gemini import GeminiExecutor

__all__ = [
    "AuditLog",
    "ClaudeExecutor",
    "ExecutionOptions",
    "GeminiExecutor",
    "ResolvedSession",
    "SessionAwareExecutor",
]
