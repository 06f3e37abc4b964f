"""Executor for the Gemini CLI."""

from __future__ import annotations

from ..process import OutputPolicy
from .base import ResolvedSession, SessionAwareExecutor

GEMINI_REMEDIATION = (
    "Check:\n"
    "1. Is the Gemini CLI installed? -> npm install -g @google/gemini-cli\n"
    "2. Are you authenticated? -> run gemini once interactively"
)


class GeminiExecutor(SessionAwareExecutor):
    """Runs ``gemini`` headless, resuming the latest session of the directory.

    The Gemini CLI has no per-call session id, so records carry only the
    directory and task counter.
    """

    name = "gemini"
    direction = "CLAUDE -> GEMINI"
    supports_session_id = False
    default_timeout_ms = 120_000
    environment_overrides = {"CI": "true", "TERM": "dumb", "NO_COLOR": "1"}
    policy = OutputPolicy(
        label="GEMINI CLI",
        tolerate_nonzero_exit=False,
        remediation=GEMINI_REMEDIATION,
    )

    def build_arguments(self, instruction: str, session: ResolvedSession) -> list[str]:
        args = [instruction, "--yolo", "-o", "text"]
        if session.resume:
            args.extend(["--resume", "latest"])
        return args


__all__ = ["GeminiExecutor", "GEMINI_REMEDIATION"]
