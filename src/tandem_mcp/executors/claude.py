"""Executor for the Claude Code CLI."""

from __future__ import annotations

import uuid

from ..process import OutputPolicy
from .base import ResolvedSession, SessionAwareExecutor

CLAUDE_REMEDIATION = (
    "Check:\n"
    "1. Is the Claude CLI installed? -> npm install -g @anthropic-ai/claude-code\n"
    "2. Are you logged in? -> claude login"
)


class ClaudeExecutor(SessionAwareExecutor):
    """Runs ``claude -p`` with an explicit, persisted session id."""

    name = "claude"
    direction = "GEMINI -> CLAUDE"
    supports_session_id = True
    default_timeout_ms = 600_000
    policy = OutputPolicy(
        label="CLAUDE CLI",
        tolerate_nonzero_exit=True,
        empty_output_placeholder="[Claude returned no output]",
        remediation=CLAUDE_REMEDIATION,
    )

    def new_session_id(self) -> str:
        return str(uuid.uuid4())

    def build_arguments(self, instruction: str, session: ResolvedSession) -> list[str]:
        args = ["-p", instruction, "--dangerously-skip-permissions"]
        # --resume and --session-id are mutually exclusive for the CLI.
        if session.resume:
            args.extend(["--resume", str(session.session_id)])
        else:
            args.extend(["--session-id", str(session.session_id)])
        return args


__all__ = ["ClaudeExecutor", "CLAUDE_REMEDIATION"]
