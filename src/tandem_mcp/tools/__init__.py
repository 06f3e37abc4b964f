"""Tool registration for Tandem MCP."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError

from ..executors import ClaudeExecutor, ExecutionOptions, GeminiExecutor, SessionAwareExecutor
from ..process import ExecutionOutcome
from ..triggers import parse_trigger
from .schemas import (
    ClearSessionInput,
    DelegateTaskInput,
    GeminiTaskInput,
    ListSessionsInput,
    RelayMessageInput,
    validate_input,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    delegate_coding_task: Any
    delegate_to_gemini: Any
    clear_session: Any
    list_sessions: Any
    relay_message: Any
    executors: dict[str, SessionAwareExecutor]


def _render(outcome: ExecutionOutcome) -> dict[str, Any]:
    payload = outcome.to_dict()
    payload["summary"] = outcome.summary()
    return payload


def register_tools(
    server: FastMCP,
    *,
    claude: ClaudeExecutor,
    gemini: GeminiExecutor,
) -> ToolHandles:
    """Register Tandem's MCP tools on the server."""

    executors: dict[str, SessionAwareExecutor] = {"claude": claude, "gemini": gemini}

    async def _delegate_coding_task(
        instruction: str,
        working_directory: str | None = None,
        timeout_ms: int | None = None,
        session_id: str | None = None,
        continue_session: bool = True,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Delegate a coding task to the Claude CLI."""

        params = validate_input(
            DelegateTaskInput,
            instruction=instruction,
            working_directory=working_directory,
            timeout_ms=timeout_ms,
            session_id=session_id,
            continue_session=continue_session,
        )
        outcome = await claude.execute(
            params.instruction,
            ExecutionOptions(
                working_directory=params.working_directory,
                timeout_ms=params.timeout_ms,
                session_id=str(params.session_id) if params.session_id else None,
                continue_session=params.continue_session,
            ),
        )
        await _emit_log(
            context,
            "info" if outcome.success else "warning",
            "Delegated task to Claude",
            extra={
                "session_id": outcome.session_id,
                "success": outcome.success,
                "duration_ms": outcome.duration_ms,
            },
        )
        return _render(outcome)

    async def _delegate_to_gemini(
        instruction: str,
        working_directory: str | None = None,
        timeout_ms: int | None = None,
        continue_session: bool = True,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Hand a task back to the Gemini CLI."""

        params = validate_input(
            GeminiTaskInput,
            instruction=instruction,
            working_directory=working_directory,
            timeout_ms=timeout_ms,
            continue_session=continue_session,
        )
        outcome = await gemini.execute(
            params.instruction,
            ExecutionOptions(
                working_directory=params.working_directory,
                timeout_ms=params.timeout_ms,
                continue_session=params.continue_session,
            ),
        )
        await _emit_log(
            context,
            "info" if outcome.success else "warning",
            "Delegated task to Gemini",
            extra={"success": outcome.success, "duration_ms": outcome.duration_ms},
        )
        return _render(outcome)

    async def _clear_session(
        working_directory: str,
        assistant: str = "claude",
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Delete the stored session for a working directory."""

        params = validate_input(
            ClearSessionInput,
            working_directory=working_directory,
            assistant=assistant,
        )
        cleared = executors[params.assistant].clear_session(params.working_directory)
        message = (
            f"✓ Session for {params.working_directory} cleared."
            if cleared
            else f"⚠ No session found for {params.working_directory}."
        )
        await _emit_log(
            context,
            "info",
            "Clear session",
            extra={"assistant": params.assistant, "cleared": cleared},
        )
        return {
            "cleared": cleared,
            "assistant": params.assistant,
            "working_directory": params.working_directory,
            "message": message,
        }

    async def _list_sessions(
        assistant: str | None = None,
        context: Context | None = None,
    ) -> list[dict[str, Any]]:
        """List stored sessions with their directories and task counters."""

        params = validate_input(ListSessionsInput, assistant=assistant)
        names = [params.assistant] if params.assistant else list(executors)
        sessions = [
            {"assistant": name, **record.model_dump(mode="json")}
            for name in names
            for record in executors[name].list_sessions()
        ]
        await _emit_log(context, "debug", "Listing sessions", extra={"count": len(sessions)})
        return sessions

    async def _relay_message(
        message: str,
        working_directory: str | None = None,
        continue_session: bool = True,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Route a message to whichever assistant its @-trigger addresses."""

        params = validate_input(
            RelayMessageInput,
            message=message,
            working_directory=working_directory,
            continue_session=continue_session,
        )
        trigger = parse_trigger(params.message)
        if trigger.target is None:
            raise ToolError("No @claude or @gemini trigger found in message")
        if not trigger.cleaned_message:
            raise ToolError("Validation failed: message: nothing left after removing the trigger")

        outcome = await executors[trigger.target].execute(
            trigger.cleaned_message,
            ExecutionOptions(
                working_directory=params.working_directory,
                continue_session=params.continue_session,
            ),
        )
        await _emit_log(
            context,
            "info" if outcome.success else "warning",
            "Relayed message",
            extra={"target": trigger.target, "success": outcome.success},
        )
        payload = _render(outcome)
        payload["target"] = trigger.target
        return payload

    tool_delegate = server.tool(
        name="delegate_coding_task",
        description=(
            "Delegate a coding task to the Claude Code CLI: write, analyze, debug or "
            "refactor code, edit files, run git and tests. Sessions persist per working "
            "directory so Claude keeps context between calls; set continue_session=false "
            "for a fresh session. Uses the locally authenticated CLI, no API calls. "
            "Claude runs with --dangerously-skip-permissions in the working directory."
        ),
    )(_delegate_coding_task)

    tool_gemini = server.tool(
        name="delegate_to_gemini",
        description=(
            "Hand a task to the Gemini CLI running headless. Sessions resume the latest "
            "Gemini conversation of the working directory unless continue_session=false."
        ),
    )(_delegate_to_gemini)

    tool_clear = server.tool(
        name="clear_session",
        description="Delete the stored session for a working directory to start without old context.",
    )(_clear_session)

    tool_list = server.tool(
        name="list_sessions",
        description="List stored sessions with their working directories and task counters.",
    )(_list_sessions)

    tool_relay = server.tool(
        name="relay_message",
        description="Route a message containing @claude or @gemini to that assistant.",
    )(_relay_message)

    return ToolHandles(
        delegate_coding_task=tool_delegate,
        delegate_to_gemini=tool_gemini,
        clear_session=tool_clear,
        list_sessions=tool_list,
        relay_message=tool_relay,
        executors=executors,
    )


async def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log locally and mirror the message to the MCP client when a context is available."""

    payload = extra or {}
    getattr(logger, level, logger.info)(message, extra=payload)

    if context is None:
        return
    ctx_method = getattr(context, level, None)
    if not callable(ctx_method):
        return
    try:
        result = ctx_method(message)
        if inspect.isawaitable(result):
            await result
    except RuntimeError as exc:  # pragma: no cover - depends on FastMCP request state
        logger.debug("Context log unavailable", extra={"error": str(exc)})


__all__ = ["register_tools", "ToolHandles"]
