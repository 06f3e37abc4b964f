"""FastMCP server bootstrap for Tandem."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import TandemSettings, get_settings
from .executors import AuditLog, ClaudeExecutor, GeminiExecutor, SessionAwareExecutor
from .process import ProcessRunner, platform_executable
from .sessions import SessionStore
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the Tandem server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _run_sync(coro):
    """Execute an async coroutine on a dedicated event loop."""

    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def build_executors(
    settings: TandemSettings,
    runner: ProcessRunner | None = None,
) -> tuple[ClaudeExecutor, GeminiExecutor]:
    """Construct both executors from settings, sharing one runner and audit log."""

    runner = runner or ProcessRunner()
    audit_log = AuditLog(settings.audit_log_path)
    claude = ClaudeExecutor(
        executable=settings.claude_path or platform_executable("claude"),
        store=SessionStore(settings.session_dir, prefix="session-"),
        audit_log=audit_log,
        runner=runner,
        default_timeout_ms=settings.claude_timeout_ms,
        kill_grace_ms=settings.claude_kill_grace_ms,
        probe_timeout_ms=settings.probe_timeout_ms,
    )
    gemini = GeminiExecutor(
        executable=settings.gemini_path or platform_executable("gemini"),
        store=SessionStore(settings.session_dir, prefix="gemini-session-"),
        audit_log=audit_log,
        runner=runner,
        default_timeout_ms=settings.gemini_timeout_ms,
        kill_grace_ms=settings.gemini_kill_grace_ms,
        probe_timeout_ms=settings.probe_timeout_ms,
    )
    return claude, gemini


async def _check_available(executor: SessionAwareExecutor) -> bool:
    try:
        return await executor.is_available()
    finally:
        await executor.runner.drain()


def _probe(executor: SessionAwareExecutor) -> dict[str, Any]:
    return {
        "executable": executor.executable,
        "available": bool(_run_sync(_check_available(executor))),
        "default_timeout_ms": executor.default_timeout_ms,
    }


def create_server(
    settings: Optional[TandemSettings] = None,
    claude: ClaudeExecutor | None = None,
    gemini: GeminiExecutor | None = None,
    *,
    probe: bool = True,
) -> FastMCP:
    """Instantiate the FastMCP server with both delegation directions wired up."""

    settings = settings or get_settings()

    if claude is None or gemini is None:
        default_claude, default_gemini = build_executors(settings)
        claude = claude or default_claude
        gemini = gemini or default_gemini

    cli_metadata: dict[str, dict[str, Any]] = {}
    for executor in (claude, gemini):
        if probe:
            cli_metadata[executor.name] = _probe(executor)
        else:
            cli_metadata[executor.name] = {
                "executable": executor.executable,
                "available": None,
                "default_timeout_ms": executor.default_timeout_ms,
            }
        if cli_metadata[executor.name]["available"] is False:
            logging.getLogger(__name__).warning(
                "%s CLI not reachable",
                executor.name,
                extra={"executable": executor.executable},
            )

    server = FastMCP(
        name="Tandem MCP",
        version=__version__,
        instructions=(
            "Tandem lets one coding assistant delegate work to another through their "
            "local CLIs. Sessions are kept per working directory so repeated calls "
            "continue the same conversation."
        ),
    )

    handles = register_tools(server, claude=claude, gemini=gemini)

    @server.resource(
        "resource://tandem/status",
        name="tandem_status",
        description="Provides the current runtime status for the Tandem MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        sessions = {name: len(executor.list_sessions()) for name, executor in handles.executors.items()}
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "session_dir": str(settings.session_dir),
            "audit_log": str(settings.audit_log_path),
            "clis": cli_metadata,
            "sessions": sessions,
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "cli_metadata", cli_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "executors", handles.executors)
    return server


def main() -> None:
    """Entry point for running the Tandem MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Tandem MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "clis": {
                name: meta.get("available")
                for name, meta in getattr(server, "cli_metadata", {}).items()
            },
        },
    )
    server.run()


if __name__ == "__main__":
    main()
