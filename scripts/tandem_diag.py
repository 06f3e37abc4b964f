"""Tandem MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from tandem_mcp.config import TandemSettings, get_settings
from tandem_mcp.executors import SessionAwareExecutor
from tandem_mcp.server import build_executors


def load_executors(settings: TandemSettings) -> dict[str, SessionAwareExecutor]:
    claude, gemini = build_executors(settings)
    return {"claude": claude, "gemini": gemini}


def _selected(args: argparse.Namespace) -> dict[str, SessionAwareExecutor]:
    executors = load_executors(get_settings())
    assistant = getattr(args, "assistant", None)
    if assistant:
        return {assistant: executors[assistant]}
    return executors


def cmd_sessions(args: argparse.Namespace) -> None:
    rows = [
        {"assistant": name, **record.model_dump(mode="json")}
        for name, executor in _selected(args).items()
        for record in executor.list_sessions()
    ]
    if args.json:
        print(json.dumps(rows, indent=2))
        return
    if not rows:
        print("No stored sessions.")
        return
    for row in rows:
        print(
            f"{row['assistant']} {row['working_directory']} "
            f"session={row['session_id'] or '-'} tasks={row['task_count']} "
            f"last_used={row['last_used']}"
        )


def cmd_clear(args: argparse.Namespace) -> None:
    executor = load_executors(get_settings())[args.assistant]
    cleared = executor.clear_session(args.working_directory)
    print(json.dumps({"assistant": args.assistant, "cleared": cleared}))
    if not cleared:
        raise SystemExit(1)


async def _probe_all(executors: dict[str, SessionAwareExecutor]) -> dict[str, bool]:
    results = {name: await executor.is_available() for name, executor in executors.items()}
    for executor in executors.values():
        await executor.runner.drain()
    return results


def cmd_probe(args: argparse.Namespace) -> None:
    executors = _selected(args)
    results = asyncio.run(_probe_all(executors))
    payload = {
        name: {"executable": executors[name].executable, "available": available}
        for name, available in results.items()
    }
    print(json.dumps(payload, indent=2))
    if not all(results.values()):
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tandem MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_sessions = sub.add_parser("sessions", help="List stored sessions")
    p_sessions.add_argument("--assistant", choices=["claude", "gemini"])
    p_sessions.add_argument("--json", action="store_true", help="Output JSON")
    p_sessions.set_defaults(func=cmd_sessions)

    p_clear = sub.add_parser("clear", help="Delete the stored session for a directory")
    p_clear.add_argument("working_directory")
    p_clear.add_argument("--assistant", choices=["claude", "gemini"], default="claude")
    p_clear.set_defaults(func=cmd_clear)

    p_probe = sub.add_parser("probe", help="Check that the assistant CLIs respond to --version")
    p_probe.add_argument("--assistant", choices=["claude", "gemini"])
    p_probe.set_defaults(func=cmd_probe)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
