from __future__ import annotations

import argparse
import importlib.util
import json
import os
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tandem_mcp.config import get_settings
from tandem_mcp.executors import ClaudeExecutor, GeminiExecutor
from tandem_mcp.process import ExecutionOutcome, FakeProcessRunner, ProcessState
from tandem_mcp.sessions import SessionRecord, SessionStore

REPO_ROOT = Path(__file__).resolve().parents[1]


def _load_diag(module_name: str):
    module_path = REPO_ROOT / "scripts" / "tandem_diag.py"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def _executors(tmp_path: Path, runner: FakeProcessRunner | None = None):
    runner = runner or FakeProcessRunner()
    return {
        "claude": ClaudeExecutor(
            executable="claude",
            store=SessionStore(tmp_path, prefix="session-"),
            runner=runner,
        ),
        "gemini": GeminiExecutor(
            executable="gemini",
            store=SessionStore(tmp_path, prefix="gemini-session-"),
            runner=runner,
        ),
    }


def _seed(store: SessionStore, directory: str, session_id: str | None) -> None:
    store.save(
        directory,
        SessionRecord(
            session_id=session_id,
            working_directory=directory,
            last_used=datetime(2025, 1, 1, tzinfo=timezone.utc),
            task_count=2,
        ),
    )


def test_sessions_json_lists_both_assistants(tmp_path: Path, monkeypatch, capsys) -> None:
    executors = _executors(tmp_path)
    _seed(executors["claude"].store, "/repo", "sess-1")
    _seed(executors["gemini"].store, "/repo", None)
    diag = _load_diag("tandem_diag_sessions_module")
    monkeypatch.setattr(diag, "load_executors", lambda _settings: executors)

    diag.cmd_sessions(argparse.Namespace(assistant=None, json=True))

    payload = json.loads(capsys.readouterr().out)
    assert sorted((row["assistant"], row["session_id"]) for row in payload) == [
        ("claude", "sess-1"),
        ("gemini", None),
    ]
    assert all(row["task_count"] == 2 for row in payload)


def test_sessions_text_output(tmp_path: Path, monkeypatch, capsys) -> None:
    executors = _executors(tmp_path)
    diag = _load_diag("tandem_diag_text_module")
    monkeypatch.setattr(diag, "load_executors", lambda _settings: executors)

    diag.cmd_sessions(argparse.Namespace(assistant="claude", json=False))
    assert capsys.readouterr().out.strip() == "No stored sessions."

    _seed(executors["claude"].store, "/repo", "sess-1")
    diag.cmd_sessions(argparse.Namespace(assistant="claude", json=False))
    line = capsys.readouterr().out.strip()
    assert line.startswith("claude /repo session=sess-1 tasks=2")


def test_clear_exit_code(tmp_path: Path, monkeypatch, capsys) -> None:
    executors = _executors(tmp_path)
    _seed(executors["gemini"].store, "/repo", None)
    diag = _load_diag("tandem_diag_clear_module")
    monkeypatch.setattr(diag, "load_executors", lambda _settings: executors)

    diag.main(["clear", "/repo", "--assistant", "gemini"])
    assert json.loads(capsys.readouterr().out) == {"assistant": "gemini", "cleared": True}

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["clear", "/repo", "--assistant", "gemini"])
    assert excinfo.value.code == 1


def test_probe_reports_unavailable_cli(tmp_path: Path, monkeypatch, capsys) -> None:
    missing = ExecutionOutcome(
        success=False,
        output="[SPAWN ERROR] GEMINI CLI could not be started",
        exit_code=None,
        duration_ms=1,
        state=ProcessState.SPAWN_FAILED,
    )
    ok = ExecutionOutcome(
        success=True,
        output="1.0.0",
        exit_code=0,
        duration_ms=1,
        state=ProcessState.CLOSED_OK,
    )
    runner = FakeProcessRunner([ok, missing])
    executors = _executors(tmp_path, runner)
    diag = _load_diag("tandem_diag_probe_module")
    monkeypatch.setattr(diag, "load_executors", lambda _settings: executors)

    with pytest.raises(SystemExit):
        diag.main(["probe"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["claude"] == {"executable": "claude", "available": True}
    assert payload["gemini"]["available"] is False
    assert [call["args"] for call in runner.invocations] == [("--version",), ("--version",)]


def test_settings_expand_user_like_the_server(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("TANDEM_SESSION_DIR", "~/sessions")
    seen = []
    diag = _load_diag("tandem_diag_settings_module")

    def fake_load_executors(settings):
        seen.append(settings.session_dir)
        return _executors(tmp_path)

    monkeypatch.setattr(diag, "load_executors", fake_load_executors)
    get_settings.cache_clear()
    try:
        diag.main(["sessions", "--json"])
    finally:
        get_settings.cache_clear()

    assert seen == [tmp_path / "sessions"]
    assert json.loads(capsys.readouterr().out) == []


def test_diagnostics_cli_runs_as_script(tmp_path: Path) -> None:
    env = os.environ.copy()
    env["PYTHONPATH"] = f"{REPO_ROOT / 'src'}" + os.pathsep + env.get("PYTHONPATH", "")
    env["TANDEM_STATE_DIR"] = str(tmp_path)
    env.pop("TANDEM_SESSION_DIR", None)
    env.pop("TANDEM_AUDIT_LOG", None)

    process = subprocess.run(
        [sys.executable, str(REPO_ROOT / "scripts" / "tandem_diag.py"), "sessions", "--json"],
        cwd=str(tmp_path),
        capture_output=True,
        text=True,
        env=env,
    )

    assert process.returncode == 0, process.stderr
    assert json.loads(process.stdout) == []
