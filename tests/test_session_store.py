from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tandem_mcp.sessions import SessionRecord, SessionStore, directory_key


def _record(directory: str, *, session_id: str | None = "abc", task_count: int = 1) -> SessionRecord:
    return SessionRecord(
        session_id=session_id,
        working_directory=directory,
        last_used=datetime(2025, 1, 1, tzinfo=timezone.utc),
        task_count=task_count,
    )


def test_directory_key_is_case_insensitive_and_fixed_length() -> None:
    assert directory_key("/Projects/App") == directory_key("/projects/app")
    assert directory_key("/projects/app/") == directory_key("/projects/app")
    assert directory_key("/projects/app") != directory_key("/projects/other")
    assert len(directory_key("/projects/app")) == 12


def test_save_then_load(tmp_path: Path) -> None:
    store = SessionStore(tmp_path / "sessions")
    store.save("/work/repo", _record("/work/repo", task_count=3))

    loaded = store.load("/WORK/repo")

    assert loaded is not None
    assert loaded.session_id == "abc"
    assert loaded.task_count == 3
    assert store.path_for("/work/repo").name == f"session-{directory_key('/work/repo')}.json"


def test_record_file_uses_camel_case_keys(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.save("/work/repo", _record("/work/repo"))

    document = json.loads(store.path_for("/work/repo").read_text(encoding="utf-8"))

    assert set(document) == {"sessionId", "workingDirectory", "lastUsed", "taskCount"}


def test_load_reads_records_written_by_node_bridge(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.path_for("/work/repo").write_text(
        json.dumps(
            {
                "sessionId": "2b0c7c2e-6f0b-4a53-9d8e-3a3b1b7a8a11",
                "workingDirectory": "/work/repo",
                "lastUsed": "2025-01-01T10:00:00.000Z",
                "taskCount": 4,
            }
        ),
        encoding="utf-8",
    )

    record = store.load("/work/repo")

    assert record is not None
    assert record.task_count == 4


def test_save_overwrites_instead_of_merging(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.save("/work/repo", _record("/work/repo", session_id="first", task_count=5))
    store.save("/work/repo", _record("/work/repo", session_id=None, task_count=1))

    record = store.load("/work/repo")

    assert record is not None
    assert record.session_id is None
    assert record.task_count == 1
    assert not list(tmp_path.glob(".tmp-*"))


def test_load_missing_or_corrupt_returns_none(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    assert store.load("/nowhere") is None

    store.path_for("/broken").write_text("{not json", encoding="utf-8")
    assert store.load("/broken") is None

    store.path_for("/invalid").write_text(json.dumps({"taskCount": 0}), encoding="utf-8")
    assert store.load("/invalid") is None


def test_clear_returns_true_once(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.save("/work/repo", _record("/work/repo"))

    assert store.clear("/work/repo") is True
    assert store.clear("/work/repo") is False
    assert store.load("/work/repo") is None


def test_list_skips_corrupt_entries_and_other_prefixes(tmp_path: Path) -> None:
    claude_store = SessionStore(tmp_path, prefix="session-")
    gemini_store = SessionStore(tmp_path, prefix="gemini-session-")
    claude_store.save("/a", _record("/a"))
    claude_store.save("/b", _record("/b"))
    gemini_store.save("/a", _record("/a", session_id=None))
    claude_store.path_for("/c").write_text("garbage", encoding="utf-8")

    listed = claude_store.list()

    assert sorted(record.working_directory for record in listed) == ["/a", "/b"]
    assert [record.session_id for record in gemini_store.list()] == [None]


def test_list_on_missing_directory_is_empty(tmp_path: Path) -> None:
    assert SessionStore(tmp_path / "missing").list() == []


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="requires POSIX permissions")
def test_unwritable_directory_degrades_silently(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    store = SessionStore(locked / "sessions")
    caplog.set_level("WARNING", logger="tandem_mcp.sessions.store")
    try:
        store.save("/work/repo", _record("/work/repo"))
        assert store.load("/work/repo") is None
        assert store.clear("/work/repo") is False
        assert store.list() == []
    finally:
        locked.chmod(0o700)

    assert any("Failed to persist session record" in record.getMessage() for record in caplog.records)


def test_save_into_file_path_does_not_raise(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = SessionStore(blocker)

    store.save("/work/repo", _record("/work/repo"))

    assert store.load("/work/repo") is None
