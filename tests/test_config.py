from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from tandem_mcp.config import TandemSettings, get_settings


def test_defaults_derive_from_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("TANDEM_STATE_DIR", "TANDEM_SESSION_DIR", "TANDEM_AUDIT_LOG", "USERPROFILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)

    settings = TandemSettings()

    assert settings.state_dir == tmp_path / ".claude"
    assert settings.session_dir == tmp_path / ".claude" / "bridge-sessions"
    assert settings.audit_log_path == tmp_path / ".claude" / "orchestrator.log"
    assert settings.claude_timeout_ms == 600_000
    assert settings.gemini_timeout_ms == 120_000
    assert settings.log_level == "INFO"


def test_overrides_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TANDEM_SESSION_DIR", str(tmp_path / "sessions"))
    monkeypatch.setenv("TANDEM_AUDIT_LOG", str(tmp_path / "audit.log"))
    monkeypatch.setenv("GEMINI_PATH", "/usr/local/bin/gemini")
    monkeypatch.setenv("TANDEM_LOG_LEVEL", " debug ")

    settings = TandemSettings()

    assert settings.session_dir == tmp_path / "sessions"
    assert settings.audit_log_path == tmp_path / "audit.log"
    assert settings.gemini_path == "/usr/local/bin/gemini"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "name, value",
    [("TANDEM_LOG_LEVEL", "chatty"), ("TANDEM_CLAUDE_TIMEOUT_MS", "0")],
)
def test_invalid_values_are_rejected(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, name: str, value: str
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        TandemSettings()


def test_get_settings_expands_user(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("TANDEM_STATE_DIR", "~/state")
    get_settings.cache_clear()
    try:
        settings = get_settings()
    finally:
        get_settings.cache_clear()

    assert settings.state_dir == tmp_path / "state"
