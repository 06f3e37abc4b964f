"""Configuration management for Tandem MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_state_dir() -> Path:
    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or "."
    return Path(home) / ".claude"


class TandemSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    claude_path: str | None = Field(default=None, validation_alias="CLAUDE_PATH")
    gemini_path: str | None = Field(default=None, validation_alias="GEMINI_PATH")
    state_dir: Path = Field(default_factory=_default_state_dir, validation_alias="TANDEM_STATE_DIR")
    session_dir_override: Path | None = Field(default=None, validation_alias="TANDEM_SESSION_DIR")
    audit_log_override: Path | None = Field(default=None, validation_alias="TANDEM_AUDIT_LOG")
    claude_timeout_ms: int = Field(default=600_000, validation_alias="TANDEM_CLAUDE_TIMEOUT_MS")
    gemini_timeout_ms: int = Field(default=120_000, validation_alias="TANDEM_GEMINI_TIMEOUT_MS")
    claude_kill_grace_ms: int = Field(default=5_000, validation_alias="TANDEM_CLAUDE_KILL_GRACE_MS")
    gemini_kill_grace_ms: int = Field(default=3_000, validation_alias="TANDEM_GEMINI_KILL_GRACE_MS")
    probe_timeout_ms: int = Field(default=10_000, validation_alias="TANDEM_PROBE_TIMEOUT_MS")
    log_level: str = Field(default="INFO", validation_alias="TANDEM_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TANDEM_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator(
        "claude_timeout_ms",
        "gemini_timeout_ms",
        "claude_kill_grace_ms",
        "gemini_kill_grace_ms",
        "probe_timeout_ms",
    )
    @classmethod
    def _validate_positive_ms(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Timeouts and grace windows must be >= 1 ms")
        return value

    @property
    def session_dir(self) -> Path:
        """Directory holding one JSON record per (assistant, working directory)."""

        return self.session_dir_override or self.state_dir / "bridge-sessions"

    @property
    def audit_log_path(self) -> Path:
        """Append-only log of every delegated instruction."""

        return self.audit_log_override or self.state_dir / "orchestrator.log"


@lru_cache(maxsize=1)
def get_settings() -> TandemSettings:
    """Return cached settings instance."""

    settings = TandemSettings()
    settings.state_dir = settings.state_dir.expanduser()
    if settings.session_dir_override is not None:
        settings.session_dir_override = settings.session_dir_override.expanduser()
    if settings.audit_log_override is not None:
        settings.audit_log_override = settings.audit_log_override.expanduser()
    return settings


__all__ = ["TandemSettings", "get_settings"]
