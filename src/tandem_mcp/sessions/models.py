"""Data models for persisted session continuity."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SessionRecord(BaseModel):
    """Continuity record for one assistant in one working directory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str | None = Field(
        default=None,
        description="Resume token passed back to the CLI; absent for CLIs that resume 'latest'.",
    )
    working_directory: str = Field(..., description="Directory the session is scoped to.")
    last_used: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp of the last successful completion.",
    )
    task_count: int = Field(default=1, ge=1, description="Successful calls made in this session.")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


__all__ = ["SessionRecord"]
