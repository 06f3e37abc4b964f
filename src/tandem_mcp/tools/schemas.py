"""Input models for Tandem's MCP tools."""

from __future__ import annotations

from typing import Literal, TypeVar
from uuid import UUID

from fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field, ValidationError, field_validator

Assistant = Literal["claude", "gemini"]

MIN_TIMEOUT_MS = 10_000
MAX_TIMEOUT_MS = 3_600_000


def _reject_nul(value: str) -> str:
    # Command line arguments cannot carry NUL bytes.
    if "\x00" in value:
        raise ValueError("must not contain NUL characters")
    return value


class _InstructionInput(BaseModel):
    instruction: str = Field(..., description="Precise task description for the worker CLI.")
    working_directory: str | None = Field(
        default=None,
        description="Directory the CLI runs in; defaults to the server's current directory.",
    )
    timeout_ms: int | None = Field(
        default=None,
        ge=MIN_TIMEOUT_MS,
        le=MAX_TIMEOUT_MS,
        description="Timeout in milliseconds (10s - 1h).",
    )
    continue_session: bool = Field(
        default=True,
        description="Continue the stored session for the directory; false starts fresh.",
    )

    @field_validator("instruction")
    @classmethod
    def _require_instruction(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Instruction must not be empty")
        return _reject_nul(value)


class DelegateTaskInput(_InstructionInput):
    """Arguments for delegating a coding task to Claude."""

    session_id: UUID | None = Field(
        default=None,
        description="Pin an explicit Claude session id.",
    )


class GeminiTaskInput(_InstructionInput):
    """Arguments for delegating a task to Gemini."""


class ClearSessionInput(BaseModel):
    working_directory: str = Field(..., min_length=1)
    assistant: Assistant = "claude"


class ListSessionsInput(BaseModel):
    assistant: Assistant | None = None


class RelayMessageInput(BaseModel):
    message: str = Field(..., min_length=1)
    working_directory: str | None = None
    continue_session: bool = True

    @field_validator("message")
    @classmethod
    def _check_message(cls, value: str) -> str:
        return _reject_nul(value)


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: type[ModelT], **values: object) -> ModelT:
    """Validate tool arguments, raising ``ToolError`` before anything is spawned."""

    try:
        return model.model_validate(values)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ToolError(f"Validation failed: {details}") from exc


__all__ = [
    "Assistant",
    "ClearSessionInput",
    "DelegateTaskInput",
    "GeminiTaskInput",
    "ListSessionsInput",
    "MAX_TIMEOUT_MS",
    "MIN_TIMEOUT_MS",
    "RelayMessageInput",
    "validate_input",
]
