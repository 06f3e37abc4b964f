"""Detect ``@claude`` / ``@gemini`` addressing markers in free text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

TriggerTarget = Literal["claude", "gemini"]

_PATTERNS: dict[str, re.Pattern[str]] = {
    "claude": re.compile(r"(?:^|\s)@claude(?:\s|$|[.,!?:;])", re.IGNORECASE),
    "gemini": re.compile(r"(?:^|\s)@gemini(?:\s|$|[.,!?:;])", re.IGNORECASE),
}
_REMOVE: dict[str, re.Pattern[str]] = {
    "claude": re.compile(r"@claude\s*", re.IGNORECASE),
    "gemini": re.compile(r"@gemini\s*", re.IGNORECASE),
}


@dataclass(frozen=True, slots=True)
class ParsedTrigger:
    target: TriggerTarget | None
    cleaned_message: str
    original_message: str

    @property
    def has_trigger(self) -> bool:
        return self.target is not None


def parse_trigger(message: str) -> ParsedTrigger:
    """Return the addressed assistant and the message without its marker.

    ``@claude`` wins when both markers are present.
    """

    trimmed = message.strip()
    for target in ("claude", "gemini"):
        if _PATTERNS[target].search(trimmed):
            return ParsedTrigger(
                target=target,  # type: ignore[arg-type]
                cleaned_message=_REMOVE[target].sub("", trimmed).strip(),
                original_message=message,
            )
    return ParsedTrigger(target=None, cleaned_message=trimmed, original_message=message)


def has_claude_trigger(message: str) -> bool:
    return bool(_PATTERNS["claude"].search(message))


def has_gemini_trigger(message: str) -> bool:
    return bool(_PATTERNS["gemini"].search(message))


def remove_triggers(message: str) -> str:
    for pattern in _REMOVE.values():
        message = pattern.sub("", message)
    return message.strip()


def add_trigger(message: str, target: TriggerTarget) -> str:
    return f"@{target} {message}"


__all__ = [
    "ParsedTrigger",
    "TriggerTarget",
    "add_trigger",
    "has_claude_trigger",
    "has_gemini_trigger",
    "parse_trigger",
    "remove_triggers",
]
