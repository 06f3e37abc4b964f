"""Append-only audit trail of delegated instructions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


class AuditLog:
    """Best-effort human-readable log of every delegation."""

    def __init__(self, path: Path, *, clock: Callable[[], datetime] | None = None) -> None:
        self._path = Path(path)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> Path:
        return self._path

    def record(
        self,
        *,
        direction: str,
        instruction: str,
        task_count: int,
        resumed: bool,
        session_id: str | None = None,
    ) -> bool:
        marker = f"[CONTINUE #{task_count}]" if resumed else "[NEW SESSION]"
        entry = f"[{self._clock().isoformat()}] {marker} {direction}: {instruction}\n"
        if session_id:
            entry += f"Session: {session_id}\n"
        entry += "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(entry)
        except OSError as exc:
            logger.warning("Failed to write audit log", extra={"path": str(self._path), "error": str(exc)})
            return False
        return True


__all__ = ["AuditLog"]
