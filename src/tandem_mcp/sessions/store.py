"""File-backed persistence for session records."""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .models import SessionRecord

logger = logging.getLogger(__name__)

KEY_LENGTH = 12


def directory_key(working_directory: str | os.PathLike[str]) -> str:
    """Return the stable, case-insensitive key for a working directory."""

    normalized = os.path.normpath(os.fspath(working_directory)).lower()
    digest = hashlib.md5(normalized.encode("utf-8"), usedforsecurity=False)
    return digest.hexdigest()[:KEY_LENGTH]


class SessionStore:
    """Store one JSON record per working directory under ``directory``.

    Persistence only affects continuity, so no operation raises: unreadable
    records load as ``None`` and failed writes are logged and dropped.
    """

    def __init__(self, directory: Path, *, prefix: str = "session-") -> None:
        self._directory = Path(directory)
        self._prefix = prefix

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def prefix(self) -> str:
        return self._prefix

    def path_for(self, working_directory: str | os.PathLike[str]) -> Path:
        return self._directory / f"{self._prefix}{directory_key(working_directory)}.json"

    def _read(self, path: Path) -> SessionRecord | None:
        try:
            return SessionRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.debug("Unreadable session record", extra={"path": str(path), "error": str(exc)})
            return None

    def load(self, working_directory: str | os.PathLike[str]) -> SessionRecord | None:
        return self._read(self.path_for(working_directory))

    def save(self, working_directory: str | os.PathLike[str], record: SessionRecord) -> None:
        target = self.path_for(working_directory)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=self._directory)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(record.to_json())
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            logger.warning(
                "Failed to persist session record",
                extra={"path": str(target), "error": str(exc)},
            )
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def clear(self, working_directory: str | os.PathLike[str]) -> bool:
        target = self.path_for(working_directory)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning(
                "Failed to delete session record",
                extra={"path": str(target), "error": str(exc)},
            )
            return False
        return True

    def list(self) -> list[SessionRecord]:
        try:
            paths = sorted(self._directory.glob(f"{self._prefix}*.json"))
        except OSError as exc:
            logger.debug("Session directory unreadable", extra={"error": str(exc)})
            return []

        records: list[SessionRecord] = []
        for path in paths:
            record = self._read(path)
            if record is not None:
                records.append(record)
        return records


__all__ = ["KEY_LENGTH", "SessionStore", "directory_key"]
