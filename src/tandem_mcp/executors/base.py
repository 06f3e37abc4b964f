"""Session-aware execution shared by both assistant CLIs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, ClassVar, Mapping

from ..process import (
    DEFAULT_KILL_GRACE_MS,
    ExecutionOutcome,
    OutputPolicy,
    ProcessRunner,
    build_environment,
)
from ..sessions import SessionRecord, SessionStore
from .audit import AuditLog

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExecutionOptions:
    """Per-call options accepted by :meth:`SessionAwareExecutor.execute`."""

    working_directory: str | Path | None = None
    timeout_ms: int | None = None
    session_id: str | None = None
    continue_session: bool = True
    additional_env: Mapping[str, str] | None = None


@dataclass(frozen=True, slots=True)
class ResolvedSession:
    session_id: str | None
    task_count: int
    resume: bool


class SessionAwareExecutor:
    """Resolve a session, run the CLI, and persist continuity on success.

    Subclasses supply the CLI argument conventions through
    :meth:`build_arguments` and :meth:`new_session_id`.
    """

    name: ClassVar[str]
    direction: ClassVar[str]
    policy: ClassVar[OutputPolicy]
    environment_overrides: ClassVar[Mapping[str, str]] = {}
    supports_session_id: ClassVar[bool] = False
    default_timeout_ms: int = 600_000

    def __init__(
        self,
        *,
        executable: str | Path,
        store: SessionStore,
        audit_log: AuditLog | None = None,
        runner: ProcessRunner | None = None,
        default_timeout_ms: int | None = None,
        kill_grace_ms: int = DEFAULT_KILL_GRACE_MS,
        probe_timeout_ms: int = 10_000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._executable = str(executable)
        self._store = store
        self._audit_log = audit_log
        self._runner = runner or ProcessRunner()
        if default_timeout_ms is not None:
            self.default_timeout_ms = default_timeout_ms
        self._kill_grace_ms = kill_grace_ms
        self._probe_timeout_ms = probe_timeout_ms
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    def new_session_id(self) -> str | None:
        return None

    def build_arguments(self, instruction: str, session: ResolvedSession) -> list[str]:
        raise NotImplementedError

    def build_environment(self, additional: Mapping[str, str] | None = None) -> dict[str, str]:
        return build_environment(self.environment_overrides, additional)

    def resolve_session(
        self,
        record: SessionRecord | None,
        options: ExecutionOptions,
    ) -> ResolvedSession:
        if self.supports_session_id and record is not None and not record.session_id:
            record = None

        if options.session_id:
            return ResolvedSession(
                session_id=options.session_id,
                task_count=1,
                resume=record is not None and options.continue_session,
            )
        if options.continue_session and record is not None:
            return ResolvedSession(
                session_id=record.session_id,
                task_count=record.task_count + 1,
                resume=True,
            )
        return ResolvedSession(session_id=self.new_session_id(), task_count=1, resume=False)

    async def execute(
        self,
        instruction: str,
        options: ExecutionOptions | None = None,
    ) -> ExecutionOutcome:
        options = options or ExecutionOptions()
        cwd = os.path.abspath(options.working_directory or os.getcwd())

        session = self.resolve_session(self._store.load(cwd), options)

        if self._audit_log is not None:
            self._audit_log.record(
                direction=self.direction,
                instruction=instruction,
                task_count=session.task_count,
                resumed=session.resume,
                session_id=session.session_id,
            )

        logger.info(
            "Delegating to %s",
            self.name,
            extra={
                "working_directory": cwd,
                "session_id": session.session_id,
                "resume": session.resume,
                "task_count": session.task_count,
            },
        )

        outcome = await self._runner.run(
            self._executable,
            self.build_arguments(instruction, session),
            policy=self.policy,
            timeout_ms=options.timeout_ms or self.default_timeout_ms,
            cwd=cwd,
            env=self.build_environment(options.additional_env),
            kill_grace_ms=self._kill_grace_ms,
        )

        if outcome.success:
            self._store.save(
                cwd,
                SessionRecord(
                    session_id=session.session_id,
                    working_directory=cwd,
                    last_used=self._clock(),
                    task_count=session.task_count,
                ),
            )
        else:
            logger.warning(
                "%s call failed",
                self.name,
                extra={"state": outcome.state.value, "exit_code": outcome.exit_code},
            )

        if self.supports_session_id:
            outcome = outcome.with_session(session.session_id)
        return outcome

    async def is_available(self) -> bool:
        """Probe the CLI with ``--version``; never raises."""

        try:
            outcome = await self._runner.run(
                self._executable,
                ["--version"],
                policy=OutputPolicy(label=self.policy.label, tolerate_nonzero_exit=False),
                timeout_ms=self._probe_timeout_ms,
                env=self.build_environment(),
                kill_grace_ms=self._kill_grace_ms,
            )
        except Exception as exc:  # pragma: no cover - best effort
            logger.debug("Availability probe failed", extra={"cli": self.name, "error": str(exc)})
            return False
        return outcome.exit_code == 0

    def clear_session(self, working_directory: str | Path) -> bool:
        return self._store.clear(os.path.abspath(working_directory))

    def list_sessions(self) -> list[SessionRecord]:
        return self._store.list()


__all__ = ["ExecutionOptions", "ResolvedSession", "SessionAwareExecutor"]
