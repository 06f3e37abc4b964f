"""Async runner for assistant CLIs."""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
import os
import signal
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .utils import clean_output

logger = logging.getLogger(__name__)

DEFAULT_KILL_GRACE_MS = 5_000
_READ_CHUNK = 4096
_NEW_PROCESS_GROUP = os.name == "posix"


class ProcessState(str, enum.Enum):
    """Lifecycle of a single CLI invocation."""

    STARTING = "starting"
    RUNNING = "running"
    CLOSED_OK = "closed_ok"
    CLOSED_NONZERO = "closed_nonzero"
    TIMED_OUT = "timed_out"
    SPAWN_FAILED = "spawn_failed"
    RUNTIME_ERROR = "runtime_error"

    @property
    def terminal(self) -> bool:
        return self not in (ProcessState.STARTING, ProcessState.RUNNING)


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Holds the outcome of one assistant CLI invocation."""

    success: bool
    output: str
    exit_code: int | None
    duration_ms: int
    state: ProcessState
    session_id: str | None = None

    def with_session(self, session_id: str | None) -> "ExecutionOutcome":
        return dataclasses.replace(self, session_id=session_id)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "output": self.output,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "state": self.state.value,
        }
        if self.session_id is not None:
            payload["session_id"] = self.session_id
        return payload

    def summary(self) -> str:
        """Render the outcome as the text block returned to the delegating assistant."""

        status = "✓ SUCCESS" if self.success else "✗ FAILED"
        header = f"[{status}] ({self.duration_ms / 1000:.1f}s)"
        if self.session_id:
            header += f"\n[Session: {self.session_id}]"
        return f"{header}\n\n{self.output}"


@dataclass(frozen=True, slots=True)
class OutputPolicy:
    """Decides whether a closed process produced a usable answer.

    With ``tolerate_nonzero_exit`` a non-zero exit code still counts as success
    when standard output is non-empty, because some CLIs exit non-zero after
    printing a complete answer.
    """

    label: str
    tolerate_nonzero_exit: bool = True
    empty_output_placeholder: str | None = None
    remediation: str = ""

    def evaluate(self, exit_code: int, stdout: str, stderr: str) -> tuple[bool, str]:
        out = stdout.strip()
        err = stderr.strip()
        if exit_code == 0 or (self.tolerate_nonzero_exit and out):
            if out:
                return True, out
            if self.empty_output_placeholder is not None:
                return True, self.empty_output_placeholder
            if err:
                return True, err
            return False, f"[{self.label} ERROR]\nexit code {exit_code} with no output"

        diagnostic = err or out or f"exit code {exit_code}"
        return False, f"[{self.label} ERROR]\n{diagnostic}"


class _Invocation:
    """Buffers and single-shot resolution for one running process."""

    def __init__(self, policy: OutputPolicy, timeout_ms: int) -> None:
        self.policy = policy
        self.timeout_ms = timeout_ms
        self.state = ProcessState.STARTING
        self.stdout = bytearray()
        self.stderr = bytearray()
        self._started = time.monotonic()
        self._future: asyncio.Future[ExecutionOutcome] = asyncio.get_running_loop().create_future()

    @property
    def outcome(self) -> asyncio.Future[ExecutionOutcome]:
        return self._future

    def resolve(
        self,
        state: ProcessState,
        *,
        success: bool,
        output: str,
        exit_code: int | None,
    ) -> bool:
        if self._future.done():
            logger.debug(
                "Ignoring late resolution",
                extra={"state": state.value, "resolved_as": self.state.value},
            )
            return False
        self.state = state
        self._future.set_result(
            ExecutionOutcome(
                success=success,
                output=output,
                exit_code=exit_code,
                duration_ms=int((time.monotonic() - self._started) * 1000),
                state=state,
            )
        )
        return True

    def text(self, stream: bytearray) -> str:
        return clean_output(bytes(stream).decode("utf-8", errors="replace"))

    def spawn_failed(self, exc: Exception) -> None:
        message = f"[SPAWN ERROR] {self.policy.label} could not be started: {exc}"
        if self.policy.remediation:
            message += f"\n\n{self.policy.remediation}"
        self.resolve(ProcessState.SPAWN_FAILED, success=False, output=message, exit_code=None)

    def runtime_error(self, exc: BaseException) -> None:
        self.resolve(
            ProcessState.RUNTIME_ERROR,
            success=False,
            output=f"[PROCESS ERROR] {exc}",
            exit_code=None,
        )

    def timed_out(self) -> bool:
        partial = self.text(self.stdout).strip() or self.text(self.stderr).strip() or "(none)"
        message = (
            f"[TIMEOUT] {self.policy.label} did not respond within "
            f"{self.timeout_ms / 1000:g}s\n\nPartial output:\n{partial}"
        )
        return self.resolve(ProcessState.TIMED_OUT, success=False, output=message, exit_code=None)

    def closed(self, exit_code: int) -> None:
        success, output = self.policy.evaluate(exit_code, self.text(self.stdout), self.text(self.stderr))
        state = ProcessState.CLOSED_OK if exit_code == 0 else ProcessState.CLOSED_NONZERO
        self.resolve(state, success=success, output=output, exit_code=exit_code)


async def _pump(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        sink.extend(chunk)


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    """Signal the child and everything it spawned.

    On POSIX the child leads its own session, so the whole group is
    signalled. Elsewhere only the direct child can be reached.
    """

    if _NEW_PROCESS_GROUP:
        os.killpg(process.pid, sig)
    elif sig == signal.SIGTERM:
        process.terminate()
    else:
        process.kill()


class ProcessRunner:
    """Execute one CLI invocation to completion or timeout.

    ``run`` never raises for process failures; every path resolves to an
    :class:`ExecutionOutcome`. A timed out child is terminated in the
    background, escalating to a kill after the grace window.
    """

    def __init__(self) -> None:
        self._background: set[asyncio.Task[None]] = set()

    def _track(self, task: asyncio.Task[None]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def run(
        self,
        command: str | Path,
        args: Sequence[str],
        *,
        policy: OutputPolicy,
        timeout_ms: int,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        kill_grace_ms: int = DEFAULT_KILL_GRACE_MS,
    ) -> ExecutionOutcome:
        loop = asyncio.get_running_loop()
        invocation = _Invocation(policy, timeout_ms)

        try:
            process = await asyncio.create_subprocess_exec(
                str(command),
                *args,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_NEW_PROCESS_GROUP,
            )
        except (OSError, ValueError) as exc:
            logger.warning(
                "Failed to spawn CLI",
                extra={"command": str(command), "error": str(exc)},
            )
            invocation.spawn_failed(exc)
            return invocation.outcome.result()

        invocation.state = ProcessState.RUNNING
        timer = loop.call_later(
            timeout_ms / 1000,
            self._on_timeout,
            invocation,
            process,
            kill_grace_ms,
        )
        self._track(loop.create_task(self._watch(invocation, process)))

        try:
            return await invocation.outcome
        except asyncio.CancelledError:
            with suppress(ProcessLookupError, PermissionError):
                _signal_group(process, signal.SIGKILL)
            raise
        finally:
            timer.cancel()

    async def _watch(self, invocation: _Invocation, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.gather(
                _pump(process.stdout, invocation.stdout),
                _pump(process.stderr, invocation.stderr),
            )
            exit_code = await process.wait()
        except OSError as exc:
            logger.warning("CLI process error", extra={"pid": process.pid, "error": str(exc)})
            invocation.runtime_error(exc)
            return
        invocation.closed(exit_code)

    def _on_timeout(
        self,
        invocation: _Invocation,
        process: asyncio.subprocess.Process,
        kill_grace_ms: int,
    ) -> None:
        if not invocation.timed_out():
            return
        logger.warning(
            "CLI timed out; terminating",
            extra={"pid": process.pid, "timeout_ms": invocation.timeout_ms},
        )
        self._track(asyncio.ensure_future(self._terminate(process, kill_grace_ms)))

    async def _terminate(self, process: asyncio.subprocess.Process, kill_grace_ms: int) -> None:
        try:
            try:
                _signal_group(process, signal.SIGTERM)
            except (ProcessLookupError, PermissionError):
                return
            try:
                await asyncio.wait_for(process.wait(), kill_grace_ms / 1000)
            except asyncio.TimeoutError:
                logger.warning("CLI ignored SIGTERM; killing", extra={"pid": process.pid})
                with suppress(ProcessLookupError):
                    _signal_group(process, signal.SIGKILL)
                await process.wait()
        finally:
            # Descendants that ignored SIGTERM may still hold the group.
            with suppress(ProcessLookupError, PermissionError):
                _signal_group(process, signal.SIGKILL)

    async def drain(self) -> None:
        """Wait for background watchers and terminations to finish."""

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


class FakeProcessRunner(ProcessRunner):
    """Test double that returns canned outcomes and records invocations."""

    def __init__(self, outcomes: Iterable[ExecutionOutcome] | None = None) -> None:
        super().__init__()
        self._outcomes = list(outcomes or [])
        self._invocations: list[dict[str, Any]] = []

    async def run(  # type: ignore[override]
        self,
        command: str | Path,
        args: Sequence[str],
        *,
        policy: OutputPolicy,
        timeout_ms: int,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        kill_grace_ms: int = DEFAULT_KILL_GRACE_MS,
    ) -> ExecutionOutcome:
        self._invocations.append(
            {
                "command": str(command),
                "args": tuple(args),
                "cwd": str(cwd) if cwd is not None else None,
                "env": dict(env or {}),
                "timeout_ms": timeout_ms,
                "kill_grace_ms": kill_grace_ms,
                "policy": policy,
            }
        )
        if self._outcomes:
            return self._outcomes.pop(0)
        return ExecutionOutcome(
            success=True,
            output="ok",
            exit_code=0,
            duration_ms=0,
            state=ProcessState.CLOSED_OK,
        )

    @property
    def invocations(self) -> list[dict[str, Any]]:
        return self._invocations


__all__ = [
    "DEFAULT_KILL_GRACE_MS",
    "ExecutionOutcome",
    "FakeProcessRunner",
    "OutputPolicy",
    "ProcessRunner",
    "ProcessState",
]
