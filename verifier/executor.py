"""
Price Verify — Executor Resolver

Runs an external script through the first executor from an ordered
candidate list that is actually present on the host.

Decision rule per attempt:
  - launch fails (not found / not invokable)  → remember error, next candidate
  - any bytes on stdout                       → stop, even on non-zero exit
  - exit zero                                 → stop
  - non-zero exit with empty stdout           → remember stderr, next candidate

Candidates are tried strictly one after another. Once an attempt is
usable no further candidate is launched. Output validity is decided by
the caller (see verifier.invoker), never by the exit code alone.

Usage:
    from verifier.executor import ExecutorResolver

    resolver = ExecutorResolver(["python", "python3", "py"])
    attempt = resolver.resolve_and_run("ml/price_model.py", ["check", payload])
    attempt.stdout, attempt.stderr
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from typing import Sequence

from verifier.errors import ExecutionError
from verifier.logging import StructuredLogger
from verifier.types import AttemptOutcome, ExecutorAttempt

logger = logging.getLogger("price_verify.executor")


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace").strip()


class ExecutorResolver:
    """
    Ordered fallback over interchangeable executors.

    Holds configuration only; every call to resolve_and_run is an
    independent resolution pass with its own attempt records.
    """

    def __init__(
        self,
        candidates: Sequence[str],
        timeout_seconds: float | None = None,
    ):
        if not candidates:
            raise ValueError("at least one executor candidate is required")
        self.candidates = tuple(candidates)
        self.timeout_seconds = timeout_seconds

    def available_executors(self) -> dict[str, str | None]:
        """Map each candidate to its resolved path on PATH (None if absent)."""
        return {name: shutil.which(name) for name in self.candidates}

    def _launch(self, executor: str, script_path: str, args: Sequence[str]) -> ExecutorAttempt:
        cmd = [executor, str(script_path), *args]
        try:
            proc = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout_seconds,
            )
        except OSError as e:
            return ExecutorAttempt(
                executor=executor,
                outcome=AttemptOutcome.LAUNCH_FAILED,
                error=f"{executor}: {e.strerror or e}",
            )

        stdout = proc.stdout or b""
        stderr = proc.stderr or b""
        if proc.returncode == 0:
            outcome = AttemptOutcome.EXITED_ZERO
        elif stdout:
            outcome = AttemptOutcome.EXITED_NONZERO_WITH_OUTPUT
        else:
            outcome = AttemptOutcome.EXITED_NONZERO_NO_OUTPUT

        error = ""
        if proc.returncode != 0:
            error = _decode(stderr) or f"{executor} exited with {proc.returncode}"

        return ExecutorAttempt(
            executor=executor,
            outcome=outcome,
            stdout=stdout,
            stderr=stderr,
            returncode=proc.returncode,
            error=error,
        )

    def resolve_and_run(
        self,
        script_path: str,
        args: Sequence[str] = (),
        trace: StructuredLogger | None = None,
    ) -> ExecutorAttempt:
        """
        Run script_path with args through the first usable executor.

        Returns the usable attempt (stdout/stderr captured as bytes).
        Raises ExecutionError when every candidate fails to launch or
        exits non-zero without output, or when an attempt times out.
        """
        attempts: list[ExecutorAttempt] = []
        last_error = ""

        for executor in self.candidates:
            start = time.monotonic()
            try:
                attempt = self._launch(executor, script_path, args)
            except subprocess.TimeoutExpired as e:
                # subprocess.run has already killed and reaped the child
                message = f"{executor} timed out after {self.timeout_seconds}s"
                logger.warning("Executor %s", message)
                attempt = ExecutorAttempt(
                    executor=executor,
                    outcome=AttemptOutcome.TIMED_OUT,
                    stdout=e.stdout or b"",
                    stderr=e.stderr or b"",
                    error=message,
                )
                attempts.append(attempt)
                if trace:
                    trace.on_executor_attempt(attempt.to_dict(), (time.monotonic() - start) * 1000)
                raise ExecutionError(message, attempts=attempts)
            latency_ms = (time.monotonic() - start) * 1000
            attempts.append(attempt)
            if trace:
                trace.on_executor_attempt(attempt.to_dict(), latency_ms)

            if attempt.usable:
                if attempt.outcome == AttemptOutcome.EXITED_NONZERO_WITH_OUTPUT:
                    logger.warning(
                        "Executor %s exited %s but produced output; using it",
                        executor, attempt.returncode,
                    )
                return attempt

            last_error = attempt.error
            logger.debug("Executor %s unusable (%s): %s",
                         executor, attempt.outcome.value, attempt.error)

        raise ExecutionError(last_error or "no executor available", attempts=attempts)


def resolve_and_run(
    candidates: Sequence[str],
    script_path: str,
    args: Sequence[str] = (),
    timeout_seconds: float | None = None,
) -> tuple[bytes, bytes]:
    """Functional form: returns (stdout, stderr) of the first usable attempt."""
    attempt = ExecutorResolver(candidates, timeout_seconds).resolve_and_run(script_path, args)
    return attempt.stdout, attempt.stderr
