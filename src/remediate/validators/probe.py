"""Validation probe backed by an external command.

Runs the validation command in the working directory and counts the
diagnostics it prints. Flaky reads (timeouts, spawn failures, empty or
unparseable output) are retried with increasing timeouts; once the retry
budget is spent the probe reports a conservative sentinel total instead of
pretending the tree is clean.
"""

from __future__ import annotations

import shlex
import subprocess
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from remediate.config import RemediateConfig
from remediate.errors import ProbeError
from remediate.log import logger
from remediate.retry import with_retry
from remediate.validators.base import BaseProbe, DiagnosticSnapshot
from remediate.validators.parser import DiagnosticParser

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def split_command(command: str | Sequence[str]) -> list[str]:
    """Turn a configured command into an argv list."""
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


class ValidationProbe(BaseProbe):
    """Probe that shells out to the validation command.

    Attributes:
        command: argv of the validation command.
        working_dir: Directory the command runs in.
        parser: Grammar used to recognise diagnostic lines.
        timeout: Timeout of the first attempt in seconds.
        timeout_step: Seconds added to the timeout on each retry.
        attempts: Total attempts before giving up.
        backoff: Base delay between attempts.
        sentinel_total: Total reported after all attempts failed.
    """

    def __init__(
        self,
        command: str | Sequence[str],
        working_dir: Path,
        *,
        parser: DiagnosticParser | None = None,
        timeout: float = 30.0,
        timeout_step: float = 15.0,
        attempts: int = 3,
        backoff: float = 2.0,
        sentinel_total: int = 500,
        runner: Runner = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.command = split_command(command)
        if not self.command:
            raise ValueError("validation command must not be empty")
        self.working_dir = working_dir
        self.parser = parser or DiagnosticParser()
        self.timeout = timeout
        self.timeout_step = timeout_step
        self.attempts = attempts
        self.backoff = backoff
        self.sentinel_total = sentinel_total
        self._runner = runner
        self._sleep = sleep
        self.invocations = 0

    @classmethod
    def from_config(cls, config: RemediateConfig, working_dir: Path, **kwargs: Any) -> ValidationProbe:
        """Build a probe from resolved configuration."""
        return cls(
            config.validation_command,
            working_dir,
            timeout=config.probe_timeout,
            timeout_step=config.probe_timeout_step,
            attempts=config.probe_attempts,
            backoff=config.probe_backoff,
            sentinel_total=config.probe_sentinel_total,
            **kwargs,
        )

    def probe(self) -> DiagnosticSnapshot:
        """Probe the working tree, degrading to the sentinel on failure."""
        try:
            return self.probe_or_raise()
        except ProbeError as e:
            logger.warning(
                f"Validation probe degraded after {e.attempts} attempt(s): {e}; "
                f"assuming {self.sentinel_total} diagnostics"
            )
            return DiagnosticSnapshot.sentinel(self.sentinel_total, str(e))

    def probe_or_raise(self) -> DiagnosticSnapshot:
        """Probe the working tree.

        Returns:
            Snapshot of the diagnostics currently reported.

        Raises:
            ProbeError: If every attempt failed.
        """
        try:
            return with_retry(
                self._attempt,
                attempts=self.attempts,
                base_delay=self.backoff,
                retryable=(ProbeError,),
                label="validation probe",
                sleep=self._sleep,
            )
        except ProbeError as e:
            raise ProbeError(str(e), attempts=self.attempts) from e

    def _attempt(self, attempt: int) -> DiagnosticSnapshot:
        timeout = self.timeout + attempt * self.timeout_step
        self.invocations += 1
        logger.debug(f"Running {' '.join(self.command)} (timeout {timeout:.0f}s)")

        try:
            result = self._runner(
                self.command,
                cwd=str(self.working_dir),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"validation command timed out after {timeout:.0f}s") from e
        except OSError as e:
            raise ProbeError(f"validation command could not be started: {e}") from e

        if result.returncode == 0:
            return DiagnosticSnapshot.clean()

        output = f"{result.stdout or ''}{result.stderr or ''}"
        if not output.strip():
            raise ProbeError(
                f"validation command exited with {result.returncode} and printed nothing"
            )

        parsed = self.parser.parse_text(output)
        if parsed.total == 0:
            raise ProbeError(
                f"validation command exited with {result.returncode} but no diagnostic "
                f"lines could be parsed ({parsed.ignored} other lines)"
            )

        return DiagnosticSnapshot(
            total=parsed.total,
            by_category=dict(parsed.by_category),
            examples=parsed.examples,
        )
