"""Fixers implemented by an external command or a Python callable."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from remediate.errors import FixerInvocationError
from remediate.fixers.base import BaseFixer, FixerOutcome
from remediate.validators.probe import split_command

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

# Lines of fixer output kept for the report
OUTPUT_TAIL_LINES = 5


def _tail(text: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class CommandFixer(BaseFixer):
    """Fixer that runs a command in the working directory.

    Example:
        >>> fixer = CommandFixer("ts2304", "node scripts/fix-ts2304.js", timeout=120)
        >>> outcome = fixer.run(project_root)
    """

    def __init__(
        self,
        fixer_id: str,
        command: str | Sequence[str],
        *,
        timeout: float = 120.0,
        runner: Runner = subprocess.run,
    ) -> None:
        super().__init__(fixer_id)
        self.command = split_command(command)
        if not self.command:
            raise ValueError(f"Fixer '{fixer_id}' has an empty command")
        self.timeout = timeout
        self._runner = runner

    def run(self, working_dir: Path) -> FixerOutcome:
        try:
            result = self._runner(
                self.command,
                cwd=str(working_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise FixerInvocationError(
                self.fixer_id, f"timed out after {self.timeout:.0f}s"
            ) from e
        except OSError as e:
            raise FixerInvocationError(self.fixer_id, f"could not be started: {e}") from e

        output = f"{result.stdout or ''}{result.stderr or ''}"
        return FixerOutcome(exit_code=result.returncode, output=_tail(output))

    def describe(self) -> str:
        return " ".join(self.command)


class CallableFixer(BaseFixer):
    """Fixer wrapping a Python callable ``fn(working_dir) -> int | None``.

    A ``None`` return counts as exit code 0. Any exception raised by the
    callable is reported as a FixerInvocationError.
    """

    def __init__(self, fixer_id: str, fn: Callable[[Path], int | None]) -> None:
        super().__init__(fixer_id)
        self.fn = fn

    def run(self, working_dir: Path) -> FixerOutcome:
        try:
            code = self.fn(working_dir)
        except Exception as e:
            raise FixerInvocationError(self.fixer_id, f"{type(e).__name__}: {e}") from e
        return FixerOutcome(exit_code=code or 0)

    def describe(self) -> str:
        return getattr(self.fn, "__qualname__", repr(self.fn))
