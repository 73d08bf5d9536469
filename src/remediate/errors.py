"""Exception hierarchy for remediate.

Propagation rules used by the orchestrator:

- ProbeError and FixerInvocationError are recovered within a single attempt
  and recorded on the iteration result.
- CheckpointError short-circuits the current fixer only.
- RestoreError is fatal to the whole run.
"""

from __future__ import annotations


class RemediateError(Exception):
    """Base class for all remediate errors."""


class ConfigError(RemediateError, ValueError):
    """Raised when configuration values are invalid."""


class ProbeError(RemediateError):
    """Raised when the validation command could not be read reliably.

    Attributes:
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, message: str, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message)


class CheckpointError(RemediateError):
    """Raised when a restorable snapshot of the working tree cannot be taken."""


class RestoreError(RemediateError):
    """Raised when the working tree could not be restored to a checkpoint.

    The tree may be in a mixed state afterwards, so no further automated
    action is safe.
    """


class FixerInvocationError(RemediateError):
    """Raised when a fixer unit crashes or times out.

    Attributes:
        fixer_id: Id of the fixer that failed.
    """

    def __init__(self, fixer_id: str, message: str) -> None:
        self.fixer_id = fixer_id
        super().__init__(f"Fixer '{fixer_id}' failed: {message}")
