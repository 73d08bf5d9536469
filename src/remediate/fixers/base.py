"""Base classes for remediate fixers.

A fixer is an opaque unit that mutates the working tree in place in an
attempt to reduce diagnostics of one category. The orchestrator never trusts
its exit code; only the measured before/after diagnostic delta decides
whether its change is kept.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FixerDescriptor:
    """Static configuration of one registered fixer.

    Attributes:
        id: Stable identifier, also the key of the fixer implementation.
        target_category: Diagnostic category this fixer works on.
        per_category_target: The fixer is skipped once the category count
            drops below this value.
        max_attempts_per_pass: Upper bound on invocations per pass.
    """

    id: str
    target_category: str
    per_category_target: int = 5
    max_attempts_per_pass: int = 3

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Fixer descriptor must have an id")
        if not self.target_category:
            raise ValueError(f"Fixer '{self.id}' must have a target category")
        if self.per_category_target < 0:
            raise ValueError(f"Fixer '{self.id}': per_category_target must be non-negative")
        if self.max_attempts_per_pass < 1:
            raise ValueError(f"Fixer '{self.id}': max_attempts_per_pass must be at least 1")


@dataclass(frozen=True)
class FixerOutcome:
    """What a fixer invocation reported.

    Attributes:
        exit_code: Exit status of the unit (logged, not interpreted).
        output: Tail of the unit's output, for the report.
    """

    exit_code: int = 0
    output: str = ""


class BaseFixer(ABC):
    """Abstract base class for all fixers.

    Attributes:
        fixer_id: Id matching the FixerDescriptor this fixer is registered under.
    """

    def __init__(self, fixer_id: str) -> None:
        self.fixer_id = fixer_id

    @abstractmethod
    def run(self, working_dir: Path) -> FixerOutcome:
        """Mutate the working tree in place.

        Args:
            working_dir: Root of the working tree.

        Returns:
            FixerOutcome with the unit's exit code.

        Raises:
            FixerInvocationError: If the unit crashed or timed out.
        """

    def describe(self) -> str:
        """Short human-readable description for listings."""
        return type(self).__name__
