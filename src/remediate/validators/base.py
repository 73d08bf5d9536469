"""Base classes and models for the validation probe.

A probe turns the output of an external validation command into a
diagnostic multiset: a total plus a count per category.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Diagnostic:
    """A single diagnostic reported by the validation command.

    Attributes:
        file: Path of the file as printed by the command.
        line: One-based line number.
        column: One-based column number.
        category: Stable grouping key (e.g. "TS2304").
        message: Human-readable message.
    """

    file: str
    line: int
    column: int
    category: str
    message: str


@dataclass(frozen=True)
class DiagnosticCount:
    """Count of diagnostics in one category."""

    category: str
    count: int

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be non-negative")


@dataclass(frozen=True)
class DiagnosticSnapshot:
    """Diagnostic multiset produced by one probe.

    ``total`` may include diagnostics that have no category, so it is not
    required to equal the sum of ``by_category``; it is never smaller than
    the largest single category.

    Attributes:
        total: Total number of diagnostics.
        by_category: Count per category.
        degraded: True when the probe could not read the command reliably
            and ``total`` is the conservative sentinel.
        error: Description of the degraded read, if any.
        examples: Up to a few sample diagnostics per category.
    """

    total: int
    by_category: dict[str, int] = field(default_factory=dict)
    degraded: bool = False
    error: str | None = None
    examples: dict[str, list[Diagnostic]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValueError("total must be non-negative")
        if any(count < 0 for count in self.by_category.values()):
            raise ValueError("category counts must be non-negative")
        if self.by_category and self.total < max(self.by_category.values()):
            raise ValueError("total must be at least the largest category count")

    @classmethod
    def clean(cls) -> DiagnosticSnapshot:
        """Snapshot for a command that exited cleanly."""
        return cls(total=0)

    @classmethod
    def sentinel(cls, total: int, error: str) -> DiagnosticSnapshot:
        """Conservative snapshot used when the probe gave up."""
        return cls(total=total, degraded=True, error=error)

    @property
    def is_clean(self) -> bool:
        return self.total == 0 and not self.degraded

    def count(self, category: str) -> int:
        """Count for a category, 0 if absent."""
        return self.by_category.get(category, 0)

    def counts(self) -> list[DiagnosticCount]:
        """Categories sorted by count, most frequent first."""
        ordered = sorted(self.by_category.items(), key=lambda item: (-item[1], item[0]))
        return [DiagnosticCount(category, count) for category, count in ordered]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "total": self.total,
            "by_category": dict(self.by_category),
            "degraded": self.degraded,
        }
        if self.error:
            data["error"] = self.error
        return data


class BaseProbe(ABC):
    """Abstract base class for validation probes."""

    @abstractmethod
    def probe(self) -> DiagnosticSnapshot:
        """Run the validation command once (with retries) and count diagnostics.

        Failures are reported on the returned snapshot (``degraded=True``)
        rather than raised.
        """
