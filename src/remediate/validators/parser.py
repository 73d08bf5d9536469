"""Diagnostic line grammars.

The probe only needs one operation from a grammar: turn a line of command
output into a Diagnostic or ignore it. Keeping the grammar here lets the
probe be pointed at a different validation tool without touching the
orchestrator.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from remediate.validators.base import Diagnostic

# <file>(<line>,<col>): error <CODE>: <message>
TSC_PATTERN = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\): error (?P<code>[A-Za-z]*\d+): (?P<message>.*)$"
)


@dataclass
class ParseResult:
    """Accumulated result of parsing command output.

    Attributes:
        total: Number of lines that matched the grammar.
        by_category: Count of matched lines per category.
        examples: First few diagnostics of each category.
        ignored: Number of non-empty lines that did not match.
    """

    total: int = 0
    by_category: Counter[str] = field(default_factory=Counter)
    examples: dict[str, list[Diagnostic]] = field(default_factory=dict)
    ignored: int = 0


class DiagnosticParser:
    """Line grammar for compiler-style diagnostics.

    Args:
        pattern: Regex with named groups ``file``, ``line``, ``column``,
            ``code`` and ``message``.
        examples_per_category: How many sample diagnostics to keep per
            category.
    """

    def __init__(
        self,
        pattern: re.Pattern[str] = TSC_PATTERN,
        examples_per_category: int = 3,
    ) -> None:
        self.pattern = pattern
        self.examples_per_category = examples_per_category

    def parse_line(self, line: str) -> Diagnostic | None:
        """Parse a single line, returning None when it does not match."""
        match = self.pattern.match(line.strip())
        if match is None:
            return None
        return Diagnostic(
            file=match.group("file"),
            line=int(match.group("line")),
            column=int(match.group("column")),
            category=match.group("code"),
            message=match.group("message"),
        )

    def parse(self, lines: Iterable[str]) -> ParseResult:
        """Parse command output, counting one diagnostic per matching line."""
        result = ParseResult()
        for line in lines:
            diagnostic = self.parse_line(line)
            if diagnostic is None:
                if line.strip():
                    result.ignored += 1
                continue
            result.total += 1
            result.by_category[diagnostic.category] += 1
            samples = result.examples.setdefault(diagnostic.category, [])
            if len(samples) < self.examples_per_category:
                samples.append(diagnostic)
        return result

    def parse_text(self, text: str) -> ParseResult:
        return self.parse(text.splitlines())
