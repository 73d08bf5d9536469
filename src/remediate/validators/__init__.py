"""Validation probe for remediate.

Runs the external validation command and turns its output into a
diagnostic multiset the orchestrator can compare before and after a fixer.
"""

from __future__ import annotations

from remediate.validators.base import (
    BaseProbe,
    Diagnostic,
    DiagnosticCount,
    DiagnosticSnapshot,
)
from remediate.validators.parser import TSC_PATTERN, DiagnosticParser, ParseResult
from remediate.validators.probe import ValidationProbe, split_command

__all__ = [
    # Base types
    "BaseProbe",
    "Diagnostic",
    "DiagnosticCount",
    "DiagnosticSnapshot",
    # Parsing
    "DiagnosticParser",
    "ParseResult",
    "TSC_PATTERN",
    # Probe
    "ValidationProbe",
    "split_command",
]
