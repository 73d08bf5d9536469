"""Fixer framework for remediate.

Fixers are pluggable units registered explicitly at startup; the
orchestrator runs them in registration order.
"""

from __future__ import annotations

from remediate.fixers.base import BaseFixer, FixerDescriptor, FixerOutcome
from remediate.fixers.command import CallableFixer, CommandFixer
from remediate.fixers.registry import FixerRegistry, build_registry

__all__ = [
    # Base types
    "BaseFixer",
    "FixerDescriptor",
    "FixerOutcome",
    # Implementations
    "CallableFixer",
    "CommandFixer",
    # Registry
    "FixerRegistry",
    "build_registry",
]
