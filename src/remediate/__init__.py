"""remediate - iterative remediation orchestrator.

Repeatedly applies category-specific fixers to a source tree, measures each
fixer against a validation command's diagnostic count, and rolls back any
fixer that makes things worse.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
