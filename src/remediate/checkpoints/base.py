"""Base classes for working-tree checkpoints.

A checkpoint manager captures the working tree immediately before a fixer
runs so that a harmful fixer can be rolled back exactly, including any files
it created or deleted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path


@dataclass(frozen=True)
class Checkpoint:
    """Handle to a restorable working-tree state.

    Attributes:
        id: Backend-specific opaque identifier.
        created_at: When the snapshot was taken (UTC).
        label: Optional human-readable label.
    """

    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    label: str = ""


class BaseCheckpointManager(ABC):
    """Abstract base class for checkpoint backends.

    Attributes:
        root: Root of the working tree being protected.
    """

    # Name used in config and reports (must be set by subclasses)
    backend: str = ""

    def __init__(self, root: Path) -> None:
        self.root = root

    @abstractmethod
    def snapshot(self, label: str = "") -> Checkpoint:
        """Capture the current working tree.

        Raises:
            CheckpointError: If no restorable state could be captured.
        """

    @abstractmethod
    def restore(self, checkpoint: Checkpoint) -> None:
        """Return the working tree to the state captured by ``checkpoint``.

        Removes files created after the snapshot and recreates deleted ones.
        Calling it twice with the same checkpoint is harmless.

        Raises:
            RestoreError: If the tree could not be restored.
        """

    def discard(self, checkpoint: Checkpoint) -> None:  # noqa: B027
        """Release a checkpoint that will not be restored.

        Default implementation keeps nothing to release.
        """

    def commit(self, message: str) -> bool:
        """Record the current tree permanently, if the backend supports it.

        Returns:
            True if something was committed.
        """
        return False

    def close(self) -> None:  # noqa: B027
        """Release backend resources at the end of a run."""
