"""Working-tree checkpoints for remediate.

Provides the snapshot/restore primitive the orchestrator wraps around every
fixer invocation, with a git backend and a content-addressed store backend.
"""

from __future__ import annotations

from pathlib import Path

from remediate.checkpoints.base import BaseCheckpointManager, Checkpoint
from remediate.checkpoints.git import GitCheckpointManager, is_git_work_tree
from remediate.checkpoints.store import StoreCheckpointManager
from remediate.config import RemediateConfig
from remediate.errors import ConfigError


def create_checkpoint_manager(
    config: RemediateConfig,
    root: Path,
    backend: str | None = None,
) -> BaseCheckpointManager:
    """Create the checkpoint backend selected by configuration.

    ``auto`` picks git when ``root`` is inside a git work tree and the local
    store otherwise.

    Args:
        config: Resolved configuration.
        root: Working tree root.
        backend: Overrides ``config.checkpoint_backend`` when given.

    Returns:
        A checkpoint manager for ``root``.

    Raises:
        ConfigError: If the backend name is unknown.
        CheckpointError: If the git backend was requested outside a work tree.
    """
    name = backend or config.checkpoint_backend
    if name == "auto":
        name = "git" if is_git_work_tree(root) else "store"

    if name == "git":
        state_path = config.get_state_path(root).resolve()
        manager = GitCheckpointManager(root, exclude=[])
        try:
            manager.exclude = [state_path.relative_to(manager.root).as_posix()]
        except ValueError:
            # State directory lives outside the repository
            pass
        return manager
    if name == "store":
        return StoreCheckpointManager(
            root,
            config.get_state_path(root) / "checkpoints",
            exclude=[*config.exclude, config.state_dir],
        )
    raise ConfigError(f"Unknown checkpoint backend: {name}")


__all__ = [
    "BaseCheckpointManager",
    "Checkpoint",
    "GitCheckpointManager",
    "StoreCheckpointManager",
    "create_checkpoint_manager",
    "is_git_work_tree",
]
