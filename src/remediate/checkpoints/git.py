"""Git-backed checkpoints.

Snapshots are git tree objects written through a private index file, so the
user's index, HEAD and ignored files are never touched. Restoring reads the
tree back with ``git read-tree --reset -u``, which also deletes files that
were added after the snapshot.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from remediate.checkpoints.base import BaseCheckpointManager, Checkpoint
from remediate.errors import CheckpointError, RestoreError
from remediate.log import logger

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

INDEX_NAME = "remediate-index"


def is_git_work_tree(path: Path) -> bool:
    """Check if a path is inside a git work tree.

    Args:
        path: Directory to check.

    Returns:
        True if git reports a work tree, False if not or git is unavailable.
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            cwd=str(path),
            capture_output=True,
            text=True,
            check=False,
        )
    except (subprocess.SubprocessError, OSError):
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


class GitCheckpointManager(BaseCheckpointManager):
    """Checkpoint manager using git tree objects.

    Attributes:
        root: Top level of the git work tree.
        git_dir: Absolute path of the repository's git directory.
        exclude: Paths (relative to root) never captured or restored.
    """

    backend = "git"

    def __init__(
        self,
        path: Path,
        *,
        exclude: list[str] | None = None,
        timeout: float = 120.0,
        runner: Runner = subprocess.run,
    ) -> None:
        self._runner = runner
        self.timeout = timeout
        try:
            toplevel = self._git(["rev-parse", "--show-toplevel"], cwd=path).strip()
            git_dir = self._git(["rev-parse", "--absolute-git-dir"], cwd=path).strip()
        except CheckpointError as e:
            raise CheckpointError(f"{path} is not inside a git work tree: {e}") from e
        super().__init__(Path(toplevel))
        self.git_dir = Path(git_dir)
        self.index_path = self.git_dir / INDEX_NAME
        self.exclude = [p for p in (exclude or []) if p]

    # -------------------------------------------------------------------------
    # Low-level helpers
    # -------------------------------------------------------------------------

    def _git(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        private_index: bool = False,
    ) -> str:
        """Run a git command and return stdout.

        Raises:
            CheckpointError: If git fails, times out or is unavailable.
        """
        env = None
        if private_index:
            env = {**os.environ, "GIT_INDEX_FILE": str(self.index_path)}
        try:
            result = self._runner(
                ["git", *args],
                cwd=str(cwd or self.root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise CheckpointError(f"git {args[0]} timed out after {self.timeout:.0f}s") from e
        except OSError as e:
            raise CheckpointError(f"git is not available: {e}") from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip().splitlines()
            raise CheckpointError(
                f"git {args[0]} failed: {detail[0] if detail else f'exit {result.returncode}'}"
            )
        return result.stdout

    def _pathspec(self) -> list[str]:
        spec = ["--", "."]
        spec.extend(f":(exclude){path}" for path in self.exclude)
        return spec

    def _capture_tree(self) -> str:
        """Stage the whole work tree into the private index and write a tree."""
        real_index = self.git_dir / "index"
        # Seeding from the real index reuses its stat cache
        if real_index.is_file():
            shutil.copyfile(real_index, self.index_path)
        elif self.index_path.exists():
            self.index_path.unlink()

        self._git(["add", "-A", *self._pathspec()], private_index=True)
        return self._git(["write-tree"], private_index=True).strip()

    # -------------------------------------------------------------------------
    # Checkpoint API
    # -------------------------------------------------------------------------

    def snapshot(self, label: str = "") -> Checkpoint:
        tree = self._capture_tree()
        if not tree:
            raise CheckpointError("git write-tree returned no tree id")
        logger.debug(f"Checkpoint {tree[:12]} captured {label}".rstrip())
        return Checkpoint(id=tree, label=label)

    def restore(self, checkpoint: Checkpoint) -> None:
        try:
            # The private index must describe the current tree so that
            # read-tree knows which new files to delete.
            self._capture_tree()
            self._git(["read-tree", "--reset", "-u", checkpoint.id], private_index=True)
        except CheckpointError as e:
            raise RestoreError(f"Could not restore checkpoint {checkpoint.id[:12]}: {e}") from e
        logger.debug(f"Restored checkpoint {checkpoint.id[:12]}")

    def commit(self, message: str) -> bool:
        """Commit the current tree with the user's index, skipping hooks."""
        try:
            if not self._git(["status", "--porcelain", *self._pathspec()]).strip():
                logger.info(f"No changes to commit for: {message}")
                return False
            self._git(["add", "-A", *self._pathspec()])
            self._git(["commit", "-m", message, "--no-verify"])
        except CheckpointError as e:
            logger.warning(f"Could not commit accepted change: {e}")
            return False
        return True

    def close(self) -> None:
        """Remove the private index file."""
        if self.index_path.exists():
            self.index_path.unlink()
