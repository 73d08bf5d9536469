"""Content-addressed checkpoints stored on the local filesystem.

Every file of the working tree is stored once under its sha256 digest and a
JSON manifest records which digest, mode and symlink target belongs to each
path. Restoring rewrites only the files whose content differs and deletes
anything the manifest does not know about.
"""

from __future__ import annotations

import hashlib
import json
import os
import stat
import uuid
from pathlib import Path
from typing import Any

from remediate.checkpoints.base import BaseCheckpointManager, Checkpoint
from remediate.errors import CheckpointError, RestoreError
from remediate.log import logger

# Directory names never captured or restored
ALWAYS_EXCLUDED = frozenset({".git", ".hg", ".svn"})


def _digest(path: Path) -> str:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class StoreCheckpointManager(BaseCheckpointManager):
    """Checkpoint manager backed by a local content-addressed store.

    Attributes:
        root: Root of the working tree.
        store_dir: Directory holding ``objects/`` and ``manifests/``.
        exclude: Directory or file names skipped anywhere in the tree.
    """

    backend = "store"

    def __init__(
        self,
        root: Path,
        store_dir: Path,
        *,
        exclude: list[str] | None = None,
    ) -> None:
        super().__init__(root.resolve())
        self.store_dir = store_dir.resolve()
        self.objects_dir = self.store_dir / "objects"
        self.manifests_dir = self.store_dir / "manifests"
        self.exclude = set(exclude or []) | ALWAYS_EXCLUDED

    # -------------------------------------------------------------------------
    # Tree walking
    # -------------------------------------------------------------------------

    def _is_excluded(self, path: Path) -> bool:
        if path.name in self.exclude:
            return True
        if path != self.root and self.root in path.parents:
            if path.relative_to(self.root).as_posix() in self.exclude:
                return True
        # The store itself lives inside the tree in the default layout
        return path == self.store_dir or self.store_dir in path.parents

    def _walk(self) -> tuple[list[str], list[str]]:
        """List relative directories and files (including symlinks) under root."""
        dirs: list[str] = []
        files: list[str] = []
        for current, dirnames, filenames in os.walk(self.root):
            current_path = Path(current)
            kept: list[str] = []
            for name in sorted(dirnames):
                child = current_path / name
                if self._is_excluded(child):
                    continue
                if child.is_symlink():
                    # os.walk does not descend into symlinked dirs; treat as a file
                    files.append(child.relative_to(self.root).as_posix())
                    continue
                kept.append(name)
                dirs.append(child.relative_to(self.root).as_posix())
            dirnames[:] = kept
            for name in sorted(filenames):
                child = current_path / name
                if self._is_excluded(child):
                    continue
                files.append(child.relative_to(self.root).as_posix())
        return dirs, files

    def _object_path(self, digest: str) -> Path:
        return self.objects_dir / digest[:2] / digest[2:]

    def _store_file(self, path: Path) -> dict[str, Any]:
        info = path.lstat()
        if stat.S_ISLNK(info.st_mode):
            return {"link": os.readlink(path)}
        digest = _digest(path)
        target = self._object_path(digest)
        if not target.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_suffix(".tmp")
            tmp.write_bytes(path.read_bytes())
            tmp.replace(target)
        return {"sha256": digest, "mode": stat.S_IMODE(info.st_mode)}

    def _manifest_path(self, checkpoint_id: str) -> Path:
        return self.manifests_dir / f"{checkpoint_id}.json"

    # -------------------------------------------------------------------------
    # Checkpoint API
    # -------------------------------------------------------------------------

    def snapshot(self, label: str = "") -> Checkpoint:
        try:
            dirs, files = self._walk()
            entries = {rel: self._store_file(self.root / rel) for rel in files}
            checkpoint = Checkpoint(id=uuid.uuid4().hex, label=label)
            manifest = {
                "id": checkpoint.id,
                "created_at": checkpoint.created_at.isoformat(),
                "label": label,
                "directories": dirs,
                "files": entries,
            }
            self.manifests_dir.mkdir(parents=True, exist_ok=True)
            self._manifest_path(checkpoint.id).write_text(
                json.dumps(manifest, indent=2, sort_keys=True), encoding="utf-8"
            )
        except OSError as e:
            raise CheckpointError(f"Could not snapshot {self.root}: {e}") from e

        logger.debug(f"Checkpoint {checkpoint.id[:12]} captured {len(files)} files")
        return checkpoint

    def _load_manifest(self, checkpoint: Checkpoint) -> dict[str, Any]:
        path = self._manifest_path(checkpoint.id)
        try:
            manifest: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RestoreError(f"Checkpoint {checkpoint.id[:12]} is not available: {e}") from e
        return manifest

    def _matches(self, path: Path, entry: dict[str, Any]) -> bool:
        """Check whether the file on disk already equals the manifest entry."""
        if not os.path.lexists(path):
            return False
        if "link" in entry:
            return path.is_symlink() and os.readlink(path) == entry["link"]
        if path.is_symlink() or not path.is_file():
            return False
        return (
            stat.S_IMODE(path.stat().st_mode) == entry["mode"]
            and _digest(path) == entry["sha256"]
        )

    def _remove(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            for child in sorted(path.iterdir(), reverse=True):
                if not self._is_excluded(child):
                    self._remove(child)
            if not any(path.iterdir()):
                path.rmdir()
        else:
            path.unlink()

    def restore(self, checkpoint: Checkpoint) -> None:
        manifest = self._load_manifest(checkpoint)
        wanted_dirs: set[str] = set(manifest["directories"])
        wanted_files: dict[str, dict[str, Any]] = manifest["files"]

        try:
            current_dirs, current_files = self._walk()

            # Files (and symlinks) added since the snapshot
            for rel in current_files:
                if rel not in wanted_files:
                    self._remove(self.root / rel)

            # Directories added since the snapshot, deepest first
            for rel in sorted(current_dirs, key=lambda p: p.count("/"), reverse=True):
                path = self.root / rel
                if rel not in wanted_dirs and path.exists():
                    self._remove(path)

            for rel in sorted(wanted_dirs):
                path = self.root / rel
                if os.path.lexists(path) and not path.is_dir():
                    path.unlink()
                path.mkdir(parents=True, exist_ok=True)

            for rel, entry in wanted_files.items():
                path = self.root / rel
                if self._matches(path, entry):
                    continue
                if path.is_dir() and not path.is_symlink():
                    self._remove(path)
                elif os.path.lexists(path):
                    path.unlink()
                path.parent.mkdir(parents=True, exist_ok=True)
                if "link" in entry:
                    os.symlink(entry["link"], path)
                    continue
                path.write_bytes(self._object_path(entry["sha256"]).read_bytes())
                os.chmod(path, entry["mode"])
        except OSError as e:
            raise RestoreError(f"Could not restore checkpoint {checkpoint.id[:12]}: {e}") from e

        logger.debug(f"Restored checkpoint {checkpoint.id[:12]}")

    def discard(self, checkpoint: Checkpoint) -> None:
        path = self._manifest_path(checkpoint.id)
        if path.exists():
            path.unlink()

    def prune(self) -> int:
        """Delete objects no remaining manifest refers to.

        Returns:
            Number of objects removed.
        """
        referenced: set[str] = set()
        if self.manifests_dir.is_dir():
            for manifest_path in self.manifests_dir.glob("*.json"):
                manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
                referenced.update(
                    entry["sha256"] for entry in manifest["files"].values() if "sha256" in entry
                )

        removed = 0
        if self.objects_dir.is_dir():
            for obj in self.objects_dir.glob("*/*"):
                if obj.parent.name + obj.name not in referenced:
                    obj.unlink()
                    removed += 1
        return removed

    def close(self) -> None:
        """Drop every manifest and the objects they held."""
        if self.manifests_dir.is_dir():
            for manifest_path in self.manifests_dir.glob("*.json"):
                manifest_path.unlink()
        self.prune()
