"""Pytest configuration and fixtures for remediate tests."""

import os
import subprocess
from collections.abc import Iterator
from pathlib import Path

import pytest

from remediate.log import logger

# Set a fixed terminal width to prevent line wrapping issues in CI
# This must be set before any Rich imports
os.environ.setdefault("COLUMNS", "200")
os.environ.setdefault("LINES", "50")
# Disable Rich's terminal detection to ensure consistent output
os.environ.setdefault("TERM", "dumb")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep REMEDIATE_* variables from the caller's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("REMEDIATE_"):
            monkeypatch.delenv(name)


def git(repo: Path, *args: str) -> str:
    """Run a git command in ``repo`` and return its stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A git repository with one committed file."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "config", "user.email", "dev@example.com")
    git(repo, "config", "user.name", "Dev")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "src").mkdir()
    (repo / "src" / "app.ts").write_text("export const a: number = 1;\n")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", "initial")
    return repo


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop log sinks bound to streams captured during a test."""
    yield
    logger.remove()
