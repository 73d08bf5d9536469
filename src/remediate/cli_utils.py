"""CLI utility functions for remediate.

Provides helper functions for:
- Config wiring: Extracting Typer CLI options and passing to load_config
- Path resolution: Resolving the project path argument
- Error formatting: Consistent user-friendly error messages with exit codes
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, NoReturn

import typer

from remediate.config import CHECKPOINT_BACKENDS, RemediateConfig, load_config

# Exit code conventions
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User error (bad input, target not reached, etc.)
EXIT_SYSTEM_ERROR = 2  # System error (failed restore, unreadable probe, etc.)


# -----------------------------------------------------------------------------
# Error Formatting Helpers
# -----------------------------------------------------------------------------


def error(msg: str, *, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Print an error message and exit with the given exit code.

    Args:
        msg: The error message to display.
        exit_code: Exit code to use (default: EXIT_USER_ERROR=1).

    Raises:
        typer.Exit: Always raises to exit the program.
    """
    styled_prefix = typer.style("Error:", fg=typer.colors.RED, bold=True)
    typer.echo(f"{styled_prefix} {msg}", err=True)
    raise typer.Exit(code=exit_code)


# -----------------------------------------------------------------------------
# Path Resolution Helpers
# -----------------------------------------------------------------------------


def resolve_path(
    path: str | Path | None,
    base_path: Path | None = None,
) -> Path:
    """Resolve a path relative to a base path.

    Handles:
    - Missing paths (the base path, or cwd, is returned)
    - Absolute paths (returned as-is after resolving)
    - Relative paths (resolved relative to base_path or cwd)

    Args:
        path: The path to resolve, or None for the base path itself.
        base_path: Base path to resolve relative paths from. Defaults to cwd.

    Returns:
        Resolved absolute Path.
    """
    base = base_path or Path.cwd()
    if path is None:
        return base.resolve()

    p = Path(path)
    return p.resolve() if p.is_absolute() else (base / p).resolve()


def ensure_path_exists(
    path: Path,
    path_type: str = "path",
    must_be_dir: bool = False,
) -> Path:
    """Ensure a path exists and optionally check that it is a directory.

    Args:
        path: The path to check.
        path_type: Human-readable name for the path (for error messages).
        must_be_dir: If True, path must be a directory.

    Returns:
        The verified path.

    Raises:
        typer.Exit: If the path doesn't exist or is the wrong type.
    """
    if not path.exists():
        error(f"{path_type} does not exist: {path}")

    if must_be_dir and not path.is_dir():
        error(f"{path_type} is not a directory: {path}")

    return path


# -----------------------------------------------------------------------------
# Config Wiring Helper
# -----------------------------------------------------------------------------


def wire_config(
    global_target: int | None = None,
    max_allowed_increase: int | None = None,
    max_passes: int | None = None,
    checkpoint_backend: str | None = None,
    start_dir: Path | None = None,
) -> RemediateConfig:
    """Wire CLI options to load_config with appropriate overrides.

    Args:
        global_target: Override for the global diagnostic target.
        max_allowed_increase: Override for the per-attempt safety margin.
        max_passes: Override for the pass budget.
        checkpoint_backend: Override for the checkpoint backend.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved RemediateConfig instance.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    cli_overrides: dict[str, Any] = {}

    if global_target is not None:
        cli_overrides["global_target"] = global_target
    if max_allowed_increase is not None:
        cli_overrides["max_allowed_increase"] = max_allowed_increase
    if max_passes is not None:
        cli_overrides["max_passes"] = max_passes
    if checkpoint_backend is not None:
        cli_overrides["checkpoint_backend"] = checkpoint_backend

    try:
        return load_config(cli_overrides=cli_overrides, start_dir=start_dir)
    except ValueError as e:
        error(f"Invalid configuration: {e}", exit_code=EXIT_USER_ERROR)


# -----------------------------------------------------------------------------
# Typer Option Factory Functions
# -----------------------------------------------------------------------------
# Typer consumes Option objects when decorating commands, so every command
# needs its own instance.


def path_argument() -> Any:
    """Create a Typer Argument for the project path.

    Returns:
        Typer Argument with default None and appropriate help text.
    """
    return typer.Argument(
        None,
        help="Project directory. Defaults to current directory.",
    )


def json_option() -> Any:
    """Create a Typer Option for --json.

    Returns:
        Typer Option with default False.
    """
    return typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    )


def quiet_option() -> Any:
    """Create a Typer Option for --quiet / -q.

    Returns:
        Typer Option with default False.
    """
    return typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output for CI.",
    )


def verbose_option() -> Any:
    """Create a Typer Option for --verbose.

    Returns:
        Typer Option with default False.
    """
    return typer.Option(
        False,
        "--verbose",
        help="Show debug logging.",
    )


def checkpoint_option() -> Any:
    """Create a Typer Option for --checkpoint.

    Returns:
        Typer Option with default None and appropriate help text.
    """
    return typer.Option(
        None,
        "--checkpoint",
        help=f"Checkpoint backend: {', '.join(CHECKPOINT_BACKENDS)} (default: auto).",
    )
