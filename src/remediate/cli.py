"""remediate CLI - Main entry point."""

from __future__ import annotations

import json
import signal
from types import FrameType
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from remediate import __version__
from remediate.checkpoints import create_checkpoint_manager
from remediate.cli_utils import (
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    checkpoint_option,
    ensure_path_exists,
    json_option,
    path_argument,
    quiet_option,
    resolve_path,
    verbose_option,
    wire_config,
)
from remediate.errors import CheckpointError, ConfigError, RestoreError
from remediate.fixers import build_registry
from remediate.log import configure_logging
from remediate.orchestrator import Orchestrator
from remediate.report import OrchestrationReport
from remediate.validators import ValidationProbe

app = typer.Typer(
    name="remediate",
    help="Iterative remediation orchestrator - apply fixers until the diagnostic count converges.",
    add_completion=False,
)

# Rich consoles for output
console = Console()
err_console = Console(stderr=True)


# -----------------------------------------------------------------------------
# Output Helpers
# -----------------------------------------------------------------------------


def _output_success(message: str, quiet: bool = False) -> None:
    """Print a success message."""
    if not quiet:
        console.print(f"[green]Success:[/green] {message}")


def _output_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[red]Error:[/red] {message}")


def _output_warning(message: str, quiet: bool = False) -> None:
    """Print a warning message."""
    if not quiet:
        err_console.print(f"[yellow]Warning:[/yellow] {message}")


def _output_info(message: str, quiet: bool = False) -> None:
    """Print an info message."""
    if not quiet:
        console.print(message)


def _exit_error(message: str, exit_code: int = EXIT_USER_ERROR) -> None:
    """Print error and exit."""
    _output_error(message)
    raise typer.Exit(code=exit_code)


# -----------------------------------------------------------------------------
# Version and Main Callbacks
# -----------------------------------------------------------------------------


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"remediate version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Iterative remediation orchestrator - apply fixers until the diagnostic count converges."""
    pass


# -----------------------------------------------------------------------------
# Run Command
# -----------------------------------------------------------------------------


@app.command()
def run(
    path: str | None = path_argument(),
    target: int | None = typer.Option(
        None,
        "--target",
        "-t",
        help="Succeed once fewer than this many diagnostics remain (default: 10).",
    ),
    max_increase: int | None = typer.Option(
        None,
        "--max-increase",
        help="Revert a fixer attempt that adds more diagnostics than this (default: 100).",
    ),
    max_passes: int | None = typer.Option(
        None,
        "--max-passes",
        help="Maximum passes over the fixer registry (default: 10).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Probe and plan without invoking any fixer.",
    ),
    report_path: str | None = typer.Option(
        None,
        "--report",
        help="Where to write the JSON report (default: .remediate/remediate-report.json).",
    ),
    checkpoint: str | None = checkpoint_option(),
    json_output: bool = json_option(),
    quiet: bool = quiet_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Run fixers until the diagnostic target is met.

    Each fixer attempt is checkpointed, measured with the validation command
    and reverted if it adds more diagnostics than the safety margin allows.

    Exit codes: 0 when the target is reached, 1 when the run ended without
    reaching it (or the configuration is invalid), 2 when a checkpoint could
    not be restored and the working tree needs inspection before re-running.
    """
    configure_logging(verbose=verbose, quiet=quiet or json_output)

    root = ensure_path_exists(resolve_path(path), "Project path", must_be_dir=True)
    config = wire_config(
        global_target=target,
        max_allowed_increase=max_increase,
        max_passes=max_passes,
        checkpoint_backend=checkpoint,
        start_dir=root,
    )

    registry = build_registry(config)
    if not len(registry):
        _output_warning("No fixers configured; add [[fixers]] tables to .remediaterc", quiet)

    try:
        checkpoints = create_checkpoint_manager(config, root)
    except (CheckpointError, ConfigError) as e:
        _exit_error(str(e))

    probe = ValidationProbe.from_config(config, root)
    orchestrator = Orchestrator.from_config(
        config, probe, checkpoints, registry, root, dry_run=dry_run
    )
    report_file = resolve_path(report_path, root) if report_path else config.get_report_path(root)

    def _abort(signum: int, frame: FrameType | None) -> None:
        _output_warning("Interrupt received; stopping after the current step")
        orchestrator.request_abort()

    previous_handler = signal.signal(signal.SIGINT, _abort)
    report: OrchestrationReport | None = None
    fatal: RestoreError | None = None
    try:
        report = orchestrator.run()
    except RestoreError as e:
        fatal = e
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        checkpoints.close()
        if report is None:
            report = orchestrator.build_report()
        orchestrator.report.write(report, report_file)

    if json_output:
        result: dict[str, Any] = report.to_dict()
        result["report_path"] = str(report_file)
        console.print_json(json.dumps(result))
    elif quiet:
        if report.target_reached:
            _output_success(f"{report.final_total} diagnostic(s) remain")
    else:
        orchestrator.report.render(report, console)
        _output_info(f"Report written to {report_file}")

    if fatal is not None:
        _exit_error(
            f"{fatal}. The working tree may be in a mixed state; inspect it before re-running.",
            exit_code=EXIT_SYSTEM_ERROR,
        )
    if not report.target_reached:
        raise typer.Exit(code=EXIT_USER_ERROR)


# -----------------------------------------------------------------------------
# Probe Command
# -----------------------------------------------------------------------------


@app.command()
def probe(
    path: str | None = path_argument(),
    json_output: bool = json_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Run the validation command once and show diagnostics per category.

    Exits with code 2 if the validation command could not be read.
    """
    configure_logging(verbose=verbose, quiet=not verbose)

    root = ensure_path_exists(resolve_path(path), "Project path", must_be_dir=True)
    config = wire_config(start_dir=root)
    snapshot = ValidationProbe.from_config(config, root).probe()

    if json_output:
        console.print_json(json.dumps(snapshot.to_dict()))
    else:
        if snapshot.is_clean:
            _output_success("No diagnostics reported")
        elif not snapshot.degraded:
            table = Table(show_header=True, header_style="bold")
            table.add_column("Category")
            table.add_column("Count", justify="right")
            table.add_column("Example")
            for entry in snapshot.counts():
                examples = snapshot.examples.get(entry.category, [])
                example = f"{examples[0].file}:{examples[0].line} {examples[0].message}" if examples else ""
                table.add_row(entry.category, str(entry.count), example)
            console.print(table)
            console.print(f"[bold]Total:[/bold] {snapshot.total}")

    if snapshot.degraded:
        _exit_error(f"Validation probe failed: {snapshot.error}", exit_code=EXIT_SYSTEM_ERROR)


# -----------------------------------------------------------------------------
# Fixers Command
# -----------------------------------------------------------------------------


@app.command()
def fixers(
    path: str | None = path_argument(),
    json_output: bool = json_option(),
) -> None:
    """List configured fixers in execution order."""
    root = ensure_path_exists(resolve_path(path), "Project path", must_be_dir=True)
    config = wire_config(start_dir=root)
    registry = build_registry(config)

    entries = [
        {
            "id": descriptor.id,
            "category": descriptor.target_category,
            "per_category_target": descriptor.per_category_target,
            "max_attempts_per_pass": descriptor.max_attempts_per_pass,
            "command": registry.fixer_for(descriptor.id).describe(),
        }
        for descriptor in registry.ordered()
    ]

    if json_output:
        console.print_json(json.dumps({"fixers": entries}))
        return

    if not entries:
        _output_info("No fixers configured.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Id")
    table.add_column("Category")
    table.add_column("Target", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Command")
    for index, entry in enumerate(entries, start=1):
        table.add_row(
            str(index),
            entry["id"],
            entry["category"],
            f"< {entry['per_category_target']}",
            str(entry["max_attempts_per_pass"]),
            entry["command"],
        )
    console.print(table)


if __name__ == "__main__":
    app()
