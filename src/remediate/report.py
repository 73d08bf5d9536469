"""Orchestration report.

The ReportGenerator owns the append-only iteration log. It derives the
per-fixer summary from that log, writes the JSON artifact and renders the
same data for humans.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table


@dataclass(frozen=True)
class IterationResult:
    """Outcome of one fixer invocation.

    Attributes:
        fixer_id: Fixer that ran.
        pass_number: One-based pass number.
        attempt: One-based attempt within the pass.
        before_total: Total diagnostics before the fixer ran.
        after_total: Total diagnostics after the fixer ran.
        before_category: Target-category count before.
        after_category: Target-category count after.
        reverted: Whether the change was rolled back.
        error: Fixer or probe failure description, if any.
        exit_code: Exit code of the fixer, None if it crashed or did not run.
        duration_seconds: Wall-clock time of invocation and probe.
        probe_degraded: Whether the after-probe used the sentinel total.
        planned: True for dry-run entries where no fixer was invoked.
    """

    fixer_id: str
    pass_number: int
    attempt: int
    before_total: int
    after_total: int
    before_category: int
    after_category: int
    reverted: bool
    error: str | None = None
    exit_code: int | None = None
    duration_seconds: float = 0.0
    probe_degraded: bool = False
    planned: bool = False

    @property
    def delta(self) -> int:
        """Change in total diagnostics (negative is an improvement)."""
        return self.after_total - self.before_total

    @property
    def category_fixed(self) -> int:
        """Target-category diagnostics removed by this attempt."""
        return max(0, self.before_category - self.after_category)

    @property
    def accepted(self) -> bool:
        return not self.reverted and not self.planned

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["delta"] = self.delta
        return data


@dataclass
class FixerSummary:
    """Per-fixer counts derived from the iteration log."""

    attempts: int = 0
    accepted: int = 0
    reverted: int = 0
    category_fixed: int = 0


@dataclass
class OrchestrationReport:
    """Finalized report of one orchestration run."""

    started_at: str
    finished_at: str
    duration_seconds: float
    initial_total: int
    final_total: int
    global_target: int
    target_reached: bool
    passes_run: int
    stop_reason: str
    complete: bool = True
    fatal_error: str | None = None
    dry_run: bool = False
    warnings: list[str] = field(default_factory=list)
    iterations: list[IterationResult] = field(default_factory=list)
    fixers: dict[str, FixerSummary] = field(default_factory=dict)

    @property
    def improvement(self) -> int:
        return self.initial_total - self.final_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": round(self.duration_seconds, 3),
            "initial_total": self.initial_total,
            "final_total": self.final_total,
            "improvement": self.improvement,
            "global_target": self.global_target,
            "target_reached": self.target_reached,
            "passes_run": self.passes_run,
            "stop_reason": self.stop_reason,
            "complete": self.complete,
            "fatal_error": self.fatal_error,
            "dry_run": self.dry_run,
            "warnings": list(self.warnings),
            "iterations": [result.to_dict() for result in self.iterations],
            "fixers": {fixer_id: asdict(summary) for fixer_id, summary in self.fixers.items()},
        }


class ReportGenerator:
    """Accumulates iteration results and produces the final report.

    Args:
        fixer_ids: Registered fixer ids, so fixers that never ran still get
            a zero summary in registration order.
    """

    def __init__(self, fixer_ids: list[str] | None = None) -> None:
        self._fixer_ids = list(fixer_ids or [])
        self._iterations: list[IterationResult] = []
        self._warnings: list[str] = []
        self._started_at = datetime.now(timezone.utc)
        self._started_clock = time.monotonic()

    @property
    def iterations(self) -> list[IterationResult]:
        """Copy of the log recorded so far."""
        return list(self._iterations)

    @property
    def warnings(self) -> list[str]:
        return list(self._warnings)

    def record(self, result: IterationResult) -> None:
        """Append one iteration result to the log."""
        self._iterations.append(result)

    def warn(self, message: str) -> None:
        """Attach a warning (e.g. a degraded probe) to the report."""
        if message not in self._warnings:
            self._warnings.append(message)

    def summarize(self) -> dict[str, FixerSummary]:
        """Per-fixer summary of the log so far."""
        summaries: dict[str, FixerSummary] = {fixer_id: FixerSummary() for fixer_id in self._fixer_ids}
        for result in self._iterations:
            summary = summaries.setdefault(result.fixer_id, FixerSummary())
            if result.planned:
                continue
            summary.attempts += 1
            if result.reverted:
                summary.reverted += 1
            else:
                summary.accepted += 1
                summary.category_fixed += result.category_fixed
        return summaries

    def finalize(
        self,
        initial_total: int,
        final_total: int,
        *,
        global_target: int,
        passes_run: int,
        stop_reason: str,
        complete: bool = True,
        fatal_error: str | None = None,
        dry_run: bool = False,
    ) -> OrchestrationReport:
        """Build the final report from the accumulated log."""
        finished_at = datetime.now(timezone.utc)
        return OrchestrationReport(
            started_at=self._started_at.isoformat(),
            finished_at=finished_at.isoformat(),
            duration_seconds=time.monotonic() - self._started_clock,
            initial_total=initial_total,
            final_total=final_total,
            global_target=global_target,
            target_reached=final_total < global_target,
            passes_run=passes_run,
            stop_reason=stop_reason,
            complete=complete,
            fatal_error=fatal_error,
            dry_run=dry_run,
            warnings=self.warnings,
            iterations=self.iterations,
            fixers=self.summarize(),
        )

    def write(self, report: OrchestrationReport, path: Path) -> Path:
        """Write ``report`` as the JSON artifact at ``path``."""
        return write_report(report, path)

    def render(self, report: OrchestrationReport, console: Console) -> None:
        """Print ``report`` to ``console``."""
        render_report(report, console)


def write_report(report: OrchestrationReport, path: Path) -> Path:
    """Write the report as indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    return path


def render_report(report: OrchestrationReport, console: Console) -> None:
    """Print a human-readable summary of the report."""
    title = "Remediation Report"
    if report.dry_run:
        title += " [dim](dry run)[/dim]"
    if not report.complete:
        title += " [red](incomplete)[/red]"
    console.print(f"\n[bold]{title}[/bold]")
    console.print(f"  Duration: {report.duration_seconds:.1f}s")
    console.print(f"  Passes: {report.passes_run}")
    console.print(f"  Initial diagnostics: {report.initial_total}")
    console.print(f"  Final diagnostics: {report.final_total}")
    console.print(f"  Improvement: {report.improvement}")
    console.print(f"  Stop reason: {report.stop_reason}")

    if report.fixers:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Fixer")
        table.add_column("Attempts", justify="right")
        table.add_column("Accepted", justify="right")
        table.add_column("Reverted", justify="right")
        table.add_column("Category fixed", justify="right")
        for fixer_id, summary in report.fixers.items():
            table.add_row(
                fixer_id,
                str(summary.attempts),
                str(summary.accepted),
                str(summary.reverted),
                str(summary.category_fixed),
            )
        console.print(table)

    if report.iterations:
        console.print("[bold]Iterations:[/bold]")
        for result in report.iterations:
            if result.planned:
                status = "[cyan]PLANNED[/cyan]"
            elif result.reverted:
                status = "[red]REVERTED[/red]"
            else:
                status = "[green]ACCEPTED[/green]"
            sign = "+" if result.delta > 0 else ""
            console.print(
                f"  {status} pass {result.pass_number} {result.fixer_id} "
                f"#{result.attempt}: {result.before_total} -> {result.after_total} "
                f"({sign}{result.delta})"
            )
            if result.error:
                console.print(f"    [dim]{result.error}[/dim]")

    for warning in report.warnings[:10]:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    if report.fatal_error:
        console.print(f"[red]Error:[/red] {report.fatal_error}")

    if report.target_reached:
        console.print(
            f"[green]Success:[/green] {report.final_total} diagnostic(s) remain "
            f"(target < {report.global_target})"
        )
    else:
        console.print(
            f"[yellow]Target not reached:[/yellow] {report.final_total} diagnostic(s) remain "
            f"(target < {report.global_target})"
        )
