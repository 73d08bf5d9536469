"""Remediation orchestrator.

Drives the two nested loops of a remediation run: an outer loop of passes
over the fixer registry and an inner loop of attempts per fixer. Every
attempt is wrapped in a checkpoint, measured with the validation probe
before and after, and rolled back when it raises the diagnostic total by
more than the configured safety margin or leaves the tree unreadable.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from remediate.checkpoints.base import BaseCheckpointManager, Checkpoint
from remediate.config import RemediateConfig
from remediate.errors import CheckpointError, FixerInvocationError, RestoreError
from remediate.fixers.base import FixerDescriptor
from remediate.fixers.registry import FixerRegistry
from remediate.log import logger
from remediate.report import IterationResult, OrchestrationReport, ReportGenerator
from remediate.validators.base import BaseProbe, DiagnosticSnapshot


class OrchestratorState(str, Enum):
    """States of the orchestration state machine."""

    IDLE = "idle"
    PASS_RUNNING = "pass_running"
    FIXER_RUNNING = "fixer_running"
    EVALUATING = "evaluating"
    REVERTED = "reverted"
    ACCEPTED = "accepted"
    PASS_DONE = "pass_done"
    GLOBAL_DONE = "global_done"


# Values of OrchestrationReport.stop_reason
STOP_TARGET_REACHED = "target_reached"
STOP_NO_PROGRESS = "no_progress"
STOP_MAX_PASSES = "max_passes"
STOP_DRY_RUN = "dry_run"
STOP_ABORTED = "aborted"
STOP_RESTORE_FAILED = "restore_failed"
STOP_INTERRUPTED = "interrupted"


@dataclass
class PassAccumulator:
    """Counts gathered during one pass, folded into the run totals.

    Attributes:
        pass_number: Pass the counts belong to (0 for run totals).
        accepted: Accepted iterations.
        improved: Accepted iterations that lowered the total or their category.
        reverted: Reverted iterations.
        skipped: Fixers skipped because their category had converged.
        checkpoint_failures: Fixers abandoned because no checkpoint could be taken.
        fixed_by_category: Diagnostics removed per category by accepted iterations.
    """

    pass_number: int = 0
    accepted: int = 0
    improved: int = 0
    reverted: int = 0
    skipped: int = 0
    checkpoint_failures: int = 0
    fixed_by_category: Counter[str] = field(default_factory=Counter)

    @property
    def made_progress(self) -> bool:
        return self.accepted > 0

    def fold(self, other: PassAccumulator) -> PassAccumulator:
        """Return a new accumulator holding the sum of ``self`` and ``other``."""
        return PassAccumulator(
            pass_number=max(self.pass_number, other.pass_number),
            accepted=self.accepted + other.accepted,
            improved=self.improved + other.improved,
            reverted=self.reverted + other.reverted,
            skipped=self.skipped + other.skipped,
            checkpoint_failures=self.checkpoint_failures + other.checkpoint_failures,
            fixed_by_category=self.fixed_by_category + other.fixed_by_category,
        )


class Orchestrator:
    """Supervises fixer invocations until the diagnostic target is met.

    Only one checkpoint is pending at any time. It is taken right before a
    fixer runs and is released once the fixer's changes leave the total at or
    below what it was when the fixer started, or restored when an attempt is
    reverted. Accepted attempts that leave the total higher stay covered by
    the same checkpoint, so no net increase outlives the fixer's turn.

    Attributes:
        working_dir: Root of the working tree handed to fixers.
        global_target: The run succeeds once the total drops below this value.
        max_allowed_increase: Largest total increase an attempt may cause.
        max_passes: Upper bound on passes over the registry.
        dry_run: Probe and plan only, never invoke fixers.
        commit_accepted: Commit each accepted change through the checkpoint backend.
        pause_between_fixers: Seconds to sleep after each fixer that ran.
        state: Current state of the state machine.
        totals: Run totals folded from every finished pass.
    """

    def __init__(
        self,
        probe: BaseProbe,
        checkpoints: BaseCheckpointManager,
        registry: FixerRegistry,
        working_dir: Path,
        *,
        report: ReportGenerator | None = None,
        global_target: int = 10,
        max_allowed_increase: int = 100,
        max_passes: int = 10,
        dry_run: bool = False,
        commit_accepted: bool = False,
        pause_between_fixers: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_passes < 1:
            raise ValueError("max_passes must be at least 1")
        if max_allowed_increase < 0:
            raise ValueError("max_allowed_increase must not be negative")

        self.probe = probe
        self.checkpoints = checkpoints
        self.registry = registry
        self.working_dir = working_dir
        self.report = report or ReportGenerator(registry.ids())
        self.global_target = global_target
        self.max_allowed_increase = max_allowed_increase
        self.max_passes = max_passes
        self.dry_run = dry_run
        self.commit_accepted = commit_accepted
        self.pause_between_fixers = pause_between_fixers
        self._sleep = sleep

        self.state = OrchestratorState.IDLE
        self.totals = PassAccumulator()
        self._abort_requested = False
        self._pending: Checkpoint | None = None
        self._initial_total: int | None = None
        self._last_total: int | None = None
        self._passes_run = 0
        self._stop_reason = STOP_INTERRUPTED
        self._fatal_error: str | None = None

    @classmethod
    def from_config(
        cls,
        config: RemediateConfig,
        probe: BaseProbe,
        checkpoints: BaseCheckpointManager,
        registry: FixerRegistry,
        working_dir: Path,
        **kwargs: Any,
    ) -> Orchestrator:
        """Build an orchestrator from resolved configuration.

        Keyword arguments override the configured values.
        """
        options: dict[str, Any] = {
            "global_target": config.global_target,
            "max_allowed_increase": config.max_allowed_increase,
            "max_passes": config.max_passes,
            "commit_accepted": config.commit_accepted,
            "pause_between_fixers": config.pause_between_fixers,
        }
        options.update(kwargs)
        return cls(probe, checkpoints, registry, working_dir, **options)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def request_abort(self) -> None:
        """Ask the run to stop at the next pass or attempt boundary.

        A checkpoint pending at that point is restored first. Safe to call
        from a signal handler.
        """
        self._abort_requested = True

    @property
    def abort_requested(self) -> bool:
        return self._abort_requested

    @property
    def stop_reason(self) -> str:
        return self._stop_reason

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def _finish(self, reason: str) -> None:
        self._stop_reason = reason
        self._transition(OrchestratorState.GLOBAL_DONE)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self) -> OrchestrationReport:
        """Run passes until the target is met, progress stops or the budget is spent.

        Returns:
            The finalized report.

        Raises:
            RestoreError: If a rollback failed. The working tree may be in a
                mixed state and the run is halted; ``build_report()`` still
                produces an incomplete report.
        """
        if self.state is not OrchestratorState.IDLE:
            raise RuntimeError("Orchestrator instances run only once")

        try:
            self._run_passes()
        except RestoreError as e:
            self._stop_reason = STOP_RESTORE_FAILED
            self._fatal_error = str(e)
            logger.error(f"Halting run: {e}")
            raise

        return self.build_report()

    def _run_passes(self) -> None:
        pass_start = self._probe()
        self._initial_total = pass_start.total

        for pass_number in range(1, self.max_passes + 1):
            if self._abort_requested:
                self._finish(STOP_ABORTED)
                return

            self._transition(OrchestratorState.PASS_RUNNING)
            if pass_number > 1:
                pass_start = self._probe()
            if pass_start.is_clean or pass_start.total < self.global_target:
                logger.info(
                    f"{pass_start.total} diagnostic(s) remain, below target {self.global_target}"
                )
                self._finish(STOP_TARGET_REACHED)
                return

            logger.info(f"Pass {pass_number}: {pass_start.total} diagnostic(s)")
            accumulator = self._run_pass(pass_number)
            self._passes_run = pass_number
            self.totals = self.totals.fold(accumulator)

            self._transition(OrchestratorState.PASS_DONE)
            if self._abort_requested:
                self._finish(STOP_ABORTED)
                return

            pass_end = self._probe()
            logger.info(
                f"Pass {pass_number} done: {pass_end.total} diagnostic(s), "
                f"{accumulator.accepted} accepted, {accumulator.reverted} reverted, "
                f"{accumulator.skipped} skipped"
            )
            if pass_end.is_clean or pass_end.total < self.global_target:
                self._finish(STOP_TARGET_REACHED)
                return
            if self.dry_run:
                self._finish(STOP_DRY_RUN)
                return
            if pass_number > 1 and not accumulator.made_progress:
                logger.info("No attempt was accepted in this pass; stopping")
                self._finish(STOP_NO_PROGRESS)
                return

        logger.info(f"Pass budget of {self.max_passes} exhausted")
        self._finish(STOP_MAX_PASSES)

    def _run_pass(self, pass_number: int) -> PassAccumulator:
        accumulator = PassAccumulator(pass_number=pass_number)
        for index, descriptor in enumerate(self.registry.ordered()):
            if self._abort_requested:
                break
            ran = self._run_fixer(descriptor, pass_number, accumulator)
            last = index == len(self.registry) - 1
            if ran and self.pause_between_fixers > 0 and not last:
                self._sleep(self.pause_between_fixers)
        return accumulator

    def _run_fixer(
        self,
        descriptor: FixerDescriptor,
        pass_number: int,
        accumulator: PassAccumulator,
    ) -> bool:
        """Run the attempts of one fixer for one pass.

        Returns:
            True if the fixer unit was invoked at least once.
        """
        category = descriptor.target_category
        before = self._probe()
        if before.count(category) < descriptor.per_category_target:
            logger.debug(
                f"Skipping {descriptor.id}: {category} at {before.count(category)}, "
                f"target {descriptor.per_category_target}"
            )
            accumulator.skipped += 1
            return False

        if self.dry_run:
            try:
                checkpoint = self.checkpoints.snapshot(
                    label=f"{descriptor.id} pass {pass_number} plan"
                )
            except CheckpointError as e:
                self._skip_without_checkpoint(descriptor, e, accumulator)
                return False
            self.checkpoints.discard(checkpoint)
            self.report.record(
                IterationResult(
                    fixer_id=descriptor.id,
                    pass_number=pass_number,
                    attempt=1,
                    before_total=before.total,
                    after_total=before.total,
                    before_category=before.count(category),
                    after_category=before.count(category),
                    reverted=False,
                    probe_degraded=before.degraded,
                    planned=True,
                )
            )
            logger.info(f"[dry run] would run {descriptor.id} on {before.count(category)} {category}")
            return False

        fixer = self.registry.fixer_for(descriptor.id)
        baseline = before.total
        # Accepted attempts leaving the total above baseline. They stay under
        # the pending checkpoint until the total is back at or below baseline.
        held: list[IterationResult] = []
        invoked = False
        for attempt in range(1, descriptor.max_attempts_per_pass + 1):
            if self._abort_requested:
                break

            if self._pending is None:
                try:
                    self._pending = self.checkpoints.snapshot(
                        label=f"{descriptor.id} pass {pass_number} attempt {attempt}"
                    )
                except CheckpointError as e:
                    self._skip_without_checkpoint(descriptor, e, accumulator)
                    break

            self._transition(OrchestratorState.FIXER_RUNNING)
            started = time.monotonic()
            exit_code: int | None = None
            error: str | None = None
            invoked = True
            try:
                outcome = fixer.run(self.working_dir)
                exit_code = outcome.exit_code
                if exit_code != 0:
                    logger.warning(f"{descriptor.id} exited with status {exit_code}")
            except FixerInvocationError as e:
                error = str(e)
                logger.warning(error)

            if self._abort_requested:
                aborted = IterationResult(
                    fixer_id=descriptor.id,
                    pass_number=pass_number,
                    attempt=attempt,
                    before_total=before.total,
                    after_total=before.total,
                    before_category=before.count(category),
                    after_category=before.count(category),
                    reverted=True,
                    error=error or "aborted before evaluation",
                    exit_code=exit_code,
                    duration_seconds=time.monotonic() - started,
                )
                self._reject([*held, aborted], accumulator, "aborted before confirmation")
                held = []
                break

            self._transition(OrchestratorState.EVALUATING)
            after = self._probe()
            delta = after.total - before.total
            result = IterationResult(
                fixer_id=descriptor.id,
                pass_number=pass_number,
                attempt=attempt,
                before_total=before.total,
                after_total=after.total,
                before_category=before.count(category),
                # An unreadable tree says nothing about the category
                after_category=before.count(category) if after.degraded else after.count(category),
                reverted=after.degraded or delta > self.max_allowed_increase,
                error=error,
                exit_code=exit_code,
                duration_seconds=time.monotonic() - started,
                probe_degraded=after.degraded,
            )

            if result.reverted:
                self._transition(OrchestratorState.REVERTED)
                if after.degraded:
                    logger.warning(
                        f"Reverting {descriptor.id}: diagnostics could not be read after it ran"
                    )
                else:
                    logger.warning(
                        f"Reverting {descriptor.id}: total {before.total} -> {after.total} "
                        f"(+{delta} exceeds {self.max_allowed_increase})"
                    )
                self._reject([*held, result], accumulator, f"rolled back with attempt {attempt}")
                held = []
                break

            self._transition(OrchestratorState.ACCEPTED)
            before = after
            if after.total > baseline:
                logger.info(
                    f"Holding {descriptor.id} attempt {attempt}: total {after.total} is above "
                    f"{baseline} at fixer start"
                )
                held.append(result)
            else:
                self._confirm([*held, result], category, accumulator)
                held = []

            if result.after_category < descriptor.per_category_target:
                logger.debug(f"{descriptor.id} converged on {category}")
                break
            if result.category_fixed == 0:
                logger.debug(f"{descriptor.id} made no progress on {category}")
                break

        if held:
            logger.warning(
                f"Rolling back {descriptor.id}: total {before.total} would stay above "
                f"{baseline} at fixer start"
            )
            self._reject(held, accumulator, f"net increase over {baseline} at fixer start")

        return invoked

    def _skip_without_checkpoint(
        self,
        descriptor: FixerDescriptor,
        error: CheckpointError,
        accumulator: PassAccumulator,
    ) -> None:
        message = f"Skipping {descriptor.id}: {error}"
        logger.warning(message)
        self.report.warn(message)
        accumulator.checkpoint_failures += 1

    def _confirm(
        self,
        results: list[IterationResult],
        category: str,
        accumulator: PassAccumulator,
    ) -> None:
        """Release the pending checkpoint and record ``results`` as accepted."""
        self._accept_pending()
        for result in results:
            self.report.record(result)
            accumulator.accepted += 1
            if result.delta < 0 or result.category_fixed:
                accumulator.improved += 1
            if result.category_fixed:
                accumulator.fixed_by_category[category] += result.category_fixed
            logger.info(
                f"Accepted {result.fixer_id} attempt {result.attempt}: total "
                f"{result.before_total} -> {result.after_total}, {category} "
                f"{result.before_category} -> {result.after_category}"
            )

        last = results[-1]
        if self.commit_accepted:
            self.checkpoints.commit(
                f"fix: {last.fixer_id} (pass {last.pass_number}, attempt {last.attempt})"
            )

    def _reject(
        self,
        results: list[IterationResult],
        accumulator: PassAccumulator,
        reason: str,
    ) -> None:
        """Record ``results`` as reverted, then restore the pending checkpoint.

        Results not yet marked reverted are held attempts undone by the same
        restore; ``reason`` is attached to them.
        """
        for result in results:
            if not result.reverted:
                result = replace(result, reverted=True, error=result.error or reason)
            self.report.record(result)
            accumulator.reverted += 1
        self._revert_pending()

    def _probe(self) -> DiagnosticSnapshot:
        snapshot = self.probe.probe()
        if snapshot.degraded:
            self.report.warn(f"Validation probe degraded: {snapshot.error}")
        self._last_total = snapshot.total
        return snapshot

    def _accept_pending(self) -> None:
        if self._pending is not None:
            self.checkpoints.discard(self._pending)
            self._pending = None

    def _revert_pending(self) -> None:
        if self._pending is None:
            return
        checkpoint = self._pending
        # Left pending when restore raises
        self.checkpoints.restore(checkpoint)
        self.checkpoints.discard(checkpoint)
        self._pending = None

    # -------------------------------------------------------------------------
    # Report
    # -------------------------------------------------------------------------

    def build_report(self) -> OrchestrationReport:
        """Finalize the report for the run so far.

        Can be called after ``run()`` raised; the report is then marked
        incomplete and carries the fatal error.
        """
        complete = (
            self.state is OrchestratorState.GLOBAL_DONE
            and self._fatal_error is None
            and self._stop_reason != STOP_ABORTED
        )
        final_total = self._last_total if self._last_total is not None else 0
        initial_total = self._initial_total if self._initial_total is not None else final_total
        return self.report.finalize(
            initial_total,
            final_total,
            global_target=self.global_target,
            passes_run=self._passes_run,
            stop_reason=self._stop_reason,
            complete=complete,
            fatal_error=self._fatal_error,
            dry_run=self.dry_run,
        )
