"""Tests for remediate.orchestrator.

The orchestrator is exercised against an in-memory "working tree": fixers
replace its diagnostic state, the probe reads it back and the checkpoint
manager saves and restores it. Fixer and probe behaviour is therefore
fully scripted while every decision path of the real orchestrator runs.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from pathlib import Path

import pytest

from remediate.checkpoints.base import BaseCheckpointManager, Checkpoint
from remediate.config import RemediateConfig
from remediate.errors import CheckpointError, FixerInvocationError, RestoreError
from remediate.fixers import BaseFixer, FixerDescriptor, FixerOutcome, FixerRegistry
from remediate.orchestrator import (
    STOP_ABORTED,
    STOP_DRY_RUN,
    STOP_MAX_PASSES,
    STOP_NO_PROGRESS,
    STOP_RESTORE_FAILED,
    STOP_TARGET_REACHED,
    Orchestrator,
    OrchestratorState,
    PassAccumulator,
)
from remediate.validators.base import BaseProbe, DiagnosticSnapshot

# (total, by_category); None means the validation command cannot be read
State = tuple[int, dict[str, int]] | None


class FakeTree:
    """Diagnostic state of an imaginary working tree."""

    def __init__(self, total: int, by_category: dict[str, int]) -> None:
        self.state: State = (total, dict(by_category))


class FakeProbe(BaseProbe):
    def __init__(self, tree: FakeTree) -> None:
        self.tree = tree
        self.calls = 0

    def probe(self) -> DiagnosticSnapshot:
        self.calls += 1
        if self.tree.state is None:
            return DiagnosticSnapshot.sentinel(500, "validation command timed out")
        total, by_category = self.tree.state
        if total == 0:
            return DiagnosticSnapshot.clean()
        return DiagnosticSnapshot(total=total, by_category=dict(by_category))


class FakeCheckpoints(BaseCheckpointManager):
    backend = "fake"

    def __init__(self, tree: FakeTree) -> None:
        super().__init__(Path("."))
        self.tree = tree
        self.saved: dict[str, State] = {}
        self.snapshots = 0
        self.restored: list[str] = []
        self.discarded: list[str] = []
        self.commits: list[str] = []
        self.fail_snapshots = 0
        self.fail_restore = False
        self._ids = itertools.count(1)

    def snapshot(self, label: str = "") -> Checkpoint:
        if self.fail_snapshots:
            self.fail_snapshots -= 1
            raise CheckpointError("disk full")
        self.snapshots += 1
        checkpoint = Checkpoint(id=f"cp{next(self._ids)}", label=label)
        self.saved[checkpoint.id] = self.tree.state
        return checkpoint

    def restore(self, checkpoint: Checkpoint) -> None:
        if self.fail_restore:
            raise RestoreError(f"Could not restore checkpoint {checkpoint.id}")
        self.tree.state = self.saved[checkpoint.id]
        self.restored.append(checkpoint.id)

    def discard(self, checkpoint: Checkpoint) -> None:
        self.discarded.append(checkpoint.id)

    def commit(self, message: str) -> bool:
        self.commits.append(message)
        return True


class ScriptedFixer(BaseFixer):
    """Fixer that moves the tree through a scripted list of states."""

    def __init__(
        self,
        fixer_id: str,
        tree: FakeTree,
        steps: list[State],
        *,
        exit_code: int = 0,
        on_run: Callable[[], None] | None = None,
        crash: bool = False,
    ) -> None:
        super().__init__(fixer_id)
        self.tree = tree
        self.steps = list(steps)
        self.exit_code = exit_code
        self.on_run = on_run
        self.crash = crash
        self.calls = 0

    def run(self, working_dir: Path) -> FixerOutcome:
        self.calls += 1
        if self.steps:
            self.tree.state = self.steps.pop(0)
        if self.on_run is not None:
            self.on_run()
        if self.crash:
            raise FixerInvocationError(self.fixer_id, "exited after a stack overflow")
        return FixerOutcome(exit_code=self.exit_code)


def make_orchestrator(
    tree: FakeTree,
    fixers: list[tuple[FixerDescriptor, BaseFixer]],
    **kwargs: object,
) -> tuple[Orchestrator, FakeProbe, FakeCheckpoints]:
    probe = FakeProbe(tree)
    checkpoints = FakeCheckpoints(tree)
    registry = FixerRegistry()
    for descriptor, fixer in fixers:
        registry.register(descriptor, fixer)
    orchestrator = Orchestrator(
        probe,
        checkpoints,
        registry.freeze(),
        Path("."),
        **kwargs,  # type: ignore[arg-type]
    )
    return orchestrator, probe, checkpoints


class TestConcreteScenario:
    """Two fixers, one bad transform, convergence over two passes."""

    def _build(self, max_passes: int) -> tuple[Orchestrator, FakeTree, ScriptedFixer, ScriptedFixer]:
        tree = FakeTree(50, {"1234": 30, "5678": 20})
        fixer_a = ScriptedFixer(
            "fixer-a",
            tree,
            [
                (40, {"1234": 20, "5678": 20}),
                (200, {"1234": 20, "5678": 20}),
                (8, {"1234": 4, "5678": 4}),
            ],
        )
        fixer_b = ScriptedFixer("fixer-b", tree, [(24, {"1234": 20, "5678": 4})])
        orchestrator, _, _ = make_orchestrator(
            tree,
            [
                (FixerDescriptor("fixer-a", "1234", per_category_target=5), fixer_a),
                (FixerDescriptor("fixer-b", "5678", per_category_target=5), fixer_b),
            ],
            global_target=10,
            max_allowed_increase=100,
            max_passes=max_passes,
        )
        return orchestrator, tree, fixer_a, fixer_b

    def test_first_pass(self) -> None:
        """Test accept, revert at delta 160, and per-category convergence."""
        orchestrator, tree, fixer_a, fixer_b = self._build(max_passes=1)

        report = orchestrator.run()

        first, second, third = report.iterations
        assert (first.fixer_id, first.before_total, first.after_total, first.reverted) == (
            "fixer-a",
            50,
            40,
            False,
        )
        assert (second.fixer_id, second.delta, second.reverted) == ("fixer-a", 160, True)
        assert (third.fixer_id, third.after_category, third.reverted) == ("fixer-b", 4, False)
        assert fixer_a.calls == 2
        assert fixer_b.calls == 1

        # Reverted back to the post-run-1 state before fixer-b ran on it
        assert third.before_total == 40
        assert tree.state == (24, {"1234": 20, "5678": 4})

        assert report.initial_total == 50
        assert report.final_total == 24
        assert report.stop_reason == STOP_MAX_PASSES
        assert not report.target_reached
        assert report.complete

    def test_second_pass_reaches_target(self) -> None:
        """Test that a second pass begins and converges below the target."""
        orchestrator, _, fixer_a, fixer_b = self._build(max_passes=10)

        report = orchestrator.run()

        assert report.passes_run == 2
        assert report.stop_reason == STOP_TARGET_REACHED
        assert report.target_reached
        assert report.final_total == 8
        assert fixer_a.calls == 3
        # fixer-b converged in pass 1 and is skipped in pass 2
        assert fixer_b.calls == 1
        assert orchestrator.state is OrchestratorState.GLOBAL_DONE

        summary_a = report.fixers["fixer-a"]
        assert (summary_a.attempts, summary_a.accepted, summary_a.reverted) == (3, 2, 1)
        assert summary_a.category_fixed == 10 + 16
        summary_b = report.fixers["fixer-b"]
        assert (summary_b.attempts, summary_b.accepted, summary_b.reverted) == (1, 1, 0)
        assert summary_b.category_fixed == 16


class TestTermination:
    """Tests for no-op runs and bounded termination."""

    def test_clean_tree_is_noop(self) -> None:
        """Test that a clean tree needs no fixer invocation and no checkpoint."""
        tree = FakeTree(0, {})
        fixer = ScriptedFixer("a", tree, [])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1", per_category_target=0), fixer)], global_target=0
        )

        report = orchestrator.run()

        assert fixer.calls == 0
        assert checkpoints.snapshots == 0
        assert report.initial_total == report.final_total == 0
        assert report.passes_run == 0
        assert report.iterations == []
        assert report.stop_reason == STOP_TARGET_REACHED

    def test_always_failing_probe_terminates(self) -> None:
        """Test that a validation command that never answers still ends the run."""
        tree = FakeTree(0, {})
        tree.state = None
        fixer = ScriptedFixer("a", tree, [])
        orchestrator, probe, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], max_passes=50
        )

        report = orchestrator.run()

        assert report.stop_reason == STOP_NO_PROGRESS
        assert report.passes_run == 2
        assert report.final_total == 500
        assert not report.target_reached
        assert fixer.calls == 0
        assert checkpoints.snapshots == 0
        assert any("degraded" in w for w in report.warnings)
        assert probe.calls < 20

    def test_probe_failure_after_fixer_reverts(self) -> None:
        """Test that an unreadable tree after a fixer biases toward reverting."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [None])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], max_passes=3
        )

        report = orchestrator.run()

        first = report.iterations[0]
        assert first.reverted
        assert first.probe_degraded
        assert first.after_total == 500
        assert tree.state == (50, {"TS1": 30})
        assert checkpoints.restored == ["cp1"]

    def test_unreadable_tree_is_never_counted_as_fixed(self) -> None:
        """Test that a sentinel total close to the baseline still reverts."""
        tree = FakeTree(450, {"TS1": 300})
        fixer = ScriptedFixer("a", tree, [None])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], max_passes=1
        )

        report = orchestrator.run()

        first = report.iterations[0]
        assert first.delta == 50
        assert first.reverted
        assert first.probe_degraded
        assert first.after_category == 300
        assert first.category_fixed == 0
        assert tree.state == (450, {"TS1": 300})
        assert checkpoints.restored == ["cp1"]
        assert report.fixers["a"].accepted == 0
        assert report.fixers["a"].category_fixed == 0
        assert orchestrator.totals.fixed_by_category == {}

    def test_pass_budget_bounds_invocations(self) -> None:
        """Test that a slow but steady fixer stops at max_passes."""
        tree = FakeTree(1000, {"TS1": 1000})
        steps: list[State] = [(1000 - 10 * i, {"TS1": 1000 - 10 * i}) for i in range(1, 100)]
        fixer = ScriptedFixer("a", tree, steps)
        orchestrator, _, _ = make_orchestrator(
            tree,
            [(FixerDescriptor("a", "TS1", max_attempts_per_pass=2), fixer)],
            max_passes=3,
        )

        report = orchestrator.run()

        assert report.stop_reason == STOP_MAX_PASSES
        assert report.passes_run == 3
        assert fixer.calls == 6
        assert report.final_total == 940

    def test_no_progress_stops_after_second_pass(self) -> None:
        """Test the global stop once a pass accepts no attempt."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer(
            "a", tree, [(45, {"TS1": 25}), (300, {"TS1": 25}), (400, {"TS1": 25})]
        )
        orchestrator, _, _ = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], max_passes=10
        )

        report = orchestrator.run()

        # Pass 1 accepts then reverts, pass 2 only reverts and stops the run
        assert report.passes_run == 2
        assert report.stop_reason == STOP_NO_PROGRESS
        assert fixer.calls == 3
        assert report.final_total == 45

    def test_accepted_pass_without_improvement_continues(self) -> None:
        """Test that an accepted attempt keeps the run going even without a gain."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [])
        orchestrator, _, _ = make_orchestrator(
            tree,
            [(FixerDescriptor("a", "TS1", max_attempts_per_pass=1), fixer)],
            max_passes=3,
        )

        report = orchestrator.run()

        assert report.stop_reason == STOP_MAX_PASSES
        assert report.passes_run == 3
        assert fixer.calls == 3
        assert all(result.accepted for result in report.iterations)


class TestRevertPolicy:
    """Tests for the safety margin."""

    def test_safety_bound(self) -> None:
        """Test that accepted steps respect the margin and reverted ones restore exactly."""
        start = (300, {"TS1": 100, "TS2": 100, "TS3": 100})
        tree = FakeTree(*start)
        fixers = [
            ScriptedFixer(
                "a",
                tree,
                [(350, {"TS1": 90, "TS2": 100, "TS3": 100}), (460, {"TS1": 80, "TS2": 100, "TS3": 100})],
            ),
            ScriptedFixer("b", tree, [(600, {"TS1": 100, "TS2": 0, "TS3": 100})]),
            ScriptedFixer(
                "c",
                tree,
                [(290, {"TS1": 100, "TS2": 100, "TS3": 99}), (250, {"TS1": 100, "TS2": 100, "TS3": 50})],
            ),
        ]
        orchestrator, _, checkpoints = make_orchestrator(
            tree,
            [
                (FixerDescriptor("a", "TS1"), fixers[0]),
                (FixerDescriptor("b", "TS2"), fixers[1]),
                (FixerDescriptor("c", "TS3", max_attempts_per_pass=2), fixers[2]),
            ],
            max_allowed_increase=100,
            max_passes=1,
        )

        report = orchestrator.run()

        for result in report.iterations:
            if not result.reverted:
                assert result.delta <= 100
        # a's first attempt stayed within the margin but is undone with its second
        assert [(r.fixer_id, r.reverted) for r in report.iterations] == [
            ("a", True),
            ("a", True),
            ("b", True),
            ("c", False),
            ("c", False),
        ]
        assert checkpoints.saved[checkpoints.restored[0]] == start
        assert checkpoints.saved[checkpoints.restored[1]] == start
        assert tree.state == (250, {"TS1": 100, "TS2": 100, "TS3": 50})

    def test_delta_equal_to_margin_is_accepted(self) -> None:
        """Test that an increase of exactly the margin is kept."""
        tree = FakeTree(300, {"TS1": 60})
        fixer = ScriptedFixer("a", tree, [(100, {"TS1": 50}), (200, {"TS1": 40})])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1", max_attempts_per_pass=2), fixer)], max_passes=1
        )

        report = orchestrator.run()

        assert [(r.delta, r.reverted) for r in report.iterations] == [(-200, False), (100, False)]
        assert checkpoints.restored == []
        assert checkpoints.discarded == ["cp1", "cp2"]

    def test_net_increase_is_rolled_back(self) -> None:
        """Test that steps within the margin cannot add up to a net increase."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [(100, {"TS1": 20}), (150, {"TS1": 10})])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], max_passes=1
        )

        report = orchestrator.run()

        assert fixer.calls == 3
        assert all(result.delta <= 100 for result in report.iterations)
        assert all(result.reverted for result in report.iterations)
        assert report.final_total <= report.initial_total
        assert tree.state == (50, {"TS1": 30})
        # One checkpoint covers the whole held sequence
        assert checkpoints.snapshots == 1
        assert checkpoints.restored == ["cp1"]
        summary = report.fixers["a"]
        assert (summary.attempts, summary.accepted, summary.reverted) == (3, 0, 3)
        assert summary.category_fixed == 0

    def test_held_attempts_confirmed_once_total_recovers(self) -> None:
        """Test that a temporary increase is kept when a later attempt recovers it."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer(
            "a", tree, [(80, {"TS1": 20}), (30, {"TS1": 10}), (20, {"TS1": 3})]
        )
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], max_passes=1
        )

        report = orchestrator.run()

        assert [r.reverted for r in report.iterations] == [False, False, False]
        assert checkpoints.snapshots == 2
        assert checkpoints.restored == []
        assert checkpoints.discarded == ["cp1", "cp2"]
        assert report.final_total == 20
        assert report.fixers["a"].category_fixed == 27

    def test_nonzero_exit_is_not_a_revert_trigger(self) -> None:
        """Test that only the measured delta decides acceptance."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [(5, {"TS1": 0})], exit_code=1)
        orchestrator, _, _ = make_orchestrator(tree, [(FixerDescriptor("a", "TS1"), fixer)])

        report = orchestrator.run()

        assert report.iterations[0].exit_code == 1
        assert not report.iterations[0].reverted
        assert report.target_reached

    def test_crashed_fixer_is_still_measured(self) -> None:
        """Test that a crash is recorded and the tree is probed anyway."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [(45, {"TS1": 25})], crash=True)
        orchestrator, _, _ = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1", max_attempts_per_pass=1), fixer)], max_passes=1
        )

        report = orchestrator.run()

        result = report.iterations[0]
        assert result.error is not None
        assert "stack overflow" in result.error
        assert result.exit_code is None
        assert result.after_total == 45
        assert not result.reverted


class TestCheckpointFailures:
    """Tests for checkpoint and restore failures."""

    def test_checkpoint_error_skips_fixer(self) -> None:
        """Test that a fixer never runs without a checkpoint."""
        tree = FakeTree(50, {"TS1": 30, "TS2": 20})
        fixer_a = ScriptedFixer("a", tree, [(20, {"TS1": 0, "TS2": 20})])
        fixer_b = ScriptedFixer("b", tree, [(30, {"TS1": 30, "TS2": 0})])
        orchestrator, _, checkpoints = make_orchestrator(
            tree,
            [(FixerDescriptor("a", "TS1"), fixer_a), (FixerDescriptor("b", "TS2"), fixer_b)],
            max_passes=1,
        )
        checkpoints.fail_snapshots = 1

        report = orchestrator.run()

        assert fixer_a.calls == 0
        assert fixer_b.calls == 1
        assert orchestrator.totals.checkpoint_failures == 1
        assert any("disk full" in w for w in report.warnings)

    def test_restore_error_is_fatal(self) -> None:
        """Test that a failed revert halts the run with an incomplete report."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [(400, {"TS1": 30})])
        later = ScriptedFixer("b", tree, [])
        orchestrator, _, checkpoints = make_orchestrator(
            tree,
            [(FixerDescriptor("a", "TS1"), fixer), (FixerDescriptor("b", "TS1"), later)],
        )
        checkpoints.fail_restore = True

        with pytest.raises(RestoreError):
            orchestrator.run()

        assert later.calls == 0
        report = orchestrator.build_report()
        assert not report.complete
        assert report.stop_reason == STOP_RESTORE_FAILED
        assert report.fatal_error is not None
        assert report.initial_total == 50
        assert [(i.fixer_id, i.reverted) for i in report.iterations] == [("a", True)]


class TestControl:
    """Tests for abort, dry-run and optional behaviour."""

    def test_abort_restores_pending_checkpoint(self) -> None:
        """Test that an abort during a fixer rolls its change back."""
        tree = FakeTree(50, {"TS1": 30})
        holder: list[Orchestrator] = []
        fixer = ScriptedFixer(
            "a", tree, [(45, {"TS1": 25})], on_run=lambda: holder[0].request_abort()
        )
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)]
        )
        holder.append(orchestrator)

        report = orchestrator.run()

        assert tree.state == (50, {"TS1": 30})
        assert checkpoints.restored == ["cp1"]
        assert fixer.calls == 1
        assert report.stop_reason == STOP_ABORTED
        assert not report.complete
        assert report.iterations[0].reverted

    def test_abort_before_run(self) -> None:
        """Test that an abort requested up front runs no pass."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [])
        orchestrator, _, _ = make_orchestrator(tree, [(FixerDescriptor("a", "TS1"), fixer)])
        orchestrator.request_abort()

        report = orchestrator.run()

        assert fixer.calls == 0
        assert report.stop_reason == STOP_ABORTED
        assert report.passes_run == 0

    def test_dry_run_never_invokes_fixers(self) -> None:
        """Test that a dry run plans each eligible fixer once and stops."""
        tree = FakeTree(50, {"TS1": 30, "TS2": 3})
        fixer_a = ScriptedFixer("a", tree, [(0, {})])
        fixer_b = ScriptedFixer("b", tree, [(0, {})])
        orchestrator, _, checkpoints = make_orchestrator(
            tree,
            [(FixerDescriptor("a", "TS1"), fixer_a), (FixerDescriptor("b", "TS2"), fixer_b)],
            dry_run=True,
        )

        report = orchestrator.run()

        assert fixer_a.calls == fixer_b.calls == 0
        # The checkpoint backend is exercised but nothing is restored
        assert checkpoints.snapshots == 1
        assert checkpoints.discarded == ["cp1"]
        assert checkpoints.restored == []
        assert report.dry_run
        assert report.stop_reason == STOP_DRY_RUN
        assert [(r.fixer_id, r.planned, r.delta) for r in report.iterations] == [("a", True, 0)]
        assert report.fixers["a"].attempts == 0

    def test_dry_run_checkpoint_failure(self) -> None:
        """Test that a dry run reports a backend that cannot take checkpoints."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], dry_run=True
        )
        checkpoints.fail_snapshots = 1

        report = orchestrator.run()

        assert report.iterations == []
        assert orchestrator.totals.checkpoint_failures == 1
        assert any("disk full" in w for w in report.warnings)

    def test_commit_accepted(self) -> None:
        """Test that accepted changes are committed with a descriptive message."""
        tree = FakeTree(50, {"TS1": 30})
        fixer = ScriptedFixer("a", tree, [(5, {"TS1": 0})])
        orchestrator, _, checkpoints = make_orchestrator(
            tree, [(FixerDescriptor("a", "TS1"), fixer)], commit_accepted=True
        )

        orchestrator.run()

        assert checkpoints.commits == ["fix: a (pass 1, attempt 1)"]

    def test_pause_between_fixers(self) -> None:
        """Test that the configured pause separates fixers that ran."""
        tree = FakeTree(50, {"TS1": 30, "TS2": 20})
        pauses: list[float] = []
        orchestrator, _, _ = make_orchestrator(
            tree,
            [
                (FixerDescriptor("a", "TS1"), ScriptedFixer("a", tree, [(20, {"TS1": 0, "TS2": 20})])),
                (FixerDescriptor("b", "TS2"), ScriptedFixer("b", tree, [(1, {"TS1": 0, "TS2": 0})])),
            ],
            pause_between_fixers=2.5,
            sleep=pauses.append,
        )

        orchestrator.run()

        assert pauses == [2.5]

    def test_runs_only_once(self) -> None:
        """Test that an orchestrator cannot be reused."""
        tree = FakeTree(0, {})
        orchestrator, _, _ = make_orchestrator(tree, [])
        orchestrator.run()

        with pytest.raises(RuntimeError):
            orchestrator.run()

    def test_from_config(self) -> None:
        """Test that configuration values are applied and can be overridden."""
        tree = FakeTree(0, {})
        config = RemediateConfig(global_target=3, max_passes=4, commit_accepted=True)
        orchestrator = Orchestrator.from_config(
            config,
            FakeProbe(tree),
            FakeCheckpoints(tree),
            FixerRegistry(),
            Path("."),
            max_passes=2,
        )

        assert orchestrator.global_target == 3
        assert orchestrator.max_passes == 2
        assert orchestrator.commit_accepted


class TestPassAccumulator:
    """Tests for PassAccumulator folding."""

    def test_fold(self) -> None:
        """Test that folding adds counts and merges categories."""
        first = PassAccumulator(pass_number=1, accepted=2, improved=2)
        first.fixed_by_category["TS1"] = 10
        second = PassAccumulator(pass_number=2, reverted=1)
        second.fixed_by_category["TS1"] = 5
        second.fixed_by_category["TS2"] = 1

        total = PassAccumulator().fold(first).fold(second)

        assert total.pass_number == 2
        assert total.accepted == 2
        assert total.reverted == 1
        assert total.fixed_by_category == {"TS1": 15, "TS2": 1}
        assert total.made_progress
        assert not second.made_progress
