# timetable_engine/tests/unit/test_run_context.py

"""
Tests for progress reporting, cancellation tokens and the run context.
"""

import time
from unittest.mock import Mock

from timetable_engine.core.settings import GenerationSettings
from timetable_engine.solvers.base import (
    CancellationToken,
    ProgressReporter,
    RunContext,
    SolverResult,
    convergence_rate,
)


class TestProgressReporter:
    """Tests for progress fan-out"""

    def test_callback_receives_update(self):
        callback = Mock()
        reporter = ProgressReporter([callback])

        reporter.report(40, "Working", generation=3, fitness=0.5)

        callback.assert_called_once_with(40.0, "Working", 3, 0.5)
        assert reporter.last.percentage == 40.0
        assert reporter.last.to_dict()["step"] == "Working"

    def test_failing_callback_is_swallowed(self):
        failing = Mock(side_effect=RuntimeError("socket closed"))
        healthy = Mock()
        reporter = ProgressReporter([failing, healthy])

        reporter.report(10, "Working")

        failing.assert_called_once()
        healthy.assert_called_once_with(10.0, "Working", None, None)

    def test_window_rescales_and_shares_state(self):
        callback = Mock()
        reporter = ProgressReporter([callback])
        solver_window = reporter.window(20, 90)
        phase_window = solver_window.window(0, 50)

        solver_window.report(50, "Half way")
        assert callback.call_args[0][0] == 55.0

        phase_window.report(100, "Phase done")
        assert callback.call_args[0][0] == 55.0
        assert reporter.last.step == "Phase done"

    def test_percentage_is_clamped(self):
        reporter = ProgressReporter()

        reporter.report(150, "Over")
        assert reporter.last.percentage == 100.0
        reporter.report(-5, "Under")
        assert reporter.last.percentage == 0.0

    def test_add_progress_callback(self):
        reporter = ProgressReporter()
        callback = Mock()

        reporter.add_progress_callback(callback)
        reporter.window(0, 50).report(100, "Done")

        callback.assert_called_once_with(50.0, "Done", None, None)


class TestRunContext:
    """Tests for cancellation and deadlines"""

    def test_cancellation(self):
        token = CancellationToken()
        context = RunContext(token=token)

        assert context.stop_reason() is None
        token.cancel()
        assert context.cancelled
        assert context.stop_reason() == "cancelled"

    def test_deadline(self):
        context = RunContext(deadline=time.monotonic() - 1)

        assert context.stop_reason() == "time_limit"
        assert context.remaining_seconds() == 0.0

    def test_create_from_settings(self):
        settings = GenerationSettings(time_limit_seconds=30, random_seed=9)

        first = RunContext.create(settings)
        second = RunContext.create(settings)

        assert 0 < first.remaining_seconds() <= 30
        assert first.rng.random() == second.rng.random()

    def test_phase_shares_token_and_tightens_deadline(self):
        context = RunContext.create(GenerationSettings(time_limit_seconds=30))

        phase = context.phase(0, 25, time_budget=1.0)
        context.token.cancel()

        assert phase.remaining_seconds() <= 1.0
        assert phase.cancelled
        assert phase.rng is context.rng


class TestSolverResult:
    def test_placement_helpers(self):
        result = SolverResult("greedy", [None, object(), None])

        assert result.placed_count == 1
        assert result.unplaced() == [0, 2]
        assert not result.is_complete()
        assert not result.cancelled

    def test_convergence_rate(self):
        assert convergence_rate(0.5, 0.75) == 0.5
        assert convergence_rate(0.0, 0.75) == 0.0
