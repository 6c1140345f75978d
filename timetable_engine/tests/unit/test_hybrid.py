# timetable_engine/tests/unit/test_hybrid.py

"""
Tests for the CSP to GA hybrid coordinator.
"""

from unittest.mock import Mock

import pytest

from timetable_engine.core.settings import GenerationSettings
from timetable_engine.hybrid.coordinator import HybridSolver
from timetable_engine.solvers.csp import CSPOutcome, CSPSolver
from timetable_engine.solvers.greedy import GreedySolver


class TestHybridParameters:
    """Tests for how the hybrid derives phase budgets"""

    def test_csp_budget_from_ratio(self):
        settings = GenerationSettings(time_limit_seconds=10)

        assert HybridSolver.csp_time_budget(settings) == pytest.approx(3.0)

    def test_explicit_csp_budget_wins(self):
        settings = GenerationSettings(time_limit_seconds=10, hybrid={"cspTimeLimit": 1.5})

        assert HybridSolver.csp_time_budget(settings) == 1.5

    def test_no_budget_without_time_limit(self):
        assert HybridSolver.csp_time_budget(GenerationSettings()) is None

    def test_ga_parameters_are_capped(self):
        settings = GenerationSettings(
            genetic={"populationSize": 100, "maxGenerations": 300, "eliteSize": 60},
            hybrid={"maxPopulation": 40, "maxGaGenerations": 80},
        )

        params = HybridSolver.ga_parameters(settings)

        assert params.population_size == 40
        assert params.max_generations == 80
        assert params.elite_size == 39

    def test_explicit_ga_generations(self, fast_settings):
        params = HybridSolver.ga_parameters(fast_settings)

        assert params.max_generations == 4
        assert params.population_size == 8


class TestHybridSolve:
    """Tests for phase orchestration"""

    def test_complete_csp_skips_greedy(self, problem, fast_settings, context):
        greedy = Mock(spec=GreedySolver)

        result = HybridSolver(greedy=greedy).solve(problem, fast_settings, context)

        greedy.solve.assert_not_called()
        assert result.algorithm == "hybrid"
        assert not result.fallback_used
        assert not result.exhausted
        assert result.is_complete()
        assert result.generations <= 4
        assert result.final_fitness >= result.initial_fitness

    def test_greedy_fallback_when_csp_is_exhausted(self, problem, fast_settings, context):
        csp = Mock(spec=CSPSolver)
        csp.search.return_value = CSPOutcome(
            assignment=[None] * problem.size,
            exhausted=True,
            backtrack_steps=500,
            complete=False,
            termination_reason="step_limit",
        )

        result = HybridSolver(csp=csp).solve(problem, fast_settings, context)

        csp.search.assert_called_once()
        assert csp.search.call_args[0][1] == 500
        assert result.fallback_used
        assert result.exhausted
        assert result.backtrack_steps == 500
        assert result.is_complete()

    def test_csp_partial_result_kept_when_greedy_is_not_better(
        self, problem, fast_settings, context
    ):
        full = CSPSolver().search(problem, 500)
        partial = list(full.assignment)
        partial[-1] = None
        csp = Mock(spec=CSPSolver)
        csp.search.return_value = CSPOutcome(
            assignment=partial,
            exhausted=True,
            backtrack_steps=500,
            complete=False,
            termination_reason="step_limit",
        )
        greedy = Mock(spec=GreedySolver)
        greedy.solve.return_value = Mock(placed_count=problem.size - 1)

        result = HybridSolver(csp=csp, greedy=greedy).solve(problem, fast_settings, context)

        greedy.solve.assert_called_once()
        assert not result.fallback_used
        assert result.is_complete()

    def test_cancelled_run_skips_greedy(self, problem, fast_settings, context):
        greedy = Mock(spec=GreedySolver)
        context.token.cancel()

        result = HybridSolver(greedy=greedy).solve(problem, fast_settings, context)

        greedy.solve.assert_not_called()
        assert result.termination_reason == "cancelled"
        assert result.generations == 0
