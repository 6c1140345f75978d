# timetable_engine/hybrid/coordinator.py

"""
Hybrid Coordinator - CSP feasibility search followed by genetic optimization.

1. CSP phase: a budgeted backtracking search for a feasible assignment
2. Fallback: when CSP leaves units unplaced, a greedy pass competes with it
3. GA phase: the better seed is cloned, lightly perturbed and evolved
"""

from enum import Enum
from typing import Optional

from ..config import AlgorithmType, get_logger
from ..core.settings import GeneticParameters, GenerationSettings
from ..genetic_algorithm.evolution import GeneticSolver
from ..genetic_algorithm.fitness import FitnessEvaluator
from ..genetic_algorithm.operators import fill_unplaced
from ..solvers.base import RunContext, Solver, SolverResult
from ..solvers.csp import CSPSolver
from ..solvers.domain_builder import ProblemInstance
from ..solvers.greedy import GreedySolver

logger = get_logger("hybrid.coordinator")

# Share of the solver's progress window taken by each phase
CSP_PHASE_END = 25.0
SEED_PHASE_END = 30.0


class OptimizationPhase(Enum):
    """Phases in the hybrid optimization process"""

    CSP_FEASIBILITY = "csp_feasibility"
    GREEDY_FALLBACK = "greedy_fallback"
    GA_EVOLUTION = "ga_evolution"


class HybridSolver(Solver):
    """Orchestrates CSP, greedy fallback and GA into one solve."""

    algorithm = AlgorithmType.HYBRID

    def __init__(
        self,
        csp: Optional[CSPSolver] = None,
        greedy: Optional[GreedySolver] = None,
        genetic: Optional[GeneticSolver] = None,
    ):
        self.csp = csp
        self.greedy = greedy or GreedySolver()
        self.genetic = genetic or GeneticSolver()

    @staticmethod
    def csp_time_budget(settings: GenerationSettings) -> Optional[float]:
        hybrid = settings.hybrid
        if hybrid.csp_time_limit:
            return hybrid.csp_time_limit
        if settings.time_limit_seconds:
            return settings.time_limit_seconds * hybrid.hybrid_ratio
        return None

    @staticmethod
    def ga_parameters(settings: GenerationSettings) -> GeneticParameters:
        """Genetic parameters capped for the optimization phase."""
        hybrid = settings.hybrid
        genetic = settings.genetic
        population = min(genetic.population_size, hybrid.max_population)
        generations = hybrid.ga_generations
        if generations is None:
            generations = min(genetic.max_generations // 2, hybrid.max_ga_generations)
        return genetic.model_copy(
            update={
                "population_size": population,
                "max_generations": generations,
                "elite_size": min(genetic.elite_size, population - 1),
                "tournament_size": min(genetic.tournament_size, population),
            }
        )

    def solve(
        self,
        problem: ProblemInstance,
        settings: GenerationSettings,
        context: RunContext,
    ) -> SolverResult:
        csp_solver = self.csp or CSPSolver.from_parameters(settings.csp)

        logger.info(f"Phase {OptimizationPhase.CSP_FEASIBILITY.value} started")
        csp_context = context.phase(0, CSP_PHASE_END, self.csp_time_budget(settings))
        outcome = csp_solver.search(
            problem, settings.hybrid.csp_max_backtrack_steps, csp_context
        )
        seed = outcome.assignment
        seed_count = outcome.placed_count
        fallback_used = False
        logger.info(
            f"CSP placed {seed_count}/{problem.size} sessions "
            f"({outcome.termination_reason}, {outcome.backtrack_steps} backtracks)"
        )

        if not outcome.complete and not context.cancelled:
            logger.info(f"Phase {OptimizationPhase.GREEDY_FALLBACK.value} started")
            greedy = self.greedy.solve(
                problem, settings, context.phase(CSP_PHASE_END, SEED_PHASE_END)
            )
            if greedy.placed_count > seed_count:
                seed, seed_count = greedy.placements, greedy.placed_count
                fallback_used = True
                logger.info(f"Greedy fallback placed {seed_count} sessions and wins")

        genes = fill_unplaced(problem, problem.placements_to_genes(seed), context.rng)
        logger.info(f"Phase {OptimizationPhase.GA_EVOLUTION.value} started")
        evolution = self.genetic.evolve(
            problem,
            [genes],
            FitnessEvaluator(problem, settings),
            self.ga_parameters(settings),
            context.phase(SEED_PHASE_END, 100),
            max_workers=settings.max_workers,
        )

        return SolverResult(
            algorithm=self.algorithm.value,
            placements=problem.genes_to_placements(evolution.best),
            iterations=outcome.nodes + evolution.evaluations,
            generations=evolution.generations,
            backtrack_steps=outcome.backtrack_steps,
            exhausted=outcome.exhausted,
            initial_fitness=evolution.initial_fitness,
            final_fitness=evolution.best_fitness,
            convergence_rate=evolution.convergence_rate,
            termination_reason=evolution.termination_reason,
            fallback_used=fallback_used,
            fitness_history=evolution.history,
        )
