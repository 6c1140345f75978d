# timetable_engine/solvers/annealing.py

"""Simulated annealing over the same gene encoding the genetic solver uses."""

import logging
import math
import random
from typing import List, Optional, Sequence

from ..config import AlgorithmType, config
from ..core.settings import AnnealingParameters, GenerationSettings
from ..genetic_algorithm.fitness import FitnessEvaluator
from ..genetic_algorithm.operators import fill_unplaced
from .base import RunContext, Solver, SolverResult, convergence_rate
from .domain_builder import ProblemInstance
from .greedy import GreedySolver

logger = logging.getLogger(__name__)


class SimulatedAnnealingSolver(Solver):
    """
    Starts from the greedy schedule and walks single-unit moves.

    Improving moves are always taken; a worsening move of fitness delta
    ``d < 0`` is taken with probability ``exp(d * energy_scale / T)``. The
    temperature is multiplied by ``cooling_rate`` every
    ``iterations_per_temperature`` iterations. The best state ever seen is
    returned.
    """

    algorithm = AlgorithmType.SIMULATED_ANNEALING

    def __init__(self, params: Optional[AnnealingParameters] = None):
        self.params = params

    def solve(
        self,
        problem: ProblemInstance,
        settings: GenerationSettings,
        context: RunContext,
    ) -> SolverResult:
        params = self.params or settings.annealing
        rng = context.rng
        seed = GreedySolver().solve(problem, settings, context.phase(0, 10))
        reporter = context.phase(10, 100).reporter
        evaluator = FitnessEvaluator(problem, settings)

        current = fill_unplaced(
            problem, problem.placements_to_genes(seed.placements), rng
        )
        current_fitness = evaluator.fitness_of(current)
        best, best_fitness = list(current), current_fitness
        initial_fitness = current_fitness
        history = [best_fitness]

        movable = [i for i in problem.placeable if len(problem.domains[i]) > 1]
        temperature = params.initial_temperature
        interval = config.search.annealing_progress_interval
        iteration = 0
        accepted = 0
        reason = "max_iterations"

        while iteration < params.max_iterations:
            stop = context.stop_reason()
            if stop:
                reason = stop
                break
            if temperature < params.min_temperature:
                reason = "min_temperature"
                break
            if not movable:
                reason = "no_moves"
                break

            iteration += 1
            candidate = self.neighbour(problem, current, movable, rng)
            candidate_fitness = evaluator.fitness_of(candidate)
            delta = candidate_fitness - current_fitness
            if delta >= 0 or rng.random() < math.exp(
                delta * params.energy_scale / temperature
            ):
                current, current_fitness = candidate, candidate_fitness
                accepted += 1
                if current_fitness > best_fitness:
                    best, best_fitness = list(current), current_fitness

            if iteration % params.iterations_per_temperature == 0:
                temperature *= params.cooling_rate
            if iteration % interval == 0:
                history.append(best_fitness)
                reporter.report(
                    iteration / params.max_iterations * 100,
                    f"Annealing at temperature {temperature:.3f}",
                    generation=iteration,
                    fitness=best_fitness,
                )

        logger.info(
            f"Annealing finished after {iteration} iterations ({reason}), "
            f"{accepted} moves accepted, best fitness {best_fitness:.4f}"
        )
        reporter.report(100, "Annealing finished", generation=iteration, fitness=best_fitness)
        return SolverResult(
            algorithm=self.algorithm.value,
            placements=problem.genes_to_placements(best),
            iterations=iteration,
            initial_fitness=initial_fitness,
            final_fitness=best_fitness,
            convergence_rate=convergence_rate(initial_fitness, best_fitness),
            termination_reason=reason,
            fitness_history=history,
        )

    @staticmethod
    def neighbour(
        problem: ProblemInstance,
        genes: Sequence[int],
        movable: Sequence[int],
        rng: random.Random,
    ) -> List[int]:
        """Copy of ``genes`` with one unit moved to another room or value."""
        candidate = list(genes)
        index = rng.choice(movable)
        domain = problem.domains[index]
        current = domain[candidate[index]]

        if rng.random() < 0.5:
            same_time = [
                v
                for v, p in enumerate(domain)
                if p.day == current.day
                and p.start == current.start
                and p.teacher_id == current.teacher_id
                and p.classroom_id != current.classroom_id
            ]
            if same_time:
                candidate[index] = rng.choice(same_time)
                return candidate

        value = rng.randrange(len(domain) - 1)
        candidate[index] = value if value < candidate[index] else value + 1
        return candidate
