# timetable_engine/genetic_algorithm/evolution.py

"""
DEAP evolution loop: tournament selection, elitism, crossover with repair,
consistent-value mutation, stagnation and target-fitness termination.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import numpy as np
from deap import base, tools

from ..config import AlgorithmType, config
from ..core.settings import GeneticParameters, GenerationSettings
from ..solvers.base import RunContext, Solver, SolverResult, convergence_rate
from ..solvers.domain_builder import ProblemInstance
from ..solvers.greedy import GreedySolver
from .deap_setup import make_individual
from .fitness import FitnessEvaluator
from .operators import (
    crossover,
    fill_unplaced,
    mutate,
    perturb,
    random_individual,
    select_tournament,
)

logger = logging.getLogger(__name__)


@dataclass
class EvolutionOutcome:
    best: List[int]
    best_fitness: float
    initial_fitness: float
    generations: int
    termination_reason: str
    evaluations: int = 0
    history: List[float] = field(default_factory=list)
    logbook: Optional[Any] = None

    @property
    def convergence_rate(self) -> float:
        return convergence_rate(self.initial_fitness, self.best_fitness)


class GeneticSolver(Solver):
    """Genetic optimizer over domain-index individuals."""

    algorithm = AlgorithmType.GENETIC

    def __init__(
        self,
        params: Optional[GeneticParameters] = None,
        max_workers: Optional[int] = None,
    ):
        self.params = params
        self.max_workers = max_workers

    def solve(
        self,
        problem: ProblemInstance,
        settings: GenerationSettings,
        context: RunContext,
    ) -> SolverResult:
        params = self.params or settings.genetic
        seed = GreedySolver().solve(problem, settings, context.phase(0, 10))
        seeds = [
            fill_unplaced(
                problem, problem.placements_to_genes(seed.placements), context.rng
            )
        ]
        # Half perturbed clones of the greedy seed, half random individuals
        while len(seeds) < params.population_size:
            if len(seeds) % 2:
                seeds.append(perturb(problem, list(seeds[0]), context.rng))
            else:
                seeds.append(random_individual(problem, context.rng))

        outcome = self.evolve(
            problem,
            seeds,
            FitnessEvaluator(problem, settings),
            params,
            context.phase(10, 100),
            max_workers=self.max_workers or settings.max_workers,
        )
        return self.to_result(problem, outcome)

    def to_result(self, problem: ProblemInstance, outcome: EvolutionOutcome) -> SolverResult:
        return SolverResult(
            algorithm=self.algorithm.value,
            placements=problem.genes_to_placements(outcome.best),
            iterations=outcome.evaluations,
            generations=outcome.generations,
            initial_fitness=outcome.initial_fitness,
            final_fitness=outcome.best_fitness,
            convergence_rate=outcome.convergence_rate,
            termination_reason=outcome.termination_reason,
            fitness_history=outcome.history,
        )

    def evolve(
        self,
        problem: ProblemInstance,
        seed_population: Sequence[Sequence[int]],
        evaluator: FitnessEvaluator,
        params: GeneticParameters,
        context: Optional[RunContext] = None,
        max_workers: int = 1,
    ) -> EvolutionOutcome:
        """
        Evolve a population grown from ``seed_population``.

        Seeds beyond the population size are ignored; missing individuals
        are perturbed clones of random seeds. ``history`` holds the best
        fitness of each generation, starting with the initial population.

        With ``max_workers > 1`` and a population of at least
        ``config.search.parallel_min_population`` individuals, fitness is
        evaluated on a thread pool. Evaluation is pure Python and holds the
        GIL, so the pool is a concurrency hook for evaluators that release it
        rather than a speedup; smaller populations are evaluated inline.
        """
        context = context or RunContext()
        rng = context.rng

        population = [make_individual(genes) for genes in seed_population]
        population = population[: params.population_size]
        if not population:
            population = [make_individual(random_individual(problem, rng))]
        while len(population) < params.population_size:
            clone = list(rng.choice(population[: len(seed_population) or 1]))
            population.append(make_individual(perturb(problem, clone, rng)))

        if max_workers > 1 and len(population) >= config.search.parallel_min_population:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                return self._run(problem, population, evaluator, params, context, executor.map)
        return self._run(problem, population, evaluator, params, context, map)

    def _toolbox(self, problem, evaluator, params, rng, map_fn) -> base.Toolbox:
        toolbox = base.Toolbox()
        toolbox.register("evaluate", evaluator.evaluate)
        toolbox.register(
            "select", select_tournament, tournsize=params.tournament_size, rng=rng
        )
        toolbox.register(
            "mate", crossover, problem=problem, rng=rng, kind=params.crossover_type
        )
        toolbox.register("mutate", mutate, problem=problem, rng=rng)
        toolbox.register("map", map_fn)
        return toolbox

    def _run(self, problem, population, evaluator, params, context, map_fn) -> EvolutionOutcome:
        rng = context.rng
        reporter = context.reporter
        toolbox = self._toolbox(problem, evaluator, params, rng, map_fn)

        stats = tools.Statistics(lambda ind: ind.fitness.values[0])
        stats.register("avg", np.mean)
        stats.register("max", np.max)
        stats.register("min", np.min)
        logbook = tools.Logbook()
        logbook.header = ["gen", "nevals"] + stats.fields
        hall_of_fame = tools.HallOfFame(1)

        for ind, fit in zip(population, toolbox.map(toolbox.evaluate, population)):
            ind.fitness.values = fit
        hall_of_fame.update(population)
        logbook.record(gen=0, nevals=len(population), **stats.compile(population))

        initial_fitness = hall_of_fame[0].fitness.values[0]
        best_fitness = initial_fitness
        history = [max(ind.fitness.values[0] for ind in population)]
        last_improvement = 0
        generation = 0
        reason = "max_generations"
        elite_size = min(params.elite_size, len(population))
        logger.info(
            f"Evolution started: population={len(population)}, "
            f"initial fitness={initial_fitness:.4f}"
        )

        while generation < params.max_generations:
            stop = context.stop_reason()
            if stop:
                reason = stop
                break
            if params.target_fitness is not None and best_fitness >= params.target_fitness:
                reason = "target_fitness"
                break
            if generation - last_improvement >= params.stagnation_window:
                reason = "stagnation"
                break

            generation += 1
            elites = [toolbox.clone(ind) for ind in tools.selBest(population, elite_size)]
            offspring = [
                toolbox.clone(ind)
                for ind in toolbox.select(population, len(population) - elite_size)
            ]

            for child1, child2 in zip(offspring[::2], offspring[1::2]):
                if rng.random() < params.crossover_rate:
                    toolbox.mate(child1, child2)
                    del child1.fitness.values
                    del child2.fitness.values

            for mutant in offspring:
                if rng.random() < params.mutation_rate:
                    toolbox.mutate(mutant)
                    del mutant.fitness.values

            invalid = [ind for ind in offspring if not ind.fitness.valid]
            for ind, fit in zip(invalid, toolbox.map(toolbox.evaluate, invalid)):
                ind.fitness.values = fit

            population[:] = elites + offspring
            hall_of_fame.update(population)
            record = stats.compile(population)
            logbook.record(gen=generation, nevals=len(invalid), **record)
            history.append(float(record["max"]))

            if hall_of_fame[0].fitness.values[0] > best_fitness:
                best_fitness = hall_of_fame[0].fitness.values[0]
                last_improvement = generation

            reporter.report(
                generation / params.max_generations * 100,
                f"Generation {generation}/{params.max_generations}",
                generation=generation,
                fitness=best_fitness,
            )
            if generation % 10 == 0:
                logger.info(
                    f"Gen {generation} | best={best_fitness:.4f}, "
                    f"avg={record['avg']:.4f}, evaluated={len(invalid)}"
                )

        logger.info(
            f"Evolution finished after {generation} generations ({reason}), "
            f"best fitness {best_fitness:.4f}"
        )
        return EvolutionOutcome(
            best=list(hall_of_fame[0]),
            best_fitness=best_fitness,
            initial_fitness=initial_fitness,
            generations=generation,
            termination_reason=reason,
            evaluations=evaluator.evaluations,
            history=history,
            logbook=logbook,
        )
