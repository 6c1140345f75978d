# timetable_engine/genetic_algorithm/operators.py

"""
Variation operators over gene lists.

A gene is an index into its unit's domain (``UNPLACED`` only for units with
an empty domain). Crossover swaps genes between two parents and then
repairs the children; mutation moves one unit to a value that is consistent
with the rest of the individual. Operators modify individuals in place and
return them as DEAP expects. Every random draw comes from the run's own
``random.Random``; the module-level generator is never used.
"""

import logging
import random
from typing import List, MutableSequence, Optional, Sequence, Tuple

from ..config import config
from ..solvers.domain_builder import UNPLACED, Occupancy, ProblemInstance

logger = logging.getLogger(__name__)


def occupancy_of(
    problem: ProblemInstance, genes: MutableSequence[int], skip: Optional[int] = None
) -> Occupancy:
    """Bookings of every placed gene except ``skip``."""
    occupancy = problem.new_occupancy()
    for index, gene in enumerate(genes):
        if gene == UNPLACED or index == skip:
            continue
        occupancy.add(problem.units[index], problem.domains[index][gene])
    return occupancy


def repair(problem: ProblemInstance, genes: MutableSequence[int]) -> MutableSequence[int]:
    """
    Move genes that collide with an earlier gene to the next consistent value.

    The scan is cyclic from the gene's current index; when no value of the
    domain is consistent the gene is kept as it is.
    """
    occupancy = problem.new_occupancy()
    for index, gene in enumerate(genes):
        if gene == UNPLACED:
            continue
        unit = problem.units[index]
        domain = problem.domains[index]
        if not occupancy.accepts(unit, domain[gene]):
            size = len(domain)
            for step in range(1, size):
                candidate = (gene + step) % size
                if occupancy.accepts(unit, domain[candidate]):
                    gene = candidate
                    break
            genes[index] = gene
        occupancy.add(unit, domain[gene])
    return genes


def select_tournament(
    individuals: Sequence, k: int, tournsize: int, rng: random.Random
) -> List:
    """Select ``k`` individuals, each the fittest of ``tournsize`` random draws."""
    chosen = []
    for _ in range(k):
        aspirants = [rng.choice(individuals) for _ in range(tournsize)]
        chosen.append(max(aspirants, key=lambda ind: ind.fitness))
    return chosen


def crossover(
    ind1,
    ind2,
    problem: ProblemInstance,
    rng: random.Random,
    kind: str = "uniform",
    indpb: float = 0.5,
) -> Tuple:
    size = min(len(ind1), len(ind2))
    if size >= 2:
        if kind == "one_point":
            point = rng.randint(1, size - 1)
            ind1[point:], ind2[point:] = ind2[point:], ind1[point:]
        else:
            for i in range(size):
                if rng.random() < indpb:
                    ind1[i], ind2[i] = ind2[i], ind1[i]
    repair(problem, ind1)
    repair(problem, ind2)
    return ind1, ind2


def reassign(
    problem: ProblemInstance,
    genes: MutableSequence[int],
    index: int,
    rng: random.Random,
) -> bool:
    """Move one unit to a different consistent value; False when none exists."""
    domain = problem.domains[index]
    current = genes[index]
    if len(domain) < 2:
        return False
    unit = problem.units[index]
    occupancy = occupancy_of(problem, genes, skip=index)

    for _ in range(config.search.mutation_attempts):
        candidate = rng.randrange(len(domain))
        if candidate != current and occupancy.accepts(unit, domain[candidate]):
            genes[index] = candidate
            return True

    offset = rng.randrange(len(domain))
    for step in range(len(domain)):
        candidate = (offset + step) % len(domain)
        if candidate != current and occupancy.accepts(unit, domain[candidate]):
            genes[index] = candidate
            return True
    return False


def mutate(individual, problem: ProblemInstance, rng: random.Random) -> Tuple:
    placeable = problem.placeable
    if placeable:
        reassign(problem, individual, rng.choice(placeable), rng)
    return (individual,)


def perturb(
    problem: ProblemInstance,
    genes: MutableSequence[int],
    rng: random.Random,
    count: Optional[int] = None,
) -> MutableSequence[int]:
    """Apply ``count`` single-unit reassignments to a copy-owned gene list."""
    count = config.search.perturbation_genes if count is None else count
    placeable = problem.placeable
    if not placeable:
        return genes
    for _ in range(count):
        reassign(problem, genes, rng.choice(placeable), rng)
    return genes


def random_individual(problem: ProblemInstance, rng: random.Random) -> List[int]:
    """Build genes in random unit order, preferring consistent values."""
    genes = [UNPLACED] * problem.size
    occupancy = problem.new_occupancy()
    order = problem.placeable
    rng.shuffle(order)
    for index in order:
        unit = problem.units[index]
        domain = problem.domains[index]
        gene = None
        for _ in range(config.search.mutation_attempts):
            candidate = rng.randrange(len(domain))
            if occupancy.accepts(unit, domain[candidate]):
                gene = candidate
                break
        if gene is None:
            gene = rng.randrange(len(domain))
        genes[index] = gene
        occupancy.add(unit, domain[gene])
    return genes


def fill_unplaced(
    problem: ProblemInstance, genes: MutableSequence[int], rng: random.Random
) -> MutableSequence[int]:
    """Give every placeable unit a gene, accepting collisions when unavoidable."""
    missing = [i for i in problem.placeable if genes[i] == UNPLACED]
    if not missing:
        return genes
    occupancy = occupancy_of(problem, genes)
    for index in missing:
        unit = problem.units[index]
        domain = problem.domains[index]
        gene = next(
            (v for v, p in enumerate(domain) if occupancy.is_free(unit, p)),
            rng.randrange(len(domain)),
        )
        genes[index] = gene
        occupancy.add(unit, domain[gene])
    return genes
