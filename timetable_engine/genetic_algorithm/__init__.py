# timetable_engine/genetic_algorithm/__init__.py

"""Genetic optimization built on DEAP."""

from .deap_setup import initialize_deap_creators, make_individual
from .evolution import EvolutionOutcome, GeneticSolver
from .fitness import FitnessBreakdown, FitnessEvaluator, resolve_goal_weights
from .operators import (
    crossover,
    fill_unplaced,
    mutate,
    perturb,
    random_individual,
    repair,
    select_tournament,
)

__all__ = [
    "initialize_deap_creators",
    "make_individual",
    "EvolutionOutcome",
    "GeneticSolver",
    "FitnessBreakdown",
    "FitnessEvaluator",
    "resolve_goal_weights",
    "crossover",
    "fill_unplaced",
    "mutate",
    "perturb",
    "random_individual",
    "repair",
    "select_tournament",
]
