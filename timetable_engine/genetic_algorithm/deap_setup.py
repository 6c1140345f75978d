# timetable_engine/genetic_algorithm/deap_setup.py

"""
Centralized DEAP initialization.

``creator.create`` registers classes on a module-wide namespace and warns
when a class is created twice, so every creator class is declared here once.
"""

import logging
from typing import Any, Iterable

from deap import base, creator

logger = logging.getLogger(__name__)

FITNESS_CLASS = "TimetableFitness"
INDIVIDUAL_CLASS = "TimetableIndividual"

# Global flag to prevent multiple DEAP initializations
DEAP_INITIALIZED = False


def initialize_deap_creators() -> None:
    """Initialize all DEAP creator classes once and only once."""
    global DEAP_INITIALIZED

    if DEAP_INITIALIZED:
        return

    if not hasattr(creator, FITNESS_CLASS):
        creator.create(FITNESS_CLASS, base.Fitness, weights=(1.0,))

    if not hasattr(creator, INDIVIDUAL_CLASS):
        creator.create(
            INDIVIDUAL_CLASS, list, fitness=getattr(creator, FITNESS_CLASS)
        )

    DEAP_INITIALIZED = True
    logger.debug("DEAP creators initialized")


def get_individual_class() -> Any:
    """Get the individual class, initializing if needed."""
    initialize_deap_creators()
    return getattr(creator, INDIVIDUAL_CLASS)


def make_individual(genes: Iterable[int]) -> Any:
    """Wrap a gene list as a DEAP individual with an invalid fitness."""
    return get_individual_class()(genes)


def reset_deap_creators() -> None:
    """Reset DEAP creators for testing purposes."""
    global DEAP_INITIALIZED
    DEAP_INITIALIZED = False

    for attr_name in (INDIVIDUAL_CLASS, FITNESS_CLASS):
        if hasattr(creator, attr_name):
            delattr(creator, attr_name)


initialize_deap_creators()
