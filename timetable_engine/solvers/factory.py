# timetable_engine/solvers/factory.py

"""Maps an algorithm choice to its solver."""

from typing import Callable, Dict

from ..config import AlgorithmType
from ..core.settings import GenerationSettings
from ..genetic_algorithm.evolution import GeneticSolver
from ..hybrid.coordinator import HybridSolver
from .annealing import SimulatedAnnealingSolver
from .base import Solver
from .csp import BacktrackingSolver, CSPSolver
from .greedy import GreedySolver

SOLVER_BUILDERS: Dict[AlgorithmType, Callable[[GenerationSettings], Solver]] = {
    AlgorithmType.GREEDY: lambda settings: GreedySolver(),
    AlgorithmType.CSP: lambda settings: CSPSolver.from_parameters(settings.csp),
    AlgorithmType.BACKTRACKING: lambda settings: BacktrackingSolver.from_parameters(
        settings.csp
    ),
    AlgorithmType.GENETIC: lambda settings: GeneticSolver(settings.genetic),
    AlgorithmType.SIMULATED_ANNEALING: lambda settings: SimulatedAnnealingSolver(
        settings.annealing
    ),
    AlgorithmType.HYBRID: lambda settings: HybridSolver(
        csp=CSPSolver.from_parameters(settings.csp)
    ),
}


def create_solver(settings: GenerationSettings) -> Solver:
    """Solver for ``settings.algorithm`` configured from the same settings."""
    return SOLVER_BUILDERS[settings.algorithm](settings)
