# timetable_engine/solvers/__init__.py

"""
Solver variants behind the common :class:`Solver` interface.

``create_solver`` lives in :mod:`timetable_engine.solvers.factory`, which
also pulls in the genetic and hybrid packages.
"""

from .base import (
    CancellationToken,
    ProgressReporter,
    ProgressUpdate,
    RunContext,
    Solver,
    SolverResult,
)
from .domain_builder import (
    UNPLACED,
    Placement,
    ProblemInstance,
    SessionUnit,
    build_problem,
)
from .greedy import GreedySolver
from .csp import BacktrackingSolver, CSPOutcome, CSPSolver
from .annealing import SimulatedAnnealingSolver

__all__ = [
    "CancellationToken",
    "ProgressReporter",
    "ProgressUpdate",
    "RunContext",
    "Solver",
    "SolverResult",
    "UNPLACED",
    "Placement",
    "ProblemInstance",
    "SessionUnit",
    "build_problem",
    "GreedySolver",
    "BacktrackingSolver",
    "CSPOutcome",
    "CSPSolver",
    "SimulatedAnnealingSolver",
]
