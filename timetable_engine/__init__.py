# timetable_engine/__init__.py

"""
Timetable Generation Engine

Assigns course sessions, teachers and classrooms to weekly time slots under
hard and soft constraints, producing a conflict-annotated, quality-scored
timetable. Solver variants: greedy, constraint satisfaction (with a plain
backtracking mode), genetic, simulated annealing and a CSP-to-GA hybrid.
"""

from .config import AlgorithmType, EngineConfig, OptimizationGoal, config, get_logger
from .core import (
    ConcurrentGenerationError,
    Conflict,
    DataValidationError,
    DomainSnapshot,
    GenerationResult,
    GenerationSettings,
    GenerationStatus,
    QualityScore,
    Schedule,
    TimeSlotAssignment,
)
from .analysis import ConflictDetector, QualityScorer, detect_conflicts
from .solvers import CancellationToken, ProgressUpdate
from .solvers.factory import create_solver
from .engine import GenerationHandle, GenerationRunner, RunStatus, TimetableEngine

__version__ = "1.0.0"

# Package-level exports
__all__ = [
    # Configuration
    "AlgorithmType",
    "EngineConfig",
    "OptimizationGoal",
    "config",
    "get_logger",
    # Core model
    "ConcurrentGenerationError",
    "Conflict",
    "DataValidationError",
    "DomainSnapshot",
    "GenerationResult",
    "GenerationSettings",
    "GenerationStatus",
    "QualityScore",
    "Schedule",
    "TimeSlotAssignment",
    # Analysis
    "ConflictDetector",
    "QualityScorer",
    "detect_conflicts",
    # Running generations
    "CancellationToken",
    "ProgressUpdate",
    "create_solver",
    "GenerationHandle",
    "GenerationRunner",
    "RunStatus",
    "TimetableEngine",
]

logger = get_logger("main")
logger.debug(f"Timetable Engine v{__version__} initialized")
