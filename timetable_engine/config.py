# timetable_engine/config.py

"""
Configuration module for the timetable engine.

Engine-wide knobs live here as dataclasses. Per-run parameters (algorithm,
population size, calendar policy) are carried by
:class:`timetable_engine.core.settings.GenerationSettings`.
"""

from typing import Dict, Optional
from enum import Enum
from dataclasses import dataclass, field
import logging


class AlgorithmType(Enum):
    """Solver variants selectable for a generation run"""

    GREEDY = "greedy"
    CSP = "csp"
    BACKTRACKING = "backtracking"
    GENETIC = "genetic"
    SIMULATED_ANNEALING = "simulated_annealing"
    HYBRID = "hybrid"


class OptimizationGoal(Enum):
    """Optimization goals contributing to fitness and overall quality"""

    MINIMIZE_CONFLICTS = "minimize_conflicts"
    BALANCED_SCHEDULE = "balanced_schedule"
    TEACHER_PREFERENCES = "teacher_preferences"
    RESOURCE_OPTIMIZATION = "resource_optimization"
    STUDENT_CONVENIENCE = "student_convenience"


@dataclass
class QualityConfig:
    """Configuration for quality scoring"""

    # Neutral values reported when preference or gap data is missing
    teacher_satisfaction_placeholder: float = 85.0
    student_convenience_placeholder: float = 80.0

    # Room fill ratio at or above which a placement counts as a good fit
    ideal_fill_min: float = 0.6

    # Fitness penalty per hour a teacher runs past their consecutive limit
    consecutive_hours_penalty: float = 0.15

    # Recommendation thresholds
    compliance_threshold: float = 90.0
    utilization_threshold: float = 90.0
    balance_threshold: float = 70.0


@dataclass
class SearchConfig:
    """Configuration for solver bookkeeping"""

    csp_progress_interval: int = 250  # backtrack steps between progress reports
    annealing_progress_interval: int = 100  # iterations between progress reports
    perturbation_genes: int = 2  # genes changed when cloning a seed
    mutation_attempts: int = 20  # random draws before accepting any value
    parallel_min_population: int = 64  # smallest population evaluated on threads
    fitness_cache_size: int = 10000  # cached fitness breakdowns per evaluator


@dataclass
class EngineConfig:
    """Main configuration for the timetable engine"""

    quality: QualityConfig = field(default_factory=QualityConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    enable_logging: bool = True
    log_level: str = "INFO"

    # Sample peak memory during runs
    monitor_memory: bool = True

    # Relative weights of active goals in the fitness goal term
    fitness_goal_weights: Optional[Dict[str, float]] = None

    def __post_init__(self):
        if self.fitness_goal_weights is None:
            self.fitness_goal_weights = {
                OptimizationGoal.MINIMIZE_CONFLICTS.value: 1.0,
                OptimizationGoal.BALANCED_SCHEDULE.value: 1.0,
                OptimizationGoal.TEACHER_PREFERENCES.value: 1.0,
                OptimizationGoal.RESOURCE_OPTIMIZATION.value: 1.0,
                OptimizationGoal.STUDENT_CONVENIENCE.value: 1.0,
            }


# Global configuration instance
config = EngineConfig()


def get_logger(name: str) -> logging.Logger:
    """Get configured logger for the timetable engine"""
    logger = logging.getLogger(f"timetable_engine.{name}")
    if config.enable_logging and not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, config.log_level))
    return logger
