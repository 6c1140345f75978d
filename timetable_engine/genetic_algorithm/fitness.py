# timetable_engine/genetic_algorithm/fitness.py

"""
Scalar fitness for candidate timetables.

    fitness = w_conflicts / (1 + conflicts + unplaced + consecutive_penalty)
            + w_quality * overall_quality / 100
            + sum(goal_weight * goal_satisfaction for each active goal)

Goal weights come from the run's explicit goal weights when given, otherwise
from the engine defaults over the active optimization goals. Either way they
are scaled to sum to ``fitness_weights.goals``. Higher is better.

``consecutive_penalty`` charges ``config.quality.consecutive_hours_penalty``
for every hour a teacher teaches back-to-back beyond their limit, unless the
``teacher-consecutive-hours`` constraint is disabled.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

from ..analysis.conflict_detector import ConflictDetector
from ..analysis.quality_scorer import QualityScorer, consecutive_excess_hours
from ..config import OptimizationGoal, config
from ..core.metrics import QualityScore
from ..core.settings import GenerationSettings
from ..core.solution import Schedule
from ..solvers.domain_builder import ProblemInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FitnessBreakdown:
    fitness: float
    conflict_count: int
    unplaced: int
    overall_quality: float
    goal_satisfaction: Dict[str, float] = field(default_factory=dict)
    consecutive_excess_hours: float = 0.0

    @property
    def penalty_count(self) -> int:
        return self.conflict_count + self.unplaced

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fitness": self.fitness,
            "conflictCount": self.conflict_count,
            "unplaced": self.unplaced,
            "overallQuality": self.overall_quality,
            "goalSatisfaction": dict(self.goal_satisfaction),
            "consecutiveExcessHours": self.consecutive_excess_hours,
        }


def resolve_goal_weights(settings: GenerationSettings) -> Dict[OptimizationGoal, float]:
    if settings.goal_weights:
        relative = {g: w for g, w in settings.goal_weights.items() if w > 0}
    else:
        relative = {
            goal: config.fitness_goal_weights.get(goal.value, 1.0)
            for goal in settings.optimization_goals
        }
    total = sum(relative.values())
    if total <= 0:
        return {}
    share = settings.fitness_weights.goals
    return {goal: share * weight / total for goal, weight in relative.items()}


class FitnessEvaluator:
    """
    Evaluates gene lists of one problem; safe to call from worker threads.

    Breakdowns are cached by gene tuple, up to
    ``config.search.fitness_cache_size`` entries. ``evaluations`` counts
    every request, ``cache_hits`` those answered from the cache.
    """

    def __init__(self, problem: ProblemInstance, settings: GenerationSettings):
        self.problem = problem
        self.settings = settings
        self.weights = settings.fitness_weights
        self.goal_weights = resolve_goal_weights(settings)
        self.detector = ConflictDetector(problem.snapshot, settings)
        self.scorer = QualityScorer(settings)
        self.check_consecutive = settings.constraint_model().is_enabled(
            "teacher-consecutive-hours"
        )
        self._lock = threading.Lock()
        self._cache: Dict[Tuple[int, ...], FitnessBreakdown] = {}
        self.evaluations = 0
        self.cache_hits = 0

    def __call__(self, genes: Sequence[int]) -> Tuple[float]:
        return self.evaluate(genes)

    def evaluate(self, genes: Sequence[int]) -> Tuple[float]:
        """DEAP-style evaluation returning a one-element tuple."""
        return (self.breakdown(genes).fitness,)

    def fitness_of(self, genes: Sequence[int]) -> float:
        return self.breakdown(genes).fitness

    def breakdown(self, genes: Sequence[int]) -> FitnessBreakdown:
        key = tuple(genes)
        with self._lock:
            self.evaluations += 1
            cached = self._cache.get(key)
            if cached is not None:
                self.cache_hits += 1
                return cached

        result = self._compute(key)
        with self._lock:
            if len(self._cache) >= config.search.fitness_cache_size:
                self._cache.clear()
            self._cache[key] = result
        return result

    def _compute(self, genes: Sequence[int]) -> FitnessBreakdown:
        schedule = self.problem.decode_genes(genes)
        conflicts = self.detector.detect(schedule)
        unplaced = self.problem.size - len(schedule)
        penalty = len(conflicts) + unplaced
        quality = self.scorer.score(schedule, conflicts, self.problem.snapshot)
        excess = (
            consecutive_excess_hours(schedule, self.problem.snapshot)
            if self.check_consecutive
            else 0.0
        )
        soft_penalty = config.quality.consecutive_hours_penalty * excess

        satisfaction = {
            goal.value: self._goal_satisfaction(goal, quality, penalty, schedule)
            for goal in self.goal_weights
        }
        fitness = (
            self.weights.conflicts / (1.0 + penalty + soft_penalty)
            + self.weights.quality * quality.overall_score / 100.0
            + sum(
                weight * satisfaction[goal.value]
                for goal, weight in self.goal_weights.items()
            )
        )
        return FitnessBreakdown(
            fitness=fitness,
            conflict_count=len(conflicts),
            unplaced=unplaced,
            overall_quality=quality.overall_score,
            goal_satisfaction=satisfaction,
            consecutive_excess_hours=excess,
        )

    def _goal_satisfaction(
        self,
        goal: OptimizationGoal,
        quality: QualityScore,
        penalty: int,
        schedule: Schedule,
    ) -> float:
        if goal == OptimizationGoal.MINIMIZE_CONFLICTS:
            return 1.0 / (1.0 + penalty)
        if goal == OptimizationGoal.BALANCED_SCHEDULE:
            return quality.schedule_balance / 100.0
        if goal == OptimizationGoal.TEACHER_PREFERENCES:
            return quality.teacher_satisfaction / 100.0
        if goal == OptimizationGoal.STUDENT_CONVENIENCE:
            return quality.student_convenience / 100.0
        return self._room_fit(schedule)

    def _room_fit(self, schedule: Schedule) -> float:
        """Mean closeness of room fill ratios to the ideal band."""
        if not len(schedule):
            return 1.0
        ideal_min = config.quality.ideal_fill_min
        rooms = self.problem.snapshot.classrooms_by_id
        total = 0.0
        for assignment in schedule:
            room = rooms.get(assignment.classroom_id)
            if room is None or room.capacity <= 0:
                continue
            fill = assignment.student_count / room.capacity
            total += min(1.0, fill / ideal_min)
        return total / len(schedule)
