# timetable_engine/analysis/quality_scorer.py

"""
Quality scoring for timetables.

Every sub-score is normalised to 0-100. Teacher satisfaction and student
convenience need preference and gap data that a snapshot does not always
carry; when it is missing a neutral placeholder from :class:`QualityConfig`
is reported and the score is flagged ``estimated``.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from ..config import OptimizationGoal, QualityConfig, config
from ..core.metrics import QualityScore, Recommendation
from ..core.problem_model import DomainSnapshot
from ..core.settings import GenerationSettings
from ..core.solution import Conflict, Schedule

logger = logging.getLogger(__name__)

# Sub-score each optimization goal weighs in the overall score
GOAL_SUBSCORES = {
    OptimizationGoal.MINIMIZE_CONFLICTS: "constraint_compliance",
    OptimizationGoal.RESOURCE_OPTIMIZATION: "room_utilization",
    OptimizationGoal.TEACHER_PREFERENCES: "teacher_satisfaction",
    OptimizationGoal.STUDENT_CONVENIENCE: "student_convenience",
    OptimizationGoal.BALANCED_SCHEDULE: "schedule_balance",
}
CORE_SUBSCORES = (
    "constraint_compliance",
    "room_utilization",
    "teacher_satisfaction",
    "student_convenience",
)


def daily_counts(schedule: Schedule, settings: GenerationSettings) -> List[int]:
    counts = {day: 0 for day in settings.working_days}
    for assignment in schedule:
        counts[assignment.day] = counts.get(assignment.day, 0) + 1
    return list(counts.values())


def group_idle_hours(schedule: Schedule) -> Optional[float]:
    """Mean idle hours between consecutive sessions per group and day."""
    by_group_day: Dict[tuple, List[tuple]] = defaultdict(list)
    for a in schedule:
        key = (a.student_group, a.batch_id, a.day)
        by_group_day[key].append((a.start_minutes, a.end_minutes))

    gaps = []
    for intervals in by_group_day.values():
        if len(intervals) < 2:
            continue
        intervals.sort()
        idle = 0
        for (_, prev_end), (next_start, _) in zip(intervals, intervals[1:]):
            idle += max(0, next_start - prev_end)
        gaps.append(idle / 60.0)
    if not gaps:
        return None
    return float(np.mean(gaps))


def consecutive_excess_hours(schedule: Schedule, snapshot: DomainSnapshot) -> float:
    """
    Hours by which back-to-back teaching runs exceed each teacher's limit.

    Sessions form a run when one starts exactly where the previous one ends.
    """
    by_teacher_day: Dict[tuple, List[tuple]] = defaultdict(list)
    for a in schedule:
        by_teacher_day[(a.teacher_id, a.day)].append((a.start_minutes, a.end_minutes))

    excess = 0
    for (teacher_id, _), intervals in by_teacher_day.items():
        teacher = snapshot.teachers_by_id.get(teacher_id)
        if teacher is None:
            continue
        limit = teacher.max_consecutive_minutes
        intervals.sort()
        run_start, run_end = intervals[0]
        for start, end in intervals[1:]:
            if start == run_end:
                run_end = end
                continue
            excess += max(0, run_end - run_start - limit)
            run_start, run_end = start, end
        excess += max(0, run_end - run_start - limit)
    return excess / 60.0


def preference_match_rate(
    schedule: Schedule, snapshot: DomainSnapshot
) -> Optional[float]:
    """Share of sessions, of teachers with preferences, in a preferred slot."""
    matched = total = 0
    for a in schedule:
        teacher = snapshot.teachers_by_id.get(a.teacher_id)
        if teacher is None or not teacher.has_preferences:
            continue
        total += 1
        if teacher.prefers(a.day, a.start_minutes, a.end_minutes):
            matched += 1
    if total == 0:
        return None
    return matched / total


class QualityScorer:
    """Computes a :class:`QualityScore` from a schedule and its conflicts."""

    def __init__(
        self,
        settings: GenerationSettings,
        quality_config: Optional[QualityConfig] = None,
    ):
        self.settings = settings
        self.config = quality_config or config.quality

    def score(
        self,
        schedule: Schedule,
        conflicts: Sequence[Conflict],
        snapshot: DomainSnapshot,
    ) -> QualityScore:
        total = len(schedule)
        if total == 0:
            compliance = 0.0
        else:
            compliance = max(0, total - len(conflicts)) / total * 100.0

        utilization = self._room_utilization(schedule)
        balance = self._schedule_balance(schedule)

        estimated: List[str] = []
        match_rate = preference_match_rate(schedule, snapshot)
        if match_rate is None:
            teacher_satisfaction = self.config.teacher_satisfaction_placeholder
            estimated.append("teacherSatisfaction")
        else:
            teacher_satisfaction = match_rate * 100.0

        idle = group_idle_hours(schedule)
        if idle is None:
            student_convenience = self.config.student_convenience_placeholder
            estimated.append("studentConvenience")
        else:
            student_convenience = 100.0 / (1.0 + idle)

        values = {
            "constraint_compliance": compliance,
            "room_utilization": utilization,
            "teacher_satisfaction": teacher_satisfaction,
            "student_convenience": student_convenience,
            "schedule_balance": balance,
        }
        overall = self._overall(values, self.settings.goal_weights)

        return QualityScore(
            overall_score=overall,
            teacher_satisfaction=teacher_satisfaction,
            room_utilization=utilization,
            student_convenience=student_convenience,
            constraint_compliance=compliance,
            schedule_balance=balance,
            estimated=bool(estimated),
            estimated_fields=tuple(estimated),
        )

    def _room_utilization(self, schedule: Schedule) -> float:
        capacity_minutes = self.settings.weekly_minutes()
        if not len(schedule) or capacity_minutes <= 0:
            return 0.0
        booked: Dict[str, int] = defaultdict(int)
        for a in schedule:
            booked[a.classroom_id] += a.duration_minutes
        rates = [min(100.0, m / capacity_minutes * 100.0) for m in booked.values()]
        return float(np.mean(rates))

    def _schedule_balance(self, schedule: Schedule) -> float:
        counts = daily_counts(schedule, self.settings)
        if not len(schedule):
            return 100.0
        return max(0.0, 100.0 - float(np.var(counts)) * 10.0)

    @staticmethod
    def _overall(
        values: Mapping[str, float], goal_weights: Mapping[OptimizationGoal, float]
    ) -> float:
        weighted = {
            GOAL_SUBSCORES[goal]: weight
            for goal, weight in goal_weights.items()
            if weight > 0
        }
        if not weighted:
            return float(np.mean([values[name] for name in CORE_SUBSCORES]))
        total_weight = sum(weighted.values())
        return sum(values[name] * w for name, w in weighted.items()) / total_weight

    def recommendations(self, quality: QualityScore) -> List[Recommendation]:
        """Actionable recommendations for weak spots of a scored schedule."""
        items: List[Recommendation] = []
        if quality.constraint_compliance < self.config.compliance_threshold:
            items.append(
                Recommendation(
                    type="constraint_compliance",
                    priority="high",
                    message="Schedule has constraint violations that need attention",
                    suggestions=[
                        "Review teacher availability",
                        "Check classroom capacity requirements",
                        "Consider adjusting time slot preferences",
                    ],
                )
            )
        if quality.room_utilization > self.config.utilization_threshold:
            items.append(
                Recommendation(
                    type="resource_utilization",
                    priority="medium",
                    message="High room utilization detected",
                    suggestions=[
                        "Consider adding more classrooms",
                        "Optimize room allocation",
                        "Review session durations",
                    ],
                )
            )
        if quality.schedule_balance < self.config.balance_threshold:
            items.append(
                Recommendation(
                    type="schedule_balance",
                    priority="medium",
                    message="Schedule is not well balanced across days",
                    suggestions=[
                        "Redistribute sessions across weekdays",
                        "Consider workload balancing",
                        "Review peak hour usage",
                    ],
                )
            )
        return items
