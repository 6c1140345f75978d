# timetable_engine/core/metrics.py

"""
Result data structures: quality scores, run metrics, schedule statistics
and the terminal generation result handed to the caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .solution import Conflict, Schedule


class GenerationStatus(Enum):
    COMPLETED = "completed"
    DRAFT = "draft"


@dataclass(frozen=True)
class QualityScore:
    """
    0-100 sub-scores for a schedule. ``estimated`` is set when any reported
    value is a neutral placeholder rather than measured from the schedule.
    """

    overall_score: float = 0.0
    teacher_satisfaction: float = 0.0
    room_utilization: float = 0.0
    student_convenience: float = 0.0
    constraint_compliance: float = 0.0
    schedule_balance: float = 0.0
    estimated: bool = False
    estimated_fields: tuple = ()

    @classmethod
    def vacuous(cls) -> "QualityScore":
        """Score of an empty problem: nothing to place, nothing violated."""
        return cls(100.0, 100.0, 100.0, 100.0, 100.0, 100.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": round(self.overall_score, 2),
            "teacherSatisfaction": round(self.teacher_satisfaction, 2),
            "roomUtilization": round(self.room_utilization, 2),
            "studentConvenience": round(self.student_convenience, 2),
            "constraintCompliance": round(self.constraint_compliance, 2),
            "scheduleBalance": round(self.schedule_balance, 2),
            "estimated": self.estimated,
            "estimatedFields": list(self.estimated_fields),
        }


@dataclass(frozen=True)
class GenerationMetrics:
    """Per-run metrics, produced once when the run reaches a terminal state."""

    algorithm: str
    start_time: str
    end_time: str
    duration: float
    iterations: int = 0
    generations: int = 0
    convergence_rate: float = 0.0
    final_fitness: float = 0.0
    constraints_satisfied: int = 0
    constraints_violated: int = 0
    satisfaction_rate: float = 100.0
    backtrack_steps: int = 0
    exhausted: bool = False
    termination_reason: str = ""
    fallback_used: bool = False
    peak_memory_mb: float = 0.0
    estimated: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": round(self.duration, 4),
            "iterations": self.iterations,
            "generations": self.generations,
            "convergenceRate": self.convergence_rate,
            "finalFitness": self.final_fitness,
            "constraintsSatisfied": self.constraints_satisfied,
            "constraintsViolated": self.constraints_violated,
            "satisfactionRate": round(self.satisfaction_rate, 2),
            "backtrackSteps": self.backtrack_steps,
            "exhausted": self.exhausted,
            "terminationReason": self.termination_reason,
            "fallbackUsed": self.fallback_used,
            "peakMemoryMb": round(self.peak_memory_mb, 2),
            "estimated": self.estimated,
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class TeacherWorkload:
    teacher_id: str
    name: str
    assigned_hours: float
    max_hours: Optional[float]
    utilization_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "teacherId": self.teacher_id,
            "name": self.name,
            "assignedHours": round(self.assigned_hours, 2),
            "maxHours": self.max_hours,
            "utilizationPercentage": round(self.utilization_percentage, 2),
        }


@dataclass(frozen=True)
class ScheduleStatistics:
    total_classes: int = 0
    total_teachers: int = 0
    total_rooms: int = 0
    utilization_by_day: Dict[str, int] = field(default_factory=dict)
    peak_hours: List[str] = field(default_factory=list)
    room_utilization_rate: float = 0.0
    teacher_workload_distribution: List[TeacherWorkload] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalClasses": self.total_classes,
            "totalTeachers": self.total_teachers,
            "totalRooms": self.total_rooms,
            "utilizationByDay": dict(self.utilization_by_day),
            "peakHours": list(self.peak_hours),
            "roomUtilizationRate": round(self.room_utilization_rate, 2),
            "teacherWorkloadDistribution": [
                w.to_dict() for w in self.teacher_workload_distribution
            ],
        }


@dataclass(frozen=True)
class Recommendation:
    type: str
    priority: str
    message: str
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority,
            "message": self.message,
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class GenerationResult:
    """Terminal outcome of one generation run."""

    run_id: str
    status: GenerationStatus
    schedule: Schedule
    conflicts: List[Conflict]
    metrics: GenerationMetrics
    quality: QualityScore
    statistics: ScheduleStatistics
    recommendations: List[Recommendation] = field(default_factory=list)
    cancelled: bool = False

    @property
    def is_completed(self) -> bool:
        return self.status == GenerationStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "status": self.status.value,
            "schedule": self.schedule.to_list(),
            "conflicts": [c.to_dict() for c in self.conflicts],
            "metrics": self.metrics.to_dict(),
            "quality": self.quality.to_dict(),
            "statistics": self.statistics.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "cancelled": self.cancelled,
        }
