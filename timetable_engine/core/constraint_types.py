# timetable_engine/core/constraint_types.py

"""
Constraint and conflict type definitions shared by solvers, the conflict
detector and the quality scorer.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass, field, replace
from enum import Enum


class ConstraintType(Enum):
    HARD = "hard"
    SOFT = "soft"


class ConstraintCategory(Enum):
    TEACHER_CONSTRAINTS = "teacher_constraints"
    RESOURCE_CONSTRAINTS = "resource_constraints"
    STUDENT_CONSTRAINTS = "student_constraints"
    TEMPORAL_CONSTRAINTS = "temporal_constraints"
    WORKLOAD_BALANCE = "workload_balance"
    CONVENIENCE_CONSTRAINTS = "convenience_constraints"


class ConflictType(Enum):
    TEACHER_CONFLICT = "teacher_conflict"
    ROOM_CONFLICT = "room_conflict"
    STUDENT_CONFLICT = "student_conflict"
    CONSTRAINT_VIOLATION = "constraint_violation"
    GENERATION_ERROR = "generation_error"
    SYSTEM_ERROR = "system_error"
    DATA_ERROR = "data_error"


class ConflictSeverity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Overlap conflicts produced by the sweep, in report order
OVERLAP_CONFLICT_TYPES = (
    ConflictType.TEACHER_CONFLICT,
    ConflictType.ROOM_CONFLICT,
    ConflictType.STUDENT_CONFLICT,
)


@dataclass(frozen=True)
class ConstraintDefinition:
    """A single named constraint the engine knows how to enforce or score."""

    id: str
    name: str
    description: str
    constraint_type: ConstraintType
    category: ConstraintCategory
    severity: ConflictSeverity = ConflictSeverity.HIGH
    enabled: bool = True
    mutability: str = "editable"  # 'read-only', 'editable'
    weight: float = 1.0

    @property
    def is_hard(self) -> bool:
        return self.constraint_type == ConstraintType.HARD


DEFAULT_CONSTRAINTS: List[ConstraintDefinition] = [
    ConstraintDefinition(
        id="teacher-double-booking",
        name="Teacher Double Booking",
        description="A teacher cannot hold two sessions at the same time.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.TEACHER_CONSTRAINTS,
        mutability="read-only",
    ),
    ConstraintDefinition(
        id="room-double-booking",
        name="Room Double Booking",
        description="A classroom cannot host two sessions at the same time.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.RESOURCE_CONSTRAINTS,
        mutability="read-only",
    ),
    ConstraintDefinition(
        id="student-group-overlap",
        name="Student Group Overlap",
        description="A division or batch cannot attend two sessions at once.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.STUDENT_CONSTRAINTS,
        mutability="read-only",
    ),
    ConstraintDefinition(
        id="teacher-availability",
        name="Teacher Availability",
        description="Sessions fall inside the teacher's availability window.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.TEACHER_CONSTRAINTS,
    ),
    ConstraintDefinition(
        id="room-capacity",
        name="Room Capacity",
        description="The classroom seats every student of the session.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.RESOURCE_CONSTRAINTS,
    ),
    ConstraintDefinition(
        id="room-features",
        name="Room Features",
        description="The classroom offers every feature the session requires.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.RESOURCE_CONSTRAINTS,
        severity=ConflictSeverity.MEDIUM,
    ),
    ConstraintDefinition(
        id="teacher-weekly-hours",
        name="Teacher Weekly Hours",
        description="A teacher is not scheduled beyond their weekly maximum.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.WORKLOAD_BALANCE,
        severity=ConflictSeverity.MEDIUM,
    ),
    ConstraintDefinition(
        id="break-periods",
        name="Break Periods",
        description="No session overlaps a configured break slot.",
        constraint_type=ConstraintType.HARD,
        category=ConstraintCategory.TEMPORAL_CONSTRAINTS,
        severity=ConflictSeverity.MEDIUM,
    ),
    ConstraintDefinition(
        id="teacher-preferences",
        name="Teacher Preferences",
        description="Sessions fall inside a teacher's preferred time slots.",
        constraint_type=ConstraintType.SOFT,
        category=ConstraintCategory.TEACHER_CONSTRAINTS,
        severity=ConflictSeverity.LOW,
    ),
    ConstraintDefinition(
        id="teacher-consecutive-hours",
        name="Teacher Consecutive Hours",
        description="A teacher does not teach back-to-back beyond their limit.",
        constraint_type=ConstraintType.SOFT,
        category=ConstraintCategory.WORKLOAD_BALANCE,
        severity=ConflictSeverity.LOW,
    ),
    ConstraintDefinition(
        id="daily-balance",
        name="Daily Balance",
        description="Sessions are spread evenly across working days.",
        constraint_type=ConstraintType.SOFT,
        category=ConstraintCategory.WORKLOAD_BALANCE,
        severity=ConflictSeverity.LOW,
    ),
    ConstraintDefinition(
        id="student-gaps",
        name="Student Gaps",
        description="Idle time between a group's sessions on a day is small.",
        constraint_type=ConstraintType.SOFT,
        category=ConstraintCategory.CONVENIENCE_CONSTRAINTS,
        severity=ConflictSeverity.LOW,
    ),
    ConstraintDefinition(
        id="room-fit",
        name="Room Fit",
        description="Room capacity is close to the number of students.",
        constraint_type=ConstraintType.SOFT,
        category=ConstraintCategory.RESOURCE_CONSTRAINTS,
        severity=ConflictSeverity.LOW,
    ),
]


@dataclass
class ConstraintModel:
    """
    Typed set of constraints active for a generation run.

    Only data and validation live here; solvers and the detector consult
    ``is_enabled`` to decide what to enforce.
    """

    constraints: Dict[str, ConstraintDefinition] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "ConstraintModel":
        return cls({c.id: c for c in DEFAULT_CONSTRAINTS})

    @classmethod
    def with_disabled(cls, disabled: Iterable[str]) -> "ConstraintModel":
        """Build the default model with the given constraint ids switched off."""
        model = cls.default()
        for constraint_id in disabled:
            if constraint_id not in model.constraints:
                raise ValueError(f"Unknown constraint '{constraint_id}'")
            definition = model.constraints[constraint_id]
            if definition.mutability == "read-only":
                raise ValueError(f"Constraint '{constraint_id}' cannot be disabled")
            model.constraints[constraint_id] = replace(definition, enabled=False)
        return model

    def is_enabled(self, constraint_id: str) -> bool:
        definition = self.constraints.get(constraint_id)
        return bool(definition and definition.enabled)

    def get(self, constraint_id: str) -> Optional[ConstraintDefinition]:
        return self.constraints.get(constraint_id)

    def severity_of(self, constraint_id: str) -> ConflictSeverity:
        definition = self.constraints.get(constraint_id)
        return definition.severity if definition else ConflictSeverity.HIGH

    def hard_constraints(self) -> List[ConstraintDefinition]:
        return [c for c in self.constraints.values() if c.is_hard and c.enabled]

    def soft_constraints(self) -> List[ConstraintDefinition]:
        return [c for c in self.constraints.values() if not c.is_hard and c.enabled]
