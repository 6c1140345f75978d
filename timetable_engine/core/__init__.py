# timetable_engine/core/__init__.py

"""Core data model of the timetable engine."""

from .constraint_types import (
    ConflictSeverity,
    ConflictType,
    ConstraintCategory,
    ConstraintDefinition,
    ConstraintModel,
    ConstraintType,
)
from .exceptions import (
    ConcurrentGenerationError,
    DataValidationError,
    GenerationError,
    InvalidSettingsError,
    SystemFaultError,
    TimetableEngineError,
)
from .metrics import (
    GenerationMetrics,
    GenerationResult,
    GenerationStatus,
    QualityScore,
    Recommendation,
    ScheduleStatistics,
    TeacherWorkload,
)
from .problem_model import (
    Classroom,
    Course,
    Day,
    DomainSnapshot,
    SessionRequirement,
    SessionType,
    Teacher,
)
from .settings import GenerationSettings
from .solution import Conflict, InvolvedEntities, Schedule, TimeSlotAssignment

__all__ = [
    "ConflictSeverity",
    "ConflictType",
    "ConstraintCategory",
    "ConstraintDefinition",
    "ConstraintModel",
    "ConstraintType",
    "ConcurrentGenerationError",
    "DataValidationError",
    "GenerationError",
    "InvalidSettingsError",
    "SystemFaultError",
    "TimetableEngineError",
    "GenerationMetrics",
    "GenerationResult",
    "GenerationStatus",
    "QualityScore",
    "Recommendation",
    "ScheduleStatistics",
    "TeacherWorkload",
    "Classroom",
    "Course",
    "Day",
    "DomainSnapshot",
    "SessionRequirement",
    "SessionType",
    "Teacher",
    "GenerationSettings",
    "Conflict",
    "InvolvedEntities",
    "Schedule",
    "TimeSlotAssignment",
]
