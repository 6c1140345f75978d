# timetable_engine/utils/validation.py

"""
Input validation for generation runs.

Structural problems in the snapshot or settings are data errors: they are
collected in full by the validators and raised together as a single
:class:`DataValidationError` so a caller sees every issue at once.
"""

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..core.exceptions import DataValidationError, InvalidSettingsError
from ..core.problem_model import DomainSnapshot
from ..core.settings import GenerationSettings


class IssueSeverity(Enum):
    ERROR = "error"  # blocks generation
    WARNING = "warning"  # generation proceeds


@dataclass
class ValidationIssue:
    """Single problem found in the input"""

    severity: IssueSeverity
    entity: str
    entity_id: str
    message: str

    def __str__(self) -> str:
        label = f"{self.entity} '{self.entity_id}'" if self.entity_id else self.entity
        return f"{label}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "entity": self.entity,
            "entityId": self.entity_id,
            "message": self.message,
        }


@dataclass
class ValidationResult:
    """Outcome of validating one input"""

    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, entity: str, entity_id: str, message: str) -> None:
        self.issues.append(
            ValidationIssue(IssueSeverity.ERROR, entity, entity_id, message)
        )

    def warn(self, entity: str, entity_id: str, message: str) -> None:
        self.issues.append(
            ValidationIssue(IssueSeverity.WARNING, entity, entity_id, message)
        )

    def raise_for_errors(self) -> None:
        if self.errors:
            messages = [str(i) for i in self.errors]
            raise DataValidationError(
                f"Snapshot failed validation with {len(messages)} issue(s)",
                details=messages,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": [i.to_dict() for i in self.issues],
        }


class BaseValidator(ABC):
    """Abstract base class for input validators"""

    @abstractmethod
    def validate(self, snapshot: DomainSnapshot) -> ValidationResult:
        pass


class SnapshotValidator(BaseValidator):
    """Checks referential integrity and value ranges of a snapshot."""

    def validate(self, snapshot: DomainSnapshot) -> ValidationResult:
        result = ValidationResult()
        self._check_ids(snapshot, result)
        self._check_teachers(snapshot, result)
        self._check_classrooms(snapshot, result)
        self._check_courses(snapshot, result)

        if snapshot.courses and not snapshot.is_empty:
            if not snapshot.teachers:
                result.error("Snapshot", "", "courses require sessions but no teachers exist")
            if not any(r.is_schedulable for r in snapshot.classrooms):
                result.error(
                    "Snapshot", "", "courses require sessions but no classroom is available"
                )
        return result

    @staticmethod
    def _check_ids(snapshot: DomainSnapshot, result: ValidationResult) -> None:
        for entity, items in (
            ("Teacher", snapshot.teachers),
            ("Classroom", snapshot.classrooms),
            ("Course", snapshot.courses),
        ):
            counts = Counter(item.id for item in items)
            if counts.get(""):
                result.error(entity, "", f"{counts['']} record(s) without an id")
            for entity_id, count in counts.items():
                if entity_id and count > 1:
                    result.error(entity, entity_id, f"id appears {count} times")

    @staticmethod
    def _check_teachers(snapshot: DomainSnapshot, result: ValidationResult) -> None:
        for teacher in snapshot.teachers:
            if teacher.max_hours_per_week is not None and teacher.max_hours_per_week < 0:
                result.error("Teacher", teacher.id, "maxHoursPerWeek is negative")

    @staticmethod
    def _check_classrooms(snapshot: DomainSnapshot, result: ValidationResult) -> None:
        for room in snapshot.classrooms:
            if room.capacity <= 0:
                result.error("Classroom", room.id, "capacity must be positive")

    @staticmethod
    def _check_courses(snapshot: DomainSnapshot, result: ValidationResult) -> None:
        teacher_ids = set(snapshot.teachers_by_id)
        for course in snapshot.courses:
            if not course.sessions:
                result.warn("Course", course.id, "no required sessions")
            for requirement in course.sessions:
                if requirement.sessions_per_week < 0:
                    result.error("Course", course.id, "sessionsPerWeek is negative")
                if requirement.duration_minutes is not None and requirement.duration_minutes <= 0:
                    result.error("Course", course.id, "session duration must be positive")
            if course.weekly_sessions and not course.assigned_teachers:
                result.error("Course", course.id, "no assigned teachers")
            for assignment in course.assigned_teachers:
                if assignment.teacher_id not in teacher_ids:
                    result.error(
                        "Course",
                        course.id,
                        f"assigned teacher '{assignment.teacher_id}' does not exist",
                    )
            if course.enrolled_students < 0:
                result.error("Course", course.id, "enrolledStudents is negative")
            for division in course.divisions:
                if division.student_count < 0:
                    result.error("Division", division.id, "studentCount is negative")


def load_snapshot(data: Union[DomainSnapshot, Mapping[str, Any]]) -> DomainSnapshot:
    """Parse a snapshot mapping; parse failures become data errors."""
    if isinstance(data, DomainSnapshot):
        return data
    if not isinstance(data, Mapping):
        raise DataValidationError(
            "Snapshot must be a mapping of teachers, classrooms and courses",
            details=[f"got {type(data).__name__}"],
        )
    try:
        return DomainSnapshot.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DataValidationError(
            "Snapshot could not be parsed", details=[str(e)], cause=e
        ) from e


def load_settings(
    data: Optional[Union[GenerationSettings, Mapping[str, Any]]],
) -> GenerationSettings:
    """Validate settings; pydantic failures become data errors."""
    if isinstance(data, GenerationSettings):
        return data
    try:
        return GenerationSettings.model_validate(dict(data or {}))
    except ValidationError as e:
        issues = [
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidSettingsError(details=issues, cause=e) from e


def validate_snapshot(snapshot: DomainSnapshot) -> ValidationResult:
    """Validate a snapshot, raising :class:`DataValidationError` on errors."""
    result = SnapshotValidator().validate(snapshot)
    result.raise_for_errors()
    return result
