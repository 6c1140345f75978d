# timetable_engine/core/solution.py

"""
Schedule representation: time slot assignments, the schedule that holds
them, and the conflicts reported against it.
"""

import hashlib
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .constraint_types import OVERLAP_CONFLICT_TYPES, ConflictSeverity, ConflictType
from .exceptions import TimetableEngineError
from .problem_model import Day, SessionType, to_minutes


def student_group_key(
    course_id: str, division_id: Optional[str] = None, cohort: Optional[str] = None
) -> str:
    """
    Key of the students attending a session.

    A division is its own group. Without one, every course of the same
    program, year and semester shares the cohort group; a course with neither
    is a group of its own.
    """
    if division_id is not None:
        return f"division:{division_id}"
    if cohort is not None:
        return f"program:{cohort}"
    return f"course:{course_id}"


@dataclass(frozen=True)
class TimeSlotAssignment:
    """One course session placed on a day, in a room, with a teacher."""

    day: Day
    start_time: str
    end_time: str
    course_id: str
    session_type: SessionType
    teacher_id: str
    classroom_id: str
    division_id: Optional[str] = None
    batch_id: Optional[str] = None
    student_count: int = 0
    cohort: Optional[str] = None

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def student_group(self) -> str:
        """Group whose members attend this session."""
        return student_group_key(self.course_id, self.division_id, self.cohort)

    @property
    def time_slot_key(self) -> str:
        return f"{self.day.value}_{self.start_time}_{self.end_time}"

    def sort_key(self) -> Tuple:
        return (
            self.day.index,
            self.start_time,
            self.end_time,
            self.course_id,
            self.session_type.value,
            self.teacher_id,
            self.classroom_id,
            self.division_id or "",
            self.batch_id or "",
            self.student_count,
            self.cohort or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.value,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "courseId": self.course_id,
            "sessionType": self.session_type.value,
            "teacherId": self.teacher_id,
            "classroomId": self.classroom_id,
            "divisionId": self.division_id,
            "batchId": self.batch_id,
            "studentCount": self.student_count,
            "cohort": self.cohort,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimeSlotAssignment":
        return cls(
            day=Day.from_value(data["day"]),
            start_time=data["startTime"],
            end_time=data["endTime"],
            course_id=str(data["courseId"]),
            session_type=SessionType.from_value(data.get("sessionType", "Theory")),
            teacher_id=str(data["teacherId"]),
            classroom_id=str(data["classroomId"]),
            division_id=data.get("divisionId"),
            batch_id=data.get("batchId"),
            student_count=int(data.get("studentCount", 0)),
            cohort=data.get("cohort"),
        )


@dataclass(frozen=True)
class Schedule:
    """
    Collection of assignments kept in a canonical order so that two
    schedules with the same content compare, hash and serialize identically.
    Double bookings are representable; the conflict detector reports them.
    """

    assignments: Tuple[TimeSlotAssignment, ...] = ()

    def __post_init__(self):
        ordered = tuple(sorted(self.assignments, key=TimeSlotAssignment.sort_key))
        object.__setattr__(self, "assignments", ordered)

    @classmethod
    def of(cls, assignments: Iterable[TimeSlotAssignment]) -> "Schedule":
        return cls(tuple(assignments))

    def __len__(self) -> int:
        return len(self.assignments)

    def __iter__(self) -> Iterator[TimeSlotAssignment]:
        return iter(self.assignments)

    def __getitem__(self, index: int) -> TimeSlotAssignment:
        return self.assignments[index]

    def fingerprint(self) -> str:
        """SHA-256 digest over the canonical assignment order."""
        digest = hashlib.sha256()
        for assignment in self.assignments:
            digest.update(repr(assignment.sort_key()).encode("utf-8"))
        return digest.hexdigest()

    def to_list(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self.assignments]

    @classmethod
    def from_list(cls, items: Iterable[Mapping[str, Any]]) -> "Schedule":
        return cls.of(
            item
            if isinstance(item, TimeSlotAssignment)
            else TimeSlotAssignment.from_dict(item)
            for item in items
        )


@dataclass(frozen=True)
class InvolvedEntities:
    teachers: Tuple[str, ...] = ()
    classrooms: Tuple[str, ...] = ()
    courses: Tuple[str, ...] = ()
    time_slot: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "teachers": list(self.teachers),
            "classrooms": list(self.classrooms),
            "courses": list(self.courses),
            "timeSlot": self.time_slot,
        }


def _unique(values: Iterable[Optional[str]]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        if value is not None:
            seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    severity: ConflictSeverity
    description: str
    involved_entities: InvolvedEntities = field(default_factory=InvolvedEntities)
    resolved: bool = False
    resolution_notes: Optional[str] = None

    @classmethod
    def between(
        cls,
        conflict_type: ConflictType,
        severity: ConflictSeverity,
        description: str,
        assignments: Iterable[TimeSlotAssignment],
        time_slot: Optional[str] = None,
    ) -> "Conflict":
        """Build a conflict whose entities are drawn from the given assignments."""
        items = list(assignments)
        return cls(
            type=conflict_type,
            severity=severity,
            description=description,
            involved_entities=InvolvedEntities(
                teachers=_unique(a.teacher_id for a in items),
                classrooms=_unique(a.classroom_id for a in items),
                courses=_unique(a.course_id for a in items),
                time_slot=time_slot,
            ),
        )

    @classmethod
    def from_error(
        cls,
        error: TimetableEngineError,
        severity: ConflictSeverity = ConflictSeverity.CRITICAL,
        courses: Iterable[str] = (),
    ) -> "Conflict":
        return cls(
            type=ConflictType(error.code),
            severity=severity,
            description=error.message,
            involved_entities=InvolvedEntities(courses=tuple(courses)),
        )

    def mark_resolved(self, notes: Optional[str] = None) -> "Conflict":
        return replace(self, resolved=True, resolution_notes=notes)

    @property
    def is_overlap(self) -> bool:
        return self.type in OVERLAP_CONFLICT_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "involvedEntities": self.involved_entities.to_dict(),
            "resolved": self.resolved,
            "resolutionNotes": self.resolution_notes,
        }
