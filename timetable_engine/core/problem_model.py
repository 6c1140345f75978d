# timetable_engine/core/problem_model.py

"""
Domain snapshot model: teachers, classrooms and courses supplied for one
generation run. Every entity is a frozen dataclass; the engine reads these
but never mutates them, so a snapshot may be shared between concurrent runs.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
MINUTES_PER_DAY = 24 * 60


class Day(Enum):
    """Schedulable weekdays. Sunday is outside the domain."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"

    @property
    def index(self) -> int:
        return _DAY_ORDER[self]

    @property
    def key(self) -> str:
        """Lowercase key used in availability maps and statistics."""
        return self.value.lower()

    @classmethod
    def from_value(cls, value: Any) -> "Day":
        if isinstance(value, Day):
            return value
        text = str(value).strip().lower()
        for day in cls:
            if day.key == text or day.key[:3] == text:
                return day
        raise ValueError(f"Unknown or unschedulable day '{value}'")


_DAY_ORDER = {day: i for i, day in enumerate(Day)}
DEFAULT_WORKING_DAYS = (
    Day.MONDAY,
    Day.TUESDAY,
    Day.WEDNESDAY,
    Day.THURSDAY,
    Day.FRIDAY,
)


class SessionType(Enum):
    THEORY = "Theory"
    PRACTICAL = "Practical"
    TUTORIAL = "Tutorial"
    SEMINAR = "Seminar"
    WORKSHOP = "Workshop"

    @classmethod
    def from_value(cls, value: Any) -> "SessionType":
        if isinstance(value, SessionType):
            return value
        text = str(value).strip().lower()
        for session_type in cls:
            if session_type.value.lower() == text:
                return session_type
        raise ValueError(f"Unknown session type '{value}'")


# --- Time helpers ---


def is_valid_time(value: Any) -> bool:
    return isinstance(value, str) and bool(TIME_PATTERN.match(value))


def to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes after midnight."""
    match = TIME_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def from_minutes(minutes: int) -> str:
    """Convert minutes after midnight to an ``HH:MM`` string."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minute offset {minutes} outside a day")
    if minutes == MINUTES_PER_DAY:
        return "24:00"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return start_a < end_b and start_b < end_a


def parse_time_range(value: str) -> Tuple[int, int]:
    """Parse ``"HH:MM-HH:MM"`` into a minute interval."""
    try:
        start_text, end_text = value.split("-")
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time range '{value}', expected HH:MM-HH:MM")
    start, end = to_minutes(start_text.strip()), to_minutes(end_text.strip())
    if start >= end:
        raise ValueError(f"Time range '{value}' ends before it starts")
    return start, end


@dataclass(frozen=True)
class TimeWindow:
    """A minute interval within one day."""

    start: int
    end: int

    def contains(self, start: int, end: int) -> bool:
        return self.start <= start and end <= self.end

    @classmethod
    def from_strings(cls, start: str, end: str) -> "TimeWindow":
        return cls(to_minutes(start), to_minutes(end))


WHOLE_DAY = TimeWindow(0, MINUTES_PER_DAY)
DEFAULT_ROOM_WINDOW = TimeWindow(8 * 60, 18 * 60)
DEFAULT_MAX_CONSECUTIVE_HOURS = 3.0


def parse_availability(
    raw: Any, default_window: Optional[TimeWindow] = None
) -> Dict[Day, Tuple[TimeWindow, ...]]:
    """
    Parse availability into per-day windows.

    Accepts ``{"monday": {"available": bool, "startTime", "endTime"}}`` or a
    list of ``{"day", "startTime", "endTime"}`` entries. Days not mentioned
    are absent from the result and callers treat them as available.
    """
    windows: Dict[Day, List[TimeWindow]] = {}
    if not raw:
        return {}

    if isinstance(raw, Mapping):
        for day_name, entry in raw.items():
            day = Day.from_value(day_name)
            if isinstance(entry, Mapping):
                if not entry.get("available", True):
                    windows[day] = []
                    continue
                start, end = entry.get("startTime"), entry.get("endTime")
                if start and end:
                    windows[day] = [TimeWindow.from_strings(start, end)]
                else:
                    windows[day] = [default_window or WHOLE_DAY]
            else:
                windows[day] = [default_window or WHOLE_DAY] if entry else []
    else:
        for entry in raw:
            day = Day.from_value(entry["day"])
            window = TimeWindow.from_strings(entry["startTime"], entry["endTime"])
            windows.setdefault(day, []).append(window)

    return {day: tuple(items) for day, items in windows.items()}


def _entity_id(data: Mapping[str, Any]) -> str:
    value = data.get("id", data.get("_id"))
    return str(value) if value is not None else ""


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        return _entity_id(value) or None
    return str(value) if value is not None else None


# --- Resources ---


@dataclass(frozen=True)
class Teacher:
    id: str
    name: str
    availability: Mapping[Day, Tuple[TimeWindow, ...]] = field(default_factory=dict)
    max_hours_per_week: Optional[float] = None
    preferred_time_slots: Mapping[Day, Tuple[TimeWindow, ...]] = field(
        default_factory=dict
    )
    preferred_rooms: Tuple[str, ...] = ()
    max_consecutive_hours: float = DEFAULT_MAX_CONSECUTIVE_HOURS

    def is_available(self, day: Day, start: int, end: int) -> bool:
        windows = self.availability.get(day)
        if windows is None:
            return True
        return any(w.contains(start, end) for w in windows)

    def prefers(self, day: Day, start: int, end: int) -> bool:
        return any(w.contains(start, end) for w in self.preferred_time_slots.get(day, ()))

    @property
    def has_preferences(self) -> bool:
        return bool(self.preferred_time_slots)

    @property
    def max_minutes_per_week(self) -> Optional[int]:
        if self.max_hours_per_week is None:
            return None
        return int(round(self.max_hours_per_week * 60))

    @property
    def max_consecutive_minutes(self) -> int:
        return int(round(self.max_consecutive_hours * 60))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Teacher":
        preferences = data.get("preferences") or {}
        max_hours = data.get("maxHoursPerWeek", data.get("max_hours_per_week"))
        consecutive = data.get(
            "maxConsecutiveHours", preferences.get("maxConsecutiveHours")
        )
        return cls(
            id=_entity_id(data),
            name=str(data.get("name", "")),
            availability=parse_availability(data.get("availability")),
            max_hours_per_week=float(max_hours) if max_hours is not None else None,
            preferred_time_slots=parse_availability(
                preferences.get("preferredTimeSlots")
            ),
            preferred_rooms=tuple(
                str(r) for r in preferences.get("preferredRooms", ())
            ),
            max_consecutive_hours=(
                float(consecutive) if consecutive else DEFAULT_MAX_CONSECUTIVE_HOURS
            ),
        )


@dataclass(frozen=True)
class Classroom:
    id: str
    name: str
    capacity: int
    features: Tuple[str, ...] = ()
    status: str = "available"
    room_type: str = ""
    availability: Mapping[Day, Tuple[TimeWindow, ...]] = field(default_factory=dict)

    @cached_property
    def feature_set(self) -> FrozenSet[str]:
        return frozenset(f.strip().lower() for f in self.features)

    @property
    def is_schedulable(self) -> bool:
        return self.status.lower() == "available"

    @property
    def is_lab(self) -> bool:
        if "lab" in self.room_type.lower():
            return True
        return any("lab" in f or f == "computers" for f in self.feature_set)

    def has_features(self, required: Iterable[str]) -> bool:
        return all(r.strip().lower() in self.feature_set for r in required)

    def missing_features(self, required: Iterable[str]) -> List[str]:
        return [r for r in required if r.strip().lower() not in self.feature_set]

    def is_available(self, day: Day, start: int, end: int) -> bool:
        windows = self.availability.get(day)
        if windows is None:
            return DEFAULT_ROOM_WINDOW.contains(start, end)
        return any(w.contains(start, end) for w in windows)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Classroom":
        return cls(
            id=_entity_id(data),
            name=str(data.get("name", data.get("roomNumber", ""))),
            capacity=int(data.get("capacity", 0)),
            features=tuple(str(f) for f in data.get("features", ())),
            status=str(data.get("status", "available")),
            room_type=str(data.get("type", data.get("roomType", ""))),
            availability=parse_availability(
                data.get("availability"), default_window=DEFAULT_ROOM_WINDOW
            ),
        )


@dataclass(frozen=True)
class SessionRequirement:
    """How often and in what kind of room a course meets for one session type."""

    session_type: SessionType
    sessions_per_week: int
    duration_minutes: Optional[int] = None  # None means one slot
    required_features: Tuple[str, ...] = ()
    min_room_capacity: int = 0
    requires_lab: bool = False

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], session_type: Any = None
    ) -> "SessionRequirement":
        duration = data.get("duration", data.get("durationMinutes"))
        kind = SessionType.from_value(session_type or data.get("sessionType", "Theory"))
        return cls(
            session_type=kind,
            sessions_per_week=int(data.get("sessionsPerWeek", 0)),
            duration_minutes=int(duration) if duration is not None else None,
            required_features=tuple(str(f) for f in data.get("requiredFeatures", ())),
            min_room_capacity=int(data.get("minRoomCapacity", 0)),
            requires_lab=bool(data.get("requiresLab", False)),
        )


@dataclass(frozen=True)
class TeacherAssignment:
    teacher_id: str
    session_types: FrozenSet[SessionType] = frozenset()  # empty means any type

    def covers(self, session_type: SessionType) -> bool:
        return not self.session_types or session_type in self.session_types

    @classmethod
    def from_value(cls, value: Any) -> "TeacherAssignment":
        if isinstance(value, Mapping):
            teacher = value.get("teacherId", value.get("teacher", value.get("id")))
            if isinstance(teacher, Mapping):
                teacher = _entity_id(teacher)
            return cls(
                teacher_id=str(teacher),
                session_types=frozenset(
                    SessionType.from_value(t) for t in value.get("sessionTypes", ())
                ),
            )
        return cls(teacher_id=str(value))


@dataclass(frozen=True)
class Batch:
    id: str
    student_count: int
    name: str = ""


@dataclass(frozen=True)
class Division:
    id: str
    student_count: int
    name: str = ""
    batches: Tuple[Batch, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Division":
        return cls(
            id=_entity_id(data),
            student_count=int(data.get("studentCount", 0)),
            name=str(data.get("name", "")),
            batches=tuple(
                Batch(
                    id=_entity_id(b),
                    student_count=int(b.get("studentCount", 0)),
                    name=str(b.get("name", "")),
                )
                for b in data.get("batches", ())
            ),
        )


@dataclass(frozen=True)
class Course:
    id: str
    name: str
    code: str
    sessions: Tuple[SessionRequirement, ...] = ()
    assigned_teachers: Tuple[TeacherAssignment, ...] = ()
    enrolled_students: int = 0
    division_id: Optional[str] = None
    divisions: Tuple[Division, ...] = ()
    program: Optional[str] = None
    year: Optional[str] = None
    semester: Optional[str] = None

    def eligible_teacher_ids(self, session_type: SessionType) -> List[str]:
        return [a.teacher_id for a in self.assigned_teachers if a.covers(session_type)]

    @property
    def weekly_sessions(self) -> int:
        return sum(s.sessions_per_week for s in self.sessions)

    @property
    def cohort(self) -> Optional[str]:
        """Program, year and semester of the students, when the program is known."""
        if self.program is None:
            return None
        return f"{self.program}_{self.year or ''}_{self.semester or ''}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Course":
        raw_sessions = data.get("sessions")
        sessions: List[SessionRequirement] = []
        if isinstance(raw_sessions, Mapping):
            for type_name, entry in raw_sessions.items():
                if entry and int(entry.get("sessionsPerWeek", 0)) > 0:
                    sessions.append(SessionRequirement.from_dict(entry, type_name))
        elif raw_sessions:
            sessions = [SessionRequirement.from_dict(s) for s in raw_sessions]
        elif data.get("requiredSessions"):
            sessions = [
                SessionRequirement.from_dict(
                    {
                        "sessionsPerWeek": data["requiredSessions"],
                        "duration": data.get("duration"),
                        "requiredFeatures": data.get("requiredFeatures", ()),
                        "requiresLab": data.get("requiresLab", False),
                    },
                    data.get("sessionType", "Theory"),
                )
            ]

        division_id = data.get("divisionId")
        return cls(
            id=_entity_id(data),
            name=str(data.get("name", "")),
            code=str(data.get("code", data.get("courseCode", ""))),
            sessions=tuple(sessions),
            assigned_teachers=tuple(
                TeacherAssignment.from_value(t)
                for t in data.get("assignedTeachers", ())
            ),
            enrolled_students=int(data.get("enrolledStudents", 0)),
            division_id=str(division_id) if division_id is not None else None,
            divisions=tuple(Division.from_dict(d) for d in data.get("divisions", ())),
            program=_optional_str(data.get("program", data.get("programId"))),
            year=_optional_str(data.get("year")),
            semester=_optional_str(data.get("semester")),
        )


@dataclass(frozen=True)
class DomainSnapshot:
    """Read-only resource pool for one generation run."""

    teachers: Tuple[Teacher, ...] = ()
    classrooms: Tuple[Classroom, ...] = ()
    courses: Tuple[Course, ...] = ()

    @cached_property
    def teachers_by_id(self) -> Dict[str, Teacher]:
        return {t.id: t for t in self.teachers}

    @cached_property
    def classrooms_by_id(self) -> Dict[str, Classroom]:
        return {c.id: c for c in self.classrooms}

    @cached_property
    def courses_by_id(self) -> Dict[str, Course]:
        return {c.id: c for c in self.courses}

    @property
    def is_empty(self) -> bool:
        return not any(c.weekly_sessions for c in self.courses)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DomainSnapshot":
        return cls(
            teachers=tuple(Teacher.from_dict(t) for t in data.get("teachers", ())),
            classrooms=tuple(
                Classroom.from_dict(c) for c in data.get("classrooms", ())
            ),
            courses=tuple(Course.from_dict(c) for c in data.get("courses", ())),
        )
