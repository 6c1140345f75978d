# timetable_engine/analysis/conflict_detector.py

"""
Conflict detection for candidate and final schedules.

Overlaps are found per resource (teacher, classroom, student group) and per
day with a sort-then-sweep pass: assignments are sorted by start time and
each one is compared only against the intervals still open when it starts.
Intervals are half-open, so a session ending at 10:00 does not clash with
one starting at 10:00.

With a snapshot, constraint violations that need reference data (capacity,
availability, features, weekly hours, breaks) are reported as well.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..core.constraint_types import ConflictSeverity, ConflictType, ConstraintModel
from ..core.problem_model import Day, DomainSnapshot, from_minutes, intervals_overlap
from ..core.settings import GenerationSettings
from ..core.solution import (
    Conflict,
    Schedule,
    TimeSlotAssignment,
    student_group_key,
)

logger = logging.getLogger(__name__)

ScheduleLike = Union[Schedule, Iterable[TimeSlotAssignment]]
Interval = Tuple[int, int, TimeSlotAssignment]


def sweep_overlaps(
    intervals: List[Interval],
    clash: Optional[Callable[[TimeSlotAssignment, TimeSlotAssignment], bool]] = None,
) -> List[Tuple[TimeSlotAssignment, TimeSlotAssignment]]:
    """
    Return every overlapping pair among intervals of one resource and day.

    Runs in O(n log n + k) for n intervals and k reported pairs.
    """
    ordered = sorted(intervals, key=lambda item: (item[0], item[1], item[2].sort_key()))
    active: List[Tuple[int, TimeSlotAssignment]] = []
    pairs = []
    for start, end, assignment in ordered:
        active = [(e, other) for e, other in active if e > start]
        for _, other in active:
            if clash is None or clash(other, assignment):
                pairs.append((other, assignment))
        active.append((end, assignment))
    return pairs


def _batches_clash(a: TimeSlotAssignment, b: TimeSlotAssignment) -> bool:
    return a.batch_id is None or b.batch_id is None or a.batch_id == b.batch_id


def _overlap_slot(a: TimeSlotAssignment, b: TimeSlotAssignment) -> str:
    start = max(a.start_minutes, b.start_minutes)
    end = min(a.end_minutes, b.end_minutes)
    return f"{a.day.value}_{from_minutes(start)}_{from_minutes(end)}"


class ConflictDetector:
    """Pure, deterministic conflict detection over a schedule."""

    def __init__(
        self,
        snapshot: Optional[DomainSnapshot] = None,
        settings: Optional[GenerationSettings] = None,
    ):
        self.snapshot = snapshot
        self.settings = settings
        self.constraints = (
            settings.constraint_model() if settings else ConstraintModel.default()
        )

    def detect(self, schedule: ScheduleLike) -> List[Conflict]:
        if not isinstance(schedule, Schedule):
            schedule = Schedule.of(schedule)

        conflicts: List[Conflict] = []
        axes = (
            (ConflictType.TEACHER_CONFLICT, "Teacher", lambda a: a.teacher_id, None),
            (ConflictType.ROOM_CONFLICT, "Classroom", lambda a: a.classroom_id, None),
            (
                ConflictType.STUDENT_CONFLICT,
                "Student group",
                self.student_group,
                _batches_clash,
            ),
        )
        for conflict_type, label, key, clash in axes:
            conflicts.extend(self._detect_axis(schedule, conflict_type, label, key, clash))

        if self.snapshot is not None:
            conflicts.extend(self._detect_violations(schedule))
        return conflicts

    def count(self, schedule: ScheduleLike) -> int:
        return len(self.detect(schedule))

    def student_group(self, assignment: TimeSlotAssignment) -> str:
        """Group key of an assignment, taking the cohort from the snapshot if unset."""
        if assignment.cohort is None and self.snapshot is not None:
            course = self.snapshot.courses_by_id.get(assignment.course_id)
            if course is not None and course.cohort is not None:
                return student_group_key(
                    assignment.course_id, assignment.division_id, course.cohort
                )
        return assignment.student_group

    def _detect_axis(
        self,
        schedule: Schedule,
        conflict_type: ConflictType,
        label: str,
        key: Callable[[TimeSlotAssignment], str],
        clash,
    ) -> List[Conflict]:
        groups: Dict[Tuple[str, Day], List[Interval]] = defaultdict(list)
        for assignment in schedule:
            groups[(key(assignment), assignment.day)].append(
                (assignment.start_minutes, assignment.end_minutes, assignment)
            )

        conflicts = []
        for resource_id, day in sorted(groups, key=lambda k: (k[0], k[1].index)):
            for first, second in sweep_overlaps(groups[(resource_id, day)], clash):
                conflicts.append(
                    Conflict.between(
                        conflict_type,
                        ConflictSeverity.HIGH,
                        f"{label} {resource_id} is double-booked on {day.value}: "
                        f"{first.course_id} {first.start_time}-{first.end_time} "
                        f"overlaps {second.course_id} "
                        f"{second.start_time}-{second.end_time}",
                        (first, second),
                        time_slot=_overlap_slot(first, second),
                    )
                )
        return conflicts

    def _violation(
        self, constraint_id: str, description: str, assignments
    ) -> Conflict:
        items = list(assignments)
        return Conflict.between(
            ConflictType.CONSTRAINT_VIOLATION,
            self.constraints.severity_of(constraint_id),
            description,
            items,
            time_slot=items[0].time_slot_key if len(items) == 1 else None,
        )

    def _detect_violations(self, schedule: Schedule) -> List[Conflict]:
        snapshot = self.snapshot
        enabled = self.constraints.is_enabled
        conflicts: List[Conflict] = []
        teacher_minutes: Dict[str, int] = defaultdict(int)
        breaks = self.settings.break_windows if self.settings else []

        for a in schedule:
            teacher = snapshot.teachers_by_id.get(a.teacher_id)
            room = snapshot.classrooms_by_id.get(a.classroom_id)
            teacher_minutes[a.teacher_id] += a.duration_minutes
            start, end = a.start_minutes, a.end_minutes

            if room is not None and enabled("room-capacity"):
                if room.capacity < a.student_count:
                    conflicts.append(
                        self._violation(
                            "room-capacity",
                            f"Classroom {room.id} seats {room.capacity} but "
                            f"{a.course_id} has {a.student_count} students",
                            [a],
                        )
                    )

            if teacher is not None and enabled("teacher-availability"):
                if not teacher.is_available(a.day, start, end):
                    conflicts.append(
                        self._violation(
                            "teacher-availability",
                            f"Teacher {teacher.id} is unavailable on {a.day.value} "
                            f"{a.start_time}-{a.end_time}",
                            [a],
                        )
                    )

            if room is not None and enabled("room-features"):
                missing = self._missing_features(a, room)
                if missing:
                    conflicts.append(
                        self._violation(
                            "room-features",
                            f"Classroom {room.id} lacks {', '.join(missing)} "
                            f"required by {a.course_id}",
                            [a],
                        )
                    )

            if any(intervals_overlap(start, end, bs, be) for bs, be in breaks):
                conflicts.append(
                    self._violation(
                        "break-periods",
                        f"{a.course_id} on {a.day.value} {a.start_time}-{a.end_time} "
                        f"overlaps a break",
                        [a],
                    )
                )

        if enabled("teacher-weekly-hours"):
            for teacher_id in sorted(teacher_minutes):
                teacher = snapshot.teachers_by_id.get(teacher_id)
                limit = teacher.max_minutes_per_week if teacher else None
                if limit is not None and teacher_minutes[teacher_id] > limit:
                    conflicts.append(
                        self._violation(
                            "teacher-weekly-hours",
                            f"Teacher {teacher_id} is scheduled for "
                            f"{teacher_minutes[teacher_id] / 60:.1f}h, above the "
                            f"{teacher.max_hours_per_week:g}h weekly maximum",
                            [a for a in schedule if a.teacher_id == teacher_id],
                        )
                    )
        return conflicts

    def _missing_features(self, assignment: TimeSlotAssignment, room) -> List[str]:
        course = self.snapshot.courses_by_id.get(assignment.course_id)
        if course is None:
            return []
        missing: List[str] = []
        for requirement in course.sessions:
            if requirement.session_type != assignment.session_type:
                continue
            missing.extend(room.missing_features(requirement.required_features))
            if requirement.requires_lab and not room.is_lab:
                missing.append("lab facilities")
        return sorted(set(missing))


def detect_conflicts(
    schedule: ScheduleLike,
    snapshot: Optional[DomainSnapshot] = None,
    settings: Optional[GenerationSettings] = None,
) -> List[Conflict]:
    """Detect conflicts in a schedule. Idempotent and side-effect free."""
    return ConflictDetector(snapshot, settings).detect(schedule)
