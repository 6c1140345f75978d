# timetable_engine/solvers/domain_builder.py

"""
Builds the search problem shared by every solver.

Each required meeting of a course for one student group becomes a
:class:`SessionUnit`; its domain is every ``(day, start, end, teacher, room)``
placement that satisfies the unary constraints (calendar window, breaks,
teacher eligibility and availability, room status, capacity, features).
Binary constraints (double bookings) and the weekly hours cap are checked
at search time through :class:`Occupancy`.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import (
    Dict,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
)

from ..core.constraint_types import ConstraintModel
from ..core.problem_model import (
    Classroom,
    Course,
    Day,
    DomainSnapshot,
    SessionRequirement,
    SessionType,
    from_minutes,
    intervals_overlap,
)
from ..core.settings import GenerationSettings
from ..core.solution import Schedule, TimeSlotAssignment, student_group_key

logger = logging.getLogger(__name__)

UNPLACED = -1


class Placement(NamedTuple):
    day: Day
    start: int
    end: int
    teacher_id: str
    classroom_id: str


@dataclass(frozen=True)
class SessionUnit:
    """One session of a course for one student group (a CSP variable)."""

    index: int
    id: str
    course_id: str
    session_type: SessionType
    duration: int
    student_count: int
    division_id: Optional[str] = None
    batch_id: Optional[str] = None
    required_features: Tuple[str, ...] = ()
    min_room_capacity: int = 0
    requires_lab: bool = False
    cohort: Optional[str] = None

    @property
    def group(self) -> str:
        return student_group_key(self.course_id, self.division_id, self.cohort)

    @property
    def required_capacity(self) -> int:
        return max(self.student_count, self.min_room_capacity)


def groups_clash(
    group_a: str, batch_a: Optional[str], group_b: str, batch_b: Optional[str]
) -> bool:
    """Two sessions share students unless they are different batches."""
    if group_a != group_b:
        return False
    if batch_a is None or batch_b is None:
        return True
    return batch_a == batch_b


def placements_clash(
    unit_a: SessionUnit, a: Placement, unit_b: SessionUnit, b: Placement
) -> bool:
    if a.day != b.day or not intervals_overlap(a.start, a.end, b.start, b.end):
        return False
    if a.teacher_id == b.teacher_id or a.classroom_id == b.classroom_id:
        return True
    return groups_clash(unit_a.group, unit_a.batch_id, unit_b.group, unit_b.batch_id)


class Occupancy:
    """Bookings per teacher, room and student group, indexed by day."""

    def __init__(self, problem: "ProblemInstance"):
        self.problem = problem
        self._teacher: Dict[Tuple[str, Day], List[Tuple[int, int, int]]] = (
            defaultdict(list)
        )
        self._room: Dict[Tuple[str, Day], List[Tuple[int, int, int]]] = defaultdict(
            list
        )
        self._group: Dict[
            Tuple[str, Day], List[Tuple[int, int, Optional[str], int]]
        ] = defaultdict(list)
        self.teacher_minutes: Dict[str, int] = defaultdict(int)

    def add(self, unit: SessionUnit, placement: Placement) -> None:
        day = placement.day
        self._teacher[(placement.teacher_id, day)].append(
            (placement.start, placement.end, unit.index)
        )
        self._room[(placement.classroom_id, day)].append(
            (placement.start, placement.end, unit.index)
        )
        self._group[(unit.group, day)].append(
            (placement.start, placement.end, unit.batch_id, unit.index)
        )
        self.teacher_minutes[placement.teacher_id] += placement.end - placement.start

    def remove(self, unit: SessionUnit, placement: Placement) -> None:
        day = placement.day
        self._teacher[(placement.teacher_id, day)].remove(
            (placement.start, placement.end, unit.index)
        )
        self._room[(placement.classroom_id, day)].remove(
            (placement.start, placement.end, unit.index)
        )
        self._group[(unit.group, day)].remove(
            (placement.start, placement.end, unit.batch_id, unit.index)
        )
        self.teacher_minutes[placement.teacher_id] -= placement.end - placement.start

    def is_free(self, unit: SessionUnit, placement: Placement) -> bool:
        """True when the placement double-books nothing already recorded."""
        day, start, end = placement.day, placement.start, placement.end
        for s, e, owner in self._teacher.get((placement.teacher_id, day), ()):
            if owner != unit.index and start < e and s < end:
                return False
        for s, e, owner in self._room.get((placement.classroom_id, day), ()):
            if owner != unit.index and start < e and s < end:
                return False
        for s, e, batch, owner in self._group.get((unit.group, day), ()):
            if owner != unit.index and start < e and s < end:
                if unit.batch_id is None or batch is None or batch == unit.batch_id:
                    return False
        return True

    def within_hours(self, unit: SessionUnit, placement: Placement) -> bool:
        if not self.problem.constraints.is_enabled("teacher-weekly-hours"):
            return True
        limit = self.problem.teacher_max_minutes.get(placement.teacher_id)
        if limit is None:
            return True
        used = self.teacher_minutes.get(placement.teacher_id, 0)
        return used + (placement.end - placement.start) <= limit

    def accepts(self, unit: SessionUnit, placement: Placement) -> bool:
        return self.is_free(unit, placement) and self.within_hours(unit, placement)

    def accepts_existing(self, unit: SessionUnit, placement: Placement) -> bool:
        """``accepts`` for a placement that is already recorded."""
        if not self.is_free(unit, placement):
            return False
        if not self.problem.constraints.is_enabled("teacher-weekly-hours"):
            return True
        limit = self.problem.teacher_max_minutes.get(placement.teacher_id)
        return limit is None or self.teacher_minutes[placement.teacher_id] <= limit

    def teacher_day_load(self, teacher_id: str, day: Day) -> int:
        return len(self._teacher.get((teacher_id, day), ()))

    def group_day_load(self, group: str, day: Day) -> int:
        return len(self._group.get((group, day), ()))


@dataclass
class ProblemInstance:
    """Session units, their domains and the policy they were built under."""

    snapshot: DomainSnapshot
    settings: GenerationSettings
    constraints: ConstraintModel
    units: List[SessionUnit] = field(default_factory=list)
    domains: List[List[Placement]] = field(default_factory=list)
    unplaceable: Dict[int, str] = field(default_factory=dict)
    teacher_max_minutes: Dict[str, Optional[int]] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.units)

    @property
    def placeable(self) -> List[int]:
        return [u.index for u in self.units if u.index not in self.unplaceable]

    def new_occupancy(self) -> Occupancy:
        return Occupancy(self)

    def consistent_values(
        self, index: int, occupancy: Occupancy
    ) -> Iterator[Tuple[int, Placement]]:
        unit = self.units[index]
        for value_index, placement in enumerate(self.domains[index]):
            if occupancy.accepts(unit, placement):
                yield value_index, placement

    def to_assignment(self, index: int, placement: Placement) -> TimeSlotAssignment:
        unit = self.units[index]
        return TimeSlotAssignment(
            day=placement.day,
            start_time=from_minutes(placement.start),
            end_time=from_minutes(placement.end),
            course_id=unit.course_id,
            session_type=unit.session_type,
            teacher_id=placement.teacher_id,
            classroom_id=placement.classroom_id,
            division_id=unit.division_id,
            batch_id=unit.batch_id,
            student_count=unit.student_count,
            cohort=unit.cohort,
        )

    def decode(self, placements: Sequence[Optional[Placement]]) -> Schedule:
        return Schedule.of(
            self.to_assignment(i, p) for i, p in enumerate(placements) if p is not None
        )

    def decode_genes(self, genes: Sequence[int]) -> Schedule:
        return self.decode(self.genes_to_placements(genes))

    def genes_to_placements(self, genes: Sequence[int]) -> List[Optional[Placement]]:
        return [
            self.domains[i][g] if g != UNPLACED else None for i, g in enumerate(genes)
        ]

    def placements_to_genes(
        self, placements: Sequence[Optional[Placement]]
    ) -> List[int]:
        genes = []
        for i, placement in enumerate(placements):
            if placement is None:
                genes.append(UNPLACED)
            else:
                genes.append(self.domains[i].index(placement))
        return genes


def slot_starts(settings: GenerationSettings) -> List[int]:
    """Start minutes of the slot grid for one day."""
    day_start, day_end = settings.day_window
    starts = []
    current = day_start
    while current + settings.slot_duration <= day_end:
        starts.append(current)
        current += settings.slot_duration
    return starts


def expand_units(
    course: Course, start_index: int, slot_duration: int
) -> List[SessionUnit]:
    """Create one unit per weekly meeting per student group of a course."""
    groups: List[Tuple[SessionRequirement, int, Optional[str], Optional[str]]] = []
    for requirement in course.sessions:
        if not course.divisions:
            groups.append(
                (requirement, course.enrolled_students, course.division_id, None)
            )
            continue
        for division in course.divisions:
            by_batch = requirement.session_type == SessionType.PRACTICAL
            if by_batch and division.batches:
                for batch in division.batches:
                    groups.append(
                        (requirement, batch.student_count, division.id, batch.id)
                    )
            else:
                groups.append((requirement, division.student_count, division.id, None))

    units: List[SessionUnit] = []
    for requirement, students, division_id, batch_id in groups:
        for k in range(requirement.sessions_per_week):
            units.append(
                SessionUnit(
                    index=start_index + len(units),
                    id=(
                        f"{course.id}:{requirement.session_type.value}:"
                        f"{division_id or '-'}:{batch_id or '-'}:{k + 1}"
                    ),
                    course_id=course.id,
                    session_type=requirement.session_type,
                    duration=requirement.duration_minutes or slot_duration,
                    student_count=students,
                    division_id=division_id,
                    batch_id=batch_id,
                    required_features=requirement.required_features,
                    min_room_capacity=requirement.min_room_capacity,
                    requires_lab=requirement.requires_lab,
                    cohort=course.cohort,
                )
            )
    return units


def _room_fits(
    unit: SessionUnit, room: Classroom, constraints: ConstraintModel
) -> bool:
    if not room.is_schedulable:
        return False
    if constraints.is_enabled("room-capacity"):
        if room.capacity < unit.required_capacity:
            return False
    if constraints.is_enabled("room-features"):
        if not room.has_features(unit.required_features):
            return False
        if unit.requires_lab and not room.is_lab:
            return False
    return True


def build_problem(
    snapshot: DomainSnapshot, settings: GenerationSettings
) -> ProblemInstance:
    """Expand courses into session units and compute every unit's domain."""
    constraints = settings.constraint_model()
    problem = ProblemInstance(
        snapshot=snapshot,
        settings=settings,
        constraints=constraints,
        teacher_max_minutes={t.id: t.max_minutes_per_week for t in snapshot.teachers},
    )

    for course in snapshot.courses:
        problem.units.extend(
            expand_units(course, len(problem.units), settings.slot_duration)
        )

    starts = slot_starts(settings)
    _, day_end = settings.day_window
    breaks = settings.break_windows
    check_availability = constraints.is_enabled("teacher-availability")
    rooms_by_capacity = sorted(snapshot.classrooms, key=lambda r: (r.capacity, r.id))

    for unit in problem.units:
        course = snapshot.courses_by_id[unit.course_id]
        teachers = [
            snapshot.teachers_by_id[t]
            for t in course.eligible_teacher_ids(unit.session_type)
            if t in snapshot.teachers_by_id
        ]
        rooms = [r for r in rooms_by_capacity if _room_fits(unit, r, constraints)]

        domain: List[Placement] = []
        for day in settings.working_days:
            for start in starts:
                end = start + unit.duration
                if end > day_end:
                    continue
                if any(intervals_overlap(start, end, bs, be) for bs, be in breaks):
                    continue
                for teacher in teachers:
                    if check_availability and not teacher.is_available(
                        day, start, end
                    ):
                        continue
                    domain.extend(
                        Placement(day, start, end, teacher.id, room.id)
                        for room in rooms
                        if room.is_available(day, start, end)
                    )

        problem.domains.append(domain)
        if not domain:
            problem.unplaceable[unit.index] = _explain_empty_domain(
                unit, teachers, rooms, settings
            )

    logger.info(
        f"Built problem with {problem.size} session units, "
        f"{len(problem.unplaceable)} unplaceable, "
        f"{sum(len(d) for d in problem.domains)} domain values"
    )
    return problem


def _explain_empty_domain(
    unit: SessionUnit,
    teachers: list,
    rooms: List[Classroom],
    settings: GenerationSettings,
) -> str:
    label = f"{unit.session_type.value} session of course {unit.course_id}"
    if unit.division_id:
        label += f" (division {unit.division_id}"
        label += f", batch {unit.batch_id})" if unit.batch_id else ")"
    if not teachers:
        return f"No eligible teacher for {label}"
    if not rooms:
        needs = [f"capacity {unit.required_capacity}"]
        if unit.requires_lab:
            needs.append("lab facilities")
        if unit.required_features:
            needs.append("features " + ", ".join(unit.required_features))
        return f"No classroom with {' and '.join(needs)} for {label}"
    day_start, day_end = settings.day_window
    if unit.duration > day_end - day_start:
        return f"Duration {unit.duration} min of {label} exceeds the working day"
    return f"No time slot where teacher and room are both available for {label}"
