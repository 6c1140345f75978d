# timetable_engine/analysis/conflict_resolver.py

"""
Post-solve conflict resolution.

Sessions that still double-book a teacher, room or student group are
revisited latest first. Each is moved to another room at the same time when
one is free, otherwise to any other consistent value of its domain. A move
is applied only when it removes every collision of that session.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..solvers.domain_builder import Occupancy, Placement, ProblemInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionMove:
    unit_id: str
    course_id: str
    before: Placement
    after: Placement

    @property
    def room_only(self) -> bool:
        return (self.before.day, self.before.start) == (self.after.day, self.after.start)

    def describe(self) -> str:
        b, a = self.before, self.after
        if self.room_only:
            return (
                f"Moved {self.course_id} on {b.day.value} from room "
                f"{b.classroom_id} to {a.classroom_id}"
            )
        return (
            f"Moved {self.course_id} from {b.day.value} {b.start // 60:02d}:"
            f"{b.start % 60:02d} to {a.day.value} {a.start // 60:02d}:{a.start % 60:02d}"
        )


@dataclass
class ResolutionReport:
    placements: List[Optional[Placement]]
    moves: List[SessionMove] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return len(self.moves)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moves": [m.describe() for m in self.moves],
            "unresolved": list(self.unresolved),
        }


class ConflictResolver:
    """Moves colliding sessions of a solved problem where possible."""

    def __init__(self, problem: ProblemInstance):
        self.problem = problem

    def resolve(self, placements: Sequence[Optional[Placement]]) -> ResolutionReport:
        problem = self.problem
        result = list(placements)
        occupancy = problem.new_occupancy()
        for index, placement in enumerate(result):
            if placement is not None:
                occupancy.add(problem.units[index], placement)

        colliding = [
            index
            for index, placement in enumerate(result)
            if placement is not None
            and not occupancy.accepts_existing(problem.units[index], placement)
        ]
        colliding.sort(
            key=lambda i: (result[i].day.index, result[i].start, i), reverse=True
        )

        report = ResolutionReport(placements=result)
        for index in colliding:
            unit = problem.units[index]
            current = result[index]
            if occupancy.accepts_existing(unit, current):
                continue  # freed by an earlier move

            occupancy.remove(unit, current)
            target = self._find_target(index, current, occupancy)
            if target is None:
                occupancy.add(unit, current)
                report.unresolved.append(unit.id)
                continue

            occupancy.add(unit, target)
            result[index] = target
            report.moves.append(SessionMove(unit.id, unit.course_id, current, target))

        if colliding:
            logger.info(
                f"Conflict resolution moved {len(report.moves)} of "
                f"{len(colliding)} colliding sessions"
            )
        return report

    def _find_target(
        self, index: int, current: Placement, occupancy: Occupancy
    ) -> Optional[Placement]:
        unit = self.problem.units[index]
        domain = self.problem.domains[index]
        for placement in domain:
            if (
                placement.day == current.day
                and placement.start == current.start
                and placement.teacher_id == current.teacher_id
                and placement.classroom_id != current.classroom_id
                and occupancy.accepts(unit, placement)
            ):
                return placement
        for placement in domain:
            if placement != current and occupancy.accepts(unit, placement):
                return placement
        return None
