# timetable_engine/analysis/statistics.py

"""Descriptive statistics of a generated schedule."""

from collections import Counter, defaultdict
from typing import Dict, List

from ..core.metrics import ScheduleStatistics, TeacherWorkload
from ..core.problem_model import DomainSnapshot
from ..core.settings import GenerationSettings
from ..core.solution import Schedule


def compute_statistics(
    schedule: Schedule, snapshot: DomainSnapshot, settings: GenerationSettings
) -> ScheduleStatistics:
    utilization_by_day: Dict[str, int] = {day.key: 0 for day in settings.working_days}
    hour_starts: Counter = Counter()
    teacher_minutes: Dict[str, int] = defaultdict(int)
    rooms_used = set()

    for a in schedule:
        utilization_by_day[a.day.key] = utilization_by_day.get(a.day.key, 0) + 1
        hour_starts[a.start_minutes // 60] += 1
        teacher_minutes[a.teacher_id] += a.duration_minutes
        rooms_used.add(a.classroom_id)

    peak_hours: List[str] = []
    if hour_starts:
        busiest = max(hour_starts.values())
        peak_hours = [
            f"{h:02d}:00" for h in sorted(hour_starts) if hour_starts[h] == busiest
        ]

    schedulable_rooms = [r for r in snapshot.classrooms if r.is_schedulable]
    room_rate = (
        len(rooms_used) / len(schedulable_rooms) * 100.0 if schedulable_rooms else 0.0
    )

    workload = []
    for teacher in snapshot.teachers:
        hours = teacher_minutes.get(teacher.id, 0) / 60.0
        max_hours = teacher.max_hours_per_week
        workload.append(
            TeacherWorkload(
                teacher_id=teacher.id,
                name=teacher.name,
                assigned_hours=hours,
                max_hours=max_hours,
                utilization_percentage=hours / max_hours * 100.0 if max_hours else 0.0,
            )
        )

    return ScheduleStatistics(
        total_classes=len(schedule),
        total_teachers=len({a.teacher_id for a in schedule}),
        total_rooms=len(rooms_used),
        utilization_by_day=utilization_by_day,
        peak_hours=peak_hours,
        room_utilization_rate=room_rate,
        teacher_workload_distribution=workload,
    )
