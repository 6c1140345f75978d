# timetable_engine/tests/unit/test_conflict_detector.py

"""
Tests for overlap detection and constraint violation reporting.
"""

import pytest

from timetable_engine.analysis.conflict_detector import (
    ConflictDetector,
    detect_conflicts,
    sweep_overlaps,
)
from timetable_engine.core.constraint_types import ConflictSeverity, ConflictType
from timetable_engine.core.problem_model import DomainSnapshot
from timetable_engine.core.settings import GenerationSettings
from timetable_engine.core.solution import Schedule


class TestTeacherOverlapScenario:
    """One teacher booked for overlapping sessions in different rooms"""

    def test_single_teacher_conflict(self, make_slot):
        schedule = [
            make_slot(start="09:00", end="10:00", course="c1", room="r1"),
            make_slot(start="09:30", end="10:30", course="c2", room="r2"),
        ]

        conflicts = detect_conflicts(schedule)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.type == ConflictType.TEACHER_CONFLICT
        assert conflict.severity == ConflictSeverity.HIGH
        assert conflict.involved_entities.teachers == ("t1",)
        assert conflict.involved_entities.time_slot == "Monday_09:30_10:00"
        assert conflict.to_dict()["involvedEntities"]["teachers"] == ["t1"]

    def test_adjacent_session_adds_no_conflict(self, make_slot):
        schedule = [
            make_slot(start="09:00", end="10:00", course="c1", room="r1"),
            make_slot(start="09:30", end="10:30", course="c2", room="r2"),
            make_slot(start="10:30", end="11:30", course="c3", room="r3"),
        ]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [ConflictType.TEACHER_CONFLICT]

    def test_touching_intervals_do_not_overlap(self, make_slot):
        schedule = [
            make_slot(start="09:00", end="10:00", course="c1"),
            make_slot(start="10:00", end="11:00", course="c1"),
        ]

        assert detect_conflicts(schedule) == []

    def test_different_days_do_not_overlap(self, make_slot):
        schedule = [
            make_slot(day="Monday", course="c1"),
            make_slot(day="Tuesday", course="c1"),
        ]

        assert detect_conflicts(schedule) == []


class TestOverlapAxes:
    """Room and student group double bookings"""

    def test_room_conflict(self, make_slot):
        schedule = [
            make_slot(course="c1", teacher="t1", room="r1"),
            make_slot(course="c2", teacher="t2", room="r1"),
        ]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [ConflictType.ROOM_CONFLICT]
        assert conflicts[0].involved_entities.classrooms == ("r1",)
        assert set(conflicts[0].involved_entities.courses) == {"c1", "c2"}

    def test_same_course_group_conflict(self, make_slot):
        schedule = [
            make_slot(course="c1", teacher="t1", room="r1"),
            make_slot(course="c1", teacher="t2", room="r2"),
        ]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [ConflictType.STUDENT_CONFLICT]

    def test_full_double_booking_reports_every_axis_in_order(self, make_slot):
        schedule = [make_slot(course="c1"), make_slot(course="c1")]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [
            ConflictType.TEACHER_CONFLICT,
            ConflictType.ROOM_CONFLICT,
            ConflictType.STUDENT_CONFLICT,
        ]

    def test_different_batches_of_a_division_may_overlap(self, make_slot):
        schedule = [
            make_slot(course="c1", teacher="t1", room="lab1", division="d1", batch="b1"),
            make_slot(course="c1", teacher="t2", room="lab2", division="d1", batch="b2"),
        ]

        assert detect_conflicts(schedule) == []

    def test_same_batch_overlaps(self, make_slot):
        schedule = [
            make_slot(course="c1", teacher="t1", room="lab1", division="d1", batch="b1"),
            make_slot(course="c2", teacher="t2", room="lab2", division="d1", batch="b1"),
        ]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [ConflictType.STUDENT_CONFLICT]

    def test_whole_division_overlaps_its_batches(self, make_slot):
        schedule = [
            make_slot(course="c1", teacher="t1", room="r1", division="d1"),
            make_slot(course="c2", teacher="t2", room="lab1", division="d1", batch="b1"),
        ]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [ConflictType.STUDENT_CONFLICT]

    def test_courses_of_one_cohort_overlap(self, make_slot):
        schedule = [
            make_slot(course="c1", teacher="t1", room="r1", cohort="CS_2_1"),
            make_slot(course="c2", teacher="t2", room="r2", cohort="CS_2_1"),
            make_slot(course="c3", teacher="t3", room="r3", cohort="CS_2_2"),
        ]

        conflicts = detect_conflicts(schedule)

        assert [c.type for c in conflicts] == [ConflictType.STUDENT_CONFLICT]
        assert set(conflicts[0].involved_entities.courses) == {"c1", "c2"}
        assert "program:CS_2_1" in conflicts[0].description

    def test_cohort_is_taken_from_the_snapshot(self, snapshot_data, make_slot):
        for course_id in ("c1", "c3"):
            course = next(c for c in snapshot_data["courses"] if c["id"] == course_id)
            course.update(program="CS", year=1, semester=2)
        detector = ConflictDetector(DomainSnapshot.from_dict(snapshot_data))
        schedule = [
            make_slot(course="c1", teacher="t1", room="r1", students=30),
            make_slot(course="c3", teacher="t2", room="r2", students=30),
        ]

        conflicts = detector.detect(schedule)

        assert [c.type for c in conflicts] == [ConflictType.STUDENT_CONFLICT]
        assert detector.student_group(schedule[0]) == "program:CS_1_2"
        assert ConflictDetector().detect(schedule) == []

    def test_three_way_overlap_reports_each_pair(self, make_slot):
        schedule = [
            make_slot(start="09:00", end="11:00", course="c1", room="r1"),
            make_slot(start="09:30", end="10:30", course="c2", room="r2"),
            make_slot(start="10:00", end="11:00", course="c3", room="r3"),
        ]

        conflicts = detect_conflicts(schedule)

        assert len(conflicts) == 3
        assert all(c.type == ConflictType.TEACHER_CONFLICT for c in conflicts)


class TestDetectorProperties:
    """Purity, idempotence and order independence"""

    def test_idempotent(self, make_slot):
        schedule = Schedule.of(
            [make_slot(course="c1"), make_slot(course="c2", start="09:30", end="10:30")]
        )

        first = detect_conflicts(schedule)
        second = detect_conflicts(schedule)

        assert first == second

    def test_input_order_does_not_matter(self, make_slot):
        items = [
            make_slot(course="c1", room="r1"),
            make_slot(course="c2", room="r1", teacher="t2"),
            make_slot(course="c3", room="r2", start="09:30", end="10:30"),
        ]

        assert detect_conflicts(items) == detect_conflicts(list(reversed(items)))

    def test_empty_schedule(self):
        assert detect_conflicts([]) == []
        assert ConflictDetector().count(Schedule()) == 0

    def test_sweep_overlaps_pairs(self, make_slot):
        a = make_slot(start="09:00", end="10:00")
        b = make_slot(start="09:30", end="11:00")
        c = make_slot(start="10:00", end="11:00")
        intervals = [(x.start_minutes, x.end_minutes, x) for x in (c, a, b)]

        pairs = sweep_overlaps(intervals)

        assert pairs == [(a, b), (b, c)]


class TestConstraintViolations:
    """Violations that need the resource snapshot"""

    @pytest.fixture
    def detector(self, snapshot):
        return ConflictDetector(snapshot, GenerationSettings())

    def test_capacity_violation(self, detector, make_slot):
        conflicts = detector.detect([make_slot(course="c3", room="r2", students=35)])

        assert len(conflicts) == 1
        assert conflicts[0].type == ConflictType.CONSTRAINT_VIOLATION
        assert "seats 30" in conflicts[0].description

    def test_availability_violation(self, detector, make_slot):
        conflicts = detector.detect(
            [make_slot(course="c2", teacher="t2", room="lab1", start="08:00", end="09:00")]
        )

        assert any("unavailable" in c.description for c in conflicts)

    def test_missing_features(self, detector, make_slot):
        conflicts = detector.detect(
            [
                make_slot(
                    course="c2",
                    teacher="t2",
                    room="r2",
                    session_type=detector.snapshot.courses_by_id["c2"]
                    .sessions[0]
                    .session_type,
                )
            ]
        )

        assert len(conflicts) == 1
        assert "computers" in conflicts[0].description
        assert "lab facilities" in conflicts[0].description
        assert conflicts[0].severity == ConflictSeverity.MEDIUM

    def test_break_violation(self, detector, make_slot):
        conflicts = detector.detect(
            [make_slot(course="c1", room="r2", start="12:00", end="13:00")]
        )

        assert [c.description for c in conflicts] == [
            "c1 on Monday 12:00-13:00 overlaps a break"
        ]

    def test_weekly_hours_violation(self, make_slot):
        snapshot = DomainSnapshot.from_dict(
            {"teachers": [{"id": "t1", "name": "Ann", "maxHoursPerWeek": 1}]}
        )
        detector = ConflictDetector(snapshot, GenerationSettings())

        conflicts = detector.detect(
            [make_slot(day="Monday"), make_slot(day="Tuesday")]
        )

        assert len(conflicts) == 1
        assert "weekly maximum" in conflicts[0].description
        assert conflicts[0].involved_entities.teachers == ("t1",)

    def test_disabled_constraint_is_not_reported(self, snapshot, make_slot):
        settings = GenerationSettings(disabled_constraints=["room-capacity"])
        detector = ConflictDetector(snapshot, settings)

        assert detector.detect([make_slot(course="c3", room="r2", students=35)]) == []

    def test_clean_assignment(self, detector, make_slot):
        assert detector.detect([make_slot(course="c1", room="r1", students=30)]) == []
