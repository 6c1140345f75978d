# timetable_engine/tests/unit/test_domain_builder.py

"""
Tests for session unit expansion, domain construction and occupancy.
"""

import pytest

from timetable_engine.core.problem_model import Course, Day, DomainSnapshot, SessionType
from timetable_engine.core.settings import GenerationSettings
from timetable_engine.solvers.base import RunContext
from timetable_engine.solvers.domain_builder import (
    UNPLACED,
    Placement,
    build_problem,
    expand_units,
    slot_starts,
)
from timetable_engine.solvers.greedy import GreedySolver


@pytest.fixture
def cohort_snapshot_data():
    """Two division-less courses taken by the same program, year and semester"""
    return {
        "teachers": [{"id": "t1", "name": "Ann"}, {"id": "t2", "name": "Ben"}],
        "classrooms": [{"id": "r1", "capacity": 30}, {"id": "r2", "capacity": 30}],
        "courses": [
            {
                "id": "maths",
                "requiredSessions": 1,
                "assignedTeachers": ["t1"],
                "program": "CS",
                "year": 2,
                "semester": 1,
            },
            {
                "id": "networks",
                "requiredSessions": 1,
                "assignedTeachers": ["t2"],
                "program": "CS",
                "year": 2,
                "semester": 1,
            },
        ],
    }


class TestUnitExpansion:
    """Tests for turning courses into session units"""

    def test_units_per_weekly_session(self, problem):
        by_course = {}
        for unit in problem.units:
            by_course.setdefault(unit.course_id, []).append(unit)

        assert problem.size == 7
        assert [u.index for u in problem.units] == list(range(7))
        assert len(by_course["c1"]) == 3
        assert len(by_course["c2"]) == 2
        assert all(u.session_type == SessionType.PRACTICAL for u in by_course["c2"])
        assert len({u.id for u in problem.units}) == 7

    def test_practical_sessions_split_by_batch(self):
        course = Course.from_dict(
            {
                "id": "c1",
                "sessions": [
                    {"sessionType": "Theory", "sessionsPerWeek": 1},
                    {"sessionType": "Practical", "sessionsPerWeek": 1},
                ],
                "divisions": [
                    {
                        "id": "d1",
                        "studentCount": 40,
                        "batches": [
                            {"id": "b1", "studentCount": 20},
                            {"id": "b2", "studentCount": 20},
                        ],
                    }
                ],
            }
        )

        units = expand_units(course, 0, 60)

        assert [(u.session_type, u.batch_id, u.student_count) for u in units] == [
            (SessionType.THEORY, None, 40),
            (SessionType.PRACTICAL, "b1", 20),
            (SessionType.PRACTICAL, "b2", 20),
        ]
        assert units[0].group == "division:d1"

    def test_courses_of_one_cohort_share_a_group(self):
        common = {"requiredSessions": 1, "program": "CS", "year": 2, "semester": 1}
        first = expand_units(Course.from_dict(dict(common, id="a")), 0, 60)[0]
        second = expand_units(Course.from_dict(dict(common, id="b")), 1, 60)[0]
        later = expand_units(
            Course.from_dict(dict(common, id="c", semester=2)), 2, 60
        )[0]
        divided = expand_units(
            Course.from_dict(dict(common, id="d", divisionId="d7")), 3, 60
        )[0]
        lone = expand_units(
            Course.from_dict({"id": "e", "requiredSessions": 1}), 4, 60
        )[0]

        assert first.group == second.group == "program:CS_2_1"
        assert later.group == "program:CS_2_2"
        assert divided.group == "division:d7"
        assert lone.group == "course:e"

    def test_slot_starts_respect_window(self):
        settings = GenerationSettings(start_time="09:00", end_time="11:30", slot_duration=60)

        assert slot_starts(settings) == [540, 600]


class TestDomains:
    """Tests for unary constraint filtering of domains"""

    def test_domains_honour_rooms_and_breaks(self, problem):
        for index, domain in enumerate(problem.domains):
            unit = problem.units[index]
            assert domain, f"{unit.id} has an empty domain"
            assert all(not (p.start < 780 and 720 < p.end) for p in domain)
            if unit.course_id == "c2":
                assert {p.classroom_id for p in domain} == {"lab1"}
            if unit.course_id == "c3":
                assert {p.classroom_id for p in domain} == {"r1"}
                assert {p.teacher_id for p in domain} == {"t1", "t2"}

    def test_domain_sizes(self, problem):
        # 7 slots a day over 5 days
        sizes = [len(d) for d in problem.domains]

        assert sizes == [70, 70, 70, 35, 35, 70, 70]
        assert problem.unplaceable == {}
        assert problem.placeable == list(range(7))

    def test_domain_ordered_by_day_then_time(self, problem):
        domain = problem.domains[0]

        assert domain[0] == Placement(Day.MONDAY, 540, 600, "t1", "r2")
        assert domain[1] == Placement(Day.MONDAY, 540, 600, "t1", "r1")

    def test_teacher_availability_limits_domain(self):
        snapshot = DomainSnapshot.from_dict(
            {
                "teachers": [
                    {
                        "id": "t1",
                        "name": "Ann",
                        "availability": [
                            {"day": "Monday", "startTime": "09:00", "endTime": "11:00"}
                        ],
                    }
                ],
                "classrooms": [{"id": "r1", "capacity": 30}],
                "courses": [
                    {"id": "c1", "requiredSessions": 1, "assignedTeachers": ["t1"]}
                ],
            }
        )

        settings = GenerationSettings(working_days=["Monday", "Tuesday"])

        domain = build_problem(snapshot, settings).domains[0]

        # days missing from the availability map are open
        assert [p.start for p in domain if p.day == Day.MONDAY] == [540, 600]
        assert len([p for p in domain if p.day == Day.TUESDAY]) == 7

    @pytest.mark.parametrize(
        "course, reason",
        [
            (
                {"id": "c1", "requiredSessions": 1, "enrolledStudents": 500,
                 "assignedTeachers": ["t1"]},
                "No classroom with capacity 500",
            ),
            (
                {"id": "c1", "sessions": [{"sessionType": "Practical", "sessionsPerWeek": 1}],
                 "assignedTeachers": [{"teacherId": "t1", "sessionTypes": ["Theory"]}]},
                "No eligible teacher",
            ),
        ],
    )
    def test_unplaceable_units_are_explained(self, course, reason):
        snapshot = DomainSnapshot.from_dict(
            {
                "teachers": [{"id": "t1", "name": "Ann"}],
                "classrooms": [{"id": "r1", "capacity": 30}],
                "courses": [course],
            }
        )

        problem = build_problem(snapshot, GenerationSettings())

        assert problem.domains[0] == []
        assert problem.placeable == []
        assert problem.unplaceable[0].startswith(reason)

    def test_disabled_capacity_widens_domain(self, snapshot):
        settings = GenerationSettings(disabled_constraints=["room-capacity"])

        problem = build_problem(snapshot, settings)

        c3_rooms = {p.classroom_id for p in problem.domains[5]}
        assert c3_rooms == {"r1", "r2", "lab1"}


class TestOccupancy:
    """Tests for booking bookkeeping used during search"""

    def test_is_free_detects_teacher_room_and_group(self, problem):
        occupancy = problem.new_occupancy()
        first = problem.domains[0][0]
        occupancy.add(problem.units[0], first)

        # same course, same slot, other room: group and teacher clash
        other_room = problem.domains[1][1]
        assert other_room.start == first.start
        assert not occupancy.is_free(problem.units[1], other_room)
        # a unit never clashes with its own booking
        assert occupancy.is_free(problem.units[0], first)

    def test_remove_restores_state(self, problem):
        occupancy = problem.new_occupancy()
        placement = problem.domains[0][0]
        occupancy.add(problem.units[0], placement)
        occupancy.remove(problem.units[0], placement)

        assert occupancy.is_free(problem.units[1], placement)
        assert occupancy.teacher_minutes["t1"] == 0

    def test_weekly_hours_limit(self):
        snapshot = DomainSnapshot.from_dict(
            {
                "teachers": [{"id": "t1", "name": "Ann", "maxHoursPerWeek": 1}],
                "classrooms": [{"id": "r1", "capacity": 30}],
                "courses": [
                    {"id": "c1", "requiredSessions": 2, "assignedTeachers": ["t1"]}
                ],
            }
        )
        problem = build_problem(snapshot, GenerationSettings())
        occupancy = problem.new_occupancy()
        occupancy.add(problem.units[0], problem.domains[0][0])

        later = problem.domains[1][-1]
        assert occupancy.is_free(problem.units[1], later)
        assert not occupancy.within_hours(problem.units[1], later)
        assert not occupancy.accepts(problem.units[1], later)
        assert occupancy.accepts_existing(problem.units[0], problem.domains[0][0])

    def test_cohort_blocks_other_courses_of_the_program(self, cohort_snapshot_data):
        problem = build_problem(
            DomainSnapshot.from_dict(cohort_snapshot_data), GenerationSettings()
        )
        occupancy = problem.new_occupancy()
        occupancy.add(problem.units[0], Placement(Day.MONDAY, 540, 600, "t1", "r1"))

        same_slot = Placement(Day.MONDAY, 540, 600, "t2", "r2")
        assert not occupancy.is_free(problem.units[1], same_slot)
        assert occupancy.is_free(problem.units[1], same_slot._replace(start=600, end=660))

    def test_courses_without_program_do_not_block_each_other(self, cohort_snapshot_data):
        for course in cohort_snapshot_data["courses"]:
            del course["program"]
        problem = build_problem(
            DomainSnapshot.from_dict(cohort_snapshot_data), GenerationSettings()
        )
        occupancy = problem.new_occupancy()
        occupancy.add(problem.units[0], Placement(Day.MONDAY, 540, 600, "t1", "r1"))

        assert occupancy.is_free(
            problem.units[1], Placement(Day.MONDAY, 540, 600, "t2", "r2")
        )

    def test_greedy_keeps_cohort_courses_apart(self, cohort_snapshot_data):
        settings = GenerationSettings(
            working_days=["Monday"], start_time="09:00", end_time="11:00"
        )
        problem = build_problem(DomainSnapshot.from_dict(cohort_snapshot_data), settings)

        result = GreedySolver().solve(problem, settings, RunContext.create(settings))

        first, second = result.placements
        assert {first.start, second.start} == {540, 600}
        assert [a.cohort for a in problem.decode(result.placements)] == ["CS_2_1"] * 2

    def test_decode_skips_unplaced(self, problem):
        genes = [0] + [UNPLACED] * (problem.size - 1)

        schedule = problem.decode_genes(genes)

        assert len(schedule) == 1
        assert schedule[0].course_id == "c1"
        assert schedule[0].start_time == "09:00"
        assert problem.placements_to_genes(problem.genes_to_placements(genes)) == genes
