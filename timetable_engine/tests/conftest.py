# timetable_engine/tests/conftest.py

"""
Pytest configuration and fixtures for timetable engine tests.
"""

import logging

import pytest

from timetable_engine.core.problem_model import Day, DomainSnapshot, SessionType
from timetable_engine.core.settings import GenerationSettings
from timetable_engine.core.solution import TimeSlotAssignment
from timetable_engine.solvers.base import RunContext
from timetable_engine.solvers.domain_builder import build_problem

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def make_assignment(
    day="Monday",
    start="09:00",
    end="10:00",
    course="c1",
    teacher="t1",
    room="r1",
    division=None,
    batch=None,
    students=20,
    session_type=SessionType.THEORY,
    cohort=None,
):
    """Shorthand for building assignments in detector and scorer tests"""
    return TimeSlotAssignment(
        day=Day.from_value(day),
        start_time=start,
        end_time=end,
        course_id=course,
        session_type=session_type,
        teacher_id=teacher,
        classroom_id=room,
        division_id=division,
        batch_id=batch,
        student_count=students,
        cohort=cohort,
    )


@pytest.fixture
def snapshot_data():
    """Small, comfortably feasible resource pool: 7 sessions a week"""
    return {
        "teachers": [
            {"id": "t1", "name": "Alice Smith", "maxHoursPerWeek": 20},
            {
                "id": "t2",
                "name": "Bob Jones",
                "maxHoursPerWeek": 20,
                "availability": {
                    "monday": {"available": True, "startTime": "09:00", "endTime": "17:00"},
                    "saturday": {"available": False},
                },
            },
        ],
        "classrooms": [
            {"id": "r1", "name": "Hall A", "capacity": 40, "features": ["projector"]},
            {"id": "r2", "name": "Room 12", "capacity": 30},
            {
                "id": "lab1",
                "name": "Computer Lab",
                "capacity": 25,
                "type": "Lab",
                "features": ["computers"],
            },
        ],
        "courses": [
            {
                "id": "c1",
                "name": "Algorithms",
                "code": "CS101",
                "sessions": {"theory": {"sessionsPerWeek": 3}},
                "assignedTeachers": ["t1"],
                "enrolledStudents": 30,
            },
            {
                "id": "c2",
                "name": "Databases",
                "code": "CS202",
                "sessions": [
                    {
                        "sessionType": "Practical",
                        "sessionsPerWeek": 2,
                        "requiredFeatures": ["computers"],
                        "requiresLab": True,
                    }
                ],
                "assignedTeachers": ["t2"],
                "enrolledStudents": 20,
            },
            {
                "id": "c3",
                "name": "Physics",
                "code": "PH110",
                "requiredSessions": 2,
                "assignedTeachers": ["t1", "t2"],
                "enrolledStudents": 35,
            },
        ],
    }


@pytest.fixture
def snapshot(snapshot_data):
    return DomainSnapshot.from_dict(snapshot_data)


@pytest.fixture
def fast_settings_data():
    """Settings small enough for every solver to finish in well under a second"""
    return {
        "randomSeed": 42,
        "genetic": {
            "populationSize": 8,
            "maxGenerations": 5,
            "eliteSize": 2,
            "tournamentSize": 3,
        },
        "annealing": {"maxIterations": 150},
        "csp": {"maxBacktrackSteps": 500},
        "hybrid": {"cspMaxBacktrackSteps": 500, "maxPopulation": 8, "gaGenerations": 4},
    }


@pytest.fixture
def fast_settings(fast_settings_data):
    return GenerationSettings.model_validate(fast_settings_data)


@pytest.fixture
def problem(snapshot, fast_settings):
    return build_problem(snapshot, fast_settings)


@pytest.fixture
def context(fast_settings):
    return RunContext.create(fast_settings)


@pytest.fixture
def make_slot():
    """Factory for hand-built assignments"""
    return make_assignment
