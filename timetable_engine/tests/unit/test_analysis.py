# timetable_engine/tests/unit/test_analysis.py

"""
Tests for post-solve conflict resolution and the pre-solve analyzer.
"""

import pytest

from timetable_engine.analysis.conflict_detector import detect_conflicts
from timetable_engine.analysis.conflict_resolver import ConflictResolver
from timetable_engine.analysis.pre_solve_analyzer import (
    PRESSURED_MUTATION_RATE,
    TUNED_GENERATIONS,
    TUNED_POPULATION,
    PreSolveAnalyzer,
)
from timetable_engine.core.problem_model import DomainSnapshot
from timetable_engine.core.settings import GenerationSettings
from timetable_engine.solvers.csp import CSPSolver
from timetable_engine.solvers.domain_builder import build_problem


def _problem(data, **settings):
    return build_problem(DomainSnapshot.from_dict(data), GenerationSettings(**settings))


@pytest.fixture
def two_course_problem():
    """Two single-session courses with separate teachers sharing two rooms"""
    return _problem(
        {
            "teachers": [{"id": "t1"}, {"id": "t2"}],
            "classrooms": [
                {"id": "r1", "capacity": 30},
                {"id": "r2", "capacity": 30},
            ],
            "courses": [
                {"id": "c1", "requiredSessions": 1, "assignedTeachers": ["t1"],
                 "enrolledStudents": 20},
                {"id": "c2", "requiredSessions": 1, "assignedTeachers": ["t2"],
                 "enrolledStudents": 20},
            ],
        }
    )


class TestConflictResolver:
    """Tests for moving colliding sessions"""

    def test_room_clash_resolved_by_room_swap(self, two_course_problem):
        problem = two_course_problem
        first = problem.domains[0][0]
        clash = next(
            p
            for p in problem.domains[1]
            if (p.day, p.start, p.classroom_id) == (first.day, first.start, first.classroom_id)
        )

        report = ConflictResolver(problem).resolve([first, clash])

        assert report.resolved_count == 1
        assert report.unresolved == []
        move = report.moves[0]
        assert move.course_id == "c2"
        assert move.room_only
        assert report.placements[0] == first
        assert report.placements[1].classroom_id != first.classroom_id
        assert move.describe().startswith("Moved c2 on Monday from room")

    def test_duplicated_placement_is_moved(self, problem):
        solved = CSPSolver().search(problem, 500).assignment
        placements = list(solved)
        placements[1] = placements[0]

        report = ConflictResolver(problem).resolve(placements)

        assert report.resolved_count == 1
        assert report.unresolved == []
        assert report.placements[0] == solved[0]
        schedule = problem.decode(report.placements)
        assert not [c for c in detect_conflicts(schedule) if c.is_overlap]

    def test_clean_assignment_untouched(self, problem):
        solved = CSPSolver().search(problem, 500).assignment

        report = ConflictResolver(problem).resolve(solved)

        assert report.moves == []
        assert report.placements == list(solved)
        assert report.to_dict() == {"moves": [], "unresolved": []}

    def test_unresolvable_clash_is_reported(self):
        problem = _problem(
            {
                "teachers": [{"id": "t1"}],
                "classrooms": [{"id": "r1", "capacity": 30}],
                "courses": [
                    {"id": "c1", "requiredSessions": 2, "assignedTeachers": ["t1"]},
                ],
            },
            working_days=["Monday"],
            start_time="09:00",
            end_time="10:00",
            break_slots=[],
        )
        only = problem.domains[0][0]

        report = ConflictResolver(problem).resolve([only, only])

        assert report.moves == []
        assert report.unresolved == [problem.units[1].id, problem.units[0].id]


class TestPreSolveAnalyzer:
    """Tests for feasibility rating and parameter tuning"""

    def test_comfortable_problem(self, problem):
        report = PreSolveAnalyzer(problem).analyze()

        assert report.total_units == 7
        assert report.placeable_units == 7
        assert report.unplaceable == {}
        assert report.feasibility.likelihood == "High"
        assert "7/7 sessions placeable" in report.summary
        assert report.to_dict()["totalUnits"] == 7

    def test_comfortable_problem_is_not_tuned(self, problem):
        analyzer = PreSolveAnalyzer(problem)
        analyzer.analyze()
        settings = problem.settings

        assert analyzer.tune(settings) is settings
        assert analyzer.report.tuned_parameters == {}

    def test_unplaceable_session_is_critical(self, snapshot_data):
        snapshot_data["courses"].append(
            {
                "id": "astro",
                "requiredSessions": 1,
                "requiredFeatures": ["telescope"],
                "assignedTeachers": ["t1"],
            }
        )
        problem = _problem(snapshot_data)

        report = PreSolveAnalyzer(problem).analyze()

        assert report.placeable_units == 7
        assert len(report.unplaceable) == 1
        assert report.feasibility.likelihood == "Very Low / Infeasible"

    def test_large_problem_gets_smaller_ga(self):
        problem = _problem(
            {
                "teachers": [{"id": "t1"}],
                "classrooms": [{"id": f"r{i}", "capacity": 40} for i in range(3)],
                "courses": [
                    {"id": f"c{i}", "requiredSessions": 10, "assignedTeachers": ["t1"],
                     "enrolledStudents": 20}
                    for i in range(6)
                ],
            }
        )
        analyzer = PreSolveAnalyzer(problem)
        analyzer.analyze()

        tuned = analyzer.tune(problem.settings)

        assert analyzer.report.total_units == 60
        assert tuned.genetic.population_size == TUNED_POPULATION
        assert tuned.genetic.max_generations == TUNED_GENERATIONS
        assert tuned.genetic.mutation_rate == problem.settings.genetic.mutation_rate
        assert problem.settings.genetic.population_size == 50

    def test_capacity_pressure_raises_mutation(self):
        problem = _problem(
            {
                "teachers": [{"id": "t1"}],
                "classrooms": [{"id": "r1", "capacity": 40}],
                "courses": [
                    {"id": "c1", "requiredSessions": 6, "assignedTeachers": ["t1"]},
                ],
            },
            working_days=["Monday"],
        )
        analyzer = PreSolveAnalyzer(problem)

        report = analyzer.analyze()
        tuned = analyzer.tune(problem.settings)

        assert report.capacity_pressure == pytest.approx(360 / 420)
        assert report.feasibility.likelihood in ("Medium", "Low")
        assert tuned.genetic.mutation_rate == PRESSURED_MUTATION_RATE
        assert report.tuned_parameters == {"mutation_rate": PRESSURED_MUTATION_RATE}
