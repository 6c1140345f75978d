# timetable_engine/analysis/pre_solve_analyzer.py

"""
Pre-Solve Feasibility and Complexity Analyzer

A pre-flight check on a built problem instance. It measures size and
capacity pressure, lists units that cannot be placed at all, rates the
likelihood of a feasible timetable and, when auto-tuning is requested,
adapts the genetic parameters to the problem before solving.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..core.settings import GenerationSettings
from ..solvers.domain_builder import ProblemInstance

logger = logging.getLogger(__name__)

# Problems above this many session units get a smaller, faster GA
LARGE_PROBLEM_UNITS = 50
TUNED_POPULATION = 30
TUNED_GENERATIONS = 100

# Demand above this share of room-hours raises the mutation rate
CAPACITY_PRESSURE_THRESHOLD = 0.8
PRESSURED_MUTATION_RATE = 0.3


@dataclass
class FeasibilityPrediction:
    """Likelihood of finding a timetable that places every session."""

    likelihood: str = "High"  # "High", "Medium", "Low", "Very Low / Infeasible"
    critical_issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class AnalysisReport:
    total_units: int = 0
    placeable_units: int = 0
    unplaceable: Dict[str, str] = field(default_factory=dict)
    demanded_minutes: int = 0
    room_capacity_minutes: int = 0
    capacity_pressure: float = 0.0
    mean_domain_size: float = 0.0
    overloaded_teachers: List[str] = field(default_factory=list)
    feasibility: FeasibilityPrediction = field(default_factory=FeasibilityPrediction)
    tuned_parameters: Dict[str, Any] = field(default_factory=dict)
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "totalUnits": self.total_units,
            "placeableUnits": self.placeable_units,
            "unplaceable": dict(self.unplaceable),
            "demandedMinutes": self.demanded_minutes,
            "roomCapacityMinutes": self.room_capacity_minutes,
            "capacityPressure": self.capacity_pressure,
            "meanDomainSize": self.mean_domain_size,
            "overloadedTeachers": list(self.overloaded_teachers),
            "feasibility": self.feasibility.__dict__,
            "tunedParameters": dict(self.tuned_parameters),
        }


class PreSolveAnalyzer:
    """Analyzes a problem instance before solving."""

    def __init__(self, problem: ProblemInstance):
        self.problem = problem
        self.report = AnalysisReport()

    def analyze(self) -> AnalysisReport:
        logger.info("--- Starting Pre-Solve Analysis ---")
        self._calculate_base_metrics()
        self._analyze_feasibility()
        self._generate_summary()
        logger.info(self.report.summary)
        return self.report

    def _calculate_base_metrics(self):
        problem = self.problem
        report = self.report
        report.total_units = problem.size
        report.placeable_units = len(problem.placeable)
        report.unplaceable = {
            problem.units[i].id: reason for i, reason in problem.unplaceable.items()
        }
        report.demanded_minutes = sum(u.duration for u in problem.units)

        rooms = [r for r in problem.snapshot.classrooms if r.is_schedulable]
        report.room_capacity_minutes = len(rooms) * problem.settings.weekly_minutes()
        if report.room_capacity_minutes:
            report.capacity_pressure = (
                report.demanded_minutes / report.room_capacity_minutes
            )
        elif report.demanded_minutes:
            report.capacity_pressure = float("inf")

        sizes = [len(problem.domains[i]) for i in problem.placeable]
        report.mean_domain_size = sum(sizes) / len(sizes) if sizes else 0.0

        demand: Dict[str, int] = defaultdict(int)
        for unit in problem.units:
            teachers = {p.teacher_id for p in problem.domains[unit.index]}
            if len(teachers) == 1:
                demand[next(iter(teachers))] += unit.duration
        report.overloaded_teachers = sorted(
            teacher_id
            for teacher_id, minutes in demand.items()
            if problem.teacher_max_minutes.get(teacher_id) is not None
            and minutes > problem.teacher_max_minutes[teacher_id]
        )
        logger.debug(
            f"Base metrics: units={report.total_units}, "
            f"pressure={report.capacity_pressure:.2f}, "
            f"mean domain={report.mean_domain_size:.1f}"
        )

    def _analyze_feasibility(self):
        report = self.report
        feasibility = report.feasibility

        for unit_id, reason in report.unplaceable.items():
            feasibility.critical_issues.append(f"{unit_id}: {reason}")
        if report.capacity_pressure > 1.0:
            feasibility.critical_issues.append(
                "Demanded session hours exceed the available room hours"
            )
        for teacher_id in report.overloaded_teachers:
            feasibility.critical_issues.append(
                f"Teacher {teacher_id} is the only option for more minutes "
                f"than their weekly maximum allows"
            )

        if report.capacity_pressure > CAPACITY_PRESSURE_THRESHOLD:
            feasibility.warnings.append(
                f"Capacity pressure is high ({report.capacity_pressure:.2f}); "
                f"room hours are tight"
            )
        if report.placeable_units and report.mean_domain_size < 5:
            feasibility.warnings.append(
                f"Sessions have few legal placements on average "
                f"({report.mean_domain_size:.1f})"
            )

        if feasibility.critical_issues:
            feasibility.likelihood = "Very Low / Infeasible"
        elif len(feasibility.warnings) >= 2:
            feasibility.likelihood = "Low"
        elif feasibility.warnings:
            feasibility.likelihood = "Medium"
        else:
            feasibility.likelihood = "High"

    def _generate_summary(self):
        report = self.report
        self.report.summary = (
            f"Analysis complete. {report.placeable_units}/{report.total_units} "
            f"sessions placeable, capacity pressure {report.capacity_pressure:.2f}. "
            f"Feasibility is rated '{report.feasibility.likelihood}'."
        )

    def tune(self, settings: GenerationSettings) -> GenerationSettings:
        """Settings with genetic parameters adapted to this problem."""
        report = self.report
        genetic = settings.genetic
        updates: Dict[str, Any] = {}

        if report.total_units > LARGE_PROBLEM_UNITS:
            population = min(genetic.population_size, TUNED_POPULATION)
            if population != genetic.population_size:
                updates["population_size"] = population
                updates["elite_size"] = min(genetic.elite_size, population - 1)
                updates["tournament_size"] = min(genetic.tournament_size, population)
            if genetic.max_generations > TUNED_GENERATIONS:
                updates["max_generations"] = TUNED_GENERATIONS

        if report.capacity_pressure > CAPACITY_PRESSURE_THRESHOLD:
            if genetic.mutation_rate < PRESSURED_MUTATION_RATE:
                updates["mutation_rate"] = PRESSURED_MUTATION_RATE

        if not updates:
            return settings
        report.tuned_parameters = updates
        logger.info(f"Auto-tuned genetic parameters: {updates}")
        return settings.model_copy(update={"genetic": genetic.model_copy(update=updates)})
