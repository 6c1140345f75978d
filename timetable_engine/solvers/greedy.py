# timetable_engine/solvers/greedy.py

"""Single-pass greedy placement, used directly and as a fallback."""

import logging
from typing import List, Optional

from ..config import AlgorithmType
from ..core.settings import GenerationSettings
from .base import RunContext, Solver, SolverResult
from .domain_builder import Occupancy, Placement, ProblemInstance

logger = logging.getLogger(__name__)


class GreedySolver(Solver):
    """
    Places the most constrained units first, each on the first free value
    of its domain. Domains are ordered by day, time, teacher and room size,
    so the first free value is also the best-fitting room. With workload
    balancing on, the value that adds least to the teacher's and group's
    load that day wins instead.
    """

    algorithm = AlgorithmType.GREEDY

    def solve(
        self,
        problem: ProblemInstance,
        settings: GenerationSettings,
        context: RunContext,
    ) -> SolverResult:
        context.reporter.report(0, "Placing sessions greedily")
        occupancy = problem.new_occupancy()
        placements: List[Optional[Placement]] = [None] * problem.size
        order = sorted(problem.placeable, key=lambda i: (len(problem.domains[i]), i))
        termination = "completed"
        report_every = max(1, len(order) // 10)

        for n, index in enumerate(order):
            reason = context.stop_reason()
            if reason:
                termination = reason
                break
            placement = self.choose(problem, index, occupancy, settings.balance_workload)
            if placement is not None:
                occupancy.add(problem.units[index], placement)
                placements[index] = placement
            if n % report_every == 0:
                context.reporter.report(n / len(order) * 100, "Placing sessions greedily")

        placed = sum(1 for p in placements if p is not None)
        success_rate = placed / problem.size * 100 if problem.size else 100.0
        logger.info(
            f"Greedy placed {placed}/{problem.size} sessions "
            f"({success_rate:.1f}% success rate)"
        )
        context.reporter.report(100, "Greedy placement finished")
        return SolverResult(
            algorithm=self.algorithm.value,
            placements=placements,
            iterations=len(order),
            termination_reason=termination,
        )

    @staticmethod
    def choose(
        problem: ProblemInstance,
        index: int,
        occupancy: Occupancy,
        balance_workload: bool = False,
    ) -> Optional[Placement]:
        unit = problem.units[index]
        best: Optional[Placement] = None
        best_load = None
        for _, placement in problem.consistent_values(index, occupancy):
            if not balance_workload:
                return placement
            load = occupancy.teacher_day_load(
                placement.teacher_id, placement.day
            ) + occupancy.group_day_load(unit.group, placement.day)
            if best_load is None or load < best_load:
                best, best_load = placement, load
                if load == 0:
                    break
        return best
