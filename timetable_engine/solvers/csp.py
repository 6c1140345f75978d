# timetable_engine/solvers/csp.py

"""
Constraint satisfaction search for a feasible timetable.

Variables are session units, values are placements from the unit's domain.
The search is an iterative depth-first backtracking over an explicit stack,
so deep problems do not hit the interpreter's recursion limit:

- variable selection: MRV (fewest remaining values, ties by degree) or the
  static unit order
- value ordering: LCV (least contested teacher/room/group cells first) or
  the domain's day/time order
- forward checking after each assignment, rejecting values that wipe out a
  neighbour's domain
- optional AC-3 preprocessing

Every dead end popped off the stack counts as one backtrack step. Reaching
``max_backtrack_steps`` stops the search with ``exhausted=True`` and the
largest partial assignment seen; it is a termination reason, not an error.
"""

import logging
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..config import AlgorithmType, config
from ..core.settings import CSPParameters, GenerationSettings
from .base import RunContext, Solver, SolverResult
from .domain_builder import (
    Occupancy,
    Placement,
    ProblemInstance,
    SessionUnit,
    groups_clash,
    placements_clash,
)

logger = logging.getLogger(__name__)


@dataclass
class CSPOutcome:
    assignment: List[Optional[Placement]]
    exhausted: bool
    backtrack_steps: int
    complete: bool
    termination_reason: str
    nodes: int = 0
    pruned_by_ac3: Set[int] = field(default_factory=set)

    @property
    def placed_count(self) -> int:
        return sum(1 for p in self.assignment if p is not None)


@dataclass
class _Frame:
    var: int
    values: List[Placement]
    pos: int = 0
    placement: Optional[Placement] = None
    pruned: List[Tuple[int, List[Placement]]] = field(default_factory=list)


class CSPSolver(Solver):
    """Backtracking search with MRV, LCV, forward checking and AC-3."""

    algorithm = AlgorithmType.CSP

    def __init__(
        self,
        use_mrv: bool = True,
        use_lcv: bool = True,
        forward_checking: bool = True,
        use_ac3: bool = False,
        max_backtrack_steps: Optional[int] = None,
        time_limit_seconds: Optional[float] = None,
    ):
        self.use_mrv = use_mrv
        self.use_lcv = use_lcv
        self.forward_checking = forward_checking
        self.use_ac3 = use_ac3
        self.max_backtrack_steps = max_backtrack_steps
        self.time_limit_seconds = time_limit_seconds

    @classmethod
    def from_parameters(cls, params: CSPParameters) -> "CSPSolver":
        return cls(
            use_mrv=params.use_mrv,
            use_lcv=params.use_lcv,
            forward_checking=params.forward_checking,
            use_ac3=params.use_ac3,
            max_backtrack_steps=params.max_backtrack_steps,
            time_limit_seconds=params.time_limit_seconds,
        )

    def solve(
        self,
        problem: ProblemInstance,
        settings: GenerationSettings,
        context: RunContext,
    ) -> SolverResult:
        max_steps = self.max_backtrack_steps
        if max_steps is None:
            max_steps = settings.csp.max_backtrack_steps
        if self.time_limit_seconds:
            context = context.phase(0, 100, self.time_limit_seconds)

        outcome = self.search(problem, max_steps, context)
        return SolverResult(
            algorithm=self.algorithm.value,
            placements=outcome.assignment,
            iterations=outcome.nodes,
            backtrack_steps=outcome.backtrack_steps,
            exhausted=outcome.exhausted,
            termination_reason=outcome.termination_reason,
        )

    def search(
        self,
        problem: ProblemInstance,
        max_backtrack_steps: int,
        context: Optional[RunContext] = None,
    ) -> CSPOutcome:
        context = context or RunContext()
        search = _Search(self, problem, context)
        return search.run(max_backtrack_steps)


class BacktrackingSolver(CSPSolver):
    """Chronological backtracking: static variable and value order, no pruning."""

    algorithm = AlgorithmType.BACKTRACKING

    def __init__(
        self,
        max_backtrack_steps: Optional[int] = None,
        time_limit_seconds: Optional[float] = None,
    ):
        super().__init__(
            use_mrv=False,
            use_lcv=False,
            forward_checking=False,
            use_ac3=False,
            max_backtrack_steps=max_backtrack_steps,
            time_limit_seconds=time_limit_seconds,
        )

    @classmethod
    def from_parameters(cls, params: CSPParameters) -> "BacktrackingSolver":
        return cls(
            max_backtrack_steps=params.max_backtrack_steps,
            time_limit_seconds=params.time_limit_seconds,
        )


class _Search:
    """State of one CSP search."""

    def __init__(self, solver: CSPSolver, problem: ProblemInstance, context: RunContext):
        self.solver = solver
        self.problem = problem
        self.context = context
        self.units: List[SessionUnit] = problem.units
        self.domains: Dict[int, List[Placement]] = {
            i: list(problem.domains[i]) for i in problem.placeable
        }
        self.variables: List[int] = sorted(self.domains)
        self.assignment: List[Optional[Placement]] = [None] * problem.size
        self.unassigned: Set[int] = set(self.variables)
        self.occupancy: Occupancy = problem.new_occupancy()
        self.neighbors = self._build_neighbors()
        self.demand = self._build_demand() if solver.use_lcv else Counter()

        self.best: List[Optional[Placement]] = list(self.assignment)
        self.best_count = 0
        self.steps = 0
        self.nodes = 0
        self.placed = 0

    # --- Setup ---

    def _build_neighbors(self) -> Dict[int, Set[int]]:
        by_teacher: Dict[str, Set[int]] = defaultdict(set)
        by_room: Dict[str, Set[int]] = defaultdict(set)
        by_group: Dict[str, Set[int]] = defaultdict(set)
        for var, domain in self.domains.items():
            for placement in domain:
                by_teacher[placement.teacher_id].add(var)
                by_room[placement.classroom_id].add(var)
            by_group[self.units[var].group].add(var)

        neighbors: Dict[int, Set[int]] = {var: set() for var in self.domains}
        for members in list(by_teacher.values()) + list(by_room.values()):
            for var in members:
                neighbors[var] |= members
        for members in by_group.values():
            for var in members:
                unit = self.units[var]
                neighbors[var] |= {
                    other
                    for other in members
                    if groups_clash(
                        unit.group,
                        unit.batch_id,
                        self.units[other].group,
                        self.units[other].batch_id,
                    )
                }
        for var in neighbors:
            neighbors[var].discard(var)
        return neighbors

    @staticmethod
    def _cells(unit: SessionUnit, placement: Placement) -> Tuple[tuple, ...]:
        day, start = placement.day, placement.start
        return (
            ("t", placement.teacher_id, day, start),
            ("r", placement.classroom_id, day, start),
            ("g", unit.group, day, start),
        )

    def _build_demand(self) -> Counter:
        demand: Counter = Counter()
        for var, domain in self.domains.items():
            unit = self.units[var]
            for placement in domain:
                demand.update(self._cells(unit, placement))
        return demand

    # --- Heuristics ---

    def select_variable(self) -> Optional[int]:
        if not self.unassigned:
            return None
        if not self.solver.use_mrv:
            return min(self.unassigned)
        return min(
            self.unassigned,
            key=lambda v: (len(self.domains[v]), -len(self.neighbors[v]), v),
        )

    def order_values(self, var: int) -> List[Placement]:
        values = self.domains[var]
        if not self.solver.use_lcv:
            return list(values)
        unit = self.units[var]
        ranked = sorted(
            enumerate(values),
            key=lambda item: (
                sum(self.demand[c] for c in self._cells(unit, item[1])),
                item[0],
            ),
        )
        return [placement for _, placement in ranked]

    # --- Assignment bookkeeping ---

    def assign(self, var: int, placement: Placement) -> None:
        self.assignment[var] = placement
        self.unassigned.discard(var)
        self.occupancy.add(self.units[var], placement)
        self.placed += 1

    def unassign(self, frame: _Frame) -> None:
        for other, old_domain in reversed(frame.pruned):
            self.domains[other] = old_domain
        frame.pruned = []
        self.occupancy.remove(self.units[frame.var], frame.placement)
        self.assignment[frame.var] = None
        self.unassigned.add(frame.var)
        self.placed -= 1
        frame.placement = None

    def forward_check(self, var: int, placement: Placement, frame: _Frame) -> bool:
        """Prune neighbour domains; False on a wipe-out."""
        unit = self.units[var]
        limit = self.problem.teacher_max_minutes.get(placement.teacher_id)
        if not self.problem.constraints.is_enabled("teacher-weekly-hours"):
            limit = None
        used = self.occupancy.teacher_minutes.get(placement.teacher_id, 0)

        for other in self.neighbors[var]:
            if other not in self.unassigned:
                continue
            other_unit = self.units[other]
            old_domain = self.domains[other]
            new_domain = [
                value
                for value in old_domain
                if not placements_clash(unit, placement, other_unit, value)
                and not (
                    limit is not None
                    and value.teacher_id == placement.teacher_id
                    and used + (value.end - value.start) > limit
                )
            ]
            if len(new_domain) != len(old_domain):
                frame.pruned.append((other, old_domain))
                self.domains[other] = new_domain
                if not new_domain:
                    return False
        return True

    # --- AC-3 ---

    def arc_consistency(self) -> Set[int]:
        """Enforce arc consistency; returns variables whose domain emptied."""
        emptied: Set[int] = set()
        queue = deque((i, j) for i in self.variables for j in self.neighbors[i])
        queued = set(queue)
        while queue:
            arc = queue.popleft()
            queued.discard(arc)
            i, j = arc
            if i in emptied or j in emptied:
                continue
            if self._revise(i, j):
                if not self.domains[i]:
                    emptied.add(i)
                    continue
                for k in self.neighbors[i]:
                    if k != j and k not in emptied and (k, i) not in queued:
                        queue.append((k, i))
                        queued.add((k, i))
        return emptied

    def _revise(self, i: int, j: int) -> bool:
        unit_i, unit_j = self.units[i], self.units[j]
        domain_j = self.domains[j]
        supported = [
            x
            for x in self.domains[i]
            if any(not placements_clash(unit_i, x, unit_j, y) for y in domain_j)
        ]
        if len(supported) == len(self.domains[i]):
            return False
        self.domains[i] = supported
        return True

    # --- Search loop ---

    def _outcome(self, exhausted: bool, reason: str, complete: bool = False):
        assignment = list(self.assignment) if complete else list(self.best)
        return CSPOutcome(
            assignment=assignment,
            exhausted=exhausted,
            backtrack_steps=self.steps,
            complete=complete,
            termination_reason=reason,
            nodes=self.nodes,
        )

    def _record_best(self) -> None:
        if self.placed > self.best_count:
            self.best_count = self.placed
            self.best = list(self.assignment)

    def run(self, max_backtrack_steps: int) -> CSPOutcome:
        reporter = self.context.reporter
        total = len(self.variables)
        if max_backtrack_steps <= 0:
            logger.info("CSP step budget is zero; returning the initial assignment")
            return self._outcome(True, "step_limit")

        pruned_by_ac3: Set[int] = set()
        if self.solver.use_ac3:
            pruned_by_ac3 = self.arc_consistency()
            for var in pruned_by_ac3:
                self.unassigned.discard(var)
            if pruned_by_ac3:
                logger.info(f"AC-3 emptied {len(pruned_by_ac3)} domains")

        reporter.report(0, "Starting constraint search")
        interval = config.search.csp_progress_interval
        first = self.select_variable()
        if first is None:
            outcome = self._outcome(False, "completed", complete=True)
            outcome.pruned_by_ac3 = pruned_by_ac3
            return outcome

        stack: List[_Frame] = [_Frame(first, self.order_values(first))]
        loops = 0
        while stack:
            loops += 1
            reason = self.context.stop_reason()
            if reason:
                logger.info(f"CSP search stopped: {reason}")
                return self._finish(self._outcome(False, reason), pruned_by_ac3)
            if loops % interval == 0:
                reporter.report(
                    self.placed / total * 100,
                    f"Constraint search: {self.placed}/{total} sessions placed",
                )

            frame = stack[-1]
            if frame.placement is not None:
                self.unassign(frame)

            advanced = False
            unit = self.units[frame.var]
            while frame.pos < len(frame.values):
                value = frame.values[frame.pos]
                frame.pos += 1
                if not self.occupancy.accepts(unit, value):
                    continue
                self.assign(frame.var, value)
                frame.placement = value
                self.nodes += 1
                if self.solver.forward_checking and not self.forward_check(
                    frame.var, value, frame
                ):
                    self.unassign(frame)
                    continue
                advanced = True
                break

            if advanced:
                self._record_best()
                next_var = self.select_variable()
                if next_var is None:
                    reporter.report(100, "Constraint search complete")
                    return self._finish(
                        self._outcome(False, "completed", complete=True),
                        pruned_by_ac3,
                    )
                stack.append(_Frame(next_var, self.order_values(next_var)))
            else:
                stack.pop()
                self.steps += 1
                if self.steps >= max_backtrack_steps:
                    logger.info(
                        f"CSP exhausted its budget of {max_backtrack_steps} "
                        f"backtrack steps with {self.best_count}/{total} placed"
                    )
                    return self._finish(self._outcome(True, "step_limit"), pruned_by_ac3)

        logger.info(
            f"CSP search space exhausted with {self.best_count}/{total} placed"
        )
        return self._finish(self._outcome(False, "infeasible"), pruned_by_ac3)

    @staticmethod
    def _finish(outcome: CSPOutcome, pruned_by_ac3: Set[int]) -> CSPOutcome:
        outcome.pruned_by_ac3 = pruned_by_ac3
        return outcome
