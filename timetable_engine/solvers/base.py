# timetable_engine/solvers/base.py

"""
Common solver interface and the per-run context every solver receives:
progress reporting, cancellation, deadline and random source.
"""

import logging
import random
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..config import AlgorithmType
from ..core.problem_model import DomainSnapshot
from ..core.settings import GenerationSettings
from .domain_builder import Placement, ProblemInstance, build_problem

logger = logging.getLogger(__name__)

ProgressCallback = Callable[..., Any]


@dataclass(frozen=True)
class ProgressUpdate:
    percentage: float
    step: str
    generation: Optional[int] = None
    fitness: Optional[float] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "step": self.step,
            "generation": self.generation,
            "fitness": self.fitness,
            "timestamp": self.timestamp,
        }


class ProgressReporter:
    """
    Fire-and-forget progress fan-out.

    A reporter covers a window ``[start, end]`` of the overall run; solvers
    report 0-100 within their own phase and the reporter rescales. Callback
    failures are logged and never propagate into the solver.
    """

    def __init__(
        self,
        callbacks: Optional[List[ProgressCallback]] = None,
        start: float = 0.0,
        end: float = 100.0,
        _shared: Optional[Dict[str, Any]] = None,
    ):
        self.callbacks: List[ProgressCallback] = callbacks if callbacks is not None else []
        self.start = start
        self.end = end
        self._shared = _shared if _shared is not None else {"last": None}

    def add_progress_callback(self, callback: ProgressCallback) -> None:
        """Add callback for progress updates"""
        self.callbacks.append(callback)

    @property
    def last(self) -> Optional[ProgressUpdate]:
        return self._shared["last"]

    def window(self, start: float, end: float) -> "ProgressReporter":
        """Reporter for a sub-phase spanning ``start``-``end`` of this window."""
        span = self.end - self.start
        return ProgressReporter(
            self.callbacks,
            self.start + span * start / 100.0,
            self.start + span * end / 100.0,
            self._shared,
        )

    def report(
        self,
        percentage: float,
        step: str,
        generation: Optional[int] = None,
        fitness: Optional[float] = None,
    ) -> None:
        clamped = min(100.0, max(0.0, float(percentage)))
        overall = round(self.start + (self.end - self.start) * clamped / 100.0, 2)
        update = ProgressUpdate(overall, step, generation, fitness)
        self._shared["last"] = update

        for callback in self.callbacks:
            try:
                callback(overall, step, generation, fitness)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")


class CancellationToken:
    """Thread-safe cancellation flag checked at iteration boundaries."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class RunContext:
    reporter: ProgressReporter = field(default_factory=ProgressReporter)
    token: CancellationToken = field(default_factory=CancellationToken)
    deadline: Optional[float] = None  # time.monotonic() value
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def create(
        cls,
        settings: GenerationSettings,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> "RunContext":
        deadline = None
        if settings.time_limit_seconds:
            deadline = time.monotonic() + settings.time_limit_seconds
        return cls(
            reporter=ProgressReporter([progress] if progress else []),
            token=token or CancellationToken(),
            deadline=deadline,
            rng=random.Random(settings.random_seed),
        )

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def stop_reason(self) -> Optional[str]:
        """``"cancelled"`` or ``"time_limit"`` when the run must stop now."""
        if self.token.cancelled:
            return "cancelled"
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return "time_limit"
        return None

    def remaining_seconds(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def phase(
        self, start: float, end: float, time_budget: Optional[float] = None
    ) -> "RunContext":
        """Context for a sub-phase sharing token and random source."""
        deadline = self.deadline
        if time_budget is not None:
            phase_deadline = time.monotonic() + time_budget
            deadline = phase_deadline if deadline is None else min(deadline, phase_deadline)
        return RunContext(self.reporter.window(start, end), self.token, deadline, self.rng)


@dataclass
class SolverResult:
    """Best assignment a solver produced and how it got there."""

    algorithm: str
    placements: List[Optional[Placement]]
    iterations: int = 0
    generations: int = 0
    backtrack_steps: int = 0
    exhausted: bool = False
    initial_fitness: float = 0.0
    final_fitness: float = 0.0
    convergence_rate: float = 0.0
    termination_reason: str = "completed"
    fallback_used: bool = False
    fitness_history: List[float] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.termination_reason == "cancelled"

    @property
    def placed_count(self) -> int:
        return sum(1 for p in self.placements if p is not None)

    def unplaced(self) -> List[int]:
        return [i for i, p in enumerate(self.placements) if p is None]

    def is_complete(self) -> bool:
        return all(p is not None for p in self.placements)


def convergence_rate(initial: float, final: float) -> float:
    """Relative fitness improvement; 0 when the initial fitness is 0."""
    if initial == 0:
        return 0.0
    return (final - initial) / initial


class Solver(ABC):
    """Common capability of every solver variant."""

    algorithm: AlgorithmType

    @abstractmethod
    def solve(
        self,
        problem: ProblemInstance,
        settings: GenerationSettings,
        context: RunContext,
    ) -> SolverResult:
        """Place the problem's session units."""

    def run(
        self,
        snapshot: DomainSnapshot,
        settings: GenerationSettings,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> SolverResult:
        """Build the problem from a snapshot and solve it."""
        problem = build_problem(snapshot, settings)
        return self.solve(problem, settings, RunContext.create(settings, progress, token))
