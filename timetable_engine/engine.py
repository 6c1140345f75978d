# timetable_engine/engine.py

"""
Timetable generation entry points.

:class:`GenerationRunner` executes one run synchronously and always returns
a terminal :class:`GenerationResult`; data errors, unplaced sessions and
unexpected faults are reported as conflicts on a ``draft`` result rather
than raised. :class:`TimetableEngine` runs generations as asyncio tasks
backed by worker threads and hands the caller a :class:`GenerationHandle`
for progress, cancellation and the final result. At most one run per
timetable id is active on an engine at any time.
"""

import asyncio
import threading
import time
import uuid
from concurrent.futures import Executor
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .analysis.conflict_detector import ConflictDetector
from .analysis.conflict_resolver import ConflictResolver
from .analysis.pre_solve_analyzer import PreSolveAnalyzer
from .analysis.quality_scorer import QualityScorer
from .analysis.statistics import compute_statistics
from .config import config, get_logger
from .core.constraint_types import ConflictSeverity, ConflictType
from .core.exceptions import (
    ConcurrentGenerationError,
    DataValidationError,
    GenerationError,
    SystemFaultError,
    TimetableEngineError,
)
from .core.metrics import GenerationMetrics, GenerationResult, GenerationStatus, QualityScore
from .core.problem_model import DomainSnapshot
from .core.settings import GenerationSettings
from .core.solution import Conflict, InvolvedEntities, Schedule
from .solvers.base import (
    CancellationToken,
    ProgressCallback,
    ProgressReporter,
    ProgressUpdate,
    RunContext,
    SolverResult,
)
from .solvers.domain_builder import ProblemInstance, build_problem
from .solvers.factory import create_solver
from .utils.logging import SchedulingPhase, run_logger
from .utils.performance import ResourceMonitor
from .utils.validation import load_settings, load_snapshot, validate_snapshot

logger = get_logger("engine")

SnapshotInput = Union[DomainSnapshot, Mapping[str, Any]]
SettingsInput = Optional[Union[GenerationSettings, Mapping[str, Any]]]


class RunStatus(Enum):
    """Lifecycle state of a generation handle"""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class GenerationRunner:
    """One synchronous generation run. ``run`` never raises."""

    def __init__(
        self,
        snapshot: SnapshotInput,
        settings: SettingsInput = None,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
        run_id: Optional[str] = None,
    ):
        self.snapshot_input = snapshot
        self.settings_input = settings
        self.token = token or CancellationToken()
        self.run_id = run_id or uuid.uuid4().hex
        self.reporter = ProgressReporter([progress] if progress else [])
        self.log = run_logger("engine", self.run_id)

        # Best known state, used when the run has to stop on an error
        self._snapshot: Optional[DomainSnapshot] = None
        self._settings: Optional[GenerationSettings] = None
        self._problem: Optional[ProblemInstance] = None
        self._solver_result: Optional[SolverResult] = None

    def run(self) -> GenerationResult:
        started_at = datetime.now()
        started = time.monotonic()
        with ResourceMonitor(enabled=config.monitor_memory) as monitor:
            try:
                result = self._run(started_at, started, monitor)
            except DataValidationError as e:
                self.log.warning(f"Input rejected: {e.message}")
                result = self._error_result(e, started_at, started, monitor)
            except Exception as e:
                self.log.error(f"Generation failed: {e}", exc_info=True)
                error = SystemFaultError.wrap(e, context={"run_id": self.run_id})
                result = self._error_result(error, started_at, started, monitor)
        self.reporter.report(100, "Generation finished")
        return result

    def _run(self, started_at, started, monitor: ResourceMonitor) -> GenerationResult:
        with self.log.phase(SchedulingPhase.VALIDATION):
            self.reporter.report(5, "Validating input")
            settings = load_settings(self.settings_input)
            self._settings = settings
            snapshot = load_snapshot(self.snapshot_input)
            self._snapshot = snapshot
            validate_snapshot(snapshot)

        with self.log.phase(SchedulingPhase.DATA_PREPARATION):
            self.reporter.report(10, "Building problem")
            with monitor.time_operation("build_problem"):
                problem = build_problem(snapshot, settings)
            self._problem = problem

        if problem.size == 0:
            self.log.info("No sessions to schedule")
            return self._finish(
                problem, SolverResult(settings.algorithm.value, []), [],
                started_at, started, monitor,
            )

        with self.log.phase(SchedulingPhase.INITIALIZATION):
            self.reporter.report(20, f"Initializing {settings.algorithm.value} solver")
            analyzer = PreSolveAnalyzer(problem)
            analyzer.analyze()
            if settings.auto_tune:
                settings = analyzer.tune(settings)
                self._settings = settings
                problem.settings = settings
            solver = create_solver(settings)
            context = RunContext.create(settings, token=self.token)
            context.reporter = self.reporter.window(20, 90)

        with self.log.phase(SchedulingPhase.SOLVING):
            with monitor.time_operation("solve"):
                result = solver.solve(problem, settings, context)
            self._solver_result = result

        placements = result.placements
        notes: List[str] = []
        if settings.resolve_conflicts and not result.cancelled:
            with self.log.phase(SchedulingPhase.CONFLICT_RESOLUTION):
                resolution = ConflictResolver(problem).resolve(placements)
                placements = resolution.placements
                notes = [m.describe() for m in resolution.moves]
            result.placements = placements

        return self._finish(problem, result, notes, started_at, started, monitor)

    # --- Result assembly ---

    def _unplaced_conflicts(
        self, problem: ProblemInstance, result: SolverResult
    ) -> List[Conflict]:
        unplaced = [i for i, p in enumerate(result.placements) if p is None]
        if not unplaced:
            return []
        error = GenerationError(
            f"{len(unplaced)} of {problem.size} sessions could not be placed",
            context={"algorithm": result.algorithm},
        )
        conflicts = [
            Conflict.from_error(
                error,
                courses=sorted({problem.units[i].course_id for i in unplaced}),
            )
        ]
        for index in unplaced:
            unit = problem.units[index]
            reason = problem.unplaceable.get(
                index, "no placement consistent with the rest of the schedule was found"
            )
            if result.cancelled:
                reason = "generation was cancelled before it was placed"
            conflicts.append(
                Conflict(
                    type=ConflictType.GENERATION_ERROR,
                    severity=ConflictSeverity.HIGH,
                    description=f"Session {unit.id} not placed: {reason}",
                    involved_entities=InvolvedEntities(courses=(unit.course_id,)),
                )
            )
        return conflicts

    def _finish(
        self,
        problem: ProblemInstance,
        result: SolverResult,
        resolution_notes: Sequence[str],
        started_at: datetime,
        started: float,
        monitor: ResourceMonitor,
    ) -> GenerationResult:
        settings = problem.settings
        snapshot = problem.snapshot

        with self.log.phase(SchedulingPhase.CONFLICT_DETECTION):
            self.reporter.report(92, "Detecting conflicts")
            schedule = problem.decode(result.placements)
            detected = ConflictDetector(snapshot, settings).detect(schedule)
            unplaced_conflicts = self._unplaced_conflicts(problem, result)
            conflicts = detected + unplaced_conflicts

        with self.log.phase(SchedulingPhase.FINALIZATION):
            scorer = QualityScorer(settings)
            if problem.size == 0:
                quality = QualityScore.vacuous()
            else:
                quality = scorer.score(schedule, conflicts, snapshot)

            overlaps = [c for c in detected if c.is_overlap]
            complete = (
                not result.cancelled
                and not unplaced_conflicts
                and not overlaps
            )
            status = GenerationStatus.COMPLETED if complete else GenerationStatus.DRAFT

            metrics = self._metrics(
                settings, result, problem.size, conflicts, quality,
                started_at, started, monitor,
            )
            if resolution_notes:
                metrics.parameters["conflictResolution"] = list(resolution_notes)

            self.log.info(
                f"Generation {status.value}: {len(schedule)}/{problem.size} placed, "
                f"{len(conflicts)} conflicts, quality {quality.overall_score:.1f}"
            )
            return GenerationResult(
                run_id=self.run_id,
                status=status,
                schedule=schedule,
                conflicts=conflicts,
                metrics=metrics,
                quality=quality,
                statistics=compute_statistics(schedule, snapshot, settings),
                recommendations=scorer.recommendations(quality) if problem.size else [],
                cancelled=result.cancelled,
            )

    def _metrics(
        self,
        settings: Optional[GenerationSettings],
        result: Optional[SolverResult],
        total_units: int,
        conflicts: Sequence[Conflict],
        quality: QualityScore,
        started_at: datetime,
        started: float,
        monitor: ResourceMonitor,
    ) -> GenerationMetrics:
        violated = len(conflicts)
        satisfied = max(0, total_units - violated)
        rate = satisfied / total_units * 100.0 if total_units else 100.0
        if result is None:
            algorithm = settings.algorithm.value if settings else "unknown"
            result = SolverResult(algorithm, [], termination_reason="error")
        return GenerationMetrics(
            algorithm=result.algorithm,
            start_time=started_at.isoformat(),
            end_time=datetime.now().isoformat(),
            duration=time.monotonic() - started,
            iterations=result.iterations,
            generations=result.generations,
            convergence_rate=result.convergence_rate,
            final_fitness=result.final_fitness,
            constraints_satisfied=satisfied,
            constraints_violated=violated,
            satisfaction_rate=rate,
            backtrack_steps=result.backtrack_steps,
            exhausted=result.exhausted,
            termination_reason=result.termination_reason,
            fallback_used=result.fallback_used,
            peak_memory_mb=monitor.peak_memory_mb or 0.0,
            estimated=quality.estimated,
            parameters=(
                settings.model_dump(mode="json", by_alias=True) if settings else {}
            ),
        )

    def _error_result(
        self,
        error: TimetableEngineError,
        started_at: datetime,
        started: float,
        monitor: ResourceMonitor,
    ) -> GenerationResult:
        settings = self._settings or GenerationSettings()
        snapshot = self._snapshot or DomainSnapshot()

        description = error.message
        if isinstance(error, DataValidationError) and error.issues:
            description += ": " + "; ".join(str(i) for i in error.issues)
        conflicts = [
            Conflict(
                type=ConflictType(error.code),
                severity=ConflictSeverity.CRITICAL,
                description=description,
            )
        ]

        schedule = Schedule()
        result = self._solver_result
        if result is not None and self._problem is not None:
            schedule = self._problem.decode(result.placements)
            result.termination_reason = "error"

        scorer = QualityScorer(settings)
        quality = scorer.score(schedule, conflicts, snapshot)
        total_units = self._problem.size if self._problem is not None else 0
        return GenerationResult(
            run_id=self.run_id,
            status=GenerationStatus.DRAFT,
            schedule=schedule,
            conflicts=conflicts,
            metrics=self._metrics(
                self._settings, result, total_units, conflicts, quality,
                started_at, started, monitor,
            ),
            quality=quality,
            statistics=compute_statistics(schedule, snapshot, settings),
            recommendations=[],
            cancelled=self.token.cancelled,
        )


class GenerationHandle:
    """Caller's view of one running generation."""

    def __init__(
        self,
        timetable_id: str,
        run_id: str,
        token: CancellationToken,
        reporter: ProgressReporter,
    ):
        self.timetable_id = timetable_id
        self.run_id = run_id
        self._token = token
        self._reporter = reporter
        self._status = RunStatus.RUNNING
        self._task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        """Request cancellation; the run stops at its next iteration boundary."""
        self._token.cancel()

    @property
    def cancel_requested(self) -> bool:
        return self._token.cancelled

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def progress(self) -> Optional[ProgressUpdate]:
        return self._reporter.last

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def result(self) -> GenerationResult:
        return await asyncio.shield(self._task)

    def _finish(self, result: GenerationResult) -> None:
        if result.cancelled:
            self._status = RunStatus.CANCELLED
        elif any(
            c.type in (ConflictType.SYSTEM_ERROR, ConflictType.DATA_ERROR)
            for c in result.conflicts
        ):
            self._status = RunStatus.FAILED
        else:
            self._status = RunStatus.COMPLETED


class TimetableEngine:
    """
    Runs generations as asyncio tasks.

    Progress callbacks are invoked from the worker thread executing the run.
    """

    def __init__(self, executor: Optional[Executor] = None):
        self._executor = executor
        self._active: Dict[str, GenerationHandle] = {}
        self._lock = threading.Lock()

    @property
    def active_runs(self) -> List[str]:
        with self._lock:
            return [tid for tid, handle in self._active.items() if not handle.done()]

    def start_generation(
        self,
        timetable_id: str,
        snapshot: SnapshotInput,
        settings: SettingsInput = None,
        progress: Optional[ProgressCallback] = None,
    ) -> GenerationHandle:
        """
        Start a run for ``timetable_id`` on the running event loop.

        Raises:
            ConcurrentGenerationError: a run for this id is still active.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            current = self._active.get(timetable_id)
            if current is not None and not current.done():
                raise ConcurrentGenerationError(timetable_id)

            runner = GenerationRunner(snapshot, settings, progress)
            handle = GenerationHandle(
                timetable_id, runner.run_id, runner.token, runner.reporter
            )
            handle._task = loop.create_task(self._execute(handle, runner))
            self._active[timetable_id] = handle

        logger.info(f"Started generation {runner.run_id} for timetable {timetable_id}")
        return handle

    def get_handle(self, timetable_id: str) -> Optional[GenerationHandle]:
        with self._lock:
            handle = self._active.get(timetable_id)
        return handle if handle is not None and not handle.done() else None

    def cancel(self, timetable_id: str) -> bool:
        """Request cancellation of the active run for ``timetable_id``."""
        handle = self.get_handle(timetable_id)
        if handle is None:
            return False
        handle.cancel()
        logger.info(f"Cancellation requested for timetable {timetable_id}")
        return True

    async def _execute(
        self, handle: GenerationHandle, runner: GenerationRunner
    ) -> GenerationResult:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(self._executor, runner.run)
        except asyncio.CancelledError:
            runner.token.cancel()
            handle._status = RunStatus.CANCELLED
            raise
        finally:
            with self._lock:
                if self._active.get(handle.timetable_id) is handle:
                    del self._active[handle.timetable_id]
        handle._finish(result)
        return result

    async def generate(
        self,
        timetable_id: str,
        snapshot: SnapshotInput,
        settings: SettingsInput = None,
        progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        handle = self.start_generation(timetable_id, snapshot, settings, progress)
        return await handle.result()

    @staticmethod
    def generate_sync(
        snapshot: SnapshotInput,
        settings: SettingsInput = None,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        return GenerationRunner(snapshot, settings, progress, token).run()

    @staticmethod
    def detect_conflicts(
        schedule: Union[Schedule, Sequence[Any]],
        snapshot: Optional[SnapshotInput] = None,
        settings: SettingsInput = None,
    ) -> List[Conflict]:
        """Re-detect conflicts of an existing schedule."""
        if not isinstance(schedule, Schedule):
            schedule = Schedule.from_list(schedule)
        parsed_snapshot = load_snapshot(snapshot) if snapshot is not None else None
        parsed_settings = load_settings(settings) if settings is not None else None
        return ConflictDetector(parsed_snapshot, parsed_settings).detect(schedule)
