# timetable_engine/utils/logging.py

"""
Run-scoped logging helpers: a logger adapter that tags every record with
the run id, and phase banners with timing.
"""

import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, MutableMapping, Optional, Tuple

from ..config import get_logger


class SchedulingPhase(Enum):
    """Phases of a generation run for context logging"""

    VALIDATION = "validation"
    DATA_PREPARATION = "data_preparation"
    INITIALIZATION = "initialization"
    SOLVING = "solving"
    CONFLICT_RESOLUTION = "conflict_resolution"
    CONFLICT_DETECTION = "conflict_detection"
    FINALIZATION = "finalization"


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes messages with ``[run <id>]`` and records phase durations."""

    def __init__(self, logger: logging.Logger, run_id: str, **extra: Any):
        super().__init__(logger, {"run_id": run_id, **extra})
        self.run_id = run_id
        self.phase_durations: Dict[str, float] = {}

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[run {self.run_id}] {msg}", kwargs

    @contextmanager
    def phase(
        self, phase: SchedulingPhase, context: Optional[Dict[str, Any]] = None
    ) -> Iterator[None]:
        """Log the start and end of a phase with its duration"""
        suffix = f" {context}" if context else ""
        self.info(f"Starting {phase.value} phase{suffix}")
        started = time.time()
        try:
            yield
        finally:
            duration = time.time() - started
            self.phase_durations[phase.value] = duration
            self.info(f"Completed {phase.value} phase in {duration:.3f}s")


def run_logger(name: str, run_id: str) -> RunLoggerAdapter:
    """Adapter over ``timetable_engine.<name>`` for one run."""
    return RunLoggerAdapter(get_logger(name), run_id)
