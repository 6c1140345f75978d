# timetable_engine/utils/__init__.py

"""Validation, logging and performance helpers."""

from .logging import RunLoggerAdapter, SchedulingPhase, run_logger
from .performance import ResourceMonitor, TimingMetrics
from .validation import (
    SnapshotValidator,
    ValidationIssue,
    ValidationResult,
    load_settings,
    load_snapshot,
    validate_snapshot,
)

__all__ = [
    "RunLoggerAdapter",
    "SchedulingPhase",
    "run_logger",
    "ResourceMonitor",
    "TimingMetrics",
    "SnapshotValidator",
    "ValidationIssue",
    "ValidationResult",
    "load_settings",
    "load_snapshot",
    "validate_snapshot",
]
