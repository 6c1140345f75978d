# timetable_engine/core/exceptions.py
"""Engine-level exceptions.

Every exception carries a machine friendly ``code`` matching the conflict
taxonomy used in generation results, so the engine boundary can convert a
raised error into a terminal result without string matching.
"""
from __future__ import annotations

from typing import Optional, Any, Dict
from datetime import datetime, timezone


class TimetableEngineError(Exception):
    """Base engine exception with structured metadata.

    Attributes
    ----------
    message
        Human readable message.
    code
        Machine friendly error code (snake_case).
    details
        Arbitrary extra data useful for debugging (issue lists, ids).
    timestamp
        UTC ISO timestamp when the exception was created.
    cause
        Optional underlying exception instance.
    context
        Optional lightweight context dict (run id, phase name, counts).
    """

    code: str = "system_error"

    def __init__(
        self,
        message: str = "A timetable engine error occurred",
        *,
        details: Optional[Any] = None,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}({self.code}): {self.message}"
        if self.context:
            base += f" | context={self.context}"
        if self.details is not None:
            base += f" | details={self.details}"
        if self.cause is not None:
            base += f" | cause={repr(self.cause)}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Return a serializable representation for logs and results."""
        return {
            "error": {
                "type": self.__class__.__name__,
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "context": self.context,
                "timestamp": self.timestamp,
                "cause": repr(self.cause) if self.cause is not None else None,
            }
        }

    def with_context(self, **kwargs: Any) -> "TimetableEngineError":
        """Attach contextual data and return self for chaining."""
        self.context.update(kwargs)
        return self


class DataValidationError(TimetableEngineError):
    """Snapshot entities are malformed or missing. Fatal for a run."""

    code = "data_error"

    def __init__(self, message: str = "Invalid input data", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)

    @property
    def issues(self) -> list:
        return list(self.details or [])


class InvalidSettingsError(DataValidationError):
    """Generation settings failed validation."""

    def __init__(
        self, message: str = "Invalid generation settings", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class GenerationError(TimetableEngineError):
    """A solver could not place one or more sessions."""

    code = "generation_error"


class SystemFaultError(TimetableEngineError):
    """Unexpected runtime fault inside the pipeline."""

    code = "system_error"

    @classmethod
    def wrap(
        cls, exc: BaseException, context: Optional[Dict[str, Any]] = None
    ) -> "SystemFaultError":
        """Create a SystemFaultError that wraps an arbitrary exception."""
        return cls(str(exc) or exc.__class__.__name__, cause=exc, context=context)


class ConcurrentGenerationError(TimetableEngineError):
    """A run is already active for the requested timetable id."""

    code = "generation_in_progress"

    def __init__(self, timetable_id: str, **kwargs: Any) -> None:
        super().__init__(
            f"Generation already in progress for timetable {timetable_id}",
            context={"timetable_id": timetable_id},
            **kwargs,
        )
        self.timetable_id = timetable_id
