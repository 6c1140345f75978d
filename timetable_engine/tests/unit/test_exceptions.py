# timetable_engine/tests/unit/test_exceptions.py

"""
Tests for the engine error taxonomy.
"""

from timetable_engine.core.constraint_types import ConflictSeverity, ConflictType
from timetable_engine.core.exceptions import (
    ConcurrentGenerationError,
    DataValidationError,
    GenerationError,
    InvalidSettingsError,
    SystemFaultError,
    TimetableEngineError,
)
from timetable_engine.core.solution import Conflict


class TestErrorCodes:
    """Each error maps onto a conflict type"""

    def test_codes(self):
        assert DataValidationError().code == "data_error"
        assert InvalidSettingsError().code == "data_error"
        assert GenerationError().code == "generation_error"
        assert SystemFaultError().code == "system_error"
        assert ConcurrentGenerationError("tt-1").code == "generation_in_progress"

    def test_hierarchy(self):
        assert issubclass(InvalidSettingsError, DataValidationError)
        assert issubclass(ConcurrentGenerationError, TimetableEngineError)

    def test_conflict_from_error(self):
        error = GenerationError("2 of 5 sessions could not be placed")

        conflict = Conflict.from_error(error, courses=["c1"])

        assert conflict.type == ConflictType.GENERATION_ERROR
        assert conflict.severity == ConflictSeverity.CRITICAL
        assert conflict.involved_entities.courses == ("c1",)


class TestErrorPayloads:
    def test_issues_and_to_dict(self):
        error = DataValidationError("Bad snapshot", details=["Course 'c1': no teachers"])

        payload = error.to_dict()["error"]

        assert error.issues == ["Course 'c1': no teachers"]
        assert payload["type"] == "DataValidationError"
        assert payload["code"] == "data_error"
        assert payload["details"] == ["Course 'c1': no teachers"]
        assert payload["cause"] is None

    def test_wrap_keeps_cause(self):
        cause = ZeroDivisionError("division by zero")

        error = SystemFaultError.wrap(cause, context={"run_id": "abc"})

        assert error.cause is cause
        assert error.message == "division by zero"
        assert "run_id" in str(error)

    def test_wrap_uses_class_name_for_empty_message(self):
        assert SystemFaultError.wrap(KeyError()).message == "KeyError"

    def test_concurrent_generation_message(self):
        error = ConcurrentGenerationError("tt-1")

        assert error.timetable_id == "tt-1"
        assert "tt-1" in error.message
        assert error.context == {"timetable_id": "tt-1"}

    def test_with_context_chains(self):
        error = GenerationError("failed").with_context(phase="solving")

        assert error.context == {"phase": "solving"}
