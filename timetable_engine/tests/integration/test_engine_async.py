# timetable_engine/tests/integration/test_engine_async.py

"""
Tests for asynchronous generation handles and the one-run-per-timetable rule.
"""

import pytest

from timetable_engine.core.exceptions import ConcurrentGenerationError
from timetable_engine.core.metrics import GenerationStatus
from timetable_engine.engine import RunStatus, TimetableEngine


@pytest.fixture
def engine():
    return TimetableEngine()


class TestTimetableEngine:
    """Tests for run lifecycle on the event loop"""

    @pytest.mark.asyncio
    async def test_generate(self, engine, snapshot_data, fast_settings_data):
        result = await engine.generate("tt-1", snapshot_data, fast_settings_data)

        assert result.status == GenerationStatus.COMPLETED
        assert len(result.schedule) == 7
        assert engine.active_runs == []

    @pytest.mark.asyncio
    async def test_second_run_for_same_timetable_is_rejected(
        self, engine, snapshot_data, fast_settings_data
    ):
        handle = engine.start_generation("tt-1", snapshot_data, fast_settings_data)

        with pytest.raises(ConcurrentGenerationError) as exc_info:
            engine.start_generation("tt-1", snapshot_data, fast_settings_data)
        other = engine.start_generation("tt-2", snapshot_data, fast_settings_data)

        assert exc_info.value.timetable_id == "tt-1"
        assert sorted(engine.active_runs) == ["tt-1", "tt-2"]
        await handle.result()
        await other.result()

    @pytest.mark.asyncio
    async def test_timetable_can_run_again_after_completion(
        self, engine, snapshot_data, fast_settings_data
    ):
        first = engine.start_generation("tt-1", snapshot_data, fast_settings_data)
        await first.result()

        second = engine.start_generation("tt-1", snapshot_data, fast_settings_data)
        result = await second.result()

        assert first.status == RunStatus.COMPLETED
        assert second.done()
        assert second.run_id != first.run_id
        assert result.run_id == second.run_id
        assert second.progress.percentage == 100.0

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, engine, snapshot_data, fast_settings_data):
        handle = engine.start_generation("tt-1", snapshot_data, fast_settings_data)
        handle.cancel()

        result = await handle.result()

        assert handle.cancel_requested
        assert result.cancelled
        assert result.status == GenerationStatus.DRAFT
        assert handle.status == RunStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_by_timetable_id(self, engine, snapshot_data, fast_settings_data):
        handle = engine.start_generation("tt-1", snapshot_data, fast_settings_data)

        assert engine.get_handle("tt-1") is handle
        assert engine.cancel("tt-1")
        assert not engine.cancel("tt-unknown")
        result = await handle.result()

        assert result.cancelled
        assert engine.get_handle("tt-1") is None
        assert not engine.cancel("tt-1")

    @pytest.mark.asyncio
    async def test_data_error_marks_handle_failed(self, engine, snapshot_data):
        snapshot_data["courses"][0]["assignedTeachers"] = ["tX"]

        handle = engine.start_generation("tt-1", snapshot_data)
        result = await handle.result()

        assert result.status == GenerationStatus.DRAFT
        assert handle.status == RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_progress_callback_runs(self, engine, snapshot_data, fast_settings_data):
        updates = []

        await engine.generate(
            "tt-1",
            snapshot_data,
            fast_settings_data,
            lambda percentage, step, *rest: updates.append((percentage, step)),
        )

        assert updates[-1] == (100.0, "Generation finished")
        assert any(step == "Detecting conflicts" for _, step in updates)


class TestStartGenerationOutsideLoop:
    def test_requires_running_loop(self, snapshot_data):
        with pytest.raises(RuntimeError):
            TimetableEngine().start_generation("tt-1", snapshot_data)
