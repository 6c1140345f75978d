# timetable_engine/tests/unit/test_utils.py

"""
Tests for resource monitoring and run-scoped logging.
"""

import logging

from timetable_engine.utils.logging import SchedulingPhase, run_logger
from timetable_engine.utils.performance import ResourceMonitor


class TestResourceMonitor:
    """Tests for timing and memory sampling"""

    def test_time_operation_records_duration(self):
        with ResourceMonitor(sample_interval=0.05) as monitor:
            with monitor.time_operation("solve") as timing:
                sum(range(1000))
            with monitor.time_operation("solve"):
                pass

        assert timing.duration is not None and timing.duration >= 0
        assert timing.cpu_time is not None
        assert set(monitor.timing_summary()) == {"solve"}
        assert monitor.peak_memory_mb > 0

    def test_disabled_monitor_still_times(self):
        monitor = ResourceMonitor(enabled=False)

        with monitor:
            with monitor.time_operation("detect"):
                pass

        assert monitor.peak_memory_mb is None
        assert "detect" in monitor.timing_summary()


class TestRunLogger:
    def test_messages_are_tagged_with_run_id(self, caplog):
        log = run_logger("tests.run", "abc123")

        with caplog.at_level(logging.INFO, logger="timetable_engine.tests.run"):
            log.info("Solving 7 sessions")

        assert "[run abc123] Solving 7 sessions" in caplog.messages
        assert caplog.records[-1].run_id == "abc123"

    def test_phase_records_duration(self, caplog):
        log = run_logger("tests.phase", "abc123")

        with caplog.at_level(logging.INFO, logger="timetable_engine.tests.phase"):
            with log.phase(SchedulingPhase.SOLVING, {"algorithm": "greedy"}):
                pass

        assert set(log.phase_durations) == {"solving"}
        assert log.phase_durations["solving"] >= 0
        assert any("Starting solving phase" in m for m in caplog.messages)
        assert any("Completed solving phase" in m for m in caplog.messages)
