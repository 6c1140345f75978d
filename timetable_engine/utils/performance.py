# timetable_engine/utils/performance.py

"""
Performance monitoring for generation runs: wall and CPU timing per
operation and peak resident memory sampled by a background thread.
"""

import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass
class TimingMetrics:
    """Timing of one operation"""

    start_time: float
    end_time: Optional[float] = None
    duration: Optional[float] = None
    cpu_time: Optional[float] = None

    def finalize(self):
        """Finalize timing measurements"""
        if self.end_time is None:
            self.end_time = time.time()
        self.duration = self.end_time - self.start_time


@dataclass
class MemoryMetrics:
    """Memory usage metrics"""

    rss_mb: float  # Resident Set Size in MB
    vms_mb: float  # Virtual Memory Size in MB
    percent: float

    @classmethod
    def sample(cls, process: psutil.Process) -> "MemoryMetrics":
        info = process.memory_info()
        return cls(
            rss_mb=info.rss / (1024 * 1024),
            vms_mb=info.vms / (1024 * 1024),
            percent=process.memory_percent(),
        )


class ResourceMonitor:
    """
    Tracks timings and peak memory of the current process for one run.

    Use as a context manager; sampling starts on enter and stops on exit.
    """

    def __init__(self, enabled: bool = True, sample_interval: float = 0.5):
        self.enabled = enabled
        self.sample_interval = sample_interval
        self._process = psutil.Process() if enabled else None
        self._timings: Dict[str, List[TimingMetrics]] = defaultdict(list)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.peak_rss_mb = 0.0

    def __enter__(self) -> "ResourceMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self.enabled or self._thread is not None:
            return
        self._sample()
        self._thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=self.sample_interval * 2)
        self._thread = None
        self._sample()

    def _monitor_loop(self) -> None:
        while not self._stop.wait(self.sample_interval):
            self._sample()

    def _sample(self) -> None:
        try:
            metrics = MemoryMetrics.sample(self._process)
        except psutil.Error as e:
            logger.debug(f"Memory sampling failed: {e}")
            return
        with self._lock:
            self.peak_rss_mb = max(self.peak_rss_mb, metrics.rss_mb)

    @contextmanager
    def time_operation(self, operation_name: str) -> Iterator[TimingMetrics]:
        """Context manager for timing operations"""
        timing = TimingMetrics(start_time=time.time())
        start_cpu = time.process_time()
        try:
            yield timing
        finally:
            timing.finalize()
            timing.cpu_time = time.process_time() - start_cpu
            with self._lock:
                self._timings[operation_name].append(timing)
            logger.debug(f"{operation_name} took {timing.duration:.3f}s")

    def timing_summary(self) -> Dict[str, float]:
        with self._lock:
            return {
                name: sum(t.duration or 0.0 for t in timings)
                for name, timings in self._timings.items()
            }

    @property
    def peak_memory_mb(self) -> Optional[float]:
        if not self.enabled:
            return None
        return round(self.peak_rss_mb, 2)
