"""Per-operation timing and error counters.

An :class:`OperationMetrics` instance is owned by the server context and
shared by every tool. Snapshots report, per operation name, the call count,
the error count and the average duration in milliseconds, plus an
``uptime_ms`` pseudo-operation.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class _OperationStats:
    count: int = 0
    errors: int = 0
    total_time_ms: float = 0.0


class OperationMetrics:
    """Thread-safe operation counters.

    Example:
        >>> metrics = OperationMetrics()
        >>> finish = metrics.start_operation("read_file")
        >>> finish()
        >>> metrics.get_metrics()["read_file"]["count"]
        1
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._lock = threading.Lock()
        self._operations: dict[str, _OperationStats] = {}
        self._start_time = clock()

    def start_operation(self, name: str) -> Callable[[], None]:
        """Count a call to ``name`` and return a function that stops its timer.

        The returned finisher is idempotent; calling it twice records the
        duration once.
        """
        with self._lock:
            self._operations.setdefault(name, _OperationStats()).count += 1
        started = self._clock()
        finished = False

        def finish() -> None:
            nonlocal finished
            if finished:
                return
            finished = True
            elapsed_ms = (self._clock() - started) * 1000.0
            with self._lock:
                self._operations.setdefault(name, _OperationStats()).total_time_ms += elapsed_ms

        return finish

    def record_error(self, name: str) -> None:
        with self._lock:
            self._operations.setdefault(name, _OperationStats()).errors += 1

    def get_metrics(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every operation plus ``uptime_ms``."""
        with self._lock:
            snapshot = {
                name: {
                    "count": stats.count,
                    "errors": stats.errors,
                    "avg_time_ms": stats.total_time_ms / stats.count if stats.count else 0.0,
                }
                for name, stats in self._operations.items()
            }
            snapshot["uptime_ms"] = {
                "count": 1,
                "errors": 0,
                "avg_time_ms": (self._clock() - self._start_time) * 1000.0,
            }
        return snapshot

    def reset(self) -> None:
        """Drop every counter and restart the uptime clock."""
        with self._lock:
            self._operations.clear()
            self._start_time = self._clock()


class MetricsReporter:
    """Logs a metrics snapshot every ``interval_seconds`` on a daemon thread."""

    def __init__(self, metrics: OperationMetrics, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.metrics = metrics
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="secure-fs-metrics", daemon=True
        )
        self._thread.start()
        logger.debug(f"Metrics reporter started (interval: {self.interval_seconds}s)")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval_seconds + 1)
            self._thread = None

    def report(self) -> dict[str, dict[str, Any]]:
        snapshot = self.metrics.get_metrics()
        logger.info(f"Performance metrics: {snapshot}")
        return snapshot

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.report()
