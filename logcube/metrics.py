"""Metrics collector: thread-safe counters for upload rounds and batch delivery."""

import threading
import time
from collections import deque


class MetricsCollector:
    """Collects counters about delivery to the cube endpoint."""

    def __init__(self, window: int = 1000) -> None:
        self._lock = threading.Lock()
        self._rounds: int = 0
        self._batches_sent: int = 0
        self._batches_failed: int = 0
        self._events_delivered: int = 0
        self._events_requeued: int = 0
        # Average and p95 cover only the most recent *window* sends
        self._send_times: deque[float] = deque(maxlen=window)
        self._start_time = time.monotonic()

    def record_batch(self, size: int, success: bool, send_time_ms: float) -> None:
        """Record one delivery attempt.

        Args:
            size: Number of events in the batch.
            success: Whether the endpoint accepted it.
            send_time_ms: Time taken by the POST, in milliseconds.
        """
        with self._lock:
            if success:
                self._batches_sent += 1
                self._events_delivered += size
            else:
                self._batches_failed += 1
                self._events_requeued += size
            self._send_times.append(send_time_ms)

    def record_round(self) -> None:
        with self._lock:
            self._rounds += 1

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all counters."""
        with self._lock:
            send_times = list(self._send_times)
            avg_send = sum(send_times) / len(send_times) if send_times else 0.0
            return {
                "rounds": self._rounds,
                "batches_sent": self._batches_sent,
                "batches_failed": self._batches_failed,
                "events_delivered": self._events_delivered,
                "events_requeued": self._events_requeued,
                "avg_send_time_ms": avg_send,
                "p95_send_time_ms": self._percentile(send_times, 95),
                "uptime_seconds": time.monotonic() - self._start_time,
            }

    @staticmethod
    def _percentile(data: list, pct: float) -> float:
        """Interpolated percentile of *data*, or 0.0 if empty."""
        if not data:
            return 0.0

        sorted_data = sorted(data)
        n = len(sorted_data)
        if n == 1:
            return float(sorted_data[0])

        idx = (pct / 100) * (n - 1)
        lower = int(idx)
        upper = lower + 1
        fraction = idx - lower
        if upper >= n:
            return float(sorted_data[-1])

        return float(sorted_data[lower] + fraction * (sorted_data[upper] - sorted_data[lower]))
