"""Tests for the MetricsCollector."""

from logcube.metrics import MetricsCollector


class TestMetricsCollector:
    def test_initial_snapshot(self):
        snap = MetricsCollector().snapshot()
        assert snap["rounds"] == 0
        assert snap["batches_sent"] == 0
        assert snap["avg_send_time_ms"] == 0.0
        assert snap["p95_send_time_ms"] == 0.0

    def test_success_and_failure_counted_separately(self):
        m = MetricsCollector()
        m.record_round()
        m.record_batch(500, True, 10.0)
        m.record_batch(200, False, 30.0)

        snap = m.snapshot()
        assert snap["rounds"] == 1
        assert snap["batches_sent"] == 1
        assert snap["batches_failed"] == 1
        assert snap["events_delivered"] == 500
        assert snap["events_requeued"] == 200
        assert snap["avg_send_time_ms"] == 20.0

    def test_percentile(self):
        assert MetricsCollector._percentile([1, 2, 3, 4, 5], 50) == 3.0
        assert MetricsCollector._percentile([7], 95) == 7.0
        assert MetricsCollector._percentile([], 95) == 0.0

    def test_send_time_window_is_bounded(self):
        m = MetricsCollector(window=100)
        for _ in range(5000):
            m.record_batch(1, True, 50.0)
        for _ in range(100):
            m.record_batch(1, False, 10.0)

        assert len(m._send_times) == 100
        snap = m.snapshot()
        assert snap["batches_sent"] == 5000
        assert snap["batches_failed"] == 100
        assert snap["avg_send_time_ms"] == 10.0
        assert snap["p95_send_time_ms"] == 10.0

    def test_default_window(self):
        m = MetricsCollector()
        for _ in range(2500):
            m.record_batch(1, True, 1.0)
        assert len(m._send_times) == 1000
