from __future__ import annotations

import unittest

from companion.observability.telemetry import (
    counter,
    get_counter,
    get_latencies,
    reset_telemetry,
    time_block,
)


class TelemetryTests(unittest.TestCase):
    def setUp(self):
        reset_telemetry()

    def test_time_block_records_latency(self):
        metric_name = "github.latency"

        with time_block(metric_name):
            pass

        latencies = get_latencies(metric_name)
        self.assertEqual(len(latencies), 1)
        self.assertGreaterEqual(latencies[0], 0.0)

    def test_time_block_records_on_error(self):
        metric_name = "canvas.latency"

        with self.assertRaises(RuntimeError), time_block(metric_name):
            raise RuntimeError("boom")

        self.assertEqual(len(get_latencies(metric_name)), 1)

    def test_counter_increments(self):
        before = counter("test.counter", 0)
        counter("test.counter")
        after = counter("test.counter", 0)
        self.assertEqual(after, before + 1)
        self.assertEqual(get_counter("test.counter"), 1)

    def test_reset_clears_everything(self):
        counter("deadline_bridge.github.created", 3)
        with time_block("github.latency"):
            pass

        reset_telemetry()

        self.assertEqual(get_counter("deadline_bridge.github.created"), 0)
        self.assertEqual(get_latencies("github.latency"), [])


if __name__ == "__main__":
    unittest.main()
