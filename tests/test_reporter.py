import json
import unittest

from correlation import (
    CollectingSink,
    JsonlSink,
    LatencyReporter,
    LatencyResult,
    SummarySink,
    TableSink,
    TeeSink,
)
from models import MatchedPair, Origin, TcpFlowKey, UnmatchedPacket

KEY = TcpFlowKey(0xC0A80101, 0x08080808, 12345, 80, 1, 0)


class LatencyReporterTests(unittest.TestCase):
    def test_streams_results_and_closes_sink(self):
        sink = CollectingSink()
        events = [
            MatchedPair(KEY, 100_000_000, 100_000_250),
            UnmatchedPacket(KEY, Origin.SECOND, 7, 3),
            MatchedPair(KEY, 100_000_500, 100_000_300),
        ]
        counts = LatencyReporter(sink).report(iter(events))
        self.assertEqual(counts, (2, 1))
        self.assertEqual([r.latency_us for r in sink.latencies], [250, -200])
        self.assertAlmostEqual(sink.latencies[1].latency_seconds, -0.0002)
        self.assertEqual(sink.unmatched, [events[1]])
        self.assertTrue(sink.closed)

    def test_unknown_event_raises_and_still_closes(self):
        sink = CollectingSink()
        with self.assertRaises(TypeError):
            LatencyReporter(sink).report(["bogus"])
        self.assertTrue(sink.closed)


class SinkTests(unittest.TestCase):
    def setUp(self):
        self.lines = []

    def test_table_rows(self):
        sink = TableSink(self.lines.append)
        sink.on_latency(LatencyResult(KEY, 10, 25, 15))
        sink.on_unmatched(UnmatchedPacket(KEY, Origin.FIRST, 99))
        self.assertEqual(self.lines[0], TableSink.HEADER)
        self.assertEqual(len(self.lines), 4)
        self.assertTrue(self.lines[2].strip().startswith("15"))
        self.assertIn("192.168.1.1:12345 -> 8.8.8.8:80", self.lines[2])
        self.assertIn("miss", self.lines[3])
        self.assertIn("first", self.lines[3])

    def test_jsonl_rows(self):
        sink = JsonlSink(self.lines.append)
        sink.on_latency(LatencyResult(KEY, 10, 5, -5))
        sink.on_unmatched(UnmatchedPacket(KEY, Origin.SECOND, 42, 2))
        latency, miss = [json.loads(line) for line in self.lines]
        self.assertEqual(latency["type"], "latency")
        self.assertEqual(latency["latency_us"], -5)
        self.assertEqual(latency["key"]["dst_ip"], "8.8.8.8")
        self.assertEqual(miss, {"type": "unmatched", "origin": "second", "timestamp_us": 42,
                                "packet_id": 2, "key": KEY.to_dict()})

    def test_summary(self):
        summary = SummarySink()
        for t1, t2 in ((0, 100), (0, 300), (0, -50)):
            summary.on_latency(LatencyResult.from_pair(MatchedPair(KEY, t1, t2)))
        summary.on_unmatched(UnmatchedPacket(KEY, Origin.FIRST, 1))
        summary.on_unmatched(UnmatchedPacket(KEY, Origin.SECOND, 1))
        data = summary.to_dict()
        self.assertEqual(data["matched"], 3)
        self.assertEqual(data["latency_min_us"], -50)
        self.assertEqual(data["latency_max_us"], 300)
        self.assertEqual(data["jitter_us"], 350)
        self.assertAlmostEqual(data["latency_mean_us"], 350 / 3)
        self.assertEqual(data["first_capture_packets"], 4)
        self.assertAlmostEqual(data["miss_ratio"], 0.25)
        self.assertIn("Misses count: 1 (25.00%)", summary.format())

    def test_empty_summary(self):
        text = SummarySink().format()
        self.assertIn("Average latency (usec): n/a", text)
        self.assertIn("Packets count: 0", text)

    def test_tee(self):
        a, b = CollectingSink(), CollectingSink()
        tee = TeeSink(a, b)
        tee.on_latency(LatencyResult(KEY, 1, 2, 1))
        tee.close()
        self.assertEqual(len(a.latencies), 1)
        self.assertEqual(len(b.latencies), 1)
        self.assertTrue(a.closed and b.closed)


if __name__ == "__main__":
    unittest.main()
