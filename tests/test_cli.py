import json
import os
import shutil
import struct
import tempfile
import unittest

from click.testing import CliRunner

from correlation import CollectingSink, run_pipeline
from latency_cli.main import cli
from pcap_helpers import build_pcap, build_tcp_frame, build_udp_frame, write_pcap


class CorrelateCommandTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.runner = CliRunner()
        self.first = write_pcap(self._path("in.pcap"), [
            (100, 10, build_tcp_frame(seq=1)),
            (100, 30, build_tcp_frame(seq=2)),
            (100, 500, build_tcp_frame(seq=3)),
            (100, 600, build_tcp_frame(seq=4)),
        ])
        self.second = write_pcap(self._path("out.pcap"), [
            (100, 12, build_tcp_frame(seq=1)),
            (100, 35, build_tcp_frame(seq=2)),
            (100, 300, build_tcp_frame(seq=3)),
            (100, 700, build_tcp_frame(seq=99)),
        ], byte_order=">")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _path(self, name):
        return os.path.join(self.tmpdir, name)

    def _jsonl(self, *args):
        result = self.runner.invoke(cli, ["correlate", *args, "--format", "jsonl"])
        self.assertEqual(result.exit_code, 0, result.output)
        return [json.loads(line) for line in result.output.splitlines()]

    def test_jsonl_rows_and_summary(self):
        rows = self._jsonl(self.first, self.second)
        latencies = [r["latency_us"] for r in rows if r["type"] == "latency"]
        self.assertEqual(latencies, [2, 5, -200])
        unmatched = [(r["origin"], r["key"]["seq"]) for r in rows if r["type"] == "unmatched"]
        self.assertEqual(unmatched, [("first", 4), ("second", 99)])
        summary = rows[-1]
        self.assertEqual(summary["type"], "summary")
        self.assertEqual(summary["matched"], 3)
        self.assertEqual(summary["unmatched_first"], 1)
        self.assertEqual(summary["jitter_us"], 205)

    def test_table_output(self):
        result = self.runner.invoke(cli, ["correlate", self.first, self.second])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Latency(us)", result.output)
        self.assertIn("miss", result.output)
        self.assertIn("Packets count: 4. Misses count: 1 (25.00%)", result.output)

    def test_disable_printing_keeps_summary(self):
        result = self.runner.invoke(cli, ["correlate", "-p", self.first, self.second])
        self.assertEqual(result.exit_code, 0, result.output)
        lines = result.output.strip().splitlines()
        self.assertEqual(len(lines), 1)
        self.assertTrue(lines[0].startswith("Average latency (usec):"))

    def test_no_summary(self):
        rows = self._jsonl(self.first, self.second, "--no-summary")
        self.assertNotIn("summary", {r["type"] for r in rows})

    def test_udp_packets_do_not_change_results(self):
        with_udp = write_pcap(self._path("in_udp.pcap"), [
            (100, 10, build_tcp_frame(seq=1)),
            (100, 20, build_udp_frame()),
            (100, 30, build_tcp_frame(seq=2)),
            (100, 400, build_udp_frame(src_port=1)),
            (100, 500, build_tcp_frame(seq=3)),
            (100, 600, build_tcp_frame(seq=4)),
        ])

        def without_packet_ids(rows):
            return [{k: v for k, v in row.items() if k != "packet_id"} for row in rows]

        self.assertEqual(without_packet_ids(self._jsonl(with_udp, self.second)),
                         without_packet_ids(self._jsonl(self.first, self.second)))

    def test_idempotent(self):
        self.assertEqual(self._jsonl(self.first, self.second), self._jsonl(self.first, self.second))

    def test_orders_agree(self):
        merged = self._jsonl(self.first, self.second, "--order", "merged")
        sequential = self._jsonl(self.first, self.second, "--order", "sequential")
        self.assertEqual(merged[-1], sequential[-1])

    def test_byte_filter_option(self):
        # Keep only segments whose sequence number low byte is 2
        rows = self._jsonl(self.first, self.second, "-f", "41:2", "--no-summary")
        self.assertEqual([r["key"]["seq"] for r in rows], [2])

    def test_byte_filter_space_separated_pairs(self):
        # Low sequence byte 2 and IP protocol TCP in one value
        rows = self._jsonl(self.first, self.second, "-f", "41:2 23:6", "--no-summary")
        self.assertEqual([r["key"]["seq"] for r in rows], [2])
        rows = self._jsonl(self.first, self.second, "-f", "41:2 23:17", "--no-summary")
        self.assertEqual(rows, [])

    def test_bad_filter(self):
        result = self.runner.invoke(cli, ["correlate", self.first, self.second, "-f", "nope"])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("BYTE:VALUE", result.output)

    def test_truncated_file_aborts(self):
        data = build_pcap([(1, 0, build_tcp_frame()), (2, 0, build_tcp_frame(seq=7))])
        path = self._path("cut.pcap")
        with open(path, "wb") as f:
            f.write(data[:-10])
        result = self.runner.invoke(cli, ["correlate", self.first, path])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("cut.pcap", result.output)
        self.assertIn("offset 94", result.output)
        self.assertNotIn("Average latency", result.output)

    def test_oversized_record_length_aborts(self):
        path = self._path("huge.pcap")
        with open(path, "wb") as f:
            f.write(build_pcap([]))
            f.write(struct.pack("<IIII", 1, 0, 0xFFFFFFF0, 0xFFFFFFF0))
            f.write(build_tcp_frame())
        result = self.runner.invoke(cli, ["correlate", self.first, path])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("huge.pcap", result.output)
        self.assertIn("offset 24", result.output)

    def test_bad_magic_aborts(self):
        path = self._path("junk.pcap")
        with open(path, "wb") as f:
            f.write(b"\x0a\x0d\x0d\x0a" + b"\x00" * 40)
        result = self.runner.invoke(cli, ["correlate", path, self.second])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("bad magic number", result.output)

    def test_missing_file(self):
        result = self.runner.invoke(cli, ["correlate", self._path("nope.pcap"), self.second])
        self.assertEqual(result.exit_code, 2)


class RunPipelineTests(unittest.TestCase):
    def test_negative_latency_from_files(self):
        tmpdir = tempfile.mkdtemp()
        try:
            first = write_pcap(os.path.join(tmpdir, "a.pcap"), [(100, 500, build_tcp_frame())])
            second = write_pcap(os.path.join(tmpdir, "b.pcap"), [(100, 300, build_tcp_frame())])
            sink = CollectingSink()
            self.assertEqual(run_pipeline(first, second, sink), (1, 0))
            self.assertEqual(sink.latencies[0].latency_us, -200)
            self.assertEqual(sink.latencies[0].t1, 100_000_500)
        finally:
            shutil.rmtree(tmpdir)


if __name__ == "__main__":
    unittest.main()
