"""
Result sinks.
"""
from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional

from models.packet import Origin, UnmatchedPacket
from .reporter import IResultSink, LatencyResult

Writer = Callable[[str], None]


class CollectingSink(IResultSink):
    """Keeps every row in memory. Meant for tests and small runs."""

    def __init__(self):
        self.latencies: List[LatencyResult] = []
        self.unmatched: List[UnmatchedPacket] = []
        self.closed = False

    def on_latency(self, result: LatencyResult) -> None:
        self.latencies.append(result)

    def on_unmatched(self, packet: UnmatchedPacket) -> None:
        self.unmatched.append(packet)

    def close(self) -> None:
        self.closed = True


class TableSink(IResultSink):
    """Fixed-width text rows, one per result."""

    HEADER = f"{'Latency(us)':>12}  {'Origin':6}  {'Time(us)':>17}  Packet"

    def __init__(self, write: Writer, header: bool = True):
        self._write = write
        self._header = header

    def _emit_header(self):
        if self._header:
            self._write(self.HEADER)
            self._write("-" * 100)
            self._header = False

    def on_latency(self, result: LatencyResult) -> None:
        self._emit_header()
        self._write(f"{result.latency_us:>12}  {'-':6}  {result.t1:>17}  {result.key}")

    def on_unmatched(self, packet: UnmatchedPacket) -> None:
        self._emit_header()
        self._write(f"{'miss':>12}  {packet.origin.value:6}  {packet.timestamp_us:>17}  {packet.key}")


class JsonlSink(IResultSink):
    """One compact JSON object per line."""

    def __init__(self, write: Writer):
        self._write = write

    def _dump(self, record: Dict) -> None:
        self._write(json.dumps(record, separators=(",", ":"), ensure_ascii=True))

    def on_latency(self, result: LatencyResult) -> None:
        self._dump(result.to_dict())

    def on_unmatched(self, packet: UnmatchedPacket) -> None:
        self._dump(packet.to_dict())


class SummarySink(IResultSink):
    """
    Running statistics over the result rows: mean/min/max latency, jitter
    (max - min) and miss counts per origin.
    """

    def __init__(self):
        self.matched = 0
        self.latency_sum = 0
        self.latency_min: Optional[int] = None
        self.latency_max: Optional[int] = None
        self.unmatched: Dict[Origin, int] = {Origin.FIRST: 0, Origin.SECOND: 0}

    def on_latency(self, result: LatencyResult) -> None:
        latency = result.latency_us
        self.matched += 1
        self.latency_sum += latency
        if self.latency_min is None or latency < self.latency_min:
            self.latency_min = latency
        if self.latency_max is None or latency > self.latency_max:
            self.latency_max = latency

    def on_unmatched(self, packet: UnmatchedPacket) -> None:
        self.unmatched[packet.origin] += 1

    @property
    def first_capture_packets(self) -> int:
        return self.matched + self.unmatched[Origin.FIRST]

    @property
    def mean_latency(self) -> Optional[float]:
        if not self.matched:
            return None
        return self.latency_sum / self.matched

    @property
    def jitter(self) -> Optional[int]:
        if self.latency_min is None or self.latency_max is None:
            return None
        return self.latency_max - self.latency_min

    @property
    def miss_ratio(self) -> Optional[float]:
        total = self.first_capture_packets
        if not total:
            return None
        return self.unmatched[Origin.FIRST] / total

    def to_dict(self) -> Dict:
        return {
            "matched": self.matched,
            "unmatched_first": self.unmatched[Origin.FIRST],
            "unmatched_second": self.unmatched[Origin.SECOND],
            "first_capture_packets": self.first_capture_packets,
            "miss_ratio": self.miss_ratio,
            "latency_mean_us": self.mean_latency,
            "latency_min_us": self.latency_min,
            "latency_max_us": self.latency_max,
            "jitter_us": self.jitter,
        }

    def format(self) -> str:
        def _num(value, fmt="{:.1f}"):
            return "n/a" if value is None else fmt.format(value)

        miss_pct = None if self.miss_ratio is None else self.miss_ratio * 100
        return (
            f"Average latency (usec): {_num(self.mean_latency)}. "
            f"Min/Max (usec): {_num(self.latency_min, '{}')}/{_num(self.latency_max, '{}')}. "
            f"Jitter (usec): {_num(self.jitter, '{}')}. "
            f"Packets count: {self.first_capture_packets}. "
            f"Misses count: {self.unmatched[Origin.FIRST]} ({_num(miss_pct, '{:.2f}')}%). "
            f"Unmatched in second capture: {self.unmatched[Origin.SECOND]}"
        )


class TeeSink(IResultSink):
    """Fans every row out to several sinks."""

    def __init__(self, *sinks: IResultSink):
        self.sinks = sinks

    def on_latency(self, result: LatencyResult) -> None:
        for sink in self.sinks:
            sink.on_latency(result)

    def on_unmatched(self, packet: UnmatchedPacket) -> None:
        for sink in self.sinks:
            sink.on_unmatched(packet)

    def close(self) -> None:
        for sink in self.sinks:
            sink.close()
