"""
Latency reporting: turns correlation events into result rows and streams
them to a sink, one row per event.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from models.packet import MatchedPair, TcpFlowKey, UnmatchedPacket


@dataclass(frozen=True)
class LatencyResult:
    """
    One-way latency of a matched packet in microseconds.

    Negative values are legal: they point at clock skew between the capture
    points or at swapped input files.
    """
    key: TcpFlowKey
    t1: int
    t2: int
    latency_us: int

    @classmethod
    def from_pair(cls, pair: MatchedPair) -> "LatencyResult":
        return cls(key=pair.key, t1=pair.t1, t2=pair.t2, latency_us=pair.t2 - pair.t1)

    @property
    def latency_seconds(self) -> float:
        return self.latency_us / 1_000_000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "latency",
            "latency_us": self.latency_us,
            "t1_us": self.t1,
            "t2_us": self.t2,
            "key": self.key.to_dict(),
        }


class IResultSink(ABC):
    """Consumer of result rows (rendering, collection, statistics)."""

    @abstractmethod
    def on_latency(self, result: LatencyResult) -> None:
        pass

    @abstractmethod
    def on_unmatched(self, packet: UnmatchedPacket) -> None:
        pass

    def close(self) -> None:
        """Called once after the last row."""


class LatencyReporter:
    """
    Streams correlation events to a sink.

    Matched pairs become LatencyResults; unmatched packets pass through
    unchanged. Nothing is buffered.
    """

    def __init__(self, sink: IResultSink):
        self.sink = sink

    def report(self, events: Iterable[Any]) -> Tuple[int, int]:
        """Consume events; return (matched, unmatched) counts."""
        matched = 0
        unmatched = 0
        try:
            for event in events:
                if isinstance(event, MatchedPair):
                    self.sink.on_latency(LatencyResult.from_pair(event))
                    matched += 1
                elif isinstance(event, UnmatchedPacket):
                    self.sink.on_unmatched(event)
                    unmatched += 1
                else:
                    raise TypeError(f"unexpected correlation event {event!r}")
        finally:
            self.sink.close()
        return matched, unmatched
