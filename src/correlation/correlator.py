"""
Cross-capture packet correlation.

Each key owns one FIFO queue of pending timestamps per origin. An arriving
occurrence is paired with the oldest pending occurrence of the same key from
the other capture, or queued until one shows up. Repeated identical packets
(retransmissions) therefore pair up in capture order.

Pairing assumes the device under test does not reorder two occurrences of
the same key; no sorting is attempted to undo that.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import heapq
import logging
from typing import Deque, Dict, Iterable, Iterator, Optional, Tuple, Union

from models.packet import (
    MatchedPair,
    Origin,
    RawPacket,
    TaggedTimestamp,
    TcpFlowKey,
    UnmatchedPacket,
)
from decoding.byte_filter import ByteFilter
from decoding.packet_decoder import extract_tcp_key

logger = logging.getLogger("tcplatency." + __name__)

ORDER_MERGED = "merged"
ORDER_SEQUENTIAL = "sequential"
ORDERS = (ORDER_MERGED, ORDER_SEQUENTIAL)

CorrelationEvent = Union[MatchedPair, UnmatchedPacket]

# (timestamp_us, packet_id) per pending occurrence
_Pending = Tuple[int, int]


@dataclass
class _PendingQueues:
    first: Deque[_Pending] = field(default_factory=deque)
    second: Deque[_Pending] = field(default_factory=deque)

    def queue(self, origin: Origin) -> Deque[_Pending]:
        return self.first if origin is Origin.FIRST else self.second

    def __bool__(self) -> bool:
        return bool(self.first) or bool(self.second)


class Correlator:
    """
    Pairs TaggedTimestamps from two captures by key.

    Usage:
        correlator = Correlator()
        for tagged in stream:
            pair = correlator.push(tagged)
            if pair is not None:
                ...
        for leftover in correlator.drain():
            ...
    """

    def __init__(self):
        self._pending: Dict[TcpFlowKey, _PendingQueues] = {}
        self.matched_count = 0

    def push(self, tagged: TaggedTimestamp) -> Optional[MatchedPair]:
        """Feed one occurrence; return a MatchedPair if it completes one."""
        queues = self._pending.get(tagged.key)
        if queues is not None:
            other = queues.queue(tagged.origin.opposite)
            if other:
                other_ts, _ = other.popleft()
                if not queues:
                    del self._pending[tagged.key]
                self.matched_count += 1
                if tagged.origin is Origin.FIRST:
                    return MatchedPair(key=tagged.key, t1=tagged.timestamp_us, t2=other_ts)
                return MatchedPair(key=tagged.key, t1=other_ts, t2=tagged.timestamp_us)
        else:
            queues = _PendingQueues()
            self._pending[tagged.key] = queues

        queues.queue(tagged.origin).append((tagged.timestamp_us, tagged.packet_id))
        return None

    def drain(self) -> Iterator[UnmatchedPacket]:
        """
        Yield every occurrence still waiting for a counterpart and clear
        the index. Keys come out in first-seen order, oldest occurrence first.
        """
        pending, self._pending = self._pending, {}
        unmatched = 0
        for key, queues in pending.items():
            for origin in (Origin.FIRST, Origin.SECOND):
                for timestamp_us, packet_id in queues.queue(origin):
                    unmatched += 1
                    yield UnmatchedPacket(
                        key=key,
                        origin=origin,
                        timestamp_us=timestamp_us,
                        packet_id=packet_id,
                    )
        logger.info("correlation finished: %d matched, %d unmatched",
                    self.matched_count, unmatched)

    @property
    def pending_keys(self) -> int:
        return len(self._pending)

    @property
    def pending_count(self) -> int:
        return sum(len(q.first) + len(q.second) for q in self._pending.values())


def tag_packets(packets: Iterable[RawPacket],
                origin: Origin,
                byte_filter: Optional[ByteFilter] = None) -> Iterator[TaggedTimestamp]:
    """Attach keys to the IPv4 TCP packets of one capture; drop the rest."""
    skipped = 0
    for packet in packets:
        if byte_filter and not byte_filter.matches(packet.data):
            skipped += 1
            continue
        key = extract_tcp_key(packet.data, packet.link_type)
        if key is None:
            skipped += 1
            continue
        yield TaggedTimestamp(
            key=key,
            timestamp_us=packet.timestamp_us,
            origin=origin,
            packet_id=packet.packet_id,
        )
    logger.debug("%s capture: %d packets skipped by filter or classification",
                 origin.value, skipped)


def merge_streams(first: Iterable[TaggedTimestamp],
                  second: Iterable[TaggedTimestamp],
                  order: str = ORDER_MERGED) -> Iterator[TaggedTimestamp]:
    """
    Combine the two tagged streams into one feed for the correlator.

    "sequential" drains the first stream before touching the second.
    "merged" interleaves by timestamp, which keeps the pending index small
    when both captures cover the same period. Neither reorders a stream
    internally.
    """
    if order == ORDER_SEQUENTIAL:
        yield from first
        yield from second
    elif order == ORDER_MERGED:
        yield from heapq.merge(first, second, key=lambda tagged: tagged.timestamp_us)
    else:
        raise ValueError(f"unknown order {order!r}, expected one of {ORDERS}")


def correlate(first: Iterable[TaggedTimestamp],
              second: Iterable[TaggedTimestamp],
              order: str = ORDER_MERGED) -> Iterator[CorrelationEvent]:
    """
    Yield MatchedPairs as they complete, then the UnmatchedPackets left over
    once both streams are exhausted.
    """
    correlator = Correlator()
    for tagged in merge_streams(first, second, order):
        pair = correlator.push(tagged)
        if pair is not None:
            yield pair
    yield from correlator.drain()
