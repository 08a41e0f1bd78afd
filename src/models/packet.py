# Packet data model
"""
Packet data models for tcplatency.

THESE MODELS ARE IMMUTABLE - This is critical for deterministic correlation.
Once created, packet objects should not be modified. All transformations
create new objects.
"""

from dataclasses import dataclass
from enum import Enum
import ipaddress
from typing import Any, Dict


@dataclass(frozen=True)  # IMMUTABLE: Ensures deterministic processing
class RawPacket:
    """
    Raw packet as read directly from a capture file.

    This is the lowest-level representation - just bytes + metadata.
    The timestamp is kept as the two fixed-point fields stored on disk so
    that latency arithmetic never goes through floats.

    IMPORTANT: packet_id must be monotonic starting at 1 for each file.
    This is enforced by the PacketSource implementation.
    """
    # CORE IDENTIFICATION
    packet_id: int
    """Monotonic integer starting at 1 for this packet source"""

    ts_sec: int
    """Seconds since Unix epoch, as stored in the record header"""

    ts_usec: int
    """Microseconds within the second, as stored in the record header"""

    # SIZE INFORMATION
    captured_length: int
    """Bytes actually captured (may be less than original due to snaplen)"""

    original_length: int
    """Bytes on the wire (original packet size)"""

    # NETWORK CONTEXT
    link_type: int
    """libpcap DLT_* constant (e.g., 1 = DLT_EN10MB for Ethernet)"""

    # RAW DATA
    data: bytes
    """Raw frame bytes. DO NOT modify this - create new objects instead."""

    # STORAGE REFERENCE
    offset: int = 0
    """Byte offset of this record's header inside the capture file"""

    @property
    def timestamp_us(self) -> int:
        """Microseconds since Unix epoch (exact integer)."""
        return self.ts_sec * 1_000_000 + self.ts_usec

    @property
    def timestamp_seconds(self) -> float:
        """Convert microseconds to seconds with fractional part."""
        return self.timestamp_us / 1_000_000.0

    @property
    def is_truncated(self) -> bool:
        """True if captured length < original length (snaplen limited)."""
        return self.captured_length < self.original_length


_U16 = 0xFFFF
_U32 = 0xFFFFFFFF


@dataclass(frozen=True)
class TcpFlowKey:
    """
    Identity of a TCP packet per RFC 1242: two captured packets are the
    "same packet" iff their keys compare equal.

    Addresses are stored as 32-bit integers so the key hashes cheaply.
    """
    src_ip: int
    dst_ip: int
    src_port: int
    dst_port: int
    seq_num: int
    ack_num: int

    def __post_init__(self):
        for name, limit in (("src_ip", _U32), ("dst_ip", _U32),
                            ("src_port", _U16), ("dst_port", _U16),
                            ("seq_num", _U32), ("ack_num", _U32)):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= limit:
                raise ValueError(f"{name} out of range: {value!r}")

    @property
    def src_addr(self) -> str:
        return str(ipaddress.IPv4Address(self.src_ip))

    @property
    def dst_addr(self) -> str:
        return str(ipaddress.IPv4Address(self.dst_ip))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "src_ip": self.src_addr,
            "dst_ip": self.dst_addr,
            "src_port": self.src_port,
            "dst_port": self.dst_port,
            "seq": self.seq_num,
            "ack": self.ack_num,
        }

    def __str__(self) -> str:
        return (f"{self.src_addr}:{self.src_port} -> {self.dst_addr}:{self.dst_port} "
                f"seq={self.seq_num} ack={self.ack_num}")


class Origin(Enum):
    """Which of the two captures a timestamp came from."""
    FIRST = "first"
    SECOND = "second"

    @property
    def opposite(self) -> "Origin":
        return Origin.SECOND if self is Origin.FIRST else Origin.FIRST


@dataclass(frozen=True)
class TaggedTimestamp:
    """Key-tagged timestamp handed from the key extractor to the correlator."""
    key: TcpFlowKey
    timestamp_us: int
    origin: Origin
    packet_id: int = 0


@dataclass(frozen=True)
class MatchedPair:
    """
    One packet seen at both capture points.

    t1 is always the FIRST-origin timestamp, whichever side arrived first.
    """
    key: TcpFlowKey
    t1: int
    t2: int

    @property
    def latency_us(self) -> int:
        return self.t2 - self.t1


@dataclass(frozen=True)
class UnmatchedPacket:
    """A key occurrence observed at only one capture point."""
    key: TcpFlowKey
    origin: Origin
    timestamp_us: int
    packet_id: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "unmatched",
            "origin": self.origin.value,
            "timestamp_us": self.timestamp_us,
            "packet_id": self.packet_id,
            "key": self.key.to_dict(),
        }
