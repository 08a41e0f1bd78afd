"""
PCAP file format reader (legacy .pcap).

Reference: https://wiki.wireshark.org/Development/LibpcapFileFormat

File structure:
- 24-byte global header
- Repeated packet records:
  - 16-byte packet header
  - Packet data (exactly incl_len bytes, no padding)

Only the two microsecond magic values are accepted; the byte order they
select is applied to every later header field.
"""

from dataclasses import dataclass
import logging
import os
import struct
from typing import Any, BinaryIO, Dict, Iterator, Optional, Tuple

from .packet_source import IPacketSource
from .exceptions import PcapFormatError
from models.packet import RawPacket

logger = logging.getLogger("tcplatency." + __name__)

GLOBAL_HEADER_LEN = 24
RECORD_HEADER_LEN = 16

# Magic number bytes as they appear on disk
MAGIC_BIG_ENDIAN = b"\xa1\xb2\xc3\xd4"
MAGIC_LITTLE_ENDIAN = b"\xd4\xc3\xb2\xa1"

DLT_EN10MB = 1        # Ethernet (from pcap/bpf.h)


@dataclass(frozen=True)
class PcapHeader:
    """Decoded global header."""
    byte_order: str
    version_major: int
    version_minor: int
    thiszone: int
    sigfigs: int
    snaplen: int
    link_type: int


READ_CHUNK = 1 << 20


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    """
    Read up to size bytes, looping over short reads from pipes.

    Reads in bounded chunks so a corrupt length field cannot force a huge
    allocation before the end of the stream is noticed.
    """
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(min(remaining, READ_CHUNK))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_global_header(stream: BinaryIO, source: Optional[str] = None) -> PcapHeader:
    """
    Read and validate the 24-byte global header.

    Raises:
        PcapFormatError: On a short header or an unrecognized magic number
    """
    raw = _read_exact(stream, GLOBAL_HEADER_LEN)
    if len(raw) < GLOBAL_HEADER_LEN:
        raise PcapFormatError(
            f"truncated global header ({len(raw)} of {GLOBAL_HEADER_LEN} bytes)",
            source=source, offset=0,
        )

    magic = raw[:4]
    if magic == MAGIC_BIG_ENDIAN:
        byte_order = ">"
    elif magic == MAGIC_LITTLE_ENDIAN:
        byte_order = "<"
    else:
        raise PcapFormatError(f"bad magic number 0x{magic.hex()}", source=source, offset=0)

    version_major, version_minor, thiszone, sigfigs, snaplen, link_type = struct.unpack(
        byte_order + "HHiIII", raw[4:]
    )
    header = PcapHeader(
        byte_order=byte_order,
        version_major=version_major,
        version_minor=version_minor,
        thiszone=thiszone,
        sigfigs=sigfigs,
        snaplen=snaplen,
        link_type=link_type,
    )
    logger.debug("%s: pcap v%d.%d byte_order=%s snaplen=%d link_type=%d",
                 source or "<stream>", version_major, version_minor,
                 byte_order, snaplen, link_type)
    return header


def _iter_packets(stream: BinaryIO, header: PcapHeader, source: Optional[str],
                  file_size: Optional[int] = None) -> Iterator[RawPacket]:
    record_struct = struct.Struct(header.byte_order + "IIII")
    offset = GLOBAL_HEADER_LEN
    packet_id = 1

    while True:
        raw = _read_exact(stream, RECORD_HEADER_LEN)
        if not raw:
            return
        if len(raw) < RECORD_HEADER_LEN:
            raise PcapFormatError(
                f"truncated record header ({len(raw)} of {RECORD_HEADER_LEN} bytes)",
                source=source, offset=offset,
            )

        ts_sec, ts_usec, incl_len, orig_len = record_struct.unpack(raw)
        if ts_usec >= 1_000_000:
            logger.debug("%s: record %d has ts_usec=%d", source or "<stream>", packet_id, ts_usec)

        if file_size is not None:
            available = file_size - offset - RECORD_HEADER_LEN
            if incl_len > available:
                raise PcapFormatError(
                    f"record {packet_id} declares {incl_len} captured bytes "
                    f"but only {max(available, 0)} remain",
                    source=source, offset=offset,
                )

        data = _read_exact(stream, incl_len)
        if len(data) < incl_len:
            raise PcapFormatError(
                f"record {packet_id} declares {incl_len} captured bytes "
                f"but only {len(data)} remain",
                source=source, offset=offset,
            )

        yield RawPacket(
            packet_id=packet_id,
            ts_sec=ts_sec,
            ts_usec=ts_usec,
            captured_length=incl_len,
            original_length=orig_len,
            link_type=header.link_type,
            data=data,
            offset=offset,
        )
        packet_id += 1
        offset += RECORD_HEADER_LEN + incl_len


def iter_records(stream: BinaryIO, source: Optional[str] = None) -> Iterator[RawPacket]:
    """
    Parse a legacy pcap byte stream into a lazy sequence of RawPackets.

    The global header is validated immediately; records are read on demand.
    The returned iterator is single-pass.

    Args:
        stream: Binary stream positioned at the start of the capture
        source: Name used in error messages (usually the file path)
    """
    header = read_global_header(stream, source)
    return _iter_packets(stream, header, source)


class PcapReader(IPacketSource):
    """
    Reads legacy PCAP format files.

    Usage:
        with PcapReader("inbound.pcap") as reader:
            for packet in reader:
                ...
    """

    def __init__(self, filepath: str):
        """
        Initialize PCAP reader.

        Args:
            filepath: Path to .pcap file
        """
        self.filepath = filepath
        self.file_handle: Optional[BinaryIO] = None
        self.header: Optional[PcapHeader] = None

        self.byte_order = '>'
        self.link_type = DLT_EN10MB

        self._packet_count = 0
        self._time_range: Optional[Tuple[int, int]] = None
        self._file_size = 0

    def open(self):
        """Open and validate PCAP file."""
        if not os.path.exists(self.filepath):
            raise FileNotFoundError(f"PCAP file not found: {self.filepath}")

        self._file_size = os.path.getsize(self.filepath)
        self.file_handle = open(self.filepath, 'rb')
        try:
            self.header = read_global_header(self.file_handle, self.filepath)
        except PcapFormatError:
            self.close()
            raise

        self.byte_order = self.header.byte_order
        self.link_type = self.header.link_type
        self._packet_count = 0
        self._time_range = None

    def __iter__(self) -> Iterator[RawPacket]:
        """
        Read packets from file and yield them.

        Raises:
            RuntimeError: If file not opened
            PcapFormatError: If a record is truncated
        """
        if self.file_handle is None or self.header is None:
            raise RuntimeError("PcapReader is not open")

        for packet in _iter_packets(self.file_handle, self.header, self.filepath, self._file_size):
            self._packet_count += 1
            ts = packet.timestamp_us
            if self._time_range is None:
                self._time_range = (ts, ts)
            else:
                self._time_range = (min(self._time_range[0], ts), max(self._time_range[1], ts))
            yield packet

    def close(self):
        """Close the packet source and release resources."""
        if self.file_handle is not None:
            self.file_handle.close()
        self.file_handle = None

    def get_session_info(self) -> Dict[str, Any]:
        """Return session metadata."""
        info = {
            'packet_count': self._packet_count,
            'time_range': self._time_range or (0, 0),
            'link_type': self.link_type,
            'file_size': self._file_size,
            'format': 'pcap',
            'byte_order': self.byte_order,
        }
        if self.header is not None:
            info['snaplen'] = self.header.snaplen
            info['version'] = f"{self.header.version_major}.{self.header.version_minor}"
        return info
