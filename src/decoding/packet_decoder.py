"""
Pure TCP identity extraction (L2/L3/L4).

This module is deterministic and best-effort:
- It never throws on malformed/truncated packets
- It returns None for anything that is not a complete IPv4 TCP header
- It only parses headers (no payload parsing)
"""
from __future__ import annotations

import struct
from typing import Optional, Tuple

from models.packet import TcpFlowKey

# Link type constants (libpcap DLT_*)
DLT_NULL = 0
DLT_EN10MB = 1
DLT_RAW = 12
DLT_RAW_ALT = 101
DLT_LINUX_SLL = 113

# EtherType constants
ETH_TYPE_IPV4 = 0x0800
ETH_TYPE_VLAN = 0x8100
ETH_TYPE_QINQ = 0x88A8

# BSD loopback address family for IPv4
AF_INET_NULL = 2

IP_PROTO_TCP = 6

_IPV4_MIN_HEADER = 20
_TCP_MIN_HEADER = 20
_IP_FLAG_MF = 0x2000
_IP_FRAG_OFFSET_MASK = 0x1FFF


def extract_tcp_key(data: bytes, link_type: int = DLT_EN10MB) -> Optional[TcpFlowKey]:
    """
    Derive the TcpFlowKey of a captured frame.

    Returns None for non-IPv4, non-TCP, fragmented or truncated packets.
    """
    if not data:
        return None
    l3_offset = _locate_ipv4(data, link_type)
    if l3_offset is None:
        return None
    parsed = _parse_ipv4(data, l3_offset)
    if parsed is None:
        return None
    src_ip, dst_ip, l4_offset, l4_limit = parsed
    return _parse_tcp(data, l4_offset, l4_limit, src_ip, dst_ip)


def _locate_ipv4(data: bytes, link_type: int) -> Optional[int]:
    """Return the offset of the IPv4 header, or None if the frame is not IPv4."""
    cap_len = len(data)

    if link_type == DLT_EN10MB:
        if cap_len < 14:
            return None
        ethertype = struct.unpack_from("!H", data, 12)[0]
        offset = 14
        # VLAN tags (single or double)
        for _ in range(2):
            if ethertype in (ETH_TYPE_VLAN, ETH_TYPE_QINQ):
                if cap_len < offset + 4:
                    return None
                ethertype = struct.unpack_from("!H", data, offset + 2)[0]
                offset += 4
            else:
                break
        return offset if ethertype == ETH_TYPE_IPV4 else None

    if link_type in (DLT_RAW, DLT_RAW_ALT):
        return 0 if data[0] >> 4 == 4 else None

    if link_type == DLT_LINUX_SLL:
        if cap_len < 16:
            return None
        ethertype = struct.unpack_from("!H", data, 14)[0]
        return 16 if ethertype == ETH_TYPE_IPV4 else None

    if link_type == DLT_NULL:
        if cap_len < 4:
            return None
        # Family is in host order of the capturing machine
        family_le = struct.unpack_from("<I", data, 0)[0]
        family_be = struct.unpack_from(">I", data, 0)[0]
        return 4 if AF_INET_NULL in (family_le, family_be) else None

    return None


def _parse_ipv4(data: bytes, offset: int) -> Optional[Tuple[int, int, int, int]]:
    """Validate an IPv4 header carrying TCP; return (src, dst, l4_offset, l4_limit)."""
    cap_len = len(data)
    if offset + _IPV4_MIN_HEADER > cap_len:
        return None
    vihl = data[offset]
    version = vihl >> 4
    ihl = (vihl & 0x0F) * 4
    if version != 4 or ihl < _IPV4_MIN_HEADER:
        return None
    if offset + ihl > cap_len:
        return None

    total_length, flags_fragment = struct.unpack_from("!HH", data, offset + 2)
    if total_length < ihl + _TCP_MIN_HEADER:
        return None
    if flags_fragment & _IP_FLAG_MF or flags_fragment & _IP_FRAG_OFFSET_MASK:
        return None
    if data[offset + 9] != IP_PROTO_TCP:
        return None

    src_ip, dst_ip = struct.unpack_from("!II", data, offset + 12)
    return src_ip, dst_ip, offset + ihl, offset + total_length


def _parse_tcp(data: bytes, offset: int, limit: int, src_ip: int, dst_ip: int) -> Optional[TcpFlowKey]:
    cap_len = len(data)
    if offset + _TCP_MIN_HEADER > cap_len:
        return None
    src_port, dst_port, seq, ack = struct.unpack_from("!HHII", data, offset)
    data_offset = (data[offset + 12] >> 4) * 4
    if data_offset < _TCP_MIN_HEADER:
        return None
    # Header must be captured and must fit inside the IP datagram
    if offset + data_offset > cap_len or offset + data_offset > limit:
        return None
    return TcpFlowKey(
        src_ip=src_ip,
        dst_ip=dst_ip,
        src_port=src_port,
        dst_port=dst_port,
        seq_num=seq,
        ack_num=ack,
    )
