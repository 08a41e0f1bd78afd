"""
Packet and correlation data models.
"""

from .packet import (
    RawPacket,
    TcpFlowKey,
    Origin,
    TaggedTimestamp,
    MatchedPair,
    UnmatchedPacket,
)

__all__ = [
    'RawPacket',
    'TcpFlowKey',
    'Origin',
    'TaggedTimestamp',
    'MatchedPair',
    'UnmatchedPacket',
]
