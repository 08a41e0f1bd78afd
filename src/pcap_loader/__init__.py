"""
Legacy pcap loading.
"""

from .exceptions import PcapError, PcapFormatError, FormatError
from .packet_source import IPacketSource
from .pcap_reader import PcapReader, PcapHeader, iter_records, read_global_header

__all__ = [
    'PcapError',
    'PcapFormatError',
    'FormatError',
    'IPacketSource',
    'PcapReader',
    'PcapHeader',
    'iter_records',
    'read_global_header',
]
