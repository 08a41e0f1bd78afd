"""
Packet classification and identity extraction.
"""

from .packet_decoder import extract_tcp_key
from .byte_filter import ByteFilter

__all__ = [
    'extract_tcp_key',
    'ByteFilter',
]
