"""
Packet source interface.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator

from models.packet import RawPacket


class IPacketSource(ABC):
    """
    A finite, single-pass source of RawPackets.

    Sources are opened once, iterated once and closed. Re-opening starts a
    fresh pass from the first record.
    """

    @abstractmethod
    def open(self):
        """Open the source and validate its header."""

    @abstractmethod
    def __iter__(self) -> Iterator[RawPacket]:
        """Yield packets in file order."""

    @abstractmethod
    def close(self):
        """Release file handles."""

    @abstractmethod
    def get_session_info(self) -> Dict[str, Any]:
        """Return metadata about the capture read so far."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
