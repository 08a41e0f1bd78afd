"""
Capture file errors.
"""
from typing import Optional


class PcapError(Exception):
    """Base class for capture loading errors."""


class PcapFormatError(PcapError):
    """
    Fatal structural problem in a capture file.

    Raised for a bad magic number, a truncated global or record header, or a
    record whose captured length runs past the end of the file. Record
    boundaries after the failure point cannot be trusted, so there is no
    recovery.
    """

    def __init__(self, message: str, source: Optional[str] = None, offset: Optional[int] = None):
        self.reason = message
        self.source = source
        self.offset = offset
        super().__init__(self._format())

    def _format(self) -> str:
        where = []
        if self.source:
            where.append(self.source)
        if self.offset is not None:
            where.append(f"offset {self.offset}")
        if where:
            return f"{': '.join(where)}: {self.reason}"
        return self.reason


# Short name used by callers that only care about the fatal case
FormatError = PcapFormatError
