"""
Raw byte filter applied to frames before key extraction.

A filter is a list of (byte_offset, byte_value) pairs; a frame passes only
when every listed offset exists and holds the listed value.
"""
from dataclasses import dataclass
from typing import Iterable, Tuple


def _parse_rule(spec: str) -> Tuple[int, int]:
    offset_text, sep, value_text = spec.partition(":")
    if not sep:
        raise ValueError(f"expected BYTE:VALUE, got {spec!r}")
    try:
        offset = int(offset_text, 0)
        value = int(value_text, 0)
    except ValueError:
        raise ValueError(f"expected integers in {spec!r}") from None
    if offset < 0:
        raise ValueError(f"byte offset must be >= 0 in {spec!r}")
    if not 0 <= value <= 0xFF:
        raise ValueError(f"byte value must be 0-255 in {spec!r}")
    return offset, value


@dataclass(frozen=True)
class ByteFilter:
    rules: Tuple[Tuple[int, int], ...] = ()

    @classmethod
    def parse(cls, specs: Iterable[str]) -> "ByteFilter":
        """
        Build a filter from "offset:value" strings, e.g. ["23:6", "12:8"].
        One string may also carry several whitespace-separated pairs
        ("23:6 12:8").

        Raises:
            ValueError: On a malformed spec or out-of-range value
        """
        rules = []
        for spec in specs:
            for part in spec.split():
                rules.append(_parse_rule(part))
        return cls(tuple(rules))

    def matches(self, data: bytes) -> bool:
        for offset, value in self.rules:
            if len(data) <= offset or data[offset] != value:
                return False
        return True

    def __bool__(self) -> bool:
        return bool(self.rules)
