from __future__ import annotations

import re
from collections.abc import Sequence

from mdfiles.types import PathLike

# * Fixed-column formats count columns in bytes. Decoding as latin-1 maps every
# * byte to exactly one character, so string offsets and byte offsets agree.
TEXT_ENCODING = "latin-1"

_FLOAT_PREFIX = re.compile(r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_INT_PREFIX = re.compile(r"\s*([-+]?\d+)")


def extract_field(line: str, start: int, width: int) -> str:
    """Return the raw column slice ``[start, start + width)`` of `line`.

    Lines shorter than the requested span give a shortened (possibly empty)
    string instead of raising.
    """
    return line[start : start + width]


def parse_float(field: str) -> float:
    """Parse the leading numeric part of `field`, or 0.0 if there is none."""
    match = _FLOAT_PREFIX.match(field)
    if match is None:
        return 0.0
    return float(match.group(1))


def parse_int(field: str) -> int:
    """Parse the leading integer part of `field`, or 0 if there is none."""
    match = _INT_PREFIX.match(field)
    if match is None:
        return 0
    return int(match.group(1))


def scan_ints(line: str, limit: int) -> list[int]:
    """Greedily read up to `limit` whitespace separated integers.

    Scanning stops at the first text that does not start an integer, so
    ``"1 2x 3"`` gives ``[1, 2]``.
    """
    values: list[int] = []
    pos = 0

    while len(values) < limit:
        match = _INT_PREFIX.match(line, pos)
        if match is None:
            break
        values.append(int(match.group(1)))
        pos = match.end()

    return values


def read_lines(filename: PathLike) -> list[str]:
    with open(filename, "r", encoding=TEXT_ENCODING) as f:
        return [line.rstrip("\r\n") for line in f]


class LineCursor:
    """Forward cursor over a list of lines with single-line push back."""

    def __init__(self, lines: Sequence[str]) -> None:
        self._lines = lines
        self._pos = 0

    def __iter__(self) -> LineCursor:
        return self

    def __next__(self) -> str:
        line = self.readline()
        if line is None:
            raise StopIteration
        return line

    @property
    def position(self) -> int:
        return self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._lines)

    def readline(self) -> str | None:
        if self.at_end():
            return None
        line = self._lines[self._pos]
        self._pos += 1
        return line

    def push_back(self) -> None:
        if self._pos > 0:
            self._pos -= 1
