"""
Source buffer and position index.

All template offsets in erbproj are byte offsets into the UTF-8 encoding of
the source. This module converts them to 1-indexed lines, 0-indexed
character columns and character offsets.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field

LINE_TERMINATORS = frozenset(b"\r\n")


@dataclass(frozen=True)
class ByteRange:
    """
    Half-open byte range ``[start, end)``.

    Attributes:
        start: First byte offset
        end: Offset one past the last byte
    """

    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid byte range [{self.start}, {self.end})")

    @property
    def width(self) -> int:
        return self.end - self.start

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def covers(self, other: ByteRange) -> bool:
        return self.start <= other.start and other.end <= self.end

    def __repr__(self) -> str:
        return f"ByteRange({self.start}, {self.end})"


@dataclass(frozen=True)
class Location:
    """A 1-indexed line and 0-indexed character column."""

    line: int
    column: int

    def __repr__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass
class SourceBuffer:
    """
    Immutable template source plus its line-offset table.

    Attributes:
        path: File path, used for diagnostics only
        text: Decoded source text
        data: UTF-8 bytes of ``text``
        line_offsets: Byte offset of the first byte of every line
    """

    path: str
    text: str
    data: bytes = field(init=False, repr=False)
    line_offsets: list[int] = field(init=False, repr=False)
    _char_line_offsets: list[int] = field(init=False, repr=False)

    def __post_init__(self):
        self.data = self.text.encode("utf-8")
        self.line_offsets = [0]
        self._char_line_offsets = [0]
        for index, char in enumerate(self.text):
            if char == "\n":
                self._char_line_offsets.append(index + 1)
        start = 0
        while True:
            newline = self.data.find(b"\n", start)
            if newline < 0:
                break
            self.line_offsets.append(newline + 1)
            start = newline + 1

    def __len__(self) -> int:
        return len(self.data)

    @property
    def line_count(self) -> int:
        return len(self.line_offsets)

    def line_index(self, offset: int) -> int:
        """Return the 0-indexed line containing byte ``offset``."""
        self._check(offset)
        return bisect_right(self.line_offsets, offset) - 1

    def location(self, offset: int) -> Location:
        """
        Convert a byte offset to a line/column location.

        Args:
            offset: Byte offset, ``0 <= offset <= len(self)``

        Returns:
            Location with a 1-indexed line and a character-based column
        """
        index = self.line_index(offset)
        line_start = self.line_offsets[index]
        column = len(self.data[line_start:offset].decode("utf-8", errors="replace"))
        return Location(index + 1, column)

    def byte_offset(self, line: int, column: int) -> int:
        """
        Convert a 1-indexed line and character column to a byte offset.

        Columns past the end of the line clamp to the line end.
        """
        if line < 1 or line > self.line_count:
            raise IndexError(f"line {line} out of range 1..{self.line_count}")
        line_start = self.line_offsets[line - 1]
        next_start = self.line_offsets[line] if line < self.line_count else len(self.data)
        content = self.data[line_start:next_start].decode("utf-8", errors="replace")
        return line_start + len(content[:column].encode("utf-8"))

    def char_offset(self, offset: int) -> int:
        """Convert a byte offset to an offset into ``text``."""
        index = self.line_index(offset)
        line_start = self.line_offsets[index]
        prefix = self.data[line_start:offset].decode("utf-8", errors="replace")
        return self._char_line_offsets[index] + len(prefix)

    def byteslice(self, span: ByteRange) -> bytes:
        return self.data[span.start:span.end]

    def is_char_boundary(self, offset: int) -> bool:
        """True when ``offset`` does not fall inside a UTF-8 sequence."""
        return offset >= len(self.data) or not 0x80 <= self.data[offset] <= 0xBF

    def is_multibyte(self, span: ByteRange) -> bool:
        """True when ``span`` holds any non-ASCII byte."""
        return any(byte >= 0x80 for byte in self.data[span.start:span.end])

    def _check(self, offset: int) -> None:
        if offset < 0 or offset > len(self.data):
            raise IndexError(f"offset {offset} out of range 0..{len(self.data)}")
