"""Tests for the source buffer and position index."""

import pytest

from erbproj.parser.source import ByteRange, Location, SourceBuffer


class TestByteRange:
    """Test half-open byte ranges."""

    def test_width(self):
        """Test width of a range."""
        assert ByteRange(3, 10).width == 7

    def test_contains_is_half_open(self):
        """Test that the end offset is excluded."""
        span = ByteRange(2, 4)
        assert span.contains(2)
        assert span.contains(3)
        assert not span.contains(4)

    def test_covers(self):
        """Test range containment."""
        assert ByteRange(0, 10).covers(ByteRange(2, 5))
        assert not ByteRange(2, 5).covers(ByteRange(0, 10))

    def test_rejects_inverted_range(self):
        """Test that end before start is rejected."""
        with pytest.raises(ValueError):
            ByteRange(5, 2)


class TestSourceBufferLines:
    """Test line offset computation."""

    def test_single_line(self):
        """Test a source without newlines."""
        source = SourceBuffer("a.erb", "hello")
        assert source.line_offsets == [0]
        assert source.line_count == 1

    def test_line_offsets(self):
        """Test offsets of every line start."""
        source = SourceBuffer("a.erb", "ab\ncd\n\nef")
        assert source.line_offsets == [0, 3, 6, 7]

    def test_crlf_belongs_to_line(self):
        """Test that a carriage return stays on its line."""
        source = SourceBuffer("a.erb", "ab\r\ncd")
        assert source.line_offsets == [0, 4]
        assert source.location(2) == Location(1, 2)

    def test_line_offsets_are_bytes(self):
        """Test that multibyte characters shift later line offsets."""
        source = SourceBuffer("a.erb", "日本\nx")
        assert source.line_offsets == [0, 7]


class TestSourceBufferLocations:
    """Test byte offset / location conversion."""

    def test_location_first_line(self):
        """Test location of an offset on the first line."""
        source = SourceBuffer("a.erb", "<div>\n  <%= x %>")
        assert source.location(0) == Location(1, 0)
        assert source.location(4) == Location(1, 4)

    def test_location_later_line(self):
        """Test location of an offset on a later line."""
        source = SourceBuffer("a.erb", "<div>\n  <%= x %>")
        assert source.location(8) == Location(2, 2)

    def test_column_counts_characters(self):
        """Test that columns count characters, not bytes."""
        source = SourceBuffer("a.erb", "日本語<%= x %>")
        assert source.location(9) == Location(1, 3)

    def test_byte_offset_inverts_location(self):
        """Test that byte_offset is the inverse of location."""
        source = SourceBuffer("a.erb", "héllo\nwörld <%= x %>\n")
        for offset in (0, 3, 7, 10, 14):
            location = source.location(offset)
            assert source.byte_offset(location.line, location.column) == offset

    def test_byte_offset_clamps_column(self):
        """Test that a column past the line end clamps to the line end."""
        source = SourceBuffer("a.erb", "ab\ncd")
        assert source.byte_offset(1, 99) == 3

    def test_byte_offset_rejects_bad_line(self):
        """Test that an out-of-range line raises."""
        source = SourceBuffer("a.erb", "ab")
        with pytest.raises(IndexError):
            source.byte_offset(5, 0)

    def test_location_rejects_bad_offset(self):
        """Test that an out-of-range offset raises."""
        source = SourceBuffer("a.erb", "ab")
        with pytest.raises(IndexError):
            source.location(10)

    def test_end_of_source_is_valid(self):
        """Test that the offset one past the end has a location."""
        source = SourceBuffer("a.erb", "ab\n")
        assert source.location(3) == Location(2, 0)


class TestSourceBufferSlicing:
    """Test byte slicing and character offsets."""

    def test_byteslice(self):
        """Test slicing by byte range."""
        source = SourceBuffer("a.erb", "<%= x %>")
        assert source.byteslice(ByteRange(3, 6)) == b" x "

    def test_char_offset(self):
        """Test conversion of byte offsets to character offsets."""
        source = SourceBuffer("a.erb", "日本\n語<%= x %>")
        assert source.char_offset(0) == 0
        assert source.char_offset(6) == 2
        assert source.char_offset(7) == 3
        assert source.char_offset(10) == 4

    def test_is_multibyte(self):
        """Test detection of non-ASCII bytes in a range."""
        source = SourceBuffer("a.erb", "<p>日本</p>")
        assert source.is_multibyte(ByteRange(3, 9))
        assert not source.is_multibyte(ByteRange(0, 3))


class TestCharBoundary:
    """Test UTF-8 sequence boundaries."""

    def test_boundaries(self):
        """Test offsets inside and between multibyte characters."""
        source = SourceBuffer("a.erb", "a日b")
        assert [source.is_char_boundary(offset) for offset in range(6)] == [True, True, False, False, True, True]
