"""
Position-mapping registry.

Every place where the engine replaces template bytes with synthesized code
is recorded here, keyed by the emitted byte offset. A downstream step that
works on the analyzer's tree looks up nodes by their start offset and, when
the entry allows it, substitutes the original template bytes back so that
messages and corrections quote the real markup.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..parser.source import ByteRange, SourceBuffer


class PositionMapping(BaseModel):
    """Original byte range behind one emitted offset."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, description="First byte of the original range")
    end: int = Field(ge=0, description="Offset one past the original range")
    restore_source: bool = Field(
        default=True,
        description="Whether the original bytes may be substituted back",
    )

    @property
    def span(self) -> ByteRange:
        return ByteRange(self.start, self.end)

    @property
    def width(self) -> int:
        return self.end - self.start


class PositionRegistry(BaseModel):
    """
    Emitted offset -> PositionMapping table for one conversion.

    Later records at the same offset replace earlier ones.
    """

    entries: dict[int, PositionMapping] = Field(default_factory=dict)

    def record(self, offset: int, span: ByteRange, restore_source: bool = True) -> PositionMapping:
        """
        Record that the code emitted at ``offset`` stands in for ``span``.

        Args:
            offset: Byte offset in the emitted code
            span: Original byte range in the template
            restore_source: Whether the original may be restored there

        Returns:
            The stored mapping
        """
        mapping = PositionMapping(start=span.start, end=span.end, restore_source=restore_source)
        self.entries[offset] = mapping
        return mapping

    def get(self, offset: int) -> PositionMapping | None:
        return self.entries.get(offset)

    def __contains__(self, offset: object) -> bool:
        return offset in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def items(self) -> list[tuple[int, PositionMapping]]:
        """Entries in emitted-offset order."""
        return sorted(self.entries.items())

    def eligible(self) -> dict[int, PositionMapping]:
        """Entries whose original bytes may be restored, in offset order."""
        return {offset: mapping for offset, mapping in self.items() if mapping.restore_source}

    def restore(self, code: bytes, source: SourceBuffer) -> bytes:
        """
        Substitute original bytes into ``code`` at every eligible entry.

        Args:
            code: Emitted code, same length as the source
            source: The template the code was projected from

        Returns:
            Code with the original markup restored, same length as ``code``
        """
        result = bytearray(code)
        for offset, mapping in self.eligible().items():
            end = offset + mapping.width
            if end > len(result):
                raise ValueError(f"mapping at {offset} extends past the end of the code")
            result[offset:end] = source.byteslice(mapping.span)
        return bytes(result)

    def char_keyed(self, source: SourceBuffer) -> dict[int, PositionMapping]:
        """
        Re-key the registry by character offsets into ``source.text``.

        Mapping ranges are converted to character offsets as well.
        """
        view: dict[int, PositionMapping] = {}
        for offset, mapping in self.items():
            view[source.char_offset(offset)] = PositionMapping(
                start=source.char_offset(mapping.start),
                end=source.char_offset(mapping.end),
                restore_source=mapping.restore_source,
            )
        return view
