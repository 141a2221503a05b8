"""
Markup-block classification.

An element qualifies for block rendering (``div { ... div0};``) when:
- it has a matching close tag (void and unclosed elements never qualify)
- its span contains at least one embedded-code node
- ``name { `` fits in the first line of its open tag and ``name0};`` fits
  in the first line of its close tag, so the rewrite keeps the byte length
"""

from __future__ import annotations

import re

from ..parser.ast import Node
from ..parser.source import LINE_TERMINATORS, ByteRange, SourceBuffer
from .adapter import NodeVisitor, contains_code, open_tag_code

_NON_IDENTIFIER = re.compile(r"[^a-z0-9_]")


def code_name(tag_name: str) -> str:
    """Map a tag name to a same-length Ruby identifier."""
    return _NON_IDENTIFIER.sub("_", tag_name.lower())


def line_width(source: SourceBuffer, span: ByteRange) -> int:
    """Bytes of ``span`` before its first line terminator."""
    for offset in range(span.start, span.end):
        if source.data[offset] in LINE_TERMINATORS:
            return offset - span.start
    return span.width


def block_width(element: Node) -> int:
    """Bytes needed by the block form of ``element``'s open and close tags."""
    assert element.name is not None
    return len(element.name) + 3


class MarkupBlockClassifier(NodeVisitor):
    """
    One-pass visitor collecting the open-tag offsets of block elements.

    The result is keyed by offset rather than node identity so it can be
    compared across parses of the same source.
    """

    def __init__(self, source: SourceBuffer):
        self.source = source
        self.positions: set[int] = set()

    def classify(self, document: Node) -> frozenset[int]:
        """
        Classify every element in ``document``.

        Returns:
            Open-tag start offsets of the elements that qualify
        """
        self.positions = set()
        self.visit(document)
        return frozenset(self.positions)

    def visit_element(self, node: Node) -> None:
        if self.qualifies(node):
            self.positions.add(node.open_tag.start)
        self.visit_children(node)

    def qualifies(self, node: Node) -> bool:
        if node.close_tag is None or node.open_tag is None:
            return False
        if not contains_code(node):
            return False
        width = block_width(node)
        if line_width(self.source, node.open_tag) < width:
            return False
        if not self.source.is_char_boundary(node.open_tag.start + width):
            return False
        # ``name { `` must not run into code inside the open tag
        code = open_tag_code(node)
        if code and code[0].start < node.open_tag.start + width:
            return False
        return line_width(self.source, node.close_tag) >= width


def collect_markup_blocks(document: Node, source: SourceBuffer) -> frozenset[int]:
    """Return the open-tag offsets of elements rendered as blocks."""
    return MarkupBlockClassifier(source).classify(document)


def placeholder_offset(source: SourceBuffer, span: ByteRange) -> int | None:
    """
    Offset where a markup placeholder (``_a;``) can be written over ``span``.

    The placeholder goes at the first non-whitespace byte and needs three
    bytes on the same line inside the span, ending on a character boundary.
    """
    data = source.data
    for offset in range(span.start, span.end):
        if not data[offset:offset + 1].isspace():
            break
    else:
        return None
    if offset + 3 > span.end:
        return None
    if any(byte in LINE_TERMINATORS for byte in data[offset:offset + 3]):
        return None
    if not source.is_char_boundary(offset + 3):
        return None
    return offset
