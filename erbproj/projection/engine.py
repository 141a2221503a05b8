"""
Projection engine.

Produces Ruby code with exactly the byte layout of the template: the
buffer starts as a blanked copy of the source (every byte a space except
line terminators) and is then overwritten in place, node by node. Nothing
is ever inserted or deleted, so byte offsets, lines and columns of the
embedded code are those of the template.

What each construct becomes:
- code tags: the code at its original offset, followed by ``;``
- output tags: additionally ``_ =`` over ``<%=`` unless the tag is the
  value of its branch
- ERB comments: ``#`` over the ``#`` of ``<%#``, continuation lines
  re-marked; dropped when code follows on the line the comment ends on
- with HTML visualization: elements as ``name;`` or ``name { ... name0};``,
  text and HTML comments as ``_a;`` placeholders; inside open tags, an
  attribute that is a statement of a control-flow tag, and each literal
  run of an attribute value holding code, get a placeholder too
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..core.logging import get_logger
from ..parser.ast import Node, NodeKind
from ..parser.source import LINE_TERMINATORS, ByteRange, SourceBuffer
from .adapter import NodeVisitor, contains_code, open_tag_code
from .markup_blocks import code_name, placeholder_offset
from .registry import PositionRegistry

logger = get_logger(__name__)

FILLER = b" "
SEPARATOR = b";"
OUTPUT_MARKER = b"_ ="
COMMENT_MARKER = b"#"

_BLANK = re.compile(rb"[^\r\n]")
_LEADING_SPACES = re.compile(rb"(?<=\n)( +)")
_LEADING_CHAR = re.compile(rb"(?<=\n)([^ \r\n#\x80-\xbf][\x80-\xbf]*)")


def blank(data: bytes) -> bytearray:
    """Replace every byte except line terminators with filler."""
    return bytearray(_BLANK.sub(FILLER, data))


def format_comment(code: bytes, hash_column: int) -> bytes:
    """
    Put a comment marker at the start of every continuation line.

    A run of leading spaces longer than ``hash_column + 1`` gets the marker
    at ``hash_column``; a shorter run gets it on its first space. A line
    starting with any other character has that character replaced by the
    marker and padded to the character's byte length.

    Args:
        code: Comment body, starting right after ``<%#``
        hash_column: Column of the first line's marker

    Returns:
        Body of the same byte length
    """

    def mark_spaces(match: re.Match) -> bytes:
        run = match.group(1)
        if len(run) > hash_column + 1:
            return run[:hash_column] + COMMENT_MARKER + run[hash_column + 1:]
        return COMMENT_MARKER + run[1:]

    def mark_char(match: re.Match) -> bytes:
        return COMMENT_MARKER + FILLER * (len(match.group(1)) - 1)

    return _LEADING_CHAR.sub(mark_char, _LEADING_SPACES.sub(mark_spaces, code))


@dataclass
class Projection:
    """
    Output of one projection.

    Attributes:
        code: Emitted Ruby code, byte-for-byte the length of the source
        registry: Emitted offset -> original range table
    """

    code: bytes
    registry: PositionRegistry


class ProjectionEngine(NodeVisitor):
    """
    Single-pass visitor writing the projected code.

    One engine projects one template; all state is created in ``project``.
    """

    def __init__(
        self,
        source: SourceBuffer,
        tail_expressions: frozenset[Node] = frozenset(),
        markup_blocks: frozenset[int] = frozenset(),
        html_visualization: bool = False,
    ):
        """
        Initialize the engine.

        Args:
            source: Template source
            tail_expressions: Output nodes that stay bare expressions
            markup_blocks: Open-tag offsets of elements rendered as blocks
            html_visualization: Render markup as placeholder code
        """
        self.source = source
        self.tail_expressions = tail_expressions
        self.markup_blocks = markup_blocks
        self.html_visualization = html_visualization
        self.buffer = bytearray()
        self.registry = PositionRegistry()
        self.counter = 0
        self.comments: list[Node] = []
        self.line_extents: dict[int, int] = {}

    def project(self, document: Node) -> Projection:
        """
        Project ``document`` onto Ruby code.

        Returns:
            The emitted code and its position registry
        """
        self.buffer = blank(self.source.data)
        self.registry = PositionRegistry()
        self.counter = 0
        self.comments = []
        self.line_extents = {}

        self.visit(document)
        # Comments go last: whether one is safe depends on code emitted after it
        for comment in self.comments:
            self._render_comment(comment)

        return Projection(bytes(self.buffer), self.registry)

    def generic_visit(self, node: Node) -> None:
        logger.debug("no projection for %s, leaving it blank", node.kind.name)
        self.visit_children(node)

    # Embedded code

    def visit_content(self, node: Node) -> None:
        self._render_code(node)

    def visit_output(self, node: Node) -> None:
        self._render_code(node)

    def visit_yield(self, node: Node) -> None:
        self._render_code(node)

    def visit_end(self, node: Node) -> None:
        self._render_code(node)

    def visit_branch(self, node: Node) -> None:
        self._render_construct(node)

    def visit_loop(self, node: Node) -> None:
        self._render_construct(node)

    def visit_exception(self, node: Node) -> None:
        self._render_construct(node)

    def visit_comment(self, node: Node) -> None:
        self.registry.record(node.start, node.span, restore_source=False)
        self.comments.append(node)

    def _render_construct(self, node: Node) -> None:
        self._render_code(node)
        if self.html_visualization:
            # Attributes chosen by a control-flow tag, e.g. <div <% if a %>class="x"<% end %>>
            for statement in node.statements:
                if statement.kind == NodeKind.ATTRIBUTE:
                    self._mark(statement.span, not contains_code(statement))
        self.visit_children(node)

    def _render_code(self, node: Node) -> None:
        content = node.content
        if content is None:
            return
        code = self.source.byteslice(content)
        self._write(content.start, code)

        separator = content.start + len(code.rstrip())
        if separator < len(self.buffer) and self.buffer[separator] not in LINE_TERMINATORS:
            self._write(separator, SEPARATOR)

        if node.is_output and code.strip() and node not in self.tail_expressions:
            self._write(node.start, OUTPUT_MARKER)
        self.registry.record(node.start, node.span, restore_source=False)

    def _render_comment(self, node: Node) -> None:
        end_line = self.source.line_index(node.end - 1)
        if self.line_extents.get(end_line, -1) > node.start:
            logger.debug("dropping comment at %d: code follows on line %d", node.start, end_line + 1)
            return

        assert node.content is not None and node.opening is not None
        self.buffer[node.start + len(node.opening) - 1] = ord(COMMENT_MARKER)
        hash_column = self.source.location(node.start).column + 2
        body = format_comment(self.source.byteslice(node.content), hash_column)
        self.buffer[node.content.start:node.content.end] = body

    # Markup

    def visit_element(self, node: Node) -> None:
        if not self.html_visualization:
            self.visit_children(node)
            return

        assert node.name is not None and node.open_tag is not None
        name = code_name(node.name).encode("ascii")
        open_tag = node.open_tag
        restorable_open = not open_tag_code(node) and not self.source.is_multibyte(open_tag)

        if open_tag.start in self.markup_blocks:
            assert node.close_tag is not None
            self._write(open_tag.start, name + b" { ")
            self.registry.record(open_tag.start, open_tag, restorable_open)
            self.visit_children(node)
            close_tag = node.close_tag
            counter = str(self._next_counter()).encode("ascii")
            self._write(close_tag.start, name + counter + b"};")
            self.registry.record(close_tag.start, close_tag, not self.source.is_multibyte(close_tag))
            return

        self._write(open_tag.start, name + SEPARATOR)
        if contains_code(node):
            self.registry.record(open_tag.start, open_tag, restorable_open)
            self.visit_children(node)
        else:
            self.registry.record(open_tag.start, node.span, not self.source.is_multibyte(node.span))

    def visit_text(self, node: Node) -> None:
        if self.html_visualization:
            self._mark(node.span)

    def visit_html_comment(self, node: Node) -> None:
        if contains_code(node):
            self.visit_children(node)
            return
        if not self.html_visualization:
            return
        self._mark(node.span)

    def visit_attribute(self, node: Node) -> None:
        if self.html_visualization and contains_code(node):
            for part in node.statements:
                if part.kind == NodeKind.LITERAL:
                    self._mark(part.span)
        self.visit_children(node)

    def visit_literal(self, node: Node) -> None:
        # Marked by visit_attribute
        pass

    def _mark(self, span: ByteRange, restore_source: bool = True) -> None:
        """
        Write a placeholder over markup ``span`` if it has room for one.

        The registry entry covers the span from the placeholder to its last
        non-whitespace byte.
        """
        offset = placeholder_offset(self.source, span)
        if offset is None:
            return
        text = self.source.byteslice(span)
        trimmed = ByteRange(offset, span.start + len(text.rstrip()))
        letter = chr(ord("a") + self._next_counter()).encode("ascii")
        self._write(offset, b"_" + letter + SEPARATOR)
        self.registry.record(offset, trimmed, restore_source and not self.source.is_multibyte(trimmed))

    # Buffer

    def _write(self, offset: int, code: bytes) -> None:
        """Overwrite ``len(code)`` bytes at ``offset``; never resizes the buffer."""
        end = offset + len(code)
        if end > len(self.buffer):
            raise ValueError(f"write of {len(code)} bytes at {offset} runs past the buffer")
        self.buffer[offset:end] = code
        line = self.source.line_index(offset)
        self.line_extents[line] = max(self.line_extents.get(line, -1), offset)

    def _next_counter(self) -> int:
        value = self.counter
        self.counter = (value + 1) % 10
        return value


def project(
    document: Node,
    source: SourceBuffer,
    tail_expressions: frozenset[Node] = frozenset(),
    markup_blocks: frozenset[int] = frozenset(),
    html_visualization: bool = False,
) -> Projection:
    """Project ``document`` onto layout-preserving Ruby code."""
    engine = ProjectionEngine(source, tail_expressions, markup_blocks, html_visualization)
    return engine.project(document)
