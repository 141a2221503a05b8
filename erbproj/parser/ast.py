"""
Syntax tree for ERB templates.

One ``Node`` dataclass tagged with a ``NodeKind`` covers every construct;
which optional fields are populated depends on the kind. Embedded-code
nodes carry the tag's byte span, the code's byte range and their opening
delimiter. Markup elements carry open/close tag spans, the ERB tags found
inside the open tag (``attributes``) and their body (``statements``).
Attributes keep their value's literal runs and ERB tags as statements.
Chain links (``subsequent``, ``end_node``) always point forward to later
siblings in the same chain, never to ancestors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from .source import ByteRange

OUTPUT_OPENINGS = frozenset({"<%=", "<%=="})


class NodeKind(Enum):
    """Node kinds of the template syntax tree."""

    DOCUMENT = auto()

    # Embedded code
    CONTENT = auto()  # <% code %>
    OUTPUT = auto()  # <%= code %>
    COMMENT = auto()  # <%# text %>
    BRANCH = auto()  # if/unless/case and their elsif/else/when/in clauses
    LOOP = auto()  # while/until/for/iterator block
    EXCEPTION = auto()  # begin and its rescue/else/ensure clauses
    END = auto()  # end
    YIELD = auto()  # yield

    # Markup
    ELEMENT = auto()
    TEXT = auto()
    HTML_COMMENT = auto()
    ATTRIBUTE = auto()  # name="value" inside an open tag
    LITERAL = auto()  # literal text of a quoted attribute value
    DECLARATION = auto()  # <!DOCTYPE ...>
    STRAY_CLOSE_TAG = auto()  # </name> with no open element


CODE_KINDS = frozenset({
    NodeKind.CONTENT,
    NodeKind.OUTPUT,
    NodeKind.COMMENT,
    NodeKind.BRANCH,
    NodeKind.LOOP,
    NodeKind.EXCEPTION,
    NodeKind.END,
    NodeKind.YIELD,
})


@dataclass(eq=False)
class Node:
    """
    A node of the template syntax tree.

    Nodes compare by identity so they can be collected in sets.

    Attributes:
        kind: Variant tag
        span: Full byte span (whole tag, whole element, whole text run)
        content: Code range between ERB delimiters
        opening: ERB opening delimiter, e.g. ``<%=``
        keyword: Keyword of control-flow tags (``if``, ``when``, ``rescue``, ...)
        name: Element tag name
        open_tag: Span of an element's open tag
        close_tag: Span of an element's close tag, None for void/unclosed elements
        attributes: Attribute and ERB nodes inside an element's open tag
        statements: Body of a construct, clause or element; the literal
            and ERB parts of an attribute value
        subsequent: Next clause in an if/case/begin chain
        end_node: Terminating ``end`` tag of a chain head
    """

    kind: NodeKind
    span: ByteRange
    content: ByteRange | None = None
    opening: str | None = None
    keyword: str | None = None
    name: str | None = None
    open_tag: ByteRange | None = None
    close_tag: ByteRange | None = None
    attributes: list[Node] = field(default_factory=list)
    statements: list[Node] = field(default_factory=list)
    subsequent: Node | None = None
    end_node: Node | None = None

    @property
    def start(self) -> int:
        return self.span.start

    @property
    def end(self) -> int:
        return self.span.end

    @property
    def is_code(self) -> bool:
        return self.kind in CODE_KINDS

    @property
    def is_output(self) -> bool:
        return self.opening in OUTPUT_OPENINGS

    def __repr__(self) -> str:
        label = self.keyword or self.name or self.opening or ""
        return f"Node({self.kind.name} {label!s} @{self.span.start}:{self.span.end})"

