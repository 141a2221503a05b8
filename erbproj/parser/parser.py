"""
Best-effort tree builder for ERB templates.

The parser walks the token stream once, keeping an explicit stack of open
frames (ERB constructs, elements, open tags, HTML comments). Markup defects
never stop the parse: unclosed elements are closed implicitly, unmatched
close tags and stray ``end`` tags are kept as nodes, and every repair is
recorded as a ``MarkupDefect``. Only a tokenizer failure (an ERB tag that is
never closed) is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..core.logging import get_logger
from .ast import Node, NodeKind
from .ruby import CLAUSE_KEYWORDS, TagRole, classify
from .source import ByteRange, SourceBuffer
from .tokenizer import Token, TokenType, Tokenizer

logger = get_logger(__name__)

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

_ROLE_KINDS = {
    TagRole.BRANCH: NodeKind.BRANCH,
    TagRole.LOOP: NodeKind.LOOP,
    TagRole.EXCEPTION: NodeKind.EXCEPTION,
    TagRole.END: NodeKind.END,
    TagRole.YIELD: NodeKind.YIELD,
}


@dataclass
class MarkupDefect:
    """A recoverable structural problem found while building the tree."""

    message: str
    offset: int

    def __repr__(self) -> str:
        return f"MarkupDefect({self.message!r} at {self.offset})"


@dataclass
class ParseResult:
    """
    Result of parsing one template.

    Attributes:
        source: The parsed source buffer
        document: Root node spanning the whole source
        defects: Markup defects repaired during the parse
    """

    source: SourceBuffer
    document: Node
    defects: list[MarkupDefect] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.defects


@dataclass
class _Frame:
    kind: str  # "erb", "element", "open_tag", "attribute", "comment"
    node: Node
    container: list[Node]
    clause: Node | None = None


class Parser:
    """
    Stack-based parser building the template syntax tree.

    Frames:
    - erb: an open if/case/begin/loop construct; ``clause`` is its latest
      chain link and ``container`` that link's statements
    - element: an element waiting for its close tag
    - open_tag: attributes and ERB tags inside ``<name ...>`` collect into
      ``attributes``
    - attribute: a quoted value; its literal runs and ERB tags collect into
      the attribute's ``statements``
    - comment: an HTML comment waiting for ``-->``
    """

    def __init__(self, source: SourceBuffer):
        """
        Initialize parser for a source buffer.

        Args:
            source: The template source
        """
        self.source = source
        self.tokens: list[Token] = []
        self.pos = 0
        self.defects: list[MarkupDefect] = []
        self.document = Node(NodeKind.DOCUMENT, ByteRange(0, len(source)))
        self.stack: list[_Frame] = []
        # Attribute being read in the innermost open tag
        self._attribute: Node | None = None
        self._expect_value = False
        self._quoted = False

    def parse(self) -> ParseResult:
        """
        Parse the source into a syntax tree.

        Returns:
            ParseResult with the document node and any markup defects

        Raises:
            TemplateParseError: If the template cannot be tokenized
        """
        self.tokens = Tokenizer(self.source).tokenize()
        self.pos = 0
        self.defects = []
        self.stack = [_Frame("document", self.document, self.document.statements)]
        self._end_attribute()

        while self.current().type != TokenType.EOF:
            token = self.advance()
            handler = getattr(self, f"_handle_{token.type.name.lower()}")
            handler(token)

        self._close_all(len(self.source))
        for defect in self.defects:
            logger.debug("%s: %r", self.source.path, defect)
        return ParseResult(self.source, self.document, self.defects)

    # Token stream

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        pos = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return token

    @property
    def top(self) -> _Frame:
        return self.stack[-1]

    def _defect(self, message: str, offset: int) -> None:
        self.defects.append(MarkupDefect(message, offset))

    # Token handlers

    def _handle_text(self, token: Token) -> None:
        # Comment bodies keep only their ERB tags
        if self.top.kind == "comment":
            return
        self.top.container.append(Node(NodeKind.TEXT, token.span))

    def _handle_attribute_name(self, token: Token) -> None:
        attribute = self._attribute
        if attribute is not None and self._expect_value:
            # Unquoted value
            attribute.span = ByteRange(attribute.start, token.end)
            self._end_attribute()
            return
        attribute = Node(NodeKind.ATTRIBUTE, token.span, name=token.name)
        self.top.container.append(attribute)
        self._attribute = attribute

    def _handle_attribute(self, token: Token) -> None:
        attribute = self._attribute
        if token.value == b"=" and attribute is not None and not self._expect_value:
            attribute.span = ByteRange(attribute.start, token.end)
            self._expect_value = True
        elif not token.value.isspace():
            self._end_attribute()

    def _handle_attribute_quote(self, token: Token) -> None:
        if self._quoted:
            self._unwind_to("attribute", token.pos)
            attribute = self.stack.pop().node
            attribute.span = ByteRange(attribute.start, token.end)
            self._end_attribute()
            return

        attribute = self._attribute if self._expect_value else None
        if attribute is None:
            # Quoted value without a name
            attribute = Node(NodeKind.ATTRIBUTE, token.span)
            self.top.container.append(attribute)
        attribute.span = ByteRange(attribute.start, token.end)
        self._attribute = attribute
        self._expect_value = False
        self._quoted = True
        self.stack.append(_Frame("attribute", attribute, attribute.statements))

    def _handle_attribute_value(self, token: Token) -> None:
        self.top.container.append(Node(NodeKind.LITERAL, token.span))

    def _end_attribute(self) -> None:
        self._attribute = None
        self._expect_value = False
        self._quoted = False

    def _handle_declaration(self, token: Token) -> None:
        self.top.container.append(Node(NodeKind.DECLARATION, token.span))

    def _handle_erb(self, token: Token) -> None:
        node = self._code_node(token)
        if self._attribute is not None and not self._quoted:
            attribute, unquoted_value = self._attribute, self._expect_value
            self._end_attribute()
            if unquoted_value and node.kind in (NodeKind.OUTPUT, NodeKind.CONTENT):
                attribute.statements.append(node)
                attribute.span = ByteRange(attribute.start, node.end)
                return
        if node.kind == NodeKind.END:
            self._close_construct(node)
            return
        if node.keyword in CLAUSE_KEYWORDS:
            if not self._continue_construct(node):
                self.top.container.append(node)
            return

        self.top.container.append(node)
        if node.kind in (NodeKind.BRANCH, NodeKind.LOOP, NodeKind.EXCEPTION):
            self.stack.append(_Frame("erb", node, node.statements, clause=node))

    def _handle_open_tag_start(self, token: Token) -> None:
        element = Node(
            NodeKind.ELEMENT,
            token.span,
            name=token.name,
            open_tag=token.span,
        )
        self.top.container.append(element)
        self.stack.append(_Frame("open_tag", element, element.attributes))

    def _handle_open_tag_end(self, token: Token) -> None:
        self._unwind_to("open_tag", token.pos)
        self._end_attribute()
        frame = self.stack.pop()
        element = frame.node
        element.open_tag = ByteRange(element.open_tag.start, token.end)
        element.span = element.open_tag
        if token.value == b"/>" or element.name in VOID_ELEMENTS:
            return
        self.stack.append(_Frame("element", element, element.statements))

    def _handle_close_tag(self, token: Token) -> None:
        for index in range(len(self.stack) - 1, 0, -1):
            frame = self.stack[index]
            if frame.kind == "element" and frame.node.name == token.name:
                while len(self.stack) - 1 > index:
                    self._implicit_close(self.stack.pop(), token.pos)
                self.stack.pop()
                element = frame.node
                element.close_tag = token.span
                element.span = ByteRange(element.open_tag.start, token.end)
                return
            if frame.kind != "element":
                break

        self._defect(f"unmatched closing tag </{token.name}>", token.pos)
        self.top.container.append(Node(NodeKind.STRAY_CLOSE_TAG, token.span, name=token.name))

    def _handle_comment_start(self, token: Token) -> None:
        comment = Node(NodeKind.HTML_COMMENT, token.span)
        self.top.container.append(comment)
        self.stack.append(_Frame("comment", comment, comment.statements))

    def _handle_comment_end(self, token: Token) -> None:
        self._unwind_to("comment", token.pos)
        frame = self.stack.pop()
        frame.node.span = ByteRange(frame.node.start, token.end)

    # Embedded code

    def _code_node(self, token: Token) -> Node:
        assert token.content is not None and token.opening is not None
        if token.opening == "<%#":
            return Node(NodeKind.COMMENT, token.span, content=token.content, opening=token.opening)

        code = self.source.byteslice(token.content).decode("utf-8", errors="replace")
        shape = classify(code)
        if shape.role == TagRole.CLAUSE:
            kind = NodeKind.EXCEPTION if shape.keyword in ("rescue", "ensure") else NodeKind.BRANCH
        elif shape.role == TagRole.STATEMENT:
            kind = NodeKind.OUTPUT if token.opening in ("<%=", "<%==") else NodeKind.CONTENT
        else:
            kind = _ROLE_KINDS[shape.role]
        return Node(kind, token.span, content=token.content, opening=token.opening, keyword=shape.keyword)

    def _nearest_construct(self) -> int | None:
        for index in range(len(self.stack) - 1, 0, -1):
            kind = self.stack[index].kind
            if kind == "erb":
                return index
            if kind in ("open_tag", "attribute", "comment"):
                return None
        return None

    def _continue_construct(self, clause: Node) -> bool:
        index = self._nearest_construct()
        if index is None:
            self._defect(f"'{clause.keyword}' outside of a control structure", clause.start)
            return False
        while len(self.stack) - 1 > index:
            self._implicit_close(self.stack.pop(), clause.start)

        frame = self.top
        if clause.keyword == "else" and frame.node.kind == NodeKind.EXCEPTION:
            clause.kind = NodeKind.EXCEPTION
        assert frame.clause is not None
        frame.clause.subsequent = clause
        frame.clause = clause
        frame.container = clause.statements
        return True

    def _close_construct(self, end_node: Node) -> None:
        index = self._nearest_construct()
        if index is None:
            self._defect("'end' without an open control structure", end_node.start)
            self.top.container.append(end_node)
            return
        while len(self.stack) - 1 > index:
            self._implicit_close(self.stack.pop(), end_node.start)
        frame = self.stack.pop()
        frame.node.end_node = end_node

    # Recovery

    def _unwind_to(self, kind: str, offset: int) -> None:
        while self.top.kind != kind:
            self._implicit_close(self.stack.pop(), offset)

    def _implicit_close(self, frame: _Frame, offset: int) -> None:
        node = frame.node
        if frame.kind == "element":
            self._defect(f"unclosed element <{node.name}>", node.start)
            node.span = ByteRange(node.start, _extent(node))
        elif frame.kind == "erb":
            self._defect(f"missing 'end' for '{node.keyword}'", node.start)
        elif frame.kind == "open_tag":
            self._defect(f"unterminated open tag <{node.name}", node.start)
            node.open_tag = ByteRange(node.start, offset)
            node.span = node.open_tag
        elif frame.kind == "attribute":
            self._defect("unterminated attribute value", node.start)
            node.span = ByteRange(node.start, offset)
            self._end_attribute()
        elif frame.kind == "comment":
            self._defect("unterminated HTML comment", node.start)
            node.span = ByteRange(node.start, offset)

    def _close_all(self, offset: int) -> None:
        while len(self.stack) > 1:
            self._implicit_close(self.stack.pop(), offset)


def parse(source: SourceBuffer) -> ParseResult:
    """Parse ``source`` into a syntax tree."""
    return Parser(source).parse()


def _extent(node: Node) -> int:
    """End offset of ``node`` including its body and chain."""
    end = node.end
    for child in (*node.statements, node.subsequent, node.end_node):
        if child is not None:
            end = max(end, _extent(child))
    return end
