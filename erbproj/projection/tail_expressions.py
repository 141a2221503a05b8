"""
Tail-expression analysis.

The last statement of an if/elsif/else/when/begin/rescue/ensure body is the
value of the whole construct. An output tag in that position must stay a
bare expression; anywhere else the engine turns it into ``_ = expr`` so the
analyzer does not report an unused value. Loop and iterator-block bodies
discard their value and never have a tail.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..parser.ast import Node, NodeKind
from ..parser.source import SourceBuffer
from .adapter import NodeVisitor, children, contains_code, returns_value
from .markup_blocks import placeholder_offset

TAIL_CANDIDATES = frozenset({NodeKind.CONTENT, NodeKind.OUTPUT, NodeKind.YIELD})

# Kinds that produce no code of their own
_SILENT_KINDS = frozenset({NodeKind.COMMENT, NodeKind.DECLARATION, NodeKind.STRAY_CLOSE_TAG})


@dataclass
class BlockContext:
    """
    A statement list being visited.

    Attributes:
        statements: The statements of the construct, clause or block
        returning_value: Whether the last statement is the construct's value
        tail: The statement holding that value, if any
    """

    statements: list[Node] = field(default_factory=list)
    returning_value: bool = False
    tail: Node | None = None

    def is_tail(self, node: Node) -> bool:
        return self.returning_value and self.tail is node


class TailExpressionAnalyzer(NodeVisitor):
    """
    One-pass visitor marking the tail statement of every value context.

    Contexts are pushed when entering a construct, clause or block element
    and popped on leave, so each statement is judged against its innermost
    enclosing context. Transparent markup (statement-form elements) does not
    push a context.
    """

    def __init__(self, source: SourceBuffer, markup_blocks: frozenset[int], html_visualization: bool = False):
        self.source = source
        self.markup_blocks = markup_blocks
        self.html_visualization = html_visualization
        self.stack: list[BlockContext] = []
        self.tails: set[Node] = set()

    def analyze(self, document: Node) -> frozenset[Node]:
        """
        Collect the tail statements of ``document``.

        Returns:
            Identity set of tail nodes
        """
        self.stack = []
        self.tails = set()
        self._within(document, BlockContext(document.statements))
        return frozenset(self.tails)

    @property
    def context(self) -> BlockContext | None:
        return self.stack[-1] if self.stack else None

    # Constructs and clauses

    def visit_branch(self, node: Node) -> None:
        self._construct(node)

    def visit_exception(self, node: Node) -> None:
        self._construct(node)

    def visit_loop(self, node: Node) -> None:
        self._construct(node)

    def _construct(self, node: Node) -> None:
        returning = returns_value(node)
        tail = self.find_tail(node.statements) if returning else None
        self._within(node, BlockContext(node.statements, returning, tail))
        # Later clauses and ``end`` sit beside this clause, not inside it
        if node.subsequent is not None:
            self.visit(node.subsequent)
        if node.end_node is not None:
            self.visit(node.end_node)

    def _within(self, node: Node, context: BlockContext) -> None:
        self.stack.append(context)
        for child in [*node.attributes, *node.statements]:
            self.visit(child)
        self.stack.pop()

    # Statements

    def visit_content(self, node: Node) -> None:
        self._mark(node)

    def visit_output(self, node: Node) -> None:
        self._mark(node)

    def visit_yield(self, node: Node) -> None:
        self._mark(node)

    def visit_element(self, node: Node) -> None:
        if self._is_block(node):
            self._within(node, BlockContext(node.statements))
        else:
            self.visit_children(node)

    def _mark(self, node: Node) -> None:
        context = self.context
        if context is not None and context.is_tail(node):
            self.tails.add(node)

    # Reverse scan

    def find_tail(self, statements: list[Node]) -> Node | None:
        """
        Find the statement whose value a statement list returns.

        The list is scanned from the end. Comments and blank markup are
        skipped; the first code statement found decides the result, and
        markup that renders as code ends the search with no tail.
        """
        tail, _ = self._scan(statements, code_body=True)
        return tail

    def _scan(self, statements: list[Node], code_body: bool = False) -> tuple[Node | None, bool]:
        """
        Return ``(tail, stopped)``; ``stopped`` is False only if the list was exhausted.

        ``code_body`` is set for the statements of a control-flow tag, where
        an attribute is marked with a placeholder of its own.
        """
        for node in reversed(statements):
            kind = node.kind
            if kind in _SILENT_KINDS:
                continue
            if kind in TAIL_CANDIDATES:
                return node, True
            if kind == NodeKind.TEXT:
                if self._renders_placeholder(node):
                    return None, True
                continue
            if kind == NodeKind.HTML_COMMENT:
                if contains_code(node):
                    tail, stopped = self._scan(node.statements)
                    if stopped:
                        return tail, True
                    continue
                if self._renders_placeholder(node):
                    return None, True
                continue
            if kind == NodeKind.ATTRIBUTE:
                if contains_code(node):
                    tail, stopped = self._scan(node.statements)
                    if stopped:
                        return tail, True
                if code_body and self._renders_placeholder(node):
                    return None, True
                continue
            if kind == NodeKind.LITERAL:
                # Only reached for values holding code, whose literals are marked
                if self._renders_placeholder(node):
                    return None, True
                continue
            if kind == NodeKind.ELEMENT:
                tail, stopped = self._scan_element(node)
                if stopped:
                    return tail, True
                continue
            # Any other code construct is the last statement and has no tail
            return None, True
        return None, False

    def _scan_element(self, node: Node) -> tuple[Node | None, bool]:
        if not self.html_visualization:
            return self._scan(children(node))
        if self._is_block(node) or not contains_code(node):
            return None, True
        tail, _ = self._scan(children(node))
        # Exhausted: the element's own ``name;`` statement comes last
        return tail, True

    def _is_block(self, node: Node) -> bool:
        return self.html_visualization and node.open_tag is not None and node.open_tag.start in self.markup_blocks

    def _renders_placeholder(self, node: Node) -> bool:
        return self.html_visualization and placeholder_offset(self.source, node.span) is not None


def collect_tail_expressions(
    document: Node,
    source: SourceBuffer,
    markup_blocks: frozenset[int] = frozenset(),
    html_visualization: bool = False,
) -> frozenset[Node]:
    """Return the identity set of tail statements in ``document``."""
    return TailExpressionAnalyzer(source, markup_blocks, html_visualization).analyze(document)
