"""
Uniform view over the template syntax tree.

Every consumer of the tree goes through ``kind`` and ``children`` so that
the per-construct field layout of ``Node`` stays in one place. Children are
always in document order: open-tag attributes and code, then body
statements (or an attribute's value parts), then the
next clause of a chain, then the terminating ``end``.
"""

from __future__ import annotations

from typing import Any, Iterator

from ..parser.ast import CODE_KINDS, Node, NodeKind

# Statement lists whose last statement is the construct's value
VALUE_KINDS = frozenset({NodeKind.BRANCH, NodeKind.EXCEPTION})


def kind(node: Node) -> NodeKind:
    return node.kind


def children(node: Node) -> list[Node]:
    """Return the children of ``node`` in document order."""
    result = [*node.attributes, *node.statements]
    if node.subsequent is not None:
        result.append(node.subsequent)
    if node.end_node is not None:
        result.append(node.end_node)
    return result


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and all of its descendants in document order."""
    yield node
    for child in children(node):
        yield from walk(child)


def is_code(node: Node) -> bool:
    return node.kind in CODE_KINDS


def returns_value(node: Node) -> bool:
    """True when the statements of ``node`` produce the construct's value."""
    return node.kind in VALUE_KINDS


def contains_code(node: Node) -> bool:
    """True when ``node`` has an embedded-code descendant."""
    return any(is_code(child) for child in walk(node) if child is not node)


def open_tag_code(element: Node) -> list[Node]:
    """Embedded-code nodes inside an element's open tag, in document order."""
    return [node for attribute in element.attributes for node in walk(attribute) if is_code(node)]


class NodeVisitor:
    """
    Base class for tree visitors.

    ``visit`` dispatches to ``visit_<kind>`` (e.g. ``visit_output``) and falls
    back to ``generic_visit``, which just visits the children. Visitor
    methods call ``visit_children`` to continue the traversal.
    """

    def visit(self, node: Node) -> Any:
        method = getattr(self, f"visit_{node.kind.name.lower()}", None)
        if method is None:
            return self.generic_visit(node)
        return method(node)

    def generic_visit(self, node: Node) -> Any:
        self.visit_children(node)
        return None

    def visit_children(self, node: Node) -> None:
        for child in children(node):
            self.visit(child)
