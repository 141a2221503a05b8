"""
Projection of ERB syntax trees onto layout-preserving Ruby code.

The tail-expression analyzer and the markup-block classifier each make one
pass over the tree; the engine then makes the final pass, writing the code
and the position-mapping registry.
"""

from .adapter import NodeVisitor, children, contains_code, kind, walk
from .engine import Projection, ProjectionEngine, blank, format_comment, project
from .markup_blocks import MarkupBlockClassifier, code_name, collect_markup_blocks, placeholder_offset
from .registry import PositionMapping, PositionRegistry
from .tail_expressions import BlockContext, TailExpressionAnalyzer, collect_tail_expressions

__all__ = [
    "NodeVisitor",
    "children",
    "contains_code",
    "kind",
    "walk",
    "Projection",
    "ProjectionEngine",
    "blank",
    "format_comment",
    "project",
    "MarkupBlockClassifier",
    "code_name",
    "collect_markup_blocks",
    "placeholder_offset",
    "PositionMapping",
    "PositionRegistry",
    "BlockContext",
    "TailExpressionAnalyzer",
    "collect_tail_expressions",
]
