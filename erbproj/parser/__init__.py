"""
ERB template front end.

Turns template source into the syntax tree consumed by the projection
engine: a byte-offset position index, a tokenizer, an embedded-code
classifier and a best-effort tree builder.
"""

from .ast import CODE_KINDS, Node, NodeKind
from .parser import MarkupDefect, ParseResult, Parser, VOID_ELEMENTS, parse
from .ruby import CodeShape, TagRole, classify
from .source import ByteRange, Location, SourceBuffer
from .tokenizer import Token, TokenType, Tokenizer, tokenize

__all__ = [
    "ByteRange",
    "Location",
    "SourceBuffer",
    "Token",
    "TokenType",
    "Tokenizer",
    "tokenize",
    "CodeShape",
    "TagRole",
    "classify",
    "CODE_KINDS",
    "Node",
    "NodeKind",
    "MarkupDefect",
    "ParseResult",
    "Parser",
    "VOID_ELEMENTS",
    "parse",
]
