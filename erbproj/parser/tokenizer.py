"""
Tokenizer for ERB templates.

Byte-level, mode-driven regex tokenizer. Each mode has its own ``PATTERNS``
table compiled into one alternation of named groups; the first alternative
that matches at the current offset wins.

Modes:
- data: markup text between tags
- tag: inside an opening tag, between ``<name`` and ``>``
- quoted: inside a quoted attribute value
- comment: inside ``<!-- ... -->``
- raw: inside ``<script>``/``<style>``, where only ERB tags and the matching
  close tag are recognized
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto

from ..core.errors import TemplateParseError
from .source import ByteRange, SourceBuffer

RAW_TEXT_ELEMENTS = frozenset({"script", "style"})


class TokenType(Enum):
    """Token types for ERB templates."""

    TEXT = auto()
    ERB = auto()  # <% ... %> in any flavor

    OPEN_TAG_START = auto()  # <name
    ATTRIBUTE_NAME = auto()  # name, or an unquoted value after =
    ATTRIBUTE = auto()  # whitespace, = and stray bytes inside an open tag
    ATTRIBUTE_QUOTE = auto()  # opening or closing quote of a value
    ATTRIBUTE_VALUE = auto()  # literal text between quotes
    OPEN_TAG_END = auto()  # > or />
    CLOSE_TAG = auto()  # </name>

    COMMENT_START = auto()  # <!--
    COMMENT_END = auto()  # -->
    DECLARATION = auto()  # <!DOCTYPE ...>, <?xml ...?>

    EOF = auto()


@dataclass
class Token:
    """
    Represents a single token in the template.

    Attributes:
        type: The token type
        value: The raw bytes of the token
        pos: Byte offset in the source
        name: Lower-cased tag or attribute name
        opening: ERB opening delimiter (``<%``, ``<%=``, ``<%==``, ``<%-``, ``<%#``)
        content: Byte range of the code between the ERB delimiters
    """

    type: TokenType
    value: bytes
    pos: int
    name: str | None = None
    opening: str | None = None
    content: ByteRange | None = None

    @property
    def end(self) -> int:
        return self.pos + len(self.value)

    @property
    def span(self) -> ByteRange:
        return ByteRange(self.pos, self.end)

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.pos})"


ERB_PATTERN = re.compile(rb"<%(?P<opening>==|=|-|#)?(?P<code>.*?)(?P<closing>-?%>)", re.DOTALL)

_TAG_NAME = rb"[A-Za-z][A-Za-z0-9:._-]*"


class Tokenizer:
    """
    Regex-based tokenizer for ERB templates.

    Produces a flat token stream; ERB tags appear wherever they occur,
    including inside open tags, attribute values and HTML comments.
    """

    PATTERNS: dict[str, dict[str, bytes]] = {
        "data": {
            "ERB_LITERAL": rb"<%%",
            "ERB": rb"<%",
            "COMMENT_START": rb"<!--",
            "DECLARATION": rb"<![^>]*>?|<\?.*?(?:\?>|\Z)",
            "CLOSE_TAG": rb"</(?P<close_name>" + _TAG_NAME + rb")\s*>",
            "OPEN_TAG_START": rb"<(?P<open_name>" + _TAG_NAME + rb")",
            "TEXT": rb"[^<]+|<",
        },
        "tag": {
            "ERB": rb"<%(?!%)",
            "OPEN_TAG_END": rb"/?>",
            "QUOTE": rb"[\"']",
            "ATTRIBUTE_NAME": rb"[^\s\"'<>/=]+",
            "ATTRIBUTE": rb"\s+|[=<>/]",
        },
        "quoted": {
            "ERB": rb"<%(?!%)",
            "QUOTE": rb"[\"']",
            "ATTRIBUTE_VALUE": rb"[^\"'<]+|<",
        },
        "comment": {
            "ERB": rb"<%(?!%)",
            "COMMENT_END": rb"-->",
            "TEXT": rb"[^<-]+|[<-]",
        },
        "raw": {
            "ERB": rb"<%(?!%)",
            "CLOSE_TAG": rb"</(?P<close_name>" + _TAG_NAME + rb")\s*>",
            "TEXT": rb"[^<]+|<",
        },
    }

    def __init__(self, source: SourceBuffer):
        """
        Initialize tokenizer over a source buffer.

        Args:
            source: The template source
        """
        self.source = source
        self._regexes = {
            mode: re.compile(
                b"|".join(b"(?P<" + name.encode() + b">" + pattern + b")" for name, pattern in patterns.items()),
                re.DOTALL,
            )
            for mode, patterns in self.PATTERNS.items()
        }

    def tokenize(self) -> list[Token]:
        """
        Tokenize the whole source.

        Returns:
            Token list ending with an EOF token. Adjacent text, and adjacent
            attribute value text, is merged.

        Raises:
            TemplateParseError: If an ERB tag is never closed
        """
        data = self.source.data
        tokens: list[Token] = []
        mode = "data"
        quote = b""
        raw_name: str | None = None
        pos = 0

        while pos < len(data):
            match = self._regexes[mode].match(data, pos)
            # Every mode ends with a catch-all alternative
            assert match is not None
            kind = next(name for name in self.PATTERNS[mode] if match.group(name) is not None)

            if kind == "ERB":
                token = self._erb_token(pos)
                tokens.append(token)
                pos = token.end
                continue

            value = match.group(0)
            if kind == "ERB_LITERAL":
                self._append_text(tokens, value, pos)
            elif kind == "TEXT":
                self._append_text(tokens, value, pos)
            elif kind == "COMMENT_START":
                tokens.append(Token(TokenType.COMMENT_START, value, pos))
                mode = "comment"
            elif kind == "COMMENT_END":
                tokens.append(Token(TokenType.COMMENT_END, value, pos))
                mode = "data"
            elif kind == "DECLARATION":
                tokens.append(Token(TokenType.DECLARATION, value, pos))
            elif kind == "OPEN_TAG_START":
                name = match.group("open_name").decode("ascii").lower()
                tokens.append(Token(TokenType.OPEN_TAG_START, value, pos, name=name))
                mode = "tag"
            elif kind == "OPEN_TAG_END":
                tokens.append(Token(TokenType.OPEN_TAG_END, value, pos))
                mode = "data"
                opener = self._current_open_tag(tokens)
                if value == b">" and opener is not None and opener.name in RAW_TEXT_ELEMENTS:
                    mode = "raw"
                    raw_name = opener.name
            elif kind == "QUOTE" and mode == "quoted" and value != quote:
                self._append_text(tokens, value, pos, TokenType.ATTRIBUTE_VALUE)
            elif kind == "QUOTE":
                tokens.append(Token(TokenType.ATTRIBUTE_QUOTE, value, pos))
                mode, quote = ("tag", b"") if mode == "quoted" else ("quoted", value)
            elif kind == "ATTRIBUTE_VALUE":
                self._append_text(tokens, value, pos, TokenType.ATTRIBUTE_VALUE)
            elif kind == "ATTRIBUTE_NAME":
                name = value.decode("utf-8", errors="replace").lower()
                tokens.append(Token(TokenType.ATTRIBUTE_NAME, value, pos, name=name))
            elif kind == "ATTRIBUTE":
                tokens.append(Token(TokenType.ATTRIBUTE, value, pos))
            elif kind == "CLOSE_TAG":
                name = match.group("close_name").decode("ascii").lower()
                if mode == "raw" and name != raw_name:
                    self._append_text(tokens, value, pos)
                else:
                    tokens.append(Token(TokenType.CLOSE_TAG, value, pos, name=name))
                    mode = "data"
                    raw_name = None
            pos = match.end()

        tokens.append(Token(TokenType.EOF, b"", len(data)))
        return tokens

    def _erb_token(self, pos: int) -> Token:
        match = ERB_PATTERN.match(self.source.data, pos)
        if match is None:
            location = self.source.location(pos)
            raise TemplateParseError(
                "unterminated ERB tag",
                offset=pos,
                line=location.line,
                column=location.column,
                path=self.source.path,
            )
        opening = "<%" + (match.group("opening") or b"").decode("ascii")
        return Token(
            TokenType.ERB,
            match.group(0),
            pos,
            opening=opening,
            content=ByteRange(match.start("code"), match.end("code")),
        )

    @staticmethod
    def _append_text(tokens: list[Token], value: bytes, pos: int, kind: TokenType = TokenType.TEXT) -> None:
        last = tokens[-1] if tokens else None
        if last is not None and last.type == kind and last.end == pos:
            last.value += value
        else:
            tokens.append(Token(kind, value, pos))

    @staticmethod
    def _current_open_tag(tokens: list[Token]) -> Token | None:
        for token in reversed(tokens):
            if token.type == TokenType.OPEN_TAG_START:
                return token
        return None


def tokenize(source: SourceBuffer) -> list[Token]:
    """Tokenize ``source`` into a flat token list."""
    return Tokenizer(source).tokenize()
