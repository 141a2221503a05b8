"""
Classification of embedded Ruby code.

A single ERB tag rarely holds a complete Ruby statement: ``<% if x %>`` opens
a construct that a later ``<% end %>`` closes. The parser needs to know what
each tag does to the block structure, which is decided here from the
pygments Ruby token stream so that strings, comments and method names such
as ``x.end`` are never mistaken for keywords.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache

from pygments.lexers import get_lexer_by_name
from pygments.token import Token

CLAUSE_KEYWORDS = frozenset({"elsif", "else", "when", "in", "rescue", "ensure"})
BRANCH_KEYWORDS = frozenset({"if", "unless", "case"})
LOOP_KEYWORDS = frozenset({"while", "until", "for"})
DEFINITION_KEYWORDS = frozenset({"def", "class", "module"})

# Keywords that open a construct only at the start of an expression;
# elsewhere they are modifiers (``x if y``).
_LEADING_OPENERS = frozenset({"if", "unless", "while", "until"})


class TagRole(Enum):
    """Role of an ERB tag's code in the template's block structure."""

    STATEMENT = auto()  # complete statement or expression
    BRANCH = auto()  # opens if/unless/case
    LOOP = auto()  # opens while/until/for or an iterator block
    EXCEPTION = auto()  # opens begin
    CLAUSE = auto()  # continues an open construct (else, when, rescue, ...)
    END = auto()  # closes the innermost construct
    YIELD = auto()  # yields to the layout or block


@dataclass(frozen=True)
class CodeShape:
    """
    Result of classifying one tag's code.

    Attributes:
        role: How the tag affects block structure
        keyword: The keyword that determined the role, if any
        depth: Net number of constructs opened (negative when closing)
    """

    role: TagRole
    keyword: str | None
    depth: int


@lru_cache(maxsize=1)
def _lexer():
    return get_lexer_by_name("ruby")


def significant_tokens(code: str) -> list[tuple[object, str]]:
    """Lex ``code`` and drop whitespace, comments and string bodies."""
    tokens = []
    for _, ttype, text in _lexer().get_tokens_unprocessed(code):
        if ttype in Token.Comment or ttype in Token.Text.Whitespace or not text.strip():
            continue
        tokens.append((ttype, text))
    return tokens


def _expression_start(previous: tuple[object, str] | None) -> bool:
    if previous is None:
        return True
    ttype, text = previous
    if ttype in Token.Punctuation:
        return text in (";", "(", ",", "{")
    if ttype in Token.Operator:
        return not text.startswith(".") and text != "::"
    if ttype in Token.Keyword:
        return text in ("then", "do", "else", "begin", "return")
    return False


def classify(code: str) -> CodeShape:
    """
    Classify the code of one ERB tag.

    Args:
        code: Ruby code between the ERB delimiters

    Returns:
        CodeShape describing the tag's role
    """
    tokens = significant_tokens(code)
    if not tokens:
        return CodeShape(TagRole.STATEMENT, None, 0)

    first_type, first_text = tokens[0]
    if first_type in Token.Keyword and first_text == "end":
        return CodeShape(TagRole.END, "end", -1)
    if first_type in Token.Punctuation and first_text == "}":
        return CodeShape(TagRole.END, "}", -1)
    if first_type in Token.Keyword and first_text in CLAUSE_KEYWORDS:
        return CodeShape(TagRole.CLAUSE, first_text, 0)

    depth = 0
    opener: str | None = None
    loop_pending = False
    previous: tuple[object, str] | None = None
    for ttype, text in tokens:
        delta = 0
        if ttype in Token.Keyword:
            if text in _LEADING_OPENERS:
                if _expression_start(previous):
                    delta = 1
                    loop_pending = text in LOOP_KEYWORDS
            elif text == "for":
                delta = 1
                loop_pending = True
            elif text in ("case", "begin") or text in DEFINITION_KEYWORDS:
                delta = 1
            elif text == "do":
                if loop_pending:
                    loop_pending = False
                else:
                    delta = 1
            elif text == "end":
                delta = -1
        elif ttype in Token.Punctuation:
            if text == "{":
                delta = 1
            elif text == "}":
                delta = -1
            elif text == ";":
                loop_pending = False

        if delta > 0 and depth >= 0 and opener is None:
            opener = text
        depth += delta
        if depth == 0 and delta < 0:
            opener = None
        previous = (ttype, text)

    if depth > 0 and opener is not None:
        return CodeShape(_opener_role(opener), opener, depth)
    if first_type in Token.Keyword and first_text == "yield":
        return CodeShape(TagRole.YIELD, "yield", depth)
    return CodeShape(TagRole.STATEMENT, None, depth)


def _opener_role(opener: str) -> TagRole:
    if opener in BRANCH_KEYWORDS:
        return TagRole.BRANCH
    if opener == "begin":
        return TagRole.EXCEPTION
    return TagRole.LOOP
