"""
Exception hierarchy.

Fatal failures are raised as exceptions; recoverable markup problems are
collected as data on the parse result instead (see parser.MarkupDefect).
"""

from typing import Any, Dict, Optional


class ErbprojError(Exception):
    """Base exception for erbproj errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TemplateParseError(ErbprojError):
    """Raised when a template cannot be tokenized into a usable tree"""

    def __init__(self, message: str, offset: int, line: int, column: int, path: str = ""):
        self.offset = offset
        self.line = line
        self.column = column
        self.path = path
        where = f"{path}:" if path else ""
        super().__init__(
            message=f"{where}{line}:{column}: {message}",
            details={"offset": offset, "line": line, "column": column, "path": path},
        )


class ConfigurationError(ErbprojError):
    """Raised when settings cannot be loaded or validated"""

    def __init__(self, source: str, error: str):
        super().__init__(
            message=f"Invalid configuration in {source}: {error}",
            details={"source": source, "error": error},
        )
