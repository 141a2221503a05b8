"""
erbproj - project ERB templates onto layout-preserving Ruby code.

The emitted code has the template's exact byte length and line layout, so a
Ruby analyzer run over it reports positions that are valid in the template.

Example:
    >>> from erbproj import Converter
    >>> Converter().convert("a.html.erb", "<% if x %><%= y %><% end %>").ruby_code
    '   if x;      y;     end;  '
"""

from .converter import ConversionResult, Converter, convert
from .core.errors import ConfigurationError, ErbprojError, TemplateParseError

__version__ = "0.1.0"

__all__ = [
    "Converter",
    "ConversionResult",
    "convert",
    "ErbprojError",
    "TemplateParseError",
    "ConfigurationError",
]
