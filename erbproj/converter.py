"""
ERB to Ruby conversion.

``Converter.convert`` runs the whole pipeline for one template: parse, the
two analysis passes, projection, and hybrid-code generation. Every call
builds its own state, so one converter may be shared between threads.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from .core.config import ConverterSettings
from .core.logging import get_context_logger
from .parser.parser import MarkupDefect, parse
from .parser.source import SourceBuffer
from .projection.engine import project
from .projection.markup_blocks import collect_markup_blocks
from .projection.registry import PositionRegistry
from .projection.tail_expressions import collect_tail_expressions


class ConversionResult(BaseModel):
    """Result of converting one template."""

    path: str = Field(description="Template path as given to the converter")
    ruby_code: str = Field(description="Projected Ruby code, same layout as the template")
    hybrid_code: str = Field(description="Ruby code with restorable markup put back")
    registry: PositionRegistry = Field(default_factory=PositionRegistry)
    defects: list[MarkupDefect] = Field(default_factory=list)


class Converter:
    """
    Converts ERB templates to layout-preserving Ruby code.

    Example:
        >>> result = Converter().convert("show.html.erb", "<p><%= @user.name %></p>")
        >>> result.ruby_code
        '   _ = @user.name;      '
    """

    def __init__(self, html_visualization: bool = False):
        """
        Initialize converter.

        Args:
            html_visualization: Render markup as placeholder Ruby code
        """
        self.html_visualization = html_visualization

    @classmethod
    def from_settings(cls, settings: ConverterSettings) -> "Converter":
        return cls(html_visualization=settings.HTML_VISUALIZATION)

    def convert(self, path: str, source_text: str) -> ConversionResult:
        """
        Convert one template.

        Args:
            path: Template path, used in diagnostics
            source_text: Template source

        Returns:
            ConversionResult with Ruby code, hybrid code and registry

        Raises:
            TemplateParseError: If the template cannot be parsed
        """
        log = get_context_logger(__name__, path=path)
        source = SourceBuffer(path, source_text)
        parsed = parse(source)
        for defect in parsed.defects:
            location = source.location(defect.offset)
            log.warning("%s:%s: %s", path, location, defect.message)

        blocks = collect_markup_blocks(parsed.document, source) if self.html_visualization else frozenset()
        tails = collect_tail_expressions(
            parsed.document,
            source,
            markup_blocks=blocks,
            html_visualization=self.html_visualization,
        )
        projection = project(
            parsed.document,
            source,
            tail_expressions=tails,
            markup_blocks=blocks,
            html_visualization=self.html_visualization,
        )
        hybrid = projection.registry.restore(projection.code, source)

        log.debug(
            "converted %s",
            path,
            extra_data={
                "bytes": len(source),
                "tail_expressions": len(tails),
                "markup_blocks": len(blocks),
                "registry_entries": len(projection.registry),
                "defects": len(parsed.defects),
            },
        )
        return ConversionResult(
            path=path,
            ruby_code=projection.code.decode("utf-8"),
            hybrid_code=hybrid.decode("utf-8"),
            registry=projection.registry,
            defects=parsed.defects,
        )

    def convert_file(self, path: str | Path, encoding: str = "utf-8") -> ConversionResult:
        """Read and convert a template file."""
        file_path = Path(path)
        return self.convert(str(file_path), file_path.read_text(encoding=encoding))


def convert(path: str, source_text: str, html_visualization: bool = False) -> ConversionResult:
    """Convert one template with a fresh converter."""
    return Converter(html_visualization=html_visualization).convert(path, source_text)
