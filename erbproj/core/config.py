"""
Converter configuration.

Settings come from ``ERBPROJ_*`` environment variables (and an optional
``.env`` file), optionally overlaid with a YAML configuration file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

DEFAULT_EXTENSIONS = [".html.erb"]

# Analyzer rules that misfire on projected templates regardless of rendering mode.
EXCLUDED_COPS = [
    "Layout/CommentIndentation",  # comment markers move to the tag column
    "Layout/EndAlignment",  # `end` aligns with markup, not with its opener
    "Layout/ExtraSpacing",  # blanked markup leaves runs of spaces
    "Layout/IndentationConsistency",
    "Layout/IndentationWidth",
    "Layout/InitialIndentation",
    "Layout/LeadingEmptyLines",
    "Layout/TrailingEmptyLines",
    "Layout/TrailingWhitespace",
    "Style/BlockDelimiters",  # blocks span several tags
    "Style/FrozenStringLiteralComment",
    "Style/IfUnlessModifier",  # one-line tags cannot become modifiers
    "Style/IfWithSemicolon",  # separators are synthesized
    "Style/Semicolon",
]

# Rules that still misfire when markup is rendered as code.
HTML_RELATED_EXCLUDED_COPS = [
    "Layout/EmptyLineAfterGuardClause",
    "Style/IdenticalConditionalBranches",
    "Style/Next",
    "Style/RedundantCondition",
]


class ConverterSettings(BaseSettings):
    """Converter settings"""

    model_config = SettingsConfigDict(
        env_prefix="ERBPROJ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Conversion
    EXTENSIONS: list[str] = list(DEFAULT_EXTENSIONS)
    HTML_VISUALIZATION: bool = False

    # Logging
    LOG_LEVEL: str = "WARNING"
    LOG_FORMAT: str = "text"  # json or text
    LOG_FILE: Optional[str] = None

    @field_validator("EXTENSIONS")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one extension is required")
        for ext in v:
            if not ext.startswith("."):
                raise ValueError(f"extension must start with '.': {ext!r}")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError(f"LOG_FORMAT must be 'json' or 'text', got {v!r}")
        return v

    def supported_file(self, path: str | Path) -> bool:
        """Check whether ``path`` ends with one of the configured extensions."""
        name = str(path)
        return any(name.endswith(ext) for ext in self.EXTENSIONS)

    def globs(self) -> list[str]:
        """Relative and absolute glob patterns for every configured extension."""
        patterns: list[str] = []
        for ext in self.EXTENSIONS:
            patterns.extend([f"**/*{ext}", f"/**/*{ext}"])
        return patterns

    def to_rubocop_config(self) -> dict[str, Any]:
        """
        Build the analyzer configuration fragment for template files.

        Returns:
            Mapping with an ``AllCops`` include list and one ``Exclude`` entry
            per rule that cannot run on projected templates.
        """
        globs = self.globs()
        config: dict[str, Any] = {"AllCops": {"Include": globs}}
        for cop in EXCLUDED_COPS + HTML_RELATED_EXCLUDED_COPS:
            config[cop] = {"Exclude": list(globs)}
        return config


def _yaml_overrides(data: dict[str, Any]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if "extensions" in data:
        overrides["EXTENSIONS"] = data["extensions"]
    if "html_visualization" in data:
        overrides["HTML_VISUALIZATION"] = data["html_visualization"]

    logging_section = data.get("logging") or {}
    if not isinstance(logging_section, dict):
        raise ConfigurationError("logging", "expected a mapping")
    for key in ("level", "format", "file"):
        if key in logging_section:
            overrides[f"LOG_{key.upper()}"] = logging_section[key]
    return overrides


def load_settings(path: str | Path | None = None) -> ConverterSettings:
    """
    Load settings from the environment, overlaid with a YAML file.

    Args:
        path: Optional YAML file with ``extensions``, ``html_visualization``
            and ``logging`` keys

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid
    """
    overrides: dict[str, Any] = {}
    source = "environment"
    if path is not None:
        source = str(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(source, str(exc)) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(source, "top level must be a mapping")
        overrides = _yaml_overrides(data)

    try:
        return ConverterSettings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(source, str(exc)) from exc


@lru_cache()
def get_settings() -> ConverterSettings:
    """Get cached settings instance"""
    return load_settings()
