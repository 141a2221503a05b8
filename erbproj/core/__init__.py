"""Ambient services shared by the converter: configuration, logging and errors."""

from .config import ConverterSettings, get_settings, load_settings
from .errors import ConfigurationError, ErbprojError, TemplateParseError
from .logging import get_context_logger, get_logger, setup_logging

__all__ = [
    "ConverterSettings",
    "get_settings",
    "load_settings",
    "ErbprojError",
    "TemplateParseError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "get_context_logger",
]
