"""
Logging for the converter and the command line.

Records go to stderr, never stdout: stdout carries converted code. Two line
formats are available, a JSON object per record for tooling and a short
text form for terminals. Per-template context (the template path, counts
from a conversion) travels on the record as ``extra_data``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

from .config import ConverterSettings, get_settings

PACKAGE_LOGGER = "erbproj"


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return dict(getattr(record, "extra_data", None) or {})


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; context keys are merged at the top level"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(_context(record))
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``LEVEL logger: message [key=value ...]`` for terminals"""

    def __init__(self):
        super().__init__(fmt="%(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line = f"{line} [{pairs}]"
        return line


def setup_logging(settings: Optional[ConverterSettings] = None) -> None:
    """
    Route ``erbproj`` records to stderr and, optionally, a log file.

    Calling this again replaces the handlers of the previous call. The root
    logger is left alone so embedding applications keep their own setup.

    Args:
        settings: Source of LOG_LEVEL, LOG_FORMAT and LOG_FILE; defaults to
            the cached environment settings
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.WARNING)
    formatter: logging.Formatter = JsonLineFormatter() if settings.LOG_FORMAT == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class TemplateLogAdapter(logging.LoggerAdapter):
    """Adapter that stamps every record with fixed template context"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra["extra_data"] = {**self.extra, **kwargs.pop("extra_data", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> TemplateLogAdapter:
    """
    Logger whose records all carry ``context``.

    Example:
        >>> log = get_context_logger(__name__, path="show.html.erb")
        >>> log.debug("converted", extra_data={"defects": 0})
    """
    return TemplateLogAdapter(get_logger(name), context)
