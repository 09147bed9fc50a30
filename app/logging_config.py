"""Logging setup for the PDF export service.

Provides:
- StructuredJsonFormatter: JSON-line output carrying selected ``extra=`` fields
- setup_logging: installs either a human-readable or a JSON stderr handler
"""

import json
import logging
from typing import Any

# Fields copied from ``extra={...}`` onto JSON log lines
STRUCTURED_FIELDS = (
    "event",
    "key",
    "size_kb",
    "portfolio_id",
    "template_id",
    "count",
    "duration_ms",
    "cached",
    "error",
)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StructuredJsonFormatter(logging.Formatter):
    """Formats log records as single-line JSON (JSONL).

    Output includes timestamp, level, logger name, message and any of
    ``STRUCTURED_FIELDS`` passed through ``extra={}``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STRUCTURED_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    log_level : str
        Level name such as ``"DEBUG"`` or ``"INFO"``. Unknown names fall back to INFO.
    log_format : str
        ``"json"`` for JSON lines, anything else for human-readable output.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Replace handlers installed by a previous call (e.g. app reload)
    for handler in list(root.handlers):
        if getattr(handler, "_pdf_service_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    handler.setLevel(level)
    handler._pdf_service_handler = True
    root.addHandler(handler)
