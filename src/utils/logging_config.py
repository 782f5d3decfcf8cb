"""
Structured logging configuration.

Supports both text and JSON log formats based on config.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger


class JSONFormatter(jsonlogger.JsonFormatter):
    """JSON log formatter with standard fields."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        # Fields passed through log_event() or extra={"extra_fields": ...}
        if hasattr(record, "extra_fields"):
            log_record.pop("extra_fields", None)
            log_record.update(record.extra_fields)


class TextFormatter(logging.Formatter):
    """Human-readable formatter that appends structured fields as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if fields:
            rendered = " ".join(f"{key}={value}" for key, value in fields.items())
            message = f"{message} [{rendered}]"
        return message


TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "multipart")


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return JSONFormatter(JSON_FORMAT)
    return TextFormatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: Path | str | None = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Configure root logging for the API server and the CLI.

    Replaces any existing root handlers, so calling it twice is safe.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_format: "text" for human-readable, "json" for structured.
        log_file: Optional path for a rotating log file.
        max_bytes: Max log file size before rotation.
        backup_count: Number of rotated files to keep.
    """
    formatter = _build_formatter(log_format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging configured: level={level}, format={log_format}")


def log_event(
    logger: logging.Logger,
    event: str,
    message: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Emit a log record tagged with an event name and structured fields.

    Args:
        logger: Logger to emit on.
        event: Stable event name, e.g. "rates_fallback".
        message: Human-readable message.
        level: Logging level.
        **fields: Extra structured fields attached to the record.
    """
    logger.log(level, message, extra={"extra_fields": {"event": event, **fields}})
