"""Structured logging configuration."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pythonjsonlogger import jsonlogger

from switchdex.config import settings
from switchdex.models import utc_now

# Context fields a scan attaches through get_logger(); promoted to top-level JSON keys
CONTEXT_FIELDS = ("trigger", "category", "entity", "source")

# Libraries that log every request or job tick at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


class ScanJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines with level, location and whatever scan context is present."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = utc_now().isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source_location'] = f"{record.filename}:{record.lineno}"

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_record[name] = value


class ContextConsoleFormatter(logging.Formatter):
    """Plain console lines, suffixed with [category/entity] when a scan set them."""

    def format(self, record):
        line = super().format(record)
        parts = [str(getattr(record, name)) for name in ("category", "entity") if getattr(record, name, None)]
        if parts:
            line = f"{line} [{'/'.join(parts)}]"
        return line


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_dir: str | Path | None = None):
    """Configure logging for the service.

    Console output stays human-readable; app.log and error.log hold JSON lines.

    Args:
        log_dir: Directory for the log files. Defaults to settings.log_dir.
    """
    logs_dir = Path(log_dir or settings.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        ContextConsoleFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    json_formatter = ScanJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    root_logger.addHandler(_rotating_handler(logs_dir / "app.log", logging.DEBUG, json_formatter))
    root_logger.addHandler(_rotating_handler(logs_dir / "error.log", logging.ERROR, json_formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class ScanLoggerAdapter(logging.LoggerAdapter):
    """Carries scan context (trigger, category, entity, source) onto every record."""

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs

    def bind(self, **context) -> "ScanLoggerAdapter":
        """Return a new adapter with additional context fields."""
        return ScanLoggerAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> ScanLoggerAdapter:
    """
    Get a logger with optional scan context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Context fields, e.g. category='game', trigger='manual'

    Returns:
        ScanLoggerAdapter with context
    """
    return ScanLoggerAdapter(logging.getLogger(name), context)
