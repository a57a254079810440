"""Logging configuration for repo-migrations.

Supports two logging formats:
- JSON logging (production): Structured logs for log aggregation systems
- Standard logging (development): Human-readable logs with stacktraces

Configure via REPO_MIGRATIONS_LOG_FORMAT_JSON (default: True).
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from repo_migrations.config import settings

# attributes every LogRecord carries, everything else came in via extra=
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter with stable field names.

    Extra fields passed via ``extra=`` (repository, migration, ...) are kept.
    """

    def add_fields(
        self,
        log_record: dict[str, object],
        record: logging.LogRecord,
        message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        log_record.update({
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        })


def setup_logger(
    logger: logging.Logger,
    log_level: str | None = None,
    json_format: bool | None = None,
) -> logging.Logger:
    """Attach a single stdout handler with the configured formatter."""
    if json_format is None:
        json_format = settings.log_format_json
    formatter: logging.Formatter
    if json_format:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level or settings.log_level)
    return logger


def setup_logging(
    log_level: str | None = None, json_format: bool | None = None
) -> logging.Logger:
    """Configure the root logger and return the application logger.

    Loggers listed in REPO_MIGRATIONS_LOG_EXCLUDE_LOGGERS are kept at WARNING.
    """
    setup_logger(logging.getLogger(), log_level=log_level, json_format=json_format)

    for name in settings.log_exclude_loggers.split(","):
        if name.strip():
            logging.getLogger(name.strip()).setLevel(logging.WARNING)

    return logging.getLogger("repo_migrations")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module.

    All loggers inherit the formatting configuration from the root logger.
    """
    return logging.getLogger(name)
