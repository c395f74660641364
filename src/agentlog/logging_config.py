"""
Logging setup for agentlog.

Configures the ``agentlog`` logger hierarchy with console handlers
(INFO/DEBUG to stdout, WARNING and above to stderr) and a size-rotated
log file per execution context (``cli``, ``live``).
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone

from agentlog.config import settings

_STANDARD_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class _MaxLevelFilter(logging.Filter):
    """Only pass records strictly below a level (stdout gets INFO/DEBUG)."""

    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def _build_formatter() -> logging.Formatter:
    if settings.log_format == "json":
        return JsonFormatter()
    return logging.Formatter(fmt=_STANDARD_FORMAT, datefmt=_DATE_FORMAT)


def setup_logging(context: str = "cli") -> logging.Logger:
    """
    Configure logging for the given execution context.

    Args:
        context: Name of the running context, used for the log file name
            (e.g. "cli" -> cli.log)

    Returns:
        The configured ``agentlog`` package logger

    Raises:
        PermissionError: If the log directory cannot be created or written
    """
    logger = logging.getLogger("agentlog")
    logger.setLevel(settings.log_level.upper())

    # Idempotent: drop handlers from a previous call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = _build_formatter()

    if settings.log_console_enabled:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(logging.DEBUG)
        stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))
        stdout_handler.setFormatter(formatter)
        logger.addHandler(stdout_handler)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(formatter)
        logger.addHandler(stderr_handler)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
