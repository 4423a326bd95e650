from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from registry_migrator.config.models import FileLoggingSettings, LoggingSettings

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every connection below INFO
QUIET_LOGGERS = ("aiohttp", "asyncio")


def parse_level(name: str) -> int:
    level = logging.getLevelNamesMapping().get(name.strip().upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {name}")
    return level


def _rotating_file_handler(settings: FileLoggingSettings) -> Optional[TimedRotatingFileHandler]:
    path = settings.path.strip()
    if not path:
        return None
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(log_path),
        when="midnight",
        backupCount=settings.rotation.backup_count,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def init_logging(settings: LoggingSettings) -> None:
    """
    Route every logger of the process to the console and, when `file.path` is
    set, to a file rotated at midnight.

    Replaces the root handlers, so calling it again reconfigures logging. A log
    file that can not be opened is reported on the console and skipped.
    """
    level = parse_level(settings.level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    file_error: Optional[OSError] = None
    try:
        file_handler = _rotating_file_handler(settings.file)
    except OSError as e:
        file_error = e
    else:
        if file_handler is not None:
            handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    if file_error is not None:
        root_logger.error("Log file unavailable, logging to console only. path=%s error=%s", settings.file.path, file_error)


__all__ = ["init_logging", "parse_level"]
