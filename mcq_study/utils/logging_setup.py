from __future__ import annotations

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

PACKAGE_LOGGER = "mcq_study"
FILE_HANDLER_NAME = "mcq_study_file_handler"
CONSOLE_HANDLER_NAME = "mcq_study_console_handler"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Third-party clients that log full request lines at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


def _resolve_log_path(log_file_path: str) -> Path:
    """Relative paths are anchored at the repo root, not the working directory."""
    path = Path(log_file_path)
    if path.is_absolute():
        return path
    return Path(__file__).resolve().parents[2] / path


def _has_handler(logger: logging.Logger, name: str) -> bool:
    return any(getattr(h, "name", None) == name for h in logger.handlers)


def _rotating_file_handler(path: Path, level: int) -> logging.Handler:
    os.makedirs(path.parent, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=14,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.name = FILE_HANDLER_NAME
    return handler


def setup_file_logging(
    *,
    log_file_path: str,
    level: int,
    logger_names: Optional[Iterable[str]] = None,
) -> None:
    """
    Add a daily-rotating log file to each named logger (default: the package logger).

    Calling it again is a no-op for loggers that already carry the handler, so
    scripts and tests can call it freely.
    """
    if not log_file_path:
        return
    path = _resolve_log_path(log_file_path)
    for name in logger_names or [PACKAGE_LOGGER]:
        logger = logging.getLogger(name)
        if _has_handler(logger, FILE_HANDLER_NAME):
            continue
        logger.addHandler(_rotating_file_handler(path, level))
        if logger.level == logging.NOTSET or logger.level > level:
            logger.setLevel(level)


def setup_console_logging(level: int) -> None:
    """stderr output for scripts; skipped when the root logger is already configured."""
    root = logging.getLogger()
    package = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers or _has_handler(package, CONSOLE_HANDLER_NAME):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.name = CONSOLE_HANDLER_NAME
    package.addHandler(handler)


def silence_noisy_loggers() -> None:
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging(settings, *, console: bool = False) -> int:
    """Apply LOG_LEVEL / LOG_TO_FILE from settings. Returns the numeric level."""
    level = logging.getLevelName(str(settings.log_level or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    silence_noisy_loggers()
    if console:
        setup_console_logging(level)
    if settings.log_to_file:
        setup_file_logging(log_file_path=settings.log_file_path, level=level)
    return level
