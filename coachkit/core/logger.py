"""Loguru setup for the CoachKit plan engine.

Engine events are logged with keyword fields (stage, status, metric, ...).
Loguru stores those fields in the record's ``extra`` dict: the text format
prints them after the message, and ``serialize=True`` writes each record as
one JSON line with the fields under ``record.extra``.
"""

import sys
from pathlib import Path

from loguru import logger

from coachkit.core.settings import Settings, get_settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> | {extra}"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message} | {extra}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    serialize: bool = False,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace the loguru handlers with engine console and file handlers.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path; parent directories are created
        serialize: Write JSON lines instead of the text format
        rotation: File rotation size or interval (e.g., "10 MB", "1 day")
        retention: How long rotated files are kept (e.g., "7 days")
    """
    logger.remove()

    if serialize:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, format=_CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=_FILE_FORMAT,
            level=level,
            serialize=serialize,
            rotation=rotation,
            retention=retention,
            compression="zip",
            diagnose=False,
        )

    logger.info("Logger initialized", level=level, serialize=serialize)


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the COACHKIT_LOG_* settings to loguru."""
    settings = settings or get_settings()
    setup_logger(level=settings.log_level, log_file=settings.log_file, serialize=settings.log_json)


# Initialize logger on import
configure_logging()
