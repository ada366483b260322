"""Structured logging configuration."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

# Third-party libraries that log through the standard library
THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "openai")


class InterceptHandler(logging.Handler):
    """Forward standard-library log records (httpx, openai) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Any = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure structured logging with console and file output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        rotation: Log rotation size
        retention: Log retention period
        third_party_level: Level for httpx/openai records routed into loguru
            (every HTTP request is logged at INFO by httpx)
    """
    # Remove default handler
    logger.remove()

    # Console handler with colors
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        level=log_level,
        colorize=True,
    )

    # File handler if specified
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message} | {extra}",
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
        )

    for name in THIRD_PARTY_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.setLevel(third_party_level)
        std_logger.propagate = False


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger instance with optional context.

    Args:
        name: Logger name (typically __name__)
        **context: Additional context fields (job_id, scene_number, provider, etc.)

    Returns:
        Logger instance with bound context
    """
    if context:
        return logger.bind(name=name, **context)
    return logger.bind(name=name)


# Initialize logging on import
setup_logging()
