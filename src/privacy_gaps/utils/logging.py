"""Logging configuration for Privacy Gaps.

Provides centralized logging setup with Rich console formatting
and optional file logging.

Only configuration loading, store maintenance and the CLI log anything.
The capture-time path (detector, schedule lookup, crisis matching) never
does, so raising the level here cannot make it start recording captures.

Example:
    >>> from privacy_gaps.utils.logging import setup_logging, get_logger
    >>> setup_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("Loaded configuration")
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


# =============================================================================
# Constants
# =============================================================================

# Package logger name
PACKAGE_NAME = "privacy_gaps"

# Noisy third-party loggers to filter
NOISY_LOGGERS = [
    "asyncio",
    "pydantic",
]

# Log format for file handler
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Console for Rich handler
_console = Console(stderr=True)


# =============================================================================
# Setup Functions
# =============================================================================


def _file_handler(log_file: Path, level: int) -> logging.FileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure logging for the privacy_gaps package.

    Sets up Rich console handler for pretty output and optionally
    a file handler for persistent logs.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file.
        quiet_third_party: If True, suppress noisy third-party loggers.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger(PACKAGE_NAME)
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers = []

    console_handler = RichHandler(
        console=_console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    if log_file:
        root_logger.addHandler(_file_handler(Path(log_file), numeric_level))

    if quiet_third_party:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    # Don't propagate to root logger
    root_logger.propagate = False

    root_logger.debug(f"Logging configured: level={level}, file={log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    if not name.startswith(PACKAGE_NAME):
        name = f"{PACKAGE_NAME}.{name}"
    return logging.getLogger(name)

