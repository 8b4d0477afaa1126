"""
Logging setup for the recognizer.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached here, normally by the CLI.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from .types import Region

PACKAGE_LOGGER = "kline_recognizer"


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # work on a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: str = "INFO",
    log_file: str | None = None,
    max_size: str = "10MB",
    backup_count: int = 5,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up a logger with optional console output and file rotation.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        max_size: Maximum log file size before rotation, e.g. "10MB"
        backup_count: Number of rotated files to keep
        console_output: Whether to log to stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    if console_output:
        # stderr so JSON printed by the CLI stays clean on stdout
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            ColoredFormatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=_parse_size(max_size),
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a console logger under the package namespace."""
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return setup_logger(name=name, level=level)


def _parse_size(size_str: str) -> int:
    """Parse a size like '10MB' or '512KB' into bytes (default 10MB)."""
    size_str = size_str.upper().strip()
    # longest suffix first so "MB" is not read as "B"
    for unit, multiplier in (("GB", 1024**3), ("MB", 1024**2), ("KB", 1024), ("B", 1)):
        if size_str.endswith(unit):
            try:
                return int(float(size_str[: -len(unit)].strip()) * multiplier)
            except ValueError:
                break
    try:
        return int(size_str)
    except ValueError:
        return 10 * 1024 * 1024


class RegionLoggerAdapter(logging.LoggerAdapter):
    """Prefixes messages with the region being recognized."""

    def __init__(self, logger: logging.Logger, region: Region | None):
        super().__init__(logger, {"region": region})

    def process(self, msg, kwargs):
        region = self.extra.get("region")
        if region is not None:
            msg = f"[region={region.x},{region.y},{region.width},{region.height}] {msg}"
        return msg, kwargs
