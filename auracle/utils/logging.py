"""Logging configuration for Auracle."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"
LOG_DATE_FORMAT = "[%X]"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "asyncio")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Set up logging with a Rich handler on stderr.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path to a log file (always written at DEBUG)
        verbose: Enable verbose/debug output

    Returns:
        The configured ``auracle`` logger
    """
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger("auracle")
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=verbose,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        markup=False,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


class LogCapture:
    """Context manager to capture log messages (useful for testing)."""

    def __init__(self, logger_name: str = "auracle", level: int = logging.DEBUG):
        self.logger_name = logger_name
        self.level = level
        self.records: list[logging.LogRecord] = []
        self._handler: Optional[logging.Handler] = None
        self._previous_level: Optional[int] = None

    def __enter__(self) -> "LogCapture":
        logger = logging.getLogger(self.logger_name)
        self._handler = CaptureHandler(self.records)
        self._handler.setLevel(self.level)
        self._previous_level = logger.level
        logger.setLevel(self.level)
        logger.addHandler(self._handler)
        return self

    def __exit__(self, *args) -> None:
        logger = logging.getLogger(self.logger_name)
        if self._handler:
            logger.removeHandler(self._handler)
        if self._previous_level is not None:
            logger.setLevel(self._previous_level)

    @property
    def messages(self) -> list[str]:
        """Get captured log messages."""
        return [record.getMessage() for record in self.records]

    def has_message(self, substring: str) -> bool:
        """Check if any captured message contains the substring."""
        return any(substring in msg for msg in self.messages)

    def at_level(self, level: int) -> list[str]:
        """Get captured messages logged at exactly ``level``."""
        return [r.getMessage() for r in self.records if r.levelno == level]


class CaptureHandler(logging.Handler):
    """Handler that captures log records to a list."""

    def __init__(self, records: list[logging.LogRecord]):
        super().__init__()
        self.records = records

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)
