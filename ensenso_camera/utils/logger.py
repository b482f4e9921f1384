"""Logging utilities."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOGGER_NAME = "ensenso"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up and configure a logger.

    Args:
        name: Logger name.
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional file path for logging.
        console: Whether to log to console.
        format_string: Custom format string.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    logger.handlers = []

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
    )

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """
    Configure the package logger from the ``logging`` config section.

    Args:
        config: Full configuration dictionary.

    Returns:
        The configured package logger.
    """
    section = config.get("logging") or {}
    return setup_logger(
        name=DEFAULT_LOGGER_NAME,
        level=section.get("level", "INFO"),
        log_file=section.get("file"),
        console=section.get("console", True),
    )


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger below the package logger.

    Child loggers propagate to the package logger, so configuring it once
    with ``setup_logger`` is enough for every module.

    Args:
        name: Logger name. Names outside the package namespace are nested
            below it.

    Returns:
        Logger instance.
    """
    if name != DEFAULT_LOGGER_NAME and not name.startswith(DEFAULT_LOGGER_NAME + "."):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class LoggerMixin:
    """Mixin class to add logging to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get class-specific logger."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


class ProgressLogger:
    """Log progress for long-running operations."""

    def __init__(
        self,
        total: int,
        logger: Optional[logging.Logger] = None,
        description: str = "Processing",
    ):
        """
        Initialize progress logger.

        Args:
            total: Total number of items.
            logger: Logger to use.
            description: Progress description.
        """
        self.total = total
        self.logger = logger or get_logger()
        self.description = description
        self.current = 0

    def update(self, n: int = 1) -> None:
        """
        Update progress.

        Args:
            n: Number of items processed.
        """
        self.current += n
        self.logger.info(f"{self.description}: {self.current}/{self.total}")

    def __enter__(self):
        self.logger.info(f"{self.description}: Starting ({self.total} items)")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.logger.info(f"{self.description}: Completed")
        else:
            self.logger.error(f"{self.description}: Failed - {exc_val}")
