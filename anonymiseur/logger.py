"""
Logging helpers for anonymiseur.

Every engine class mixes in LoggerMixin so that log lines carry the class
name; module-level code uses get_logger(__name__).
"""

import logging
import os
import sys
from typing import Optional
from pathlib import Path


CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'

LEVEL_ENV_VAR = "ANONYMISEUR_LOG_LEVEL"


def _resolve_level(level: Optional[str]) -> int:
    """Resolve a level name, letting the environment override the default."""
    name = level or os.environ.get(LEVEL_ENV_VAR, "INFO")
    return getattr(logging, name.upper(), logging.INFO)


def _file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def get_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually __name__ or a class name)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); falls back
            to $ANONYMISEUR_LOG_LEVEL, then INFO
        log_file: Optional file to also write logs to

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Already configured, or the root logger was set up by the CLI
    if logger.handlers or logging.getLogger().handlers:
        if level:
            logger.setLevel(_resolve_level(level))
        return logger

    logger.setLevel(_resolve_level(level))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file))

    return logger


def setup_root_logger(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Setup root logger for the entire application.

    Args:
        level: Log level for root logger
        log_file: Optional file to write all logs to
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        root_logger.addHandler(_file_handler(log_file))


class LoggerMixin:
    """Mixin class to add logging capability to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        return get_logger(f"anonymiseur.{self.__class__.__name__}")

    def log_debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(message, *args, **kwargs)

    def log_info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(message, *args, **kwargs)

    def log_warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(message, *args, **kwargs)

    def log_error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(message, *args, **kwargs)
