"""
Centralized logging configuration for workstation setup.

Every line carries a timestamp, the level, a component tag and the message.
The threshold is configured once at startup and read-only afterwards.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


ROOT_LOGGER_NAME = "workstation_setup"

LOG_FORMAT = "%(asctime)s %(levelname_colored)s [%(component)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] [%(component)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Recognized levels, most to least verbose
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Global logger instance
_logger: Optional[logging.Logger] = None


def level_from_name(name: str | None) -> int:
    """
    Map a level name to a logging level.

    Missing or unrecognized names degrade to INFO.
    """
    if not name:
        return logging.INFO
    return LEVELS.get(str(name).strip().upper(), logging.INFO)


class ComponentFilter(logging.Filter):
    """
    Fill in the component tag and keep empty messages visible.

    Records logged without an explicit ``component`` get the short name of
    the emitting module (``workstation_setup.engine`` -> ``engine``).
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "component", None):
            record.component = record.name.rsplit(".", 1)[-1]
        if record.msg is None or record.msg == "":
            record.msg = " "
            record.args = None
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Threshold level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        quiet: Suppress console output (file only)
        propagate: Allow log propagation (useful for testing)

    Returns:
        Configured logger instance
    """
    global _logger

    effective_level = level_from_name(level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(effective_level)

    # Clear existing handlers
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(effective_level)
        console_handler.addFilter(ComponentFilter())
        console_handler.setFormatter(ColoredFormatter(
            LOG_FORMAT,
            use_colors=sys.stdout.isatty(),
        ))
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.addFilter(ComponentFilter())
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)
        # File output records everything the logger lets through
        logger.setLevel(min(effective_level, logging.DEBUG))

    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """
    Get the configured logger instance.

    If logging hasn't been set up, initializes with defaults.
    """
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


def log(message: object, level: str = "INFO", component: str = "core") -> None:
    """
    Emit one log line tagged with a component.

    Args:
        message: Message text; empty or missing renders as a single space
        level: Level name; unrecognized names are treated as INFO
        component: Component tag shown in brackets
    """
    text = " " if message is None or message == "" else str(message)
    get_logger().log(level_from_name(level), "%s", text, extra={"component": component})


class ColoredFormatter(logging.Formatter):
    """
    Formatter with colored output for different log levels.
    """

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[1;31m",  # Bold Red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, use_colors: bool = True, datefmt: str = DATE_FORMAT):
        super().__init__(fmt, datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        levelname = record.levelname
        if self.use_colors:
            color = self.COLORS.get(levelname, "")
            record.levelname_colored = f"{color}{levelname:<7}{self.RESET}"
        else:
            record.levelname_colored = f"{levelname:<7}"
        if not hasattr(record, "component"):
            record.component = record.name.rsplit(".", 1)[-1]
        return super().format(record)
