"""
Production Logging

Console logging with level colors and optional rotating log files.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

LOGGER_NAME = 'midiwire'
DEFAULT_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class Color:
    """ANSI color codes"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    WHITE = '\033[38;5;255m'
    GRAY = '\033[38;5;245m'
    TURQUOISE = '\033[38;5;44m'
    YELLOW = '\033[38;5;226m'
    RED = '\033[38;5;196m'


class ProductionFormatter(logging.Formatter):
    """Formatter that colors whole lines by level when writing to a terminal"""

    LEVEL_COLORS = {
        logging.DEBUG: Color.GRAY,
        logging.INFO: Color.TURQUOISE,
        logging.WARNING: Color.YELLOW,
        logging.ERROR: Color.RED,
        logging.CRITICAL: Color.RED + Color.BOLD,
    }

    def __init__(self, include_colors: bool = True, stream=None):
        super().__init__(DEFAULT_FORMAT, datefmt=DATE_FORMAT)
        stream = stream if stream is not None else sys.stderr
        self.include_colors = include_colors and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record):
        formatted = super().format(record)

        if self.include_colors:
            color = self.LEVEL_COLORS.get(record.levelno, Color.WHITE)
            formatted = f"{color}{formatted}{Color.RESET}"

        return formatted


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None,
                  colors: bool = True, max_file_size: int = 10 * 1024 * 1024,
                  backup_count: int = 5) -> logging.Logger:
    """
    Configure the package logger

    Args:
        verbose: Log DEBUG messages (system-command diagnostics included)
        log_file: Optional log file path, rotated at max_file_size
        colors: Color console output when attached to a terminal

    Returns:
        The configured 'midiwire' logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Re-running setup replaces our handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ProductionFormatter(include_colors=colors, stream=sys.stderr))
    logger.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                log_file,
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            handler.setFormatter(ProductionFormatter(include_colors=False))
            logger.addHandler(handler)
        except OSError as e:
            logger.warning(f"Failed to setup file logging: {e}")

    return logger
