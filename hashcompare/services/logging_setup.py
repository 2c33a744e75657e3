"""
Logging configuration for the process that embeds the engine.

The engine and workers only emit records through ``logging``; the CLI or
application hosting them calls ``setup_logging`` (or
``setup_run_logging`` with the resolved RunConfig) once at startup.
Console output goes to stderr so outcome lines a CLI writes to stdout
stay free of log text.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional, TextIO

from hashcompare.services.settings import RunConfig


LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LogFormatter(logging.Formatter):
    """Level-colored formatter; colors only when the stream is a terminal."""

    COLORS = {
        logging.DEBUG: '\033[36m',     # Cyan
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, stream: Optional[TextIO] = None):
        super().__init__(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
        stream = stream or sys.stderr
        self.use_colors = (
            use_colors
            and 'NO_COLOR' not in os.environ
            and hasattr(stream, 'isatty')
            and stream.isatty()
        )

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True
) -> logging.Logger:
    """
    Configure root logging.

    Args:
        level: Log level name; unknown names fall back to INFO
        log_file: Optional UTF-8 log file, created with its parent directory
        use_colors: Colorize console output when stderr is a terminal

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors, sys.stderr))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(LogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    # Qt prints its own warnings; keep only errors from the bindings
    logging.getLogger('PyQt6').setLevel(logging.ERROR)

    return root_logger


def setup_run_logging(config: RunConfig, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure logging for a run.

    ``verbose`` enables DEBUG, which is where the engine logs the decision
    for each path; otherwise only run start, finish and failures appear.
    """
    return setup_logging("DEBUG" if config.verbose else "INFO", log_file)
