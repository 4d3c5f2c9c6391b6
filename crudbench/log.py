"""Logging configuration for crudbench.

The library itself only creates module loggers; applications (and the
command line) call :func:`setup_logging` once.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import colorlog

# Base format string for log messages (without colors)
BASE_LOG_FORMAT = (
    "%(asctime)s %(levelname)8s %(message)s (%(name)s@%(filename)s:%(lineno)d)"
)


def setup_logging(
    level: int = logging.INFO,
    use_colors: bool = True,
    log_file: Optional[Path] = None,
    stream=None,
) -> None:
    """Configure logging.

    Args:
        level: Logging level to use
        use_colors: Whether to use colored console output
        log_file: Optional path of a rotating log file
        stream: Console stream, stderr by default
    """
    handlers = [_create_console_handler(use_colors, stream or sys.stderr)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_create_file_handler(Path(log_file)))

    logging.basicConfig(level=level, handlers=handlers, force=True)


def level_from_name(name: Optional[str], default: int = logging.WARNING) -> int:
    """``"debug"`` -> ``logging.DEBUG``; unknown names give ``default``."""
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def _create_console_handler(use_colors: bool, stream) -> logging.Handler:
    console_handler = logging.StreamHandler(stream)

    if use_colors:
        console_formatter: logging.Formatter = colorlog.ColoredFormatter(
            "%(asctime)s %(log_color)s%(levelname)8s%(reset)s %(message)s "
            "\033[90m(%(name)s@%(filename)s:%(lineno)d)\033[0m",
            datefmt="%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
            style="%",
        )
    else:
        console_formatter = logging.Formatter(BASE_LOG_FORMAT, datefmt="%m-%d %H:%M:%S")

    console_handler.setFormatter(console_formatter)
    return console_handler


def _create_file_handler(log_file: Path) -> logging.Handler:
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=4,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(BASE_LOG_FORMAT, datefmt="%m-%d %H:%M:%S"))
    return file_handler
