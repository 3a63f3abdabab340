"""
Logging configuration for the generation queue.

Console output is colourised; an optional append-only log file mirrors it
with plain timestamps. The file is a convenience: if it cannot be opened the
queue keeps running with console logging only.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'

# Third-party loggers that are noisy at INFO.
QUIET_LOGGERS = ("asyncio", "playwright")


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Work on a copy so the file handler never sees escape codes.
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _open_file_handler(log_file: str) -> Optional[logging.Handler]:
    path = Path(log_file).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning(f"⚠️ Could not open log file {path}: {e}. Logging to console only.")
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%dT%H:%M:%S'))
    return handler


def setup_logging(log_file: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """
    Configure the root logger.

    Args:
        log_file: Optional path of an append-only log file
        level: Level name (DEBUG, INFO, ...)

    Returns:
        The root logger
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_genqueue", False):
            root.removeHandler(handler)
            handler.close()

    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    console_handler._genqueue = True
    root.addHandler(console_handler)

    if log_file:
        file_handler = _open_file_handler(log_file)
        if file_handler is not None:
            file_handler._genqueue = True
            root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
