"""Fleet Notifier — Logging Setup.

Colored console output plus a rotating file under logs/ (or the
directory named by FLEET_NOTIFIER_LOG_DIR). Every module obtains its
logger through get_logger(). If the log file cannot be opened, as on a
read-only host filesystem, logging continues on the console only.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# ── Constants ─────────────────────────────────────────────
LOG_DIR = Path(
    os.environ.get("FLEET_NOTIFIER_LOG_DIR")
    or Path(__file__).resolve().parent.parent.parent / "logs"
)
LOG_FILE = LOG_DIR / "fleet_notifier.log"
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

_LINE_FORMAT = "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "apscheduler": logging.WARNING,
    "telegram.ext": logging.INFO,
    "aiohttp.access": logging.WARNING,
}

# ── ANSI Color Codes ─────────────────────────────────────
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[41m",  # Red background
}
RESET = "\033[0m"

_initialized = False
_console_handler: logging.Handler | None = None


class ColoredFormatter(logging.Formatter):
    """Console formatter: level name and timestamp in the level's color.

    Works on a copy of the record, so handlers that run afterwards
    (the log file) still see the plain level name.
    """

    def format(self, record: logging.LogRecord) -> str:
        colored = logging.makeLogRecord(record.__dict__)
        color = COLORS.get(colored.levelname, "")
        colored.levelname = f"{color}{colored.levelname:<8}{RESET}"
        colored.asctime = f"{color}{self.formatTime(colored, self.datefmt)}{RESET}"
        return super().format(colored)


def _file_handler() -> logging.Handler | None:
    """Rotating DEBUG file handler, or None if the file is unusable."""
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=str(LOG_FILE),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"File logging disabled ({LOG_FILE}): {e}\n")
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(
        fmt=_LINE_FORMAT.replace("%(levelname)s", "%(levelname)-8s"),
        datefmt=_DATE_FORMAT,
    ))
    return handler


def _setup_logging() -> None:
    """Configure the root logger once: console (INFO) + file (DEBUG)."""
    global _initialized, _console_handler
    if _initialized:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    _console_handler = logging.StreamHandler(sys.stdout)
    _console_handler.setLevel(logging.INFO)
    _console_handler.setFormatter(ColoredFormatter(fmt=_LINE_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(_console_handler)

    file_handler = _file_handler()
    if file_handler is not None:
        root_logger.addHandler(file_handler)

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    _initialized = True


def set_console_level(level: str) -> None:
    """Change the console handler level (from settings.yaml logging.level).

    Raises:
        ValueError: If the level name is unknown.
    """
    _setup_logging()
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    _console_handler.setLevel(numeric)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger with the global configuration applied.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        A configured logging.Logger instance.
    """
    _setup_logging()
    return logging.getLogger(name)
