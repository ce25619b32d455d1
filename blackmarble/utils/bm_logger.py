# bm_logger.py
"""
Colour-aware logging for the Black Marble pipeline: console + optional rotating file.

Usage:
    from blackmarble.utils.bm_logger import bmLogger, get_logger, configure_logger

    bmLogger.info("Downloading tiles")      # package-wide logger
    log = get_logger("tiles")               # -> "blackmarble.tiles"
    log.debug("h08v05 resolved")

Env overrides:
    BM_LOG_LEVEL=INFO
    BM_LOG_FILE=/path/to/blackmarble.log
    BM_LOG_NO_COLOR=1
"""

# pylint: disable=W0718, W0602, W0603

from __future__ import annotations

import os
import sys
from typing import Optional
import logging
import logging.handlers
import colorama

BASE_NAME = "blackmarble"

__CONFIGURED = False

# ########################################################################
# Color support
# ########################################################################


_RESET = "\x1b[0m"
_BOLD = "\x1b[1m"

ANSI = {
    "red": "\x1b[31m",
    "yellow": "\x1b[33m",
    "cyan": "\x1b[36m",
    "light_green": "\x1b[92m",
}


def _stream_supports_color(stream: object) -> bool:
    """Return True if stream is a TTY and likely supports ANSI color."""
    if not hasattr(stream, "isatty"):
        return False
    try:
        return bool(stream.isatty())
    except Exception:
        return False


def _maybe_enable_colorama() -> bool:
    """Turn on ANSI handling for Windows consoles."""
    try:
        colorama.just_fix_windows_console()
        return True
    except Exception:
        return False


# ########################################################################
# Formatter
# ########################################################################


class ColorFormatter(logging.Formatter):
    """
    Highlights the level name and message by severity.
    Plain text when color is disabled or the stream is not a terminal.
    """

    DEFAULT_FMT = "%(asctime)s-%(levelname)s [%(name)s:%(funcName)s():%(lineno)d]: %(message)s"
    DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

    LEVEL_STYLE = {
        logging.DEBUG: ANSI["cyan"],
        logging.INFO: ANSI["light_green"],
        logging.WARNING: ANSI["yellow"],
        logging.ERROR: ANSI["red"],
        logging.CRITICAL: _BOLD + ANSI["red"],
    }

    def __init__(
                self,
                fmt: Optional[str] = None,
                datefmt: Optional[str] = None,
                use_color: Optional[bool] = None,
                stream: Optional[object] = None
                ):
        super().__init__(fmt or self.DEFAULT_FMT, datefmt or self.DEFAULT_DATEFMT)
        if use_color is None:
            use_color = _stream_supports_color(stream or sys.stderr)
            if sys.platform.startswith("win"):
                use_color = _maybe_enable_colorama() and use_color
        self.use_color = bool(use_color)

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)

        style = self.LEVEL_STYLE.get(record.levelno, "")
        original_levelname = record.levelname
        original_msg = record.msg
        original_args = record.args

        record.levelname = f"{style}{original_levelname}{_RESET}"
        record.msg = f"{style}{record.getMessage()}{_RESET}"
        record.args = None
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname
            record.msg = original_msg
            record.args = original_args


# ########################################################################
# Configuration
# ########################################################################


def _resolve_level(level: Optional[int | str]) -> int:
    if level is None:
        level = os.getenv("BM_LOG_LEVEL") or "INFO"
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return int(level)


def configure_logger(
                    name: str = BASE_NAME,
                    level: Optional[int | str] = None,
                    use_color: Optional[bool] = None,
                    filename: Optional[str] = None,
                    max_bytes: int = 10 * 1024 * 1024,
                    backup_count: int = 5,
                ) -> logging.Logger:
    """
    Configure and return a logger.

    Args:
        name: Logger name.
        level: Logging level or name. Defaults to env BM_LOG_LEVEL or INFO.
        use_color: Force color on/off. Defaults to auto-detect.
        filename: Path for a RotatingFileHandler. Defaults to env BM_LOG_FILE.
        max_bytes: Rotation size.
        backup_count: Number of rotated backups to keep.
    """
    global __CONFIGURED

    level = _resolve_level(level)
    if filename is None:
        filename = os.getenv("BM_LOG_FILE")
    if use_color is None and os.getenv("BM_LOG_NO_COLOR"):
        use_color = False

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    for h in list(logger.handlers):
        logger.removeHandler(h)

    console = logging.StreamHandler(stream=sys.stderr)
    console.setLevel(level)
    console.setFormatter(ColorFormatter(use_color=use_color, stream=sys.stderr))
    logger.addHandler(console)

    if filename:
        folder = os.path.dirname(filename)
        if folder:
            os.makedirs(folder, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
                                                            filename,
                                                            maxBytes=max_bytes,
                                                            backupCount=backup_count,
                                                            encoding="utf-8"
                                                            )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(ColorFormatter.DEFAULT_FMT,
                                                    datefmt=ColorFormatter.DEFAULT_DATEFMT))
        logger.addHandler(file_handler)

    # Child loggers ("blackmarble.xxx") propagate here; stop at our handlers
    logger.propagate = False

    __CONFIGURED = True

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a package logger; configures the base logger once if needed.
    Module names already under the package ("blackmarble.core.tiles") are kept as-is.
    """
    global __CONFIGURED
    if not __CONFIGURED:
        configure_logger(BASE_NAME)
    if not name:
        return logging.getLogger(BASE_NAME)
    if name == BASE_NAME or name.startswith(BASE_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{BASE_NAME}.{name}")


def set_level(level: int | str, name: str = BASE_NAME) -> logging.Logger:
    """Change the level of a logger and of the handlers configure_logger gave it."""
    level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for h in logger.handlers:
        h.setLevel(level)
    return logger


def inform(logger: logging.Logger, quiet: bool, msg: str, *args) -> None:
    """Progress message: INFO normally, DEBUG when the caller asked for quiet."""
    logger.log(logging.DEBUG if quiet else logging.INFO, msg, *args)


bmLogger = get_logger()
