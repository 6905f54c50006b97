"""
Logging setup for TrackRelay.

One console handler (stdout) and one rotating file under logs/. The two
component packages, providers and now_playing, can each be dialled down to
WARNING independently; chatty third-party loggers are always quieted.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Dict, Optional

ROOT_DIR = Path(__file__).parent

LOGS_DIR = Path(os.getenv("TRACKRELAY_LOGS_DIR", str(ROOT_DIR / "logs")))

CONSOLE_FORMAT = '(%(filename)s:%(lineno)d) %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'

# 1MB per file, 10 backups
MAX_LOG_BYTES = 1 * 1024 * 1024
LOG_BACKUPS = 10

# Third-party loggers and the level they are clamped to
QUIET_LOGGERS = {
    'urllib3': logging.WARNING,
    'websockets': logging.WARNING,
    'hypercorn.error': logging.ERROR,
    'hypercorn.access': logging.ERROR,
}

_logging_initialized = False


def configure_component_loggers(
    console_level: str = "INFO",
    log_providers: bool = True,
    log_now_playing: bool = True,
) -> Dict[str, int]:
    """
    Set the level of each component package logger.

    An enabled component logs at the console level; a disabled one only
    reports warnings and errors.

    Returns:
        Mapping of logger name to the level that was applied
    """
    verbose = getattr(logging, console_level.upper())
    levels = {
        'providers': verbose if log_providers else logging.WARNING,
        'now_playing': verbose if log_now_playing else logging.WARNING,
    }
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
    return levels


def setup_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    console: bool = True,
    log_file: Optional[str] = None,
    log_providers: bool = True,
    log_now_playing: bool = True,
) -> None:
    """
    Install the console and file handlers on the root logger. Later calls are no-ops.

    Args:
        console_level: Level for console output
        file_level: Level for the rotating log file
        console: Whether to log to stdout at all
        log_file: File name under LOGS_DIR (default: app.log)
        log_providers: Log provider requests at console level
        log_now_playing: Log aggregation and session activity at console level
    """
    global _logging_initialized
    if _logging_initialized:
        return

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_path = LOGS_DIR / (log_file or "app.log")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers = []

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, console_level.upper()))
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding='utf-8'
    )
    file_handler.setLevel(getattr(logging, file_level.upper()))
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    root_logger.addHandler(file_handler)

    levels = configure_component_loggers(console_level, log_providers, log_now_playing)
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    _logging_initialized = True

    summary = ", ".join(f"{name}={logging.getLevelName(level)}" for name, level in levels.items())
    root_logger.info(f"Logging initialized - Console: {console_level if console else 'off'}, File: {file_level} ({summary})")
    root_logger.debug(f"Log file: {log_path}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name"""
    # setup_logging() must be called explicitly by the entry point
    return logging.getLogger(name)
