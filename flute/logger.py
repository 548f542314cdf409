"""Process-wide logging with a configurable level and output sink."""

from __future__ import annotations

import enum
import os
import sys
import threading
from datetime import datetime
from types import FrameType
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

LogCallback = Callable[[str], None]


class LogLevel(enum.IntEnum):
    """Severity of a log record, in increasing order."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5


_TAGS = {
    LogLevel.TRACE: "[TRACE]",
    LogLevel.DEBUG: "[DEBUG]",
    LogLevel.INFO: "[INFO] ",
    LogLevel.WARN: "[WARN] ",
    LogLevel.ERROR: "[ERROR]",
    LogLevel.FATAL: "[FATAL]",
}


def _write_stdout(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


class _Settings:
    def __init__(self) -> None:
        self.level: LogLevel = LogLevel.TRACE
        self.callback: Optional[LogCallback] = _write_stdout
        self.lock = threading.Lock()


_settings = _Settings()


def set_log_level(level: LogLevel) -> None:
    """Set the threshold below which trace and debug records are dropped."""
    _settings.level = LogLevel(level)


def get_log_level() -> LogLevel:
    """Return the current threshold."""
    return _settings.level


def set_log_callback(callback: Optional[LogCallback]) -> Optional[LogCallback]:
    """Install the sink that receives formatted records; return the previous one.

    ``None`` silences all output.
    """
    with _settings.lock:
        previous = _settings.callback
        _settings.callback = callback
    return previous


def _tag(level: int) -> str:
    try:
        return _TAGS[LogLevel(level)]
    except ValueError:
        return _TAGS[LogLevel.TRACE]


def format_record(
    level: LogLevel,
    message: str,
    source_file: str,
    line: int,
    func: str = "",
    when: Optional[datetime] = None,
) -> str:
    """Build one log line: time, level tag, message and source location."""
    when = when if when is not None else datetime.now()
    stamp = when.strftime("%Y-%m-%d %H:%M:%S")
    location = f"{os.path.basename(source_file)}:{line}"
    if func:
        location += f" function({func})"
    return f"{stamp},{when.microsecond // 1000:03d} {_tag(level)} - {message} - {location}\n"


def log(level: LogLevel, message: str, source_file: str = "", line: int = 0, func: str = "") -> None:
    """Format and emit a record regardless of the current threshold."""
    callback = _settings.callback
    if callback is not None:
        callback(format_record(level, message, source_file, line, func))


def _emit(level: LogLevel, message: object, frame: FrameType) -> None:
    log(level, str(message), frame.f_code.co_filename, frame.f_lineno)


def trace(message: object) -> None:
    """Log at TRACE if the threshold allows it."""
    if get_log_level() <= LogLevel.TRACE:
        _emit(LogLevel.TRACE, message, sys._getframe(1))


def debug(message: object) -> None:
    """Log at DEBUG if the threshold allows it."""
    if get_log_level() <= LogLevel.DEBUG:
        _emit(LogLevel.DEBUG, message, sys._getframe(1))


def info(message: object) -> None:
    """Log at INFO."""
    _emit(LogLevel.INFO, message, sys._getframe(1))


def warn(message: object) -> None:
    """Log at WARN."""
    _emit(LogLevel.WARN, message, sys._getframe(1))


def error(message: object) -> None:
    """Log at ERROR."""
    _emit(LogLevel.ERROR, message, sys._getframe(1))


def fatal(message: object) -> None:
    """Log at FATAL."""
    _emit(LogLevel.FATAL, message, sys._getframe(1))


def check_not_null(value: Optional[T], name: str) -> T:
    """Return ``value``; log a fatal record and raise ValueError if it is None."""
    if value is None:
        message = f"'{name}' Must be non NULL"
        _emit(LogLevel.FATAL, message, sys._getframe(1))
        raise ValueError(message)
    return value