"""
Logging setup for the W-9 Form Service.

- JSON lines for production and for log files
- Colored single lines for a terminal
- SanitizingLogFilter on every handler, so a TIN never reaches a log line
- ``log_performance`` timing for fills
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Callable, Optional, Union

from security.secure_logger import SanitizingLogFilter

# Set by RequestIDMiddleware for the duration of a request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Libraries that log too much at INFO
_QUIET_LOGGERS = {
    "urllib3": logging.WARNING,
    "httpx": logging.WARNING,
    "PIL": logging.WARNING,
    "pypdf": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry.update(extra_data)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS.mmm LEVEL [logger] message`` with the level colored."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        line = f"{clock} {color}{record.levelname:8s}{self.RESET} [{record.name}] {record.getMessage()}"

        request_id = request_id_var.get()
        if request_id:
            line += f" | request_id={request_id}"
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            line += " | " + " | ".join(f"{k}={v}" for k, v in extra_data.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Replace the root handlers with a console handler and, optionally, a file.

    Files are always written as JSON lines.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    pii_filter = SanitizingLogFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JsonFormatter() if json_output else ReadableFormatter())
    console.addFilter(pii_filter)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(JsonFormatter())
        file_handler.addFilter(pii_filter)
        root.addHandler(file_handler)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def log_performance(name: Optional[str] = None) -> Callable:
    """Log how long the wrapped call took, and whether it raised."""

    def decorator(func: Callable) -> Callable:
        label = name or func.__name__
        perf_logger = logging.getLogger("performance")

        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = int((time.perf_counter() - start) * 1000)
                perf_logger.warning(
                    f"{label} failed",
                    extra={"extra_data": {"duration_ms": elapsed, "error": type(e).__name__}},
                )
                raise
            elapsed = int((time.perf_counter() - start) * 1000)
            perf_logger.info(f"{label} completed", extra={"extra_data": {"duration_ms": elapsed}})
            return result

        return wrapper

    return decorator
