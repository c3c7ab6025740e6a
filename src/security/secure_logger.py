"""
Log redaction.

``SanitizingLogFilter`` scrubs a record in place (message, %-args, traceback
text, ``extra_data`` and any other string attribute). ``configure_logging``
puts it on every handler; ``get_logger`` also puts it on the logger itself, so
modules that log SSN-adjacent data are covered before any handler exists.

    from security.secure_logger import get_logger

    logger = get_logger(__name__)
    logger.info("Filling W-9 for SSN 123-45-6789")
    # Filling W-9 for SSN [SSN-REDACTED]
"""

import logging
from typing import Any, Dict, Optional

from .data_sanitizer import DataSanitizer, get_sanitizer

# LogRecord attributes set by logging itself
_RECORD_INTERNALS = frozenset({
    "msg", "args", "exc_info", "exc_text", "stack_info", "name", "levelname",
    "pathname", "filename", "module", "funcName", "processName", "threadName",
    "taskName",
})


class SanitizingLogFilter(logging.Filter):
    """Redacts PII from a record; never drops it."""

    def __init__(self, sanitizer: Optional[DataSanitizer] = None):
        super().__init__()
        self.sanitizer = sanitizer or get_sanitizer()

    def filter(self, record: logging.LogRecord) -> bool:
        clean = self.sanitizer
        if isinstance(record.msg, str):
            record.msg = clean.sanitize_string(record.msg)

        if isinstance(record.args, dict):
            record.args = clean.sanitize_dict(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(clean.sanitize_value(arg) for arg in record.args)

        if record.exc_text:
            record.exc_text = clean.sanitize_string(record.exc_text)

        for key, value in list(vars(record).items()):
            if key.startswith("_") or key in _RECORD_INTERNALS:
                continue
            if key == "extra_data" and isinstance(value, dict):
                record.extra_data = clean.sanitize_dict(value)
            elif isinstance(value, str):
                setattr(record, key, clean.sanitize_string(value))
        return True


class SecureLogger(logging.LoggerAdapter):
    """Adapter whose logger always carries the sanitizing filter."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})
        if not any(isinstance(f, SanitizingLogFilter) for f in logger.filters):
            logger.addFilter(SanitizingLogFilter())

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        if self.extra:
            kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


_loggers: Dict[str, SecureLogger] = {}


def get_logger(name: str, extra: Optional[Dict[str, Any]] = None) -> SecureLogger:
    """Cached SecureLogger for ``name``."""
    if name not in _loggers:
        _loggers[name] = SecureLogger(logging.getLogger(name), extra)
    return _loggers[name]


def sanitize_log_message(message: str) -> str:
    """For text written somewhere the filter does not reach."""
    return get_sanitizer().sanitize_string(message)
