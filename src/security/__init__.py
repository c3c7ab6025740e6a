"""
Security module for the W-9 form service.

Provides PII redaction for logs and for form data that leaves the service.
"""

from .data_sanitizer import (
    DataSanitizer,
    get_sanitizer,
    sanitize_for_logging,
    strip_sensitive_form_fields,
)
from .secure_logger import SanitizingLogFilter, SecureLogger, get_logger

__all__ = [
    "DataSanitizer",
    "get_sanitizer",
    "sanitize_for_logging",
    "strip_sensitive_form_fields",
    "SanitizingLogFilter",
    "SecureLogger",
    "get_logger",
]
