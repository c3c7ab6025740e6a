"""
PII redaction for W-9 data.

Two tools, for two different exits:

- ``DataSanitizer`` rewrites text and dicts for logs, replacing TINs with
  placeholders and masking email addresses.
- ``strip_sensitive_form_fields`` removes TIN and signature keys from
  wire-format form data before it is emailed or posted to a webhook.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Set

# Pattern name -> (regex, replacement); applied in this order
PATTERNS: Dict[str, re.Pattern] = {
    "ssn": re.compile(r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b"),
    "ein": re.compile(r"\b\d{2}[-\s]?\d{7}\b"),
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "api_key": re.compile(r"\b(sk-|pk_|api[_-]?key)[A-Za-z0-9_-]{20,}\b", re.IGNORECASE),
}

PLACEHOLDERS = {
    "ssn": "[SSN-REDACTED]",
    "ein": "[EIN-REDACTED]",
    "api_key": "[API-KEY-REDACTED]",
}

# Keys (or underscore-separated parts of keys) whose values are always hidden
SENSITIVE_FIELDS: Set[str] = {
    "ssn", "ein", "iraein", "tin", "itin", "social", "signature",
    "password", "secret", "token", "apikey",
}

# Wire keys dropped from form summaries
FORM_SENSITIVE_KEYS = frozenset({"ssn", "ein", "iraEin", "ira_ein", "signature"})

REDACTED = "[REDACTED]"


def _mask_email(match: re.Match) -> str:
    local, _, domain = match.group(0).partition("@")
    if len(local) > 2:
        local = local[0] + "*" * (len(local) - 2) + local[-1]
    else:
        local = "*" * len(local)
    return f"{local}@{domain}"


class DataSanitizer:
    """Redacts TINs, emails and keys from values headed for a log."""

    def __init__(
        self,
        additional_fields: Optional[Set[str]] = None,
        additional_patterns: Optional[Dict[str, re.Pattern]] = None,
    ):
        self.sensitive_fields = set(SENSITIVE_FIELDS)
        if additional_fields:
            self.sensitive_fields.update(f.lower() for f in additional_fields)
        self.patterns = dict(PATTERNS)
        if additional_patterns:
            self.patterns.update(additional_patterns)

    def is_sensitive_field(self, key: Any) -> bool:
        """True if the key, or one of its ``_``/``-`` separated parts, names a secret."""
        normalized = re.sub(r"[-\s]", "_", str(key).lower())
        if normalized.replace("_", "") in self.sensitive_fields:
            return True
        return any(part in self.sensitive_fields for part in normalized.split("_"))

    def sanitize_string(self, text: str) -> str:
        for name, pattern in self.patterns.items():
            if name == "email":
                text = pattern.sub(_mask_email, text)
            else:
                text = pattern.sub(PLACEHOLDERS.get(name, REDACTED), text)
        return text

    def sanitize_value(self, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, Mapping):
            return self.sanitize_dict(value)
        if isinstance(value, (list, tuple)):
            return [self.sanitize_value(item) for item in value]
        return self.sanitize_string(str(value))

    def sanitize_dict(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Copy of ``data`` with sensitive keys redacted and values scrubbed, recursively."""
        return {
            key: REDACTED if self.is_sensitive_field(key) else self.sanitize_value(value)
            for key, value in data.items()
        }

    def sanitize_for_logging(self, data: Any, context: str = "") -> str:
        sanitized = self.sanitize_value(data)
        return f"[{context}] {sanitized}" if context else str(sanitized)


def strip_sensitive_form_fields(form_data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Copy of W-9 form data without TINs or the signature.

    The keys are removed rather than redacted, so a summary sent to a webhook
    or mailbox does not even say which TIN was given.
    """
    if not form_data:
        return {}
    return {k: v for k, v in form_data.items() if k not in FORM_SENSITIVE_KEYS}


_sanitizer: Optional[DataSanitizer] = None


def get_sanitizer() -> DataSanitizer:
    global _sanitizer
    if _sanitizer is None:
        _sanitizer = DataSanitizer()
    return _sanitizer


def sanitize_for_logging(data: Any, context: str = "") -> str:
    return get_sanitizer().sanitize_for_logging(data, context)
