"""
W-9 fill engine error taxonomy.

Fatal errors derive from W9FormError and abort a fill before any bytes are
returned. Problems that only degrade the output (a named field the template
does not have, a signature image that will not decode) are collected as
FieldPlacementWarning entries on the fill result instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class W9FormError(Exception):
    """Base class for W-9 form errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class TemplateLoadError(W9FormError):
    """The blank W-9 template could not be fetched or parsed."""


class RecordResolutionError(W9FormError):
    """The record does not resolve to exactly one name rule and TIN source."""


class PdfSerializationError(W9FormError):
    """The filled document could not be written out."""


class ImageDecodeError(W9FormError):
    """A drawn signature could not be decoded as an image."""


class W9ValidationError(W9FormError):
    """A record failed wizard validation; ``errors`` holds the field map."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"W-9 form has invalid fields: {fields}", {"errors": self.errors})


class WarningCode(str, Enum):
    FIELD_NOT_FOUND = "FIELD_NOT_FOUND"
    SIGNATURE_FALLBACK = "SIGNATURE_FALLBACK"
    UNSUPPORTED_CHARACTERS = "UNSUPPORTED_CHARACTERS"


@dataclass
class FieldPlacementWarning:
    """A value that was skipped or degraded while filling."""
    code: WarningCode
    field: str
    message: str
    candidates: tuple = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "field": self.field,
            "message": self.message,
            "candidates": list(self.candidates),
        }
