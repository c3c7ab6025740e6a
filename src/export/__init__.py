"""W-9 Export Module.

Fills IRS Form W-9 templates from wizard records:
- Field-placement registries (coordinate and AcroForm layouts)
- Record resolution (line 1/line 2 names, address, TIN source)
- PDF fill engine (pypdf + reportlab overlay + Pillow signatures)
"""

from export.w9_errors import (
    W9FormError,
    TemplateLoadError,
    RecordResolutionError,
    PdfSerializationError,
    ImageDecodeError,
    W9ValidationError,
    FieldPlacementWarning,
    WarningCode,
)
from export.w9_placements import (
    PlacementRegistry,
    LogicalField,
    TextPlacement,
    FieldCandidates,
    DigitRunPlacement,
    FieldRunPlacement,
    SignatureBox,
    resolve_field_name,
    split_tin_digits,
)
from export.w9_resolver import ResolvedRecord, resolve_record
from export.w9_pdf_filler import (
    W9PdfFiller,
    W9FillResult,
    StampedValue,
    DateStyle,
    fill_w9,
    suggested_filename,
    load_template_bytes,
    clear_template_cache,
)

__all__ = [
    # Errors
    "W9FormError",
    "TemplateLoadError",
    "RecordResolutionError",
    "PdfSerializationError",
    "ImageDecodeError",
    "W9ValidationError",
    "FieldPlacementWarning",
    "WarningCode",
    # Placements
    "PlacementRegistry",
    "LogicalField",
    "TextPlacement",
    "FieldCandidates",
    "DigitRunPlacement",
    "FieldRunPlacement",
    "SignatureBox",
    "resolve_field_name",
    "split_tin_digits",
    # Resolution
    "ResolvedRecord",
    "resolve_record",
    # Fill engine
    "W9PdfFiller",
    "W9FillResult",
    "StampedValue",
    "DateStyle",
    "fill_w9",
    "suggested_filename",
    "load_template_bytes",
    "clear_template_cache",
]
