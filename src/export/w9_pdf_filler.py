"""
W-9 PDF Fill Engine.

Stamps a resolved W-9 record onto the blank IRS template:

- Coordinate placements are drawn on a single reportlab overlay page that is
  merged onto the template page (flat templates).
- Named placements are written into the template's AcroForm widgets with
  pypdf (fillable templates).
- The Part II signature is always drawn on the overlay; drawn signatures are
  decoded with Pillow and scaled into the signature box.

A fill either returns complete PDF bytes or raises a W9FormError subclass.
Non-fatal problems are reported as FieldPlacementWarning entries.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from export.w9_errors import (
    FieldPlacementWarning,
    ImageDecodeError,
    PdfSerializationError,
    TemplateLoadError,
    WarningCode,
)
from export.w9_placements import (
    DigitRunPlacement,
    FieldCandidates,
    LogicalField,
    Placement,
    PlacementRegistry,
    TextPlacement,
    TinPlacement,
    resolve_field_name,
)
from export.w9_resolver import ResolvedRecord, resolve_record
from export.w9_signature import decode_signature_image, fit_within
from models.w9_form import SignatureType, W9FormData
from services.logging_config import log_performance

logger = logging.getLogger(__name__)

TemplateSource = Union[str, Path, bytes]

TEMPLATE_FETCH_TIMEOUT = 30


class DateStyle(str, Enum):
    """How the signature date is printed."""
    US = "us"    # M/D/YYYY
    ISO = "iso"  # YYYY-MM-DD


@dataclass
class StampedValue:
    """One value placed on the form and where it went."""
    field: str
    text: str
    target: str
    mode: str = "coordinate"

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "text": self.text, "target": self.target, "mode": self.mode}


@dataclass
class W9FillResult:
    """Output of a fill."""
    pdf_bytes: bytes
    filename: str
    warnings: List[FieldPlacementWarning] = field(default_factory=list)
    placements: List[StampedValue] = field(default_factory=list)
    signature_fallback: bool = False


# =============================================================================
# TEMPLATE LOADING
# =============================================================================

@lru_cache(maxsize=8)
def _read_template_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


@lru_cache(maxsize=8)
def _fetch_template_url(url: str) -> bytes:
    response = requests.get(url, timeout=TEMPLATE_FETCH_TIMEOUT)
    response.raise_for_status()
    return response.content


def load_template_bytes(source: TemplateSource) -> bytes:
    """
    Template bytes from a path, an http(s) URL, or bytes.

    Path and URL results are cached for the life of the process.

    Raises:
        TemplateLoadError: the template cannot be read or fetched
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    text = str(source)
    try:
        if text.startswith(("http://", "https://")):
            return _fetch_template_url(text)
        return _read_template_file(str(Path(text).resolve()))
    except (OSError, requests.RequestException) as e:
        raise TemplateLoadError(f"Failed to load W-9 template: {e}", {"source": text}) from e


def clear_template_cache() -> None:
    _read_template_file.cache_clear()
    _fetch_template_url.cache_clear()


# =============================================================================
# FORMATTING
# =============================================================================

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def suggested_filename(data: W9FormData, today: Optional[date] = None) -> str:
    """``W9_{name}_{YYYY-MM-DD}.pdf`` with the name reduced to letters and digits."""
    name = _NON_ALNUM.sub("", data.display_name) or "Submission"
    day = today or date.today()
    return f"W9_{name}_{day.isoformat()}.pdf"


def format_signature_date(value: date, style: DateStyle = DateStyle.US) -> str:
    if DateStyle(style) == DateStyle.ISO:
        return value.isoformat()
    return f"{value.month}/{value.day}/{value.year}"


# =============================================================================
# FILL ENGINE
# =============================================================================

# The overlay uses the standard Helvetica faces, which only encode WinAnsi
OVERLAY_ENCODING = "cp1252"


def printable_in_overlay(ch: str) -> bool:
    try:
        ch.encode(OVERLAY_ENCODING)
    except UnicodeEncodeError:
        return False
    return True


class _FillContext:
    """Per-fill accumulator; never shared between fills."""

    def __init__(self, registry: PlacementRegistry, fields: Dict[str, Any]):
        self.registry = registry
        self.fields = fields
        self.available = list(fields.keys())
        self.text_ops: List[tuple] = []
        self.image_ops: List[tuple] = []
        self.named_values: Dict[str, str] = {}
        self.warnings: List[FieldPlacementWarning] = []
        self.placements: List[StampedValue] = []
        self.signature_fallback = False

    def draw(self, label: str, placement: TextPlacement, text: str) -> None:
        unprintable = "".join(ch for ch in dict.fromkeys(text) if not printable_in_overlay(ch))
        if unprintable:
            message = f"{label} has characters the form font cannot print ({unprintable}); they render as boxes"
            logger.warning(message)
            self.warnings.append(FieldPlacementWarning(
                code=WarningCode.UNSUPPORTED_CHARACTERS,
                field=label,
                message=message,
            ))
        self.text_ops.append((placement.x, placement.y_from_top, placement.font_name,
                              placement.font_size, text))
        self.placements.append(StampedValue(
            label, text, f"{placement.x:g},{placement.y_from_top:g}"
        ))

    def write_named(self, label: str, candidates: FieldCandidates, text: str,
                    checkbox: bool = False) -> None:
        name = resolve_field_name(candidates, self.available)
        if name is None:
            message = f"No template field for {label} (tried {', '.join(candidates.names)})"
            logger.warning(message)
            self.warnings.append(FieldPlacementWarning(
                code=WarningCode.FIELD_NOT_FOUND,
                field=label,
                message=message,
                candidates=candidates.names,
            ))
            return
        value = self._checkbox_on_state(name) if checkbox else text
        self.named_values[name] = value
        self.placements.append(StampedValue(label, value, name, mode="named"))

    def _checkbox_on_state(self, name: str) -> str:
        states = self.fields[name].get("/_States_", [])
        for state in states:
            if str(state) != "/Off":
                return str(state)
        return "/Yes"

    def place(self, label: str, placement: Optional[Placement], text: str,
              checkbox: bool = False) -> None:
        if not text or placement is None:
            return
        if isinstance(placement, FieldCandidates):
            self.write_named(label, placement, text, checkbox=checkbox)
        else:
            self.draw(label, placement, text)


class W9PdfFiller:
    """
    Fills W-9 records into one template using one placement registry.

    The filler holds no per-fill state and may be shared across threads.
    """

    def __init__(
        self,
        registry: Optional[PlacementRegistry] = None,
        template_source: Optional[TemplateSource] = None,
        date_style: DateStyle = DateStyle.US,
    ):
        if registry is None:
            from config.w9_layout_loader import load_layout
            registry = load_layout()
        self.registry = registry
        self.template_source = template_source
        self.date_style = DateStyle(date_style)

    @log_performance("w9_fill")
    def fill(self, data: W9FormData, *, today: Optional[date] = None) -> W9FillResult:
        """
        Produce a filled W-9 for ``data``.

        Raises:
            RecordResolutionError: the record is ambiguous (nothing is produced)
            TemplateLoadError: the template cannot be fetched or parsed
            PdfSerializationError: the filled document cannot be written
        """
        resolved = resolve_record(data)

        if self.template_source is None:
            raise TemplateLoadError("No W-9 template configured")
        template = load_template_bytes(self.template_source)
        try:
            reader = PdfReader(BytesIO(template))
            writer = PdfWriter(clone_from=reader)
            page = writer.pages[self.registry.page_index]
            page_height = float(page.mediabox.height)
            page_width = float(page.mediabox.width)
            fields = reader.get_fields() or {}
        except (PyPdfError, ValueError, KeyError, IndexError, TypeError) as e:
            raise TemplateLoadError(f"Failed to parse W-9 template: {e}") from e

        ctx = _FillContext(self.registry, fields)
        self._stamp_fields(ctx, resolved)
        self._stamp_tin(ctx, "ssn", self.registry.ssn, resolved.ssn_groups)
        self._stamp_tin(ctx, "ein", self.registry.ein, resolved.ein_groups)
        self._stamp_signature(ctx, resolved)
        if resolved.signature_date is not None:
            ctx.place(
                LogicalField.SIGNATURE_DATE.value,
                self.registry.placement(LogicalField.SIGNATURE_DATE),
                format_signature_date(resolved.signature_date, self.date_style),
            )

        try:
            if ctx.named_values:
                writer.update_page_form_field_values(page, ctx.named_values)
            if ctx.text_ops or ctx.image_ops:
                overlay = self._render_overlay(ctx, page_width, page_height)
                page.merge_page(overlay)
            out = BytesIO()
            writer.write(out)
        except (PyPdfError, OSError, ValueError, KeyError, TypeError) as e:
            raise PdfSerializationError(f"Failed to write filled W-9: {e}") from e

        result = W9FillResult(
            pdf_bytes=out.getvalue(),
            filename=suggested_filename(data, today),
            warnings=ctx.warnings,
            placements=ctx.placements,
            signature_fallback=ctx.signature_fallback,
        )
        logger.info(
            f"Filled W-9 {result.filename}: {len(result.placements)} values, "
            f"{len(result.warnings)} warnings"
        )
        return result

    async def fill_async(self, data: W9FormData, *, today: Optional[date] = None) -> W9FillResult:
        """Run ``fill`` in a worker thread."""
        return await asyncio.to_thread(self.fill, data, today=today)

    # -------------------------------------------------------------------------

    def _stamp_fields(self, ctx: _FillContext, record: ResolvedRecord) -> None:
        registry = self.registry
        values = [
            (LogicalField.LINE1_NAME, record.line1_name),
            (LogicalField.LINE2_NAME, record.line2_name),
            (LogicalField.LLC_CLASSIFICATION, record.llc_letter),
            (LogicalField.OTHER_DESCRIPTION, record.other_description),
            (LogicalField.EXEMPT_PAYEE_CODE, record.exempt_payee_code),
            (LogicalField.FATCA_CODE, record.fatca_code),
            (LogicalField.ADDRESS, record.address),
            (LogicalField.CITY_STATE_ZIP, record.city_state_zip),
            (LogicalField.ACCOUNT_NUMBERS, record.account_numbers),
        ]
        for logical_field, text in values:
            ctx.place(logical_field.value, registry.placement(logical_field), text)

        classification = record.tax_classification
        if classification is not None:
            placement = registry.checkbox(classification)
            if isinstance(placement, TextPlacement):
                # Checkmarks are always the bold mark at the checkbox size
                placement = TextPlacement(
                    placement.x, placement.y_from_top, registry.checkbox_font_size, bold=True
                )
            ctx.place(
                f"checkbox.{classification.value}", placement,
                registry.checkbox_mark, checkbox=True,
            )

    def _stamp_tin(self, ctx: _FillContext, label: str, placement: TinPlacement,
                   groups: Optional[List[str]]) -> None:
        if not groups:
            return
        if isinstance(placement, DigitRunPlacement):
            for index, run in enumerate(groups):
                positions = placement.digit_positions(index)
                for digit, (x, y) in zip(run, positions):
                    ctx.draw(f"{label}[{index}]", TextPlacement(x, y, placement.font_size), digit)
        else:
            for index, (candidates, run) in enumerate(zip(placement.groups, groups)):
                ctx.write_named(f"{label}[{index}]", candidates, run)

    def _stamp_signature(self, ctx: _FillContext, record: ResolvedRecord) -> None:
        box = self.registry.signature
        signature = record.signature
        if not signature:
            return
        if record.signature_type == SignatureType.TYPED and isinstance(signature, str):
            if signature.strip():
                ctx.draw("signature", box.text, signature.strip())
            return

        try:
            image = decode_signature_image(signature)
        except ImageDecodeError as e:
            message = f"Signature image could not be used, placeholder drawn: {e.message}"
            logger.warning(message)
            ctx.warnings.append(FieldPlacementWarning(
                code=WarningCode.SIGNATURE_FALLBACK,
                field="signature",
                message=message,
            ))
            ctx.signature_fallback = True
            ctx.draw("signature", TextPlacement(box.text.x, box.text.y_from_top), box.placeholder)
            return

        width, height = fit_within(image.size, box.max_width, box.max_height)
        ctx.image_ops.append((ImageReader(image), box.image_x, box.image_baseline_from_top,
                              width, height))
        ctx.placements.append(StampedValue(
            "signature", "[image]", f"{box.image_x:g},{box.image_baseline_from_top:g}"
        ))

    def _render_overlay(self, ctx: _FillContext, page_width: float, page_height: float):
        buf = BytesIO()
        # invariant mode keeps the overlay free of timestamps and random IDs
        c = canvas.Canvas(buf, pagesize=(page_width, page_height), invariant=1)
        c.setFillColorRGB(0, 0, 0)
        for x, y_from_top, font_name, font_size, text in ctx.text_ops:
            c.setFont(font_name, font_size)
            c.drawString(x, page_height - y_from_top, text)
        for image, x, baseline_from_top, width, height in ctx.image_ops:
            c.drawImage(image, x, page_height - baseline_from_top,
                        width=width, height=height, mask="auto")
        c.showPage()
        c.save()
        return PdfReader(BytesIO(buf.getvalue())).pages[0]


def fill_w9(
    template: TemplateSource,
    data: W9FormData,
    registry: Optional[PlacementRegistry] = None,
    *,
    today: Optional[date] = None,
    date_style: DateStyle = DateStyle.US,
) -> W9FillResult:
    """Fill ``data`` into ``template`` in one call."""
    filler = W9PdfFiller(registry, template, date_style=date_style)
    return filler.fill(data, today=today)
