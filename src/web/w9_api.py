"""
W-9 Form API

HTTP relay between the form widget and the back office.

Routes:
- POST /api/generate-link : tracked form link for one investor
- POST /api/send-w9-email : email a PDF the browser already filled
- POST /api/w9/fill       : fill the W-9 server side and return the PDF
- POST /api/w9/submit     : fill, then deliver according to the delivery policy
"""

import base64
import binascii
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from config.settings import get_settings
from config.w9_layout_loader import load_layout
from export.w9_errors import W9ValidationError
from export.w9_pdf_filler import DateStyle, W9FillResult, W9PdfFiller
from models.w9_form import W9FormData
from notifications.email_provider import get_email_provider
from notifications.w9_submission_email import build_w9_submission_email
from security.data_sanitizer import strip_sensitive_form_fields
from security.secure_logger import get_logger
from services.form_links import build_form_link
from services.w9_delivery import W9DeliveryService, W9Submission
from validation.w9_validator import validate_form

logger = get_logger(__name__)

router = APIRouter(tags=["W-9 Forms"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateLinkRequest(_CamelModel):
    email: Optional[str] = None
    name: Optional[str] = None


class PdfPayload(_CamelModel):
    base64: Optional[str] = None
    filename: Optional[str] = None


class SendEmailRequest(_CamelModel):
    submitter_name: Optional[str] = None
    form_data: Optional[Dict[str, Any]] = None
    pdf: Optional[PdfPayload] = None


class InvestorPayload(_CamelModel):
    email: Optional[str] = None
    name: Optional[str] = None


class SubmitRequest(_CamelModel):
    form_data: Dict[str, Any] = Field(default_factory=dict)
    investor: Optional[InvestorPayload] = None
    form_link: str = ""
    send_to: Optional[str] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_filler() -> W9PdfFiller:
    """Filler for the configured template and layout."""
    settings = get_settings()
    return W9PdfFiller(
        registry=load_layout(settings.layout_version),
        template_source=settings.template_source,
        date_style=DateStyle(settings.date_style),
    )


def get_delivery() -> W9DeliveryService:
    return W9DeliveryService.from_settings(get_settings())


def parse_form_data(payload: Dict[str, Any]) -> W9FormData:
    """
    Parse and validate a wire-format record.

    Raises:
        W9ValidationError: type errors from parsing or wizard validation errors
    """
    try:
        data = W9FormData.model_validate(payload)
    except ValidationError as e:
        errors = {}
        for error in e.errors():
            key = str(error["loc"][0]) if error["loc"] else "form"
            errors.setdefault(key, error["msg"])
        raise W9ValidationError(errors) from e

    errors = validate_form(data)
    if errors:
        raise W9ValidationError(errors)
    return data


def _pdf_response(result: W9FillResult) -> Response:
    return Response(
        content=result.pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-W9-Warnings": str(len(result.warnings)),
        },
    )


# =============================================================================
# ROUTES
# =============================================================================

@router.get("/health")
async def health():
    """Liveness check."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


@router.post("/api/generate-link")
async def generate_link(request: GenerateLinkRequest):
    """Build a tracked form link for an investor."""
    if not request.email or not request.name:
        raise HTTPException(status_code=400, detail="Missing required fields")

    settings = get_settings()
    form_link = build_form_link(settings.form_base_url, request.email, request.name)
    logger.info(f"Generated form link for {request.email}")
    return {
        "formLink": form_link,
        "investor": {"email": request.email, "name": request.name},
    }


@router.post("/api/send-w9-email")
async def send_w9_email(request: SendEmailRequest):
    """
    Email a browser-filled W-9 to the back office.

    Form data is stripped of TINs and the signature again here; the browser
    is not trusted to have done it.
    """
    if request.pdf is None or not request.pdf.base64:
        raise HTTPException(status_code=400, detail="Missing PDF data")

    try:
        pdf_bytes = base64.b64decode(request.pdf.base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid PDF data")

    settings = get_settings()
    provider = get_email_provider()
    if not provider.delivers_mail or not settings.recipient_email:
        logger.error("Email not configured: set SMTP_HOST, SMTP_USER, SMTP_PASS and W9_RECIPIENT_EMAIL")
        raise HTTPException(status_code=500, detail="Email not configured")

    message = build_w9_submission_email(
        to=settings.recipient_email,
        pdf_bytes=pdf_bytes,
        filename=request.pdf.filename or "W9_Submission.pdf",
        submitter_name=request.submitter_name,
        form_data=strip_sensitive_form_fields(request.form_data),
        from_email=settings.smtp.from_email,
    )
    result = await run_in_threadpool(provider.send, message)
    if not result.success:
        logger.error(f"Failed to send W9 email: {result.error_message}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to send email", "details": result.error_message},
        )

    logger.info(f"W9 email sent to {settings.recipient_email}")
    return {"success": True, "message": "Email sent successfully"}


@router.post("/api/w9/fill", response_class=Response)
async def fill_w9_form(
    payload: Dict[str, Any] = Body(...),
    filler: W9PdfFiller = Depends(get_filler),
):
    """Fill a W-9 and return the PDF."""
    data = parse_form_data(payload)
    result = await run_in_threadpool(filler.fill, data)
    return _pdf_response(result)


@router.post("/api/w9/submit")
async def submit_w9_form(
    request: SubmitRequest,
    filler: W9PdfFiller = Depends(get_filler),
    delivery: W9DeliveryService = Depends(get_delivery),
):
    """Fill a W-9 and hand it to the back office."""
    data = parse_form_data(request.form_data)
    result = await run_in_threadpool(filler.fill, data)

    investor = request.investor or InvestorPayload()
    submission = W9Submission(
        pdf_bytes=result.pdf_bytes,
        filename=result.filename,
        submitter_name=data.display_name,
        form_data=data.to_wire(),
        investor_email=investor.email,
        investor_name=investor.name,
        form_link=request.form_link,
        send_to=request.send_to,
    )
    report = await run_in_threadpool(delivery.deliver, submission)
    if not report.success:
        raise HTTPException(
            status_code=502,
            detail={"error": "Delivery failed", "delivery": report.to_dict()},
        )

    return {
        "success": True,
        "filename": result.filename,
        "warnings": [w.to_dict() for w in result.warnings],
        "delivery": report.to_dict(),
    }
