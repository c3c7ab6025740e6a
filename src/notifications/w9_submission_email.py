"""
W-9 submission email.

Renders the back-office notification for a completed W-9: a short summary of
the submission and the filled PDF as an attachment. TINs and the signature
are stripped from the summary before rendering.
"""

import html
import logging
from typing import Any, Dict, List, Mapping, Optional

from models.w9_form import TAX_CLASSIFICATION_LABELS, TaxClassification
from security.data_sanitizer import strip_sensitive_form_fields

from .email_provider import EmailAttachment, EmailMessage

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


def _summary_items(form_data: Mapping[str, Any]) -> List[tuple]:
    items = []
    if form_data.get("accountType"):
        items.append(("Account Type", form_data["accountType"]))
    if form_data.get("name"):
        items.append(("Name", form_data["name"]))
    if form_data.get("businessName"):
        items.append(("Business", form_data["businessName"]))
    classification = form_data.get("taxClassification")
    if classification:
        try:
            label = TAX_CLASSIFICATION_LABELS[TaxClassification(classification)]
        except ValueError:
            label = str(classification)
        items.append(("Tax Classification", label))
    if form_data.get("address"):
        address = (
            f"{form_data['address']}, {form_data.get('city', '')}, "
            f"{form_data.get('state', '')} {form_data.get('zipCode', '')}"
        )
        items.append(("Address", address.strip()))
    if form_data.get("tinType"):
        items.append(("TIN Type", "SSN" if form_data["tinType"] == "ssn" else "EIN"))
    return items


def render_submission_html(submitter_name: str, form_data: Optional[Mapping[str, Any]]) -> str:
    """HTML body listing the non-sensitive submission details."""
    name = html.escape(submitter_name)
    parts = [
        "<h2>New W9 Form Submission</h2>",
        f"<p><strong>Submitted by:</strong> {name}</p>",
    ]
    if form_data:
        rows = "".join(
            f"<li><strong>{label}:</strong> {html.escape(str(value))}</li>"
            for label, value in _summary_items(form_data)
        )
        parts.append(f"<h3>Form Details</h3><ul>{rows}</ul>")
    parts.append("<p>The completed W9 PDF is attached.</p>")
    return "\n".join(parts)


def render_submission_text(submitter_name: str, form_data: Optional[Mapping[str, Any]]) -> str:
    lines = ["New W9 Form Submission", f"Submitted by: {submitter_name}"]
    if form_data:
        lines.append("")
        lines.extend(f"{label}: {value}" for label, value in _summary_items(form_data))
    lines.append("")
    lines.append("The completed W9 PDF is attached.")
    return "\n".join(lines)


def build_w9_submission_email(
    to: str,
    pdf_bytes: bytes,
    filename: str,
    submitter_name: Optional[str] = None,
    form_data: Optional[Mapping[str, Any]] = None,
    from_email: Optional[str] = None,
) -> EmailMessage:
    """
    Build the back-office email for a submitted W-9.

    Args:
        to: Back-office recipient
        pdf_bytes: The filled W-9
        filename: Attachment filename
        submitter_name: Shown in the subject; "Anonymous" when empty
        form_data: Wire-format form data; sensitive keys are removed here

    Returns:
        EmailMessage with the PDF attached
    """
    name = (submitter_name or "").strip() or ANONYMOUS
    summary: Dict[str, Any] = strip_sensitive_form_fields(form_data)

    return EmailMessage(
        to=to,
        subject=f"W9 Form Submitted - {name}",
        body_html=render_submission_html(name, summary),
        body_text=render_submission_text(name, summary),
        from_email=from_email,
        attachments=[EmailAttachment(filename=filename, content=pdf_bytes)],
        metadata={"submitter": name, "filename": filename},
    )
