"""
Notification Delivery System

Email delivery of submitted W-9 forms.

Provides:
- Provider abstraction (SMTP, null provider for development)
- Attachment support for the filled PDF
- The back-office submission email

Usage:
    from notifications import build_w9_submission_email, get_email_provider

    message = build_w9_submission_email(
        to="backoffice@example.com",
        pdf_bytes=result.pdf_bytes,
        filename=result.filename,
        submitter_name="Jane Doe",
    )
    delivery = get_email_provider().send(message)
"""

from .email_provider import (
    DeliveryResult,
    DeliveryStatus,
    EmailAttachment,
    EmailMessage,
    EmailProvider,
    NullEmailProvider,
    get_email_provider,
    set_email_provider,
    send_email,
)
from .smtp_provider import SMTPProvider
from .w9_submission_email import build_w9_submission_email

__all__ = [
    "DeliveryResult",
    "DeliveryStatus",
    "EmailAttachment",
    "EmailMessage",
    "EmailProvider",
    "NullEmailProvider",
    "get_email_provider",
    "set_email_provider",
    "send_email",
    "SMTPProvider",
    "build_w9_submission_email",
]
