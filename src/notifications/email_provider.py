"""
Email providers for W-9 delivery.

``EmailProvider`` is the seam; ``SMTPProvider`` (smtp_provider.py) talks to a
real server and ``NullEmailProvider`` only records what it would have sent.
Providers report failure through ``DeliveryResult`` and do not raise for
transport problems.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    BOUNCED = "bounced"
    FAILED = "failed"


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass
class EmailMessage:
    """An outgoing email; at least one of the two bodies is required."""
    to: str
    subject: str
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    reply_to: Optional[str] = None
    cc: Optional[List[str]] = None
    bcc: Optional[List[str]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    attachments: List[EmailAttachment] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def recipients(self) -> List[str]:
        return [self.to, *(self.cc or []), *(self.bcc or [])]

    def validate(self) -> bool:
        """Raises ValueError for a message no provider could send."""
        if not self.to:
            raise ValueError("Recipient email (to) is required")
        if not self.subject:
            raise ValueError("Subject is required")
        if not (self.body_html or self.body_text):
            raise ValueError("Either body_html or body_text is required")
        return True


@dataclass
class DeliveryResult:
    success: bool
    status: DeliveryStatus
    message_id: Optional[str] = None
    provider: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "message_id": self.message_id,
            "provider": self.provider,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "timestamp": self.timestamp.isoformat(),
        }


class EmailProvider(ABC):
    """Base class for email providers."""

    # The HTTP relay refuses to "send" through a provider that only pretends
    delivers_mail: bool = True

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @abstractmethod
    def send(self, message: EmailMessage) -> DeliveryResult:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    def failure(self, message: str, code: str,
                status: DeliveryStatus = DeliveryStatus.FAILED) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            status=status,
            provider=self.provider_name,
            error_message=message,
            error_code=code,
        )


class NullEmailProvider(EmailProvider):
    """Keeps messages in ``sent`` and logs them; nothing leaves the process."""

    delivers_mail = False

    def __init__(self):
        self.sent: List[EmailMessage] = []

    @property
    def provider_name(self) -> str:
        return "null"

    def is_configured(self) -> bool:
        return True

    def send(self, message: EmailMessage) -> DeliveryResult:
        message.validate()
        self.sent.append(message)
        logger.info(
            f"[NULL PROVIDER] Would send '{message.subject}' to {message.to} "
            f"with {len(message.attachments)} attachment(s)"
        )
        return DeliveryResult(
            success=True,
            status=DeliveryStatus.SENT,
            message_id=f"null-{len(self.sent)}",
            provider=self.provider_name,
        )


_email_provider: Optional[EmailProvider] = None


def get_email_provider() -> EmailProvider:
    """
    The process-wide provider.

    SMTP once SMTP_HOST, SMTP_USER and SMTP_PASS are all set; otherwise the
    null provider.
    """
    global _email_provider
    if _email_provider is None:
        from config.settings import get_settings

        smtp = get_settings().smtp
        if smtp.is_configured:
            from .smtp_provider import SMTPProvider
            _email_provider = SMTPProvider.from_settings(smtp)
            logger.info(f"Email provider: SMTP ({smtp.host}:{smtp.port})")
        else:
            logger.warning(
                "SMTP is not configured (SMTP_HOST, SMTP_USER, SMTP_PASS); "
                "W-9 emails will be logged, not sent"
            )
            _email_provider = NullEmailProvider()
    return _email_provider


def set_email_provider(provider: Optional[EmailProvider]) -> None:
    """Install a provider (tests); None goes back to detection from settings."""
    global _email_provider
    _email_provider = provider


def send_email(
    to: str,
    subject: str,
    body_html: Optional[str] = None,
    body_text: Optional[str] = None,
    attachments: Optional[List[EmailAttachment]] = None,
    **kwargs: Any,
) -> DeliveryResult:
    """Build an EmailMessage and send it through the process-wide provider."""
    message = EmailMessage(
        to=to,
        subject=subject,
        body_html=body_html,
        body_text=body_text,
        attachments=attachments or [],
        **kwargs,
    )
    return get_email_provider().send(message)
