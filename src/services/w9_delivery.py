"""
W-9 Delivery Service

Routes a filled W-9 to the back office. Which channel is used is decided by
a DeliveryPolicy:

- email_only:   always email the PDF to the configured recipient
- webhook_only: always post a form.completed event
- both:         email and webhook
- by_source:    tracked submissions (investor known from the form link) go to
                the webhook, anonymous ones go by email

Both channels report failure through their return values; this service never
raises for a failed delivery.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from notifications.email_provider import (
    DeliveryResult,
    DeliveryStatus,
    EmailProvider,
    get_email_provider,
)
from notifications.w9_submission_email import build_w9_submission_email
from security.data_sanitizer import strip_sensitive_form_fields
from webhooks.events import Investor, SubmissionSource
from webhooks.service import W9WebhookNotifier, get_webhook_notifier

logger = logging.getLogger(__name__)


class DeliveryPolicy(str, Enum):
    EMAIL_ONLY = "email_only"
    WEBHOOK_ONLY = "webhook_only"
    BOTH = "both"
    BY_SOURCE = "by_source"


@dataclass
class W9Submission:
    """A filled W-9 ready to leave the service."""
    pdf_bytes: bytes
    filename: str
    submitter_name: str = ""
    form_data: Dict[str, Any] = field(default_factory=dict)
    investor_email: Optional[str] = None
    investor_name: Optional[str] = None
    form_link: str = ""
    # Forwarded in the webhook payload only, never used as an email recipient
    send_to: Optional[str] = None

    def __post_init__(self):
        self.form_data = strip_sensitive_form_fields(self.form_data)

    @property
    def source(self) -> SubmissionSource:
        if self.investor_email:
            return SubmissionSource.TRACKED
        return SubmissionSource.ANONYMOUS

    @property
    def investor(self) -> Investor:
        return Investor(
            email=self.investor_email or "",
            name=self.investor_name or self.submitter_name,
        )


@dataclass
class DeliveryReport:
    """What happened on each channel; None means the channel was not used."""
    email: Optional[DeliveryResult] = None
    webhook: Optional[bool] = None

    @property
    def success(self) -> bool:
        attempted = []
        if self.email is not None:
            attempted.append(self.email.success)
        if self.webhook is not None:
            attempted.append(self.webhook)
        return bool(attempted) and all(attempted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "email": self.email.to_dict() if self.email else None,
            "webhook": self.webhook,
        }


class W9DeliveryService:
    """Applies the delivery policy to submissions."""

    def __init__(
        self,
        policy: DeliveryPolicy = DeliveryPolicy.BY_SOURCE,
        recipient: Optional[str] = None,
        email_provider: Optional[EmailProvider] = None,
        notifier: Optional[W9WebhookNotifier] = None,
        from_email: Optional[str] = None,
    ):
        self.policy = DeliveryPolicy(policy)
        self.recipient = recipient
        self._email_provider = email_provider
        self._notifier = notifier
        self.from_email = from_email

    @classmethod
    def from_settings(cls, settings) -> "W9DeliveryService":
        return cls(
            policy=DeliveryPolicy(settings.delivery_policy),
            recipient=settings.recipient_email,
            from_email=settings.smtp.from_email,
        )

    @property
    def email_provider(self) -> EmailProvider:
        if self._email_provider is None:
            self._email_provider = get_email_provider()
        return self._email_provider

    @property
    def notifier(self) -> W9WebhookNotifier:
        if self._notifier is None:
            self._notifier = get_webhook_notifier()
        return self._notifier

    def channels_for(self, submission: W9Submission) -> tuple:
        """(use_email, use_webhook) for this submission."""
        if self.policy == DeliveryPolicy.EMAIL_ONLY:
            return True, False
        if self.policy == DeliveryPolicy.WEBHOOK_ONLY:
            return False, True
        if self.policy == DeliveryPolicy.BOTH:
            return True, True
        tracked = submission.source == SubmissionSource.TRACKED
        return not tracked, tracked

    def deliver(self, submission: W9Submission) -> DeliveryReport:
        """Send the submission over every channel the policy selects."""
        use_email, use_webhook = self.channels_for(submission)
        report = DeliveryReport()

        if use_email:
            report.email = self._send_email(submission)
        if use_webhook:
            report.webhook = self.notifier.form_completed(
                investor=submission.investor,
                form_data=submission.form_data,
                pdf_bytes=submission.pdf_bytes,
                filename=submission.filename,
                form_link=submission.form_link,
                source=submission.source,
                send_to=submission.send_to,
            )

        logger.info(
            f"W9 delivery | policy={self.policy.value} | source={submission.source.value} | "
            f"email={report.email.success if report.email else None} | "
            f"webhook={report.webhook}"
        )
        return report

    async def deliver_async(self, submission: W9Submission) -> DeliveryReport:
        """deliver() in a worker thread."""
        return await asyncio.to_thread(self.deliver, submission)

    def _send_email(self, submission: W9Submission) -> DeliveryResult:
        recipient = self.recipient
        if not recipient:
            logger.error("W9 delivery: no recipient email configured")
            return DeliveryResult(
                success=False,
                status=DeliveryStatus.FAILED,
                provider=self.email_provider.provider_name,
                error_message="No recipient email configured",
                error_code="NO_RECIPIENT",
            )
        message = build_w9_submission_email(
            to=recipient,
            pdf_bytes=submission.pdf_bytes,
            filename=submission.filename,
            submitter_name=submission.submitter_name,
            form_data=submission.form_data,
            from_email=self.from_email,
        )
        return self.email_provider.send(message)
