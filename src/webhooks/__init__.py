"""
Webhooks Module

Sends W-9 form lifecycle events to the back office.

Features:
- One endpoint for all events; receivers route on the ``event`` field
- Optional HMAC-SHA256 signatures (X-Webhook-Signature)
- Automatic retry with exponential backoff
- TINs and signatures stripped from form data

Events:
- form.opened, form.started, form.progress, form.completed
"""

from .events import (
    FormProgress,
    Investor,
    SubmissionSource,
    W9WebhookEvent,
    WebhookEventType,
)
from .service import (
    W9WebhookNotifier,
    WebhookDeliveryError,
    get_webhook_notifier,
    set_webhook_notifier,
)

__all__ = [
    "FormProgress",
    "Investor",
    "SubmissionSource",
    "W9WebhookEvent",
    "WebhookEventType",
    "W9WebhookNotifier",
    "WebhookDeliveryError",
    "get_webhook_notifier",
    "set_webhook_notifier",
]
