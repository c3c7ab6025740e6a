"""
Webhook Delivery Service

Posts W-9 form lifecycle events to the back-office webhook with:
- Optional HMAC-SHA256 signature header
- Retry with exponential backoff on network errors and 5xx responses
- PII stripping of form data before it leaves the service

Delivery never raises to the caller: every public method returns True when
the webhook accepted the event and False otherwise.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import replace
from typing import Any, Dict, Optional

import requests

from resilience.retry import RetryConfig, RetryExhausted, call_with_retry
from security.data_sanitizer import strip_sensitive_form_fields

from .events import (
    FormProgress,
    Investor,
    SubmissionSource,
    W9WebhookEvent,
    WebhookEventType,
)

logger = logging.getLogger(__name__)

# Delivery timeout in seconds
DELIVERY_TIMEOUT = 30

# Maximum payload size (10MB, room for a base64 PDF)
MAX_PAYLOAD_SIZE = 10 * 1024 * 1024


class WebhookDeliveryError(Exception):
    """The webhook answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableWebhookError(WebhookDeliveryError):
    """5xx or 429; worth another attempt."""


class W9WebhookNotifier:
    """Sends form lifecycle events to one webhook endpoint."""

    def __init__(
        self,
        url: Optional[str],
        secret: Optional[str] = None,
        retry: Optional[RetryConfig] = None,
        timeout: float = DELIVERY_TIMEOUT,
    ):
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self.retry = replace(
            retry or RetryConfig(max_attempts=3, base_delay=1.0, max_delay=30.0),
            retryable_exceptions=(requests.RequestException, RetryableWebhookError),
        )

    @classmethod
    def from_settings(cls, settings) -> "W9WebhookNotifier":
        """Build from a WebhookSettings instance."""
        return cls(
            url=settings.url,
            secret=settings.secret,
            timeout=settings.timeout,
            retry=RetryConfig(
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_initial_delay,
                backoff_multiplier=settings.retry_backoff_multiplier,
                max_delay=settings.retry_max_delay,
            ),
        )

    def is_configured(self) -> bool:
        return bool(self.url)

    # =========================================================================
    # LIFECYCLE EVENTS
    # =========================================================================

    def form_opened(self, investor: Investor, form_link: str) -> bool:
        """Investor opened the form link."""
        return self.notify(W9WebhookEvent(
            event_type=WebhookEventType.FORM_OPENED,
            investor=investor,
            form_link=form_link,
        ))

    def form_started(self, investor: Investor, form_link: str) -> bool:
        """Investor moved past the first step."""
        return self.notify(W9WebhookEvent(
            event_type=WebhookEventType.FORM_STARTED,
            investor=investor,
            form_link=form_link,
        ))

    def form_progress(
        self,
        investor: Investor,
        form_link: str,
        current_step: int,
        total_steps: int,
        step_name: str,
    ) -> bool:
        """Investor reached a new step."""
        return self.notify(W9WebhookEvent(
            event_type=WebhookEventType.FORM_PROGRESS,
            investor=investor,
            form_link=form_link,
            progress=FormProgress(current_step, total_steps, step_name),
        ))

    def form_completed(
        self,
        investor: Investor,
        form_data: Optional[Dict[str, Any]],
        pdf_bytes: bytes,
        filename: str,
        form_link: str = "",
        source: SubmissionSource = SubmissionSource.TRACKED,
        send_to: Optional[str] = None,
    ) -> bool:
        """Investor finished; the filled PDF travels as base64."""
        return self.notify(W9WebhookEvent(
            event_type=WebhookEventType.FORM_COMPLETED,
            investor=investor,
            form_link=form_link,
            source=source,
            send_to=send_to,
            form_data=strip_sensitive_form_fields(form_data),
            pdf_base64=base64.b64encode(pdf_bytes).decode("ascii"),
            pdf_filename=filename,
        ))

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def notify(self, event: W9WebhookEvent) -> bool:
        """
        Deliver an event.

        Returns:
            True if the webhook answered 2xx, False otherwise
        """
        if not self.is_configured():
            logger.warning(
                f"[WEBHOOK] No webhook URL configured, {event.event_type.value} not sent"
            )
            return False

        payload = event.to_payload()
        if payload.get("formData"):
            payload["formData"] = strip_sensitive_form_fields(payload["formData"])
        payload_json = json.dumps(payload, default=str)

        if len(payload_json.encode()) > MAX_PAYLOAD_SIZE:
            logger.warning(f"[WEBHOOK] Payload too large | event={event.event_id}")
            if "pdf" in payload:
                payload["pdf"] = {"filename": event.pdf_filename, "_truncated": True}
            payload_json = json.dumps(payload, default=str)

        headers = {
            "Content-Type": "application/json",
            "X-Webhook-ID": event.event_id,
            "X-Webhook-Event": event.event_type.value,
            "X-Webhook-Timestamp": event.timestamp,
            "User-Agent": "W9Form-Webhooks/1.0",
        }
        if self.secret:
            headers["X-Webhook-Signature"] = self._generate_signature(payload_json, self.secret)

        start_time = time.time()
        try:
            response = call_with_retry(self._post, self.retry, payload_json, headers)
        except RetryExhausted as e:
            logger.error(
                f"[WEBHOOK] Failed after {e.attempts} attempts | "
                f"event={event.event_type.value} | error={e.last_exception}"
            )
            return False
        except WebhookDeliveryError as e:
            logger.error(
                f"[WEBHOOK] Rejected | event={event.event_type.value} | status={e.status_code}"
            )
            return False
        except requests.RequestException as e:
            logger.error(f"[WEBHOOK] Error | event={event.event_type.value} | error={e}")
            return False

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"[WEBHOOK] Delivered | event={event.event_type.value} | "
            f"status={response.status_code} | duration={duration_ms}ms"
        )
        return True

    def _post(self, payload_json: str, headers: Dict[str, str]) -> requests.Response:
        response = requests.post(
            self.url,
            data=payload_json,
            headers=headers,
            timeout=self.timeout,
        )
        if 200 <= response.status_code < 300:
            return response
        message = f"HTTP {response.status_code}: {response.text[:500]}"
        if response.status_code >= 500 or response.status_code == 429:
            raise RetryableWebhookError(message, response.status_code)
        raise WebhookDeliveryError(message, response.status_code)

    def _generate_signature(self, payload: str, secret: str) -> str:
        """
        Generate HMAC-SHA256 signature for webhook payload.

        The signature format is: sha256={hex_digest}
        """
        signature = hmac.new(
            secret.encode("utf-8"),
            payload.encode("utf-8"),
            hashlib.sha256
        ).hexdigest()

        return f"sha256={signature}"

    def verify_signature(self, payload: str, signature: str, secret: str) -> bool:
        """
        Verify a webhook signature.

        Args:
            payload: Raw payload string
            signature: Signature from X-Webhook-Signature header
            secret: Endpoint signing secret

        Returns:
            True if signature is valid
        """
        expected = self._generate_signature(payload, secret)
        return hmac.compare_digest(expected, signature)


_notifier: Optional[W9WebhookNotifier] = None


def get_webhook_notifier() -> W9WebhookNotifier:
    """Get the global notifier built from settings."""
    global _notifier
    if _notifier is None:
        from config.settings import get_settings
        _notifier = W9WebhookNotifier.from_settings(get_settings().webhook)
    return _notifier


def set_webhook_notifier(notifier: Optional[W9WebhookNotifier]) -> None:
    """Replace the global notifier (for testing); None rebuilds from settings."""
    global _notifier
    _notifier = notifier
