"""
Webhook Events

Form lifecycle events sent to the back office (for example an n8n webhook
trigger). One endpoint receives every event; receivers route on ``event``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class WebhookEventType(str, Enum):
    """
    All supported webhook event types.

    Naming convention: {resource}.{action}
    """
    FORM_OPENED = "form.opened"
    FORM_STARTED = "form.started"
    FORM_PROGRESS = "form.progress"
    FORM_COMPLETED = "form.completed"


class SubmissionSource(str, Enum):
    """Tracked submissions came through a generated link, anonymous ones did not."""
    TRACKED = "tracked"
    ANONYMOUS = "anonymous"


@dataclass
class Investor:
    """The person the form link was generated for."""
    email: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"email": self.email, "name": self.name}


@dataclass
class FormProgress:
    """Where the investor is in the wizard."""
    current_step: int
    total_steps: int
    step_name: str

    @property
    def percent_complete(self) -> int:
        if self.total_steps <= 0:
            return 0
        # Rounds half up
        return int(self.current_step * 100 / self.total_steps + 0.5)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentStep": self.current_step,
            "totalSteps": self.total_steps,
            "stepName": self.step_name,
            "percentComplete": self.percent_complete,
        }


def utc_timestamp() -> str:
    """ISO 8601 UTC timestamp with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class W9WebhookEvent:
    """One lifecycle event and its JSON body."""
    event_type: WebhookEventType
    investor: Investor
    form_link: str = ""
    source: SubmissionSource = SubmissionSource.TRACKED
    send_to: Optional[str] = None
    progress: Optional[FormProgress] = None
    form_data: Optional[Dict[str, Any]] = None
    pdf_base64: Optional[str] = None
    pdf_filename: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)
    event_id: str = field(default_factory=lambda: str(uuid4()))

    def to_payload(self) -> Dict[str, Any]:
        """Webhook body; optional sections are omitted when unset."""
        payload: Dict[str, Any] = {
            "event": self.event_type.value,
            "timestamp": self.timestamp,
            "source": self.source.value,
            "investor": self.investor.to_dict(),
        }
        if self.send_to:
            payload["sendTo"] = self.send_to
        payload["formLink"] = self.form_link
        if self.progress is not None:
            payload["progress"] = self.progress.to_dict()
        if self.form_data is not None:
            payload["formData"] = self.form_data
        if self.pdf_base64 is not None:
            payload["pdf"] = {"base64": self.pdf_base64, "filename": self.pdf_filename}
        return payload
