"""
Services Module - orchestration around the W-9 fill engine.

- Delivery of filled forms (email / webhook, by policy): ``services.w9_delivery``
- Personalized form links
- Logging setup: ``services.logging_config``
"""

from .form_links import build_form_link

__all__ = [
    "build_form_link",
]
