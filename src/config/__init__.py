"""Configuration module for the W-9 form service."""

from .settings import SMTPSettings, W9Settings, WebhookSettings, get_settings
from .w9_layout_loader import W9LayoutLoader, load_layout, clear_layout_cache

__all__ = [
    "SMTPSettings",
    "W9Settings",
    "WebhookSettings",
    "get_settings",
    "W9LayoutLoader",
    "load_layout",
    "clear_layout_cache",
]
