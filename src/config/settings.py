"""Application settings using Pydantic Settings.

Centralized configuration for the W-9 form service.

Environment variables:
- W9_TEMPLATE_PATH / W9_TEMPLATE_URL: blank W-9 template (one is required to fill)
- W9_LAYOUT_VERSION: placement layout (see config/w9_layouts/)
- W9_RECIPIENT_EMAIL: back-office mailbox for submitted forms
- FORM_BASE_URL (or W9_FORM_BASE_URL): public URL of the form widget
- SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM: outgoing mail
- W9_WEBHOOK_URL, W9_WEBHOOK_SECRET: back-office webhook
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class SMTPSettings(BaseSettings):
    """Outgoing mail server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: Optional[str] = Field(default=None, description="SMTP server hostname")
    port: int = Field(default=587, description="SMTP server port")
    user: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SMTP_USER", "SMTP_USERNAME"),
        description="SMTP username",
    )
    password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SMTP_PASS", "SMTP_PASSWORD"),
        description="SMTP password",
    )
    from_email: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SMTP_FROM", "SMTP_FROM_EMAIL"),
        description="Sender address (defaults to the username)",
    )
    from_name: str = Field(default="W9 Form System", description="Sender display name")
    use_tls: bool = Field(default=True, description="Use STARTTLS")
    use_ssl: bool = Field(default=False, description="Use implicit TLS (port 465)")

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)


class WebhookSettings(BaseSettings):
    """Back-office webhook configuration."""

    model_config = SettingsConfigDict(
        env_prefix="W9_WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: Optional[str] = Field(default=None, description="Webhook endpoint")
    secret: Optional[str] = Field(default=None, description="HMAC signing secret")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    # Retry settings
    retry_max_attempts: int = Field(default=3, description="Max delivery attempts")
    retry_initial_delay: float = Field(default=1.0, description="Initial delay in seconds")
    retry_backoff_multiplier: float = Field(default=2.0, description="Backoff multiplier")
    retry_max_delay: float = Field(default=30.0, description="Max delay between retries")


class W9Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="W9_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="W9 Form Service", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3001, description="API port")

    # Template and layout
    template_path: Optional[str] = Field(default=None, description="Path to the blank W-9 PDF")
    template_url: Optional[str] = Field(default=None, description="URL of the blank W-9 PDF")
    layout_version: str = Field(default="2024-03-coordinates", description="Placement layout")
    date_style: str = Field(default="us", description="Signature date style: us or iso")

    # Delivery
    recipient_email: Optional[str] = Field(default=None, description="Where submitted forms go")
    form_base_url: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("W9_FORM_BASE_URL", "FORM_BASE_URL"),
        description="Public URL of the form widget",
    )
    delivery_policy: str = Field(
        default="by_source",
        description="email_only, webhook_only, both or by_source",
    )

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")
    log_file: Optional[str] = Field(default=None, description="Optional log file")

    @field_validator("date_style", "delivery_policy")
    @classmethod
    def _lowercase(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def _uppercase(cls, v: str) -> str:
        return v.strip().upper()

    # Nested settings (loaded separately)
    @property
    def smtp(self) -> SMTPSettings:
        return SMTPSettings()

    @property
    def webhook(self) -> WebhookSettings:
        return WebhookSettings()

    @property
    def template_source(self) -> Optional[str]:
        """Template path if set, else the URL."""
        return self.template_path or self.template_url

    @property
    def is_production(self) -> bool:
        return self.environment in ("production", "prod", "staging")


@lru_cache
def get_settings() -> W9Settings:
    """
    Get cached application settings instance.

    Returns:
        W9Settings: Cached settings loaded from environment.
    """
    return W9Settings()
