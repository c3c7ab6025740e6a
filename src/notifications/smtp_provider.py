"""
SMTP email provider.

Works with any SMTP server that accepts a username and password, Gmail app
passwords included. Port 465 uses implicit TLS; anything else connects in
the clear and upgrades with STARTTLS unless ``use_tls`` is off.

Configured from SMTPSettings (SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS,
SMTP_FROM).
"""

import logging
import smtplib
import ssl
import uuid
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from .email_provider import DeliveryResult, DeliveryStatus, EmailMessage, EmailProvider

logger = logging.getLogger(__name__)

DEFAULT_FROM_NAME = "W9 Form System"


class SMTPProvider(EmailProvider):

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        from_email: Optional[str] = None,
        from_name: str = DEFAULT_FROM_NAME,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl or port == 465
        self.from_email = from_email or username or "noreply@example.com"
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SMTPProvider":
        """Build from an SMTPSettings instance."""
        return cls(
            host=settings.host,
            port=settings.port,
            username=settings.user,
            password=settings.password,
            use_tls=settings.use_tls,
            use_ssl=settings.use_ssl,
            from_email=settings.from_email,
            from_name=settings.from_name,
        )

    @property
    def provider_name(self) -> str:
        return "smtp"

    def is_configured(self) -> bool:
        return bool(self.host)

    def build_mime(self, message: EmailMessage) -> MIMEMultipart:
        """
        multipart/mixed with a text/html alternative part followed by the
        attachments. Custom headers containing CR or LF are dropped.
        """
        mime = MIMEMultipart("mixed")
        mime["From"] = formataddr((
            message.from_name or self.from_name,
            message.from_email or self.from_email,
        ))
        mime["To"] = message.to
        mime["Subject"] = message.subject
        if message.reply_to:
            mime["Reply-To"] = message.reply_to
        if message.cc:
            mime["Cc"] = ", ".join(message.cc)

        for name, value in message.headers.items():
            if "\r" in f"{name}{value}" or "\n" in f"{name}{value}":
                logger.warning(f"Dropped email header with a line break: {name!r}")
                continue
            mime[name] = value

        alternative = MIMEMultipart("alternative")
        if message.body_text:
            alternative.attach(MIMEText(message.body_text, "plain", "utf-8"))
        if message.body_html:
            alternative.attach(MIMEText(message.body_html, "html", "utf-8"))
        mime.attach(alternative)

        for attachment in message.attachments:
            subtype = attachment.content_type.partition("/")[2] or "octet-stream"
            part = MIMEApplication(attachment.content, _subtype=subtype)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            mime.attach(part)

        return mime

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.use_tls:
            server.starttls(context=context)
        return server

    def send(self, message: EmailMessage) -> DeliveryResult:
        if not self.is_configured():
            return self.failure("SMTP not configured (missing SMTP_HOST)", "NOT_CONFIGURED")

        message.validate()
        payload = self.build_mime(message).as_string()
        sender = message.from_email or self.from_email

        try:
            with self._connect() as server:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(sender, message.recipients, payload)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for {self.username}: {e}")
            return self.failure(f"SMTP authentication failed: {e}", "AUTH_ERROR")
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"SMTP recipients refused: {e}")
            return self.failure(f"Recipients refused: {e}", "RECIPIENTS_REFUSED",
                                DeliveryStatus.BOUNCED)
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return self.failure(str(e), "SMTP_ERROR")
        except OSError as e:
            logger.error(f"SMTP connection to {self.host}:{self.port} failed: {e}")
            return self.failure(str(e), "CONNECTION_ERROR")

        logger.info(f"SMTP: sent '{message.subject}' to {message.to}")
        return DeliveryResult(
            success=True,
            status=DeliveryStatus.SENT,
            message_id=f"smtp-{uuid.uuid4()}",
            provider=self.provider_name,
        )
