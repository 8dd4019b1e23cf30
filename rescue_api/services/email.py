# SPDX-License-Identifier: Apache-2.0

"""
Transactional email delivery over SMTP.

Messages are rendered from named plain-text templates. Delivery is best
effort: failures raise CollaboratorException, which the notification
dispatcher logs and drops.
"""

import os
import smtplib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Optional, Tuple

from opentelemetry import trace

from ..domain.errors import CollaboratorException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

APP_NAME = "Rescue Roots"

ROLE_LABELS = {
    "veterinarian": "Veterinarian",
    "ngo_admin": "Organization Admin",
}

# template name -> (subject, body)
EMAIL_TEMPLATES: Dict[str, Tuple[str, str]] = {
    "verification_pending": (
        "Registration Pending Verification - {app_name}",
        "Hello {name},\n\n"
        "Thank you for registering as a {role_label} on {app_name}.\n\n"
        "Your registration has been received and is pending verification. Our team "
        "will review your verification document, and you will receive an email once "
        "your account is approved. Until then you will not be able to log in.\n\n"
        "The {app_name} Team\n"
    ),
    "verification_approved": (
        "Account Verified - Welcome to {app_name}",
        "Hello {name},\n\n"
        "Your {role_label} account has been verified and approved.\n\n"
        "You can now log in at {base_url}/login and start helping dogs in need.\n\n"
        "The {app_name} Team\n"
    ),
    "verification_rejected": (
        "Account Verification Update - {app_name}",
        "Hello {name},\n\n"
        "We could not verify your {role_label} account.\n\n"
        "Reason: {reason}\n\n"
        "If you believe this is a mistake, please reply to this email.\n\n"
        "The {app_name} Team\n"
    ),
    "password_reset": (
        "Reset your {app_name} password",
        "Hello {name},\n\n"
        "Your password reset code is: {code}\n\n"
        "The code expires in {expires_minutes} minutes and can be used once. "
        "If you did not request a reset, you can ignore this email.\n\n"
        "The {app_name} Team\n"
    ),
}


def render_template(template: str, context: Dict[str, Any], base_url: str = "") -> Tuple[str, str]:
    """
    Render a named email template.

    Args:
        template: Template name from EMAIL_TEMPLATES
        context: Template values
        base_url: Public base URL for links

    Returns:
        Tuple of (subject, body)

    Raises:
        KeyError: If the template does not exist
    """
    subject, body = EMAIL_TEMPLATES[template]
    values = {
        "app_name": APP_NAME,
        "base_url": base_url,
        "role_label": ROLE_LABELS.get(context.get("role"), "member"),
        "reason": "No reason given",
        "name": "there",
    }
    values.update({key: value for key, value in context.items() if value is not None})
    return subject.format(**values), body.format(**values)


class EmailSender(ABC):
    """Interface for transactional email delivery."""

    @abstractmethod
    def send(self, to: str, template: str, context: Dict[str, Any]) -> None:
        """
        Send a templated email.

        Raises:
            CollaboratorException: If delivery fails
        """


@dataclass
class SMTPConfig:
    """SMTP connection settings."""
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    mail_from: str = "no-reply@rescue-roots.org"
    base_url: str = "http://localhost:5000"
    timeout: int = 10

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


class SMTPEmailSender(EmailSender):
    """Email sender using smtplib."""

    def __init__(self, config: SMTPConfig):
        self.config = config
        if not config.is_configured:
            logger.warning("SMTP is not configured, emails will be skipped")

    def _build_message(self, to: str, template: str, context: Dict[str, Any]) -> EmailMessage:
        subject, body = render_template(template, context, self.config.base_url)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.config.mail_from
        msg["To"] = to
        msg.set_content(body)
        return msg

    def send(self, to: str, template: str, context: Dict[str, Any]) -> None:
        with tracer.start_as_current_span("email.send") as span:
            span.set_attributes({"email.template": template, "email.configured": self.config.is_configured})

            try:
                msg = self._build_message(to, template, context)
            except KeyError as e:
                raise CollaboratorException("email", f"Unknown template or missing value: {e}")

            if not self.config.is_configured:
                logger.warning(f"Email not configured, skipping {template} email", extra={"template": template})
                return

            try:
                with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as s:
                    if self.config.use_tls:
                        s.starttls()
                    if self.config.username and self.config.password:
                        s.login(self.config.username, self.config.password)
                    s.send_message(msg)
            except (smtplib.SMTPException, OSError) as e:
                span.record_exception(e)
                raise CollaboratorException("email", f"Failed to send {template} email: {e}")

            logger.info(f"Sent {template} email", extra={"template": template})


def create_email_sender() -> SMTPEmailSender:
    """Create the SMTP email sender from environment variables."""
    config = SMTPConfig(
        host=os.getenv("SMTP_HOST"),
        port=int(os.getenv("SMTP_PORT", "587")),
        username=os.getenv("SMTP_USERNAME"),
        password=os.getenv("SMTP_PASSWORD"),
        use_tls=os.getenv("SMTP_TLS", "true").lower() == "true",
        mail_from=os.getenv("MAIL_FROM", "no-reply@rescue-roots.org"),
        base_url=os.getenv("BASE_URL", "http://localhost:5000")
    )
    return SMTPEmailSender(config)
