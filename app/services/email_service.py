# app/services/email_service.py
"""
Transactional email service.

Uses the Resend API to deliver the lifecycle emails (retention reminders,
purchase confirmations, deadline reminders). Callers get a status dict back
and never an exception: only status == "sent" counts as delivered.
"""

import logging
from typing import Any

from app.config import get_settings
from app.services.email_templates import EmailTemplate, TemplateParamError, render

logger = logging.getLogger(__name__)

STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


def is_delivered(result: dict[str, Any]) -> bool:
    """True only for a confirmed send; skipped and failed are both undelivered."""
    return result.get("status") == STATUS_SENT


class EmailService:
    """
    Service for sending templated lifecycle emails.

    Uses Resend API for delivery.
    """

    def __init__(self):
        """Initialize email service with settings."""
        self.settings = get_settings()
        self._resend_client = None

    @property
    def resend_client(self):
        """Lazy-load Resend client."""
        if self._resend_client is None and self.settings.RESEND_API_KEY:
            import resend

            resend.api_key = self.settings.RESEND_API_KEY
            self._resend_client = resend
        return self._resend_client

    def send(self, template: EmailTemplate, to: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        Render and send one email.

        Args:
            template: Which template to render
            to: Recipient address
            params: Template params (see app.services.email_templates)

        Returns:
            Dict with status (sent/failed/skipped), message_id, and any errors
        """
        template = EmailTemplate(template)

        if not self.settings.EMAIL_ENABLED:
            logger.info("[EMAIL] Email notifications disabled", extra={"template": template.value})
            return {"status": STATUS_SKIPPED, "reason": "EMAIL_ENABLED=false"}

        if not self.settings.RESEND_API_KEY:
            logger.warning("[EMAIL] RESEND_API_KEY not configured", extra={"template": template.value})
            return {"status": STATUS_SKIPPED, "reason": "RESEND_API_KEY not set"}

        if not to:
            return {"status": STATUS_FAILED, "error": "Missing recipient"}

        try:
            rendered = render(template, {"site_url": self.settings.SITE_URL, **params})
        except TemplateParamError as e:
            logger.error(f"[EMAIL] Could not render {template.value}: {e}", extra={"template": template.value})
            return {"status": STATUS_FAILED, "error": str(e)}

        try:
            response = self.resend_client.Emails.send(
                {
                    "from": self.settings.EMAIL_FROM,
                    "to": [to],
                    "subject": rendered.subject,
                    "html": rendered.html,
                    "text": rendered.text,
                    "tags": [{"name": "type", "value": template.value}],
                }
            )

            logger.info(
                f"[EMAIL] Sent {template.value} email, id={response.get('id')}",
                extra={"event": "email_sent", "template": template.value},
            )
            return {
                "status": STATUS_SENT,
                "message_id": response.get("id"),
                "recipient": to,
            }

        except Exception as e:
            logger.error(
                f"[EMAIL] Failed to send {template.value} email: {e}",
                extra={"event": "email_failed", "template": template.value},
            )
            return {"status": STATUS_FAILED, "error": str(e)}


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get the process-wide email service (FastAPI dependency)."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
