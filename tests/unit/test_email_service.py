"""
Unit tests for EmailService and the lifecycle email templates.

Tests send guards, delivery status mapping, and the subject/body wording
each template produces.
"""

from datetime import date, datetime
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def mock_settings():
    """Create a mock settings object with email enabled."""
    settings = MagicMock()
    settings.EMAIL_ENABLED = True
    settings.RESEND_API_KEY = "re_test_key"
    settings.EMAIL_FROM = "RentVault <notifications@rentvault.co>"
    settings.SITE_URL = "https://rentvault.test"
    return settings


def _reminder_params(**overrides):
    params = {
        "label": "Flat on Main Street",
        "case_id": "case-123",
        "retention_until": datetime(2026, 6, 14, 12, 0),
        "days_remaining": 30,
        "level": 2,
    }
    params.update(overrides)
    return params


class TestEmailServiceSendGuards:
    """Tests for early-exit guards in send()."""

    def test_email_disabled(self, mock_settings):
        """When EMAIL_ENABLED is False, returns skipped with reason."""
        mock_settings.EMAIL_ENABLED = False

        with patch("app.services.email_service.get_settings", return_value=mock_settings):
            from app.services.email_service import EmailService
            from app.services.email_templates import EmailTemplate

            service = EmailService()
            result = service.send(EmailTemplate.RETENTION_REMINDER_LONG_TERM, "t@example.com", _reminder_params())

        assert result["status"] == "skipped"
        assert result["reason"] == "EMAIL_ENABLED=false"

    def test_no_resend_key(self, mock_settings):
        """When RESEND_API_KEY is None, returns skipped with reason."""
        mock_settings.RESEND_API_KEY = None

        with patch("app.services.email_service.get_settings", return_value=mock_settings):
            from app.services.email_service import EmailService
            from app.services.email_templates import EmailTemplate

            service = EmailService()
            result = service.send(EmailTemplate.RETENTION_REMINDER_LONG_TERM, "t@example.com", _reminder_params())

        assert result["status"] == "skipped"
        assert result["reason"] == "RESEND_API_KEY not set"

    def test_missing_recipient(self, mock_settings):
        with patch("app.services.email_service.get_settings", return_value=mock_settings):
            from app.services.email_service import EmailService
            from app.services.email_templates import EmailTemplate

            service = EmailService()
            result = service.send(EmailTemplate.PACK_PURCHASE, "", {"label": "x", "case_id": "c", "pack_type": "checkin"})

        assert result["status"] == "failed"

    def test_missing_template_param(self, mock_settings):
        """A render error is reported as failed, never raised."""
        with patch("app.services.email_service.get_settings", return_value=mock_settings):
            from app.services.email_service import EmailService
            from app.services.email_templates import EmailTemplate

            service = EmailService()
            service._resend_client = MagicMock()
            result = service.send(EmailTemplate.STORAGE_EXTENSION, "t@example.com", {"label": "x", "case_id": "c"})

        assert result["status"] == "failed"
        assert "years" in result["error"]
        service._resend_client.Emails.send.assert_not_called()


class TestEmailServiceSend:
    """Tests for the email send flow."""

    def test_send_success(self, mock_settings):
        """Successful send returns status sent with message_id."""
        with patch("app.services.email_service.get_settings", return_value=mock_settings):
            from app.services.email_service import EmailService
            from app.services.email_templates import EmailTemplate

            service = EmailService()

            mock_resend = MagicMock()
            mock_resend.Emails.send.return_value = {"id": "msg_123"}
            service._resend_client = mock_resend

            result = service.send(EmailTemplate.RETENTION_REMINDER_LONG_TERM, "t@example.com", _reminder_params())

        assert result["status"] == "sent"
        assert result["message_id"] == "msg_123"

        payload = mock_resend.Emails.send.call_args[0][0]
        assert payload["to"] == ["t@example.com"]
        assert payload["from"] == "RentVault <notifications@rentvault.co>"
        assert payload["tags"] == [{"name": "type", "value": "retention_reminder_long_term"}]
        assert "https://rentvault.test/vault/case/case-123/settings" in payload["text"]

    def test_send_failure(self, mock_settings):
        """When resend raises an exception, returns failed with error."""
        with patch("app.services.email_service.get_settings", return_value=mock_settings):
            from app.services.email_service import EmailService
            from app.services.email_templates import EmailTemplate

            service = EmailService()

            mock_resend = MagicMock()
            mock_resend.Emails.send.side_effect = Exception("API rate limit exceeded")
            service._resend_client = mock_resend

            result = service.send(EmailTemplate.RETENTION_REMINDER_LONG_TERM, "t@example.com", _reminder_params())

        assert result["status"] == "failed"
        assert "API rate limit exceeded" in result["error"]


class TestIsDelivered:
    def test_only_sent_counts(self):
        from app.services.email_service import is_delivered

        assert is_delivered({"status": "sent"})
        assert not is_delivered({"status": "skipped"})
        assert not is_delivered({"status": "failed"})
        assert not is_delivered({})


class TestRetentionReminderTemplates:
    """Wording differs by stay type and urgency."""

    def test_long_term_uses_twelve_month_wording(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.RETENTION_REMINDER_LONG_TERM, _reminder_params())

        assert "12-month storage period" in rendered.text
        assert rendered.subject == "Your rental records: Flat on Main Street"
        assert "14 June 2026" in rendered.text

    def test_short_stay_uses_thirty_day_wording(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.RETENTION_REMINDER_SHORT_STAY, _reminder_params(label="Lisbon apartment"))

        assert "30-day storage period" in rendered.text

    def test_final_week_is_action_required(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.RETENTION_REMINDER_LONG_TERM, _reminder_params(days_remaining=5))

        assert rendered.subject.startswith("Action required")
        assert "ends in 5 days" in rendered.subject
        assert "permanently deleted" in rendered.text

    def test_label_is_html_escaped(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.RETENTION_REMINDER_LONG_TERM, _reminder_params(label="<b>Flat</b>"))

        assert "<b>Flat</b>" not in rendered.html
        assert "&lt;b&gt;Flat&lt;/b&gt;" in rendered.html


class TestConfirmationTemplates:
    def test_pack_purchase_names_the_pack(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(
            EmailTemplate.PACK_PURCHASE,
            {"label": "Flat", "case_id": "c1", "pack_type": "bundle", "retention_until": datetime(2027, 3, 1)},
        )

        assert rendered.subject == "Your Full Bundle is now active"
        assert "stored until 1 March 2027" in rendered.text

    def test_storage_extension_pluralises_years(self):
        from app.services.email_templates import EmailTemplate, render

        one = render(
            EmailTemplate.STORAGE_EXTENSION,
            {"label": "Flat", "case_id": "c1", "years": 1, "retention_until": datetime(2028, 1, 1)},
        )
        two = render(
            EmailTemplate.STORAGE_EXTENSION,
            {"label": "Flat", "case_id": "c1", "years": 2, "retention_until": datetime(2029, 1, 1)},
        )

        assert "1 year of storage" in one.text
        assert "2 years of storage" in two.text
        assert two.subject == "Storage extended: your RentVault records are secure until 1 January 2029"


class TestDeadlineReminderTemplate:
    def _params(self, **overrides):
        params = {
            "label": "Flat",
            "deadline_type": "termination_notice",
            "due_date": date(2026, 3, 8),
            "days_until": 7,
            "notice_method": "registered letter",
        }
        params.update(overrides)
        return params

    @pytest.mark.parametrize(
        "days,expected",
        [(0, "today"), (1, "tomorrow"), (7, "in 7 days")],
    )
    def test_urgency_wording(self, days, expected):
        from app.services.email_templates import deadline_urgency

        assert deadline_urgency(days) == expected

    def test_termination_notice(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.DEADLINE_REMINDER, self._params())

        assert rendered.subject == "[Reminder] Notice deadline in 7 days"
        assert "Notice method: registered letter" in rendered.text
        assert "Deadline: 8 March 2026" in rendered.text

    def test_notice_method_not_found_is_omitted(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.DEADLINE_REMINDER, self._params(notice_method="not found"))

        assert "Notice method" not in rendered.text

    def test_rent_payment(self):
        from app.services.email_templates import EmailTemplate, render

        rendered = render(EmailTemplate.DEADLINE_REMINDER, self._params(deadline_type="rent_payment", days_until=0))

        assert rendered.subject == "[Reminder] Rent due today"
        assert "Due date: 8 March 2026" in rendered.text

    def test_missing_param_raises(self):
        from app.services.email_templates import EmailTemplate, TemplateParamError, render

        with pytest.raises(TemplateParamError, match="due_date"):
            render(EmailTemplate.DEADLINE_REMINDER, self._params(due_date=None))
