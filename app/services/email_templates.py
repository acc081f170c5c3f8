# app/services/email_templates.py
"""
Transactional email templates.

Each renderer takes the template params dict passed to EmailService.send()
and returns a RenderedEmail with subject, HTML and plain-text bodies.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from html import escape
from typing import Any, Callable

FOOTER_TEXT = "RentVault securely stores and organises your rental documents. Not legal advice."

PACK_NAMES = {
    "checkin": "Check-In Pack",
    "moveout": "Move-Out Pack",
    "bundle": "Full Bundle",
    "short_stay": "Short-Stay Pack",
    "related_contracts": "Related Contracts",
}


class EmailTemplate(str, Enum):
    RETENTION_REMINDER_LONG_TERM = "retention_reminder_long_term"
    RETENTION_REMINDER_SHORT_STAY = "retention_reminder_short_stay"
    PACK_PURCHASE = "pack_purchase"
    STORAGE_EXTENSION = "storage_extension"
    DEADLINE_REMINDER = "deadline_reminder"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


class TemplateParamError(ValueError):
    """Raised when a template is rendered without a required param."""


def _require(params: dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if params.get(k) is None]
    if missing:
        raise TemplateParamError(f"Missing template params: {', '.join(missing)}")


def format_date(value: date | datetime) -> str:
    """'14 March 2026' style, as used throughout the emails."""
    return f"{value.day} {value.strftime('%B %Y')}"


def deadline_urgency(days_until: int) -> str:
    if days_until == 0:
        return "today"
    if days_until == 1:
        return "tomorrow"
    return f"in {days_until} days"


def _wrap_html(title: str, body: str, cta_text: str | None = None, cta_url: str | None = None) -> str:
    cta = ""
    if cta_text and cta_url:
        cta = (
            f'<p style="margin: 24px 0;"><a href="{escape(cta_url)}" '
            f'style="background: #0f172a; color: white; padding: 12px 24px; border-radius: 8px; '
            f'text-decoration: none; font-weight: 600;">{escape(cta_text)}</a></p>'
        )
    return f"""<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; color: #334155;">
    <h1 style="font-size: 20px; color: #0f172a;">{escape(title)}</h1>
    {body}
    {cta}
    <p style="margin-top: 32px; font-size: 12px; color: #94a3b8;">{FOOTER_TEXT}</p>
</body>
</html>"""


def _case_url(params: dict[str, Any], page: str = "") -> str:
    site_url = params.get("site_url", "https://rentvault.co").rstrip("/")
    url = f"{site_url}/vault/case/{params['case_id']}"
    return f"{url}/{page}" if page else url


# -----------------------------------------------------------------------------
# Retention reminders
# -----------------------------------------------------------------------------


def _render_retention_reminder(params: dict[str, Any], period: str) -> RenderedEmail:
    _require(params, "label", "case_id", "retention_until", "days_remaining")
    label = params["label"]
    expiry = format_date(params["retention_until"])
    days = params["days_remaining"]
    settings_url = _case_url(params, "settings")

    if days <= 7:
        subject = f'Action required: storage for "{label}" ends in {days} days'
        lead = "Your records will enter a 30-day grace period and then be permanently deleted."
    else:
        subject = f"Your rental records: {label}"
        lead = "No action needed yet. Your documents remain fully accessible until then."

    text = (
        f"{subject}\n\n"
        f"Your {period} storage period for \"{label}\" ends on {expiry}.\n\n"
        f"{lead}\n\n"
        "If you'd like to keep your records available after this date:\n"
        "- Continue storage (adds 12 months per year purchased)\n"
        "- Or download your files anytime before the end date\n\n"
        "No auto-charges. You choose if and when to extend.\n\n"
        f"View storage options: {settings_url}\n\n---\n{FOOTER_TEXT}"
    )
    body = (
        f'<p>Your {period} storage period for <strong>"{escape(label)}"</strong> '
        f"ends on <strong>{expiry}</strong>.</p>"
        f"<p>{lead}</p>"
        "<p>No auto-charges. You choose if and when to extend.</p>"
    )
    html = _wrap_html("Your storage period is ending", body, "View storage options", settings_url)
    return RenderedEmail(subject=subject, html=html, text=text)


def render_retention_reminder_long_term(params: dict[str, Any]) -> RenderedEmail:
    return _render_retention_reminder(params, "12-month")


def render_retention_reminder_short_stay(params: dict[str, Any]) -> RenderedEmail:
    return _render_retention_reminder(params, "30-day")


# -----------------------------------------------------------------------------
# Purchase confirmations
# -----------------------------------------------------------------------------


def render_pack_purchase(params: dict[str, Any]) -> RenderedEmail:
    _require(params, "label", "case_id", "pack_type")
    label = params["label"]
    pack_name = PACK_NAMES.get(params["pack_type"], params["pack_type"])
    exports_url = _case_url(params, "exports")

    subject = f"Your {pack_name} is now active"
    stored_until = ""
    if params.get("retention_until") is not None:
        stored_until = f"Your data is securely stored until {format_date(params['retention_until'])}."

    text = (
        f"{subject}\n\n"
        f'Thank you for your purchase. Your rental "{label}" now has access to the {pack_name}.\n\n'
        f"{stored_until}\n\nAccess your exports: {exports_url}\n\n---\n{FOOTER_TEXT}"
    )
    body = (
        f'<p>Thank you for your purchase. Your rental <strong>"{escape(label)}"</strong> '
        f"now has access to the {escape(pack_name)}.</p><p>{stored_until}</p>"
    )
    html = _wrap_html(subject, body, "Go to exports", exports_url)
    return RenderedEmail(subject=subject, html=html, text=text)


def render_storage_extension(params: dict[str, Any]) -> RenderedEmail:
    _require(params, "label", "case_id", "years", "retention_until")
    label = params["label"]
    years = params["years"]
    until = format_date(params["retention_until"])
    year_word = "year" if years == 1 else "years"

    subject = f"Storage extended: your RentVault records are secure until {until}"
    text = (
        f"{subject}\n\n"
        f'You added {years} {year_word} of storage to "{label}".\n'
        f"Your records are now kept until {until}.\n\n"
        f"View your rental: {_case_url(params)}\n\n---\n{FOOTER_TEXT}"
    )
    body = (
        f'<p>You added <strong>{years} {year_word}</strong> of storage to "{escape(label)}".</p>'
        f"<p>Your records are now kept until <strong>{until}</strong>.</p>"
    )
    html = _wrap_html("Storage extended", body, "View your rental", _case_url(params))
    return RenderedEmail(subject=subject, html=html, text=text)


# -----------------------------------------------------------------------------
# Lease deadlines
# -----------------------------------------------------------------------------


def render_deadline_reminder(params: dict[str, Any]) -> RenderedEmail:
    _require(params, "label", "deadline_type", "due_date", "days_until")
    label = params["label"]
    urgency = deadline_urgency(params["days_until"])
    due = format_date(params["due_date"])
    notice_method = params.get("notice_method")

    if params["deadline_type"] == "termination_notice":
        subject = f"[Reminder] Notice deadline {urgency}"
        lead = "Your termination notice deadline is approaching."
        details = f"Deadline: {due}\nContract: {label}"
        if notice_method and notice_method != "not found":
            details += f"\nNotice method: {notice_method}"
        outro = "If you wish to terminate the contract, make sure to send your notice before this date."
    else:
        subject = f"[Reminder] Rent due {urgency}"
        lead = "Your rent payment is due soon."
        details = f"Due date: {due}\nContract: {label}"
        outro = ""

    text = "\n\n".join(part for part in (subject, lead, details, outro, f"---\n{FOOTER_TEXT}") if part)
    body = f"<p>{lead}</p><p>{escape(details).replace(chr(10), '<br>')}</p>"
    if outro:
        body += f'<p style="font-size: 13px; color: #64748b;">{outro}</p>'
    html = _wrap_html(subject.removeprefix("[Reminder] "), body)
    return RenderedEmail(subject=subject, html=html, text=text)


RENDERERS: dict[EmailTemplate, Callable[[dict[str, Any]], RenderedEmail]] = {
    EmailTemplate.RETENTION_REMINDER_LONG_TERM: render_retention_reminder_long_term,
    EmailTemplate.RETENTION_REMINDER_SHORT_STAY: render_retention_reminder_short_stay,
    EmailTemplate.PACK_PURCHASE: render_pack_purchase,
    EmailTemplate.STORAGE_EXTENSION: render_storage_extension,
    EmailTemplate.DEADLINE_REMINDER: render_deadline_reminder,
}


def render(template: EmailTemplate, params: dict[str, Any]) -> RenderedEmail:
    return RENDERERS[EmailTemplate(template)](params)
