# tests/unit/test_lifecycle/test_deadline_reminders.py
"""Unit tests for lease-deadline reminders."""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from app.services.email_templates import EmailTemplate
from app.services.lifecycle.deadline_service import deadline_offsets, run_deadline_reminders


@pytest.fixture
def paid_case(make_case, now):
    return make_case(purchase_type="checkin", purchase_at=now - timedelta(days=30))


class TestDeadlineOffsets:
    def test_defaults(self):
        assert deadline_offsets(SimpleNamespace(preferences=None)) == (7, 1, 0)
        assert deadline_offsets(SimpleNamespace(preferences={"offsets": []})) == (7, 1, 0)

    def test_custom(self):
        assert deadline_offsets(SimpleNamespace(preferences={"offsets": [14, "3"]})) == (14, 3)

    def test_malformed_falls_back(self):
        assert deadline_offsets(SimpleNamespace(preferences={"offsets": "weekly"})) == (7, 1, 0)
        assert deadline_offsets(SimpleNamespace(preferences={"offsets": ["soon"]})) == (7, 1, 0)


class TestRunDeadlineReminders:
    @pytest.mark.parametrize("days", [7, 1, 0])
    def test_sends_on_default_offsets(self, db, paid_case, make_deadline, mailer, now, days):
        deadline = make_deadline(paid_case, due_date=now.date() + timedelta(days=days))

        result = run_deadline_reminders(db, mailer, now=now)
        db.refresh(deadline)

        assert result.emails_sent == 1
        assert deadline.last_notification_sent_at == now
        template, _, params = mailer.calls[0]
        assert template == EmailTemplate.DEADLINE_REMINDER
        assert params["days_until"] == days

    def test_no_send_between_offsets(self, db, paid_case, make_deadline, mailer, now):
        make_deadline(paid_case, due_date=now.date() + timedelta(days=5))

        result = run_deadline_reminders(db, mailer, now=now)

        assert result.emails_sent == 0
        assert mailer.calls == []

    def test_past_deadline_skipped(self, db, paid_case, make_deadline, mailer, now):
        make_deadline(paid_case, due_date=now.date() - timedelta(days=1), preferences={"offsets": [0, -1]})

        result = run_deadline_reminders(db, mailer, now=now)

        assert result.emails_sent == 0

    def test_unpaid_case_skipped(self, db, make_case, make_deadline, mailer, now):
        case = make_case()
        make_deadline(case, due_date=now.date() + timedelta(days=7))

        result = run_deadline_reminders(db, mailer, now=now)

        assert result.skipped_unpaid == 1
        assert mailer.calls == []

    def test_at_most_once_per_day(self, db, paid_case, make_deadline, mailer, now):
        make_deadline(paid_case, due_date=now.date() + timedelta(days=1))

        run_deadline_reminders(db, mailer, now=now)
        second = run_deadline_reminders(db, mailer, now=now + timedelta(hours=3))

        assert second.emails_sent == 0
        assert second.skipped_already_sent == 1
        assert len(mailer.calls) == 1

    def test_next_offset_sends_again(self, db, paid_case, make_deadline, mailer, now):
        make_deadline(paid_case, due_date=now.date() + timedelta(days=1))

        run_deadline_reminders(db, mailer, now=now)
        result = run_deadline_reminders(db, mailer, now=now + timedelta(days=1))

        assert result.emails_sent == 1
        assert [c[2]["days_until"] for c in mailer.calls] == [1, 0]

    def test_failed_send_does_not_advance(self, db, paid_case, make_deadline, make_mailer, now):
        deadline = make_deadline(paid_case, due_date=now.date() + timedelta(days=7))
        mailer = make_mailer(status="failed")

        result = run_deadline_reminders(db, mailer, now=now)
        db.refresh(deadline)

        assert result.failed == 1
        assert deadline.last_notification_sent_at is None

        mailer.status = "sent"
        retry = run_deadline_reminders(db, mailer, now=now + timedelta(hours=1))
        assert retry.emails_sent == 1

    def test_custom_offsets_and_notice_method(self, db, paid_case, make_deadline, mailer, now):
        make_deadline(
            paid_case,
            due_date=now.date() + timedelta(days=14),
            preferences={"offsets": [14], "notice_method": "registered letter"},
        )

        result = run_deadline_reminders(db, mailer, now=now)

        assert result.emails_sent == 1
        params = mailer.calls[0][2]
        assert params["notice_method"] == "registered letter"
        assert params["deadline_type"] == "termination_notice"

    def test_exception_is_isolated(self, db, paid_case, make_deadline, now):
        make_deadline(paid_case, due_date=now.date() + timedelta(days=7))
        make_deadline(paid_case, due_date=now.date() + timedelta(days=1), type="rent_payment")

        class ExplodingMailer:
            def __init__(self):
                self.calls = 0

            def send(self, template, to, params):
                self.calls += 1
                if params["deadline_type"] == "rent_payment":
                    raise RuntimeError("smtp down")
                return {"status": "sent"}

        mailer = ExplodingMailer()
        result = run_deadline_reminders(db, mailer, now=now)

        assert mailer.calls == 2
        assert result.emails_sent == 1
        assert result.failed == 1
        assert result.success is False
