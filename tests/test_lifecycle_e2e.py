# tests/test_lifecycle_e2e.py
"""
End-to-end lifecycle scenario.

Drives one case from creation to purge by running the daily scan with an
advancing clock, the way the scheduler would.
"""

from datetime import datetime, timedelta

from sqlalchemy import select

from app.models import Asset, DeletionAudit, Purchase, RentalCase
from app.schemas.payments import parse_payment_event
from app.services.lifecycle import PurchaseStatus, apply_purchase, run_transition_scan
from app.services.sealing import SealPhase, seal_phase

PURCHASE_TIME = datetime(2026, 1, 15, 12, 0)
EXPIRY = datetime(2027, 1, 15, 12, 0)


class TestCaseLifecycle:
    def test_creation_to_purge(self, db, make_case, make_asset, mailer, storage):
        case = make_case(created_at=PURCHASE_TIME)
        case_id = case.id
        assert case.deletion_status == "active"
        assert case.retention_until is None

        event = parse_payment_event(
            {"case_id": str(case_id), "pack_type": "checkin", "payment_ref": "cs_e2e", "amount_cents": 1900}
        )
        assert apply_purchase(db, event, now=PURCHASE_TIME).status == PurchaseStatus.APPLIED
        db.refresh(case)
        assert case.retention_until == EXPIRY
        assert case.deletion_status == "active"

        seal_phase(db, case, SealPhase.CHECKIN, now=PURCHASE_TIME + timedelta(hours=1))
        paths = [make_asset(case, storage=storage).storage_path for _ in range(3)]

        levels_by_day: dict[int, int] = {}
        pending_on = None
        purged_on = None

        for day in range(1, 430):
            now = PURCHASE_TIME + timedelta(days=day)
            result = run_transition_scan(db, mailer, storage, now=now)
            assert result.errors == []

            if result.cases_purged:
                purged_on = now
                break

            db.refresh(case)
            level = case.retention_reminder_level
            if level and level not in levels_by_day.values():
                levels_by_day[(EXPIRY - now).days] = level
            if case.deletion_status == "pending_deletion" and pending_on is None:
                pending_on = now
                assert case.grace_until == now + timedelta(days=30)

        # No effect until 60 days before expiry, then 1, 2, 3 at the thresholds
        assert levels_by_day == {60: 1, 30: 2, 7: 3}
        assert [call[2]["level"] for call in mailer.calls] == [1, 2, 3]

        # Expiry passes, then 30 days of grace with no purchase
        assert pending_on == EXPIRY + timedelta(days=1)
        assert purged_on == pending_on + timedelta(days=31)

        assert db.get(RentalCase, case_id) is None
        assert db.scalars(select(Asset).where(Asset.case_id == case_id)).all() == []
        assert db.scalars(select(Purchase).where(Purchase.case_id == case_id)).all() == []
        assert not any(storage.exists(p) for p in paths)

        audit = db.scalars(select(DeletionAudit).where(DeletionAudit.case_id == case_id)).one()
        assert audit.objects_deleted == 3

    def test_recovery_during_grace_keeps_seals(self, db, make_case, mailer, storage):
        case = make_case()
        checkin_event = parse_payment_event(
            {"case_id": str(case.id), "pack_type": "checkin", "payment_ref": "cs_first"}
        )
        apply_purchase(db, checkin_event, now=PURCHASE_TIME)
        sealed_at = PURCHASE_TIME + timedelta(hours=2)
        seal_phase(db, case, SealPhase.CHECKIN, now=sealed_at)

        lapse = EXPIRY + timedelta(days=1)
        run_transition_scan(db, mailer, storage, now=lapse)
        db.refresh(case)
        assert case.deletion_status == "pending_deletion"

        extension = parse_payment_event(
            {"case_id": str(case.id), "pack_type": "storage_extension-1", "payment_ref": "cs_ext"}
        )
        result = apply_purchase(db, extension, now=lapse + timedelta(days=10))
        db.refresh(case)

        assert result.restored
        assert case.deletion_status == "active"
        assert case.grace_until is None
        assert case.retention_until == lapse + timedelta(days=10) + timedelta(days=365)
        assert case.checkin_completed_at == sealed_at

        # Past the old grace deadline nothing is purged
        later = run_transition_scan(db, mailer, storage, now=lapse + timedelta(days=40))
        assert later.cases_purged == 0
        assert db.get(RentalCase, case.id) is not None

    def test_extension_gives_fresh_thirty_day_reminder(self, db, make_case, mailer, storage):
        now = datetime(2026, 6, 1, 12, 0)
        case = make_case(retention_until=now + timedelta(days=25))

        run_transition_scan(db, mailer, storage, now=now)
        db.refresh(case)
        assert case.retention_reminder_level == 2
        assert case.expiry_notified_at == now

        event = parse_payment_event(
            {"case_id": str(case.id), "pack_type": "storage_extension", "years": 1, "payment_ref": "cs_ext_1"}
        )
        apply_purchase(db, event, now=now + timedelta(days=1))
        db.refresh(case)
        assert case.expiry_notified_at is None
        assert case.retention_reminder_level == 0

        new_expiry = case.retention_until
        reentry = new_expiry - timedelta(days=25)
        result = run_transition_scan(db, mailer, storage, now=reentry)
        db.refresh(case)

        assert result.reminders_by_level == {2: 1}
        assert case.retention_reminder_level == 2
        assert case.expiry_notified_at == reentry
