"""Unit tests for evidence sealing."""

from datetime import timedelta

import pytest

from app.services.lifecycle.errors import AlreadySealedError, SealNotAllowedError
from app.services.sealing import SealPhase, seal_phase


class TestSealPhase:
    def test_checkin_seal_with_pack(self, db, make_case, make_purchase, now):
        case = make_case()
        make_purchase(case, "checkin")

        sealed_at = seal_phase(db, case, SealPhase.CHECKIN, now=now)

        db.refresh(case)
        assert sealed_at == now
        assert case.checkin_completed_at == now
        assert case.handover_completed_at is None

    def test_seal_without_pack_is_refused(self, db, make_case, now):
        case = make_case()

        with pytest.raises(SealNotAllowedError):
            seal_phase(db, case, "checkin", now=now)

        db.refresh(case)
        assert case.checkin_completed_at is None

    def test_bundle_allows_handover(self, db, make_case, make_purchase, now):
        case = make_case()
        make_purchase(case, "bundle")

        seal_phase(db, case, SealPhase.HANDOVER, now=now)

        db.refresh(case)
        assert case.handover_completed_at == now

    def test_seal_is_set_once(self, db, make_case, make_purchase, now):
        case = make_case()
        make_purchase(case, "checkin")
        seal_phase(db, case, SealPhase.CHECKIN, now=now)

        with pytest.raises(AlreadySealedError):
            seal_phase(db, case, SealPhase.CHECKIN, now=now + timedelta(days=1))

        db.refresh(case)
        assert case.checkin_completed_at == now

    def test_short_stay_departure_needs_arrival(self, db, make_case, make_purchase, now):
        case = make_case(stay_type="short_stay")
        make_purchase(case, "short_stay")

        with pytest.raises(SealNotAllowedError, match="arrival"):
            seal_phase(db, case, SealPhase.DEPARTURE, now=now)

        seal_phase(db, case, SealPhase.ARRIVAL, now=now)
        seal_phase(db, case, SealPhase.DEPARTURE, now=now + timedelta(days=3))

        db.refresh(case)
        assert case.checkin_completed_at == now
        assert case.handover_completed_at == now + timedelta(days=3)

    def test_long_term_phase_refused_on_short_stay(self, db, make_case, make_purchase, now):
        case = make_case(stay_type="short_stay")
        make_purchase(case, "short_stay")

        with pytest.raises(SealNotAllowedError):
            seal_phase(db, case, SealPhase.CHECKIN, now=now)
