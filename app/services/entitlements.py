# app/services/entitlements.py
"""
Entitlement resolver.

Pure projection of (case, purchases) onto the capability flags every other
feature reads (upload, seal, export, documents, deadlines). No writes.

Rules:
- A bundle counts as both checkin and moveout everywhere (has_pack)
- Uploading depends only on stay type; purchases gate sealing and export
- Export additionally needs the phase to be sealed
- available_packs is upsell display only and never gates access
"""

import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.models import DeletionStatus, PackType, Purchase, RentalCase, StayType
from app.utils.dates import utcnow

# Packs that imply other packs
PACK_IMPLICATIONS: dict[str, frozenset[str]] = {
    PackType.CHECKIN.value: frozenset({PackType.BUNDLE.value}),
    PackType.MOVEOUT.value: frozenset({PackType.BUNDLE.value}),
}


@dataclass(frozen=True)
class Entitlements:
    """Capability set for one case at one point in time."""

    stay_type: str

    # Long-term phases
    can_upload_checkin: bool
    can_upload_handover: bool
    can_seal_checkin: bool
    can_seal_handover: bool

    # Short-stay phases
    can_upload_arrival: bool
    can_upload_departure: bool
    can_seal_arrival: bool
    can_seal_departure: bool

    # Exports
    can_generate_checkin_pdf: bool
    can_generate_deposit_pdf: bool
    can_generate_short_stay_pdf: bool

    # Features
    can_use_documents: bool
    can_use_contract_analysis: bool
    can_use_deadlines: bool

    # Completion
    is_checkin_complete: bool
    is_handover_complete: bool

    # Storage
    retention_until: datetime | None
    storage_years_purchased: int
    is_expired: bool
    is_pending_deletion: bool

    # Purchases
    has_checkin: bool
    has_moveout: bool
    has_bundle: bool
    has_short_stay: bool
    has_related_contracts: bool

    # Upsell only
    available_packs: tuple[str, ...]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["available_packs"] = list(self.available_packs)
        return data


def has_pack(purchased: Iterable[str], pack: str | PackType) -> bool:
    """True if pack was bought, or is implied by a bought pack (bundle)."""
    owned = set(purchased)
    pack = pack.value if isinstance(pack, PackType) else pack
    if pack in owned:
        return True
    return bool(PACK_IMPLICATIONS.get(pack, frozenset()) & owned)


def _available_packs(stay_type: str, owned: set[str]) -> tuple[str, ...]:
    if stay_type == StayType.SHORT_STAY.value:
        return () if has_pack(owned, PackType.SHORT_STAY) else (PackType.SHORT_STAY.value,)

    packs = []
    has_checkin = has_pack(owned, PackType.CHECKIN)
    has_moveout = has_pack(owned, PackType.MOVEOUT)
    if not has_checkin:
        packs.append(PackType.CHECKIN.value)
    if not has_moveout:
        packs.append(PackType.MOVEOUT.value)
    if not has_checkin and not has_moveout:
        packs.append(PackType.BUNDLE.value)
    if not has_pack(owned, PackType.RELATED_CONTRACTS):
        packs.append(PackType.RELATED_CONTRACTS.value)
    return tuple(packs)


def resolve_entitlements(
    case: RentalCase,
    purchases: Iterable[Purchase | str],
    now: datetime | None = None,
) -> Entitlements:
    """
    Compute the capability set for a case.

    Args:
        case: The rental case
        purchases: Its Purchase rows (or bare pack_type strings)
        now: Evaluation time (default: utcnow())
    """
    now = now or utcnow()
    owned = {p if isinstance(p, str) else p.pack_type for p in purchases}

    is_long_term = case.stay_type == StayType.LONG_TERM.value
    is_short_stay = case.stay_type == StayType.SHORT_STAY.value

    has_checkin = has_pack(owned, PackType.CHECKIN)
    has_moveout = has_pack(owned, PackType.MOVEOUT)
    has_short_stay = has_pack(owned, PackType.SHORT_STAY)
    has_related = has_pack(owned, PackType.RELATED_CONTRACTS)

    checkin_sealed = case.checkin_completed_at is not None
    handover_sealed = case.handover_completed_at is not None

    can_seal_checkin = is_long_term and has_checkin
    can_seal_handover = is_long_term and has_moveout
    can_seal_arrival = is_short_stay and has_short_stay
    can_seal_departure = is_short_stay and has_short_stay

    return Entitlements(
        stay_type=case.stay_type,
        can_upload_checkin=is_long_term,
        can_upload_handover=is_long_term,
        can_seal_checkin=can_seal_checkin,
        can_seal_handover=can_seal_handover,
        can_upload_arrival=is_short_stay,
        can_upload_departure=is_short_stay,
        can_seal_arrival=can_seal_arrival,
        can_seal_departure=can_seal_departure,
        can_generate_checkin_pdf=can_seal_checkin and checkin_sealed,
        can_generate_deposit_pdf=can_seal_handover and handover_sealed,
        can_generate_short_stay_pdf=can_seal_departure and handover_sealed,
        can_use_documents=True,
        can_use_contract_analysis=is_long_term,
        can_use_deadlines=is_long_term,
        is_checkin_complete=checkin_sealed,
        is_handover_complete=handover_sealed,
        retention_until=case.retention_until,
        storage_years_purchased=case.storage_years_purchased or 1,
        is_expired=case.retention_until is not None and now > case.retention_until,
        is_pending_deletion=case.deletion_status == DeletionStatus.PENDING_DELETION.value,
        has_checkin=has_checkin,
        has_moveout=has_moveout,
        has_bundle=PackType.BUNDLE.value in owned,
        has_short_stay=has_short_stay,
        has_related_contracts=has_related,
        available_packs=_available_packs(case.stay_type, owned),
    )


def get_case_entitlements(
    db: Session,
    case_id: uuid.UUID,
    owner_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> Entitlements | None:
    """Load a case and its purchases and resolve. None if missing or not owned."""
    case = db.get(RentalCase, case_id)
    if case is None or (owner_id is not None and case.owner_id != owner_id):
        return None

    pack_types = [row.pack_type for row in db.query(Purchase.pack_type).filter(Purchase.case_id == case_id).all()]
    return resolve_entitlements(case, pack_types, now=now)
