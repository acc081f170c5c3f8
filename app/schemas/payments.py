# app/schemas/payments.py
"""
Payment-completed event schemas.

One validated variant per pack_type. Unknown pack types and unknown fields
are rejected at the boundary; nothing is defaulted from a loose dict.
"""

import re
import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator, model_validator

from app.constants import RetentionDefaults
from app.models import PackType, StayType, storage_extension_pack

_STORAGE_EXTENSION_RE = re.compile(rf"^{PackType.STORAGE_EXTENSION.value}-(\d+)$")


class _PaymentCompletedBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    case_id: uuid.UUID
    payment_ref: str = Field(..., min_length=1, max_length=255, description="Processor payment/session id")
    amount_cents: int = Field(0, ge=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    owner_id: uuid.UUID | None = None
    stay_type_hint: StayType | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def ledger_pack_type(self) -> str:
        """pack_type as written to the purchases table."""
        return self.pack_type


class EvidencePackCompleted(_PaymentCompletedBase):
    """Long-term evidence packs."""

    pack_type: Literal["checkin", "moveout", "bundle"]


class ShortStayPackCompleted(_PaymentCompletedBase):
    pack_type: Literal["short_stay"]


class RelatedContractsCompleted(_PaymentCompletedBase):
    """Feature unlock; never touches retention."""

    pack_type: Literal["related_contracts"]


class StorageExtensionCompleted(_PaymentCompletedBase):
    pack_type: Literal["storage_extension"]
    years: int = Field(..., ge=1, le=RetentionDefaults.MAX_EXTENSION_YEARS)

    @property
    def ledger_pack_type(self) -> str:
        return storage_extension_pack(self.years)


PaymentEvent = Annotated[
    Union[EvidencePackCompleted, ShortStayPackCompleted, RelatedContractsCompleted, StorageExtensionCompleted],
    Field(discriminator="pack_type"),
]


class PaymentCompletedEvent(RootModel[PaymentEvent]):
    """
    Parse entry point for a payment-completed payload.

    Accepts the ledger spelling storage_extension-N and normalises it to
    pack_type=storage_extension, years=N.
    """

    @model_validator(mode="before")
    @classmethod
    def normalise_storage_extension(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        match = _STORAGE_EXTENSION_RE.match(str(data.get("pack_type", "")))
        if not match:
            return data

        years = int(match.group(1))
        if data.get("years") is not None and data["years"] != years:
            raise ValueError(f"years={data['years']!r} contradicts pack_type {data['pack_type']}")
        return {**data, "pack_type": PackType.STORAGE_EXTENSION.value, "years": years}


def parse_payment_event(data: Any) -> PaymentEvent:
    """Validate a payload dict into its variant. Raises pydantic.ValidationError."""
    return PaymentCompletedEvent.model_validate(data).root


class PaymentWebhookEnvelope(BaseModel):
    """Outer webhook body: {"id": ..., "type": ..., "data": {...}}."""

    id: str | None = None
    type: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class PaymentWebhookResponse(BaseModel):
    received: bool = True
    status: str = Field(..., description="applied|duplicate|ignored")
    case_id: uuid.UUID | None = None
    pack_type: str | None = None
