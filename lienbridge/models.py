"""
Core data models for the LienBridge case store.

Entities mirror the dashboard dataset: ``Provider`` and ``Attorney`` are
reference data, ``Case`` is the central lien-recovery matter, and
``CaseEvent`` is an append-only workflow log entry.  ``AppData`` is the
aggregate root owned by :class:`lienbridge.store.CaseStore`.

Python attributes are snake_case.  The wire form (seed files, cache
snapshots, insight-service payloads) uses camelCase aliases, so a record
such as ``{"lienAmount": 12500}`` validates straight into ``Case``.

All entities are frozen: the store replaces whole snapshots rather than
editing records in place.
"""

from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CaseStatus(str, enum.Enum):
    """Workflow state of a case, from intake through payment."""

    OPEN = "Open"
    NEGOTIATION = "Negotiation"
    SETTLED = "Settled"
    PAID = "Paid"
    ACTIVE = "Active"


class RiskTier(str, enum.Enum):
    """Qualitative collection-risk classification.

    Used for both ``riskTier`` and ``recoveryRisk`` on a case.  The two
    fields are maintained independently and may disagree.
    """

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CaseVolumeTier(str, enum.Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ContractType(str, enum.Enum):
    """Legal instrument governing fee recovery.

    * ``MEDPAYREZ``  -- enforceable fee contract with attorney notification.
    * ``LEGACY_LOP`` -- pre-existing letter of protection.
    * ``NO_CONTRACT`` -- no documented fee rights; recovery risk is elevated.
    """

    MEDPAYREZ = "MedPayRez"
    LEGACY_LOP = "Legacy LOP"
    NO_CONTRACT = "No Contract"


class ContractStatus(str, enum.Enum):
    EXECUTED = "Executed"
    PENDING_SIGNATURE = "Pending Signature"
    NONE = "None"


class WorkflowEventType(str, enum.Enum):
    """Closed vocabulary of timeline event types.

    ``NEGOTIATION`` and ``INTAKE`` are legacy values still present in older
    seed files; new events should use ``INTAKE_COMPLETED`` and friends.
    """

    INTAKE_COMPLETED = "IntakeCompleted"
    CONTRACT_SIGNED = "ContractSigned"
    RECORDS_REQUESTED = "RecordsRequested"
    TREATMENT_DOCUMENTED = "TreatmentDocumented"
    INVOICE_ISSUED = "InvoiceIssued"
    FOLLOW_UP_SENT = "FollowUpSent"
    SETTLEMENT_REACHED = "SettlementReached"
    PAYMENT_RECEIVED = "PaymentReceived"
    ALERT = "Alert"
    DEMAND_SENT = "DemandSent"
    NOTICE_GENERATED = "NoticeGenerated"
    FOLLOW_UP_SCHEDULED = "FollowUpScheduled"
    NEGOTIATION = "Negotiation"
    INTAKE = "Intake"


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------

class WireModel(BaseModel):
    """Frozen base model with camelCase wire aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

class Provider(WireModel):
    """A treating provider.  Created at seed time and never mutated."""

    id: str = Field(..., min_length=1, description="Unique provider identifier.")
    name: str = Field(..., description="Provider display name.")
    specialty: str = Field(default="", description="Clinical specialty.")
    practice_name: str = Field(default="", description="Practice or clinic name.")
    state: str = Field(default="", description="US state code of the practice.")


class Attorney(WireModel):
    """An attorney of record and their firm.  Immutable reference data."""

    id: str = Field(..., min_length=1, description="Unique attorney identifier.")
    firm_name: str = Field(..., description="Law firm name.")
    attorney_name: str = Field(..., description="Attorney display name.")
    case_volume_tier: CaseVolumeTier = Field(
        default=CaseVolumeTier.MEDIUM,
        description="Relative volume of cases this attorney carries with the provider.",
    )


# ---------------------------------------------------------------------------
# Case
# ---------------------------------------------------------------------------

class PIExtension(WireModel):
    """Personal-injury contract extension of a case.

    Older records carry none of these fields.  Keeping them together on a
    single optional record makes the two supported case shapes (legacy and
    extended) explicit.  Every field is optional on its own as well.
    """

    contract_type: Optional[ContractType] = Field(
        default=None,
        description="Fee-recovery instrument in force for this case.",
    )
    contract_status: Optional[ContractStatus] = Field(default=None)
    law_firm: Optional[str] = Field(
        default=None,
        description="Denormalized display copy of the attorney's firm name.",
    )
    attorney_name: Optional[str] = Field(
        default=None,
        description="Denormalized display copy of the attorney's name.",
    )
    attorney_acknowledged: Optional[bool] = Field(
        default=None,
        description=(
            "Whether the attorney acknowledged the documented fee assignment. "
            "``None`` means acknowledgment is not tracked for this case; "
            "``False`` means it is explicitly pending."
        ),
    )
    recovery_risk: Optional[RiskTier] = Field(
        default=None,
        description="Contract-aware recovery risk.  May diverge from ``risk_tier``.",
    )
    age_bucket_days: Optional[int] = Field(
        default=None,
        ge=0,
        description="Case age in days (distinct from the coarse ``age_bucket`` string).",
    )


_PI_FIELD_NAMES = tuple(PIExtension.model_fields)
_PI_KEYS = frozenset(_PI_FIELD_NAMES) | frozenset(to_camel(n) for n in _PI_FIELD_NAMES)


class Case(WireModel):
    """A single patient's medical-lien recovery matter.

    ``provider_id`` and ``attorney_id`` reference reference-data records by
    id.  They are checked when a case is created through intake, never
    afterwards, so lookups on a dangling id simply return ``None``.
    """

    id: str = Field(..., min_length=1, description="Unique case identifier.")
    patient_alias: str = Field(
        ...,
        description="De-identified patient alias.  Never a real name.",
    )
    age_bucket: str = Field(default="", description="Coarse patient age bucket, e.g. '30-40'.")
    injury_type: str = Field(..., description="Injury category, e.g. 'Soft Tissue'.")
    state: str = Field(default="", description="US state code where the case is venued.")
    provider_id: str = Field(..., description="Treating provider (many-to-one).")
    attorney_id: str = Field(..., description="Attorney of record (many-to-one).")
    lien_amount: float = Field(..., ge=0, description="Amount owed to the provider.")
    billed_amount: float = Field(..., ge=0, description="Gross charge billed.")
    predicted_recovery_percent: float = Field(
        ...,
        ge=0,
        description="Predicted share of the lien the provider will collect (0-100).",
    )
    predicted_recovery_baseline_percent: float = Field(
        ...,
        ge=0,
        description="Historical average recovery for the same injury-type cohort.",
    )
    predicted_time_to_settlement_days: float = Field(..., ge=0)
    status: CaseStatus = Field(...)
    risk_tier: RiskTier = Field(...)
    intake_date: date = Field(...)
    last_updated_date: date = Field(...)
    pi: Optional[PIExtension] = Field(
        default=None,
        description="Personal-injury contract extension.  ``None`` for legacy cases.",
    )

    @model_validator(mode="before")
    @classmethod
    def fold_pi_fields(cls, data: Any) -> Any:
        """Accept the flat record layout used by seed files.

        PI fields found at the top level are moved into ``pi``.  Records
        that already carry a nested ``pi`` object pass through untouched.
        """
        if not isinstance(data, dict) or data.get("pi") is not None:
            return data
        extension: dict[str, Any] = {}
        remaining: dict[str, Any] = {}
        for key, value in data.items():
            if key in _PI_KEYS:
                if value is not None:
                    extension[key] = value
            else:
                remaining[key] = value
        if extension:
            remaining["pi"] = extension
        return remaining

    @property
    def is_extended(self) -> bool:
        return self.pi is not None

    @property
    def contract_type(self) -> Optional[ContractType]:
        return self.pi.contract_type if self.pi else None

    @property
    def contract_status(self) -> Optional[ContractStatus]:
        return self.pi.contract_status if self.pi else None

    @property
    def law_firm(self) -> Optional[str]:
        return self.pi.law_firm if self.pi else None

    @property
    def attorney_name(self) -> Optional[str]:
        return self.pi.attorney_name if self.pi else None

    @property
    def attorney_acknowledged(self) -> Optional[bool]:
        return self.pi.attorney_acknowledged if self.pi else None

    @property
    def recovery_risk(self) -> Optional[RiskTier]:
        return self.pi.recovery_risk if self.pi else None

    @property
    def age_bucket_days(self) -> Optional[int]:
        return self.pi.age_bucket_days if self.pi else None


# ---------------------------------------------------------------------------
# Workflow events
# ---------------------------------------------------------------------------

class CaseEvent(WireModel):
    """An immutable, timestamped workflow log entry.

    ``case_id`` is a foreign key to ``Case`` but is not enforced.
    """

    case_id: str = Field(..., description="Case this event belongs to.")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event happened.  Used for ordering.",
    )
    type: WorkflowEventType = Field(...)
    description: str = Field(default="", description="Free-text description.")

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Naive and aware datetimes cannot be compared; treat naive as UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------

class AppData(WireModel):
    """The complete dataset: four insertion-ordered collections.

    Only :class:`lienbridge.store.CaseStore` creates new ``AppData``
    instances after load, and only by appending a case or an event.
    """

    providers: list[Provider] = Field(default_factory=list)
    attorneys: list[Attorney] = Field(default_factory=list)
    cases: list[Case] = Field(default_factory=list)
    events: list[CaseEvent] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        """Return the camelCase, JSON-serializable form of the dataset."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
