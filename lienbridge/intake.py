"""
Case Intake -- Opening a New Personal-Injury Case.

Intake is the only path that creates cases after the seed load.  It checks
that the provider and attorney exist, derives the initial predictions,
and appends the case together with its opening timeline:

* ``IntakeCompleted`` at submission time,
* ``ContractSigned`` one minute later,
* ``Alert`` two minutes later, only when no contract is on file.

Predictions for a brand-new case are placeholders drawn from a fixed
band; they are replaced once the case has real history.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from lienbridge.models import (
    Case,
    CaseEvent,
    CaseStatus,
    ContractStatus,
    ContractType,
    PIExtension,
    RiskTier,
    WorkflowEventType,
)
from lienbridge.selectors import get_attorney_by_id, get_provider_by_id
from lienbridge.store import CaseStore

logger = logging.getLogger(__name__)

RECOVERY_BAND = (55, 85)
BASELINE_OFFSET_POINTS = 5
SETTLEMENT_DAYS_BAND = (100, 300)


class IntakeForm(BaseModel):
    """Details captured when a provider opens a new case."""

    patient_alias: str = Field(..., description="De-identified patient alias.")
    injury_type: str = Field(default="Soft Tissue")
    state: str = Field(default="CA", description="US state code where the case is venued.")
    provider_id: str = Field(..., min_length=1)
    attorney_id: str = Field(..., min_length=1)
    billed_amount: float = Field(..., gt=0)
    lien_amount: float = Field(..., gt=0)
    contract_type: ContractType = Field(default=ContractType.MEDPAYREZ)
    age_bucket: str = Field(default="30-40")

    @field_validator("patient_alias")
    @classmethod
    def validate_alias(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("patient_alias must not be blank")
        return v


def create_intake_case(
    store: CaseStore,
    form: IntakeForm,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> Case:
    """Create a case from ``form`` and append it with its opening events.

    Args:
        store: A loaded case store.
        form: Validated intake details.
        rng: Random source for the placeholder predictions.
        now: Submission time.  Defaults to the current UTC time.

    Returns:
        The new case.

    Raises:
        ValueError: If the provider or attorney does not exist.
        StoreNotLoadedError: If the store has no data loaded.
    """
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    data = store.selectors().data

    if get_provider_by_id(data, form.provider_id) is None:
        raise ValueError(f"Unknown provider '{form.provider_id}'")
    attorney = get_attorney_by_id(data, form.attorney_id)
    if attorney is None:
        raise ValueError(f"Unknown attorney '{form.attorney_id}'")

    no_contract = form.contract_type == ContractType.NO_CONTRACT
    risk = RiskTier.HIGH if no_contract else RiskTier.LOW
    recovery = rng.randrange(*RECOVERY_BAND)
    case_id = f"case_{int(now.timestamp() * 1000)}"

    case = Case(
        id=case_id,
        patient_alias=form.patient_alias,
        age_bucket=form.age_bucket,
        injury_type=form.injury_type,
        state=form.state,
        provider_id=form.provider_id,
        attorney_id=form.attorney_id,
        lien_amount=form.lien_amount,
        billed_amount=form.billed_amount,
        predicted_recovery_percent=recovery,
        predicted_recovery_baseline_percent=recovery - BASELINE_OFFSET_POINTS,
        predicted_time_to_settlement_days=rng.randrange(*SETTLEMENT_DAYS_BAND),
        status=CaseStatus.OPEN,
        risk_tier=risk,
        intake_date=now.date(),
        last_updated_date=now.date(),
        pi=PIExtension(
            contract_type=form.contract_type,
            contract_status=ContractStatus.NONE if no_contract else ContractStatus.EXECUTED,
            law_firm=attorney.firm_name,
            attorney_name=attorney.attorney_name,
            attorney_acknowledged=False,
            recovery_risk=risk,
            age_bucket_days=0,
        ),
    )
    store.add_case(case)

    contract = form.contract_type.value
    store.add_event(CaseEvent(
        case_id=case_id,
        timestamp=now,
        type=WorkflowEventType.INTAKE_COMPLETED,
        description=f"New PI case intake created via Provider Portal. Contract type: {contract}.",
    ))
    store.add_event(CaseEvent(
        case_id=case_id,
        timestamp=now + timedelta(minutes=1),
        type=WorkflowEventType.CONTRACT_SIGNED,
        description=f"{contract} fee recovery agreement signed. Attorney notification pending.",
    ))
    if no_contract:
        store.add_event(CaseEvent(
            case_id=case_id,
            timestamp=now + timedelta(minutes=2),
            type=WorkflowEventType.ALERT,
            description=(
                "Case opened without MedPayRez contract. Recovery risk is elevated. "
                "Operational guidance: execute documented fee agreement."
            ),
        ))

    logger.info(f"Intake created case {case_id} ({contract})")
    return case
