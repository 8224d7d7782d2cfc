"""
Action-Recommendation Engine -- The Next-Best-Action Feed.

Walks the case portfolio in order and proposes at most one action per
case.  The first matching rule wins:

1. Old MedPayRez case         -> generate attorney notice        (high)
2. Settled with lien owed     -> send payment demand packet      (high)
3. Acknowledgment pending     -> request attorney acknowledgment (medium)
4. No contract, not yet paid  -> upgrade to MedPayRez contract   (medium)
5. High recovery risk, open   -> schedule follow-up with attorney (low)

The walk stops as soon as the feed is full, so the feed always reflects
the earliest cases in portfolio order, not the most urgent ones.

Recording an action appends a timeline event through the case store; the
engine itself never touches the store.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from pydantic import BaseModel, Field

from lienbridge.config import ActionPolicy
from lienbridge.models import (
    Case,
    CaseEvent,
    CaseStatus,
    ContractType,
    RiskTier,
    WorkflowEventType,
)
from lienbridge.store import CaseStore

logger = logging.getLogger(__name__)


class ActionKind(str, enum.Enum):
    GENERATE_NOTICE = "Generate attorney notice"
    SEND_DEMAND = "Send payment demand packet"
    REQUEST_ACKNOWLEDGMENT = "Request attorney acknowledgment"
    UPGRADE_CONTRACT = "Upgrade to MedPayRez contract"
    SCHEDULE_FOLLOW_UP = "Schedule follow-up with attorney"


class ActionPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActionItem(BaseModel):
    """One recommended action, with the case context needed to act on it.

    The context fields are copies taken when the feed was generated, so a
    draft or an insight request can be built without going back to the
    store.
    """

    case_id: str = Field(..., description="Case the action applies to.")
    patient_alias: str
    action: ActionKind
    priority: ActionPriority
    reason: str = Field(..., description="Human-readable justification.")
    law_firm: Optional[str] = None
    attorney_name: Optional[str] = None
    contract_type: Optional[ContractType] = None
    recovery_risk: Optional[RiskTier] = None
    status: Optional[CaseStatus] = None
    injury_type: Optional[str] = None
    age_bucket_days: Optional[int] = None
    lien_amount: Optional[float] = None
    billed_amount: Optional[float] = None
    risk_tier: Optional[RiskTier] = None
    predicted_recovery_percent: Optional[float] = None
    predicted_time_to_settlement_days: Optional[float] = None


# ---------------------------------------------------------------------------
# Rule engine
# ---------------------------------------------------------------------------

def _format_amount(amount: float) -> str:
    text = f"{amount:,.2f}"
    return text.rstrip("0").rstrip(".")


def _item(case: Case, action: ActionKind, priority: ActionPriority, reason: str) -> ActionItem:
    return ActionItem(
        case_id=case.id,
        patient_alias=case.patient_alias,
        action=action,
        priority=priority,
        reason=reason,
        law_firm=case.law_firm,
        attorney_name=case.attorney_name,
        contract_type=case.contract_type,
        recovery_risk=case.recovery_risk,
        status=case.status,
        injury_type=case.injury_type,
        age_bucket_days=case.age_bucket_days,
        lien_amount=case.lien_amount,
        billed_amount=case.billed_amount,
        risk_tier=case.risk_tier,
        predicted_recovery_percent=case.predicted_recovery_percent,
        predicted_time_to_settlement_days=case.predicted_time_to_settlement_days,
    )


def _action_for(case: Case, policy: ActionPolicy) -> Optional[ActionItem]:
    """Return the first action whose rule matches ``case``."""
    age_days = case.age_bucket_days or 0

    if age_days > policy.notice_age_days and case.contract_type == ContractType.MEDPAYREZ:
        return _item(
            case, ActionKind.GENERATE_NOTICE, ActionPriority.HIGH,
            f"Case age {age_days}d; documented fee assignment notice recommended.",
        )

    if case.status == CaseStatus.SETTLED and case.lien_amount > 0:
        return _item(
            case, ActionKind.SEND_DEMAND, ActionPriority.HIGH,
            f"Case settled but ${_format_amount(case.lien_amount)} outstanding. "
            f"Send demand to {case.law_firm or 'attorney'}.",
        )

    # None means acknowledgment is not tracked; only an explicit False fires.
    if case.attorney_acknowledged is False:
        return _item(
            case, ActionKind.REQUEST_ACKNOWLEDGMENT, ActionPriority.MEDIUM,
            f"{case.law_firm or 'Attorney'} has not acknowledged the documented fee assignment.",
        )

    if case.contract_type == ContractType.NO_CONTRACT and case.status != CaseStatus.PAID:
        return _item(
            case, ActionKind.UPGRADE_CONTRACT, ActionPriority.MEDIUM,
            "No contract on file; recovery risk is elevated. "
            "Operational guidance: execute fee agreement.",
        )

    if case.recovery_risk == RiskTier.HIGH and case.status in (CaseStatus.OPEN, CaseStatus.ACTIVE):
        return _item(
            case, ActionKind.SCHEDULE_FOLLOW_UP, ActionPriority.LOW,
            f"Recovery risk is High. Proactive follow-up with "
            f"{case.law_firm or 'attorney'} recommended.",
        )

    return None


def generate_actions(
    cases: list[Case],
    policy: Optional[ActionPolicy] = None,
) -> list[ActionItem]:
    """Build the next-best-action feed for ``cases``.

    Args:
        cases: Cases in portfolio order.
        policy: Feed bounds.  Defaults to ``ActionPolicy()``.

    Returns:
        At most ``policy.max_actions`` items, in case order.
    """
    policy = policy or ActionPolicy()
    actions: list[ActionItem] = []
    for case in cases:
        if len(actions) >= policy.max_actions:
            break
        item = _action_for(case, policy)
        if item is not None:
            actions.append(item)
    return actions


# ---------------------------------------------------------------------------
# Timeline recording
# ---------------------------------------------------------------------------

def resolve_event_type(action: str) -> WorkflowEventType:
    """Map free-text action wording to the timeline event it produces."""
    text = (action.value if isinstance(action, ActionKind) else action).lower()
    if "notice" in text or "acknowledgment" in text:
        return WorkflowEventType.NOTICE_GENERATED
    if "demand" in text or "payment" in text:
        return WorkflowEventType.DEMAND_SENT
    if "follow-up" in text or "follow up" in text or "schedule" in text:
        return WorkflowEventType.FOLLOW_UP_SCHEDULED
    if "records" in text:
        return WorkflowEventType.RECORDS_REQUESTED
    if "invoice" in text:
        return WorkflowEventType.INVOICE_ISSUED
    return WorkflowEventType.FOLLOW_UP_SCHEDULED


def record_action(store: CaseStore, item: ActionItem, ai_assisted: bool = False) -> CaseEvent:
    """Log a completed action to the case timeline.

    Returns:
        The appended event.
    """
    origin = "AI-assisted" if ai_assisted else "Template"
    event = CaseEvent(
        case_id=item.case_id,
        type=resolve_event_type(item.action),
        description=(
            f"{item.action.value} ({origin}) - {item.law_firm or 'No firm'} - {item.reason}"
        ),
    )
    store.add_event(event)
    logger.info(f"Recorded '{item.action.value}' for case {item.case_id}")
    return event


def record_batch(store: CaseStore, items: list[ActionItem]) -> list[CaseEvent]:
    """Log a batch run: one notice event per selected action."""
    events = []
    for item in items:
        event = CaseEvent(
            case_id=item.case_id,
            type=WorkflowEventType.NOTICE_GENERATED,
            description=f"Batch action: {item.action.value} - {item.reason}",
        )
        store.add_event(event)
        events.append(event)
    logger.info(f"Recorded batch of {len(events)} actions")
    return events
