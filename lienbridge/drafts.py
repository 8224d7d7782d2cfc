"""
Action Drafts -- Correspondence for Recommended Actions.

Every action in the feed can be turned into a letter to the attorney of
record.  The template draft is deterministic and always available.  When
the insight service is enabled, an AI-assisted draft can be derived from
its structured advice instead; if that fails, callers fall back to the
template (see :func:`lienbridge.insight_client.draft_action`).

All drafts are demo documents: the footer states that no legal obligation
is created, and every letter states that the patient is not personally
billed.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from lienbridge.actions import ActionItem, ActionKind

if TYPE_CHECKING:
    from lienbridge.insight_client import AIInsight


DEFAULT_FIRM = "the attorney of record"
DEFAULT_ATTORNEY = "Counsel"
TEMPLATE_FOOTER = "[Demo document - no legal obligation created]"
AI_FOOTER = "[AI-assisted draft - demo only, no legal obligation created]"


class DraftKind(str, enum.Enum):
    ATTORNEY_NOTICE = "AttorneyNotice"
    DEMAND_PACKET = "DemandPacket"
    FOLLOW_UP = "FollowUp"


def resolve_draft_kind(action: str) -> DraftKind:
    """Pick the letter template for an action's wording."""
    text = (action.value if isinstance(action, ActionKind) else action).lower()
    if "notice" in text or "acknowledgment" in text:
        return DraftKind.ATTORNEY_NOTICE
    if "demand" in text or "payment" in text:
        return DraftKind.DEMAND_PACKET
    return DraftKind.FOLLOW_UP


class ActionDraft:
    """A drafted letter for one action item."""

    def __init__(
        self,
        case_id: str,
        kind: DraftKind,
        subject: str,
        body: str,
        ai_assisted: bool = False,
        notice: Optional[str] = None,
        generated_at: Optional[str] = None,
    ) -> None:
        self.case_id = case_id
        self.kind = kind
        self.subject = subject
        self.body = body
        self.ai_assisted = ai_assisted
        self.notice = notice
        self.generated_at = generated_at or datetime.now(timezone.utc).isoformat()

    @property
    def text(self) -> str:
        return f"{self.subject}\n\n{self.body}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize the draft to a dictionary."""
        return {
            "case_id": self.case_id,
            "kind": self.kind.value,
            "subject": self.subject,
            "body": self.body,
            "ai_assisted": self.ai_assisted,
            "notice": self.notice,
            "generated_at": self.generated_at,
        }

    def __repr__(self) -> str:
        return (
            f"ActionDraft(case_id={self.case_id}, kind={self.kind.value}, "
            f"ai_assisted={self.ai_assisted})"
        )


def _salutation(item: ActionItem) -> str:
    return f"Dear {item.attorney_name or DEFAULT_ATTORNEY} / {item.law_firm or DEFAULT_FIRM},"


def build_template_draft(item: ActionItem, notice: Optional[str] = None) -> ActionDraft:
    """Build the deterministic letter for ``item``.  Never fails.

    Args:
        item: The action to draft for.
        notice: Optional informational notice shown alongside the draft,
            e.g. when an AI draft was requested but unavailable.
    """
    kind = resolve_draft_kind(item.action)

    if kind == DraftKind.ATTORNEY_NOTICE:
        subject = f"RE: Documented Fee Assignment Notice - Case {item.case_id}"
        paragraphs = [
            _salutation(item),
            f"This notice confirms that {item.patient_alias} has executed a MedPayRez fee "
            "recovery agreement with the treating provider. Pursuant to that agreement, the "
            "provider holds a documented fee assignment against any settlement, judgment, or "
            "verdict obtained on behalf of the patient.",
            "Please acknowledge receipt of this notice and confirm the expected timeline for "
            "resolution. The patient is not personally billed; recovery is pursued exclusively "
            "through contract-backed rights.",
            f"Action Required: {item.action.value}\nContext: {item.reason}",
            "Please respond within 10 business days with acknowledgment and next expected milestone.",
        ]
    elif kind == DraftKind.DEMAND_PACKET:
        lien = item.lien_amount or 0
        subject = f"RE: Payment Demand - Case {item.case_id}"
        paragraphs = [
            _salutation(item),
            f"Our records indicate that Case {item.case_id} ({item.patient_alias}) has reached a "
            f"settlement stage with an outstanding lien of ${lien:,.2f}. We are formally "
            "requesting disbursement of the documented fee assignment amount from settlement "
            "proceeds.",
            "The patient is not personally billed. This demand is made pursuant to the executed "
            "fee recovery agreement on file.",
            "Please confirm receipt and advise on the expected disbursement timeline.",
        ]
    else:
        subject = f"RE: Status Follow-up - Case {item.case_id}"
        paragraphs = [
            _salutation(item),
            f"We are following up on the status of Case {item.case_id} ({item.patient_alias}). "
            f"Our records indicate this case requires attention: {item.reason}",
            "The patient is not personally billed. We are seeking an operational update on the "
            "current status and the next expected milestone.",
            "Please respond within 5 business days.",
        ]

    paragraphs.append(TEMPLATE_FOOTER)
    return ActionDraft(
        case_id=item.case_id,
        kind=kind,
        subject=subject,
        body="\n\n".join(paragraphs),
        notice=notice,
    )


def build_ai_draft(insight: AIInsight, item: ActionItem) -> ActionDraft:
    """Adapt structured service advice into a letter for ``item``."""
    paragraphs = [_salutation(item)]
    recommendation = insight.follow_up_recommendation.strip()
    if recommendation:
        paragraphs.append(recommendation)
    if insight.next_best_actions:
        steps = "\n".join(f"- {step}" for step in insight.next_best_actions)
        paragraphs.append(f"Recommended next steps:\n{steps}")
    paragraphs.append(f"Context: {item.reason}")
    paragraphs.append(
        "The patient is not personally billed. Recovery is pursued through contract-backed "
        "rights and documented fee assignments. Please acknowledge receipt and advise on the "
        "expected timeline for resolution."
    )
    paragraphs.append(AI_FOOTER)
    return ActionDraft(
        case_id=item.case_id,
        kind=resolve_draft_kind(item.action),
        subject=f"RE: {item.action.value} - Case {item.case_id}",
        body="\n\n".join(paragraphs),
        ai_assisted=True,
    )
