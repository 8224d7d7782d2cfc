"""
Insight Service Client -- Optional AI Advice with Deterministic Fallback.

The external insight service accepts a case's descriptive attributes and
returns structured operational advice.  It is never on the critical path:

* ``generate_case_insight()`` always computes the rule-based insights and
  adds the service's advice only when the call succeeds.
* ``draft_action()`` always has the template draft to fall back on.

Every failure mode (timeout, connection error, non-2xx, malformed JSON,
a non-object body, or an empty answer) is raised by the client as
``InsightServiceError`` and absorbed by the two entry points above.  The
caller sees an informational notice, never an exception.
"""

from __future__ import annotations

import logging
from concurrent import futures
from datetime import datetime
from typing import Any, Optional

import requests
from pydantic import Field, ValidationError, field_validator

from lienbridge.actions import ActionItem
from lienbridge.config import DashboardConfig, InsightThresholds
from lienbridge.drafts import ActionDraft, build_ai_draft, build_template_draft, resolve_draft_kind
from lienbridge.insights import GeneratedInsight, generate_rule_based_insights
from lienbridge.models import (
    Case,
    CaseEvent,
    CaseStatus,
    ContractType,
    RiskTier,
    WireModel,
    WorkflowEventType,
)

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_NOTICE = "AI unavailable"
AI_DRAFT_UNAVAILABLE_NOTICE = "AI draft unavailable; showing standard draft."
RECENT_EVENT_COUNT = 5


class InsightServiceError(Exception):
    """Raised when the insight service cannot provide usable advice."""
    pass


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class InsightRequest(WireModel):
    """Case attributes sent to the insight service."""

    case_id: str
    injury_type: Optional[str] = None
    risk_tier: Optional[RiskTier] = None
    status: Optional[CaseStatus] = None
    predicted_recovery_percent: Optional[float] = None
    predicted_time_to_settlement_days: Optional[float] = None
    recent_event_types: list[WorkflowEventType] = Field(default_factory=list)
    action_type: Optional[str] = Field(
        default=None,
        description="Draft kind being requested, when drafting for an action.",
    )
    law_firm: Optional[str] = None
    attorney_name: Optional[str] = None
    contract_type: Optional[ContractType] = None
    recovery_risk: Optional[RiskTier] = None
    age_bucket_days: Optional[int] = None
    lien_amount: Optional[float] = None
    billed_amount: Optional[float] = None

    @classmethod
    def for_case(cls, case: Case, events: list[CaseEvent]) -> InsightRequest:
        """Describe ``case`` along with the types of its most recent events."""
        recent = sorted(
            (e for e in events if e.case_id == case.id),
            key=lambda e: e.timestamp,
            reverse=True,
        )[:RECENT_EVENT_COUNT]
        return cls(
            case_id=case.id,
            injury_type=case.injury_type,
            risk_tier=case.risk_tier,
            status=case.status,
            predicted_recovery_percent=case.predicted_recovery_percent,
            predicted_time_to_settlement_days=case.predicted_time_to_settlement_days,
            recent_event_types=[e.type for e in recent],
        )

    @classmethod
    def for_action(cls, item: ActionItem) -> InsightRequest:
        """Describe the case behind an action item, for drafting."""
        return cls(
            case_id=item.case_id,
            injury_type=item.injury_type,
            # Older feed items may lack a risk tier; recovery risk stands in.
            risk_tier=item.risk_tier or item.recovery_risk,
            status=item.status,
            predicted_recovery_percent=item.predicted_recovery_percent,
            predicted_time_to_settlement_days=item.predicted_time_to_settlement_days,
            action_type=resolve_draft_kind(item.action).value,
            law_firm=item.law_firm,
            attorney_name=item.attorney_name,
            contract_type=item.contract_type,
            recovery_risk=item.recovery_risk,
            age_bucket_days=item.age_bucket_days,
            lien_amount=item.lien_amount,
            billed_amount=item.billed_amount,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AIInsight(WireModel):
    """Structured advice returned by the insight service."""

    next_best_actions: list[str] = Field(default_factory=list)
    documentation_gaps: list[str] = Field(default_factory=list)
    payment_delay_risk: Optional[RiskTier] = None
    follow_up_recommendation: str = Field(default="")
    confidence: float = Field(
        default=0.0,
        description="Service-reported confidence.  Usually 0-1, but not range-checked.",
    )
    model: Optional[str] = Field(default=None, description="Model that produced the advice.")
    generated_at: Optional[datetime] = None

    @field_validator("payment_delay_risk", mode="before")
    @classmethod
    def known_risk_tier_or_none(cls, v: Any) -> Any:
        """Unrecognized tiers are dropped rather than rejecting the advice."""
        if v is None or isinstance(v, RiskTier):
            return v
        try:
            return RiskTier(v)
        except ValueError:
            logger.debug(f"Ignoring unknown paymentDelayRisk {v!r}")
            return None

    @property
    def is_empty(self) -> bool:
        """True when the payload carries no actions and no recommendation."""
        return not self.next_best_actions and not self.follow_up_recommendation.strip()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class InsightServiceClient:
    """Client for the insight service endpoint.

    Args:
        base_url: Endpoint URL that accepts the JSON request via POST.
        timeout: Wall-clock bound in seconds on a single call, including
            reading the response body.
        session: Optional ``requests.Session`` (injected in tests).

    The POST runs on a worker thread so the deadline also covers a slowly
    streamed body.  An abandoned request finishes in the background.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 12.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def request_insight(self, request: InsightRequest) -> AIInsight:
        """Post ``request`` and return the validated advice.

        Raises:
            InsightServiceError: On any transport, HTTP, or payload failure.
        """
        executor = futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="insight-service")
        pending = executor.submit(
            self._session.post,
            self.base_url,
            json=request.to_payload(),
            timeout=self.timeout,
        )
        try:
            response = pending.result(timeout=self.timeout)
        except futures.TimeoutError as exc:
            pending.cancel()
            raise InsightServiceError(
                f"Insight service timed out after {self.timeout}s"
            ) from exc
        except requests.Timeout as exc:
            raise InsightServiceError(
                f"Insight service timed out after {self.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise InsightServiceError(f"Insight service unreachable: {exc}") from exc
        finally:
            executor.shutdown(wait=False)

        if not 200 <= response.status_code < 300:
            raise InsightServiceError(f"Insight service returned HTTP {response.status_code}")

        try:
            raw = response.json()
        except ValueError as exc:
            raise InsightServiceError(f"Insight service returned malformed JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise InsightServiceError("Insight service response is not a JSON object")

        try:
            insight = AIInsight.model_validate(raw)
        except ValidationError as exc:
            raise InsightServiceError(f"Insight service response failed validation: {exc}") from exc

        if insight.is_empty:
            raise InsightServiceError("Empty insight response")
        return insight


def build_insight_client(
    config: DashboardConfig,
    ai_drafts: bool = False,
) -> Optional[InsightServiceClient]:
    """Return a client when the relevant AI feature is enabled and configured.

    Args:
        config: Dashboard configuration.
        ai_drafts: Check ``ai_drafts_enabled`` instead of ``ai_insights_enabled``.
    """
    enabled = config.ai_drafts_enabled if ai_drafts else config.ai_insights_enabled
    if not enabled or config.insight_service_url is None:
        return None
    return InsightServiceClient(config.insight_service_url, timeout=config.insight_timeout_seconds)


# ---------------------------------------------------------------------------
# Entry points with fallback
# ---------------------------------------------------------------------------

class CaseInsightResult:
    """Insights for one case: the rule-based floor plus optional AI advice."""

    def __init__(
        self,
        case_id: str,
        rule_insights: list[GeneratedInsight],
        ai_insight: Optional[AIInsight] = None,
        notice: Optional[str] = None,
    ) -> None:
        self.case_id = case_id
        self.rule_insights = rule_insights
        self.ai_insight = ai_insight
        self.notice = notice

    @property
    def source(self) -> str:
        return "ai" if self.ai_insight is not None else "rules"

    def to_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "source": self.source,
            "notice": self.notice,
            "rule_insights": [i.to_dict() for i in self.rule_insights],
            "ai_insight": (
                self.ai_insight.model_dump(mode="json", by_alias=True)
                if self.ai_insight is not None else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"CaseInsightResult(case_id={self.case_id}, source={self.source}, "
            f"rules={len(self.rule_insights)})"
        )


def generate_case_insight(
    case: Case,
    events: list[CaseEvent],
    client: Optional[InsightServiceClient] = None,
    thresholds: Optional[InsightThresholds] = None,
) -> CaseInsightResult:
    """Compute insights for ``case``, consulting the service when available.

    Never raises for service failures; the result then carries the
    ``AI unavailable`` notice and only the rule-based insights.
    """
    rule_insights = generate_rule_based_insights(case, thresholds)
    if client is None:
        return CaseInsightResult(case.id, rule_insights)

    try:
        insight = client.request_insight(InsightRequest.for_case(case, events))
    except InsightServiceError as exc:
        logger.warning(f"AI insight failed for case {case.id}, using rules only: {exc}")
        return CaseInsightResult(case.id, rule_insights, notice=AI_UNAVAILABLE_NOTICE)
    return CaseInsightResult(case.id, rule_insights, ai_insight=insight)


def draft_action(
    item: ActionItem,
    client: Optional[InsightServiceClient] = None,
) -> ActionDraft:
    """Draft correspondence for ``item``, AI-assisted when possible.

    Falls back to the template draft, with a notice, if the service fails.
    """
    if client is None:
        return build_template_draft(item)
    try:
        insight = client.request_insight(InsightRequest.for_action(item))
    except InsightServiceError as exc:
        logger.warning(f"AI draft failed for case {item.case_id}, using template: {exc}")
        return build_template_draft(item, notice=AI_DRAFT_UNAVAILABLE_NOTICE)
    return build_ai_draft(insight, item)
