"""
Tests for lienbridge.insight_client -- Insight Service Client.

Covers: request building, successful advice, every failure mode mapped to
InsightServiceError, fallback to rule-based insights with the
"AI unavailable" notice, AI drafts with template fallback, and client
construction from configuration.
"""

from __future__ import annotations

import threading
import time
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from lienbridge.actions import ActionItem, ActionKind, ActionPriority
from lienbridge.config import DashboardConfig
from lienbridge.insight_client import (
    AI_DRAFT_UNAVAILABLE_NOTICE,
    AI_UNAVAILABLE_NOTICE,
    AIInsight,
    InsightRequest,
    InsightServiceClient,
    InsightServiceError,
    build_insight_client,
    draft_action,
    generate_case_insight,
)
from lienbridge.models import Case, CaseEvent, CaseStatus, RiskTier, WorkflowEventType


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_URL = "https://insights.example.com/generate"

_GOOD_PAYLOAD = {
    "nextBestActions": ["Request updated treatment records."],
    "documentationGaps": ["Missing billing ledger."],
    "paymentDelayRisk": "Medium",
    "followUpRecommendation": "Contact the firm within 7 days.",
    "confidence": 0.72,
    "model": "demo-model",
    "generatedAt": "2025-06-01T12:00:00Z",
}


def _make_case() -> Case:
    return Case(
        id="case_001",
        patient_alias="Patient A",
        injury_type="Fracture",
        provider_id="prov_1",
        attorney_id="att_1",
        lien_amount=1000,
        billed_amount=2000,
        predicted_recovery_percent=40,
        predicted_recovery_baseline_percent=60,
        predicted_time_to_settlement_days=300,
        status=CaseStatus.NEGOTIATION,
        risk_tier=RiskTier.HIGH,
        intake_date=date(2025, 1, 1),
        last_updated_date=date(2025, 1, 1),
    )


def _make_events(count: int = 7) -> list[CaseEvent]:
    t0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
    types = list(WorkflowEventType)
    events = [
        CaseEvent(case_id="case_001", timestamp=t0 + timedelta(days=i), type=types[i])
        for i in range(count)
    ]
    events.append(CaseEvent(case_id="other", timestamp=t0 + timedelta(days=99), type=WorkflowEventType.ALERT))
    return events


def _make_item() -> ActionItem:
    return ActionItem(
        case_id="case_001",
        patient_alias="Patient A",
        action=ActionKind.SCHEDULE_FOLLOW_UP,
        priority=ActionPriority.LOW,
        reason="Recovery risk is High.",
        law_firm="Hale & Ortiz",
        recovery_risk=RiskTier.HIGH,
        status=CaseStatus.OPEN,
    )


def _client_returning(payload=None, status_code: int = 200, json_error=None, exc=None):
    session = MagicMock()
    if exc is not None:
        session.post.side_effect = exc
    else:
        response = MagicMock()
        response.status_code = status_code
        if json_error is not None:
            response.json.side_effect = json_error
        else:
            response.json.return_value = payload
        session.post.return_value = response
    return InsightServiceClient(_URL, timeout=12.0, session=session), session


# ---------------------------------------------------------------------------
# 1. Requests
# ---------------------------------------------------------------------------

class TestInsightRequest:
    def test_for_case_takes_five_most_recent_event_types(self):
        request = InsightRequest.for_case(_make_case(), _make_events())
        types = list(WorkflowEventType)
        assert request.recent_event_types == [types[6], types[5], types[4], types[3], types[2]]

    def test_payload_is_camel_case(self):
        payload = InsightRequest.for_case(_make_case(), []).to_payload()
        assert payload["caseId"] == "case_001"
        assert payload["riskTier"] == "High"
        assert payload["predictedTimeToSettlementDays"] == 300
        assert payload["recentEventTypes"] == []
        assert "lawFirm" not in payload

    def test_for_action_falls_back_to_recovery_risk(self):
        request = InsightRequest.for_action(_make_item())
        assert request.risk_tier == RiskTier.HIGH
        assert request.action_type == "FollowUp"
        assert request.law_firm == "Hale & Ortiz"


# ---------------------------------------------------------------------------
# 2. Client
# ---------------------------------------------------------------------------

class TestInsightServiceClient:
    def test_successful_call(self):
        client, session = _client_returning(_GOOD_PAYLOAD)
        insight = client.request_insight(InsightRequest.for_case(_make_case(), []))
        assert insight.next_best_actions == ["Request updated treatment records."]
        assert insight.payment_delay_risk == RiskTier.MEDIUM
        assert insight.confidence == 0.72
        assert insight.model == "demo-model"
        _, kwargs = session.post.call_args
        assert kwargs["timeout"] == 12.0
        assert kwargs["json"]["caseId"] == "case_001"

    @pytest.mark.parametrize("kwargs,match", [
        ({"exc": requests.Timeout("slow")}, "timed out"),
        ({"exc": requests.ConnectionError("refused")}, "unreachable"),
        ({"payload": _GOOD_PAYLOAD, "status_code": 502}, "HTTP 502"),
        ({"json_error": ValueError("Expecting value")}, "malformed JSON"),
        ({"payload": ["not", "an", "object"]}, "not a JSON object"),
        ({"payload": {**_GOOD_PAYLOAD, "nextBestActions": "Call the firm"}}, "validation"),
        ({"payload": {"nextBestActions": [], "followUpRecommendation": "  "}}, "Empty"),
    ])
    def test_failures_raise_service_error(self, kwargs, match):
        client, _ = _client_returning(**kwargs)
        with pytest.raises(InsightServiceError, match=match):
            client.request_insight(InsightRequest.for_case(_make_case(), []))

    def test_empty_detection(self):
        assert AIInsight().is_empty is True
        assert AIInsight(follow_up_recommendation="Call").is_empty is False
        assert AIInsight(next_best_actions=["Call"]).is_empty is False

    def test_out_of_range_confidence_and_unknown_risk_are_tolerated(self):
        payload = {
            "nextBestActions": ["Call firm"],
            "followUpRecommendation": "Follow up",
            "paymentDelayRisk": "Severe",
            "confidence": 85,
        }
        client, _ = _client_returning(payload)
        insight = client.request_insight(InsightRequest.for_case(_make_case(), []))
        assert insight.next_best_actions == ["Call firm"]
        assert insight.confidence == 85
        assert insight.payment_delay_risk is None

    def test_slow_response_is_cut_off_at_deadline(self):
        release = threading.Event()

        def stalled_post(*args, **kwargs):
            release.wait(5)
            raise requests.ConnectionError("closed")

        session = MagicMock()
        session.post.side_effect = stalled_post
        client = InsightServiceClient(_URL, timeout=0.2, session=session)
        started = time.monotonic()
        try:
            with pytest.raises(InsightServiceError, match="timed out after 0.2s"):
                client.request_insight(InsightRequest.for_case(_make_case(), []))
            assert time.monotonic() - started < 2
        finally:
            release.set()

    def test_slow_response_falls_back_to_rules(self):
        release = threading.Event()
        session = MagicMock()
        session.post.side_effect = lambda *a, **kw: release.wait(5)
        client = InsightServiceClient(_URL, timeout=0.2, session=session)
        try:
            result = generate_case_insight(_make_case(), [], client=client)
        finally:
            release.set()
        assert result.source == "rules"
        assert result.notice == AI_UNAVAILABLE_NOTICE


# ---------------------------------------------------------------------------
# 3. Case insight with fallback
# ---------------------------------------------------------------------------

class TestGenerateCaseInsight:
    def test_without_client_uses_rules(self):
        result = generate_case_insight(_make_case(), [])
        assert result.source == "rules"
        assert result.notice is None
        assert len(result.rule_insights) == 4

    def test_with_working_client(self):
        client, _ = _client_returning(_GOOD_PAYLOAD)
        result = generate_case_insight(_make_case(), _make_events(), client=client)
        assert result.source == "ai"
        assert result.ai_insight.follow_up_recommendation == "Contact the firm within 7 days."
        assert len(result.rule_insights) == 4

    def test_service_failure_falls_back(self, caplog):
        client, _ = _client_returning(exc=requests.Timeout("slow"))
        with caplog.at_level("WARNING", logger="lienbridge.insight_client"):
            result = generate_case_insight(_make_case(), [], client=client)
        assert result.source == "rules"
        assert result.notice == AI_UNAVAILABLE_NOTICE
        assert len(result.rule_insights) == 4
        assert "AI insight failed" in caplog.text

    def test_to_dict(self):
        client, _ = _client_returning(_GOOD_PAYLOAD)
        out = generate_case_insight(_make_case(), [], client=client).to_dict()
        assert out["source"] == "ai"
        assert out["ai_insight"]["nextBestActions"] == ["Request updated treatment records."]
        assert out["rule_insights"][0]["type"] == "Risk"


# ---------------------------------------------------------------------------
# 4. Drafts with fallback
# ---------------------------------------------------------------------------

class TestDraftAction:
    def test_without_client_uses_template(self):
        draft = draft_action(_make_item())
        assert draft.ai_assisted is False
        assert draft.notice is None

    def test_ai_draft_when_service_answers(self):
        client, _ = _client_returning(_GOOD_PAYLOAD)
        draft = draft_action(_make_item(), client=client)
        assert draft.ai_assisted is True
        assert "Contact the firm within 7 days." in draft.body

    def test_template_with_notice_when_service_fails(self):
        client, _ = _client_returning(payload={}, status_code=200)
        draft = draft_action(_make_item(), client=client)
        assert draft.ai_assisted is False
        assert draft.notice == AI_DRAFT_UNAVAILABLE_NOTICE
        assert "Status Follow-up" in draft.subject


# ---------------------------------------------------------------------------
# 5. Construction from configuration
# ---------------------------------------------------------------------------

class TestBuildInsightClient:
    def test_disabled_by_default(self):
        assert build_insight_client(DashboardConfig()) is None

    def test_enabled_without_url_returns_none(self):
        assert build_insight_client(DashboardConfig(ai_insights_enabled=True)) is None

    def test_insights_and_drafts_flags_are_separate(self):
        config = DashboardConfig(
            ai_insights_enabled=True,
            insight_service_url=_URL,
            insight_timeout_seconds=5,
        )
        client = build_insight_client(config)
        assert client.base_url == _URL
        assert client.timeout == 5
        assert build_insight_client(config, ai_drafts=True) is None
