"""
Tests for lienbridge.drafts -- Action Drafts.

Covers: draft kind resolution, each template, fallbacks for missing firm
and attorney, AI draft adaptation, and serialization.
"""

from __future__ import annotations

import pytest

from lienbridge.actions import ActionItem, ActionKind, ActionPriority
from lienbridge.drafts import (
    AI_FOOTER,
    TEMPLATE_FOOTER,
    DraftKind,
    build_ai_draft,
    build_template_draft,
    resolve_draft_kind,
)
from lienbridge.insight_client import AIInsight


def _make_item(action: ActionKind = ActionKind.GENERATE_NOTICE, **overrides) -> ActionItem:
    fields = {
        "case_id": "case_001",
        "patient_alias": "Patient A",
        "action": action,
        "priority": ActionPriority.HIGH,
        "reason": "Case age 400d; documented fee assignment notice recommended.",
        "law_firm": "Hale & Ortiz",
        "attorney_name": "Dana Hale",
        "lien_amount": 12500,
    }
    fields.update(overrides)
    return ActionItem(**fields)


class TestResolveDraftKind:
    @pytest.mark.parametrize("action,expected", [
        (ActionKind.GENERATE_NOTICE, DraftKind.ATTORNEY_NOTICE),
        (ActionKind.REQUEST_ACKNOWLEDGMENT, DraftKind.ATTORNEY_NOTICE),
        (ActionKind.SEND_DEMAND, DraftKind.DEMAND_PACKET),
        (ActionKind.SCHEDULE_FOLLOW_UP, DraftKind.FOLLOW_UP),
        (ActionKind.UPGRADE_CONTRACT, DraftKind.FOLLOW_UP),
    ])
    def test_kinds(self, action, expected):
        assert resolve_draft_kind(action) == expected


class TestTemplateDraft:
    def test_attorney_notice(self):
        draft = build_template_draft(_make_item())
        assert draft.kind == DraftKind.ATTORNEY_NOTICE
        assert draft.subject == "RE: Documented Fee Assignment Notice - Case case_001"
        assert "Dear Dana Hale / Hale & Ortiz," in draft.body
        assert "Action Required: Generate attorney notice" in draft.body
        assert "10 business days" in draft.body
        assert draft.body.endswith(TEMPLATE_FOOTER)
        assert draft.ai_assisted is False

    def test_demand_packet_states_lien(self):
        draft = build_template_draft(_make_item(ActionKind.SEND_DEMAND))
        assert draft.kind == DraftKind.DEMAND_PACKET
        assert "$12,500.00" in draft.body

    def test_follow_up_includes_reason(self):
        item = _make_item(ActionKind.SCHEDULE_FOLLOW_UP, reason="Recovery risk is High.")
        draft = build_template_draft(item)
        assert draft.kind == DraftKind.FOLLOW_UP
        assert "requires attention: Recovery risk is High." in draft.body
        assert "5 business days" in draft.body

    def test_missing_firm_and_attorney_fall_back(self):
        draft = build_template_draft(_make_item(law_firm=None, attorney_name=None))
        assert "Dear Counsel / the attorney of record," in draft.body

    def test_every_letter_states_patient_not_billed(self):
        for action in ActionKind:
            assert "not personally billed" in build_template_draft(_make_item(action)).body


class TestAIDraft:
    def test_adapts_insight(self):
        insight = AIInsight(
            next_best_actions=["Call the firm", "Send records"],
            follow_up_recommendation="Escalate to the managing partner.",
            confidence=0.8,
        )
        draft = build_ai_draft(insight, _make_item())
        assert draft.ai_assisted is True
        assert draft.subject == "RE: Generate attorney notice - Case case_001"
        assert "Escalate to the managing partner." in draft.body
        assert "Recommended next steps:\n- Call the firm\n- Send records" in draft.body
        assert draft.body.endswith(AI_FOOTER)

    def test_recommendation_only(self):
        insight = AIInsight(follow_up_recommendation="Follow up Friday.")
        draft = build_ai_draft(insight, _make_item())
        assert "Recommended next steps" not in draft.body


class TestSerialization:
    def test_to_dict(self):
        draft = build_template_draft(_make_item(), notice="AI draft unavailable; showing standard draft.")
        out = draft.to_dict()
        assert out["kind"] == "AttorneyNotice"
        assert out["case_id"] == "case_001"
        assert out["notice"] == "AI draft unavailable; showing standard draft."
        assert out["ai_assisted"] is False
        assert draft.text.startswith(draft.subject)
