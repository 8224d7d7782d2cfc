"""
Tests for lienbridge.insights -- Rule-Based Insight Engine.

Covers: all four rules firing together, the quiet case, each rule in
isolation, boundary values, the exact gap message, and custom thresholds.
"""

from __future__ import annotations

from datetime import date

from lienbridge.config import InsightThresholds
from lienbridge.insights import GeneratedInsight, InsightKind, generate_rule_based_insights
from lienbridge.models import Case, CaseStatus, RiskTier


def _make_case(
    risk_tier: RiskTier = RiskTier.LOW,
    recovery: float = 80,
    days: float = 100,
    status: CaseStatus = CaseStatus.OPEN,
    baseline: float = 82,
) -> Case:
    return Case(
        id="case_001",
        patient_alias="Patient A",
        injury_type="Soft Tissue",
        provider_id="prov_1",
        attorney_id="att_1",
        lien_amount=1000,
        billed_amount=2000,
        predicted_recovery_percent=recovery,
        predicted_recovery_baseline_percent=baseline,
        predicted_time_to_settlement_days=days,
        status=status,
        risk_tier=risk_tier,
        intake_date=date(2025, 1, 1),
        last_updated_date=date(2025, 1, 1),
    )


class TestRuleIndependence:
    def test_all_four_rules_fire(self):
        case = _make_case(
            risk_tier=RiskTier.HIGH,
            recovery=40,
            days=300,
            status=CaseStatus.NEGOTIATION,
            baseline=60,
        )
        insights = generate_rule_based_insights(case)
        assert [i.kind for i in insights] == [
            InsightKind.RISK,
            InsightKind.ALERT,
            InsightKind.OPPORTUNITY,
            InsightKind.RISK,
        ]
        assert "20 points" in insights[3].message

    def test_quiet_case_yields_nothing(self):
        case = _make_case(risk_tier=RiskTier.LOW, recovery=80, days=100, status=CaseStatus.OPEN, baseline=82)
        assert generate_rule_based_insights(case) == []


class TestIndividualRules:
    def test_variance_risk_requires_high_tier(self):
        assert generate_rule_based_insights(_make_case(risk_tier=RiskTier.MEDIUM, recovery=40, baseline=40)) == []
        insights = generate_rule_based_insights(_make_case(risk_tier=RiskTier.HIGH, recovery=40, baseline=40))
        assert len(insights) == 1
        assert "High variance risk" in insights[0].message

    def test_variance_boundary_is_strict(self):
        assert generate_rule_based_insights(_make_case(risk_tier=RiskTier.HIGH, recovery=50, baseline=50)) == []

    def test_long_tail_boundary_is_strict(self):
        assert generate_rule_based_insights(_make_case(days=240)) == []
        insights = generate_rule_based_insights(_make_case(days=241))
        assert insights[0].kind == InsightKind.ALERT
        assert ">240 days" in insights[0].message

    def test_negotiation_is_opportunity(self):
        insights = generate_rule_based_insights(_make_case(status=CaseStatus.NEGOTIATION))
        assert insights == [GeneratedInsight(
            InsightKind.OPPORTUNITY,
            "Case in negotiation. Focus on lien validation and negotiate "
            "reductions only if strict requirements are met.",
        )]

    def test_gap_boundary_is_strict(self):
        assert generate_rule_based_insights(_make_case(recovery=60, baseline=75)) == []
        insights = generate_rule_based_insights(_make_case(recovery=60, baseline=75.5))
        assert "15.5 points" in insights[0].message

    def test_legacy_and_extended_cases_treated_alike(self):
        case = _make_case(status=CaseStatus.NEGOTIATION)
        extended = Case.model_validate({**case.model_dump(), "contract_type": "MedPayRez"})
        assert generate_rule_based_insights(extended) == generate_rule_based_insights(case)


class TestCustomThresholds:
    def test_thresholds_override_defaults(self):
        thresholds = InsightThresholds(long_tail_days=90, baseline_gap_points=1)
        insights = generate_rule_based_insights(_make_case(days=100, recovery=80, baseline=82), thresholds)
        assert [i.kind for i in insights] == [InsightKind.ALERT, InsightKind.RISK]
        assert ">90 days" in insights[0].message

    def test_to_dict(self):
        insight = GeneratedInsight(InsightKind.ALERT, "msg")
        assert insight.to_dict() == {"type": "Alert", "message": "msg"}
