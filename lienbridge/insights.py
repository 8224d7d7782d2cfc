"""
Rule-Based Insight Engine -- Deterministic Advisories for a Single Case.

Four independent rules inspect one case and each may contribute an
advisory.  Rules never suppress one another, so a single case can produce
anywhere from zero to four insights, returned in rule order.

* Variance risk   -- High risk tier and predicted recovery below threshold.
* Long tail       -- predicted settlement further out than threshold days.
* Negotiation     -- case is in negotiation; focus on lien validation.
* Performance gap -- predicted recovery trails the injury-type baseline by
  more than threshold points.  The message states the exact gap.

These insights are the floor of every case view: they are always
available, even when the external insight service is not.
"""

from __future__ import annotations

import enum
from typing import Optional

from lienbridge.config import InsightThresholds
from lienbridge.models import Case, CaseStatus, RiskTier


class InsightKind(str, enum.Enum):
    RISK = "Risk"
    ALERT = "Alert"
    OPPORTUNITY = "Opportunity"


class GeneratedInsight:
    """A single advisory produced by the rule engine."""

    def __init__(self, kind: InsightKind, message: str) -> None:
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind.value, "message": self.message}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeneratedInsight):
            return NotImplemented
        return self.kind == other.kind and self.message == other.message

    def __repr__(self) -> str:
        return f"GeneratedInsight(kind={self.kind.value}, message={self.message!r})"


def _format_number(value: float) -> str:
    """Render whole numbers without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def generate_rule_based_insights(
    case: Case,
    thresholds: Optional[InsightThresholds] = None,
) -> list[GeneratedInsight]:
    """Evaluate the insight rules against ``case``.

    Args:
        case: The case to inspect.  Legacy and extended cases are treated
            alike; only core fields are read.
        thresholds: Rule thresholds.  Defaults to ``InsightThresholds()``.

    Returns:
        Insights in rule order.  Empty when no rule fires.
    """
    thresholds = thresholds or InsightThresholds()
    insights: list[GeneratedInsight] = []

    # --- Variance risk ---
    if (
        case.risk_tier == RiskTier.HIGH
        and case.predicted_recovery_percent < thresholds.high_risk_recovery_percent
    ):
        insights.append(GeneratedInsight(
            InsightKind.RISK,
            "High variance risk detected. Predicted recovery is significantly "
            "below baseline. Consider earlier outreach.",
        ))

    # --- Long tail ---
    if case.predicted_time_to_settlement_days > thresholds.long_tail_days:
        insights.append(GeneratedInsight(
            InsightKind.ALERT,
            f"Long-tail case projected (>{_format_number(thresholds.long_tail_days)} days). "
            "Monitor documentation and attorney responsiveness closely.",
        ))

    # --- Negotiation ---
    if case.status == CaseStatus.NEGOTIATION:
        insights.append(GeneratedInsight(
            InsightKind.OPPORTUNITY,
            "Case in negotiation. Focus on lien validation and negotiate "
            "reductions only if strict requirements are met.",
        ))

    # --- Performance gap ---
    gap = case.predicted_recovery_baseline_percent - case.predicted_recovery_percent
    if gap > thresholds.baseline_gap_points:
        insights.append(GeneratedInsight(
            InsightKind.RISK,
            f"Performance Gap: Case is tracking {_format_number(gap)} points "
            "below baseline for this injury type.",
        ))

    return insights
