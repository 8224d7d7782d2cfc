"""
Selector & Analytics Engine -- Read-Only Queries over a Dataset Snapshot.

Every function here takes the ``AppData`` snapshot as an explicit argument
and returns fresh lists; none of them mutate the snapshot.  Lookups return
``None`` for unknown ids (a dangling foreign key is a display concern, not
an error), and every average degrades to ``0`` on an empty denominator.

``PortfolioSelectors`` binds one snapshot and computes the portfolio-level
aggregates once.  The store hands out one instance per snapshot version,
so repeated reads of an unchanged dataset reuse the same results.
"""

from __future__ import annotations

import enum
from datetime import date
from functools import cached_property
from typing import Optional

from pydantic import BaseModel, Field

from lienbridge.models import (
    AppData,
    Attorney,
    Case,
    CaseEvent,
    CaseStatus,
    ContractType,
    Provider,
    RiskTier,
    WorkflowEventType,
)


ACTIVE_STATUSES = frozenset({CaseStatus.OPEN, CaseStatus.NEGOTIATION, CaseStatus.ACTIVE})


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------

class PortfolioKPIs(BaseModel):
    """Headline portfolio metrics."""

    total_outstanding: float = Field(
        default=0.0,
        description="Sum of lien amounts over cases that are not Paid.",
    )
    active_cases: int = Field(
        default=0,
        description="Cases in Open, Negotiation or Active status.",
    )
    avg_recovery: float = Field(default=0.0, description="Mean predicted recovery percent.")
    avg_time: float = Field(default=0.0, description="Mean predicted days to settlement.")


class ProviderRecovery(BaseModel):
    provider_id: str
    name: str
    avg_recovery: int
    baseline: int


class AttorneyPerformance(BaseModel):
    law_firm: str
    avg_days_to_settlement: int
    avg_reduction_pct: int
    active_case_count: int


class OverviewFilter(str, enum.Enum):
    """Quick views offered on the portfolio overview."""

    ALL = "All Cases"
    HIGH_RISK = "High Risk"
    ACTIVE = "Active"
    OVER_90_DAYS = "90+ Days"
    PENDING_PAYER = "Pending Payer"


class InvoiceStatus(str, enum.Enum):
    PENDING = "Pending"
    ISSUED = "Issued"
    DEMAND_SENT = "Demand Sent"
    PAID = "Paid"


# ---------------------------------------------------------------------------
# Lookups and joins
# ---------------------------------------------------------------------------

def get_case_by_id(data: AppData, case_id: str) -> Optional[Case]:
    """Return the first case with ``case_id``, or ``None``."""
    return next((c for c in data.cases if c.id == case_id), None)


def get_provider_by_id(data: AppData, provider_id: str) -> Optional[Provider]:
    return next((p for p in data.providers if p.id == provider_id), None)


def get_attorney_by_id(data: AppData, attorney_id: str) -> Optional[Attorney]:
    return next((a for a in data.attorneys if a.id == attorney_id), None)


def get_case_events(data: AppData, case_id: str) -> list[CaseEvent]:
    """Return the events of one case, most recent first."""
    events = [e for e in data.events if e.case_id == case_id]
    return sorted(events, key=lambda e: e.timestamp, reverse=True)


def get_recent_activity(data: AppData, limit: int = 5) -> list[CaseEvent]:
    """Return the ``limit`` most recent events across the whole portfolio."""
    return sorted(data.events, key=lambda e: e.timestamp, reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Portfolio aggregates
# ---------------------------------------------------------------------------

def _mean(values: list[float]) -> float:
    return sum(values) / (len(values) or 1)


def get_portfolio_kpis(data: AppData) -> PortfolioKPIs:
    """Compute headline KPIs.  An empty portfolio yields all zeros."""
    cases = data.cases
    return PortfolioKPIs(
        total_outstanding=sum(c.lien_amount for c in cases if c.status != CaseStatus.PAID),
        active_cases=sum(1 for c in cases if c.status in ACTIVE_STATUSES),
        avg_recovery=_mean([c.predicted_recovery_percent for c in cases]),
        avg_time=_mean([c.predicted_time_to_settlement_days for c in cases]),
    )


def get_at_risk_cases(
    data: AppData,
    limit: int = 5,
    recovery_threshold: float = 50.0,
) -> list[Case]:
    """Return the worst-recovering at-risk cases.

    A case is at risk when its risk tier is High or its predicted recovery
    is below ``recovery_threshold``.  Results are ordered by predicted
    recovery ascending; ties keep insertion order.
    """
    at_risk = [
        c for c in data.cases
        if c.risk_tier == RiskTier.HIGH or c.predicted_recovery_percent < recovery_threshold
    ]
    return sorted(at_risk, key=lambda c: c.predicted_recovery_percent)[:limit]


def high_risk_count(data: AppData) -> int:
    return sum(1 for c in data.cases if c.risk_tier == RiskTier.HIGH)


def status_distribution(data: AppData) -> dict[str, int]:
    """Count cases per status, in order of first appearance."""
    counts: dict[str, int] = {}
    for c in data.cases:
        counts[c.status.value] = counts.get(c.status.value, 0) + 1
    return counts


def contract_type_counts(data: AppData) -> dict[str, int]:
    """Count cases per contract type.  Every contract type is listed."""
    counts = {ct.value: 0 for ct in ContractType}
    for c in data.cases:
        if c.contract_type is not None:
            counts[c.contract_type.value] += 1
    return counts


def recovery_by_provider(data: AppData) -> list[ProviderRecovery]:
    """Average predicted and baseline recovery per provider, rounded.

    Providers without cases report ``0`` for both figures.
    """
    rows: list[ProviderRecovery] = []
    for provider in data.providers:
        provider_cases = [c for c in data.cases if c.provider_id == provider.id]
        rows.append(ProviderRecovery(
            provider_id=provider.id,
            name=provider.name,
            avg_recovery=round(_mean([c.predicted_recovery_percent for c in provider_cases])),
            baseline=round(_mean([c.predicted_recovery_baseline_percent for c in provider_cases])),
        ))
    return rows


def attorney_performance(data: AppData) -> list[AttorneyPerformance]:
    """Settlement speed and lien reduction per law firm.

    Cases are grouped by their denormalized law firm, falling back to the
    attorney record's firm name.  Reduction is the share of the billed
    amount not carried into the lien.
    """
    groups: dict[str, list[Case]] = {}
    for c in data.cases:
        firm = c.law_firm
        if not firm:
            attorney = get_attorney_by_id(data, c.attorney_id)
            firm = attorney.firm_name if attorney else "Unknown"
        groups.setdefault(firm, []).append(c)

    rows = []
    for firm, firm_cases in groups.items():
        reductions = [
            (c.billed_amount - c.lien_amount) / c.billed_amount * 100
            for c in firm_cases
            if c.billed_amount > 0
        ]
        rows.append(AttorneyPerformance(
            law_firm=firm,
            avg_days_to_settlement=round(_mean([c.predicted_time_to_settlement_days for c in firm_cases])),
            avg_reduction_pct=round(_mean(reductions)),
            active_case_count=sum(1 for c in firm_cases if c.status in ACTIVE_STATUSES),
        ))
    return rows


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def filter_cases(
    data: AppData,
    search: str = "",
    status: Optional[CaseStatus] = None,
    risk_tier: Optional[RiskTier] = None,
    provider_id: Optional[str] = None,
    contract_type: Optional[ContractType] = None,
) -> list[Case]:
    """Filter the case portfolio.

    ``search`` matches case-insensitively against patient alias, case id and
    law firm.  Every other criterion is skipped when ``None``.
    """
    needle = search.strip().lower()
    results = []
    for c in data.cases:
        if needle and not (
            needle in c.patient_alias.lower()
            or needle in c.id.lower()
            or needle in (c.law_firm or "").lower()
        ):
            continue
        if status is not None and c.status != status:
            continue
        if risk_tier is not None and c.risk_tier != risk_tier:
            continue
        if provider_id is not None and c.provider_id != provider_id:
            continue
        if contract_type is not None and c.contract_type != contract_type:
            continue
        results.append(c)
    return results


def filter_overview(
    data: AppData,
    view: OverviewFilter,
    today: Optional[date] = None,
) -> list[Case]:
    """Apply one of the overview quick views."""
    today = today or date.today()
    if view == OverviewFilter.HIGH_RISK:
        return [c for c in data.cases if c.risk_tier == RiskTier.HIGH]
    if view == OverviewFilter.ACTIVE:
        return [
            c for c in data.cases
            if c.status not in (CaseStatus.PAID, CaseStatus.SETTLED)
        ]
    if view == OverviewFilter.OVER_90_DAYS:
        return [c for c in data.cases if (today - c.intake_date).days > 90]
    if view == OverviewFilter.PENDING_PAYER:
        return [c for c in data.cases if c.status == CaseStatus.NEGOTIATION]
    return list(data.cases)


# ---------------------------------------------------------------------------
# Case-level derivations
# ---------------------------------------------------------------------------

def invoice_status(data: AppData, case_id: str) -> InvoiceStatus:
    """Derive invoice progress from a case's timeline."""
    types = {e.type for e in data.events if e.case_id == case_id}
    if WorkflowEventType.PAYMENT_RECEIVED in types:
        return InvoiceStatus.PAID
    if WorkflowEventType.DEMAND_SENT in types:
        return InvoiceStatus.DEMAND_SENT
    if WorkflowEventType.INVOICE_ISSUED in types:
        return InvoiceStatus.ISSUED
    return InvoiceStatus.PENDING


def provider_display_name(data: AppData, provider_id: str) -> str:
    provider = get_provider_by_id(data, provider_id)
    return provider.practice_name or provider.name if provider else "Unknown Provider"


def attorney_display_name(data: AppData, attorney_id: str) -> str:
    attorney = get_attorney_by_id(data, attorney_id)
    return attorney.firm_name if attorney else "Unknown"


# ---------------------------------------------------------------------------
# Snapshot-bound view
# ---------------------------------------------------------------------------

class PortfolioSelectors:
    """All selectors bound to a single ``AppData`` snapshot.

    Aggregates (KPIs, at-risk list, recent activity) are computed on first
    access and cached for the life of this object.  Because the store
    replaces the snapshot on every mutation and creates a new
    ``PortfolioSelectors`` for it, cached values can never go stale.

    Args:
        data: The snapshot to query.
        at_risk_limit: Maximum at-risk cases returned.
        at_risk_recovery_percent: Recovery threshold for the at-risk list.
        recent_activity_limit: Maximum recent events returned.
    """

    def __init__(
        self,
        data: AppData,
        at_risk_limit: int = 5,
        at_risk_recovery_percent: float = 50.0,
        recent_activity_limit: int = 5,
    ) -> None:
        self._data = data
        self._at_risk_limit = at_risk_limit
        self._at_risk_recovery_percent = at_risk_recovery_percent
        self._recent_activity_limit = recent_activity_limit

    @property
    def data(self) -> AppData:
        return self._data

    def get_cases(self) -> list[Case]:
        return list(self._data.cases)

    def get_providers(self) -> list[Provider]:
        return list(self._data.providers)

    def get_attorneys(self) -> list[Attorney]:
        return list(self._data.attorneys)

    def get_events(self) -> list[CaseEvent]:
        return list(self._data.events)

    def get_case_by_id(self, case_id: str) -> Optional[Case]:
        return get_case_by_id(self._data, case_id)

    def get_provider_by_id(self, provider_id: str) -> Optional[Provider]:
        return get_provider_by_id(self._data, provider_id)

    def get_attorney_by_id(self, attorney_id: str) -> Optional[Attorney]:
        return get_attorney_by_id(self._data, attorney_id)

    def get_case_events(self, case_id: str) -> list[CaseEvent]:
        return get_case_events(self._data, case_id)

    @cached_property
    def _kpis(self) -> PortfolioKPIs:
        return get_portfolio_kpis(self._data)

    @cached_property
    def _at_risk(self) -> list[Case]:
        return get_at_risk_cases(
            self._data,
            limit=self._at_risk_limit,
            recovery_threshold=self._at_risk_recovery_percent,
        )

    @cached_property
    def _recent(self) -> list[CaseEvent]:
        return get_recent_activity(self._data, limit=self._recent_activity_limit)

    def get_portfolio_kpis(self) -> PortfolioKPIs:
        return self._kpis.model_copy()

    def get_at_risk_cases(self) -> list[Case]:
        return list(self._at_risk)

    def get_recent_activity(self) -> list[CaseEvent]:
        return list(self._recent)

    def filter_cases(self, **criteria) -> list[Case]:
        return filter_cases(self._data, **criteria)

    def filter_overview(self, view: OverviewFilter, today: Optional[date] = None) -> list[Case]:
        return filter_overview(self._data, view, today=today)

    def status_distribution(self) -> dict[str, int]:
        return status_distribution(self._data)

    def contract_type_counts(self) -> dict[str, int]:
        return contract_type_counts(self._data)

    def high_risk_count(self) -> int:
        return high_risk_count(self._data)

    def recovery_by_provider(self) -> list[ProviderRecovery]:
        return recovery_by_provider(self._data)

    def attorney_performance(self) -> list[AttorneyPerformance]:
        return attorney_performance(self._data)

    def invoice_status(self, case_id: str) -> InvoiceStatus:
        return invoice_status(self._data, case_id)

    def provider_display_name(self, provider_id: str) -> str:
        return provider_display_name(self._data, provider_id)

    def attorney_display_name(self, attorney_id: str) -> str:
        return attorney_display_name(self._data, attorney_id)
