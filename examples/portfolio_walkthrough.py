"""
Portfolio Walkthrough: One Session on the Case Dashboard
========================================================

This script exercises the LienBridge case store and analytics core against
the synthetic dataset in ``examples/seed_data.json``.  No real patient data
is used; patient aliases are de-identified placeholders.

Steps demonstrated:
  1. Load dashboard configuration from YAML
  2. Activate the case store from the seed dataset
  3. Read portfolio KPIs, at-risk cases and recent activity
  4. Generate rule-based insights for a case
  5. Build the next-best-action feed and draft correspondence
  6. Record an action and open a new case through intake
  7. Reset the session back to the seed

Usage:
    python -m examples.portfolio_walkthrough
    # or: python examples/portfolio_walkthrough.py
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lienbridge.actions import generate_actions, record_action
from lienbridge.config import DashboardConfig, load_config_from_yaml
from lienbridge.insight_client import build_insight_client, draft_action, generate_case_insight
from lienbridge.intake import IntakeForm, create_intake_case
from lienbridge.models import ContractType
from lienbridge.selectors import OverviewFilter
from lienbridge.store import build_store


def _banner(text: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    _banner("LienBridge Portfolio Walkthrough")
    print("All data in this demo is synthetic.\n")

    # ------------------------------------------------------------------
    # Step 1: Load configuration
    # ------------------------------------------------------------------
    _banner("Step 1: Load Dashboard Configuration")

    here = Path(__file__).parent
    sample_yaml = here / "dashboard.yaml"
    if sample_yaml.exists():
        config = load_config_from_yaml(sample_yaml)
        print(f"Loaded configuration from {sample_yaml.name}")
    else:
        config = DashboardConfig()
        print("Using built-in defaults")
    config = config.model_copy(update={"seed_source": str(here / "seed_data.json")})
    print(f"  Seed source: {config.seed_source}")
    print(f"  AI insights enabled: {config.ai_insights_enabled}")

    # ------------------------------------------------------------------
    # Step 2: Activate the store
    # ------------------------------------------------------------------
    _banner("Step 2: Activate the Case Store")

    store = build_store(config)
    data = store.load()
    if data is None:
        print(f"Load failed: {store.error}")
        return
    print(f"Loaded {len(data.providers)} providers, {len(data.attorneys)} attorneys, "
          f"{len(data.cases)} cases, {len(data.events)} events")

    # ------------------------------------------------------------------
    # Step 3: Portfolio view
    # ------------------------------------------------------------------
    _banner("Step 3: Portfolio Overview")

    view = store.selectors()
    kpis = view.get_portfolio_kpis()
    print(f"Total outstanding: ${kpis.total_outstanding:,.2f}")
    print(f"Active cases:      {kpis.active_cases}")
    print(f"Avg recovery:      {kpis.avg_recovery:.1f}%")
    print(f"Avg time:          {kpis.avg_time:.0f} days")

    print("\nAt-risk cases:")
    for case in view.get_at_risk_cases():
        print(f"  {case.id}  {case.patient_alias:<14} {case.predicted_recovery_percent:>5.1f}%  "
              f"{case.risk_tier.value}")

    print("\nRecent activity:")
    for event in view.get_recent_activity():
        print(f"  {event.timestamp:%Y-%m-%d %H:%M}  {event.case_id}  {event.type.value}")

    print(f"\nHigh-risk view: {[c.id for c in view.filter_overview(OverviewFilter.HIGH_RISK)]}")
    print(f"Contract mix:   {view.contract_type_counts()}")

    # ------------------------------------------------------------------
    # Step 4: Case insights
    # ------------------------------------------------------------------
    _banner("Step 4: Case Insights")

    case = view.get_case_by_id("case_002")
    client = build_insight_client(config)
    result = generate_case_insight(
        case,
        view.get_case_events(case.id),
        client=client,
        thresholds=config.insight_thresholds,
    )
    print(f"Insights for {case.id} (source: {result.source})")
    for insight in result.rule_insights:
        print(f"  [{insight.kind.value}] {insight.message}")

    # ------------------------------------------------------------------
    # Step 5: Action feed and drafts
    # ------------------------------------------------------------------
    _banner("Step 5: Next-Best-Action Feed")

    actions = generate_actions(view.get_cases(), config.action_policy)
    for item in actions:
        print(f"  [{item.priority.value:<6}] {item.case_id}: {item.action.value}")
        print(f"           {item.reason}")

    if actions:
        draft = draft_action(actions[0], client=build_insight_client(config, ai_drafts=True))
        print(f"\nDraft for {actions[0].case_id}:\n")
        print(draft.text)

    # ------------------------------------------------------------------
    # Step 6: Record an action and open a case
    # ------------------------------------------------------------------
    _banner("Step 6: Record Action and Intake")

    if actions:
        event = record_action(store, actions[0])
        print(f"Logged {event.type.value} for {event.case_id}")

    new_case = create_intake_case(store, IntakeForm(
        patient_alias="Patient F-02",
        injury_type="Soft Tissue",
        state="CA",
        provider_id="prov_1",
        attorney_id="att_3",
        billed_amount=8200,
        lien_amount=6900,
        contract_type=ContractType.NO_CONTRACT,
    ))
    print(f"Opened {new_case.id} ({new_case.risk_tier.value} risk)")
    print(f"Timeline: {[e.type.value for e in store.selectors().get_case_events(new_case.id)]}")
    print(f"Snapshot version: {store.version}")

    # ------------------------------------------------------------------
    # Step 7: Reset
    # ------------------------------------------------------------------
    _banner("Step 7: Reset Session")

    store.reset()
    print(f"Cases after reset: {len(store.data.cases)}")
    print(json.dumps(store.selectors().status_distribution(), indent=2))


if __name__ == "__main__":
    main()
