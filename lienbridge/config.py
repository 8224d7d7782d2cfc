"""
Dashboard Configuration -- Data Sources, Cache, and Rule Thresholds.

Every deployment points the case store at its own seed dataset, decides
whether the session cache lives in memory or on disk, and may or may not
have access to the external insight service.  This module encodes those
choices as validated pydantic objects so that a misconfigured deployment
fails at startup rather than halfway through a session.

The thresholds used by the rule-based insight engine and the action
recommendation engine live here too.  The defaults reproduce the
documented portfolio rules exactly; deployments only change them
deliberately.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


DEFAULT_CACHE_KEY = "lienbridge-data"


# ---------------------------------------------------------------------------
# Insight thresholds
# ---------------------------------------------------------------------------

class InsightThresholds(BaseModel):
    """Thresholds for the four rule-based case insights.

    ``high_risk_recovery_percent`` applies to the high-variance rule,
    ``long_tail_days`` to the long-tail rule and ``baseline_gap_points`` to
    the performance-gap rule.  The negotiation rule has no threshold.
    """

    high_risk_recovery_percent: float = Field(
        default=50.0,
        ge=0,
        le=100,
        description="High-tier cases predicted below this recovery are flagged as a risk.",
    )
    long_tail_days: float = Field(
        default=240.0,
        gt=0,
        description="Cases predicted to settle after more than this many days are long-tail.",
    )
    baseline_gap_points: float = Field(
        default=15.0,
        ge=0,
        description=(
            "Percentage points below the injury-type baseline beyond which a "
            "performance-gap risk is reported."
        ),
    )


# ---------------------------------------------------------------------------
# Action policy
# ---------------------------------------------------------------------------

class ActionPolicy(BaseModel):
    """Bounds for the next-best-action feed."""

    max_actions: int = Field(
        default=5,
        gt=0,
        description=(
            "Maximum number of actions in the feed.  The engine stops walking "
            "the case list once this many actions are collected."
        ),
    )
    notice_age_days: int = Field(
        default=365,
        ge=0,
        description="MedPayRez cases older than this many days get an attorney notice.",
    )


# ---------------------------------------------------------------------------
# Dashboard configuration
# ---------------------------------------------------------------------------

class DashboardConfig(BaseModel):
    """Complete configuration for one dashboard deployment."""

    seed_source: str = Field(
        default="data/lienbridge-data.json",
        min_length=1,
        description=(
            "Where the seed dataset is fetched from: a local ``.json``/``.yaml`` "
            "file path or an ``http(s)://`` URL.  The seed is read-only."
        ),
    )
    seed_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout for HTTP seed sources.",
    )
    cache_dir: Optional[str] = Field(
        default=None,
        description=(
            "Directory holding the session cache.  ``None`` keeps the cache in "
            "process memory, so it lasts exactly as long as the session."
        ),
    )
    cache_key: str = Field(
        default=DEFAULT_CACHE_KEY,
        min_length=1,
        description="Key under which the dataset snapshot is cached.",
    )
    insight_service_url: Optional[str] = Field(
        default=None,
        description="Endpoint of the external insight/strategy service, if any.",
    )
    ai_insights_enabled: bool = Field(
        default=False,
        description="Call the insight service for case insights.",
    )
    ai_drafts_enabled: bool = Field(
        default=False,
        description="Call the insight service to draft action correspondence.",
    )
    insight_timeout_seconds: float = Field(
        default=12.0,
        gt=0,
        description=(
            "Upper bound on a single insight-service call.  Exceeding it is a "
            "recoverable failure; the deterministic path is used instead."
        ),
    )
    insight_thresholds: InsightThresholds = Field(default_factory=InsightThresholds)
    action_policy: ActionPolicy = Field(default_factory=ActionPolicy)
    at_risk_limit: int = Field(default=5, gt=0)
    at_risk_recovery_percent: float = Field(
        default=50.0,
        ge=0,
        le=100,
        description="Cases predicted below this recovery are listed as at risk.",
    )
    recent_activity_limit: int = Field(default=5, gt=0)

    @field_validator("insight_service_url")
    @classmethod
    def validate_service_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"insight_service_url must be an http(s) URL, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG = DashboardConfig()
"""Built-in configuration: local seed file, in-memory cache, AI disabled."""


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def load_config_from_yaml(path: str | Path) -> DashboardConfig:
    """Load a dashboard configuration from a YAML file.

    The YAML file should contain a top-level ``dashboard`` mapping::

        dashboard:
          seed_source: "data/lienbridge-data.json"
          cache_dir: ".session"
          insight_thresholds:
            long_tail_days: 240

    Args:
        path: Path to the YAML file.

    Returns:
        A validated ``DashboardConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML structure is invalid.
        pydantic.ValidationError: If any setting fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or "dashboard" not in raw:
        raise ValueError("YAML file must contain a top-level 'dashboard' mapping.")

    settings = raw["dashboard"]
    if settings is None:
        return DashboardConfig()
    if not isinstance(settings, dict):
        raise ValueError("'dashboard' must be a mapping of settings.")

    return DashboardConfig(**settings)
