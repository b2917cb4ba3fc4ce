"""ESG domain models: inputs and derived outputs of the composite scorer.

Everything here is a value object.  Scores and financial figures are
recomputed from scratch on every request and never mutated in place.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from verdifi.domain.enums import RiskLevel

_PERCENT = {"ge": 0.0, "le": 100.0}


# ── Inputs ───────────────────────────────────────────────────────────────────

class MetricsVector(BaseModel):
    """Named ESG input metrics.

    ``carbon_footprint`` is an intensity-like figure and is not capped at 100;
    every other field is a percentage.
    """

    carbon_footprint: float = Field(0.0, ge=0.0, description="Carbon intensity or footprint figure")
    renewable_energy: float = Field(0.0, **_PERCENT)
    waste_reduction: float = Field(0.0, **_PERCENT)
    employee_satisfaction: float = Field(0.0, **_PERCENT)
    diversity: float = Field(0.0, **_PERCENT)
    community_impact: float = Field(0.0, **_PERCENT)
    board_independence: float = Field(0.0, **_PERCENT)
    transparency: float = Field(0.0, **_PERCENT)
    ethics_compliance: float = Field(0.0, **_PERCENT)

    model_config = {"frozen": True, "allow_inf_nan": False}


class PortfolioHolding(BaseModel):
    """One position in an investment portfolio."""

    value: float = Field(..., ge=0.0)
    esg_score: float = Field(..., **_PERCENT)
    carbon_intensity: Optional[float] = Field(None, ge=0.0)
    environmental: Optional[float] = Field(None, ge=0.0)
    social: Optional[float] = Field(None, ge=0.0)
    governance: Optional[float] = Field(None, ge=0.0)

    model_config = {"frozen": True, "allow_inf_nan": False}


# ── Composite score ──────────────────────────────────────────────────────────

class PillarScore(BaseModel):
    """One pillar's points against its maximum weight."""

    score: float = Field(..., description="Raw pillar points, rounded to 2 dp")
    points: int = Field(..., ge=0, description="Pillar points rounded half up")
    max_points: float
    normalized: float = Field(..., ge=0.0, le=100.0, description="Points as a percentage of max_points")

    model_config = {"frozen": True}


class CompositeScore(BaseModel):
    """Overall 0–100 ESG rating with pillar sub-scores and sub-metric breakdown."""

    overall: int = Field(..., ge=0, le=100)
    environmental: PillarScore
    social: PillarScore
    governance: PillarScore
    breakdown: dict[str, dict[str, int]]

    model_config = {"frozen": True}


# ── Financial outputs ────────────────────────────────────────────────────────

class FinancialImpactMetrics(BaseModel):
    revenue_impact_pct: float
    cost_savings: float
    return_improvement_pct: float
    capital_cost_reduction_pct: float

    model_config = {"frozen": True}


class FinancialImpact(BaseModel):
    """Financial effect of an overall ESG score on a revenue baseline."""

    esg_premium_pct: float
    adjusted_revenue: float
    carbon_cost: float
    potential_savings: float
    adjusted_return_pct: float
    adjusted_cost_of_capital_pct: float
    valuation_multiple: float
    enterprise_value: float
    metrics: FinancialImpactMetrics

    model_config = {"frozen": True}


class PortfolioSummary(BaseModel):
    portfolio_score: int
    weighted_average: float
    carbon_intensity: float
    total_value: float
    breakdown: dict[str, float]
    holding_count: int

    model_config = {"frozen": True}


class InvestmentRecommendation(BaseModel):
    current_score: int
    target_score: int
    score_gap: int
    required_investment: float
    expected_return: float
    expected_roi_pct: float
    risk_reduction_pct: float
    payback_period: Optional[float] = Field(
        None, description="Years to recover the investment; None when it never pays back"
    )
    recommendation: str

    model_config = {"frozen": True}


class CarbonFinancialImpact(BaseModel):
    current_carbon_cost: float
    potential_savings: float
    renewable_transition_cost: float
    net_savings: float
    payback_period_months: Optional[float] = None
    roi_pct: Optional[float] = None

    model_config = {"frozen": True}


class RiskAssessment(BaseModel):
    risk_level: RiskLevel
    risk_score: int
    risk_factors: list[str]
    recommendation: str

    model_config = {"frozen": True}
