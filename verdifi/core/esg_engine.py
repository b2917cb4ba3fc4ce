"""ESGEngine: deterministic composite scoring and financial modelling.

Design principles:
    1. Pure functions: every method maps its inputs to a fresh value object.
    2. No side effects, no state mutation, no I/O.
    3. Constants are explicit frozen dataclasses and can be overridden.
    4. Invalid numeric inputs are rejected loudly with ValueError.

Composite score:
    environmental (max 40) = max(0, 15 - footprint / 100)
                           + renewable / 100 * 15
                           + waste / 100 * 10
    social        (max 30) = (satisfaction + diversity + community) / 100 * 10
    governance    (max 30) = (independence + transparency + ethics) / 100 * 10
    overall                = round_half_up(environmental + social + governance)

    Each pillar also reports its own round_half_up points, as does every
    breakdown entry.

Financial impact of an overall score s:
    premium            = s / 100 * 0.15
    adjusted_revenue   = revenue * (1 + premium)
    carbon_cost        = tons * carbon_price
    potential_savings  = carbon_cost * 0.30
    adjusted_return    = 0.08 + s / 100 * 0.03
    cost_of_capital    = 0.10 - s / 100 * 0.02
    valuation_multiple = 10 + s / 100 * 2
    enterprise_value   = adjusted_revenue * valuation_multiple
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from verdifi.domain.enums import RiskLevel
from verdifi.domain.esg import (
    CarbonFinancialImpact,
    CompositeScore,
    FinancialImpact,
    FinancialImpactMetrics,
    InvestmentRecommendation,
    MetricsVector,
    PillarScore,
    PortfolioHolding,
    PortfolioSummary,
    RiskAssessment,
)


@dataclass(frozen=True)
class PillarWeights:
    """Point caps for each pillar and its sub-metrics."""

    climate: float = 15.0
    renewable: float = 15.0
    waste: float = 10.0
    social_each: float = 10.0
    governance_each: float = 10.0
    # Footprint units that cost one climate point
    footprint_per_point: float = 100.0

    @property
    def environmental_max(self) -> float:
        return self.climate + self.renewable + self.waste

    @property
    def social_max(self) -> float:
        return self.social_each * 3

    @property
    def governance_max(self) -> float:
        return self.governance_each * 3


@dataclass(frozen=True)
class FinancialConstants:
    """Market assumptions behind the financial-impact model."""

    max_premium: float = 0.15
    carbon_price_per_ton: float = 50.0
    reduction_potential: float = 0.30
    base_return: float = 0.08
    max_return_uplift: float = 0.03
    base_cost_of_capital: float = 0.10
    max_capital_cost_reduction: float = 0.02
    base_multiple: float = 10.0
    max_multiple_uplift: float = 2.0

    # Recommendation model
    cost_per_point_ratio: float = 0.02
    roi_per_full_gap: float = 0.5
    max_risk_reduction: float = 0.15

    # Renewable transition model
    renewable_premium: float = 0.15


_RISK_LADDER: tuple[tuple[int, RiskLevel, int], ...] = (
    (80, RiskLevel.LOW, 20),
    (60, RiskLevel.MEDIUM, 40),
    (40, RiskLevel.HIGH, 60),
)

_RISK_RECOMMENDATIONS: dict[RiskLevel, str] = {
    RiskLevel.LOW: "Maintain current ESG standards",
    RiskLevel.MEDIUM: "Focus on improving weak ESG areas",
    RiskLevel.HIGH: "Immediate ESG improvement needed",
    RiskLevel.CRITICAL: "Urgent ESG remediation required",
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, as dashboards expect."""
    return int(math.floor(value + 0.5))


def _money(value: float) -> float:
    return round(value, 2)


def _require(name: str, value: float, *, upper: float | None = None) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value!r}")
    if upper is not None and value > upper:
        raise ValueError(f"{name} must be at most {upper}, got {value!r}")
    return float(value)


class ESGEngine:
    """Stateless ESG scorer and financial model.

    The engine holds only its constants; calling any method twice with the
    same inputs returns equal results.
    """

    def __init__(
        self,
        weights: PillarWeights | None = None,
        constants: FinancialConstants | None = None,
    ) -> None:
        self._weights = weights or PillarWeights()
        self._constants = constants or FinancialConstants()

    # ── Composite score ──────────────────────────────────────────────────

    def score(self, metrics: MetricsVector) -> CompositeScore:
        """Compute the composite score for *metrics*."""
        w = self._weights

        climate = max(0.0, w.climate - metrics.carbon_footprint / w.footprint_per_point)
        renewable = metrics.renewable_energy / 100 * w.renewable
        waste = metrics.waste_reduction / 100 * w.waste
        environmental = climate + renewable + waste

        employee = metrics.employee_satisfaction / 100 * w.social_each
        diversity = metrics.diversity / 100 * w.social_each
        community = metrics.community_impact / 100 * w.social_each
        social = employee + diversity + community

        board = metrics.board_independence / 100 * w.governance_each
        transparency = metrics.transparency / 100 * w.governance_each
        ethics = metrics.ethics_compliance / 100 * w.governance_each
        governance = board + transparency + ethics

        overall = round_half_up(environmental + social + governance)

        return CompositeScore(
            overall=max(0, min(overall, 100)),
            environmental=self._pillar(environmental, w.environmental_max),
            social=self._pillar(social, w.social_max),
            governance=self._pillar(governance, w.governance_max),
            breakdown={
                "environmental": {
                    "carbon_footprint": round_half_up(climate),
                    "renewable_energy": round_half_up(renewable),
                    "waste_reduction": round_half_up(waste),
                },
                "social": {
                    "employee_satisfaction": round_half_up(employee),
                    "diversity": round_half_up(diversity),
                    "community_impact": round_half_up(community),
                },
                "governance": {
                    "board_independence": round_half_up(board),
                    "transparency": round_half_up(transparency),
                    "ethics_compliance": round_half_up(ethics),
                },
            },
        )

    @staticmethod
    def _pillar(raw: float, max_points: float) -> PillarScore:
        # A zero pillar displays as zero rather than dividing by its own total
        if raw <= 0 or max_points <= 0:
            normalized = 0.0
        else:
            normalized = min(raw / max_points * 100, 100.0)
        return PillarScore(
            score=round(raw, 2),
            points=round_half_up(raw),
            max_points=max_points,
            normalized=round(normalized, 2),
        )

    # ── Financial impact ─────────────────────────────────────────────────

    def financial_impact(
        self,
        overall: float,
        revenue: float,
        emissions_tons: float,
    ) -> FinancialImpact:
        """Derive the financial bundle for an overall score on a revenue baseline.

        Raises:
            ValueError: If any input is non-finite, negative, or the score
                exceeds 100.
        """
        overall = _require("overall", overall, upper=100.0)
        revenue = _require("revenue", revenue)
        emissions_tons = _require("emissions_tons", emissions_tons)
        c = self._constants
        ratio = overall / 100

        premium = ratio * c.max_premium
        adjusted_revenue = revenue * (1 + premium)

        carbon_cost = emissions_tons * c.carbon_price_per_ton
        potential_savings = carbon_cost * c.reduction_potential

        return_uplift = ratio * c.max_return_uplift
        adjusted_return = c.base_return + return_uplift

        capital_reduction = ratio * c.max_capital_cost_reduction
        cost_of_capital = c.base_cost_of_capital - capital_reduction

        multiple = c.base_multiple + ratio * c.max_multiple_uplift
        enterprise_value = adjusted_revenue * multiple

        revenue_impact = (adjusted_revenue - revenue) / revenue * 100 if revenue else 0.0

        return FinancialImpact(
            esg_premium_pct=_money(premium * 100),
            adjusted_revenue=_money(adjusted_revenue),
            carbon_cost=_money(carbon_cost),
            potential_savings=_money(potential_savings),
            adjusted_return_pct=_money(adjusted_return * 100),
            adjusted_cost_of_capital_pct=_money(cost_of_capital * 100),
            valuation_multiple=_money(multiple),
            enterprise_value=_money(enterprise_value),
            metrics=FinancialImpactMetrics(
                revenue_impact_pct=_money(revenue_impact),
                cost_savings=_money(potential_savings),
                return_improvement_pct=_money(return_uplift * 100),
                capital_cost_reduction_pct=_money(capital_reduction * 100),
            ),
        )

    # ── Portfolio ────────────────────────────────────────────────────────

    def portfolio(self, holdings: Iterable[PortfolioHolding]) -> PortfolioSummary:
        """Value-weighted ESG figures across *holdings*."""
        holdings = list(holdings)
        total_value = 0.0
        weighted_esg = 0.0
        weighted_carbon = 0.0
        pillars = {"environmental": 0.0, "social": 0.0, "governance": 0.0}

        for h in holdings:
            total_value += h.value
            weighted_esg += h.esg_score * h.value
            if h.carbon_intensity:
                weighted_carbon += h.carbon_intensity * h.value
            for name in pillars:
                pillars[name] += (getattr(h, name) or 0.0) * h.value

        if total_value <= 0:
            return PortfolioSummary(
                portfolio_score=0,
                weighted_average=0.0,
                carbon_intensity=0.0,
                total_value=_money(total_value),
                breakdown={name: 0.0 for name in pillars},
                holding_count=len(holdings),
            )

        average = weighted_esg / total_value
        return PortfolioSummary(
            portfolio_score=round_half_up(average),
            weighted_average=average,
            carbon_intensity=_money(weighted_carbon / total_value),
            total_value=_money(total_value),
            breakdown={name: _money(v / total_value) for name, v in pillars.items()},
            holding_count=len(holdings),
        )

    # ── Recommendation ───────────────────────────────────────────────────

    def recommendation(
        self,
        current: MetricsVector,
        target: MetricsVector,
        investment_amount: float,
    ) -> InvestmentRecommendation:
        """Cost and expected return of moving from *current* to *target* metrics."""
        investment_amount = _require("investment_amount", investment_amount)
        c = self._constants

        current_score = self.score(current).overall
        target_score = self.score(target).overall
        gap = target_score - current_score

        required = abs(gap * investment_amount * c.cost_per_point_ratio)
        roi_multiplier = 1 + (gap / 100) * c.roi_per_full_gap
        expected_return = investment_amount * roi_multiplier
        gain = expected_return - investment_amount

        return InvestmentRecommendation(
            current_score=current_score,
            target_score=target_score,
            score_gap=gap,
            required_investment=_money(required),
            expected_return=_money(expected_return),
            expected_roi_pct=_money((roi_multiplier - 1) * 100),
            risk_reduction_pct=_money(gap / 100 * c.max_risk_reduction * 100),
            payback_period=round(required / gain, 1) if gain > 0 else None,
            recommendation=(
                "Invest in ESG improvements" if gap > 0 else "Maintain current ESG performance"
            ),
        )

    # ── Carbon cost ──────────────────────────────────────────────────────

    def carbon_financial_impact(
        self,
        emissions_tons: float,
        electricity_cost: float,
    ) -> CarbonFinancialImpact:
        """Carbon pricing exposure and the economics of a renewable transition."""
        emissions_tons = _require("emissions_tons", emissions_tons)
        electricity_cost = _require("electricity_cost", electricity_cost)
        c = self._constants

        carbon_cost = emissions_tons * c.carbon_price_per_ton
        savings = carbon_cost * c.reduction_potential
        transition_cost = electricity_cost * c.renewable_premium
        net_savings = electricity_cost * c.reduction_potential - transition_cost

        monthly_savings = savings / 12
        return CarbonFinancialImpact(
            current_carbon_cost=_money(carbon_cost),
            potential_savings=_money(savings),
            renewable_transition_cost=_money(transition_cost),
            net_savings=_money(net_savings),
            payback_period_months=(
                round(transition_cost / monthly_savings, 1) if monthly_savings > 0 else None
            ),
            roi_pct=_money(net_savings / transition_cost * 100) if transition_cost > 0 else None,
        )

    # ── Risk ─────────────────────────────────────────────────────────────

    def assess_risk(self, score: CompositeScore) -> RiskAssessment:
        """Map a composite score onto a risk band with contributing factors."""
        level, risk_score = RiskLevel.CRITICAL, 80
        for floor, band, band_score in _RISK_LADDER:
            if score.overall >= floor:
                level, risk_score = band, band_score
                break

        factors: list[str] = []
        if score.environmental.score < 30:
            factors.append("Environmental compliance risk")
        if score.social.score < 20:
            factors.append("Social responsibility risk")
        if score.governance.score < 20:
            factors.append("Governance risk")

        return RiskAssessment(
            risk_level=level,
            risk_score=risk_score,
            risk_factors=factors,
            recommendation=_RISK_RECOMMENDATIONS[level],
        )
