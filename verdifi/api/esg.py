"""REST endpoints for on-demand ESG calculations.

Paths (all POST, JSON bodies):
    /api/esg/calculate          composite score for a metrics vector
    /api/esg/financial-impact   financial bundle for a score
    /api/esg/portfolio          value-weighted portfolio figures
    /api/esg/recommendation     cost of moving between two metric sets
    /api/esg/carbon-impact      carbon pricing and renewable transition
    /api/esg/risk               risk band for a metrics vector

Bodies are validated by pydantic at the boundary; engine ValueErrors are
returned as HTTP 400.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from verdifi.core.esg_engine import ESGEngine
from verdifi.domain.esg import MetricsVector, PortfolioHolding

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Request bodies ───────────────────────────────────────────────────────────

class CalculateRequest(BaseModel):
    metrics: MetricsVector = Field(default_factory=MetricsVector)


class FinancialImpactRequest(BaseModel):
    esg_score: float = 50.0
    revenue: float = 1_000_000.0
    carbon_emissions: float = Field(100.0, description="Annual emissions in tons CO2e")


class PortfolioRequest(BaseModel):
    investments: list[PortfolioHolding] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    current_metrics: MetricsVector = Field(default_factory=MetricsVector)
    target_metrics: MetricsVector = Field(default_factory=MetricsVector)
    investment_amount: float = 100_000.0


class CarbonImpactRequest(BaseModel):
    carbon_emissions: float = 100.0
    electricity_cost: float = 50_000.0


def _run(compute: Callable[[], T]) -> T:
    try:
        return compute()
    except ValueError as exc:
        logger.info("Rejected ESG request: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_esg_router(engine: ESGEngine) -> APIRouter:
    """Factory that wires the ESG endpoints to a concrete engine."""

    router = APIRouter(prefix="/api/esg", tags=["esg"])

    @router.post("/calculate")
    async def calculate(body: CalculateRequest) -> dict[str, Any]:
        score = _run(lambda: engine.score(body.metrics))
        return {"success": True, "data": score.model_dump(mode="json")}

    @router.post("/financial-impact")
    async def financial_impact(body: FinancialImpactRequest) -> dict[str, Any]:
        impact = _run(lambda: engine.financial_impact(body.esg_score, body.revenue, body.carbon_emissions))
        return {"success": True, "data": impact.model_dump(mode="json")}

    @router.post("/portfolio")
    async def portfolio(body: PortfolioRequest) -> dict[str, Any]:
        summary = _run(lambda: engine.portfolio(body.investments))
        return {"success": True, "data": summary.model_dump(mode="json")}

    @router.post("/recommendation")
    async def recommendation(body: RecommendationRequest) -> dict[str, Any]:
        rec = _run(lambda: engine.recommendation(
            body.current_metrics, body.target_metrics, body.investment_amount
        ))
        return {"success": True, "data": rec.model_dump(mode="json")}

    @router.post("/carbon-impact")
    async def carbon_impact(body: CarbonImpactRequest) -> dict[str, Any]:
        impact = _run(lambda: engine.carbon_financial_impact(body.carbon_emissions, body.electricity_cost))
        return {"success": True, "data": impact.model_dump(mode="json")}

    @router.post("/risk")
    async def risk(body: CalculateRequest) -> dict[str, Any]:
        score = _run(lambda: engine.score(body.metrics))
        return {
            "success": True,
            "data": {
                "esg_score": score.model_dump(mode="json"),
                "risk": engine.assess_risk(score).model_dump(mode="json"),
            },
        }

    return router
