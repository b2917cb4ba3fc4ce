"""verdifi-live: live resource-usage, emission and ESG feed.

This is the application entry point.  It wires the SecurityMonitor,
ESGEngine, energy lookup, session registry and the HTTP / WebSocket
endpoints together.  Every shared component is built once here and passed
to the routers that need it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from verdifi.adapters.energy import EnergyLookup, StaticEnergyLookup
from verdifi.adapters.sampler import ProcessSampler
from verdifi.api.esg import create_esg_router
from verdifi.api.security import create_security_router
from verdifi.api.ws_feed import SamplerFactory, create_feed_router
from verdifi.config import Settings, settings
from verdifi.core.esg_engine import ESGEngine, FinancialConstants
from verdifi.domain.energy import EnergyInfo
from verdifi.domain.esg import MetricsVector
from verdifi.services.connection_manager import ConnectionManager
from verdifi.services.session_scheduler import SchedulerConfig
from verdifi.store.security_monitor import SecurityMonitor

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def _base_metrics(cfg: Settings) -> MetricsVector:
    return MetricsVector(
        waste_reduction=cfg.default_waste_reduction,
        employee_satisfaction=cfg.default_employee_satisfaction,
        diversity=cfg.default_diversity,
        community_impact=cfg.default_community_impact,
        board_independence=cfg.default_board_independence,
        transparency=cfg.default_transparency,
        ethics_compliance=cfg.default_ethics_compliance,
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    energy_lookup: EnergyLookup | None = None,
    sampler_factory: SamplerFactory | None = None,
    monitor: SecurityMonitor | None = None,
) -> FastAPI:
    """Build the application.  Collaborators can be swapped for tests."""
    cfg = app_settings or settings

    # ── Shared state ─────────────────────────────────────────────────────

    security_monitor = monitor or SecurityMonitor(
        max_events=cfg.security_max_events,
        threat_window=cfg.security_threat_window,
        stats_window=cfg.security_stats_window,
        connection_burst_threshold=cfg.connection_burst_threshold,
    )
    engine = ESGEngine(constants=FinancialConstants(carbon_price_per_ton=cfg.carbon_price_per_ton))
    manager = ConnectionManager()
    lookup = energy_lookup or StaticEnergyLookup(cfg.region)

    def default_sampler(energy: EnergyInfo) -> ProcessSampler:
        return ProcessSampler(carbon_intensity=energy.carbon_intensity, tdp_watts=cfg.cpu_tdp_watts)

    scheduler_config = SchedulerConfig(
        settle_seconds=cfg.settle_seconds,
        pause_seconds=cfg.pause_seconds,
        score_every=cfg.score_every,
        revenue=cfg.revenue_baseline,
        include_error_details=cfg.debug,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("%s ready (region=%s)", cfg.app_name, cfg.region)
        yield
        await manager.shutdown()
        logger.info("%s shut down", cfg.app_name)

    # ── App ──────────────────────────────────────────────────────────────

    app = FastAPI(
        title=cfg.app_name,
        description="Live resource usage, emissions and ESG scoring feed",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        try:
            response = await call_next(request)
        except Exception:
            await security_monitor.monitor_api_request(target, request.method, 500)
            raise
        await security_monitor.monitor_api_request(target, request.method, response.status_code)
        return response

    # ── Routes ───────────────────────────────────────────────────────────

    app.include_router(create_feed_router(
        manager,
        engine,
        security_monitor,
        lookup,
        sampler_factory or default_sampler,
        _base_metrics(cfg),
        scheduler_config,
        allowed_origins=cfg.allowed_origins,
    ))
    app.include_router(create_esg_router(engine))
    app.include_router(create_security_router(security_monitor))

    # ── Health ───────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "active_sessions": manager.active_count,
            "running_sessions": manager.running_count,
            "sessions": manager.summaries(),
            "threat_level": (await security_monitor.threat_level()).value,
            "security_health_score": await security_monitor.health_score(),
        }

    app.state.security_monitor = security_monitor
    app.state.connection_manager = manager
    return app


app = create_app()
