"""REST endpoints exposing SecurityMonitor snapshots.

Paths:
    GET /api/security/stats
    GET /api/security/events?limit=N    newest first, 1 ≤ N ≤ 1000
    GET /api/security/health
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from verdifi.store.security_monitor import SecurityMonitor


def create_security_router(monitor: SecurityMonitor) -> APIRouter:
    """Factory that wires the status endpoints to the shared monitor."""

    router = APIRouter(prefix="/api/security", tags=["security"])

    @router.get("/stats")
    async def stats() -> dict[str, Any]:
        return (await monitor.stats()).model_dump(mode="json")

    @router.get("/events")
    async def events(limit: int = Query(10, ge=1, le=1000)) -> dict[str, Any]:
        recent = await monitor.recent_events(limit)
        return {
            "events": [e.model_dump(mode="json") for e in recent],
            "count": len(recent),
        }

    @router.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "health_score": await monitor.health_score(),
            "threat_level": (await monitor.threat_level()).value,
        }

    return router
