"""Observer WebSocket: one live sampling session per connection.

Path: /ws/feed

On connect the handler consults the energy lookup once (falling back to a
fixed vector), pushes the energy mix with an initial ESG score and financial
impact, and creates an idle SessionScheduler.  The observer then drives the
session with inbound commands:

    {"type": "start"}   start sampling (repeat starts are ignored)
    {"type": "stop"}    stop sampling for good
    {"type": "stats"}   push a securityStats snapshot now
    "ping"              replied to with "pong"

Outbound frames are ``{"event": <name>, "data": {...}}``.  Disconnect ends
the session; a new connection always starts a fresh one.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from verdifi.adapters.energy import EnergyLookup, energy_info_or_fallback
from verdifi.adapters.sampler import SamplerAdapter
from verdifi.core.esg_engine import ESGEngine
from verdifi.domain.energy import EnergyInfo
from verdifi.domain.enums import FeedCommand, FeedEvent
from verdifi.domain.esg import MetricsVector
from verdifi.foundation.errors import ChannelClosedError
from verdifi.services.connection_manager import ConnectionManager
from verdifi.services.session_scheduler import SchedulerConfig, SessionScheduler
from verdifi.store.security_monitor import SecurityMonitor

logger = logging.getLogger(__name__)

SamplerFactory = Callable[[EnergyInfo], SamplerAdapter]

# Close code used when the Origin header is not allowed
_FORBIDDEN = 4403


class WebSocketChannel:
    """FeedChannel backed by a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._lock = asyncio.Lock()
        self._closed = False

    async def push(self, event: FeedEvent, data: dict[str, Any]) -> None:
        if self._closed:
            raise ChannelClosedError("observer channel already closed")
        await self.send_text(json.dumps({"event": event.value, "data": data}, default=str))

    async def send_text(self, message: str) -> None:
        async with self._lock:
            try:
                await self._websocket.send_text(message)
            except (WebSocketDisconnect, RuntimeError) as exc:
                self._closed = True
                raise ChannelClosedError(f"send failed: {exc}") from exc

    def close(self) -> None:
        self._closed = True


def parse_command(raw: str) -> FeedCommand | None:
    """Read an inbound frame as a command; JSON objects and bare words both work."""
    text = raw.strip()
    name: Any = text
    if text.startswith("{"):
        try:
            name = json.loads(text).get("type")
        except (ValueError, AttributeError):
            return None
    if not isinstance(name, str):
        return None
    try:
        return FeedCommand(name.strip().lower())
    except ValueError:
        return None


def create_feed_router(
    manager: ConnectionManager,
    engine: ESGEngine,
    monitor: SecurityMonitor,
    energy_lookup: EnergyLookup,
    sampler_factory: SamplerFactory,
    base_metrics: MetricsVector,
    scheduler_config: SchedulerConfig,
    allowed_origins: list[str] | None = None,
) -> APIRouter:
    """Factory that wires the observer endpoint to its collaborators.

    Args:
        manager: Registry of live sessions.
        engine: Shared ESG engine.
        monitor: Shared security monitor.
        energy_lookup: Consulted once per connection.
        sampler_factory: Builds a private sampler for each session.
        base_metrics: Social and governance baseline for score updates.
        scheduler_config: Loop timing shared by all sessions.
        allowed_origins: Browser origins allowed to connect; "*" allows any.
    """

    router = APIRouter()
    origins = set(allowed_origins or [])

    @router.websocket("/ws/feed")
    async def observer_feed(websocket: WebSocket) -> None:
        origin = websocket.headers.get("origin")
        if origin and "*" not in origins and origin not in origins:
            logger.warning("Observer connection denied for origin %s", origin)
            await websocket.close(code=_FORBIDDEN)
            return

        await websocket.accept()
        ip = websocket.client.host if websocket.client else "unknown"
        await monitor.monitor_connection(ip, websocket.headers.get("user-agent", ""))

        # ── Per-session collaborators ────────────────────────────────────
        energy = await energy_info_or_fallback(energy_lookup)
        metrics = base_metrics.model_copy(update={"renewable_energy": energy.renewable_percent})
        channel = WebSocketChannel(websocket)
        scheduler = SessionScheduler(
            channel=channel,
            sampler=sampler_factory(energy),
            engine=engine,
            base_metrics=metrics,
            config=scheduler_config,
            security_monitor=monitor,
        )
        await manager.register(scheduler)
        logger.info("Observer %s connected as session %s", ip, scheduler.session_id)

        try:
            await _push_initial(channel, engine, energy, metrics, scheduler_config.revenue)

            while True:
                raw = await websocket.receive_text()
                if raw.strip().lower() == "ping":
                    await channel.send_text("pong")
                    continue

                command = parse_command(raw)
                if command is FeedCommand.START:
                    scheduler.start()
                elif command is FeedCommand.STOP:
                    scheduler.stop()
                elif command is FeedCommand.STATS:
                    stats = await monitor.stats()
                    await channel.push(FeedEvent.SECURITY_STATS, stats.model_dump(mode="json"))
                else:
                    await channel.push(FeedEvent.ERROR, {"message": "Unknown command"})

        except (WebSocketDisconnect, ChannelClosedError):
            logger.info("Observer session %s disconnected", scheduler.session_id)
        finally:
            channel.close()
            await manager.release(scheduler.session_id)

    return router


async def _push_initial(
    channel: WebSocketChannel,
    engine: ESGEngine,
    energy: EnergyInfo,
    metrics: MetricsVector,
    revenue: float,
) -> None:
    """Energy mix plus the ESG figures implied by the grid alone."""
    await channel.push(FeedEvent.ENERGY_INFO, {
        **energy.model_dump(mode="json"),
        "renewable_percent": round(energy.renewable_percent, 2),
    })

    grid_metrics = metrics.model_copy(update={"carbon_footprint": energy.carbon_intensity})
    score = engine.score(grid_metrics)
    await channel.push(FeedEvent.ESG_SCORE, score.model_dump(mode="json"))

    # g/kWh / 1000 = tons per MWh consumed
    tons_per_mwh = energy.carbon_intensity / 1000
    impact = engine.financial_impact(score.overall, revenue, tons_per_mwh)
    await channel.push(FeedEvent.ESG_FINANCIAL_IMPACT, impact.model_dump(mode="json"))
