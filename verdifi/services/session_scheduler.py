"""SessionScheduler: one cooperative sampling loop per observer connection.

Lifecycle:  idle → running → stopped
    - idle:    created on connect, nothing sampled yet
    - running: the loop task alternates measure and pause phases
    - stopped: terminal; reached on stop, disconnect, or a closed channel

Cycle:
    begin() → settle → end() → accumulate + push "measurement"
                               (or push "error" and leave state untouched)
            → pause (woken early by stop) → check stop flag → repeat

Every ``score_every`` successful cycles the composite score and financial
impact are recomputed from the session's current total and pushed as
"scoreUpdate", followed by "securityStats" when a monitor is attached.

Cancellation is cooperative.  A window that is open when stop arrives is
still closed with end(), but its sample is discarded, so no measurement is
pushed once the session reports ``stopped``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

from verdifi.adapters.sampler import SamplerAdapter
from verdifi.core.esg_engine import ESGEngine
from verdifi.domain.enums import FeedEvent, SessionPhase
from verdifi.domain.esg import MetricsVector
from verdifi.domain.session import SessionState, accumulate
from verdifi.foundation.errors import ChannelClosedError, SamplingError
from verdifi.store.security_monitor import SecurityMonitor

logger = logging.getLogger(__name__)

# Footprint points per ton of accumulated emission fed into the scorer
FOOTPRINT_PER_TON = 100.0


class FeedChannel(Protocol):
    """Send-only outbound channel to one observer."""

    async def push(self, event: FeedEvent, data: dict[str, Any]) -> None:
        """Deliver one named payload.

        Raises:
            ChannelClosedError: If the observer is gone.
        """
        ...


@dataclass(frozen=True)
class SchedulerConfig:
    """Timing and reporting knobs for a session loop."""

    settle_seconds: float = 1.0
    pause_seconds: float = 1.0
    score_every: int = 5
    revenue: float = 1_000_000.0
    include_error_details: bool = False

    def __post_init__(self) -> None:
        if self.settle_seconds < 0 or self.pause_seconds < 0:
            raise ValueError("settle_seconds and pause_seconds must be non-negative")
        if self.score_every < 1:
            raise ValueError("score_every must be at least 1")


class SessionScheduler:
    """Owns one session's state and drives its sampling loop.

    Args:
        channel: Outbound push channel for this observer only.
        sampler: Measurement capability private to this session.
        engine: Shared, stateless ESG engine.
        base_metrics: Metrics used for score updates; the carbon footprint
            is replaced by the session's accumulated emission each time.
        config: Loop timing and reporting options.
        security_monitor: Optional shared monitor whose stats are pushed
            alongside score updates.
    """

    def __init__(
        self,
        channel: FeedChannel,
        sampler: SamplerAdapter,
        engine: ESGEngine,
        base_metrics: MetricsVector,
        config: SchedulerConfig | None = None,
        security_monitor: SecurityMonitor | None = None,
        session: SessionState | None = None,
    ) -> None:
        self._channel = channel
        self._sampler = sampler
        self._engine = engine
        self._base_metrics = base_metrics
        self._config = config or SchedulerConfig()
        self._monitor = security_monitor
        self._session = session or SessionState()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._cycles = 0
        self._failures = 0

    # ── State ────────────────────────────────────────────────────────────

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def session_id(self) -> UUID:
        return self._session.session_id

    @property
    def phase(self) -> SessionPhase:
        return self._session.phase

    @property
    def cycles(self) -> int:
        """Successful measurement cycles completed by this loop."""
        return self._cycles

    @property
    def failures(self) -> int:
        return self._failures

    # ── Transitions ──────────────────────────────────────────────────────

    def start(self) -> bool:
        """idle → running.  Returns False (and does nothing) from any other phase."""
        if not self._session.mark_running():
            logger.debug("Session %s ignored start in phase %s", self.session_id, self.phase.value)
            return False
        self._task = asyncio.create_task(self._run(), name=f"session-{self.session_id}")
        logger.info("Session %s started", self.session_id)
        return True

    def stop(self) -> None:
        """Request a cooperative stop.  The loop exits at its next boundary."""
        self._request_stop("stop")

    def disconnect(self) -> None:
        """Same effect as stop(); reachable from every phase."""
        self._request_stop("disconnect")

    async def wait_closed(self) -> None:
        """Wait until the loop task, if any, has exited."""
        if self._task is not None:
            await self._task

    def _request_stop(self, reason: str) -> None:
        if not self._session.stop_requested:
            logger.info("Session %s stopping (%s)", self.session_id, reason)
        self._session.mark_stopped()
        self._stop_event.set()

    # ── Loop ─────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        try:
            while not self._session.stop_requested:
                await self._cycle()
                if self._session.stop_requested:
                    break
                await self._pause()
        except ChannelClosedError:
            logger.info("Session %s channel closed", self.session_id)
        except Exception as exc:
            logger.error("Session %s loop crashed: %s", self.session_id, exc, exc_info=True)
            try:
                await self._push_error("Session ended unexpectedly", exc)
            except ChannelClosedError:
                logger.debug("Session %s could not report crash, channel closed", self.session_id)
        finally:
            self._session.mark_stopped()
            logger.info(
                "Session %s stopped after %d sample(s), %.6f g accumulated",
                self.session_id,
                self._session.sample_count,
                self._session.cumulative_emission,
            )

    async def _cycle(self) -> None:
        try:
            await self._sampler.begin()
            await asyncio.sleep(self._config.settle_seconds)
            sample = await self._sampler.end()
        except Exception as exc:
            if self._session.stop_requested:
                return
            self._failures += 1
            if isinstance(exc, SamplingError):
                logger.warning("Session %s measurement failed: %s", self.session_id, exc)
            else:
                logger.warning(
                    "Session %s sampler raised %s: %s",
                    self.session_id, type(exc).__name__, exc, exc_info=True,
                )
            await self._push_error("Measurement failed", exc)
            return

        if self._session.stop_requested:
            logger.debug("Session %s discarded in-flight sample after stop", self.session_id)
            return

        accumulate(self._session, sample)
        self._cycles += 1
        await self._channel.push(FeedEvent.MEASUREMENT, {
            **sample.to_payload(),
            "cumulative_emission": self._session.cumulative_emission,
            "sample_count": self._session.sample_count,
        })

        if self._cycles % self._config.score_every == 0:
            await self._push_scores()

    async def _pause(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._config.pause_seconds)
        except asyncio.TimeoutError:
            pass

    # ── Pushes ───────────────────────────────────────────────────────────

    def metrics_for_session(self) -> MetricsVector:
        """Base metrics with the footprint derived from this session's total."""
        tons = self._session.cumulative_emission_tons
        return self._base_metrics.model_copy(
            update={"carbon_footprint": tons * FOOTPRINT_PER_TON}
        )

    async def _push_scores(self) -> None:
        tons = self._session.cumulative_emission_tons
        try:
            score = self._engine.score(self.metrics_for_session())
            impact = self._engine.financial_impact(score.overall, self._config.revenue, tons)
        except ValueError as exc:
            logger.error("Session %s score update failed: %s", self.session_id, exc)
            await self._push_error("Score update failed", exc)
            return

        await self._channel.push(FeedEvent.SCORE_UPDATE, {
            "esg_score": score.model_dump(mode="json"),
            "financial_impact": impact.model_dump(mode="json"),
            "carbon_accumulated": self._session.cumulative_emission,
            "sample_count": self._session.sample_count,
        })

        if self._monitor is not None:
            stats = await self._monitor.stats()
            await self._channel.push(FeedEvent.SECURITY_STATS, stats.model_dump(mode="json"))

    async def _push_error(self, message: str, exc: Exception) -> None:
        payload: dict[str, Any] = {"message": message}
        if self._config.include_error_details:
            payload["details"] = str(exc)
        await self._channel.push(FeedEvent.ERROR, payload)
