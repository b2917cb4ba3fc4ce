"""Tests for the per-session SessionScheduler.

Uses a scripted sampler and a recording channel so every cycle is
deterministic.  Settle and pause are zero unless a test needs a real pause.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from verdifi.adapters.sampler import SamplerAdapter
from verdifi.core.esg_engine import ESGEngine
from verdifi.domain.enums import FeedEvent, SessionPhase, Severity
from verdifi.domain.esg import MetricsVector
from verdifi.domain.sample import Sample
from verdifi.foundation.errors import ChannelClosedError, SamplingError
from verdifi.services.session_scheduler import SchedulerConfig, SessionScheduler
from verdifi.store.security_monitor import SecurityMonitor

from tests.test_sample import _sample


# ── Fakes ────────────────────────────────────────────────────────────────────

class ScriptedSampler(SamplerAdapter):
    """Returns one emission per window from a script; exceptions are raised."""

    def __init__(self, script: list[Any] | None = None, default: float = 1.0) -> None:
        self._script = list(script or [])
        self._default = default
        self.begins = 0
        self.ends = 0
        self.on_end: Callable[[], None] | None = None

    async def begin(self) -> None:
        self.begins += 1

    async def end(self) -> Sample:
        self.ends += 1
        if self.on_end is not None:
            self.on_end()
        step = self._script.pop(0) if self._script else self._default
        if isinstance(step, Exception):
            raise step
        return _sample(emission_grams=step)


class RecordingChannel:
    """Collects pushed frames; optionally reacts to each one."""

    def __init__(self) -> None:
        self.frames: list[tuple[FeedEvent, dict[str, Any]]] = []
        self.on_push: Callable[[FeedEvent, dict[str, Any]], None] | None = None

    async def push(self, event: FeedEvent, data: dict[str, Any]) -> None:
        self.frames.append((event, data))
        if self.on_push is not None:
            self.on_push(event, data)

    def of(self, event: FeedEvent) -> list[dict[str, Any]]:
        return [data for kind, data in self.frames if kind == event]


class BrokenMeasurementChannel(RecordingChannel):
    """Fails every measurement push with a non-channel error."""

    async def push(self, event: FeedEvent, data: dict[str, Any]) -> None:
        if event == FeedEvent.MEASUREMENT:
            raise RuntimeError("serializer exploded")
        await super().push(event, data)


class ClosedChannel:
    async def push(self, event: FeedEvent, data: dict[str, Any]) -> None:
        raise ChannelClosedError("observer went away")


_FAST = SchedulerConfig(settle_seconds=0, pause_seconds=0, score_every=5)

_BASE_METRICS = MetricsVector(
    renewable_energy=60,
    waste_reduction=75,
    employee_satisfaction=85,
    diversity=60,
    community_impact=70,
    board_independence=80,
    transparency=75,
    ethics_compliance=85,
)


def _scheduler(
    sampler: SamplerAdapter,
    channel: Any,
    config: SchedulerConfig = _FAST,
    monitor: SecurityMonitor | None = None,
) -> SessionScheduler:
    return SessionScheduler(
        channel=channel,
        sampler=sampler,
        engine=ESGEngine(),
        base_metrics=_BASE_METRICS,
        config=config,
        security_monitor=monitor,
    )


def _stop_after_measurements(scheduler: SessionScheduler, channel: RecordingChannel, n: int) -> None:
    def on_push(event: FeedEvent, data: dict[str, Any]) -> None:
        if event == FeedEvent.MEASUREMENT and len(channel.of(FeedEvent.MEASUREMENT)) >= n:
            scheduler.stop()
    channel.on_push = on_push


async def _run_to_completion(scheduler: SessionScheduler) -> None:
    assert scheduler.start() is True
    await asyncio.wait_for(scheduler.wait_closed(), timeout=2.0)


# ── State machine ────────────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_starts_idle(self) -> None:
        scheduler = _scheduler(ScriptedSampler(), RecordingChannel())
        assert scheduler.phase == SessionPhase.IDLE
        assert scheduler.session.running is False

    @pytest.mark.asyncio
    async def test_second_start_is_noop(self) -> None:
        channel = RecordingChannel()
        sampler = ScriptedSampler()
        scheduler = _scheduler(sampler, channel)
        _stop_after_measurements(scheduler, channel, 3)

        assert scheduler.start() is True
        assert scheduler.start() is False
        await asyncio.wait_for(scheduler.wait_closed(), timeout=2.0)

        assert len(channel.of(FeedEvent.MEASUREMENT)) == 3
        assert sampler.begins == 3

    @pytest.mark.asyncio
    async def test_stop_reaches_terminal_state(self) -> None:
        channel = RecordingChannel()
        scheduler = _scheduler(ScriptedSampler(), channel)
        _stop_after_measurements(scheduler, channel, 2)
        await _run_to_completion(scheduler)

        assert scheduler.phase == SessionPhase.STOPPED
        assert scheduler.session.running is False
        assert scheduler.session.stop_requested is True

    @pytest.mark.asyncio
    async def test_no_measurements_after_stop_even_if_started_again(self) -> None:
        channel = RecordingChannel()
        scheduler = _scheduler(ScriptedSampler(), channel)
        _stop_after_measurements(scheduler, channel, 2)
        await _run_to_completion(scheduler)
        emitted = len(channel.of(FeedEvent.MEASUREMENT))

        assert scheduler.start() is False
        await asyncio.sleep(0.05)
        assert len(channel.of(FeedEvent.MEASUREMENT)) == emitted
        assert scheduler.phase == SessionPhase.STOPPED

    @pytest.mark.asyncio
    async def test_disconnect_before_start_is_terminal(self) -> None:
        channel = RecordingChannel()
        sampler = ScriptedSampler()
        scheduler = _scheduler(sampler, channel)
        scheduler.disconnect()

        assert scheduler.phase == SessionPhase.STOPPED
        assert scheduler.start() is False
        await scheduler.wait_closed()
        assert sampler.begins == 0
        assert channel.frames == []

    @pytest.mark.asyncio
    async def test_disconnect_wakes_pause(self) -> None:
        channel = RecordingChannel()
        first = asyncio.Event()
        channel.on_push = lambda event, data: first.set()
        config = SchedulerConfig(settle_seconds=0, pause_seconds=60, score_every=5)
        scheduler = _scheduler(ScriptedSampler(), channel, config)

        scheduler.start()
        await asyncio.wait_for(first.wait(), timeout=2.0)
        scheduler.disconnect()
        await asyncio.wait_for(scheduler.wait_closed(), timeout=2.0)

        assert scheduler.phase == SessionPhase.STOPPED
        assert len(channel.of(FeedEvent.MEASUREMENT)) == 1

    @pytest.mark.asyncio
    async def test_in_flight_window_closes_but_sample_is_discarded(self) -> None:
        channel = RecordingChannel()
        sampler = ScriptedSampler()
        scheduler = _scheduler(sampler, channel)
        sampler.on_end = scheduler.stop

        await _run_to_completion(scheduler)

        assert sampler.begins == 1
        assert sampler.ends == 1
        assert scheduler.session.sample_count == 0
        assert channel.of(FeedEvent.MEASUREMENT) == []

    @pytest.mark.asyncio
    async def test_closed_channel_stops_session(self) -> None:
        scheduler = _scheduler(ScriptedSampler(), ClosedChannel())
        await _run_to_completion(scheduler)
        assert scheduler.phase == SessionPhase.STOPPED


# ── Accumulation ─────────────────────────────────────────────────────────────


class TestAccumulation:
    @pytest.mark.asyncio
    async def test_failed_cycle_is_skipped(self) -> None:
        channel = RecordingChannel()
        sampler = ScriptedSampler([2.0, 3.0, 5.0, SamplingError("sensor busy"), 4.0])
        scheduler = _scheduler(sampler, channel)
        _stop_after_measurements(scheduler, channel, 4)

        await _run_to_completion(scheduler)

        assert scheduler.session.cumulative_emission == 14.0
        assert scheduler.session.sample_count == 4
        assert scheduler.cycles == 4
        assert scheduler.failures == 1
        assert channel.of(FeedEvent.ERROR) == [{"message": "Measurement failed"}]

    @pytest.mark.asyncio
    async def test_unexpected_sampler_error_is_a_failed_cycle(self) -> None:
        channel = RecordingChannel()
        sampler = ScriptedSampler([1.0, OSError("sensor unplugged"), 2.0])
        scheduler = _scheduler(sampler, channel)
        _stop_after_measurements(scheduler, channel, 2)

        await _run_to_completion(scheduler)

        assert scheduler.session.sample_count == 2
        assert scheduler.session.cumulative_emission == 3.0
        assert scheduler.failures == 1
        assert channel.of(FeedEvent.ERROR) == [{"message": "Measurement failed"}]

    @pytest.mark.asyncio
    async def test_push_fault_reports_error_before_exit(self) -> None:
        channel = BrokenMeasurementChannel()
        scheduler = _scheduler(ScriptedSampler(), channel)

        await _run_to_completion(scheduler)

        assert scheduler.phase == SessionPhase.STOPPED
        assert channel.of(FeedEvent.ERROR) == [{"message": "Session ended unexpectedly"}]

    @pytest.mark.asyncio
    async def test_measurements_carry_running_totals_in_order(self) -> None:
        channel = RecordingChannel()
        scheduler = _scheduler(ScriptedSampler([1.0, 2.0, 3.0]), channel)
        _stop_after_measurements(scheduler, channel, 3)

        await _run_to_completion(scheduler)

        measurements = channel.of(FeedEvent.MEASUREMENT)
        assert [m["emission_grams"] for m in measurements] == [1.0, 2.0, 3.0]
        assert [m["cumulative_emission"] for m in measurements] == [1.0, 3.0, 6.0]
        assert [m["sample_count"] for m in measurements] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_error_details_only_when_enabled(self) -> None:
        channel = RecordingChannel()
        config = SchedulerConfig(settle_seconds=0, pause_seconds=0, include_error_details=True)
        scheduler = _scheduler(ScriptedSampler([SamplingError("sensor busy"), 1.0]), channel, config)
        _stop_after_measurements(scheduler, channel, 1)

        await _run_to_completion(scheduler)

        assert channel.of(FeedEvent.ERROR) == [{"message": "Measurement failed", "details": "sensor busy"}]

    @pytest.mark.asyncio
    async def test_sessions_do_not_share_state(self) -> None:
        channel_a, channel_b = RecordingChannel(), RecordingChannel()
        a = _scheduler(ScriptedSampler(default=1.0), channel_a)
        b = _scheduler(ScriptedSampler([SamplingError("x"), SamplingError("y"), 10.0]), channel_b)
        _stop_after_measurements(a, channel_a, 3)
        _stop_after_measurements(b, channel_b, 1)

        a.start()
        b.start()
        await asyncio.wait_for(asyncio.gather(a.wait_closed(), b.wait_closed()), timeout=2.0)

        assert a.session.cumulative_emission == 3.0
        assert b.session.cumulative_emission == 10.0
        assert channel_a.of(FeedEvent.ERROR) == []
        assert len(channel_b.of(FeedEvent.ERROR)) == 2
        assert a.session_id != b.session_id


# ── Score cadence ────────────────────────────────────────────────────────────


class TestScoreUpdates:
    @pytest.mark.asyncio
    async def test_score_pushed_every_n_successful_cycles(self) -> None:
        channel = RecordingChannel()
        config = SchedulerConfig(settle_seconds=0, pause_seconds=0, score_every=2)
        sampler = ScriptedSampler([1.0, SamplingError("x"), 1.0, 1.0, 1.0, 1.0])
        scheduler = _scheduler(sampler, channel, config)
        _stop_after_measurements(scheduler, channel, 5)

        await _run_to_completion(scheduler)

        updates = channel.of(FeedEvent.SCORE_UPDATE)
        assert [u["sample_count"] for u in updates] == [2, 4]

    @pytest.mark.asyncio
    async def test_score_uses_latest_accumulated_state(self) -> None:
        channel = RecordingChannel()
        # one ton per window
        scheduler = _scheduler(ScriptedSampler(default=1_000_000.0), channel)
        _stop_after_measurements(scheduler, channel, 5)

        await _run_to_completion(scheduler)

        (update,) = channel.of(FeedEvent.SCORE_UPDATE)
        assert update["carbon_accumulated"] == 5_000_000.0
        assert update["sample_count"] == 5
        # footprint 500 → climate 10 instead of 15
        assert update["esg_score"]["breakdown"]["environmental"]["carbon_footprint"] == 10
        assert update["esg_score"]["overall"] == 72
        assert update["financial_impact"]["carbon_cost"] == pytest.approx(250.0)

    @pytest.mark.asyncio
    async def test_metrics_for_session_replaces_footprint_only(self) -> None:
        scheduler = _scheduler(ScriptedSampler(), RecordingChannel())
        metrics = scheduler.metrics_for_session()
        assert metrics.carbon_footprint == 0.0
        assert metrics.renewable_energy == _BASE_METRICS.renewable_energy

    @pytest.mark.asyncio
    async def test_security_stats_follow_score_updates(self) -> None:
        monitor = SecurityMonitor()
        await monitor.log_event("probe", Severity.HIGH)
        channel = RecordingChannel()
        scheduler = _scheduler(ScriptedSampler(), channel, monitor=monitor)
        _stop_after_measurements(scheduler, channel, 5)

        await _run_to_completion(scheduler)

        kinds = [kind for kind, _ in channel.frames]
        assert kinds[-2:] == [FeedEvent.SCORE_UPDATE, FeedEvent.SECURITY_STATS]
        (stats,) = channel.of(FeedEvent.SECURITY_STATS)
        assert stats["threat_level"] == "medium"
        assert stats["health_score"] == 95


class TestSchedulerConfig:
    def test_score_every_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SchedulerConfig(score_every=0)

    def test_negative_durations_rejected(self) -> None:
        with pytest.raises(ValueError):
            SchedulerConfig(pause_seconds=-1)
