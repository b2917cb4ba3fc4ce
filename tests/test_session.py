"""Tests for SessionState and the accumulator."""

from uuid import uuid4

import pytest

from verdifi.domain.enums import SessionPhase
from verdifi.domain.session import SessionState, accumulate

from tests.test_sample import _sample


class TestSessionLifecycle:
    def test_new_session_is_idle(self) -> None:
        session = SessionState()
        assert session.phase == SessionPhase.IDLE
        assert session.running is False
        assert session.stop_requested is False

    def test_explicit_session_id_is_kept(self) -> None:
        sid = uuid4()
        assert SessionState(sid).session_id == sid

    def test_mark_running_once(self) -> None:
        session = SessionState()
        assert session.mark_running() is True
        assert session.mark_running() is False
        assert session.phase == SessionPhase.RUNNING

    def test_stopped_is_terminal(self) -> None:
        session = SessionState()
        session.mark_running()
        session.mark_stopped()
        assert session.phase == SessionPhase.STOPPED
        assert session.mark_running() is False
        assert session.running is False

    def test_stop_from_idle_prevents_start(self) -> None:
        session = SessionState()
        session.mark_stopped()
        assert session.mark_running() is False
        assert session.phase == SessionPhase.STOPPED

    def test_summary_reports_phase(self) -> None:
        session = SessionState()
        assert session.summary()["phase"] == "idle"
        assert session.summary()["last_sample_at"] is None


class TestAccumulate:
    def test_single_sample(self) -> None:
        session = accumulate(SessionState(), _sample(emission_grams=2.5))
        assert session.cumulative_emission == 2.5
        assert session.sample_count == 1
        assert session.last_sample_at is not None

    def test_total_is_exact_sum(self) -> None:
        emissions = [0.1, 0.2, 0.3, 1e-9, 7.0]
        session = SessionState()
        for e in emissions:
            accumulate(session, _sample(emission_grams=e))
        assert session.cumulative_emission == pytest.approx(sum(emissions))
        assert session.sample_count == len(emissions)

    def test_order_does_not_matter(self) -> None:
        a, b = SessionState(), SessionState()
        for e in [2.0, 3.0, 5.0, 4.0]:
            accumulate(a, _sample(emission_grams=e))
        for e in [4.0, 5.0, 3.0, 2.0]:
            accumulate(b, _sample(emission_grams=e))
        assert a.cumulative_emission == b.cumulative_emission == 14.0

    def test_zero_emission_still_counts(self) -> None:
        session = accumulate(SessionState(), _sample(emission_grams=0.0))
        assert session.sample_count == 1
        assert session.cumulative_emission == 0.0

    def test_total_is_monotonic(self) -> None:
        session = SessionState()
        previous = 0.0
        for e in [0.5, 0.0, 1.5, 0.25]:
            accumulate(session, _sample(emission_grams=e))
            assert session.cumulative_emission >= previous
            previous = session.cumulative_emission

    def test_tons_conversion(self) -> None:
        session = accumulate(SessionState(), _sample(emission_grams=2_000_000.0))
        assert session.cumulative_emission_tons == 2.0
