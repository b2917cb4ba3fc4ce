"""SessionState: the private accumulator of one observer connection.

A session is created when an observer connects and destroyed when it
disconnects.  Only that connection's scheduler mutates it.

Lifecycle flags:
    - running:        False until start is requested, False forever after stop.
    - stop_requested: latched once; nothing clears it.
"""

from __future__ import annotations

import math
from datetime import datetime
from uuid import UUID

from verdifi.domain.enums import SessionPhase
from verdifi.domain.sample import Sample
from verdifi.foundation.clock import utc_now
from verdifi.foundation.identifiers import new_session_id


class SessionState:
    """Mutable per-session counters.

    Thread-safety note:
        A SessionState is owned by exactly one SessionScheduler task and is
        never shared between sessions, so it carries no lock.
    """

    __slots__ = (
        "session_id",
        "created_at",
        "last_sample_at",
        "cumulative_emission",
        "sample_count",
        "running",
        "stop_requested",
    )

    def __init__(self, session_id: UUID | None = None) -> None:
        self.session_id: UUID = session_id or new_session_id()
        self.created_at: datetime = utc_now()
        self.last_sample_at: datetime | None = None
        self.cumulative_emission: float = 0.0
        self.sample_count: int = 0
        self.running: bool = False
        self.stop_requested: bool = False

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def phase(self) -> SessionPhase:
        if self.stop_requested:
            return SessionPhase.STOPPED
        if self.running:
            return SessionPhase.RUNNING
        return SessionPhase.IDLE

    def mark_running(self) -> bool:
        """Move idle → running.  Returns False if that transition is not allowed."""
        if self.running or self.stop_requested:
            return False
        self.running = True
        return True

    def mark_stopped(self) -> None:
        """Latch the terminal state.  Safe to call from any phase, any number of times."""
        self.stop_requested = True
        self.running = False

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def cumulative_emission_tons(self) -> float:
        return self.cumulative_emission / 1_000_000

    def summary(self) -> dict:
        return {
            "session_id": str(self.session_id),
            "phase": self.phase.value,
            "cumulative_emission": self.cumulative_emission,
            "sample_count": self.sample_count,
            "created_at": self.created_at.isoformat(),
            "last_sample_at": self.last_sample_at.isoformat() if self.last_sample_at else None,
        }


def accumulate(session: SessionState, sample: Sample) -> SessionState:
    """Fold one successful sample into *session* and return it.

    Only successful samples reach this function, so ``sample_count`` counts
    exactly the windows whose emission is included in the total.
    """
    emission = sample.emission_grams
    if not math.isfinite(emission) or emission < 0:
        raise ValueError(f"emission must be a finite, non-negative number, got {emission!r}")

    session.cumulative_emission += emission
    session.sample_count += 1
    session.last_sample_at = sample.timestamp
    return session
