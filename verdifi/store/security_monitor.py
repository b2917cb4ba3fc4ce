"""In-memory security event log with async-safe access and ring-buffer eviction.

Design notes:
    - One SecurityMonitor is built at process start and injected into every
      router and session that logs or reads events.  There is no module-level
      instance.
    - An asyncio.Lock guards all mutations and snapshots so concurrent request
      handlers and session loops never interleave an append with a read.
    - The log is a deque with a fixed maxlen: the oldest event is dropped
      silently once capacity is reached.  Appending never blocks on capacity.
    - Sequence ids come from a counter, not from the log length, so they stay
      unique after eviction.
    - Request-path classification is advisory.  It tags events; it never
      rejects a request.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter, deque
from itertools import islice
from typing import Any

from verdifi.domain.enums import Severity, ThreatLevel
from verdifi.domain.security import SecurityEvent, SecurityStats
from verdifi.foundation.clock import utc_now

logger = logging.getLogger(__name__)

# (minimum high+critical count, level), checked from the top band down
_THREAT_LADDER: tuple[tuple[int, ThreatLevel], ...] = (
    (6, ThreatLevel.CRITICAL),
    (3, ThreatLevel.HIGH),
    (1, ThreatLevel.MEDIUM),
)

_SQL_INJECTION_MARKERS = ("'", "--", ";")
_XSS_MARKERS = ("<script", "javascript:")

_SEVERE = (Severity.HIGH, Severity.CRITICAL)


def classify_request(path: str) -> list[str]:
    """Return heuristic attack tags for a request path or query string.

    False positives and negatives are expected; callers must treat the result
    as a hint.
    """
    lowered = path.lower()
    tags: list[str] = []
    if any(marker in lowered for marker in _SQL_INJECTION_MARKERS):
        tags.append("potential_sql_injection")
    if any(marker in lowered for marker in _XSS_MARKERS):
        tags.append("potential_xss")
    return tags


def threat_level_for(severe_count: int) -> ThreatLevel:
    """Map a count of high+critical events onto the threat ladder."""
    for minimum, level in _THREAT_LADDER:
        if severe_count >= minimum:
            return level
    return ThreatLevel.LOW


class SecurityMonitor:
    """Async-safe, capped log of security events with derived health figures.

    Args:
        max_events: Ring-buffer capacity.
        threat_window: How many of the newest events feed the threat level.
        stats_window: How many of the newest events feed stats and health.
        connection_burst_threshold: Prior connection attempts from one IP
            after which further attempts are flagged suspicious.
    """

    def __init__(
        self,
        max_events: int = 1000,
        threat_window: int = 50,
        stats_window: int = 100,
        connection_burst_threshold: int = 10,
    ) -> None:
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        if threat_window < 1 or stats_window < 1:
            raise ValueError("threat_window and stats_window must be at least 1")

        self._threat_window = threat_window
        self._stats_window = stats_window
        self._burst_threshold = connection_burst_threshold
        self._lock = asyncio.Lock()
        self._events: deque[SecurityEvent] = deque(maxlen=max_events)
        self._next_sequence = 1
        self._threat_level = ThreatLevel.LOW
        self._connection_attempts: dict[str, int] = {}
        self._started = time.monotonic()

    # ── Public API ───────────────────────────────────────────────────────

    async def log_event(
        self,
        event_type: str,
        severity: Severity,
        details: dict[str, Any] | None = None,
        suspicious: bool = False,
    ) -> SecurityEvent:
        """Append an event and recompute the threat level."""
        async with self._lock:
            return self._append(event_type, Severity(severity), details or {}, suspicious)

    async def monitor_connection(self, ip: str, user_agent: str = "") -> None:
        """Count a connection attempt from *ip* and log first-seen or burst events."""
        async with self._lock:
            attempts = self._connection_attempts.get(ip, 0)
            self._connection_attempts[ip] = attempts + 1

            if attempts == 0:
                self._append("connection", Severity.LOW, {"ip": ip, "user_agent": user_agent}, False)
            elif attempts > self._burst_threshold:
                self._append(
                    "suspicious_connection",
                    Severity.HIGH,
                    {"ip": ip, "attempts": attempts + 1, "user_agent": user_agent},
                    True,
                )

    async def monitor_api_request(self, endpoint: str, method: str, status_code: int) -> None:
        """Log noteworthy HTTP outcomes and advisory attack tags for a request."""
        async with self._lock:
            if status_code in (401, 403):
                self._append(
                    "unauthorized_access_attempt",
                    Severity.MEDIUM,
                    {"endpoint": endpoint, "method": method, "status_code": status_code},
                    False,
                )
            if status_code >= 500:
                self._append(
                    "server_error",
                    Severity.MEDIUM,
                    {"endpoint": endpoint, "method": method, "status_code": status_code},
                    False,
                )
            for tag in classify_request(endpoint):
                self._append(tag, Severity.HIGH, {"endpoint": endpoint, "method": method}, False)

    # ── Snapshots ────────────────────────────────────────────────────────

    async def threat_level(self) -> ThreatLevel:
        async with self._lock:
            return self._threat_level

    async def recent_events(self, limit: int = 10) -> list[SecurityEvent]:
        """Newest-first list of at most *limit* events."""
        if limit <= 0:
            return []
        async with self._lock:
            return list(islice(reversed(self._events), limit))

    async def event_count(self) -> int:
        async with self._lock:
            return len(self._events)

    async def health_score(self) -> int:
        """100 minus severity and suspicion penalties over the stats window, clamped."""
        async with self._lock:
            return self._health(self._window(self._stats_window))

    async def stats(self) -> SecurityStats:
        """Aggregate counters over the stats window.

        This is observability, not control.  It mutates nothing.
        """
        async with self._lock:
            recent = self._window(self._stats_window)
            by_severity = Counter(e.severity.value for e in recent)
            by_type = Counter(e.event_type for e in recent)
            return SecurityStats(
                total_events=len(self._events),
                recent_events=len(recent),
                threat_level=self._threat_level,
                events_by_severity={s.value: by_severity.get(s.value, 0) for s in Severity},
                events_by_type=dict(by_type),
                suspicious_activity=sum(1 for e in recent if e.suspicious),
                unique_ips=len(self._connection_attempts),
                uptime_seconds=int(time.monotonic() - self._started),
                health_score=self._health(recent),
            )

    # ── Internals ────────────────────────────────────────────────────────

    def _append(
        self,
        event_type: str,
        severity: Severity,
        details: dict[str, Any],
        suspicious: bool,
    ) -> SecurityEvent:
        """Must be called while holding self._lock."""
        event = SecurityEvent(
            sequence_id=self._next_sequence,
            timestamp=utc_now(),
            event_type=event_type,
            severity=severity,
            details=details,
            suspicious=suspicious,
        )
        self._next_sequence += 1
        self._events.append(event)

        previous = self._threat_level
        self._threat_level = self._compute_threat_level()
        if self._threat_level != previous:
            logger.warning(
                "Threat level changed %s → %s after %s (%s)",
                previous.value,
                self._threat_level.value,
                event_type,
                severity.value,
            )
        else:
            logger.debug("Logged security event #%d %s (%s)", event.sequence_id, event_type, severity.value)
        return event

    def _window(self, size: int) -> list[SecurityEvent]:
        """Must be called while holding self._lock.  Oldest-first."""
        start = max(0, len(self._events) - size)
        return list(islice(self._events, start, None))

    def _compute_threat_level(self) -> ThreatLevel:
        severe = sum(1 for e in self._window(self._threat_window) if e.severity in _SEVERE)
        return threat_level_for(severe)

    @staticmethod
    def _health(events: list[SecurityEvent]) -> int:
        score = 100
        for e in events:
            if e.severity == Severity.HIGH:
                score -= 5
            elif e.severity == Severity.CRITICAL:
                score -= 10
            if e.suspicious:
                score -= 3
        return max(0, min(score, 100))
