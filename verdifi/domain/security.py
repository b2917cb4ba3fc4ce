"""Security event models.

A SecurityEvent is an append-only log record.  Events are never edited;
the monitor only appends new ones and lets old ones fall out of its ring
buffer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from verdifi.domain.enums import Severity, ThreatLevel


class SecurityEvent(BaseModel):
    """A discrete, severity-tagged event recorded by the SecurityMonitor."""

    sequence_id: int = Field(..., ge=1, description="Monotonic id, never reused after eviction")
    timestamp: datetime
    event_type: str = Field(..., min_length=1, max_length=128)
    severity: Severity
    details: dict[str, Any] = Field(default_factory=dict)
    suspicious: bool = Field(False, description="Flagged as suspicious activity")

    model_config = {"frozen": True}


class SecurityStats(BaseModel):
    """Aggregate snapshot of the event log for status surfaces."""

    total_events: int
    recent_events: int
    threat_level: ThreatLevel
    events_by_severity: dict[str, int]
    events_by_type: dict[str, int]
    suspicious_activity: int
    unique_ips: int
    uptime_seconds: int
    health_score: int
