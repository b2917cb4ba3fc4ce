"""Controlled enumerations for the verdifi domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are only acceptable for event types, which are open tags.
"""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Severity attached to every security event."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ThreatLevel(str, Enum):
    """Rolling qualitative threat classification of the event log."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    """ESG risk band derived from an overall composite score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SessionPhase(str, Enum):
    """Lifecycle of one observer session.  ``STOPPED`` is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class FeedEvent(str, Enum):
    """Names of the payloads pushed to an observer."""

    ENERGY_INFO = "energyInfo"
    ESG_SCORE = "esgScore"
    ESG_FINANCIAL_IMPACT = "esgFinancialImpact"
    MEASUREMENT = "measurement"
    SCORE_UPDATE = "scoreUpdate"
    SECURITY_STATS = "securityStats"
    ERROR = "error"


class FeedCommand(str, Enum):
    """Inbound signals an observer may send."""

    START = "start"
    STOP = "stop"
    STATS = "stats"
