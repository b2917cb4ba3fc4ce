"""Typed failures raised by collaborators of the sampling core.

Validation problems inside the scoring engine stay plain ``ValueError``;
these classes mark failures that the session loop or the transport layer
recovers from.
"""

from __future__ import annotations


class VerdifiError(Exception):
    """Base class for recoverable verdifi failures."""


class SamplingError(VerdifiError):
    """Raised when a measurement window cannot be opened or closed."""


class EnergyLookupError(VerdifiError):
    """Raised when the regional energy-mix lookup has no answer."""

    def __init__(self, region: str, reason: str) -> None:
        self.region = region
        self.reason = reason
        super().__init__(f"Energy lookup for '{region}' failed: {reason}")


class ChannelClosedError(VerdifiError):
    """Raised when the outbound observer channel can no longer accept pushes."""
