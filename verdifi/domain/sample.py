"""Sample: the raw output of one measurement window.

A Sample is produced once per measurement phase by a SamplerAdapter and is
consumed by exactly one session accumulator.  It is immutable.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class Sample(BaseModel):
    """Resource usage and derived emission for one closed measurement window."""

    timestamp: datetime = Field(..., description="When the window was closed (UTC-aware)")
    power_watts: float = Field(..., ge=0.0, description="Instantaneous power-like usage estimate")
    elapsed_seconds: float = Field(..., ge=0.0, description="Wall-clock length of the window")
    emission_grams: float = Field(..., ge=0.0, description="CO2-equivalent grams emitted in the window")
    cpu_time_seconds: float = Field(0.0, ge=0.0, description="CPU time consumed in the window")
    rss_delta_mb: float = Field(0.0, description="Resident memory change in MB")
    vms_delta_mb: float = Field(0.0, description="Virtual memory change in MB")

    model_config = {"frozen": True, "allow_inf_nan": False}

    @field_validator("timestamp")
    @classmethod
    def timestamp_must_be_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

    def to_payload(self) -> dict:
        """Observer-facing measurement fields."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "power_watts": round(self.power_watts, 4),
            "cpu_time_seconds": round(self.cpu_time_seconds, 4),
            "rss_delta_mb": round(self.rss_delta_mb, 4),
            "vms_delta_mb": round(self.vms_delta_mb, 4),
            "emission_grams": self.emission_grams,
            "elapsed_seconds": round(self.elapsed_seconds, 4),
        }
