"""Regional electricity-mix snapshot consulted once per session."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EnergyInfo(BaseModel):
    """Grid carbon intensity and generation mix for one region.

    Shares are the generation of each source in the same unit (TWh), so only
    their ratios matter.
    """

    country: str = Field(..., min_length=1)
    carbon_intensity: float = Field(..., ge=0.0, description="Grid intensity in gCO2e per kWh")
    coal_share: float = Field(..., ge=0.0)
    gas_share: float = Field(..., ge=0.0)
    renewable_share: float = Field(..., ge=0.0)
    fallback: bool = Field(False, description="True when this is the substitute vector")

    model_config = {"frozen": True, "allow_inf_nan": False}

    @property
    def renewable_percent(self) -> float:
        """Renewable share of coal + gas + renewable generation, 0–100."""
        total = self.coal_share + self.gas_share + self.renewable_share
        if total <= 0:
            return 0.0
        return self.renewable_share / total * 100
