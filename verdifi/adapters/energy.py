"""Energy-mix lookups: regional grid data consulted once per session.

The lookup is an external collaborator.  Callers must be prepared for it to
fail and fall back to FALLBACK_ENERGY_INFO rather than blocking a session.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Mapping

from verdifi.domain.energy import EnergyInfo
from verdifi.foundation.errors import EnergyLookupError

logger = logging.getLogger(__name__)

# Used whenever a lookup fails.  Roughly the world-average grid.
FALLBACK_ENERGY_INFO = EnergyInfo(
    country="WORLD",
    carbon_intensity=400.0,
    coal_share=10_000.0,
    gas_share=6_500.0,
    renewable_share=8_500.0,
    fallback=True,
)

# Annual generation in TWh and grid intensity in gCO2e/kWh, by ISO country code.
_REGIONAL_MIX: Mapping[str, EnergyInfo] = MappingProxyType({
    "DE": EnergyInfo(country="DE", carbon_intensity=381.0, coal_share=130.0, gas_share=76.0, renewable_share=254.0),
    "FR": EnergyInfo(country="FR", carbon_intensity=56.0, coal_share=2.0, gas_share=30.0, renewable_share=120.0),
    "GB": EnergyInfo(country="GB", carbon_intensity=238.0, coal_share=4.0, gas_share=125.0, renewable_share=135.0),
    "US": EnergyInfo(country="US", carbon_intensity=369.0, coal_share=675.0, gas_share=1690.0, renewable_share=910.0),
    "IN": EnergyInfo(country="IN", carbon_intensity=713.0, coal_share=1380.0, gas_share=48.0, renewable_share=360.0),
    "CN": EnergyInfo(country="CN", carbon_intensity=582.0, coal_share=5420.0, gas_share=280.0, renewable_share=2810.0),
    "SE": EnergyInfo(country="SE", carbon_intensity=41.0, coal_share=0.5, gas_share=0.5, renewable_share=112.0),
})


class EnergyLookup(ABC):
    """Source of regional energy-mix data."""

    @abstractmethod
    async def get_energy_info(self) -> EnergyInfo:
        """Return the energy mix for the configured region.

        Raises:
            EnergyLookupError: If no data is available.
        """
        ...


class StaticEnergyLookup(EnergyLookup):
    """Looks the configured region up in a static table."""

    def __init__(self, region: str, table: Mapping[str, EnergyInfo] | None = None) -> None:
        self._region = region.upper()
        self._table = table if table is not None else _REGIONAL_MIX

    @property
    def regions(self) -> list[str]:
        return sorted(self._table)

    async def get_energy_info(self) -> EnergyInfo:
        info = self._table.get(self._region)
        if info is None:
            known = ", ".join(self.regions)
            raise EnergyLookupError(self._region, f"region not in energy table (known: {known})")
        return info


async def energy_info_or_fallback(lookup: EnergyLookup) -> EnergyInfo:
    """Consult *lookup* once; substitute the fallback vector on any failure."""
    try:
        return await lookup.get_energy_info()
    except EnergyLookupError as exc:
        logger.warning("%s, using fallback energy mix", exc)
    except Exception as exc:
        logger.warning(
            "Energy lookup raised %s: %s, using fallback energy mix",
            type(exc).__name__, exc, exc_info=True,
        )
    return FALLBACK_ENERGY_INFO
