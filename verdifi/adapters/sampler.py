"""Sampler adapters: open and close resource measurement windows.

Architectural rules:
    1. begin() opens a window; end() closes it and returns a Sample.
    2. Both may fail.  Failures surface as SamplingError and nothing else.
    3. A sampler never touches SessionState; the scheduler accumulates.
    4. One sampler instance belongs to one session.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import psutil

from verdifi.domain.sample import Sample
from verdifi.foundation.clock import utc_now
from verdifi.foundation.errors import SamplingError

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024
_JOULES_PER_KWH = 3_600_000


class SamplerAdapter(ABC):
    """Base class for measurement capabilities used by the session loop."""

    @abstractmethod
    async def begin(self) -> None:
        """Start a measurement window.

        Raises:
            SamplingError: If the window cannot be opened.
        """
        ...

    @abstractmethod
    async def end(self) -> Sample:
        """Close the current window and return its Sample.

        Raises:
            SamplingError: If no window is open or the measurement fails.
        """
        ...


class ProcessSampler(SamplerAdapter):
    """Measures the current process with psutil.

    Power is estimated as the share of all cores the process kept busy
    multiplied by the CPU's thermal design power.  Emission is that energy
    multiplied by the grid carbon intensity.

    Args:
        carbon_intensity: Grid intensity in gCO2e per kWh.
        tdp_watts: Thermal design power of the whole CPU package.
        pid: Process to measure; defaults to the current one.
    """

    def __init__(
        self,
        carbon_intensity: float,
        tdp_watts: float = 65.0,
        pid: int | None = None,
    ) -> None:
        if carbon_intensity < 0 or tdp_watts < 0:
            raise ValueError("carbon_intensity and tdp_watts must be non-negative")
        self._carbon_intensity = carbon_intensity
        self._tdp_watts = tdp_watts
        self._pid = pid
        self._cores = psutil.cpu_count(logical=True) or 1
        self._process: psutil.Process | None = None
        self._window: tuple[float, float, int, int] | None = None

    async def begin(self) -> None:
        try:
            process = self._get_process()
            cpu = process.cpu_times()
            mem = process.memory_info()
        except psutil.Error as exc:
            raise SamplingError(f"could not read process counters: {exc}") from exc
        self._window = (time.monotonic(), cpu.user + cpu.system, mem.rss, mem.vms)

    async def end(self) -> Sample:
        if self._window is None:
            raise SamplingError("end() called without an open measurement window")
        started, cpu_start, rss_start, vms_start = self._window
        self._window = None

        try:
            process = self._get_process()
            cpu = process.cpu_times()
            mem = process.memory_info()
        except psutil.Error as exc:
            raise SamplingError(f"could not read process counters: {exc}") from exc

        elapsed = max(time.monotonic() - started, 0.0)
        cpu_seconds = max(cpu.user + cpu.system - cpu_start, 0.0)

        utilisation = cpu_seconds / (elapsed * self._cores) if elapsed > 0 else 0.0
        power_watts = min(utilisation, 1.0) * self._tdp_watts
        energy_kwh = power_watts * elapsed / _JOULES_PER_KWH
        emission = energy_kwh * self._carbon_intensity

        return Sample(
            timestamp=utc_now(),
            power_watts=power_watts,
            elapsed_seconds=elapsed,
            emission_grams=emission,
            cpu_time_seconds=cpu_seconds,
            rss_delta_mb=(mem.rss - rss_start) / _BYTES_PER_MB,
            vms_delta_mb=(mem.vms - vms_start) / _BYTES_PER_MB,
        )

    def _get_process(self) -> psutil.Process:
        if self._process is None:
            self._process = psutil.Process(self._pid)
        return self._process
