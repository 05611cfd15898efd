"""
infralite.collectors.cpu
AUTHOR: carter-vin

CPU collector
- delta-based: percentages cover the time since the previous call
- first call after construction has no prior snapshot; the scheduler primes it
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import psutil

from infralite.errors import SamplerError


@dataclass(frozen=True)
class CpuSample:
    cpu_percent: float
    user_percent: float
    system_percent: float


class CpuMonitor:
    def __init__(self, times_percent: Callable[..., Any] = psutil.cpu_times_percent) -> None:
        self._times_percent = times_percent

    def sample(self) -> CpuSample:
        """
        CPU utilisation since the previous call

        cpu_percent is everything except idle and iowait.
        """
        try:
            times = self._times_percent(interval=None)
        except (OSError, RuntimeError) as e:
            raise SamplerError(f"cpu times unavailable: {e}") from e

        idle = times.idle + getattr(times, "iowait", 0.0)
        busy = max(0.0, min(100.0, 100.0 - idle))

        return CpuSample(
            cpu_percent=busy,
            user_percent=float(times.user),
            system_percent=float(times.system),
        )
