"""
infralite.collectors.disk
AUTHOR: carter-vin

Disk collector
- one sample per mounted physical filesystem (psutil.disk_partitions(all=False))
- usage from psutil.disk_usage; unreadable mounts are skipped
- IO rates from per-disk counters, per second since the previous call
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import psutil

from infralite.errors import SamplerError


@dataclass(frozen=True)
class StorageSample:
    device: str
    mount_point: str
    filesystem_type: str
    total_bytes: float
    used_bytes: float
    free_bytes: float
    used_percent: float
    free_percent: float
    read_bytes_per_sec: Optional[float]
    write_bytes_per_sec: Optional[float]
    read_write_bytes_per_sec: Optional[float]


def _counter_key(device: str) -> str:
    """
    /dev/sda1 -> sda1, /dev/mapper/vg-root -> dm-0

    psutil per-disk counters are keyed by kernel name; device-mapper paths
    are symlinks to the kernel node.
    """
    return os.path.basename(os.path.realpath(device))


class DiskMonitor:
    def __init__(
        self,
        *,
        partitions: Callable[..., Any] = psutil.disk_partitions,
        usage: Callable[[str], Any] = psutil.disk_usage,
        io_counters: Callable[..., Any] = psutil.disk_io_counters,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._partitions = partitions
        self._usage = usage
        self._io_counters = io_counters
        self._clock = clock
        self._last_io: dict[str, Any] = {}
        self._last_ts: Optional[float] = None

    def _io_rates(self, now: float) -> dict[str, tuple[float, float]]:
        try:
            counters = self._io_counters(perdisk=True) or {}
        except (OSError, RuntimeError):
            # IO counters missing (some containers); usage still reported
            counters = {}

        rates: dict[str, tuple[float, float]] = {}
        if self._last_ts is not None and now > self._last_ts:
            elapsed = now - self._last_ts
            for name, io in counters.items():
                prev = self._last_io.get(name)
                if prev is None:
                    continue
                read = max(io.read_bytes - prev.read_bytes, 0) / elapsed
                write = max(io.write_bytes - prev.write_bytes, 0) / elapsed
                rates[name] = (read, write)

        self._last_io = dict(counters)
        self._last_ts = now
        return rates

    def sample(self) -> list[StorageSample]:
        try:
            parts = self._partitions(all=False)
        except (OSError, RuntimeError) as e:
            raise SamplerError(f"disk partitions unavailable: {e}") from e

        rates = self._io_rates(self._clock())
        samples: list[StorageSample] = []
        seen: set[str] = set()

        for part in parts:
            # Same device mounted twice (bind mounts) is reported once
            if part.device in seen:
                continue
            try:
                usage = self._usage(part.mountpoint)
            except OSError:
                continue
            seen.add(part.device)

            total = float(usage.total)
            used_percent = float(usage.percent)
            read_write = rates.get(_counter_key(part.device))

            samples.append(
                StorageSample(
                    device=part.device,
                    mount_point=part.mountpoint,
                    filesystem_type=part.fstype,
                    total_bytes=total,
                    used_bytes=float(usage.used),
                    free_bytes=float(usage.free),
                    used_percent=used_percent,
                    free_percent=100.0 - used_percent if total > 0 else 0.0,
                    read_bytes_per_sec=read_write[0] if read_write else None,
                    write_bytes_per_sec=read_write[1] if read_write else None,
                    read_write_bytes_per_sec=sum(read_write) if read_write else None,
                )
            )

        return samples
