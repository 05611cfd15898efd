"""
infralite.collectors.memory
AUTHOR: carter-vin

Memory collector
- Linux /proc/meminfo parsed directly (MemoryStatReader)
- Available memory depends on kernel version:
    kernels >= 3.14: MemAvailable
    kernels <  3.14: MemFree + Buffers + Cached
- Used memory: Total - Available
- Swap via psutil
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import psutil

from infralite.errors import ParseError, SourceUnavailable
from infralite.logging import EventLogger, error_fields


PROC_MEMINFO = Path("/proc/meminfo")

KIB = 1024

# meminfo key -> MemorySnapshot field
_REQUIRED_KEYS = {
    "MemTotal": "total",
    "MemFree": "free",
    "Buffers": "buffers",
    "Cached": "cached",
    "Shmem": "shared",
    "Slab": "slab",
    "SReclaimable": "reclaimable",
}
_AVAILABLE_KEY = "MemAvailable"


@dataclass(frozen=True)
class MemorySnapshot:
    total: int = 0
    available: int = 0
    used: int = 0
    free: int = 0
    buffers: int = 0
    cached: int = 0
    shared: int = 0
    slab: int = 0
    reclaimable: int = 0


@dataclass(frozen=True)
class MemorySample:
    total_bytes: float
    free_bytes: float
    used_bytes: float
    free_percent: float
    used_percent: float
    cached_bytes: float
    swap_total_bytes: float
    swap_free_bytes: float
    swap_used_bytes: float


def _parse_value(key: str, raw: str) -> int:
    """
    Parse "VALUE [kB]" into bytes
    """
    value = raw.strip().replace(" kB", "")
    if not (value.isascii() and value.isdigit()):
        raise ParseError(f"invalid value for {key}: {raw.strip()!r}")
    return int(value) * KIB


def parse_meminfo(lines: Iterable[str]) -> MemorySnapshot:
    """
    Derive a MemorySnapshot from meminfo lines

    - stops scanning once all required keys and MemAvailable were seen
    - missing keys stay zero (not an error)
    - raises ParseError on a non-integer value
    """
    fields: dict[str, int] = {}
    read_fields = 0
    mem_available: Optional[int] = None

    for line in lines:
        parts = line.split(":")
        if len(parts) != 2:
            continue
        key = parts[0].strip()
        value = _parse_value(key, parts[1])

        if key == _AVAILABLE_KEY:
            mem_available = value
        elif key in _REQUIRED_KEYS:
            fields[_REQUIRED_KEYS[key]] = value
            read_fields += 1

        if read_fields >= len(_REQUIRED_KEYS) and mem_available is not None:
            break

    free = fields.get("free", 0)
    buffers = fields.get("buffers", 0)
    cached = fields.get("cached", 0)
    total = fields.get("total", 0)

    # Pre-3.14 kernels do not report MemAvailable
    available = mem_available if mem_available is not None else free + buffers + cached

    return MemorySnapshot(
        total=total,
        available=available,
        used=total - available,
        free=free,
        buffers=buffers,
        cached=cached,
        shared=fields.get("shared", 0),
        slab=fields.get("slab", 0),
        reclaimable=fields.get("reclaimable", 0),
    )


def read_meminfo(path: Path = PROC_MEMINFO) -> MemorySnapshot:
    """
    Read and parse a meminfo source

    Raises SourceUnavailable if it cannot be opened.
    """
    try:
        f = path.open(mode="r", encoding="utf-8")
    except OSError as e:
        raise SourceUnavailable(f"error opening {path}: {e}") from e

    with f:
        return parse_meminfo(f)


def _pct(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return (part / total) * 100.0


class MemoryMonitor:
    """
    Memory sampler

    Reports free memory as the Available Memory of the snapshot.
    A missing meminfo source degrades to a zero snapshot instead of failing.
    """

    def __init__(
        self,
        logger: EventLogger,
        *,
        path: Path = PROC_MEMINFO,
        swap_reader: Callable[[], Any] = psutil.swap_memory,
    ) -> None:
        self._logger = logger
        self._path = path
        self._swap_reader = swap_reader

    def snapshot(self) -> MemorySnapshot:
        try:
            return read_meminfo(self._path)
        except SourceUnavailable as e:
            self._logger.emit("memory_source_unavailable", path=str(self._path), **error_fields(e))
            return MemorySnapshot()

    def sample(self) -> MemorySample:
        snap = self.snapshot()
        swap = self._swap_reader()

        used = snap.used
        if used < 0:
            # MemTotal missing or smaller than available; never ship negative bytes
            self._logger.emit(
                "memory_snapshot_inconsistent",
                total=snap.total,
                available=snap.available,
                used=snap.used,
            )
            used = 0

        return MemorySample(
            total_bytes=float(snap.total),
            free_bytes=float(snap.available),
            used_bytes=float(used),
            free_percent=_pct(snap.available, snap.total),
            used_percent=_pct(used, snap.total),
            cached_bytes=float(snap.cached),
            swap_total_bytes=float(swap.total),
            swap_free_bytes=float(swap.free),
            swap_used_bytes=float(swap.used),
        )
