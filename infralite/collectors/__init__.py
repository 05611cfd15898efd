"""infralite.collectors package exports."""

from infralite.collectors.base import CollectorOutcome, run_collector
from infralite.collectors.cpu import CpuMonitor, CpuSample
from infralite.collectors.disk import DiskMonitor, StorageSample
from infralite.collectors.memory import MemoryMonitor, MemorySample, MemorySnapshot, read_meminfo
from infralite.collectors.network import NetworkMonitor, NetworkSample

__all__ = [
    "CollectorOutcome",
    "CpuMonitor",
    "CpuSample",
    "DiskMonitor",
    "MemoryMonitor",
    "MemorySample",
    "MemorySnapshot",
    "NetworkMonitor",
    "NetworkSample",
    "StorageSample",
    "read_meminfo",
    "run_collector",
]
