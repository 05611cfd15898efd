"""
infralite.model
AUTHOR: carter-vin

Metric record schema + per-group record builders.

Design goals:
- Fixed identity attributes (workload, service, hostname) on every record
- Device/interface attributes kept in a separate extension map
- Explicit structure (no accidental serialization via __dict__)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from infralite.collectors.cpu import CpuSample
from infralite.collectors.disk import StorageSample
from infralite.collectors.memory import MemorySample
from infralite.collectors.network import NetworkSample

GAUGE = "gauge"
NAME_SEPARATOR = "."


@dataclass(frozen=True)
class Identity:
    """
    Tie every record to one host and workload
    """

    workload: str
    service: str
    hostname: str

    def to_dict(self) -> dict[str, str]:
        # Explicit key mapping for stability
        return {
            "workload": self.workload,
            "service": self.service,
            "hostname": self.hostname,
        }


@dataclass(frozen=True)
class MetricRecord:
    """
    One gauge value at one sample time

    attributes = identity keys merged with extra; extra wins on collision
    """

    name: str
    value: float
    timestamp: int
    identity: Identity
    extra: Mapping[str, str] = field(default_factory=dict)
    kind: str = GAUGE

    @property
    def attributes(self) -> dict[str, str]:
        return {**self.identity.to_dict(), **self.extra}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind,
            "value": self.value,
            "timestamp": self.timestamp,
            "attributes": self.attributes,
        }


def build_metric(
    prefix: str,
    name: str,
    value: float,
    timestamp: int,
    identity: Identity,
    extra: Optional[Mapping[str, str]] = None,
) -> MetricRecord:
    """
    Create a metric API entry
    """
    return MetricRecord(
        name=prefix + NAME_SEPARATOR + name,
        value=float(value),
        timestamp=int(timestamp),
        identity=identity,
        # Read-only copy so callers can't mutate a built record
        extra=MappingProxyType(dict(extra or {})),
    )


@dataclass(frozen=True)
class MetricContext:
    """
    Per-cycle inputs shared by every record in a batch
    """

    prefix: str
    timestamp: int
    identity: Identity

    def metric(self, name: str, value: Optional[float], extra: Optional[Mapping[str, str]] = None) -> MetricRecord:
        # Missing rates (first observation) are reported as zero
        return build_metric(
            self.prefix,
            name,
            0.0 if value is None else value,
            self.timestamp,
            self.identity,
            extra,
        )


# -----------------------------
# Group builders
# -----------------------------
def cpu_metrics(ctx: MetricContext, sample: CpuSample) -> list[MetricRecord]:
    return [
        ctx.metric("CpuPercent", sample.cpu_percent),
        ctx.metric("CpuUserPercent", sample.user_percent),
        ctx.metric("CpuSystemPercent", sample.system_percent),
    ]


def memory_metrics(ctx: MetricContext, sample: MemorySample) -> list[MetricRecord]:
    return [
        ctx.metric("MemoryTotalBytes", sample.total_bytes),
        ctx.metric("MemoryFreeBytes", sample.free_bytes),
        ctx.metric("MemoryUsedBytes", sample.used_bytes),
        ctx.metric("MemoryFreePercent", sample.free_percent),
        ctx.metric("MemoryUsedPercent", sample.used_percent),
        ctx.metric("MemoryCachedBytes", sample.cached_bytes),
        ctx.metric("SwapTotalBytes", sample.swap_total_bytes),
        ctx.metric("SwapFreeBytes", sample.swap_free_bytes),
        ctx.metric("SwapUsedBytes", sample.swap_used_bytes),
    ]


def network_metrics(ctx: MetricContext, samples: list[NetworkSample]) -> list[MetricRecord]:
    records: list[MetricRecord] = []
    for ns in samples:
        extra = {
            "interfaceName": ns.interface_name,
            "hardwareAddress": ns.hardware_address,
            "ipV4Address": ns.ipv4_address,
            "ipV6Address": ns.ipv6_address,
            "state": ns.state,
        }
        records.append(ctx.metric("ReceiveBytesPerSec", ns.receive_bytes_per_sec, extra))
        records.append(ctx.metric("ReceiveErrorsPerSec", ns.receive_errors_per_sec, extra))
        records.append(ctx.metric("TransmitBytesPerSec", ns.transmit_bytes_per_sec, extra))
        records.append(ctx.metric("TransmitErrorsPerSec", ns.transmit_errors_per_sec, extra))
    return records


def storage_metrics(ctx: MetricContext, samples: list[StorageSample]) -> list[MetricRecord]:
    records: list[MetricRecord] = []
    for ss in samples:
        extra = {
            "device": ss.device,
            "mountPoint": ss.mount_point,
            "fileSystemType": ss.filesystem_type,
        }
        records.append(ctx.metric("UsedBytes", ss.used_bytes, extra))
        records.append(ctx.metric("UsedPercent", ss.used_percent, extra))
        records.append(ctx.metric("FreeBytes", ss.free_bytes, extra))
        records.append(ctx.metric("FreePercent", ss.free_percent, extra))
        records.append(ctx.metric("TotalBytes", ss.total_bytes, extra))
        records.append(ctx.metric("ReadBytesPerSec", ss.read_bytes_per_sec, extra))
        records.append(ctx.metric("WriteBytesPerSec", ss.write_bytes_per_sec, extra))
        records.append(ctx.metric("ReadWriteBytesPerSecond", ss.read_write_bytes_per_sec, extra))
    return records
