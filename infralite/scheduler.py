"""
infralite.scheduler
AUTHOR: carter-vin

Poll loop: sample -> build -> encode -> deliver, once per interval

Key contract:
- a failing sampler drops only its own group's records
- delivery outcome is logged, never fatal
- sleep = max(0, interval - elapsed); an overrunning cycle is followed immediately
  by the next one (no catch-up, no skipping)
- shutdown token checked at the top of every cycle and interrupts the sleep
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from infralite.codec import encode_batch
from infralite.collectors.base import run_collector
from infralite.collectors.cpu import CpuMonitor
from infralite.collectors.disk import DiskMonitor
from infralite.collectors.memory import MemoryMonitor
from infralite.collectors.network import NetworkMonitor
from infralite.config import AgentConfig
from infralite.delivery import DeliveryClient, DeliveryResult, metric_api_headers
from infralite.errors import EncodeError
from infralite.logging import EventLogger, error_fields
from infralite.model import (
    Identity,
    MetricContext,
    MetricRecord,
    cpu_metrics,
    memory_metrics,
    network_metrics,
    storage_metrics,
)
from infralite.shutdown import ShutdownToken

# Delta-based CPU counters need one prior snapshot
PRIME_PAUSE_S = 1.0


@dataclass(frozen=True)
class MetricGroup:
    """
    One sampler and the records it produces
    """

    name: str
    sample: Callable[[], Any]
    to_records: Callable[[MetricContext, Any], list[MetricRecord]]


def default_groups(
    cpu: CpuMonitor,
    memory: MemoryMonitor,
    network: NetworkMonitor,
    disk: DiskMonitor,
) -> list[MetricGroup]:
    return [
        MetricGroup("cpu", cpu.sample, cpu_metrics),
        MetricGroup("memory", memory.sample, memory_metrics),
        MetricGroup("network", network.sample, network_metrics),
        MetricGroup("storage", disk.sample, storage_metrics),
    ]


@dataclass(frozen=True)
class CycleResult:
    sample_time: int
    records: list[MetricRecord]
    failed_groups: list[str] = field(default_factory=list)
    sampler_elapsed_s: dict[str, float] = field(default_factory=dict)
    payload: bytes = b""
    delivery: Optional[DeliveryResult] = None
    collect_elapsed_s: float = 0.0
    emit_elapsed_s: float = 0.0
    elapsed_s: float = 0.0


def _ms(seconds: float) -> int:
    return int(round(seconds * 1000))


class PollScheduler:
    def __init__(
        self,
        config: AgentConfig,
        groups: Sequence[MetricGroup],
        logger: EventLogger,
        token: ShutdownToken,
        *,
        delivery: Optional[DeliveryClient] = None,
        primer: Optional[Callable[[], Any]] = None,
        encoder: Callable[[list[MetricRecord]], bytes] = encode_batch,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._groups = list(groups)
        self._logger = logger
        self._token = token
        self._delivery = delivery
        self._primer = primer
        self._encoder = encoder
        self._clock = clock
        self._wall_clock = wall_clock
        self._identity = Identity(
            workload=config.workload,
            service=config.service,
            hostname=config.hostname,
        )
        self._headers = metric_api_headers(config.license_key)

    def prime(self) -> None:
        """
        First sample of a delta-based sampler is meaningless; take it and pause
        """
        if self._primer is None:
            return
        outcome = run_collector("cpu", self._primer, clock=self._clock)
        if not outcome.ok:
            self._logger.emit("sampler_failed", phase="prime", **outcome.failure_fields())
        self._token.wait(PRIME_PAUSE_S)

    def remainder(self, elapsed_s: float) -> float:
        return max(0.0, self._config.poll_interval_s - elapsed_s)

    def collect(self, ctx: MetricContext) -> tuple[list[MetricRecord], list[str], dict[str, float]]:
        """
        Run every group sequentially; failures are data, not exceptions

        Returns records, failed group names and per-group sampling time.
        """
        records: list[MetricRecord] = []
        failed: list[str] = []
        timings: dict[str, float] = {}

        for group in self._groups:
            outcome = run_collector(group.name, group.sample, clock=self._clock)
            timings[group.name] = outcome.elapsed_s
            if outcome.ok:
                built = run_collector(group.name, group.to_records, ctx, outcome.value)
                if built.ok:
                    records.extend(built.value)
                    continue
                outcome = built

            failed.append(group.name)
            self._logger.emit("sampler_failed", **outcome.failure_fields())

        return records, failed, timings

    def _deliver(self, payload: bytes) -> Optional[DeliveryResult]:
        if self._delivery is None:
            return None

        result = self._delivery.post(self._config.endpoint, payload, self._headers)
        if result.ok:
            self._logger.debug(
                "delivery_succeeded",
                status_code=result.status_code,
                attempts=len(result.attempts),
            )
        else:
            self._logger.emit(
                "delivery_failed",
                status_code=result.status_code,
                attempts=len(result.attempts),
                **error_fields(result.error),
            )
        return result

    def run_cycle(self) -> CycleResult:
        start = self._clock()
        sample_time = int(self._wall_clock())
        ctx = MetricContext(
            prefix=self._config.prefix,
            timestamp=sample_time,
            identity=self._identity,
        )

        records, failed, timings = self.collect(ctx)
        collected_at = self._clock()

        payload = b""
        delivery: Optional[DeliveryResult] = None
        try:
            payload = self._encoder(records)
        except EncodeError as e:
            self._logger.emit("payload_encode_failed", metrics=len(records), **error_fields(e))
        else:
            if payload:
                self._logger.debug("payload_encoded", metrics=len(records), bytes=len(payload))
                delivery = self._deliver(payload)
            else:
                self._logger.emit("payload_empty", metrics=len(records))

        end = self._clock()
        return CycleResult(
            sample_time=sample_time,
            records=records,
            failed_groups=failed,
            sampler_elapsed_s=timings,
            payload=payload,
            delivery=delivery,
            collect_elapsed_s=collected_at - start,
            emit_elapsed_s=end - collected_at,
            elapsed_s=end - start,
        )

    def _log_tick(self, result: CycleResult, sleep_s: float) -> None:
        self._logger.emit(
            "agent_tick",
            interval_s=self._config.poll_interval_s,
            tick_elapsed_ms=_ms(result.elapsed_s),
            collect_elapsed_ms=_ms(result.collect_elapsed_s),
            sampler_elapsed_ms={name: _ms(s) for name, s in result.sampler_elapsed_s.items()},
            emit_elapsed_ms=_ms(result.emit_elapsed_s),
            sleep_ms=_ms(sleep_s),
            overrun=result.elapsed_s > self._config.poll_interval_s,
            metrics=len(result.records),
            failed_samplers=sorted(result.failed_groups),
            delivered=bool(result.delivery and result.delivery.ok),
        )

    def run(self, *, max_cycles: Optional[int] = None) -> int:
        """
        Prime, then loop until the token is cancelled (or max_cycles ran)

        Returns the number of completed cycles.
        """
        self.prime()
        cycles = 0

        while not self._token.cancelled:
            start = self._clock()
            try:
                result: Optional[CycleResult] = self.run_cycle()
            except Exception as e:
                # Cycle-local failures never end the loop
                self._logger.emit("cycle_failed", **error_fields(e))
                result = None

            cycles += 1
            sleep_s = self.remainder(self._clock() - start)
            if result is not None:
                self._log_tick(result, sleep_s)

            if max_cycles is not None and cycles >= max_cycles:
                break

            # Wait remainder of poll interval
            if sleep_s > 0 and self._token.wait(sleep_s):
                break

        if self._token.cancelled:
            self._logger.emit("shutdown_requested", reason=self._token.reason, cycles=cycles)
        return cycles
