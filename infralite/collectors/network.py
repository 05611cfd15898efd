"""
infralite.collectors.network
AUTHOR: carter-vin

Network collector
- one sample per interface (loopback skipped)
- rates are per second since the previous call; None on first sight of an interface
- addresses and link state via psutil
"""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import psutil

from infralite.errors import SamplerError


@dataclass(frozen=True)
class NetworkSample:
    interface_name: str
    hardware_address: str
    ipv4_address: str
    ipv6_address: str
    state: str
    receive_bytes_per_sec: Optional[float]
    receive_errors_per_sec: Optional[float]
    transmit_bytes_per_sec: Optional[float]
    transmit_errors_per_sec: Optional[float]


@dataclass(frozen=True)
class _Counters:
    ts: float
    bytes_recv: int
    errin: int
    bytes_sent: int
    errout: int


_LOOPBACK = {"lo", "lo0"}


def _rate(current: int, previous: int, elapsed: float) -> float:
    # Counter reset (interface re-created) reports zero rather than negative
    return max(current - previous, 0) / elapsed


def _addresses(addrs: list[Any]) -> tuple[str, str, str]:
    hardware = ipv4 = ipv6 = ""
    for addr in addrs:
        if addr.family == psutil.AF_LINK and not hardware:
            hardware = addr.address
        elif addr.family == socket.AF_INET and not ipv4:
            ipv4 = addr.address
        elif addr.family == socket.AF_INET6 and not ipv6:
            ipv6 = addr.address
    return hardware, ipv4, ipv6


class NetworkMonitor:
    def __init__(
        self,
        *,
        io_counters: Callable[..., Any] = psutil.net_io_counters,
        if_addrs: Callable[[], Any] = psutil.net_if_addrs,
        if_stats: Callable[[], Any] = psutil.net_if_stats,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._io_counters = io_counters
        self._if_addrs = if_addrs
        self._if_stats = if_stats
        self._clock = clock
        self._previous: dict[str, _Counters] = {}

    def sample(self) -> list[NetworkSample]:
        try:
            counters = self._io_counters(pernic=True)
            addrs = self._if_addrs()
            stats = self._if_stats()
        except (OSError, RuntimeError) as e:
            raise SamplerError(f"network counters unavailable: {e}") from e

        now = self._clock()
        samples: list[NetworkSample] = []
        current: dict[str, _Counters] = {}

        for name in sorted(counters):
            if name in _LOOPBACK:
                continue
            io = counters[name]
            snap = _Counters(
                ts=now,
                bytes_recv=io.bytes_recv,
                errin=io.errin,
                bytes_sent=io.bytes_sent,
                errout=io.errout,
            )
            current[name] = snap

            rx = rx_err = tx = tx_err = None
            prev = self._previous.get(name)
            if prev is not None and now > prev.ts:
                elapsed = now - prev.ts
                rx = _rate(snap.bytes_recv, prev.bytes_recv, elapsed)
                rx_err = _rate(snap.errin, prev.errin, elapsed)
                tx = _rate(snap.bytes_sent, prev.bytes_sent, elapsed)
                tx_err = _rate(snap.errout, prev.errout, elapsed)

            hardware, ipv4, ipv6 = _addresses(addrs.get(name, []))
            stat = stats.get(name)
            state = "up" if stat is not None and stat.isup else "down"

            samples.append(
                NetworkSample(
                    interface_name=name,
                    hardware_address=hardware,
                    ipv4_address=ipv4,
                    ipv6_address=ipv6,
                    state=state,
                    receive_bytes_per_sec=rx,
                    receive_errors_per_sec=rx_err,
                    transmit_bytes_per_sec=tx,
                    transmit_errors_per_sec=tx_err,
                )
            )

        # Interfaces that disappeared drop their history
        self._previous = current
        return samples
