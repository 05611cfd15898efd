"""
infralite.collectors.base
AUTHOR: carter-vin

Sampler harness for the poll loop

- a raising sampler becomes a failed CollectorOutcome, never an exception
- each outcome carries how long the sampler took, for agent_tick timings
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CollectorOutcome:
    name: str
    ok: bool
    value: Any = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    elapsed_s: float = 0.0

    def failure_fields(self) -> dict[str, Optional[str]]:
        """
        Fields for a sampler_failed event
        """
        return {
            "sampler": self.name,
            "error_type": self.error_type,
            "message": self.error_message,
        }


def run_collector(
    name: str,
    fn: Callable[..., Any],
    *args: Any,
    clock: Callable[[], float] = time.monotonic,
) -> CollectorOutcome:
    started = clock()
    try:
        value = fn(*args)
    except Exception as e:
        return CollectorOutcome(
            name=name,
            ok=False,
            error_type=type(e).__name__,
            error_message=str(e),
            elapsed_s=clock() - started,
        )
    return CollectorOutcome(name=name, ok=True, value=value, elapsed_s=clock() - started)
