"""
infralite.logging
AUTHOR: carter-vin

Structured JSON event logging for ops ingestion

Contract:
- One JSON object per line to the configured stream (log file or stdout)
- Stable event vocabulary (allowlist)
- UTC timestamps only
- Explicitly constructed and passed around; no module-level logger state
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, TextIO

# Event types
VALID_EVENT_TYPES = {
    "agent_start",
    "config_loaded",
    "agent_tick",
    "cycle_failed",
    "sampler_failed",
    "memory_source_unavailable",
    "memory_snapshot_inconsistent",
    "payload_encoded",
    "payload_encode_failed",
    "payload_empty",
    "delivery_attempt_failed",
    "delivery_succeeded",
    "delivery_failed",
    "shutdown_requested",
    "agent_shutdown",
}


def _truncate_message(value: str, *, limit: int = 200) -> str:
    """
    Cap message length to keep events compact
    """
    if len(value) <= limit:
        return value
    return value[:limit] + f"...[truncated {len(value) - limit} chars]"


# Time: current in UTC ISO 8601
def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventLogger:
    """
    Event line writer bound to one stream

    - agent_version is stamped on every event
    - verbose gates debug() events only; emit() always writes
    """

    def __init__(
        self,
        stream: TextIO,
        *,
        agent_version: str,
        verbose: bool = False,
        owns_stream: bool = False,
    ) -> None:
        self._stream = stream
        self._owns_stream = owns_stream
        self.agent_version = agent_version
        self.verbose = verbose

    @classmethod
    def open(cls, log_file: str, *, agent_version: str, verbose: bool = False) -> "EventLogger":
        """
        Open a logger on a file path (append mode); "-" means stdout

        Failure semantics:
        - raises OSError if the file cannot be opened; caller treats as startup error
        """
        if log_file == "-":
            return cls(sys.stdout, agent_version=agent_version, verbose=verbose)

        path = Path(log_file)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        stream = path.open(mode="a", encoding="utf-8", newline="\n")
        return cls(stream, agent_version=agent_version, verbose=verbose, owns_stream=True)

    def emit(self, event_type: str, **fields: Any) -> None:
        """
        Emit structured event line

        Rules:
        - event_type in VALID_EVENT_TYPES
        - event_type, agent_version, utc_now always present
        - sort_keys + compact separators for format
        """
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(f"invalid event_type: {event_type}")

        if "message" in fields and isinstance(fields["message"], str):
            # Avoid emitting long strings in event fields
            fields["message"] = _truncate_message(fields["message"])

        payload: dict[str, Any] = {
            "event_type": event_type,
            "utc_now": utc_now_iso(),
            "agent_version": self.agent_version,
            **fields,
        }

        self._stream.write(
            json.dumps(
                payload,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                default=str,
            )
        )
        self._stream.write("\n")
        # Flush per line so tail can see events immediately
        self._stream.flush()

    def debug(self, event_type: str, **fields: Any) -> None:
        if self.verbose:
            self.emit(event_type, **fields)

    def close(self) -> None:
        if self._owns_stream:
            self._stream.close()


def error_fields(exc: BaseException) -> dict[str, Optional[str]]:
    return {"error_type": type(exc).__name__, "message": str(exc)}
