"""
infralite.codec
AUTHOR: carter-vin

Metric API payload encoding

OUTPUT:
- gzip-compressed JSON
- a single-element array: [{"metrics": [...]}]

Failure semantics:
- raises EncodeError; caller logs and skips delivery for the cycle
"""

from __future__ import annotations

import gzip
import json
from typing import Any, Iterable

from infralite.errors import EncodeError
from infralite.model import MetricRecord


def payload_to_json(records: Iterable[MetricRecord]) -> str:
    """
    Serialize a batch to the Metric API JSON envelope

    Rules:
    - record order is preserved
    - allow_nan=False: NaN/Infinity are not valid JSON for the receiver
    """
    payload = [{"metrics": [record.to_dict() for record in records]}]
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodeError(f"formatting JSON for metrics api: {e}") from e


def encode_batch(records: Iterable[MetricRecord]) -> bytes:
    """
    Serialize and compress a batch
    """
    body = payload_to_json(records).encode("utf-8")
    try:
        return gzip.compress(body)
    except (OSError, ValueError) as e:
        raise EncodeError(f"compressing JSON for metrics api: {e}") from e


def decode_payload(data: bytes) -> list[dict[str, Any]]:
    """
    Inverse of encode_batch (dry runs, tests)
    """
    return json.loads(gzip.decompress(data).decode("utf-8"))
