"""
infralite.delivery
AUTHOR: carter-vin

Metric API delivery with bounded retries

Contract:
- at most policy.max_attempts POSTs per call
- stop on the first 200/202
- other statuses and transport errors are logged and retried
- the default policy has no backoff and no jitter (legacy behavior)
- the result reflects the final attempt, never an earlier stale error
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

import requests

from infralite.errors import DeliveryError
from infralite.logging import EventLogger, error_fields

SUCCESS_STATUSES = frozenset({200, 202})


def no_backoff(attempt: int) -> float:
    return 0.0


def exponential_backoff(base_s: float = 1.0, cap_s: float = 30.0) -> Callable[[int], float]:
    """
    Backoff of base * 2**(attempt-1), capped
    """

    def _backoff(attempt: int) -> float:
        return min(cap_s, base_s * (2 ** (attempt - 1)))

    return _backoff


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts: total POSTs per call (>= 1)
    backoff: seconds to wait after failed attempt N before attempt N+1
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = no_backoff

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


LEGACY_RETRY_POLICY = RetryPolicy()


@dataclass(frozen=True)
class DeliveryAttempt:
    attempt_number: int
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code in SUCCESS_STATUSES


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    status_code: Optional[int]
    body: bytes
    attempts: list[DeliveryAttempt] = field(default_factory=list)
    error: Optional[DeliveryError] = None


def metric_api_headers(license_key: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Content-Encoding": "gzip",
        "Api-Key": license_key,
    }


class DeliveryClient:
    def __init__(
        self,
        logger: EventLogger,
        *,
        session: Optional[requests.Session] = None,
        policy: RetryPolicy = LEGACY_RETRY_POLICY,
        timeout_s: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._logger = logger
        self._session = session if session is not None else requests.Session()
        self._policy = policy
        self._timeout_s = timeout_s
        self._sleep = sleep

    def post(self, endpoint: str, payload: bytes, headers: Mapping[str, str]) -> DeliveryResult:
        """
        POST payload with retries

        Never raises for transport or status failures; inspect result.ok.
        """
        attempts: list[DeliveryAttempt] = []
        status_code: Optional[int] = None
        body = b""

        for attempt in range(1, self._policy.max_attempts + 1):
            if attempt > 1:
                delay = self._policy.backoff(attempt - 1)
                if delay > 0:
                    self._sleep(delay)

            try:
                response = self._session.post(
                    endpoint,
                    data=payload,
                    headers=dict(headers),
                    timeout=self._timeout_s,
                )
            except requests.RequestException as e:
                # Reset so a stale response from an earlier attempt is never reported
                status_code = None
                body = b""
                attempts.append(DeliveryAttempt(attempt_number=attempt, error=str(e)))
                self._logger.emit("delivery_attempt_failed", attempt=attempt, **error_fields(e))
                continue

            status_code = response.status_code
            body = response.content or b""
            attempts.append(DeliveryAttempt(attempt_number=attempt, status_code=status_code))

            if status_code in SUCCESS_STATUSES:
                break

            self._logger.emit(
                "delivery_attempt_failed",
                attempt=attempt,
                status_code=status_code,
                error_type="HTTPStatus",
                message=f"http status {status_code}",
            )

        last = attempts[-1]
        if last.ok:
            return DeliveryResult(ok=True, status_code=status_code, body=body, attempts=attempts)

        reason = last.error if last.error is not None else f"http status {last.status_code}"
        return DeliveryResult(
            ok=False,
            status_code=status_code,
            body=body,
            attempts=attempts,
            error=DeliveryError(f"delivery failed after {len(attempts)} attempts: {reason}"),
        )
