"""
infralite.config
AUTHOR: carter-vin

Agent configuration from environment variables

Read once at startup, immutable for the process lifetime.
Any problem here raises ConfigError; the CLI exits before the poll loop.
"""

from __future__ import annotations

import os
import re
import socket
import threading
from dataclasses import dataclass
from typing import Mapping, Optional

from infralite.errors import ConfigError

DEFAULT_POLL_INTERVAL = "30s"
DEFAULT_APP_NAME = "My Application"
DEFAULT_WORKLOAD_NAME = "My Workload"
DEFAULT_PREFIX = "container"
DEFAULT_LOG_FILE = "./infra-lite.log"
NR_METRIC_API = "https://metric-api.newrelic.com/metric/v1"

# Env var names
LICENSE_KEY_ENV = "NEW_RELIC_LICENSE_KEY"
APP_NAME_ENV = "NEW_RELIC_APP_NAME"
WORKLOAD_ENV = "WORKLOAD_NAME"
PREFIX_ENV = "METRIC_PREFIX"
LOG_FILE_ENV = "NRIA_LOG_FILE"
VERBOSE_ENV = "NRIA_VERBOSE"
POLL_INTERVAL_ENV = "POLL_INTERVAL"
ENDPOINT_ENV = "NR_METRIC_API_URL"
REQUEST_TIMEOUT_ENV = "NRIA_REQUEST_TIMEOUT"

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

# Largest int64 nanosecond count, capped by what Event.wait accepts
MAX_DURATION_S = min(threading.TIMEOUT_MAX, 9223372036.854775807)


@dataclass(frozen=True)
class AgentConfig:
    license_key: str
    service: str
    workload: str
    prefix: str
    poll_interval_s: float
    hostname: str
    log_file: str = DEFAULT_LOG_FILE
    verbose: bool = False
    endpoint: str = NR_METRIC_API
    request_timeout_s: Optional[float] = None


def parse_duration(value: str) -> float:
    """
    Parse a Go-style duration string into seconds

    Accepts a sequence of decimal numbers with unit suffixes,
    e.g. "300ms", "1.5h", "2h45m". "0" alone is zero.
    Raises ValueError on anything else.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    return sign * total


def _positive_duration(env_name: str, raw: str) -> float:
    try:
        seconds = parse_duration(raw)
    except ValueError as e:
        raise ConfigError(
            f"could not parse env var {env_name}: {e}, must be a duration (ex: 1h)"
        ) from e
    if seconds <= 0:
        raise ConfigError(f"env var {env_name} must be a positive duration, got {raw!r}")
    if seconds > MAX_DURATION_S:
        raise ConfigError(f"env var {env_name} out of range, got {raw!r}")
    return seconds


def _is_verbose(raw: Optional[str]) -> bool:
    return bool(raw) and raw != "0"


def resolve_hostname() -> str:
    try:
        hostname = socket.gethostname()
    except OSError as e:
        raise ConfigError(f"hostname of server: {e}") from e
    if not hostname:
        raise ConfigError("hostname of server is empty")
    return hostname


def load_config(environ: Mapping[str, str] | None = None, *, hostname: str | None = None) -> AgentConfig:
    """
    Build AgentConfig from environment

    Precedence:
    1) env var when set and non-empty
    2) defaults above

    NEW_RELIC_LICENSE_KEY is required.
    """
    env = os.environ if environ is None else environ

    license_key = env.get(LICENSE_KEY_ENV, "")
    if not license_key:
        raise ConfigError(f"could not locate env var {LICENSE_KEY_ENV}")

    poll_interval_s = _positive_duration(
        POLL_INTERVAL_ENV, env.get(POLL_INTERVAL_ENV) or DEFAULT_POLL_INTERVAL
    )

    request_timeout_s: Optional[float] = None
    if env.get(REQUEST_TIMEOUT_ENV):
        request_timeout_s = _positive_duration(REQUEST_TIMEOUT_ENV, env[REQUEST_TIMEOUT_ENV])

    return AgentConfig(
        license_key=license_key,
        service=env.get(APP_NAME_ENV) or DEFAULT_APP_NAME,
        workload=env.get(WORKLOAD_ENV) or DEFAULT_WORKLOAD_NAME,
        prefix=env.get(PREFIX_ENV) or DEFAULT_PREFIX,
        poll_interval_s=poll_interval_s,
        hostname=hostname if hostname is not None else resolve_hostname(),
        log_file=env.get(LOG_FILE_ENV) or DEFAULT_LOG_FILE,
        verbose=_is_verbose(env.get(VERBOSE_ENV)),
        endpoint=env.get(ENDPOINT_ENV) or NR_METRIC_API,
        request_timeout_s=request_timeout_s,
    )
