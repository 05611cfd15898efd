"""
Contract tests for poll loop pacing, shutdown and fire-and-forget delivery
"""

import io
import json

from infralite.config import AgentConfig
from infralite.delivery import DeliveryResult
from infralite.errors import DeliveryError, EncodeError
from infralite.logging import EventLogger
from infralite.model import MetricContext, MetricRecord
from infralite.scheduler import PRIME_PAUSE_S, MetricGroup, PollScheduler
from infralite.shutdown import ShutdownToken

INTERVAL_S = 30.0


def _config() -> AgentConfig:
    return AgentConfig(
        license_key="key",
        service="svc",
        workload="wl",
        prefix="container",
        poll_interval_s=INTERVAL_S,
        hostname="host-a",
        endpoint="https://metric-api.example.test/metric/v1",
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RecordingToken(ShutdownToken):
    """
    Records requested waits instead of sleeping; cancels after N waits
    """

    def __init__(self, clock: FakeClock, cancel_after: int) -> None:
        super().__init__()
        self.waits: list[float] = []
        self._clock = clock
        self._cancel_after = cancel_after

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        self._clock.now += timeout
        if len(self.waits) >= self._cancel_after:
            self.cancel("test")
        return self.cancelled


class FakeDelivery:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.posts: list[tuple] = []

    def post(self, endpoint, payload, headers):
        self.posts.append((endpoint, payload, headers))
        if self.ok:
            return DeliveryResult(ok=True, status_code=202, body=b"")
        return DeliveryResult(ok=False, status_code=500, body=b"", error=DeliveryError("http status 500"))


def _slow_group(clock: FakeClock, duration_s: float) -> MetricGroup:
    def _sample() -> float:
        clock.now += duration_s
        return 1.0

    def _records(ctx: MetricContext, value: float) -> list[MetricRecord]:
        return [ctx.metric("CpuPercent", value)]

    return MetricGroup("cpu", _sample, _records)


def _scheduler(clock, token, groups, delivery=None, stream=None, **kwargs) -> PollScheduler:
    logger = EventLogger(stream or io.StringIO(), agent_version="0.1.0")
    return PollScheduler(
        _config(),
        groups,
        logger,
        token,
        delivery=delivery,
        clock=clock,
        wall_clock=lambda: 1700000000.7,
        **kwargs,
    )


def test_short_cycle_sleeps_exact_remainder() -> None:
    """
    Cycle of 12s with 30s interval -> sleep exactly 18s
    """
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=2)
    scheduler = _scheduler(clock, token, [_slow_group(clock, 12.0)], delivery=FakeDelivery())

    cycles = scheduler.run()

    assert cycles == 2
    assert token.waits == [18.0, 18.0]


def test_overrunning_cycle_starts_next_immediately() -> None:
    """
    Cycle longer than interval -> no sleep, no catch-up
    """
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=99)
    scheduler = _scheduler(clock, token, [_slow_group(clock, 45.0)], delivery=FakeDelivery())

    cycles = scheduler.run(max_cycles=3)

    assert cycles == 3
    assert token.waits == []


def test_remainder_never_negative() -> None:
    clock = FakeClock()
    scheduler = _scheduler(clock, RecordingToken(clock, 1), [])

    assert scheduler.remainder(10.0) == 20.0
    assert scheduler.remainder(30.0) == 0.0
    assert scheduler.remainder(31.5) == 0.0


def test_prime_samples_cpu_then_pauses() -> None:
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=2)
    primed: list[bool] = []
    scheduler = _scheduler(
        clock,
        token,
        [_slow_group(clock, 1.0)],
        delivery=FakeDelivery(),
        primer=lambda: primed.append(True),
    )

    scheduler.run()

    assert primed == [True]
    assert token.waits[0] == PRIME_PAUSE_S
    assert token.waits[1] == 29.0


def test_cancelled_token_skips_loop() -> None:
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=1)
    token.cancel("test")
    delivery = FakeDelivery()
    scheduler = _scheduler(clock, token, [_slow_group(clock, 1.0)], delivery=delivery)

    assert scheduler.run() == 0
    assert delivery.posts == []


def test_cycle_builds_encodes_and_delivers() -> None:
    clock = FakeClock()
    delivery = FakeDelivery()
    scheduler = _scheduler(clock, RecordingToken(clock, 1), [_slow_group(clock, 2.0)], delivery=delivery)

    result = scheduler.run_cycle()

    assert result.sample_time == 1700000000
    assert [r.name for r in result.records] == ["container.CpuPercent"]
    assert result.records[0].timestamp == 1700000000
    assert result.elapsed_s == 2.0
    assert len(delivery.posts) == 1
    endpoint, payload, headers = delivery.posts[0]
    assert endpoint == "https://metric-api.example.test/metric/v1"
    assert payload == result.payload
    assert headers["Api-Key"] == "key"


def test_delivery_failure_does_not_stop_loop() -> None:
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=3)
    delivery = FakeDelivery(ok=False)
    stream = io.StringIO()
    scheduler = _scheduler(clock, token, [_slow_group(clock, 1.0)], delivery=delivery, stream=stream)

    assert scheduler.run() == 3
    assert len(delivery.posts) == 3
    events = [json.loads(line)["event_type"] for line in stream.getvalue().splitlines()]
    assert events.count("delivery_failed") == 3


def test_encode_failure_skips_delivery() -> None:
    clock = FakeClock()
    delivery = FakeDelivery()
    stream = io.StringIO()

    def _broken_encoder(records):
        raise EncodeError("boom")

    scheduler = _scheduler(
        clock,
        RecordingToken(clock, 1),
        [_slow_group(clock, 1.0)],
        delivery=delivery,
        stream=stream,
        encoder=_broken_encoder,
    )

    result = scheduler.run_cycle()

    assert result.payload == b""
    assert delivery.posts == []
    assert '"event_type":"payload_encode_failed"' in stream.getvalue()
    assert '"event_type":"payload_empty"' not in stream.getvalue()


def test_zero_length_payload_skips_delivery() -> None:
    clock = FakeClock()
    delivery = FakeDelivery()
    stream = io.StringIO()
    scheduler = _scheduler(
        clock,
        RecordingToken(clock, 1),
        [_slow_group(clock, 1.0)],
        delivery=delivery,
        stream=stream,
        encoder=lambda records: b"",
    )

    scheduler.run_cycle()

    assert delivery.posts == []
    assert '"event_type":"payload_empty"' in stream.getvalue()
    assert '"event_type":"payload_encode_failed"' not in stream.getvalue()


def test_unexpected_cycle_error_keeps_looping() -> None:
    """
    Anything escaping a cycle is logged; the loop continues and still paces
    """
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=2)
    stream = io.StringIO()

    def _exploding_encoder(records):
        raise RuntimeError("unexpected")

    scheduler = _scheduler(
        clock,
        token,
        [_slow_group(clock, 5.0)],
        delivery=FakeDelivery(),
        stream=stream,
        encoder=_exploding_encoder,
    )

    assert scheduler.run() == 2
    assert token.waits == [25.0, 25.0]
    events = [json.loads(line)["event_type"] for line in stream.getvalue().splitlines()]
    assert events.count("cycle_failed") == 2


def test_agent_tick_reports_sleep_and_overrun() -> None:
    clock = FakeClock()
    stream = io.StringIO()
    scheduler = _scheduler(clock, RecordingToken(clock, 99), [_slow_group(clock, 40.0)], stream=stream)

    scheduler.run(max_cycles=1)

    ticks = [json.loads(line) for line in stream.getvalue().splitlines()]
    ticks = [t for t in ticks if t["event_type"] == "agent_tick"]
    assert len(ticks) == 1
    assert ticks[0]["overrun"] is True
    assert ticks[0]["sleep_ms"] == 0
    assert ticks[0]["tick_elapsed_ms"] == 40000
    assert ticks[0]["sampler_elapsed_ms"] == {"cpu": 40000}
    assert ticks[0]["delivered"] is False


def test_shutdown_request_logged_by_loop() -> None:
    clock = FakeClock()
    token = RecordingToken(clock, cancel_after=1)
    stream = io.StringIO()
    scheduler = _scheduler(clock, token, [_slow_group(clock, 1.0)], delivery=FakeDelivery(), stream=stream)

    scheduler.run()

    events = [json.loads(line) for line in stream.getvalue().splitlines()]
    requested = [e for e in events if e["event_type"] == "shutdown_requested"]
    assert len(requested) == 1
    assert requested[0]["reason"] == "test"
    assert requested[0]["cycles"] == 1
