"""
Contract test for agent_tick event payload shape
"""

import io
import json

from infralite.logging import EventLogger


def test_agent_tick_contract_required_fields() -> None:
    """
    agent_tick includes stable required fields with expected types
    """
    stream = io.StringIO()
    EventLogger(stream, agent_version="0.1.0").emit(
        "agent_tick",
        interval_s=30.0,
        tick_elapsed_ms=120,
        collect_elapsed_ms=35,
        sampler_elapsed_ms={"cpu": 2, "memory": 1},
        emit_elapsed_ms=85,
        sleep_ms=29880,
        overrun=False,
        metrics=42,
        failed_samplers=[],
        delivered=True,
    )

    payload = json.loads(stream.getvalue().strip())

    assert payload["event_type"] == "agent_tick"
    assert "utc_now" in payload
    assert payload["agent_version"] == "0.1.0"
    assert isinstance(payload["interval_s"], float)
    assert isinstance(payload["tick_elapsed_ms"], int)
    assert isinstance(payload["collect_elapsed_ms"], int)
    assert isinstance(payload["sampler_elapsed_ms"], dict)
    assert isinstance(payload["emit_elapsed_ms"], int)
    assert isinstance(payload["sleep_ms"], int)
    assert isinstance(payload["overrun"], bool)
    assert isinstance(payload["metrics"], int)
    assert isinstance(payload["failed_samplers"], list)
    assert isinstance(payload["delivered"], bool)
