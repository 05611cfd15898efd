"""
infralite.main
------------
AUTHOR: carter-vin

PURPOSE:
- CLI entrypoint for the host-metrics agent
- Wire config, logger, samplers, delivery and the poll loop together

Key contract:
- configuration errors exit with code 2 before any sampling starts
- `infra-lite run` loops until SIGINT/SIGTERM
- `infra-lite oneshot` runs a single cycle (useful for smoke tests)
"""

from __future__ import annotations

import json
import platform
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import typer

from infralite.codec import decode_payload
from infralite.collectors.cpu import CpuMonitor
from infralite.collectors.disk import DiskMonitor
from infralite.collectors.memory import MemoryMonitor
from infralite.collectors.network import NetworkMonitor
from infralite.config import AgentConfig, load_config
from infralite.delivery import DeliveryClient, RetryPolicy
from infralite.errors import ConfigError
from infralite.logging import EventLogger
from infralite.scheduler import PollScheduler, default_groups
from infralite.shutdown import ShutdownToken, install_signal_handlers

# Explicit multi-command CLI
app = typer.Typer(
    add_completion=False,
    help="infra-lite: host metrics to the New Relic Metric API",
)

AGENT_VERSION = "0.1.0"
CONFIG_ERROR_EXIT = 2


# -----------------------------
# DATA CLASSES
# -----------------------------
@dataclass(frozen=True)
class EnvironmentInfo:
    """
    Snapshot of the runtime environment
    """

    python_version: str
    os: str
    machine: str
    utc_now: str


def collect_environment_info() -> EnvironmentInfo:
    return EnvironmentInfo(
        python_version=sys.version.split()[0],
        os=f"{platform.system()} {platform.release()}",
        machine=platform.machine(),
        utc_now=datetime.now(timezone.utc).isoformat(),
    )


def _load_or_exit() -> AgentConfig:
    try:
        return load_config()
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=CONFIG_ERROR_EXIT)


def _open_logger(config: AgentConfig) -> EventLogger:
    try:
        return EventLogger.open(config.log_file, agent_version=AGENT_VERSION, verbose=config.verbose)
    except OSError as e:
        typer.echo(f"Error opening log file {config.log_file}: {e}", err=True)
        raise typer.Exit(code=CONFIG_ERROR_EXIT)


def build_scheduler(
    config: AgentConfig,
    logger: EventLogger,
    token: ShutdownToken,
    *,
    send: bool = True,
) -> PollScheduler:
    """
    Assemble the production poll loop
    """
    cpu = CpuMonitor()
    groups = default_groups(
        cpu,
        MemoryMonitor(logger),
        NetworkMonitor(),
        DiskMonitor(),
    )

    delivery: Optional[DeliveryClient] = None
    if send:
        delivery = DeliveryClient(
            logger,
            policy=RetryPolicy(max_attempts=3),
            timeout_s=config.request_timeout_s,
        )

    return PollScheduler(
        config,
        groups,
        logger,
        token,
        delivery=delivery,
        primer=cpu.sample,
    )


def _log_start(logger: EventLogger, config: AgentConfig, mode: str) -> None:
    logger.emit("agent_start", mode=mode)
    logger.emit(
        "config_loaded",
        mode=mode,
        service=config.service,
        workload=config.workload,
        hostname=config.hostname,
        prefix=config.prefix,
        poll_interval_s=config.poll_interval_s,
        endpoint=config.endpoint,
    )


# -----------------------------
# ROOT COMMAND BEHAVIOR
# -----------------------------
@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """
    Root command behavior: hint when no subcommand is given.
    """
    if ctx.invoked_subcommand is None:
        typer.echo("No command provided. Try: infra-lite --help")


# -----------------------------
# CLI COMMANDS
# -----------------------------
@app.command()
def version() -> None:
    """
    Print agent version & runtime env
    """
    env = collect_environment_info()

    typer.echo(f"infra-lite v{AGENT_VERSION}")
    typer.echo(f"python={env.python_version}")
    typer.echo(f"os={env.os}")
    typer.echo(f"machine={env.machine}")
    typer.echo(f"utc_now={env.utc_now}")


@app.command("run")
def run() -> None:
    """
    Run the poll loop until SIGINT/SIGTERM.

    All settings come from environment variables (NEW_RELIC_LICENSE_KEY, POLL_INTERVAL, ...).
    """
    config = _load_or_exit()
    logger = _open_logger(config)
    token = ShutdownToken()
    install_signal_handlers(token)

    _log_start(logger, config, "run")
    cycles = 0
    try:
        cycles = build_scheduler(config, logger, token).run()
    finally:
        logger.emit("agent_shutdown", mode="run", cycles=cycles, reason=token.reason)
        logger.close()


@app.command("oneshot")
def oneshot(
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print the payload JSON instead of posting it.",
    ),
) -> None:
    """
    Prime samplers, run one poll cycle and exit

    Exit code 1 if delivery was attempted and failed.
    """
    config = _load_or_exit()
    logger = _open_logger(config)
    token = ShutdownToken()

    _log_start(logger, config, "oneshot")
    delivered = True
    try:
        scheduler = build_scheduler(config, logger, token, send=not dry_run)
        scheduler.prime()
        result = scheduler.run_cycle()

        if dry_run:
            if result.payload:
                typer.echo(json.dumps(decode_payload(result.payload), indent=2, sort_keys=True))
        else:
            delivered = result.delivery is not None and result.delivery.ok
    finally:
        logger.emit("agent_shutdown", mode="oneshot")
        logger.close()

    if not delivered:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
