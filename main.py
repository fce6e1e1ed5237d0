#!/usr/bin/env python3
"""
NetPulse - latency measurement, comparison and live monitoring.
"""

import asyncio
import json
import signal
import sys

import click
from aiohttp import web

from netpulse.core import quality
from netpulse.core.comparator import SORT_KEYS
from netpulse.core.engine import NetPulseEngine
from netpulse.core.errors import NetPulseError
from netpulse.core.models import RunMode, Sample, StatsSnapshot
from netpulse.core.settings import Settings
from netpulse.core.targets import PRESETS, describe, get_preset
from netpulse.core.transports import TRANSPORT_NAMES
from netpulse.server.app import create_app
from netpulse.utils.logger import setup_logger

VERSION = "1.0.0"


def _settings(ctx: click.Context, **overrides) -> Settings:
    return Settings(ctx.obj.get("config_dir"), **{k: v for k, v in overrides.items() if v is not None})


def _engine(settings: Settings, transport, seed) -> NetPulseEngine:
    if transport:
        settings.set("transports", list(transport))
    return NetPulseEngine(settings, seed=seed)


transport_option = click.option(
    "--transport", "-t", multiple=True, type=click.Choice(TRANSPORT_NAMES),
    help="Transport to try, in order; repeat for a fallback chain.",
)
seed_option = click.option(
    "--seed", type=int, default=None,
    help="Seed for the fake transport.",
)


@click.group()
@click.version_option(VERSION)
@click.option("--config", "config_dir", type=click.Path(file_okay=False), default=None,
              help="Directory containing settings.json.")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def cli(ctx, config_dir, log_level):
    """NetPulse -- measure, compare and monitor network latency."""
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir
    ctx.obj["log_level"] = log_level


# ──────────────────────────────────────────────────────────────────
# serve
# ──────────────────────────────────────────────────────────────────

@cli.command()
@click.option("--host", default=None, help="Bind address.")
@click.option("--port", type=int, default=None, help="Bind port.")
@transport_option
@click.pass_context
def serve(ctx, host, port, transport):
    """Run the REST + WebSocket monitoring server."""
    settings = _settings(ctx, server_host=host, server_port=port)
    logger = setup_logger(settings["log_dir"], ctx.obj["log_level"])
    logger.info("=" * 50)
    logger.info(f"NetPulse v{VERSION} - Starting")
    logger.info("=" * 50)

    engine = _engine(settings, transport, None)
    web.run_app(
        create_app(engine),
        host=settings["server_host"],
        port=settings["server_port"],
        print=None,
    )
    logger.info("Application shutdown")


# ──────────────────────────────────────────────────────────────────
# test
# ──────────────────────────────────────────────────────────────────

def _echo_sample(sample: Sample, snapshot: StatsSnapshot, gaming: bool):
    if sample.ok:
        label = quality.latency_label(sample.latency_ms)
        click.echo(f"✅ Test #{sample.sequence}: {sample.latency_ms:.2f}ms - {label} ({sample.method})")
    else:
        click.echo(f"❌ Test #{sample.sequence}: Failed - {sample.failure.value} ({sample.cause})")
    for alert in quality.check_alerts(sample.latency_ms, snapshot, gaming=gaming):
        click.echo(f"   ⚠ {alert.message}")


async def _run_test(engine, target, mode, count, interval_ms, gaming, as_json):
    async with engine:
        listener = None if as_json else (lambda s, snap: _echo_sample(s, snap, gaming))
        handle = await engine.start_run(target, mode, count=count, interval_ms=interval_ms,
                                        listener=listener)
        if mode is RunMode.FIXED_COUNT:
            return await engine.wait_run(handle)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, stop.set)
        except (NotImplementedError, RuntimeError):
            pass
        await stop.wait()
        return await engine.stop_run(handle)


@cli.command()
@click.argument("target")
@click.option("--count", "-c", type=int, default=None, help="Number of probes.")
@click.option("--interval", "-i", type=int, default=None, help="Delay between probes in ms.")
@click.option("--continuous", is_flag=True, help="Probe until interrupted (Ctrl-C).")
@click.option("--preset", type=click.Choice(list(PRESETS)), default=None,
              help="Quick test preset (count, interval, gaming thresholds).")
@click.option("--gaming", is_flag=True, help="Use gaming alert thresholds.")
@click.option("--timeout", type=int, default=None, help="Per-probe timeout in ms.")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON.")
@transport_option
@seed_option
@click.pass_context
def test(ctx, target, count, interval, continuous, preset, gaming, timeout, as_json, transport, seed):
    """Measure latency to TARGET."""
    setup_logger(level=ctx.obj["log_level"], file_logging=False)
    settings = _settings(ctx, timeout_ms=timeout)

    if preset:
        chosen = get_preset(preset)
        count = chosen.count if count is None else count
        interval = chosen.interval_ms if interval is None else interval
        gaming = gaming or chosen.gaming
    count = 10 if count is None else count
    interval = settings["interval_ms"] if interval is None else interval
    gaming = gaming or settings["gaming_mode"]
    mode = RunMode.CONTINUOUS if continuous else RunMode.FIXED_COUNT

    try:
        engine = _engine(settings, transport, seed)
        info = describe(target)
        if not as_json:
            click.echo(f"🚀 Starting test for {info.name} ({target})")
        summary = asyncio.run(_run_test(engine, target, mode, count, interval, gaming, as_json))
    except NetPulseError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    click.echo(quality.format_summary(summary))
    if summary.quality:
        click.echo(f"Quality: {summary.score}/100 {summary.grade} ({summary.quality.label})")
    if gaming and summary.snapshot.has_data:
        snap = summary.snapshot
        click.echo(f"Gaming status: {quality.gaming_status(snap.last, snap.jitter, snap.packet_loss_percent)}")
    for tip in quality.smart_tips(summary.snapshot, gaming=gaming):
        click.echo(f"💡 {tip.text}")


# ──────────────────────────────────────────────────────────────────
# compare
# ──────────────────────────────────────────────────────────────────

async def _run_compare(engine, targets, tests, sort_key, concurrent):
    async with engine:
        return await engine.compare_all(targets, tests, sort_key=sort_key, concurrent=concurrent)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--tests", "-n", type=int, default=None, help="Probes per target.")
@click.option("--sort", "sort_key", type=click.Choice(list(SORT_KEYS)), default="avg",
              show_default=True)
@click.option("--sequential", is_flag=True, help="Probe one target at a time.")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@transport_option
@seed_option
@click.pass_context
def compare(ctx, targets, tests, sort_key, sequential, as_json, transport, seed):
    """Rank TARGETS (default: public DNS resolvers) by latency."""
    setup_logger(level=ctx.obj["log_level"], file_logging=False)
    settings = _settings(ctx)

    try:
        engine = _engine(settings, transport, seed)
        report = asyncio.run(_run_compare(engine, list(targets) or None, tests, sort_key, not sequential))
    except NetPulseError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    for rank, result in report.ranked():
        info = describe(result.target)
        click.echo(
            f"#{rank} {info.name:<24} {result.avg:8.2f}ms  jitter {result.jitter:6.1f}ms  "
            f"p95 {result.p95:8.2f}ms  loss {result.packet_loss:5.1f}%"
        )
    if report.excluded:
        click.echo(f"Excluded (no replies): {', '.join(report.excluded)}")
    if report.winner:
        click.echo(f"🏆 Best by {report.sort_key}: {report.winner.name} ({report.winner.avg:.2f}ms)")
    else:
        click.echo("No target answered.")


if __name__ == "__main__":
    cli()
