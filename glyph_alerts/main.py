"""
Glyph Alerts: CLI entry point

Usage:
    glyph-alerts modes
    glyph-alerts config
    glyph-alerts simulate --feature glyph_guard --mode intense --speed 10
"""

from __future__ import annotations

# Load .env before anything reads GLYPH_ALERTS_* variables
from pathlib import Path
from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import asyncio
import json
from typing import Optional

import click

from .config.loader import load_config
from .drivers.animation import MockAnimationDriver
from .engine.clock import MonotonicClock
from .engine.machine import AlertStageMachine
from .features.catalog import alert_features, build_machine, feature_profile
from .logging_config import setup_logging
from .models.modes import get_mode, list_modes
from .models.stage import AlertSnapshot, Stage
from .observability.metrics import metrics
from .resources.coordinator import FeatureCoordinator, GlyphFeature
from .resources.wake_lock import ProcessWakeLock
from .settings.store import InMemorySettingsStore, load_settings_file

setup_logging()

STAGE_COLORS = {
    Stage.CONFIRMATION: "cyan",
    Stage.COUNTDOWN: "yellow",
    Stage.ACTIVE: "magenta",
    Stage.COMPLETED: "green",
    Stage.CANCELLED: "red",
}


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Glyph Alerts: timed multi-stage alert controller."""
    ctx.ensure_object(dict)
    if log_level:
        setup_logging(level=log_level)


@cli.command()
def modes() -> None:
    """List the alert mode presets."""
    click.echo()
    for mode in list_modes():
        sound = "sound" if mode.has_sound else "silent"
        click.secho(f"  {mode.name:9}", bold=True, nl=False)
        click.echo(
            f" blink {mode.blink_interval_ms:>3}ms  "
            f"duration {mode.total_duration_ms // 1000:>2}s  {sound}"
        )
        click.echo(f"            {mode.description}")
    click.echo()


@cli.command("config")
def show_config() -> None:
    """Show the controller timing configuration."""
    click.echo(json.dumps(load_config().to_dict(), indent=2))


@cli.command()
@click.option(
    "--feature",
    type=click.Choice([f.value for f in alert_features()]),
    default=GlyphFeature.GLYPH_GUARD.value,
    show_default=True,
)
@click.option("--mode", "mode_name", type=click.Choice(["stealth", "standard", "intense"]), default=None,
              help="Mode preset (defaults to the feature's configured mode)")
@click.option("--duration", type=int, default=None, help="Alert duration in ms")
@click.option("--settings", "settings_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML settings file")
@click.option("--test-mode", is_flag=True, help="Run the countdown only, no alert")
@click.option("--skip-confirmation", is_flag=True, help="Start without the confirmation prompt")
@click.option("--stop-after", type=int, default=None, help="Stop the alert after N ms of active time")
@click.option("--speed", type=float, default=1.0, show_default=True, help="Time acceleration factor")
@click.option("--show-metrics", is_flag=True, help="Print metrics after the run")
def simulate(
    feature: str,
    mode_name: Optional[str],
    duration: Optional[int],
    settings_file: Optional[str],
    test_mode: bool,
    skip_confirmation: bool,
    stop_after: Optional[int],
    speed: float,
    show_metrics: bool,
) -> None:
    """Run one alert against the mock animation driver."""
    if speed <= 0:
        raise click.BadParameter("must be positive", param_hint="--speed")

    settings = load_settings_file(Path(settings_file)) if settings_file else InMemorySettingsStore()
    glyph_feature = GlyphFeature(feature)
    driver = MockAnimationDriver()

    final_stage = asyncio.run(
        _simulate(
            glyph_feature,
            settings,
            driver,
            mode_name=mode_name,
            duration=duration,
            test_mode=test_mode,
            skip_confirmation=True if skip_confirmation else None,
            stop_after=stop_after,
            speed=speed,
        )
    )

    click.echo()
    click.secho(f"Final stage: {final_stage.value}", fg=STAGE_COLORS[final_stage], bold=True)
    click.echo(f"Driver calls: {driver.start_count} start, {driver.stop_count} stop")

    if show_metrics:
        click.echo(json.dumps(metrics.export_json(), indent=2))


async def _simulate(
    feature: GlyphFeature,
    settings,
    driver: MockAnimationDriver,
    mode_name: Optional[str],
    duration: Optional[int],
    test_mode: bool,
    skip_confirmation: Optional[bool],
    stop_after: Optional[int],
    speed: float,
) -> Stage:
    clock = MonotonicClock(speed=speed)
    config = load_config()

    mode_override = None
    if mode_name or duration:
        base = get_mode(mode_name) if mode_name else feature_profile(feature, settings).mode
        mode_override = base.with_duration(duration) if duration else base

    machine = build_machine(
        feature,
        settings,
        driver=driver,
        wake_lock=ProcessWakeLock(),
        clock=clock,
        config=config,
        coordinator=FeatureCoordinator(),
        test_mode=test_mode,
        skip_confirmation=skip_confirmation,
        mode_override=mode_override,
    )
    printer = _SnapshotPrinter()
    unsubscribe = machine.subscribe(printer)
    printer(machine.snapshot())

    try:
        if machine.stage is Stage.CONFIRMATION:
            click.echo("  (confirmed)")
            machine.confirm_and_proceed()
        if stop_after is not None:
            await _stop_when_elapsed(machine, stop_after, clock, config.tick_ms)
        return await machine.wait_closed()
    finally:
        unsubscribe()
        machine.dispose()


async def _stop_when_elapsed(machine: AlertStageMachine, stop_after: int, clock, tick_ms: int) -> None:
    while not machine.stage.is_terminal:
        if machine.stage is Stage.ACTIVE and machine.elapsed_ms >= stop_after:
            click.echo(f"  (stop at {int(machine.elapsed_ms)}ms)")
            machine.stop()
            return
        await clock.sleep(tick_ms)


class _SnapshotPrinter:
    """Prints a line whenever something a person would notice changes."""

    def __init__(self):
        self._last = None

    def __call__(self, snapshot: AlertSnapshot) -> None:
        key = (
            snapshot.stage,
            snapshot.countdown_remaining,
            snapshot.guard_state.remaining_seconds,
            snapshot.is_complete,
        )
        if key == self._last:
            return
        self._last = key

        label = click.style(f"{snapshot.stage.value:12}", fg=STAGE_COLORS[snapshot.stage])
        if snapshot.stage is Stage.COUNTDOWN:
            detail = f"{snapshot.countdown_remaining}..."
        elif snapshot.stage is Stage.ACTIVE:
            detail = f"{snapshot.guard_state.progress:5.0%}  {snapshot.status_text}"
            if snapshot.is_complete:
                detail += "  (closing)"
        else:
            detail = snapshot.status_text
        click.echo(f"  {label} {detail}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
