"""
CLI interface for Claude Usage Monitor.

Provides command-line access to session, burn rate and plan statistics.
"""

import logging
import sys
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import typer
import yaml
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from claude_usage_monitor.config.loader import (
    MonitorSettings,
    PlanConfig,
    load_plan_config,
    load_settings,
    save_plan_config,
)
from claude_usage_monitor.core.monitor import UsageMonitor
from claude_usage_monitor.core.plans import Plan
from claude_usage_monitor.core.pricing import PRICING_TABLE
from claude_usage_monitor.core.sessions import SessionIdentifier
from claude_usage_monitor.storage.loader import EntryLoader, discover_data_paths
from claude_usage_monitor.storage.models import UsageEntry

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1

# Failures reported as a red error line instead of a traceback
LOAD_ERRORS = (OSError, ValueError, yaml.YAMLError)

DataDirOption = typer.Option(
    None, "--data-dir", "-d", help="Transcript file or directory to read"
)
PlanOption = typer.Option(
    None, "--plan", "-p", help="Plan to measure against (pro, max5, max20); saved for next time"
)
ConfigOption = typer.Option(
    None, "--config", "-c", help="YAML settings file"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Claude Usage Monitor CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print("Claude Usage Monitor - Use --help to see available commands")


@app.command()
def status(
    data_dir: Optional[str] = DataDirOption,
    plan: Optional[str] = PlanOption,
    config: Optional[str] = ConfigOption,
):
    """Show usage of the current session block against your plan."""
    try:
        selected_plan = _resolve_plan(plan)
        monitor, _, _ = _load_monitor(data_dir, config)
    except LOAD_ERRORS as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    if monitor.is_empty():
        console.print("\n[bold yellow]No Claude usage data found[/]\n")
        sys.exit(EXIT_CODE_OK)

    console.print(_render_status(monitor, selected_plan, _now()))
    sys.exit(EXIT_CODE_OK)


@app.command()
def blocks(
    data_dir: Optional[str] = DataDirOption,
    config: Optional[str] = ConfigOption,
):
    """List every session block with its totals and burn rate."""
    try:
        monitor, _, _ = _load_monitor(data_dir, config)
    except LOAD_ERRORS as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    table = Table(title="Session Blocks")
    table.add_column("Start (UTC)")
    table.add_column("End (UTC)")
    table.add_column("Entries", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Tokens/min", justify="right")

    for index, block in enumerate(monitor.session_blocks()):
        rate = monitor.burn_rate_for_block(index)
        table.add_row(
            block.start_time.strftime("%Y-%m-%d %H:%M"),
            block.end_time.strftime("%Y-%m-%d %H:%M"),
            str(len(block.entries)),
            _format_tokens(block.token_counts.total_tokens),
            _format_currency(block.cost_usd),
            f"{rate.tokens_per_minute:,.1f}" if rate else "-",
        )

    console.print(table)
    console.print(f"{monitor.session_count} blocks, {monitor.entry_count} entries")
    sys.exit(EXIT_CODE_OK)


@app.command()
def models(
    data_dir: Optional[str] = DataDirOption,
    config: Optional[str] = ConfigOption,
    current: bool = typer.Option(
        False, "--current", help="Only count the current session block"
    ),
):
    """Break down tokens and cost per model."""
    try:
        monitor, _, _ = _load_monitor(data_dir, config)
    except LOAD_ERRORS as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    breakdown = (
        monitor.current_block_model_breakdown() if current else monitor.model_breakdown()
    )
    table = Table(title="Current Block by Model" if current else "Usage by Model")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Weight", justify="right")

    for model, (tokens, cost) in sorted(breakdown.items(), key=lambda item: -item[1][0]):
        table.add_row(
            model,
            _format_tokens(tokens),
            _format_currency(cost),
            f"{monitor.model_weight(model):g}x",
        )

    console.print(table)
    sys.exit(EXIT_CODE_OK)


@app.command(name="plan")
def plan_command(
    name: Optional[str] = typer.Argument(None, help="Plan to select (pro, max5, max20)"),
):
    """Show or change the selected plan."""
    if name is None:
        selected = load_plan_config().plan
        console.print(f"Selected plan: [bold]{selected.description}[/]")
        sys.exit(EXIT_CODE_OK)

    try:
        selected = Plan.parse(name)
        path = save_plan_config(PlanConfig(plan=selected))
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    console.print(f"[green]✓[/] Plan set to {selected.display_name} ({path})")
    sys.exit(EXIT_CODE_OK)


@app.command()
def watch(
    data_dir: Optional[str] = DataDirOption,
    plan: Optional[str] = PlanOption,
    config: Optional[str] = ConfigOption,
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", help="Seconds between data refreshes"
    ),
):
    """Live dashboard that keeps refreshing in the background."""
    try:
        selected_plan = _resolve_plan(plan)
        monitor, settings, paths = _load_monitor(data_dir, config)
    except LOAD_ERRORS as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    refresh_every = interval if interval and interval > 0 else settings.refresh_interval
    stop = threading.Event()
    refresher = threading.Thread(
        target=_refresh_loop,
        args=(monitor, paths, refresh_every, stop),
        name="usage-refresh",
        daemon=True,
    )
    refresher.start()

    try:
        with Live(_render_status(monitor, selected_plan, _now()), console=console,
                  refresh_per_second=4) as live:
            while True:
                time.sleep(0.25)
                live.update(_render_status(monitor, selected_plan, _now()))
    except KeyboardInterrupt:
        pass
    finally:
        stop.set()

    sys.exit(EXIT_CODE_OK)


def _refresh_loop(
    monitor: UsageMonitor,
    paths: List[Path],
    interval: float,
    stop: threading.Event,
) -> None:
    """Reload usage data every interval until stop is set.

    Loading happens outside the monitor's lock; the swap is skipped rather
    than queued when a reader holds the lock.
    """
    while not stop.wait(interval):
        try:
            entries = _load_entries(monitor.loader, paths)
        except (OSError, ValueError) as e:
            logger.warning("Background refresh failed: %s", e)
            continue
        monitor.try_replace_entries(entries)


def _resolve_plan(plan: Optional[str]) -> Plan:
    """Use the plan given on the command line and persist it, else the saved one."""
    if plan is None:
        return load_plan_config().plan

    selected = Plan.parse(plan)
    try:
        save_plan_config(PlanConfig(plan=selected))
    except OSError as e:
        logger.warning("Could not save plan config: %s", e)
    return selected


def _load_monitor(
    data_dir: Optional[str], config: Optional[str]
) -> Tuple[UsageMonitor, MonitorSettings, List[Path]]:
    """Read settings, then build a monitor holding the first usable data path.

    Raises:
        OSError: If no data path can be read
        ValueError: If the settings are invalid
        yaml.YAMLError: If the settings file is not valid YAML
    """
    settings = load_settings(config)
    monitor = _build_monitor(settings)
    paths = _data_paths(data_dir, settings)
    monitor.set_entries(_load_entries(monitor.loader, paths))
    return monitor, settings, paths


def _build_monitor(settings: MonitorSettings) -> UsageMonitor:
    return UsageMonitor(
        pricing=PRICING_TABLE,
        identifier=SessionIdentifier(timedelta(hours=settings.session_hours)),
        loader=EntryLoader(PRICING_TABLE, extension=settings.file_extension),
    )


def _data_paths(data_dir: Optional[str], settings: MonitorSettings) -> List[Path]:
    if data_dir:
        return [Path(data_dir).expanduser()]
    if settings.data_paths:
        return [Path(p).expanduser() for p in settings.data_paths]

    discovered = discover_data_paths()
    if not discovered:
        raise FileNotFoundError(
            "No Claude data directories found in standard locations:\n"
            "  ~/.claude/projects\n  ~/.config/claude/projects"
        )
    return discovered


def _load_entries(loader: EntryLoader, paths: List[Path]) -> List[UsageEntry]:
    """Load from the first path that yields any entries.

    Raises:
        OSError: If no path yields entries and the last one failed
    """
    last_error: Optional[OSError] = None
    for path in paths:
        try:
            entries = loader.load_path(path)
        except OSError as e:
            last_error = e
            continue
        if entries:
            return entries
    if last_error is not None:
        raise last_error
    return []


def _render_status(monitor: UsageMonitor, plan: Plan, now: datetime) -> Group:
    """Render the current block and lifetime summary from one snapshot."""
    monitor = monitor.snapshot()
    current = Table(show_header=False, box=None, pad_edge=False)
    current.add_column("Metric", style="bold")
    current.add_column("Value")

    block = monitor.current_block()
    if block is not None and block.contains(now):
        current.add_row(
            "Window",
            f"{block.start_time:%H:%M} - {block.end_time:%H:%M} UTC",
        )
    else:
        current.add_row("Window", "no active session")

    weighted = monitor.current_block_tokens()
    current.add_row(
        "Tokens",
        f"{_format_tokens(weighted)} / {_format_tokens(plan.max_tokens)} "
        f"({_format_percent(monitor.current_block_percentage(plan))})",
    )
    current.add_row("Cost", _format_currency(monitor.current_block_cost()))

    rate = monitor.current_burn_rate()
    current.add_row(
        "Burn rate",
        f"{rate.tokens_per_minute:,.1f} tokens/min, {_format_currency(rate.cost_per_hour)}/hour"
        if rate else "-",
    )

    projection = monitor.project_current_usage(now)
    current.add_row(
        "Projected",
        f"{_format_tokens(projection.projected_total_tokens)} tokens, "
        f"{_format_currency(projection.projected_total_cost)}"
        if projection else "-",
    )
    current.add_row("Time to limit", _format_minutes(monitor.estimate_time_to_plan_limit(plan)))

    reset = monitor.time_to_reset(now)
    current.add_row(
        "Time to reset",
        _format_minutes(reset.total_seconds() / 60.0) if reset is not None else "-",
    )

    lifetime = Table(show_header=False, box=None, pad_edge=False)
    lifetime.add_column("Metric", style="bold")
    lifetime.add_column("Value")
    lifetime.add_row(
        "Sessions", f"{monitor.session_count} blocks, {monitor.entry_count} entries"
    )
    lifetime.add_row("Tokens", _format_tokens(monitor.total_tokens()))
    lifetime.add_row("Cost", _format_currency(monitor.total_cost()))
    lifetime.add_row("Plan usage", _format_percent(monitor.plan_usage_percentage(plan)))

    average = monitor.average_burn_rate()
    peak = monitor.peak_burn_rate()
    lifetime.add_row(
        "Average rate", f"{average.tokens_per_minute:,.1f} tokens/min" if average else "-"
    )
    lifetime.add_row("Peak rate", f"{peak.tokens_per_minute:,.1f} tokens/min" if peak else "-")

    return Group(
        Panel(current, title=f"Current Session ({plan.display_name})"),
        Panel(lifetime, title="Lifetime"),
    )


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def _format_tokens(tokens: float) -> str:
    return f"{int(tokens):,}"


def _format_percent(percent: float) -> str:
    return f"{percent:,.1f}%"


def _format_minutes(minutes: Optional[float]) -> str:
    if minutes is None:
        return "-"
    total = int(minutes)
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"


if __name__ == "__main__":
    app()
