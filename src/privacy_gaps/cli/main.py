"""
Command Line Interface for Privacy Gaps.

Lets an operator inspect what the capture path will do: print a child's
schedule for a day, ask for a single suppression decision, browse the
crisis allowlist and maintain the schedule cache.

The ``check`` command prints only the decision, exactly as the capture
pipeline receives it.
"""

import asyncio
import json
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from privacy_gaps import __version__
from privacy_gaps.config import AppConfig, ConfigError, load_config
from privacy_gaps.core.detector import create_detector_from_config
from privacy_gaps.core.models import GapSchedule, utc_now
from privacy_gaps.core.scheduler import generate_daily_gap_schedule, get_schedule_stats
from privacy_gaps.core.store import create_schedule_store
from privacy_gaps.crisis import get_crisis_allowlist, get_crisis_resource_by_domain
from privacy_gaps.utils.logging import setup_logging

# Initialize Rich console
console = Console()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def print_header(text: str) -> None:
    """Print styled header."""
    console.print(f"\n[bold cyan]{text}[/bold cyan]\n")


def print_success(text: str) -> None:
    """Print green success message."""
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    """Print yellow warning message."""
    console.print(f"[bold yellow]⚠[/bold yellow] {escape(text)}")


def print_error(text: str) -> None:
    """Print red error message."""
    console.print(f"[bold red]✗[/bold red] {escape(text)}")


def confirm(prompt: str, default: bool = False) -> bool:
    """Prompt for yes/no confirmation."""
    return Confirm.ask(prompt, default=default)


def get_app_config(ctx: click.Context) -> AppConfig:
    """Load configuration once per invocation; exit with status 2 if it is invalid."""
    ctx.ensure_object(dict)
    if ctx.obj.get("app_config") is None:
        try:
            ctx.obj["app_config"] = load_config(ctx.obj.get("config_path"))
        except ConfigError as e:
            print_error(str(e))
            sys.exit(2)
    return ctx.obj["app_config"]


def print_schedule_table(schedule: GapSchedule) -> None:
    """Print a schedule's gaps as a table."""
    table = Table(title=f"Privacy gaps for {schedule.child_id} on {schedule.date.isoformat()}")
    table.add_column("#", justify="right")
    table.add_column("Start (UTC)", style="cyan")
    table.add_column("End (UTC)", style="cyan")
    table.add_column("Duration", justify="right", style="green")

    for index, gap in enumerate(schedule.gaps, start=1):
        table.add_row(
            str(index),
            gap.start_time.strftime("%H:%M:%S"),
            gap.end_time.strftime("%H:%M:%S"),
            f"{gap.duration_ms / 60_000:.1f} min",
        )

    console.print(table)


# =============================================================================
# MAIN CLI GROUP
# =============================================================================

@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.option('--config', 'config_path', type=click.Path(path_type=Path), help='Custom config file')
@click.option('--log-file', type=click.Path(path_type=Path), help='Also write logs to this file')
@click.version_option(__version__, prog_name="Privacy Gaps")
@click.pass_context
def cli(ctx, verbose, debug, config_path, log_file):
    """
    Privacy Gaps - irregular capture-free windows for monitored children.

    Every child gets a few short, unpredictable windows each day in which no
    screenshots are taken, so a gap in the capture record never points to a
    visit to a crisis resource.
    """
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        level = "WARNING"
    setup_logging(level=level, log_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug
    ctx.obj['config_path'] = config_path


# =============================================================================
# SCHEDULE COMMAND
# =============================================================================

@cli.command()
@click.argument('child_id')
@click.option('--date', 'day', type=click.DateTime(formats=['%Y-%m-%d']),
              help='Calendar day (UTC), default today')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_context
def schedule(ctx, child_id, day, output_json):
    """
    Show the privacy-gap schedule for CHILD_ID on one day.

    Example:
        privacy-gaps schedule child-alpha --date 2025-12-16
    """
    app_config = get_app_config(ctx)
    gap_config = app_config.gap_config_for(child_id)
    schedule_day: date = day.date() if day else utc_now().date()

    result = generate_daily_gap_schedule(
        child_id, schedule_day, gap_config, secret=app_config.seed_secret
    )
    stats = get_schedule_stats(result)

    if output_json:
        payload = result.model_dump(mode="json")
        payload["enabled"] = gap_config.enabled
        click.echo(json.dumps(payload, indent=2))
        return

    print_header(f"Schedule: {child_id}")
    if not gap_config.enabled:
        print_warning("Privacy gaps are disabled for this child; the schedule below is not applied")
    print_schedule_table(result)
    console.print(
        f"\n{stats.gap_count} gaps, {stats.total_gap_minutes:.1f} min total, "
        f"{stats.average_gap_minutes:.1f} min average"
    )


# =============================================================================
# CHECK COMMAND
# =============================================================================

@cli.command()
@click.argument('child_id')
@click.argument('url')
@click.option('--at', 'at', type=click.DateTime(formats=['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S']),
              help='Capture time (UTC), default now')
@click.pass_context
def check(ctx, child_id, url, at):
    """
    Ask whether a capture of URL for CHILD_ID would be suppressed.

    Prints only the decision.

    Example:
        privacy-gaps check child-alpha https://example.org --at 2025-12-16T10:30:00
    """
    app_config = get_app_config(ctx)
    detector = create_detector_from_config(app_config)
    timestamp: datetime = at or utc_now()

    result = asyncio.run(detector.should_suppress_capture(child_id, timestamp, url))
    click.echo(json.dumps(result.model_dump()))


# =============================================================================
# CRISIS COMMANDS
# =============================================================================

@cli.group()
def crisis():
    """Browse the crisis resource allowlist."""
    pass


@crisis.command('list')
@click.option('--category', help='Only show one category')
def crisis_list(category):
    """List allowlisted crisis resources."""
    allowlist = get_crisis_allowlist()
    entries = allowlist.by_category(category) if category else list(allowlist.entries)

    table = Table(title=f"Crisis allowlist v{allowlist.version} ({allowlist.last_updated})")
    table.add_column("Domain", style="cyan")
    table.add_column("Name")
    table.add_column("Category", style="green")
    table.add_column("Regions")

    for entry in entries:
        table.add_row(entry.domain, entry.name, entry.category, ", ".join(entry.regions))

    console.print(table)


@crisis.command('lookup')
@click.argument('url')
def crisis_lookup(url):
    """Show which allowlisted resource URL belongs to, if any."""
    entry = get_crisis_resource_by_domain(url)
    if entry is None:
        print_warning("Not on the crisis allowlist")
        return
    print_success(f"{entry.name} ({entry.domain})")


# =============================================================================
# CONFIG COMMANDS
# =============================================================================

@cli.group()
def config():
    """Inspect configuration."""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Display current configuration."""
    app_config = get_app_config(ctx)
    gaps = app_config.privacy_gaps

    print_header("Current Configuration")

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Privacy gaps", "enabled" if gaps.enabled else "disabled")
    table.add_row("Gaps per day", f"{gaps.min_daily_gaps}-{gaps.max_daily_gaps}")
    table.add_row(
        "Gap duration",
        f"{gaps.min_gap_duration_ms / 60_000:g}-{gaps.max_gap_duration_ms / 60_000:g} min",
    )
    table.add_row("Minimum spacing", f"{gaps.min_gap_spacing_ms / 60_000:g} min")
    table.add_row(
        "Waking hours (UTC)", f"{gaps.waking_hours_start:02d}:00-{gaps.waking_hours_end:02d}:00"
    )
    table.add_row("Seed secret", "[CONFIGURED]" if app_config.seed_secret else "not set")
    table.add_row("Cache backend", app_config.cache.backend)
    table.add_row("Cache directory", str(app_config.cache.cache_dir))
    table.add_row("Child overrides", str(len(app_config.children)))

    console.print(table)


# =============================================================================
# CACHE COMMANDS
# =============================================================================

@cli.group()
def cache():
    """Maintain the schedule cache."""
    pass


@cache.command()
@click.pass_context
def stats(ctx):
    """Show schedule cache statistics."""
    store = create_schedule_store(get_app_config(ctx))
    for key, value in store.get_stats().items():
        console.print(f"{key}: {value}")


@cache.command()
@click.option('--force', is_flag=True, help='Skip confirmation')
@click.pass_context
def clear(ctx, force):
    """Delete all cached schedules. They are regenerated on demand."""
    store = create_schedule_store(get_app_config(ctx))
    if not force and not confirm("Delete all cached schedules?"):
        return

    count = store.clear()
    print_success(f"Removed {count} cached schedules")


def main(argv: Optional[list] = None) -> None:
    """Entry point for ``python -m privacy_gaps``."""
    cli(args=argv, prog_name="privacy-gaps")


if __name__ == '__main__':
    main()
