"""Command-line interface for sitequota."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.table import Table

from sitequota.badge import BadgeTier, badge_for_remaining
from sitequota.config import Config, find_config_file, load_config, merge_cli_options
from sitequota.formatting import (
    day_name,
    format_countdown,
    format_duration,
    format_time_range,
    parse_duration,
)
from sitequota.manager import ConfigurationManager, detect_overlapping_sites
from sitequota.models import Blocked, Configuration, Schedule
from sitequota.navigation import NavigationAction, NavigationListener, TabTracker
from sitequota.rules import evaluate, extract_domain, is_schedule_active
from sitequota.rules.access_window import from_epoch_ms
from sitequota.storage import AccessStore
from sitequota.validation import ValidationError, parse_rule_group

console = Console()

TIER_STYLES = {
    BadgeTier.NONE: "dim",
    BadgeTier.ZERO: "red bold",
    BadgeTier.LOW: "yellow",
    BadgeTier.PLENTIFUL: "green",
}


def _open_store(ctx: click.Context) -> AccessStore:
    """Connect to the store, seeding the configuration on first run."""
    cfg: Config = ctx.obj["config"]
    store = AccessStore(ctx.obj["db_path"])
    store.connect()
    if store.initialize(cfg.seed_configuration()):
        console.print("[dim]Initialized default configuration[/dim]")
    return store


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def _describe_schedule(schedule: Optional[Schedule]) -> str:
    if schedule is None or schedule.is_empty():
        return "always"
    days = ", ".join(day_name(d)[:3] for d in sorted(schedule.active_days))
    times = ", ".join(format_time_range(r) for r in schedule.active_time_ranges)
    return f"{days}: {times}"


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to config file (default: searches standard locations)",
)
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to the DuckDB database file",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx: click.Context, config: Path | None, db: Path | None, verbose: bool) -> None:
    """sitequota - Rate-limited access to distracting websites."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    ctx.ensure_object(dict)

    cfg = merge_cli_options(load_config(config), db=db)
    ctx.obj["config"] = cfg

    if cfg.db_path != Path(":memory:"):
        cfg.db_path.parent.mkdir(parents=True, exist_ok=True)
    ctx.obj["db_path"] = cfg.db_path

    config_path = config or find_config_file()
    if config_path:
        ctx.obj["config_path"] = config_path


@main.command()
@click.option("--reset", is_flag=True, help="Delete all rules and history first")
@click.pass_context
def init(ctx: click.Context, reset: bool) -> None:
    """Create the database and seed the configuration."""
    cfg: Config = ctx.obj["config"]

    with AccessStore(ctx.obj["db_path"]) as store:
        if reset:
            store.clear_all()
            console.print("[yellow]Cleared all rules and access history[/yellow]")

        if store.initialize(cfg.seed_configuration()):
            console.print(f"[green]Initialized {ctx.obj['db_path']}[/green]")
        else:
            console.print("[cyan]Configuration already present, nothing to do[/cyan]")


@main.command()
@click.pass_context
def rules(ctx: click.Context) -> None:
    """List rule groups."""
    now = datetime.now()
    store = _open_store(ctx)
    try:
        configuration = ConfigurationManager(store).load_configuration()
    finally:
        store.close()

    if not configuration.groups:
        console.print("[yellow]No rule groups configured[/yellow]")
        return

    table = Table(title="Rule Groups")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name")
    table.add_column("Limit")
    table.add_column("Mode")
    table.add_column("Sites")
    table.add_column("Schedule")
    table.add_column("Active")

    for index, group in enumerate(configuration.groups):
        active = is_schedule_active(group.schedule, now)
        table.add_row(
            str(index),
            group.name,
            f"{group.max_accesses} per {format_duration(group.duration_minutes)}",
            "shared" if group.strict_mode else "per site",
            ", ".join(group.sites),
            _describe_schedule(group.schedule),
            "[green]yes[/green]" if active else "[dim]no[/dim]",
        )

    console.print(table)


@main.command("add-rule")
@click.option("--name", required=True, help="Rule group name")
@click.option("--duration", required=True, help="Rolling window, e.g. 60, 90m, 2h, 1h30m")
@click.option("--max-accesses", type=int, required=True, help="Accesses allowed per window")
@click.option("--strict", is_flag=True, help="All sites share one allowance")
@click.option("--site", "sites", multiple=True, required=True, help="Site pattern (repeatable)")
@click.option("--day", "days", type=click.IntRange(0, 6), multiple=True, help="Active day, 0=Sunday (repeatable)")
@click.option("--time", "times", multiple=True, help="Active time range HHMM-HHMM (repeatable)")
@click.pass_context
def add_rule(
    ctx: click.Context,
    name: str,
    duration: str,
    max_accesses: int,
    strict: bool,
    sites: tuple[str, ...],
    days: tuple[int, ...],
    times: tuple[str, ...],
) -> None:
    """Add a rule group."""
    duration_minutes = parse_duration(duration)
    if duration_minutes is None:
        _fail(f"Could not parse duration '{duration}'")

    data = {
        "name": name,
        "duration_minutes": duration_minutes,
        "max_accesses": max_accesses,
        "strict_mode": strict,
        "sites": list(sites),
        "schedule": None,
    }
    if days or times:
        data["schedule"] = {
            "days": list(days) if days else list(range(7)),
            "times": list(times) if times else ["0000-2400"],
        }

    try:
        group = parse_rule_group(data)
    except ValidationError as e:
        _fail(", ".join(e.errors))

    store = _open_store(ctx)
    try:
        index = ConfigurationManager(store).add_rule_group(group)
    finally:
        store.close()
    console.print(f"[green]Added rule group #{index} '{group.name}'[/green]")


@main.command("remove-rule")
@click.argument("index", type=int)
@click.pass_context
def remove_rule(ctx: click.Context, index: int) -> None:
    """Delete the rule group at INDEX."""
    store = _open_store(ctx)
    try:
        deleted = ConfigurationManager(store).delete_rule_group(index)
    except IndexError as e:
        _fail(str(e))
    finally:
        store.close()
    console.print(f"[green]Deleted rule group '{deleted.name}'[/green]")


@main.command()
@click.argument("url")
@click.pass_context
def check(ctx: click.Context, url: str) -> None:
    """Show whether URL would be allowed right now (nothing is recorded)."""
    cfg: Config = ctx.obj["config"]
    site = extract_domain(url)
    if not site:
        _fail(f"Could not extract a domain from '{url}'")

    now = datetime.now()
    store = _open_store(ctx)
    try:
        configuration = store.get_configuration() or Configuration()
        records = store.get_access_records()
    finally:
        store.close()

    evaluation = evaluate(site, configuration, records, now)
    badge = badge_for_remaining(evaluation.remaining, cfg.badge_low_threshold)

    if isinstance(evaluation.result, Blocked):
        result = evaluation.result
        console.print(f"[red bold]BLOCKED[/red bold] {site}")
        console.print(f"  Rule: {result.rule_name}")
        console.print(
            f"  Limit: {result.max_accesses} per {format_duration(result.duration_minutes)}"
        )
        console.print(f"  Available again in: {format_countdown(evaluation.unblock_time, now)}")
    else:
        console.print(f"[green bold]ALLOWED[/green bold] {site}")

    if evaluation.remaining is None:
        console.print("  [dim]No active rule applies[/dim]")
    else:
        style = TIER_STYLES[badge.tier]
        console.print(f"  Remaining: [{style}]{badge.text}[/{style}]")


@main.command()
@click.argument("url")
@click.option("--tab", type=int, default=1, help="Tab id recorded with the access (stored as its source id only)")
@click.option("--transition", type=str, default="link", help="Transition type ('reload' is a refresh)")
@click.pass_context
def visit(ctx: click.Context, url: str, tab: int, transition: str) -> None:
    """Simulate a navigation to URL: evaluate it and record it if allowed.

    Each run starts with no remembered tabs, so repeating a URL in the same
    --tab still counts as a new access. Use --transition reload to simulate
    a refresh.
    """
    cfg: Config = ctx.obj["config"]
    store = _open_store(ctx)
    try:
        listener = NavigationListener(
            store,
            tracker=TabTracker(maxsize=cfg.tab_cache_size, ttl=cfg.tab_cache_ttl),
            ignored_prefixes=cfg.ignored_prefixes,
            prune_multiplier=cfg.prune_multiplier,
            badge_low_threshold=cfg.badge_low_threshold,
        )
        outcome = listener.on_navigation(tab, url, transition_type=transition)
    finally:
        store.close()

    if outcome.action is NavigationAction.IGNORED:
        console.print(f"[dim]Ignored: {url}[/dim]")
    elif outcome.action is NavigationAction.REFRESH:
        console.print(f"[cyan]Refresh of {outcome.site}, not counted[/cyan]")
    elif outcome.action is NavigationAction.BLOCKED:
        params = outcome.blocked_page_params()
        console.print(f"[red bold]BLOCKED[/red bold] {outcome.site} by '{params['rule']}'")
        console.print(f"  Available again in: {format_countdown(outcome.unblock_time, datetime.now())}")
    else:
        style = TIER_STYLES[outcome.badge.tier]
        remaining = outcome.badge.text or "-"
        console.print(f"[green]Recorded access to {outcome.site}[/green] (remaining: [{style}]{remaining}[/{style}])")


@main.command()
@click.pass_context
def overlaps(ctx: click.Context) -> None:
    """Show sites listed in more than one rule group."""
    store = _open_store(ctx)
    try:
        configuration = ConfigurationManager(store).load_configuration()
    finally:
        store.close()

    found = detect_overlapping_sites(configuration)
    if not found:
        console.print("[green]No site appears in more than one rule group[/green]")
        return

    table = Table(title="Shared Sites")
    table.add_column("Site")
    table.add_column("Groups")
    table.add_column("Schedules Overlap")
    for overlap in found:
        table.add_row(
            overlap.site,
            ", ".join(f"#{ref.index} {ref.name}" for ref in overlap.groups),
            "[yellow]yes[/yellow]" if overlap.overlapping else "no",
        )
    console.print(table)


@main.command()
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Write to file instead of stdout")
@click.pass_context
def export(ctx: click.Context, output: Path | None) -> None:
    """Export the configuration as JSON."""
    store = _open_store(ctx)
    try:
        text = ConfigurationManager(store).export_configuration()
    finally:
        store.close()

    if output:
        output.write_text(text + "\n")
        console.print(f"[green]Exported configuration to {output}[/green]")
    else:
        click.echo(text)


@main.command("import")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def import_(ctx: click.Context, path: Path) -> None:
    """Replace the configuration with the JSON file at PATH."""
    store = _open_store(ctx)
    try:
        configuration = ConfigurationManager(store).import_configuration(path.read_text())
    except ValidationError as e:
        for error in e.errors:
            console.print(f"[red]  {error}[/red]")
        _fail("configuration not imported")
    finally:
        store.close()
    console.print(f"[green]Imported {len(configuration.groups)} rule groups[/green]")


@main.command()
@click.option("--minutes", type=int, default=None, help="Maximum record age (default: longest window x prune multiplier)")
@click.pass_context
def prune(ctx: click.Context, minutes: int | None) -> None:
    """Delete access records older than the retention window."""
    cfg: Config = ctx.obj["config"]
    store = _open_store(ctx)
    try:
        if minutes is None:
            configuration = store.get_configuration() or Configuration()
            minutes = configuration.longest_duration_minutes() * cfg.prune_multiplier
        if minutes <= 0:
            console.print("[yellow]No retention window configured, nothing pruned[/yellow]")
            return
        removed = store.prune_access_records(minutes, datetime.now())
    finally:
        store.close()
    console.print(f"[green]Deleted {removed:,} access records older than {format_duration(minutes)}[/green]")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show storage and configuration statistics."""
    now = datetime.now()
    store = _open_store(ctx)
    try:
        storage_stats = store.get_stats()
        config_stats = ConfigurationManager(store).configuration_stats(now)
    finally:
        store.close()

    if "config_path" in ctx.obj:
        console.print(f"[dim]Config: {ctx.obj['config_path']}[/dim]")
    console.print("[cyan]Configuration[/cyan]")
    console.print(f"  Rule groups: {config_stats['total_groups']} ({config_stats['active_groups']} active now)")
    console.print(f"  Site patterns: {config_stats['total_sites']}")
    if config_stats["has_overlaps"]:
        console.print("  [yellow]Some sites appear in several groups (see 'sitequota overlaps')[/yellow]")

    console.print("[cyan]Access history[/cyan]")
    console.print(f"  Records: {storage_stats['records']:,} across {storage_stats['sites']:,} sites")
    if storage_stats["oldest"]:
        console.print(f"  Oldest: {from_epoch_ms(storage_stats['oldest']).strftime('%Y-%m-%d %H:%M')}")
    if storage_stats["newest"]:
        console.print(f"  Newest: {from_epoch_ms(storage_stats['newest']).strftime('%Y-%m-%d %H:%M')}")
    console.print(f"  Schema version: {storage_stats['version']}")


if __name__ == "__main__":
    main()
