"""Command-line interface for home habit learning and scene suggestions."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import db
from .analysis import summary
from .analysis.strategies import day_name, format_hour
from .collectors import csv_events, home_assistant
from .config import load_config
from .engine import SuggestionEngine
from .models import ActionKind, ActionValue

console = Console()


def get_engine(ctx) -> SuggestionEngine:
    """Open the engine against the configured database and load its state."""
    if "engine" not in ctx.obj:
        store = db.SqliteBlobStore(ctx.obj["db_path"])
        engine = SuggestionEngine(store=store, config=ctx.obj["config"])
        report = engine.load()
        for key, reason in report.failed.items():
            console.print(f"[yellow]Ignored unreadable {key} ({reason}), using defaults[/yellow]")
        ctx.obj["engine"] = engine
    return ctx.obj["engine"]


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to habits.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, config_path, verbose):
    """Home habits - learn device usage and suggest scenes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None
    try:
        ctx.obj["config"] = load_config(Path(config_path) if config_path else None)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    db.init_db(ctx.obj["db_path"])
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title=f"Database Statistics ({stats['path']})")
    table.add_column("Blob", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Updated")

    for key, info in stats["blobs"].items():
        table.add_row(key, f"{info['bytes']} B", info["updated_at"])

    if not stats["blobs"]:
        table.add_row("(empty)", "", "")

    console.print(table)


# Logging a single action
@cli.command("log")
@click.argument("device_id")
@click.argument("action", type=click.Choice([a.value for a in ActionKind]))
@click.option("--name", "device_name", default="", help="Device display name")
@click.option("--value", help="Optional value (brightness, colour, ...)")
@click.pass_context
def log_cmd(ctx, device_id, action, device_name, value):
    """Record that DEVICE_ID performed ACTION now."""
    engine = get_engine(ctx)
    entry = engine.ingest(
        device_id,
        device_name,
        ActionKind(action),
        ActionValue.parse(value) if value is not None else None,
    )
    if entry is None:
        console.print("[yellow]Learning is disabled, action not recorded[/yellow]")
        return

    console.print(f"[green]Logged {entry.action.label} for {device_name or device_id}[/green]")
    if engine.has_suggestions:
        console.print(f"[cyan]{len(engine.suggestions)} suggestion(s) available[/cyan]")


# Import commands
@cli.group("import")
def import_cmd():
    """Import usage history from various sources."""
    pass


@import_cmd.command("csv")
@click.option("--file", "file_path", type=click.Path(exists=True), required=True, help="Path to usage CSV")
@click.pass_context
def import_csv(ctx, file_path):
    """Import usage events from a CSV file."""
    engine = get_engine(ctx)
    try:
        result = csv_events.import_from_csv(Path(file_path), engine)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    console.print(f"[green]Imported {result['imported']} usage events[/green]")
    if result["skipped"]:
        console.print(f"[yellow]Skipped {result['skipped']} rows[/yellow]")


@import_cmd.command("ha")
@click.option("--days", default=30, help="Number of days to fetch (default: 30)")
@click.option("--entity", "entities", multiple=True, help="Entity ID (repeatable, default from config)")
@click.option("--url", "base_url", help="Home Assistant URL (or set HA_URL)")
@click.pass_context
def import_ha(ctx, days, entities, base_url):
    """Import light, switch and scene history from Home Assistant.

    Requires the HA_TOKEN environment variable.
    """
    ha_config = ctx.obj["config"].home_assistant
    entity_ids = list(entities) or ha_config.entities
    engine = get_engine(ctx)

    try:
        console.print(f"[cyan]Fetching {days} days of history for {len(entity_ids)} entities...[/cyan]")
        result = home_assistant.import_ha_usage(
            engine,
            entity_ids,
            days=days,
            base_url=base_url or ha_config.base_url,
        )
        console.print(f"[green]Imported {result['imported']} usage events[/green]")
        if result["skipped"]:
            console.print(f"[yellow]Skipped {result['skipped']} events[/yellow]")

    except home_assistant.HomeAssistantError as e:
        console.print(f"[red]Error: {e}[/red]")


# Suggestion commands
@cli.group()
def suggestions():
    """Scene suggestion commands."""
    pass


@suggestions.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def suggestions_list(ctx, as_json):
    """List current suggestions, most confident first."""
    engine = get_engine(ctx)
    items = engine.suggestions

    if as_json:
        click.echo(json.dumps(summary.get_summary(engine)["suggestions"], indent=2))
        return

    if not items:
        console.print(
            f"[yellow]No suggestions yet (learning {engine.learning_progress:.0%} complete)[/yellow]"
        )
        return

    table = Table(title="Scene Suggestions")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Trigger")
    table.add_column("Actions")

    for s in items:
        trigger = ""
        if s.trigger:
            parts = [s.trigger.condition.value.replace("_", " ")]
            if s.trigger.weekday:
                parts.append(day_name(s.trigger.weekday))
            if s.trigger.hour is not None:
                parts.append(format_hour(s.trigger.hour))
            trigger = " ".join(parts)
        actions = ", ".join(f"{a.device_name or a.device_id}: {a.action.label}" for a in s.actions)
        table.add_row(s.id, s.title, f"{s.confidence:.0%}", trigger, actions or s.description)

    console.print(table)


@suggestions.command("dismiss")
@click.argument("suggestion_id")
@click.pass_context
def suggestions_dismiss(ctx, suggestion_id):
    """Dismiss a suggestion so it is not shown again."""
    suggestion = get_engine(ctx).dismiss(suggestion_id)
    if suggestion:
        console.print(f"[green]Dismissed '{suggestion.title}'[/green]")
    else:
        console.print(f"[yellow]No current suggestion {suggestion_id}, recorded as dismissed[/yellow]")


@suggestions.command("accept")
@click.argument("suggestion_id")
@click.pass_context
def suggestions_accept(ctx, suggestion_id):
    """Accept a suggestion and print its scene definition."""
    suggestion = get_engine(ctx).accept(suggestion_id)
    if not suggestion:
        console.print(f"[red]No current suggestion {suggestion_id}[/red]")
        return

    console.print(f"[green]Accepted '{suggestion.title}'[/green]")
    scene = {
        "name": suggestion.title,
        "trigger": {
            "condition": suggestion.trigger.condition.value,
            "weekday": suggestion.trigger.weekday,
            "hour": suggestion.trigger.hour,
        }
        if suggestion.trigger
        else None,
        "actions": [
            {
                "device_id": a.device_id,
                "device_name": a.device_name,
                "action": a.action.value,
                "value": a.value.to_dict() if a.value else None,
            }
            for a in suggestion.actions
        ],
    }
    click.echo(json.dumps(scene, indent=2))


@suggestions.command("clear")
@click.pass_context
def suggestions_clear(ctx):
    """Dismiss every current suggestion."""
    count = get_engine(ctx).clear_all()
    console.print(f"[green]Cleared {count} suggestion(s)[/green]")


# Pattern inspection
@cli.command()
@click.option("--min-frequency", default=1, help="Only show patterns seen at least this often")
@click.pass_context
def patterns(ctx, min_frequency):
    """List learned usage patterns."""
    engine = get_engine(ctx)
    rows = sorted(
        engine.patterns.strong(min_frequency),
        key=lambda p: (p.frequency, -p.weekday, -p.hour),
        reverse=True,
    )

    if not rows:
        console.print("[yellow]No patterns found[/yellow]")
        return

    table = Table(title="Usage Patterns")
    table.add_column("Device", style="cyan")
    table.add_column("Action")
    table.add_column("Day")
    table.add_column("Hour", justify="right")
    table.add_column("Seen", justify="right")

    for p in rows:
        table.add_row(
            p.device_name or p.device_id,
            p.action.label,
            day_name(p.weekday),
            format_hour(p.hour),
            str(p.frequency),
        )

    console.print(table)


# Settings commands
@cli.group()
def settings():
    """Learning settings."""
    pass


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    """Show learning settings."""
    engine = get_engine(ctx)
    console.print(f"Learning: {'[green]on[/green]' if engine.is_learning else '[yellow]off[/yellow]'}")
    console.print(f"Minimum confidence: {engine.minimum_confidence:.0%}")
    console.print(f"Learning progress: {engine.learning_progress:.0%}")


@settings.command("set")
@click.option("--learning/--no-learning", default=None, help="Enable or disable learning")
@click.option("--min-confidence", type=float, help="Minimum confidence (0-1)")
@click.pass_context
def settings_set(ctx, learning, min_confidence):
    """Change learning settings."""
    engine = get_engine(ctx)
    if learning is not None:
        engine.set_learning(learning)
        console.print(f"[green]Learning {'enabled' if learning else 'disabled'}[/green]")
    if min_confidence is not None:
        try:
            engine.set_minimum_confidence(min_confidence)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return
        console.print(f"[green]Minimum confidence set to {min_confidence:.0%}[/green]")


@cli.command()
@click.option("--yes", is_flag=True, help="Confirm the reset")
@click.pass_context
def reset(ctx, yes):
    """Forget all learned usage, patterns and dismissals."""
    if not yes:
        console.print("[yellow]Reset requires --yes[/yellow]")
        return
    get_engine(ctx).reset()
    console.print("[green]All learned data cleared[/green]")


@cli.command("summary")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def summary_cmd(ctx, as_json):
    """Summarize learned habits and suggestions."""
    data = summary.get_summary(get_engine(ctx))

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(summary.format_summary_text(data), markup=False)


if __name__ == "__main__":
    cli()
