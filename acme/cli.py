"""ACME CLI — operator entry point for the content moderation engine."""

import json
import sys

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from acme import __version__
from acme.config import load_config
from acme.moderation.errors import ModerationError
from acme.moderation.models import (
    ALL_CATEGORIES,
    AnalysisOptions,
    AnalysisResult,
    ContentType,
    Decision,
)
from acme.moderation.queue import DEFAULT_RETENTION_DAYS
from acme.moderation.service import build_service
from acme.moderation.stats import timeframe_from_days
from acme.utils.log import configure_logging

console = Console()

_SEVERITY_STYLE = {"low": "green", "medium": "yellow", "high": "red"}
_ACTION_STYLE = {"approve": "green", "flag": "yellow", "block": "red"}


def _fail(e: ModerationError):
    console.print(f"[red]Error:[/] {e.message}")
    sys.exit(1)


def _service(ctx: click.Context):
    if "service" not in ctx.obj:
        ctx.obj["service"] = build_service(ctx.obj["config"])
    return ctx.obj["service"]


def _print_analysis(result: AnalysisResult):
    action = result.recommended_action.value
    severity = result.overall_severity.value
    console.print(
        f"  Action: [{_ACTION_STYLE[action]}]{action}[/]   "
        f"Severity: [{_SEVERITY_STYLE[severity]}]{severity}[/]   "
        f"Confidence: {result.confidence:.2f}"
    )
    if result.flag_reason:
        console.print(f"  Reason: {result.flag_reason}")

    table = Table(title="Detector Scores")
    table.add_column("Category", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Evidence")
    for r in result.detector_results:
        if r.faulted:
            score = "[red]fault[/]"
            evidence = r.error or ""
        else:
            style = "red" if r.category in result.triggered_categories else "green"
            score = f"[{style}]{r.score:.2f}[/]"
            evidence = ", ".join(r.matched_evidence)[:60]
        table.add_row(r.category, score, evidence)
    console.print(table)

    if result.moderation_tags:
        console.print(f"  Tags: {', '.join(result.moderation_tags)}")


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to a config YAML file")
@click.pass_context
def main(ctx: click.Context, config_path: str | None):
    """ACME — Automated Content Moderation Engine.

    Score user content for toxicity, spam, profanity, threats and personal
    information, and work the human review queue.
    """
    try:
        config = load_config(config_path)
    except ModerationError as e:
        _fail(e)
    configure_logging(config.log_level)
    ctx.obj = {"config": config}


# ── Analyze ──────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option("--detector", "-d", multiple=True, help="Only run these detectors")
@click.option("--force", is_flag=True, help="Run the requested detectors even if disabled")
@click.option("--threshold", type=float, default=None, help="Override the flag threshold")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
@click.pass_context
def analyze(ctx, text: str, detector: tuple, force: bool, threshold: float | None, as_json: bool):
    """Dry-run analysis of TEXT. Nothing is queued or recorded."""
    options = AnalysisOptions(
        detectors=set(detector) if detector else None,
        force=force,
        flag_threshold=threshold,
    )
    try:
        result = _service(ctx).analyze_content(text, options)
    except ModerationError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print("\n[bold blue]ACME[/] — Analysis\n")
    _print_analysis(result)


# ── Moderate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option(
    "--type", "content_type", default="post",
    type=click.Choice([c.value for c in ContentType]),
)
@click.option("--author", required=True, help="Author (user) id")
@click.option("--content-id", default=None, help="Content id (generated if omitted)")
@click.pass_context
def moderate(ctx, text: str, content_type: str, author: str, content_id: str | None):
    """Moderate TEXT before publication, queueing it for review if needed."""
    try:
        outcome = _service(ctx).moderate_before_publish(text, content_type, author, content_id)
    except ModerationError as e:
        _fail(e)

    console.print(f"\n[bold blue]ACME[/] — Moderated content {outcome.content_id}\n")
    _print_analysis(outcome.analysis)
    if outcome.queue_entry_id:
        console.print(f"\n  Queued for review: [cyan]{outcome.queue_entry_id}[/]")
    verdict = "[green]allowed[/]" if outcome.allowed else "[red]blocked[/]"
    console.print(f"  Publication: {verdict}")


# ── Bulk ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def bulk(ctx, path: str):
    """Moderate every content record in a JSON or YAML list file."""
    try:
        with open(path) as f:
            items = yaml.safe_load(f)
    except yaml.YAMLError as e:
        console.print(f"  [red]Failed to parse:[/] {e}")
        sys.exit(1)

    try:
        results = _service(ctx).bulk_moderate(items)
    except ModerationError as e:
        _fail(e)

    table = Table(title=f"Bulk Moderation ({len(results)} items)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Content", style="cyan")
    table.add_column("Status")
    table.add_column("Action")
    table.add_column("Detail")
    for r in results:
        status = "[green]success[/]" if r.ok else f"[red]{r.status}[/]"
        action = r.outcome.action.value if r.outcome else ""
        detail = r.error or (r.outcome.queue_entry_id if r.outcome else "") or ""
        table.add_row(str(r.index), r.content_id, status, action, detail)
    console.print(table)

    failed = sum(1 for r in results if not r.ok)
    if failed:
        console.print(f"\n[yellow]{failed} item(s) failed[/]")


# ── Queue ────────────────────────────────────────────────────────────


@main.command()
@click.option("--status", default=None, help="pending, reviewed, escalated or resolved")
@click.option("--severity", default=None, help="low, medium or high")
@click.option("--type", "content_type", default=None, help="post, reply or profile")
@click.pass_context
def queue(ctx, status: str | None, severity: str | None, content_type: str | None):
    """List review queue entries, newest first."""
    try:
        entries = _service(ctx).get_moderation_queue(
            status=status, severity=severity, content_type=content_type
        )
    except ModerationError as e:
        _fail(e)

    if not entries:
        console.print("[yellow]Moderation queue is empty.[/]")
        return

    table = Table(title=f"Moderation Queue ({len(entries)} entries)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Content", no_wrap=True)
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Severity")
    table.add_column("Reason")
    for e in entries:
        sev = e.severity.value
        table.add_row(
            e.id,
            e.content_id,
            e.content_type.value,
            e.status.value,
            f"[{_SEVERITY_STYLE[sev]}]{sev}[/]",
            e.flag_reason[:40],
        )
    console.print(table)


@main.command()
@click.argument("queue_id")
@click.argument("decision", type=click.Choice([d.value for d in Decision]))
@click.option("--reviewer", required=True, help="Reviewer id recorded on the decision")
@click.option("--reason", default=None, help="Reason recorded in the history")
@click.pass_context
def decide(ctx, queue_id: str, decision: str, reviewer: str, reason: str | None):
    """Apply a reviewer DECISION to a queue entry."""
    try:
        entry = _service(ctx).process_moderation_decision(queue_id, decision, reviewer, reason)
    except ModerationError as e:
        _fail(e)
    console.print(f"  [green]v[/] {entry.id} is now {entry.status.value}")


@main.command()
@click.argument("content_id")
@click.pass_context
def history(ctx, content_id: str):
    """Show the moderation history of CONTENT_ID, oldest first."""
    try:
        entries = _service(ctx).get_moderation_history(content_id)
    except ModerationError as e:
        _fail(e)

    if not entries:
        console.print(f"[yellow]No moderation history for {content_id}.[/]")
        return

    table = Table(title=f"History for {content_id}")
    table.add_column("Timestamp", style="dim")
    table.add_column("Action")
    table.add_column("Actor", style="cyan")
    table.add_column("Reason")
    for h in entries:
        table.add_row(h.timestamp[:19], h.action.value, h.actor, h.reason)
    console.print(table)


@main.command()
@click.option("--days", type=float, default=None, help="Only the last N days")
@click.pass_context
def stats(ctx, days: float | None):
    """Summarise moderation activity."""
    try:
        start = end = None
        if days is not None:
            start, end = timeframe_from_days(days)
        snap = _service(ctx).get_moderation_stats(start, end)
    except ModerationError as e:
        _fail(e)

    lines = [
        f"Total actions: {snap.total}",
        f"Automated: {snap.automated}   Manual: {snap.manual}",
        f"Automation rate: {snap.automation_rate:.0%}",
        "Actions: " + ", ".join(f"{k}={v}" for k, v in snap.action_breakdown.items()),
        "Severity: " + ", ".join(f"{k}={v}" for k, v in snap.severity_breakdown.items()),
        "Queue: " + ", ".join(f"{k}={v}" for k, v in snap.queue_stats.items()),
    ]
    title = f"Moderation Stats (last {days:g} days)" if days is not None else "Moderation Stats"
    console.print(Panel("\n".join(lines), title=title))


@main.command()
@click.option("--days", type=float, default=DEFAULT_RETENTION_DAYS, show_default=True,
              help="Remove reviewed/resolved entries older than this")
@click.pass_context
def cleanup(ctx, days: float):
    """Delete old reviewed and resolved queue entries."""
    try:
        removed = _service(ctx).cleanup_old_queue_items(days)
    except ModerationError as e:
        _fail(e)
    console.print(f"  Removed {removed} queue entries")


# ── Settings ─────────────────────────────────────────────────────────


@main.group()
def settings():
    """Show or change moderation settings."""


@settings.command(name="show")
@click.pass_context
def settings_show(ctx):
    """Print the current settings."""
    current = _service(ctx).get_moderation_settings()
    table = Table(title="Moderation Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("flagThreshold", f"{current.flag_threshold:g}")
    for category in sorted(ALL_CATEGORIES):
        on = category in current.enabled_detectors
        table.add_row(category, "[green]enabled[/]" if on else "[dim]disabled[/]")
    console.print(table)


@settings.command(name="set")
@click.argument("assignments", nargs=-1, required=True)
@click.pass_context
def settings_set(ctx, assignments: tuple):
    """Update settings with KEY=VALUE pairs, e.g. ``spam=false flagThreshold=0.5``."""
    update = {}
    for item in assignments:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            console.print(f"[red]Error:[/] expected KEY=VALUE, got '{item}'")
            sys.exit(1)
        update[key.strip()] = yaml.safe_load(raw)

    try:
        new_settings = _service(ctx).update_moderation_settings(update)
    except ModerationError as e:
        _fail(e)
    console.print(
        f"  [green]v[/] Settings updated: threshold={new_settings.flag_threshold:g}, "
        f"enabled={', '.join(sorted(new_settings.enabled_detectors)) or 'none'}"
    )
