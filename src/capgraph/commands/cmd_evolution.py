"""Record, detect and summarise capability evolution events."""

from __future__ import annotations

from datetime import timezone

import click

from capgraph.capability.models import (
    CapabilityEventType,
    ChangeCategory,
    ChangeSignificance,
    EvolutionEventInput,
    EvolutionFilter,
)
from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import format_table, json_envelope, to_json

_EVENT_TYPES = [t.value for t in CapabilityEventType]
_CATEGORIES = [c.value for c in ChangeCategory]
_SIGNIFICANCES = [s.value for s in ChangeSignificance]


def _utc(dt):
    return dt.replace(tzinfo=timezone.utc) if dt is not None else None


def _event_rows(events):
    return [
        [
            e.event_date.date().isoformat(), e.event_type.value, e.significance.value,
            e.change_category.value, e.commit_sha[:8], e.summary or "",
        ]
        for e in events
    ]


@click.command()
@click.option("--capability", "capability_id", default=None)
@click.option("--repo", "repository_id", default=None)
@click.option("--type", "event_types", multiple=True, type=click.Choice(_EVENT_TYPES))
@click.option("--category", "categories", multiple=True, type=click.Choice(_CATEGORIES))
@click.option("--min-significance", type=click.Choice(_SIGNIFICANCES), default=None)
@click.option("--since", type=click.DateTime(), default=None, help="UTC")
@click.option("--until", type=click.DateTime(), default=None, help="UTC")
@click.option("--limit", default=100, show_default=True, type=click.IntRange(min=1))
@click.option("--offset", default=0, show_default=True, type=click.IntRange(min=0))
@click.pass_context
def evolution(ctx, capability_id, repository_id, event_types, categories, min_significance,
              since, until, limit, offset):
    """Evolution events with per-type, per-category and per-day rollups."""
    require_index()
    flt = EvolutionFilter(
        capability_id=capability_id,
        repository_id=repository_id,
        event_types=[CapabilityEventType(t) for t in event_types] or None,
        change_categories=[ChangeCategory(c) for c in categories] or None,
        min_significance=ChangeSignificance(min_significance) if min_significance else None,
        since=_utc(since),
        until=_utc(until),
        limit=limit,
        offset=offset,
    )
    with open_db(readonly=True) as conn:
        summary = services(ctx, conn).evolution().get_capability_evolution(flt)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "evolution",
            summary={"events": summary.total_events},
            **summary.to_dict(),
        )))
        return

    click.echo(f"{summary.capability_name}: {summary.total_events} events")
    click.echo(format_table(["date", "type", "significance", "category", "commit", "summary"],
                            _event_rows(summary.events)))
    if summary.timeline:
        click.echo()
        click.echo(format_table(
            ["day", "events", "complexity", "lines"],
            [[t.date, str(t.event_count), f"{t.net_complexity_change:+g}", f"{t.net_line_change:+d}"]
             for t in summary.timeline],
        ))


@click.command("record-event")
@click.argument("capability_id")
@click.argument("repository_id")
@click.argument("event_type", type=click.Choice(_EVENT_TYPES))
@click.option("--commit", "commit_sha", required=True)
@click.option("--message", "commit_message", default=None)
@click.option("--author", "commit_author", default=None)
@click.option("--symbol", "symbols", multiple=True, help="Affected symbol id (repeatable)")
@click.option("--file", "files", multiple=True, help="Affected file id (repeatable)")
@click.option("--complexity-delta", default=0.0, type=float)
@click.option("--line-delta", default=0, type=int)
@click.option("--health-delta", default=0.0, type=float)
@click.option("--breaking", is_flag=True)
@click.option("--category", type=click.Choice(_CATEGORIES), default=None)
@click.option("--summary", default=None)
@click.option("--description", default=None)
@click.option("--tag", "tags", multiple=True)
@click.pass_context
def record_event(ctx, capability_id, repository_id, event_type, commit_sha, commit_message, commit_author,
                 symbols, files, complexity_delta, line_delta, health_delta, breaking, category,
                 summary, description, tags):
    """Record one change event against a capability."""
    require_index()
    event = EvolutionEventInput(
        event_type=CapabilityEventType(event_type),
        commit_sha=commit_sha,
        commit_message=commit_message,
        commit_author=commit_author,
        symbols_affected=list(symbols),
        files_affected=list(files),
        complexity_delta=complexity_delta,
        line_count_delta=line_delta,
        health_score_delta=health_delta,
        breaking_change=breaking,
        change_category=ChangeCategory(category) if category else None,
        summary=summary,
        description=description,
        tags=list(tags),
    )
    with open_db() as conn:
        recorded = services(ctx, conn).evolution().record_evolution_event(capability_id, repository_id, event)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "record-event",
            summary={"significance": recorded.significance.value, "requires_review": recorded.requires_review},
            event=recorded.to_dict(),
        )))
        return
    review = "  (requires review)" if recorded.requires_review else ""
    click.echo(f"Recorded {recorded.event_type.value} as {recorded.significance.value}{review}")


@click.command("detect-evolution")
@click.argument("capability_id")
@click.argument("repository_id")
@click.option("--commit", "commit_sha", required=True)
@click.option("--previous", "previous_commit_sha", default=None)
@click.pass_context
def detect_evolution(ctx, capability_id, repository_id, commit_sha, previous_commit_sha):
    """Run the evolution detectors and record what they find."""
    require_index()
    with open_db() as conn:
        events = services(ctx, conn).evolution().detect_evolution(
            capability_id, repository_id, commit_sha, previous_commit_sha
        )

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "detect-evolution",
            summary={"events": len(events)},
            events=[e.to_dict() for e in events],
        )))
        return
    if not events:
        click.echo("No evolution detected.")
        return
    click.echo(format_table(["date", "type", "significance", "category", "commit", "summary"],
                            _event_rows(events)))
