"""Compute or show capability health."""

from __future__ import annotations

import click

from capgraph.capability.models import CapabilityHealthRequest
from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import format_table, json_envelope, to_json


@click.command()
@click.argument("capability_id")
@click.argument("repository_id")
@click.option("--compute", is_flag=True, help="Compute and store today's snapshot first")
@click.option("--since", "start_date", type=click.DateTime(["%Y-%m-%d"]), default=None)
@click.option("--until", "end_date", type=click.DateTime(["%Y-%m-%d"]), default=None)
@click.option("--limit", default=30, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def health(ctx, capability_id, repository_id, compute, start_date, end_date, limit):
    """Health history, trend and alerts for a capability in a repository."""
    require_index()
    with open_db() as conn:
        scorer = services(ctx, conn).health()
        if compute:
            scorer.calculate_capability_health(capability_id, repository_id)
        report = scorer.get_capability_health(CapabilityHealthRequest(
            capability_id=capability_id,
            repository_id=repository_id,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
            limit=limit,
        ))

    current = report.current_health
    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "health",
            summary={
                "score": round(current.overall_health_score, 2) if current else None,
                "status": current.health_status.value if current else None,
                "alerts": len(report.alerts),
            },
            **report.to_dict(),
        )))
        return

    click.echo(f"{report.capability_name} ({report.capability_id})")
    if current is None:
        click.echo("No health snapshots yet. Run with --compute.")
        return
    click.echo(
        f"Score {current.overall_health_score:.1f}  {current.health_status.value}  "
        f"trend {report.trend.direction.value} ({current.trend_delta:+.1f})"
    )
    click.echo(
        f"complexity {current.complexity_score:.1f}  quality {current.quality_score:.1f}  "
        f"stability {current.stability_score:.1f}  maintainability {current.maintainability_score:.1f}"
    )
    click.echo(
        f"7d {report.trend.delta_7d:+.1f}  30d {report.trend.delta_30d:+.1f}  "
        f"volatility {report.trend.volatility:.2f}"
    )
    if report.alerts:
        click.echo()
        click.echo(format_table(
            ["level", "metric", "value", "target", "message"],
            [[a.type, a.metric, f"{a.value:.2f}", f"{a.threshold:g}", a.message] for a in report.alerts],
        ))
    if len(report.history) > 1:
        click.echo()
        click.echo(format_table(
            ["date", "score", "status"],
            [[h.date.isoformat(), f"{h.overall_health_score:.1f}", h.health_status.value] for h in report.history],
        ))
