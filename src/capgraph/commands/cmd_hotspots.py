"""Rank symbols by how connected they are."""

from __future__ import annotations

import click

from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import abbrev_kind, format_table, json_envelope, to_json


@click.command()
@click.argument("repository_id")
@click.option("--limit", "-n", default=10, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def hotspots(ctx, repository_id, limit):
    """Symbols with the highest fan-in plus fan-out."""
    require_index()
    with open_db(readonly=True) as conn:
        result = services(ctx, conn).queries().get_hotspots(repository_id, limit=limit)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "hotspots",
            summary={"count": len(result)},
            hotspots=[h.to_dict() for h in result],
        )))
        return

    rows = [
        [str(h.score), str(h.fan_in), str(h.fan_out), abbrev_kind(h.symbol.kind), h.symbol.name, h.symbol.file_path]
        for h in result
    ]
    click.echo(format_table(["score", "in", "out", "kind", "name", "file"], rows))
