"""Aggregate CALL references into weighted symbol-to-symbol edges."""

from __future__ import annotations

import click

from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import format_table, json_envelope, to_json


@click.command()
@click.argument("repository_id")
@click.option("--source-file", "source_file_id", default=None, help="Only calls made from this file id")
@click.option("--target-file", "target_file_id", default=None, help="Only calls into this file id")
@click.option("--limit", default=1000, show_default=True, type=click.IntRange(min=1),
              help="Maximum reference rows to aggregate")
@click.pass_context
def edges(ctx, repository_id, source_file_id, target_file_id, limit):
    """Show distinct caller/callee pairs with their call counts."""
    require_index()
    with open_db(readonly=True) as conn:
        result = services(ctx, conn).queries().get_call_edges(
            repository_id, source_file_id=source_file_id, target_file_id=target_file_id, limit=limit
        )

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "edges",
            summary={"edges": len(result), "calls": sum(e.call_count for e in result)},
            edges=[e.to_dict() for e in result],
        )))
        return

    rows = [
        [e.source_name, e.target_name, str(e.call_count), f"{e.source_file} -> {e.target_file}"]
        for e in result
    ]
    click.echo(format_table(["caller", "callee", "calls", "files"], rows))
