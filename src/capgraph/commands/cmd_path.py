"""Find the shortest reference path between two symbols."""

from __future__ import annotations

import click

from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import abbrev_kind, json_envelope, to_json


@click.command("path")
@click.argument("repository_id")
@click.argument("from_id")
@click.argument("to_id")
@click.option("--max-depth", default=None, type=click.IntRange(min=0), help="Give up on paths longer than this")
@click.pass_context
def path_cmd(ctx, repository_id, from_id, to_id, max_depth):
    """Shortest path from FROM_ID to TO_ID."""
    require_index()
    with open_db(readonly=True) as conn:
        path = services(ctx, conn).queries().find_path(repository_id, from_id, to_id, max_depth=max_depth)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "path",
            summary={"found": path is not None, "hops": len(path) - 1 if path else None},
            path=[n.to_dict() for n in path] if path else None,
        )))
        return

    if path is None:
        click.echo(f"No path from {from_id} to {to_id}")
        return
    for i, node in enumerate(path):
        arrow = "   " if i == 0 else "-> "
        click.echo(f"{arrow}{abbrev_kind(node.kind)} {node.name}  {node.file_path}")
