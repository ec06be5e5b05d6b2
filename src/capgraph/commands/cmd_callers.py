"""List transitive callers or callees of a symbol."""

from __future__ import annotations

import click

from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import abbrev_kind, format_table, json_envelope, to_json


def _run(ctx, command, repository_id, symbol_id, depth):
    require_index()
    with open_db(readonly=True) as conn:
        engine = services(ctx, conn).queries()
        if command == "callers":
            nodes = engine.get_callers(repository_id, symbol_id, depth)
        else:
            nodes = engine.get_callees(repository_id, symbol_id, depth)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            command,
            summary={"count": len(nodes), "depth": depth},
            symbol_id=symbol_id,
            symbols=[n.to_dict() for n in nodes],
        )))
        return

    rows = [[str(n.depth), abbrev_kind(n.kind), n.name, n.file_path] for n in nodes]
    click.echo(format_table(["depth", "kind", "name", "file"], rows))


@click.command()
@click.argument("repository_id")
@click.argument("symbol_id")
@click.option("--depth", "-d", default=1, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def callers(ctx, repository_id, symbol_id, depth):
    """Symbols that call SYMBOL_ID."""
    _run(ctx, "callers", repository_id, symbol_id, depth)


@click.command()
@click.argument("repository_id")
@click.argument("symbol_id")
@click.option("--depth", "-d", default=1, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def callees(ctx, repository_id, symbol_id, depth):
    """Symbols called by SYMBOL_ID."""
    _run(ctx, "callees", repository_id, symbol_id, depth)
