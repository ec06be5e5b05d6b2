"""Detect call cycles across a repository."""

from __future__ import annotations

import click

from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.graph.cycles import format_cycles
from capgraph.output.formatter import json_envelope, to_json


@click.command()
@click.argument("repository_id")
@click.pass_context
def cycles(ctx, repository_id):
    """List call cycles, including self-recursion."""
    require_index()
    with open_db(readonly=True) as conn:
        svc = services(ctx, conn)
        found = svc.queries().detect_cycles(repository_id)
        formatted = format_cycles([[n.id for n in cycle] for cycle in found], svc.symbols)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "cycles",
            summary={"cycles": len(formatted)},
            cycles=formatted,
        )))
        return

    if not formatted:
        click.echo("No call cycles found.")
        return
    for i, cyc in enumerate(formatted, 1):
        names = " -> ".join(s["name"] for s in cyc["symbols"])
        if cyc["symbols"]:
            names += f" -> {cyc['symbols'][0]['name']}"
        click.echo(f"{i}. [{cyc['size']}] {names}")
        click.echo(f"   files: {', '.join(cyc['files'])}")
