"""Build call trees, per file or per symbol, and invalidate cached ones."""

from __future__ import annotations

import click

from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.graph.callgraph import DIRECTIONS, CallGraphOptions
from capgraph.output.formatter import format_table, format_tree, json_envelope, to_json


def _options(depth, direction, no_external, kinds):
    return CallGraphOptions(
        max_depth=depth,
        include_external=not no_external,
        direction=direction,
        filter_kinds=[k.upper() for k in kinds] or None,
    )


_graph_options = [
    click.option("--depth", "-d", default=3, show_default=True, type=click.IntRange(min=0), help="Maximum tree depth"),
    click.option("--direction", type=click.Choice(DIRECTIONS), default="outgoing", show_default=True),
    click.option("--no-external", is_flag=True, help="Do not collect external package calls"),
    click.option("--kind", "kinds", multiple=True, help="Only expand symbols of this kind (repeatable)"),
]


def graph_options(fn):
    for option in reversed(_graph_options):
        fn = option(fn)
    return fn


@click.command()
@click.argument("repository_id")
@click.argument("symbol_id")
@graph_options
@click.option("--snapshot", is_flag=True, help="Also persist the result as a dependency-graph snapshot")
@click.option("--commit", "commit_sha", default=None, help="Commit SHA recorded with --snapshot")
@click.pass_context
def callgraph(ctx, repository_id, symbol_id, depth, direction, no_external, kinds, snapshot, commit_sha):
    """Show the call tree rooted at SYMBOL_ID."""
    require_index()
    with open_db() as conn:
        builder = services(ctx, conn).call_graphs()
        data = builder.build_call_graph(repository_id, symbol_id, _options(depth, direction, no_external, kinds))
        if snapshot:
            builder.cache_call_graph(repository_id, symbol_id, data, commit_sha)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "callgraph",
            summary={"total_nodes": data.total_nodes, "max_depth": data.max_depth},
            graph=data.to_dict(),
        )))
        return

    click.echo("\n".join(format_tree(data.root.to_dict())))
    click.echo()
    m = data.metrics
    click.echo(
        f"Nodes: {data.total_nodes}  |  Depth: {data.max_depth}  |  "
        f"Fan-out avg/max: {m.avg_fan_out}/{m.max_fan_out}  |  "
        f"Fan-in avg/max: {m.avg_fan_in}/{m.max_fan_in}  |  Coupling: {m.coupling_score}"
    )
    if data.external_calls:
        click.echo()
        click.echo("External calls:")
        click.echo(format_table(["package", "symbol"], [[e.package, e.symbol] for e in data.external_calls]))


@click.command("file-graph")
@click.argument("repository_id")
@click.argument("file_id")
@graph_options
@click.pass_context
def file_graph(ctx, repository_id, file_id, depth, direction, no_external, kinds):
    """Show one call tree per top-level function, class or method in FILE_ID."""
    require_index()
    with open_db() as conn:
        graphs = services(ctx, conn).call_graphs().build_file_call_graph(
            repository_id, file_id, _options(depth, direction, no_external, kinds)
        )

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "file-graph",
            summary={"graphs": len(graphs)},
            file_id=file_id,
            graphs=[g.to_dict() for g in graphs],
        )))
        return

    if not graphs:
        click.echo("(no top-level functions, classes or methods)")
        return
    for g in graphs:
        click.echo("\n".join(format_tree(g.root.to_dict())))
        click.echo()


@click.command()
@click.argument("repository_id")
@click.pass_context
def invalidate(ctx, repository_id):
    """Mark cached call graphs of a repository stale."""
    require_index()
    with open_db() as conn:
        marked, dropped = services(ctx, conn).call_graphs().invalidate_graphs(repository_id)

    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "invalidate",
            summary={"snapshots_marked": marked, "cache_keys_dropped": dropped},
            repository_id=repository_id,
        )))
        return
    click.echo(f"Marked {marked} snapshots stale, dropped {dropped} cached graphs")
