"""Manage symbol-to-capability links."""

from __future__ import annotations

import click

from capgraph.capability.models import CapabilityLinkType
from capgraph.commands.resolve import json_mode, require_index, services
from capgraph.db.connection import open_db
from capgraph.output.formatter import format_table, json_envelope, to_json

_LINK_TYPES = [t.value for t in CapabilityLinkType]


@click.command()
@click.argument("symbol_id")
@click.argument("capability_id")
@click.option("--type", "link_type", type=click.Choice(_LINK_TYPES, case_sensitive=False),
              default="IMPLEMENTS", show_default=True)
@click.option("--confidence", default=1.0, show_default=True, type=float, help="Clamped to [0, 1]")
@click.option("--evidence", multiple=True, help="Why the symbol belongs to the capability (repeatable)")
@click.option("--by", "linked_by", default=None, help="Who made the link")
@click.pass_context
def link(ctx, symbol_id, capability_id, link_type, confidence, evidence, linked_by):
    """Link SYMBOL_ID to CAPABILITY_ID, replacing any existing link."""
    require_index()
    with open_db() as conn:
        result = services(ctx, conn).linker().link_symbol_to_capability(
            symbol_id, capability_id, CapabilityLinkType(link_type.upper()),
            confidence=confidence, evidence=evidence, linked_by=linked_by,
        )

    if json_mode(ctx):
        click.echo(to_json(json_envelope("link", summary={"linked": True}, link=result.to_dict())))
        return
    click.echo(
        f"Linked {symbol_id} -> {capability_id} as {result.link_type.value} "
        f"(confidence {result.confidence:.2f})"
    )


@click.command()
@click.argument("symbol_id")
@click.argument("capability_id")
@click.pass_context
def unlink(ctx, symbol_id, capability_id):
    """Remove the link between SYMBOL_ID and CAPABILITY_ID."""
    require_index()
    with open_db() as conn:
        removed = services(ctx, conn).linker().unlink_symbol_from_capability(symbol_id, capability_id)

    if json_mode(ctx):
        click.echo(to_json(json_envelope("unlink", summary={"removed": removed})))
        return
    click.echo("Removed link." if removed else "No such link.")


@click.command("infer-links")
@click.argument("repository_id")
@click.option("--capability", "capability_id", default=None, help="Only infer for this capability")
@click.option("--threshold", default=0.5, show_default=True, type=click.FloatRange(0, 1))
@click.option("--max-links", default=20, show_default=True, type=click.IntRange(min=1))
@click.option("--apply", "apply_", is_flag=True, help="Persist the proposed links")
@click.option("--by", "linked_by", default=None, help="Recorded as the linker when applying")
@click.pass_context
def infer_links(ctx, repository_id, capability_id, threshold, max_links, apply_, linked_by):
    """Propose links from symbol names and docs that mention a capability."""
    require_index()
    with open_db() as conn:
        linker = services(ctx, conn).linker()
        results = linker.infer_capability_links(
            repository_id, capability_id=capability_id, threshold=threshold, max_links=max_links
        )
        applied = 0
        if apply_:
            applied = linker.apply_inferred_links(
                [l for r in results for l in r.inferred_links], linked_by=linked_by
            )

    proposed = sum(r.new_links_count for r in results)
    if json_mode(ctx):
        click.echo(to_json(json_envelope(
            "infer-links",
            summary={"capabilities": len(results), "proposed": proposed, "applied": applied},
            results=[r.to_dict() for r in results],
        )))
        return

    rows = [
        [r.capability_name, l.symbol_id, f"{l.confidence:.2f}", "; ".join(l.evidence)]
        for r in results
        for l in r.inferred_links
    ]
    click.echo(format_table(["capability", "symbol", "confidence", "evidence"], rows))
    if apply_:
        click.echo(f"\nApplied {applied} of {proposed} proposed links")
