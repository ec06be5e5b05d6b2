"""Load extracted records into the index."""

from __future__ import annotations

import json

import click

from capgraph.commands.resolve import json_mode
from capgraph.db.connection import open_db
from capgraph.db.ingest import load_records_file
from capgraph.output.formatter import format_table, json_envelope, to_json


@click.command()
@click.argument("records", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def load(ctx, records):
    """Load a JSON document of repositories, files, symbols and references."""
    try:
        with open_db() as conn:
            counts = load_records_file(conn, records)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{records} is not valid JSON: {exc}") from exc
    except (ValueError, KeyError) as exc:
        raise click.ClickException(f"Malformed record in {records}: {exc}") from exc

    if json_mode(ctx):
        click.echo(to_json(json_envelope("load", summary=counts, source=str(records))))
        return

    click.echo(f"Loaded {records}")
    click.echo(format_table(["table", "rows"], [[k, str(v)] for k, v in counts.items()]))
