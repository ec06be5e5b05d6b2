"""Load pre-extracted index records into the database.

The extractor that parses source files lives outside capgraph; it hands over a
JSON document of the form::

    {
        "repositories": [{"id": "r1", "name": "api", "tenant_id": "t1"}],
        "files": [{"id": "f1", "repository_id": "r1", "path": "src/app.py"}],
        "symbols": [{"id": "s1", "repository_id": "r1", "file_id": "f1",
                     "name": "main", "kind": "FUNCTION"}],
        "references": [{"repository_id": "r1", "source_symbol_id": "s1",
                        "target_symbol_id": "s2", "reference_type": "CALL"}],
        "capabilities": [{"id": "c1", "name": "billing"}]
    }

Records with an ``id`` are upserted.  References have no stable identity, so
the references of every repository present in the document are replaced.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from capgraph.graph.cache import GraphCache, callgraph_key_prefix

log = logging.getLogger(__name__)


def _insert_many(conn, table, columns, rows, *, upsert=True):
    """Bulk insert.  With *upsert*, rows whose ``id`` exists are updated in place.

    ``INSERT OR REPLACE`` is avoided: it deletes the old row first, which would
    cascade into links and references hanging off it.
    """
    if not rows:
        return 0
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})"
    if upsert:
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
        sql += f" ON CONFLICT(id) DO UPDATE SET {updates}"
    conn.executemany(sql, rows)
    return len(rows)


def load_records(conn: sqlite3.Connection, payload: dict) -> dict:
    """Write *payload* into the index.  Returns per-table row counts."""
    repositories = payload.get("repositories", [])
    files = payload.get("files", [])
    symbols = payload.get("symbols", [])
    references = payload.get("references", [])
    capabilities = payload.get("capabilities", [])

    counts = {}
    counts["repositories"] = _insert_many(
        conn, "repositories", ("id", "tenant_id", "name", "url"),
        [(r["id"], r.get("tenant_id"), r.get("name", r["id"]), r.get("url")) for r in repositories],
    )
    counts["files"] = _insert_many(
        conn, "files", ("id", "repository_id", "path", "language", "line_count"),
        [
            (f["id"], f["repository_id"], f["path"], f.get("language"), f.get("line_count", 0))
            for f in files
        ],
    )
    # parent_id may point forward in the document; check at commit time
    conn.execute("PRAGMA defer_foreign_keys = ON")
    counts["symbols"] = _insert_many(
        conn, "symbols",
        (
            "id", "repository_id", "file_id", "name", "kind", "parent_id",
            "signature", "documentation", "line_start", "line_end",
            "cyclomatic_complexity", "line_count", "visibility", "is_exported",
            "deleted_at",
        ),
        [
            (
                s["id"], s["repository_id"], s["file_id"], s["name"], s["kind"],
                s.get("parent_id"), s.get("signature"), s.get("documentation"),
                s.get("line_start"), s.get("line_end"),
                s.get("cyclomatic_complexity", 1), s.get("line_count", 0),
                s.get("visibility", "PUBLIC"), 1 if s.get("is_exported") else 0,
                s.get("deleted_at"),
            )
            for s in symbols
        ],
    )

    repo_ids = {r["repository_id"] for r in references} | {r["id"] for r in repositories}
    for repo_id in sorted(repo_ids):
        conn.execute("DELETE FROM symbol_references WHERE repository_id = ?", (repo_id,))
    counts["references"] = _insert_many(
        conn, "symbol_references",
        (
            "repository_id", "source_symbol_id", "target_symbol_id", "source_file_id",
            "reference_type", "is_external", "external_package", "target_name", "line",
        ),
        [
            (
                r["repository_id"], r["source_symbol_id"], r.get("target_symbol_id"),
                r.get("source_file_id"), r.get("reference_type", "CALL"),
                1 if r.get("is_external") else 0, r.get("external_package"),
                r.get("target_name"), r.get("line"),
            )
            for r in references
        ],
        upsert=False,
    )
    counts["capabilities"] = _insert_many(
        conn, "capabilities", ("id", "tenant_id", "name", "description"),
        [(c["id"], c.get("tenant_id"), c["name"], c.get("description")) for c in capabilities],
    )

    # Reloaded references make every cached tree of those repositories stale
    cache = GraphCache(conn)
    for repo_id in sorted(repo_ids):
        marked = cache.mark_all_stale(repo_id)
        dropped = cache.invalidate(callgraph_key_prefix(repo_id))
        if marked or dropped:
            log.info("Invalidated %d snapshots and %d cached graphs for %s", marked, dropped, repo_id)
    conn.commit()

    log.info(
        "Loaded %d symbols and %d references across %d repositories",
        counts["symbols"], counts["references"], len(repo_ids),
    )
    return counts


def load_records_file(conn: sqlite3.Connection, path: Path) -> dict:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return load_records(conn, payload)
