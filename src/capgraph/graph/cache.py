"""Call-graph cache: a TTL key/value table plus persisted graph snapshots.

Both live in the index database.  Reads are never re-validated against the
symbol tables; invalidation is coarse (every key under a repository prefix), so
a read racing an invalidation may still see the old graph.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from datetime import datetime, timezone

from capgraph.models import CachedDependencyGraph, CallGraphData, GraphType

log = logging.getLogger(__name__)

DEFAULT_TTL = 3600  # 1 hour


def callgraph_key_prefix(repository_id: str) -> str:
    return f"callgraph:{repository_id}:"


class GraphCache:
    """TTL cache of :class:`CallGraphData` keyed by string.

    *clock* returns the current time in seconds; tests inject a fake one.
    """

    def __init__(self, conn: sqlite3.Connection, default_ttl: int = DEFAULT_TTL, clock=time.time) -> None:
        self.conn = conn
        self.default_ttl = default_ttl
        self._clock = clock

    # -- key/value ----------------------------------------------------------

    def get(self, key: str) -> CallGraphData | None:
        row = self.conn.execute(
            "SELECT value, expires_at FROM graph_cache WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            log.debug("cache miss: %s", key)
            return None
        if row["expires_at"] <= self._clock():
            log.debug("cache expired: %s", key)
            self.conn.execute("DELETE FROM graph_cache WHERE key = ?", (key,))
            return None
        log.debug("cache hit: %s", key)
        return CallGraphData.from_dict(json.loads(row["value"]))

    def put(self, key: str, value: CallGraphData, ttl: int | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self.conn.execute(
            "INSERT INTO graph_cache (key, value, expires_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, expires_at = excluded.expires_at",
            (key, json.dumps(value.to_dict(), sort_keys=True), self._clock() + ttl),
        )

    def invalidate(self, prefix: str) -> int:
        """Drop every key starting with *prefix*.  Returns the number removed."""
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        cur = self.conn.execute(
            "DELETE FROM graph_cache WHERE key LIKE ? ESCAPE '\\'", (escaped + "%",)
        )
        return cur.rowcount

    # -- persisted snapshots ------------------------------------------------

    def save_snapshot(
        self,
        repository_id: str,
        root_id: str,
        data: CallGraphData,
        commit_sha: str | None = None,
        graph_type: str = GraphType.SYMBOL_CALLS.value,
    ) -> None:
        computed_at = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
        self.conn.execute(
            """INSERT INTO dependency_graphs
               (repository_id, graph_type, root_id, graph_data, node_count,
                edge_count, max_depth, commit_sha, computed_at, is_stale)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
               ON CONFLICT(repository_id, graph_type, root_id) DO UPDATE SET
                 graph_data = excluded.graph_data,
                 node_count = excluded.node_count,
                 edge_count = excluded.edge_count,
                 max_depth = excluded.max_depth,
                 commit_sha = excluded.commit_sha,
                 computed_at = excluded.computed_at,
                 is_stale = 0""",
            (
                repository_id, graph_type, root_id,
                json.dumps(data.to_dict(), sort_keys=True),
                data.total_nodes, data.edge_count(), data.max_depth,
                commit_sha, computed_at,
            ),
        )

    def get_snapshot(
        self,
        repository_id: str,
        root_id: str,
        graph_type: str = GraphType.SYMBOL_CALLS.value,
    ) -> CachedDependencyGraph | None:
        """Return the persisted snapshot, or None when missing or stale."""
        row = self.conn.execute(
            "SELECT * FROM dependency_graphs "
            "WHERE repository_id = ? AND graph_type = ? AND root_id = ?",
            (repository_id, graph_type, root_id),
        ).fetchone()
        if row is None or row["is_stale"]:
            return None
        return CachedDependencyGraph(
            repository_id=row["repository_id"],
            graph_type=row["graph_type"],
            root_id=row["root_id"],
            graph_data=CallGraphData.from_dict(json.loads(row["graph_data"])),
            node_count=int(row["node_count"]),
            edge_count=int(row["edge_count"]),
            max_depth=int(row["max_depth"]),
            commit_sha=row["commit_sha"],
            computed_at=row["computed_at"],
            is_stale=bool(row["is_stale"]),
        )

    def mark_all_stale(self, repository_id: str) -> int:
        cur = self.conn.execute(
            "UPDATE dependency_graphs SET is_stale = 1 WHERE repository_id = ?",
            (repository_id,),
        )
        return cur.rowcount
