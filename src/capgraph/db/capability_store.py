"""Persistence for capability links, daily health snapshots and evolution events.

As with :mod:`capgraph.db.store`, rows are mapped once into the records of
:mod:`capgraph.capability.models`; list columns are stored as JSON text.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timezone

from capgraph.capability.models import (
    CapabilityEvolution,
    CapabilityEventType,
    CapabilityHealth,
    CapabilityLinkType,
    ChangeCategory,
    ChangeSignificance,
    EvolutionFilter,
    HealthStatus,
    HealthTrend,
    SymbolCapabilityLink,
)
from capgraph.db.store import symbol_from_row
from capgraph.models import CodeSymbol


def _utc_iso(moment: datetime) -> str:
    """ISO text in UTC so stored event dates order and compare correctly.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


_HEALTH_COLUMNS = (
    "symbol_count", "total_complexity", "avg_complexity", "max_complexity",
    "total_line_count", "documented_symbols", "documentation_ratio",
    "test_coverage", "test_symbol_count", "lint_issue_count",
    "type_error_count", "deprecated_usage_count", "files_changed",
    "symbols_added", "symbols_modified", "symbols_removed", "total_churn",
    "incoming_dependencies", "outgoing_dependencies", "coupling_score",
    "cohesion_score", "complexity_score", "quality_score", "stability_score",
    "maintainability_score", "overall_health_score", "health_status",
    "health_trend", "trend_delta",
)

_EVOLUTION_COLUMNS = (
    "capability_id", "repository_id", "event_type", "event_date", "commit_sha",
    "commit_message", "commit_author", "symbols_affected", "symbols_added",
    "symbols_modified", "symbols_removed", "files_affected", "files_changed",
    "complexity_delta", "line_count_delta", "health_score_delta",
    "breaking_change", "requires_review", "change_category", "significance",
    "summary", "description", "tags",
)


def _json_list(text) -> list:
    if not text:
        return []
    value = json.loads(text)
    return [str(v) for v in value] if isinstance(value, list) else []


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def link_from_row(row: sqlite3.Row) -> SymbolCapabilityLink:
    return SymbolCapabilityLink(
        id=int(row["id"]),
        symbol_id=str(row["symbol_id"]),
        capability_id=str(row["capability_id"]),
        link_type=CapabilityLinkType(row["link_type"]),
        confidence=float(row["confidence"]),
        is_auto_linked=bool(row["is_auto_linked"]),
        evidence=_json_list(row["evidence"]),
        linked_by=row["linked_by"],
        linked_at=str(row["linked_at"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def health_from_row(row: sqlite3.Row) -> CapabilityHealth:
    return CapabilityHealth(
        id=int(row["id"]),
        capability_id=str(row["capability_id"]),
        repository_id=str(row["repository_id"]),
        date=date.fromisoformat(row["date"]),
        symbol_count=int(row["symbol_count"]),
        total_complexity=int(row["total_complexity"]),
        avg_complexity=float(row["avg_complexity"]),
        max_complexity=int(row["max_complexity"]),
        total_line_count=int(row["total_line_count"]),
        documented_symbols=int(row["documented_symbols"]),
        documentation_ratio=float(row["documentation_ratio"]),
        test_coverage=float(row["test_coverage"]),
        test_symbol_count=int(row["test_symbol_count"]),
        lint_issue_count=int(row["lint_issue_count"]),
        type_error_count=int(row["type_error_count"]),
        deprecated_usage_count=int(row["deprecated_usage_count"]),
        files_changed=int(row["files_changed"]),
        symbols_added=int(row["symbols_added"]),
        symbols_modified=int(row["symbols_modified"]),
        symbols_removed=int(row["symbols_removed"]),
        total_churn=int(row["total_churn"]),
        incoming_dependencies=int(row["incoming_dependencies"]),
        outgoing_dependencies=int(row["outgoing_dependencies"]),
        coupling_score=float(row["coupling_score"]),
        cohesion_score=float(row["cohesion_score"]),
        complexity_score=float(row["complexity_score"]),
        quality_score=float(row["quality_score"]),
        stability_score=float(row["stability_score"]),
        maintainability_score=float(row["maintainability_score"]),
        overall_health_score=float(row["overall_health_score"]),
        health_status=HealthStatus(row["health_status"]),
        health_trend=HealthTrend(row["health_trend"]),
        trend_delta=float(row["trend_delta"]),
        created_at=row["created_at"],
    )


def evolution_from_row(row: sqlite3.Row) -> CapabilityEvolution:
    return CapabilityEvolution(
        id=int(row["id"]),
        capability_id=str(row["capability_id"]),
        repository_id=str(row["repository_id"]),
        event_type=CapabilityEventType(row["event_type"]),
        event_date=datetime.fromisoformat(row["event_date"]),
        commit_sha=str(row["commit_sha"]),
        commit_message=row["commit_message"],
        commit_author=row["commit_author"],
        symbols_affected=_json_list(row["symbols_affected"]),
        symbols_added=int(row["symbols_added"]),
        symbols_modified=int(row["symbols_modified"]),
        symbols_removed=int(row["symbols_removed"]),
        files_affected=_json_list(row["files_affected"]),
        files_changed=int(row["files_changed"]),
        complexity_delta=float(row["complexity_delta"]),
        line_count_delta=int(row["line_count_delta"]),
        health_score_delta=float(row["health_score_delta"]),
        breaking_change=bool(row["breaking_change"]),
        requires_review=bool(row["requires_review"]),
        change_category=ChangeCategory(row["change_category"]),
        significance=ChangeSignificance(row["significance"]),
        summary=row["summary"],
        description=row["description"],
        tags=_json_list(row["tags"]),
        created_at=row["created_at"],
    )


def _value(v):
    if isinstance(v, bool):
        return 1 if v else 0
    if hasattr(v, "value"):
        return v.value
    return v


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class CapabilityStore:
    """Write/read port for everything the health layer persists."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # -- links --------------------------------------------------------------

    def upsert_link(
        self,
        symbol_id: str,
        capability_id: str,
        link_type: str,
        confidence: float,
        evidence: list[str],
        linked_by: str | None,
        linked_at: str,
    ) -> SymbolCapabilityLink:
        """Create or overwrite the link for the pair as a manual link."""
        self.conn.execute(
            """INSERT INTO symbol_capability_links
               (symbol_id, capability_id, link_type, confidence, is_auto_linked,
                evidence, linked_by, linked_at)
               VALUES (?, ?, ?, ?, 0, ?, ?, ?)
               ON CONFLICT(symbol_id, capability_id) DO UPDATE SET
                 link_type = excluded.link_type,
                 confidence = excluded.confidence,
                 is_auto_linked = 0,
                 evidence = excluded.evidence,
                 linked_by = excluded.linked_by,
                 linked_at = excluded.linked_at,
                 updated_at = datetime('now')""",
            (symbol_id, capability_id, _value(link_type), confidence,
             json.dumps(list(evidence)), linked_by, linked_at),
        )
        return self.get_link(symbol_id, capability_id)

    def insert_link(
        self,
        symbol_id: str,
        capability_id: str,
        link_type: str,
        confidence: float,
        evidence: list[str],
        linked_by: str | None,
        linked_at: str,
        auto: bool = True,
    ) -> None:
        """Plain insert.  Raises ``sqlite3.IntegrityError`` if the pair exists."""
        self.conn.execute(
            """INSERT INTO symbol_capability_links
               (symbol_id, capability_id, link_type, confidence, is_auto_linked,
                evidence, linked_by, linked_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (symbol_id, capability_id, _value(link_type), confidence, 1 if auto else 0,
             json.dumps(list(evidence)), linked_by, linked_at),
        )

    def delete_link(self, symbol_id: str, capability_id: str) -> int:
        cur = self.conn.execute(
            "DELETE FROM symbol_capability_links WHERE symbol_id = ? AND capability_id = ?",
            (symbol_id, capability_id),
        )
        return cur.rowcount

    def get_link(self, symbol_id: str, capability_id: str) -> SymbolCapabilityLink | None:
        row = self.conn.execute(
            "SELECT * FROM symbol_capability_links WHERE symbol_id = ? AND capability_id = ?",
            (symbol_id, capability_id),
        ).fetchone()
        return link_from_row(row) if row else None

    def linked_symbol_ids(self, capability_id: str) -> set[str]:
        rows = self.conn.execute(
            "SELECT symbol_id FROM symbol_capability_links WHERE capability_id = ?",
            (capability_id,),
        ).fetchall()
        return {str(r["symbol_id"]) for r in rows}

    def links_for_symbol(self, symbol_id: str) -> list[SymbolCapabilityLink]:
        rows = self.conn.execute(
            "SELECT * FROM symbol_capability_links WHERE symbol_id = ? ORDER BY capability_id",
            (symbol_id,),
        ).fetchall()
        return [link_from_row(r) for r in rows]

    def linked_symbols(
        self,
        capability_id: str,
        repository_id: str | None = None,
        min_confidence: float | None = None,
        link_types=None,
        exclude_link_types=None,
        include_deleted: bool = True,
    ) -> list[tuple[CodeSymbol, SymbolCapabilityLink]]:
        """Links of a capability joined with their symbols, ordered by symbol id."""
        where = ["l.capability_id = ?"]
        params: list = [capability_id]
        if repository_id is not None:
            where.append("s.repository_id = ?")
            params.append(repository_id)
        if min_confidence is not None:
            where.append("l.confidence >= ?")
            params.append(min_confidence)
        if link_types:
            where.append(f"l.link_type IN ({','.join('?' for _ in link_types)})")
            params.extend(_value(t) for t in link_types)
        if exclude_link_types:
            where.append(f"l.link_type NOT IN ({','.join('?' for _ in exclude_link_types)})")
            params.extend(_value(t) for t in exclude_link_types)
        if not include_deleted:
            where.append("s.deleted_at IS NULL")

        rows = self.conn.execute(
            "SELECT l.id AS link_id, l.symbol_id, l.capability_id, l.link_type, "
            "l.confidence, l.is_auto_linked, l.evidence, l.linked_by, l.linked_at, "
            "l.created_at AS link_created_at, l.updated_at AS link_updated_at, "
            "s.id, s.repository_id, s.file_id, s.name, s.kind, s.parent_id, "
            "s.signature, s.documentation, s.line_start, s.line_end, "
            "s.cyclomatic_complexity, s.line_count, s.visibility, s.is_exported, "
            "s.deleted_at, f.path AS file_path "
            "FROM symbol_capability_links l "
            "JOIN symbols s ON l.symbol_id = s.id "
            "JOIN files f ON s.file_id = f.id "
            f"WHERE {' AND '.join(where)} ORDER BY s.id",
            params,
        ).fetchall()

        result = []
        for r in rows:
            link = SymbolCapabilityLink(
                id=int(r["link_id"]),
                symbol_id=str(r["symbol_id"]),
                capability_id=str(r["capability_id"]),
                link_type=CapabilityLinkType(r["link_type"]),
                confidence=float(r["confidence"]),
                is_auto_linked=bool(r["is_auto_linked"]),
                evidence=_json_list(r["evidence"]),
                linked_by=r["linked_by"],
                linked_at=str(r["linked_at"]),
                created_at=r["link_created_at"],
                updated_at=r["link_updated_at"],
            )
            result.append((symbol_from_row(r), link))
        return result

    # -- health -------------------------------------------------------------

    def upsert_health(self, health: CapabilityHealth) -> CapabilityHealth:
        """Insert the snapshot, or overwrite the row for the same day."""
        values = [_value(getattr(health, c)) for c in _HEALTH_COLUMNS]
        updates = ", ".join(f"{c} = excluded.{c}" for c in _HEALTH_COLUMNS)
        self.conn.execute(
            f"INSERT INTO capability_health (capability_id, repository_id, date, "
            f"{', '.join(_HEALTH_COLUMNS)}) "
            f"VALUES (?, ?, ?, {', '.join('?' for _ in _HEALTH_COLUMNS)}) "
            f"ON CONFLICT(capability_id, repository_id, date) DO UPDATE SET {updates}",
            [health.capability_id, health.repository_id, health.date.isoformat(), *values],
        )
        row = self.conn.execute(
            "SELECT * FROM capability_health WHERE capability_id = ? AND repository_id = ? AND date = ?",
            (health.capability_id, health.repository_id, health.date.isoformat()),
        ).fetchone()
        return health_from_row(row)

    def previous_health(self, capability_id: str, repository_id: str, before: date) -> CapabilityHealth | None:
        """Most recent snapshot strictly before *before*."""
        row = self.conn.execute(
            "SELECT * FROM capability_health "
            "WHERE capability_id = ? AND repository_id = ? AND date < ? "
            "ORDER BY date DESC LIMIT 1",
            (capability_id, repository_id, before.isoformat()),
        ).fetchone()
        return health_from_row(row) if row else None

    def latest_health(self, capability_id: str, repository_id: str) -> CapabilityHealth | None:
        row = self.conn.execute(
            "SELECT * FROM capability_health WHERE capability_id = ? AND repository_id = ? "
            "ORDER BY date DESC LIMIT 1",
            (capability_id, repository_id),
        ).fetchone()
        return health_from_row(row) if row else None

    def health_history(
        self,
        capability_id: str,
        repository_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = 30,
    ) -> list[CapabilityHealth]:
        """Snapshots newest first, bounded by the optional inclusive date range."""
        where = ["capability_id = ?", "repository_id = ?"]
        params: list = [capability_id, repository_id]
        if start_date is not None:
            where.append("date >= ?")
            params.append(start_date.isoformat())
        if end_date is not None:
            where.append("date <= ?")
            params.append(end_date.isoformat())
        params.append(limit)
        rows = self.conn.execute(
            f"SELECT * FROM capability_health WHERE {' AND '.join(where)} "
            "ORDER BY date DESC LIMIT ?",
            params,
        ).fetchall()
        return [health_from_row(r) for r in rows]

    # -- evolution ----------------------------------------------------------

    def insert_evolution(self, event: CapabilityEvolution) -> CapabilityEvolution:
        values = []
        for c in _EVOLUTION_COLUMNS:
            v = getattr(event, c)
            if isinstance(v, list):
                v = json.dumps(v)
            elif isinstance(v, datetime):
                v = _utc_iso(v)
            values.append(_value(v))
        cur = self.conn.execute(
            f"INSERT INTO capability_evolution ({', '.join(_EVOLUTION_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in _EVOLUTION_COLUMNS)})",
            values,
        )
        row = self.conn.execute(
            "SELECT * FROM capability_evolution WHERE id = ?", (cur.lastrowid,)
        ).fetchone()
        return evolution_from_row(row)

    def list_evolution(self, flt: EvolutionFilter) -> list[CapabilityEvolution]:
        """Events matching *flt*, newest first, with limit/offset paging."""
        where: list[str] = []
        params: list = []
        if flt.capability_id is not None:
            where.append("capability_id = ?")
            params.append(flt.capability_id)
        if flt.repository_id is not None:
            where.append("repository_id = ?")
            params.append(flt.repository_id)
        if flt.event_types:
            where.append(f"event_type IN ({','.join('?' for _ in flt.event_types)})")
            params.extend(_value(t) for t in flt.event_types)
        if flt.change_categories:
            where.append(f"change_category IN ({','.join('?' for _ in flt.change_categories)})")
            params.extend(_value(c) for c in flt.change_categories)
        if flt.min_significance is not None:
            allowed = ChangeSignificance.at_or_above(flt.min_significance)
            where.append(f"significance IN ({','.join('?' for _ in allowed)})")
            params.extend(s.value for s in allowed)
        if flt.since is not None:
            where.append("event_date >= ?")
            params.append(_utc_iso(flt.since))
        if flt.until is not None:
            where.append("event_date <= ?")
            params.append(_utc_iso(flt.until))

        sql = "SELECT * FROM capability_evolution"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY event_date DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([flt.limit, flt.offset])
        return [evolution_from_row(r) for r in self.conn.execute(sql, params).fetchall()]
