"""Read-only access to the extracted symbol/reference records.

``SymbolStore`` is the only place the graph and health layers read index rows
from.  Every row is converted once into a :mod:`capgraph.models` record by the
``*_from_row`` mappers below, so nothing downstream touches ``sqlite3.Row``.
"""

from __future__ import annotations

import sqlite3

from capgraph.db.connection import batched_in
from capgraph.models import (
    Capability,
    CodeFile,
    CodeSymbol,
    ReferenceFilter,
    SymbolFilter,
    SymbolReference,
)

_SYMBOL_SELECT = (
    "SELECT s.id, s.repository_id, s.file_id, s.name, s.kind, s.parent_id, "
    "s.signature, s.documentation, s.line_start, s.line_end, "
    "s.cyclomatic_complexity, s.line_count, s.visibility, s.is_exported, "
    "s.deleted_at, f.path AS file_path "
    "FROM symbols s JOIN files f ON s.file_id = f.id "
    "JOIN repositories r ON s.repository_id = r.id"
)

_REFERENCE_SELECT = (
    "SELECT sr.id, sr.repository_id, sr.source_symbol_id, sr.target_symbol_id, "
    "sr.source_file_id, sr.reference_type, sr.is_external, sr.external_package, "
    "sr.target_name, sr.line "
    "FROM symbol_references sr JOIN repositories r ON sr.repository_id = r.id"
)


def _like_pattern(text: str) -> str:
    escaped = text.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def symbol_from_row(row: sqlite3.Row) -> CodeSymbol:
    return CodeSymbol(
        id=str(row["id"]),
        repository_id=str(row["repository_id"]),
        file_id=str(row["file_id"]),
        name=str(row["name"]),
        kind=str(row["kind"]),
        file_path=str(row["file_path"] or ""),
        parent_id=row["parent_id"],
        signature=row["signature"],
        documentation=row["documentation"],
        line_start=row["line_start"],
        line_end=row["line_end"],
        cyclomatic_complexity=int(row["cyclomatic_complexity"] or 0),
        line_count=int(row["line_count"] or 0),
        visibility=str(row["visibility"] or "PUBLIC"),
        is_exported=bool(row["is_exported"]),
        deleted_at=row["deleted_at"],
    )


def reference_from_row(row: sqlite3.Row) -> SymbolReference:
    return SymbolReference(
        id=int(row["id"]),
        repository_id=str(row["repository_id"]),
        source_symbol_id=str(row["source_symbol_id"]),
        target_symbol_id=row["target_symbol_id"],
        reference_type=str(row["reference_type"]),
        source_file_id=row["source_file_id"],
        is_external=bool(row["is_external"]),
        external_package=row["external_package"],
        target_name=row["target_name"],
        line=row["line"],
    )


def file_from_row(row: sqlite3.Row) -> CodeFile:
    return CodeFile(
        id=str(row["id"]),
        repository_id=str(row["repository_id"]),
        path=str(row["path"]),
        language=row["language"],
        line_count=int(row["line_count"] or 0),
    )


def capability_from_row(row: sqlite3.Row) -> Capability:
    return Capability(
        id=str(row["id"]),
        name=str(row["name"]),
        tenant_id=row["tenant_id"],
        description=row["description"],
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SymbolStore:
    """Read interface over symbols, references, files and capabilities.

    When *tenant_id* is given every query is restricted to repositories and
    capabilities owned by that tenant.
    """

    def __init__(self, conn: sqlite3.Connection, tenant_id: str | None = None) -> None:
        self.conn = conn
        self.tenant_id = tenant_id

    def _tenant_clause(self, alias: str = "r") -> tuple[list[str], list]:
        if self.tenant_id is None:
            return [], []
        return [f"{alias}.tenant_id = ?"], [self.tenant_id]

    # -- symbols ------------------------------------------------------------

    def get_symbol(self, symbol_id: str) -> CodeSymbol | None:
        where, params = self._tenant_clause()
        where.insert(0, "s.id = ?")
        params.insert(0, symbol_id)
        row = self.conn.execute(
            f"{_SYMBOL_SELECT} WHERE {' AND '.join(where)}", params
        ).fetchone()
        return symbol_from_row(row) if row else None

    def get_symbols(self, symbol_ids) -> dict[str, CodeSymbol]:
        """Fetch many symbols at once, keyed by id.  Missing ids are absent."""
        where, params = self._tenant_clause()
        sql = f"{_SYMBOL_SELECT} WHERE s.id IN ({{ph}})"
        if where:
            sql += " AND " + " AND ".join(where)
        rows = batched_in(self.conn, sql, list(symbol_ids), post=params)
        return {str(r["id"]): symbol_from_row(r) for r in rows}

    def list_symbols(self, flt: SymbolFilter | None = None) -> list[CodeSymbol]:
        flt = flt or SymbolFilter()
        where, params = self._tenant_clause()
        if flt.repository_id is not None:
            where.append("s.repository_id = ?")
            params.append(flt.repository_id)
        if flt.file_id is not None:
            where.append("s.file_id = ?")
            params.append(flt.file_id)
        if flt.kinds:
            where.append(f"s.kind IN ({','.join('?' for _ in flt.kinds)})")
            params.extend(flt.kinds)
        if flt.top_level_only:
            where.append("s.parent_id IS NULL")
        if not flt.include_deleted:
            where.append("s.deleted_at IS NULL")
        if flt.name_or_doc_contains:
            pattern = _like_pattern(flt.name_or_doc_contains)
            where.append(
                "(LOWER(s.name) LIKE ? ESCAPE '\\' "
                "OR LOWER(COALESCE(s.documentation, '')) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern])

        sql = _SYMBOL_SELECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY s.id"
        rows = self.conn.execute(sql, params).fetchall()

        symbols = [symbol_from_row(r) for r in rows]
        if flt.ids is not None:
            wanted = set(flt.ids)
            symbols = [s for s in symbols if s.id in wanted]
        if flt.exclude_ids:
            excluded = set(flt.exclude_ids)
            symbols = [s for s in symbols if s.id not in excluded]
        if flt.limit is not None:
            symbols = symbols[:flt.limit]
        return symbols

    # -- references ---------------------------------------------------------

    def list_references(self, flt: ReferenceFilter | None = None) -> list[SymbolReference]:
        flt = flt or ReferenceFilter()
        where, params = self._tenant_clause()
        if flt.repository_id is not None:
            where.append("sr.repository_id = ?")
            params.append(flt.repository_id)
        if flt.source_symbol_id is not None:
            where.append("sr.source_symbol_id = ?")
            params.append(flt.source_symbol_id)
        if flt.target_symbol_id is not None:
            where.append("sr.target_symbol_id = ?")
            params.append(flt.target_symbol_id)
        if flt.source_file_id is not None:
            where.append("sr.source_file_id = ?")
            params.append(flt.source_file_id)
        if flt.target_file_id is not None:
            where.append(
                "sr.target_symbol_id IN (SELECT id FROM symbols WHERE file_id = ?)"
            )
            params.append(flt.target_file_id)
        if flt.reference_types:
            where.append(
                f"sr.reference_type IN ({','.join('?' for _ in flt.reference_types)})"
            )
            params.extend(flt.reference_types)
        if flt.resolved_only:
            where.append("sr.target_symbol_id IS NOT NULL")

        sql = _REFERENCE_SELECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY sr.id"
        if flt.limit is not None:
            sql += " LIMIT ?"
            params.append(flt.limit)
        return [reference_from_row(r) for r in self.conn.execute(sql, params).fetchall()]

    # -- files & capabilities ------------------------------------------------

    def get_file(self, file_id: str) -> CodeFile | None:
        where, params = self._tenant_clause()
        where.insert(0, "f.id = ?")
        params.insert(0, file_id)
        row = self.conn.execute(
            "SELECT f.id, f.repository_id, f.path, f.language, f.line_count "
            "FROM files f JOIN repositories r ON f.repository_id = r.id "
            f"WHERE {' AND '.join(where)}",
            params,
        ).fetchone()
        return file_from_row(row) if row else None

    def get_capability(self, capability_id: str) -> Capability | None:
        where, params = self._tenant_clause("c")
        where.insert(0, "c.id = ?")
        params.insert(0, capability_id)
        row = self.conn.execute(
            "SELECT c.id, c.tenant_id, c.name, c.description FROM capabilities c "
            f"WHERE {' AND '.join(where)}",
            params,
        ).fetchone()
        return capability_from_row(row) if row else None

    def list_capabilities(self) -> list[Capability]:
        where, params = self._tenant_clause("c")
        sql = "SELECT c.id, c.tenant_id, c.name, c.description FROM capabilities c"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY c.id"
        return [capability_from_row(r) for r in self.conn.execute(sql, params).fetchall()]
