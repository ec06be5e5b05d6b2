"""Build NetworkX graphs from the capgraph symbol index."""

from __future__ import annotations

import networkx as nx

from capgraph.db.store import SymbolStore
from capgraph.models import ReferenceFilter, SymbolFilter


def build_reference_graph(
    store: SymbolStore,
    repository_id: str,
    reference_types=None,
) -> nx.DiGraph:
    """Build a directed graph from the resolved references of one repository.

    Nodes are the repository's non-deleted symbol IDs with attributes: name,
    kind, file_path, file_id, complexity.  Parallel reference rows between the
    same pair collapse into one edge carrying ``call_count`` (the number of
    rows) and ``reference_types`` (sorted distinct types).

    References whose target is unresolved, deleted, or outside the repository
    are dropped.  *reference_types* restricts which rows are considered.
    """
    G = nx.DiGraph()

    symbols = store.list_symbols(SymbolFilter(repository_id=repository_id))
    G.add_nodes_from(
        (
            s.id,
            {
                "name": s.name,
                "kind": s.kind,
                "file_path": s.file_path,
                "file_id": s.file_id,
                "complexity": s.cyclomatic_complexity,
            },
        )
        for s in symbols
    )

    refs = store.list_references(
        ReferenceFilter(
            repository_id=repository_id,
            reference_types=list(reference_types) if reference_types else None,
            resolved_only=True,
        )
    )
    for ref in refs:
        src, tgt = ref.source_symbol_id, ref.target_symbol_id
        if src not in G or tgt not in G:
            continue
        if G.has_edge(src, tgt):
            data = G[src][tgt]
            data["call_count"] += 1
            if ref.reference_type not in data["reference_types"]:
                data["reference_types"] = sorted(data["reference_types"] + [ref.reference_type])
        else:
            G.add_edge(src, tgt, call_count=1, reference_types=[ref.reference_type])

    return G
