"""Caller/callee, edge, path, cycle and hotspot queries over one repository.

Every query builds a fresh reference graph from the store; nothing here is
cached.  Soft-deleted symbols never appear in results.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import networkx as nx

from capgraph.db.store import SymbolStore
from capgraph.exit_codes import SymbolNotFoundError
from capgraph.graph.builder import build_reference_graph
from capgraph.graph.cycles import find_call_cycles
from capgraph.models import (
    CALL_LIKE_REFERENCES,
    CallEdge,
    ReferenceFilter,
    ReferenceType,
    SymbolNode,
)

log = logging.getLogger(__name__)


@dataclass
class Hotspot:
    symbol: SymbolNode
    fan_in: int
    fan_out: int

    @property
    def score(self) -> int:
        return self.fan_in + self.fan_out

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol.to_dict(),
            "fanIn": self.fan_in,
            "fanOut": self.fan_out,
            "score": self.score,
        }


def _symbol_node(G: nx.DiGraph, sid: str, depth: int = 0) -> SymbolNode:
    data = G.nodes[sid]
    return SymbolNode(
        id=sid,
        name=data["name"],
        kind=data["kind"],
        file_path=data["file_path"],
        file_id=data["file_id"],
        complexity=data["complexity"],
        depth=depth,
    )


def bfs_depths(G: nx.DiGraph, start: str, max_depth: int, direction: str = "forward") -> dict[str, int]:
    """Map every node reachable from *start* within *max_depth* hops to its depth.

    ``"forward"`` follows outgoing edges (callees), ``"backward"`` follows
    incoming edges (callers).  *start* itself is included at depth 0.
    """
    visited = {start: 0}
    queue = deque([(start, 0)])
    while queue:
        node, depth = queue.popleft()
        if depth >= max_depth:
            continue
        neighbors = G.successors(node) if direction == "forward" else G.predecessors(node)
        for nb in neighbors:
            if nb not in visited:
                visited[nb] = depth + 1
                queue.append((nb, depth + 1))
    return visited


class GraphQueryEngine:
    def __init__(self, store: SymbolStore) -> None:
        self.store = store

    def _reachable(self, repository_id: str, symbol_id: str, depth: int, direction: str) -> list[SymbolNode]:
        G = build_reference_graph(self.store, repository_id, CALL_LIKE_REFERENCES)
        if symbol_id not in G:
            raise SymbolNotFoundError(symbol_id)
        depths = bfs_depths(G, symbol_id, depth, direction)
        del depths[symbol_id]
        ordered = sorted(depths.items(), key=lambda item: (item[1], item[0]))
        return [_symbol_node(G, sid, d) for sid, d in ordered]

    def get_callers(self, repository_id: str, symbol_id: str, depth: int = 1) -> list[SymbolNode]:
        """Symbols that call *symbol_id*, transitively up to *depth* hops."""
        return self._reachable(repository_id, symbol_id, depth, "backward")

    def get_callees(self, repository_id: str, symbol_id: str, depth: int = 1) -> list[SymbolNode]:
        """Symbols called by *symbol_id*, transitively up to *depth* hops."""
        return self._reachable(repository_id, symbol_id, depth, "forward")

    def get_call_edges(
        self,
        repository_id: str,
        source_file_id: str | None = None,
        target_file_id: str | None = None,
        limit: int = 1000,
    ) -> list[CallEdge]:
        """Aggregate resolved CALL references into distinct source/target pairs.

        *limit* bounds the number of reference rows read, not the number of
        edges returned.  ``callCount`` is the number of rows folded into a pair.
        """
        refs = self.store.list_references(
            ReferenceFilter(
                repository_id=repository_id,
                source_file_id=source_file_id,
                target_file_id=target_file_id,
                reference_types=[ReferenceType.CALL.value],
                resolved_only=True,
                limit=limit,
            )
        )
        symbol_ids = {r.source_symbol_id for r in refs} | {r.target_symbol_id for r in refs}
        symbols = self.store.get_symbols(symbol_ids)

        edges: dict[tuple[str, str], CallEdge] = {}
        for ref in refs:
            pair = (ref.source_symbol_id, ref.target_symbol_id)
            if pair in edges:
                edges[pair].call_count += 1
                continue
            src = symbols.get(ref.source_symbol_id)
            tgt = symbols.get(ref.target_symbol_id)
            if src is None or tgt is None:
                continue
            edges[pair] = CallEdge(
                source_symbol_id=src.id,
                target_symbol_id=tgt.id,
                source_name=src.name,
                target_name=tgt.name,
                source_file=src.file_path,
                target_file=tgt.file_path,
                reference_type=ref.reference_type,
            )
        return list(edges.values())

    def find_path(
        self,
        repository_id: str,
        from_symbol_id: str,
        to_symbol_id: str,
        max_depth: int | None = None,
    ) -> list[SymbolNode] | None:
        """Shortest directed path from one symbol to another, or None.

        Follows resolved references of every type.  When *max_depth* is given,
        paths with more hops than that count as unreachable.
        """
        G = build_reference_graph(self.store, repository_id)
        try:
            path = nx.shortest_path(G, from_symbol_id, to_symbol_id)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None
        if max_depth is not None and len(path) - 1 > max_depth:
            return None
        return [_symbol_node(G, sid, i) for i, sid in enumerate(path)]

    def detect_cycles(self, repository_id: str) -> list[list[SymbolNode]]:
        """Every call cycle found by a depth-first walk of the repository."""
        G = build_reference_graph(self.store, repository_id, CALL_LIKE_REFERENCES)
        cycles = find_call_cycles(G)
        log.info("Found %d call cycles in %s", len(cycles), repository_id)
        return [[_symbol_node(G, sid, i) for i, sid in enumerate(cycle)] for cycle in cycles]

    def get_hotspots(self, repository_id: str, limit: int = 10) -> list[Hotspot]:
        """Symbols ranked by fan-in plus fan-out, ties broken by id."""
        G = build_reference_graph(self.store, repository_id)
        hotspots = []
        for sid in G:
            fan_in, fan_out = G.in_degree(sid), G.out_degree(sid)
            if fan_in + fan_out == 0:
                continue
            try:
                hotspots.append(Hotspot(symbol=_symbol_node(G, sid), fan_in=fan_in, fan_out=fan_out))
            except KeyError:
                log.warning("Skipping hotspot %s: incomplete symbol record", sid)
        hotspots.sort(key=lambda h: (-h.score, h.symbol.id))
        return hotspots[:limit]
