"""Depth-bounded call trees over the symbol reference table.

A call tree is rooted at one symbol and expanded along call-like references
(CALL and INSTANTIATION) up to ``max_depth`` levels.  The reference data may
contain arbitrary cycles; the tree stays finite because a symbol is never
re-expanded while it is already on the root-to-node path.  The same symbol can
still show up on several sibling branches, which is why ``totalNodes`` counts
distinct ids rather than tree nodes.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from capgraph.db.store import SymbolStore
from capgraph.exit_codes import SymbolNotFoundError
from capgraph.graph.cache import GraphCache, callgraph_key_prefix
from capgraph.models import (
    CALL_LIKE_REFERENCES,
    FILE_GRAPH_KINDS,
    CachedDependencyGraph,
    CallGraphData,
    CallGraphMetrics,
    CallGraphNode,
    CodeSymbol,
    ExternalCallInfo,
    ReferenceFilter,
    SymbolFilter,
    SymbolReference,
)

log = logging.getLogger(__name__)

DIRECTIONS = ("outgoing", "incoming")


@dataclass
class CallGraphOptions:
    max_depth: int = 3
    include_external: bool = True
    direction: str = "outgoing"
    filter_kinds: list[str] | None = None

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {self.direction!r}")
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")

    def cache_key(self, repository_id: str, root_symbol_id: str) -> str:
        ext = "ext" if self.include_external else "noext"
        key = f"{callgraph_key_prefix(repository_id)}{root_symbol_id}:{self.direction}:{self.max_depth}:{ext}"
        if self.filter_kinds:
            key += ":" + ",".join(sorted(self.filter_kinds))
        return key


def _round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def compute_metrics(root: CallGraphNode) -> CallGraphMetrics:
    """Fan-in/fan-out and coupling over the nodes of a call tree.

    Fan-out is the child count of each tree node.  Fan-in is how many times a
    symbol appears as someone's child.  Coupling is tree edges over the
    ``n * (n - 1)`` possible edges, as a percentage capped at 100.
    """
    nodes = list(root.walk())
    fan_outs = [len(n.children) for n in nodes]

    fan_in: dict[str, int] = {}
    for node in nodes:
        for child in node.children:
            fan_in[child.symbol_id] = fan_in.get(child.symbol_id, 0) + 1
    fan_ins = list(fan_in.values())

    edges = sum(fan_outs)
    possible = len(nodes) * (len(nodes) - 1)
    coupling = int(_round_half_up(edges / possible * 100)) if possible > 0 else 0

    return CallGraphMetrics(
        avg_fan_out=_round_half_up(sum(fan_outs) / len(fan_outs), 2),
        avg_fan_in=_round_half_up(sum(fan_ins) / len(fan_ins), 2) if fan_ins else 0.0,
        max_fan_out=max(fan_outs),
        max_fan_in=max(fan_ins) if fan_ins else 0,
        coupling_score=min(100, coupling),
    )


class _Expansion:
    """State for one tree build: memoised lookups plus collected externals."""

    def __init__(self, store: SymbolStore, repository_id: str, options: CallGraphOptions):
        self.store = store
        self.repository_id = repository_id
        self.options = options
        self.externals: dict[tuple[str, str], ExternalCallInfo] = {}
        self._symbols: dict[str, CodeSymbol | None] = {}
        self._refs: dict[str, list[SymbolReference]] = {}

    def symbol(self, symbol_id: str) -> CodeSymbol | None:
        if symbol_id not in self._symbols:
            sym = self.store.get_symbol(symbol_id)
            if sym is not None and (sym.is_deleted or sym.repository_id != self.repository_id):
                sym = None
            self._symbols[symbol_id] = sym
        return self._symbols[symbol_id]

    def references(self, symbol_id: str) -> list[SymbolReference]:
        if symbol_id not in self._refs:
            flt = ReferenceFilter(
                repository_id=self.repository_id,
                reference_types=list(CALL_LIKE_REFERENCES),
            )
            if self.options.direction == "incoming":
                flt.target_symbol_id = symbol_id
            else:
                flt.source_symbol_id = symbol_id
            self._refs[symbol_id] = self.store.list_references(flt)
        return self._refs[symbol_id]

    def _neighbor(self, ref: SymbolReference) -> str | None:
        if self.options.direction == "incoming":
            return ref.source_symbol_id
        return ref.target_symbol_id

    def expand(self, symbol: CodeSymbol, depth: int, path: set[str]) -> CallGraphNode:
        refs = self.references(symbol.id)
        node = CallGraphNode(
            symbol_id=symbol.id,
            name=symbol.name,
            kind=symbol.kind,
            file_path=symbol.file_path,
            file_id=symbol.file_id,
            depth=depth,
            complexity=symbol.cyclomatic_complexity,
            call_count=len(refs),
        )
        if depth >= self.options.max_depth:
            return node

        path.add(symbol.id)
        seen_children: set[str] = set()
        for ref in refs:
            if ref.is_external and self.options.direction == "outgoing":
                if self.options.include_external:
                    pkg = ref.external_package or "unknown"
                    name = ref.target_name or "unknown"
                    self.externals.setdefault((pkg, name), ExternalCallInfo(package=pkg, symbol=name))
                continue

            neighbor_id = self._neighbor(ref)
            if neighbor_id is None or neighbor_id in path or neighbor_id in seen_children:
                continue
            neighbor = self.symbol(neighbor_id)
            if neighbor is None:
                continue
            if self.options.filter_kinds and neighbor.kind not in self.options.filter_kinds:
                continue
            seen_children.add(neighbor_id)
            node.children.append(self.expand(neighbor, depth + 1, path))
        path.discard(symbol.id)
        return node


class CallGraphBuilder:
    """Build, cache and persist call trees for one symbol store."""

    def __init__(self, store: SymbolStore, cache: GraphCache, ttl: int | None = None) -> None:
        self.store = store
        self.cache = cache
        self.ttl = ttl

    def build_call_graph(
        self,
        repository_id: str,
        root_symbol_id: str,
        options: CallGraphOptions | None = None,
    ) -> CallGraphData:
        """Return the call tree rooted at *root_symbol_id*.

        A cache hit is returned as-is.  Raises :class:`SymbolNotFoundError`
        when the root is missing, soft-deleted, or belongs to another
        repository.  Missing symbols further down are simply not expanded.
        """
        options = options or CallGraphOptions()
        key = options.cache_key(repository_id, root_symbol_id)
        if self.store.tenant_id is not None:
            key += f":tenant={self.store.tenant_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        expansion = _Expansion(self.store, repository_id, options)
        root = expansion.symbol(root_symbol_id)
        if root is None:
            raise SymbolNotFoundError(root_symbol_id)

        root_node = expansion.expand(root, 0, set())
        nodes = list(root_node.walk())
        data = CallGraphData(
            root=root_node,
            total_nodes=len({n.symbol_id for n in nodes}),
            max_depth=max(n.depth for n in nodes),
            external_calls=list(expansion.externals.values()),
            metrics=compute_metrics(root_node),
        )

        self.cache.put(key, data, ttl=self.ttl)
        log.info(
            "Built %s call graph for %s: %d nodes, depth %d",
            options.direction, root_symbol_id, data.total_nodes, data.max_depth,
        )
        return data

    def build_file_call_graph(
        self,
        repository_id: str,
        file_id: str,
        options: CallGraphOptions | None = None,
    ) -> list[CallGraphData]:
        """One call tree per top-level function, class or method in *file_id*."""
        symbols = self.store.list_symbols(
            SymbolFilter(
                repository_id=repository_id,
                file_id=file_id,
                kinds=list(FILE_GRAPH_KINDS),
                top_level_only=True,
            )
        )
        return [self.build_call_graph(repository_id, s.id, options) for s in symbols]

    # -- persisted snapshots ------------------------------------------------

    def cache_call_graph(
        self,
        repository_id: str,
        root_symbol_id: str,
        data: CallGraphData,
        commit_sha: str | None = None,
    ) -> None:
        self.cache.save_snapshot(repository_id, root_symbol_id, data, commit_sha=commit_sha)
        log.info("Stored call graph snapshot for %s @ %s", root_symbol_id, commit_sha or "-")

    def get_cached_call_graph(self, repository_id: str, root_symbol_id: str) -> CachedDependencyGraph | None:
        return self.cache.get_snapshot(repository_id, root_symbol_id)

    def invalidate_graphs(self, repository_id: str) -> tuple[int, int]:
        """Mark every snapshot of the repository stale and drop its cache keys.

        Returns ``(snapshots_marked, keys_dropped)``.
        """
        marked = self.cache.mark_all_stale(repository_id)
        dropped = self.cache.invalidate(callgraph_key_prefix(repository_id))
        log.info("Invalidated %d snapshots and %d cached graphs for %s", marked, dropped, repository_id)
        return marked, dropped
