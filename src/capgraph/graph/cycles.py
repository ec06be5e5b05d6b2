"""Call-cycle detection for the symbol reference graph."""

from __future__ import annotations

import networkx as nx

from capgraph.db.store import SymbolStore


def find_call_cycles(G: nx.DiGraph) -> list[list[str]]:
    """Return every cycle closed by a back edge of a depth-first walk.

    Each cycle is the slice of the DFS stack from the revisited symbol to the
    current one, in call order.  Self-loops come back as one-element cycles.
    Start nodes and successors are visited in sorted order so results are
    deterministic.  The walk keeps its own stack of iterators instead of
    recursing, so very deep call chains are fine.
    """
    visited: set = set()
    cycles: list[list[str]] = []

    for start in sorted(G):
        if start in visited:
            continue
        visited.add(start)
        path = [start]
        on_stack = {start}
        pending = [iter(sorted(G.successors(start)))]

        while pending:
            try:
                nxt = next(pending[-1])
            except StopIteration:
                pending.pop()
                on_stack.discard(path.pop())
                continue
            if nxt in on_stack:
                cycles.append(path[path.index(nxt):])
            elif nxt not in visited:
                visited.add(nxt)
                path.append(nxt)
                on_stack.add(nxt)
                pending.append(iter(sorted(G.successors(nxt))))

    return cycles


def format_cycles(cycles: list[list[str]], store: SymbolStore) -> list[dict]:
    """Annotate each cycle with symbol names and file paths.

    Returns a list of dicts::

        [
            {
                "symbols": [{"id": "s1", "name": "foo", "kind": "FUNCTION", "file_path": "..."}],
                "files": ["src/a.py", "src/b.py"],
                "size": 3,
            },
            ...
        ]
    """
    if not cycles:
        return []

    lookup = store.get_symbols({sid for cycle in cycles for sid in cycle})

    result = []
    for cycle in cycles:
        symbols = [
            {"id": sid, "name": lookup[sid].name, "kind": lookup[sid].kind, "file_path": lookup[sid].file_path}
            for sid in cycle
            if sid in lookup
        ]
        files = sorted({s["file_path"] for s in symbols})
        result.append({"symbols": symbols, "files": files, "size": len(cycle)})
    return result
