"""Tests for caller/callee, edge, path, cycle and hotspot queries."""

from __future__ import annotations

import pytest

from conftest import REPO, call, external, seed, sym
from capgraph.exit_codes import SymbolNotFoundError
from capgraph.graph.builder import build_reference_graph
from capgraph.graph.cycles import find_call_cycles, format_cycles


def _ids(nodes):
    return [n.id for n in nodes]


# ---------------------------------------------------------------------------
# Reference graph
# ---------------------------------------------------------------------------


class TestReferenceGraph:
    def test_parallel_rows_collapse(self, conn, store):
        seed(
            conn,
            [sym("a"), sym("b")],
            [call("a", "b"), call("a", "b"), call("a", "b", "TYPE_REFERENCE")],
        )
        G = build_reference_graph(store, REPO)
        assert G["a"]["b"]["call_count"] == 3
        assert G["a"]["b"]["reference_types"] == ["CALL", "TYPE_REFERENCE"]

    def test_type_filter(self, conn, store):
        seed(conn, [sym("a"), sym("b")], [call("a", "b", "IMPORT")])
        G = build_reference_graph(store, REPO, ["CALL"])
        assert G.number_of_edges() == 0
        assert set(G) == {"a", "b"}

    def test_deleted_symbols_and_externals_dropped(self, conn, store):
        seed(
            conn,
            [sym("a"), sym("b", deleted_at="2026-01-01T00:00:00+00:00")],
            [call("a", "b"), external("a", "os", "walk")],
        )
        G = build_reference_graph(store, REPO)
        assert set(G) == {"a"}
        assert G.number_of_edges() == 0


# ---------------------------------------------------------------------------
# Callers / callees
# ---------------------------------------------------------------------------


class TestCallersCallees:
    @pytest.fixture(autouse=True)
    def _data(self, conn):
        seed(
            conn,
            [sym("main"), sym("cli"), sym("helper"), sym("test_main"), sym("Model", kind="CLASS")],
            [
                call("main", "helper"),
                call("cli", "helper"),
                call("test_main", "main"),
                call("helper", "Model", "INSTANTIATION"),
                call("Model", "helper", "TYPE_REFERENCE"),
            ],
        )

    def test_direct_callers(self, engine):
        nodes = engine.get_callers(REPO, "helper")
        assert _ids(nodes) == ["cli", "main"]
        assert {n.depth for n in nodes} == {1}

    def test_transitive_callers(self, engine):
        nodes = engine.get_callers(REPO, "helper", depth=2)
        assert [(n.id, n.depth) for n in nodes] == [("cli", 1), ("main", 1), ("test_main", 2)]

    def test_callees_follow_instantiation(self, engine):
        assert _ids(engine.get_callees(REPO, "helper")) == ["Model"]

    def test_type_reference_is_not_a_call(self, engine):
        assert engine.get_callees(REPO, "Model") == []

    def test_no_callers(self, engine):
        assert engine.get_callers(REPO, "test_main", depth=3) == []

    def test_unknown_symbol(self, engine):
        with pytest.raises(SymbolNotFoundError):
            engine.get_callers(REPO, "nope")

    def test_node_fields(self, engine):
        node = engine.get_callees(REPO, "main")[0]
        assert node.to_dict() == {
            "id": "helper",
            "name": "helper",
            "kind": "FUNCTION",
            "filePath": "src/app.py",
            "fileId": "f1",
            "complexity": 1,
            "depth": 1,
        }


# ---------------------------------------------------------------------------
# Call edges
# ---------------------------------------------------------------------------


class TestCallEdges:
    @pytest.fixture(autouse=True)
    def _data(self, conn):
        seed(
            conn,
            [sym("main"), sym("helper", file_id="f2"), sym("Widget", kind="CLASS", file_id="f2")],
            [
                call("main", "helper", source_file_id="f1"),
                call("main", "helper", source_file_id="f1"),
                call("helper", "main", source_file_id="f2"),
                call("main", "Widget", "INSTANTIATION", source_file_id="f1"),
                external("main", "os", "walk"),
            ],
        )

    def test_aggregates_pairs(self, engine):
        edges = engine.get_call_edges(REPO)
        by_pair = {(e.source_symbol_id, e.target_symbol_id): e for e in edges}
        assert set(by_pair) == {("main", "helper"), ("helper", "main")}
        edge = by_pair[("main", "helper")]
        assert edge.call_count == 2
        assert edge.source_file == "src/app.py"
        assert edge.target_file == "src/util.py"
        assert edge.reference_type == "CALL"

    def test_source_file_filter(self, engine):
        edges = engine.get_call_edges(REPO, source_file_id="f2")
        assert [(e.source_name, e.target_name) for e in edges] == [("helper", "main")]

    def test_target_file_filter(self, engine):
        edges = engine.get_call_edges(REPO, target_file_id="f2")
        assert [(e.source_name, e.target_name) for e in edges] == [("main", "helper")]

    def test_limit_bounds_rows(self, engine):
        edges = engine.get_call_edges(REPO, limit=1)
        assert len(edges) == 1
        assert edges[0].call_count == 1


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class TestFindPath:
    @pytest.fixture(autouse=True)
    def _data(self, conn):
        seed(
            conn,
            [sym("a"), sym("b"), sym("c"), sym("d"), sym("island")],
            [call("a", "b"), call("b", "c"), call("a", "d", "IMPORT"), call("d", "c", "TYPE_REFERENCE")],
        )

    def test_shortest_path_over_any_reference(self, engine):
        path = engine.find_path(REPO, "a", "c")
        assert len(path) == 3
        assert path[0].id == "a" and path[-1].id == "c"
        assert [n.depth for n in path] == [0, 1, 2]

    def test_direct(self, engine):
        assert _ids(engine.find_path(REPO, "b", "c")) == ["b", "c"]

    def test_same_symbol(self, engine):
        assert _ids(engine.find_path(REPO, "a", "a")) == ["a"]

    def test_unreachable(self, engine):
        assert engine.find_path(REPO, "c", "a") is None
        assert engine.find_path(REPO, "a", "island") is None

    def test_unknown_symbol(self, engine):
        assert engine.find_path(REPO, "a", "nope") is None

    def test_max_depth(self, engine):
        assert engine.find_path(REPO, "a", "c", max_depth=1) is None
        assert engine.find_path(REPO, "a", "c", max_depth=2) is not None


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    def test_three_cycle(self, conn, engine):
        seed(conn, [sym("A"), sym("B"), sym("C"), sym("D")],
             [call("A", "B"), call("B", "C"), call("C", "A"), call("C", "D")])
        cycles = engine.detect_cycles(REPO)
        assert len(cycles) == 1
        assert set(_ids(cycles[0])) == {"A", "B", "C"}

    def test_self_loop(self, conn, engine):
        seed(conn, [sym("rec")], [call("rec", "rec")])
        cycles = engine.detect_cycles(REPO)
        assert [_ids(c) for c in cycles] == [["rec"]]

    def test_acyclic(self, conn, engine):
        seed(conn, [sym("a"), sym("b")], [call("a", "b")])
        assert engine.detect_cycles(REPO) == []

    def test_deleted_symbol_breaks_cycle(self, conn, engine):
        seed(conn, [sym("a"), sym("b", deleted_at="2026-01-01T00:00:00+00:00")],
             [call("a", "b"), call("b", "a")])
        assert engine.detect_cycles(REPO) == []

    def test_deep_chain_does_not_recurse(self, conn, engine):
        n = 3000
        ids = [f"n{i:05d}" for i in range(n)]
        refs = [call(ids[i], ids[i + 1]) for i in range(n - 1)]
        refs.append(call(ids[-1], ids[0]))
        seed(conn, [sym(i) for i in ids], refs)
        cycles = engine.detect_cycles(REPO)
        assert len(cycles) == 1
        assert len(cycles[0]) == n

    def test_format_cycles(self, conn, store):
        seed(conn, [sym("a"), sym("b", file_id="f2")], [call("a", "b"), call("b", "a")])
        G = build_reference_graph(store, REPO)
        formatted = format_cycles(find_call_cycles(G), store)
        assert formatted == [{
            "symbols": [
                {"id": "a", "name": "a", "kind": "FUNCTION", "file_path": "src/app.py"},
                {"id": "b", "name": "b", "kind": "FUNCTION", "file_path": "src/util.py"},
            ],
            "files": ["src/app.py", "src/util.py"],
            "size": 2,
        }]

    def test_format_empty(self, store):
        assert format_cycles([], store) == []


# ---------------------------------------------------------------------------
# Hotspots
# ---------------------------------------------------------------------------


class TestHotspots:
    @pytest.fixture(autouse=True)
    def _data(self, conn):
        seed(
            conn,
            [sym("hub"), sym("a"), sym("b"), sym("c"), sym("d"), sym("lonely")],
            [call("a", "hub"), call("b", "hub"), call("hub", "c"), call("hub", "d", "IMPORT")],
        )

    def test_ranking(self, engine):
        hotspots = engine.get_hotspots(REPO)
        assert hotspots[0].symbol.id == "hub"
        assert (hotspots[0].fan_in, hotspots[0].fan_out, hotspots[0].score) == (2, 2, 4)
        # ties on score are ordered by id
        assert [h.symbol.id for h in hotspots[1:]] == ["a", "b", "c", "d"]

    def test_isolated_symbols_excluded(self, engine):
        assert "lonely" not in [h.symbol.id for h in engine.get_hotspots(REPO)]

    def test_limit(self, engine):
        assert len(engine.get_hotspots(REPO, limit=2)) == 2

    def test_to_dict(self, engine):
        out = engine.get_hotspots(REPO, limit=1)[0].to_dict()
        assert out["fanIn"] == 2 and out["fanOut"] == 2 and out["score"] == 4
        assert out["symbol"]["id"] == "hub"
