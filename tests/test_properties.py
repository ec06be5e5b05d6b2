"""Property-based tests for call trees, path search, cycles and scoring.

Tests invariants rather than specific input/output pairs.  Each example builds
its own in-memory index, so no function-scoped fixtures are used here.
"""

from __future__ import annotations

import networkx as nx
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import REPO, call, make_db, seed, sym
from capgraph.capability.evolution import determine_significance
from capgraph.capability.health import HealthScorer
from capgraph.capability.models import ChangeSignificance, HealthStatus
from capgraph.config import HealthScoreConfig
from capgraph.db.capability_store import CapabilityStore
from capgraph.db.store import SymbolStore
from capgraph.graph.cache import GraphCache
from capgraph.graph.callgraph import CallGraphBuilder, CallGraphOptions
from capgraph.graph.queries import GraphQueryEngine

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@st.composite
def call_graphs(draw, max_nodes=8):
    """A node count plus a list of (src, tgt) call pairs, self-calls and repeats allowed."""
    n = draw(st.integers(min_value=1, max_value=max_nodes))
    node = st.integers(min_value=0, max_value=n - 1)
    edges = draw(st.lists(st.tuples(node, node), max_size=n * 3))
    return n, edges


def _name(i):
    return f"s{i}"


def _index(n, edges):
    conn = make_db()
    seed(conn, [sym(_name(i)) for i in range(n)], [call(_name(a), _name(b)) for a, b in edges])
    return conn


def _nx(n, edges):
    G = nx.DiGraph()
    G.add_nodes_from(_name(i) for i in range(n))
    G.add_edges_from((_name(a), _name(b)) for a, b in edges)
    return G


scores = st.floats(min_value=0, max_value=100, allow_nan=False)


# ---------------------------------------------------------------------------
# Call trees
# ---------------------------------------------------------------------------


class TestCallTreeProperties:
    @given(graph=call_graphs(), depth=st.integers(min_value=0, max_value=5))
    @settings(max_examples=60, deadline=None)
    def test_tree_covers_exactly_the_depth_ball(self, graph, depth):
        n, edges = graph
        conn = _index(n, edges)
        builder = CallGraphBuilder(SymbolStore(conn), GraphCache(conn))
        data = builder.build_call_graph(REPO, "s0", CallGraphOptions(max_depth=depth))

        expected = nx.single_source_shortest_path_length(_nx(n, edges), "s0", cutoff=depth)
        tree_ids = {node.symbol_id for node in data.root.walk()}
        assert tree_ids == set(expected)
        assert data.total_nodes == len(expected)
        assert data.max_depth <= depth

    @given(graph=call_graphs(), depth=st.integers(min_value=1, max_value=6))
    @settings(max_examples=60, deadline=None)
    def test_no_symbol_repeats_on_a_path(self, graph, depth):
        n, edges = graph
        conn = _index(n, edges)
        builder = CallGraphBuilder(SymbolStore(conn), GraphCache(conn))
        root = builder.build_call_graph(REPO, "s0", CallGraphOptions(max_depth=depth)).root

        stack = [(root, (root.symbol_id,))]
        while stack:
            node, path = stack.pop()
            assert len(path) == len(set(path))
            assert node.depth == len(path) - 1
            child_ids = [c.symbol_id for c in node.children]
            assert len(child_ids) == len(set(child_ids))
            stack.extend((c, path + (c.symbol_id,)) for c in node.children)

    @given(graph=call_graphs())
    @settings(max_examples=40, deadline=None)
    def test_coupling_is_a_percentage(self, graph):
        n, edges = graph
        conn = _index(n, edges)
        builder = CallGraphBuilder(SymbolStore(conn), GraphCache(conn))
        metrics = builder.build_call_graph(REPO, "s0").metrics
        assert 0 <= metrics.coupling_score <= 100
        assert metrics.max_fan_out >= metrics.avg_fan_out


# ---------------------------------------------------------------------------
# Paths and cycles
# ---------------------------------------------------------------------------


class TestGraphQueryProperties:
    @given(graph=call_graphs(), data=st.data())
    @settings(max_examples=60, deadline=None)
    def test_path_is_shortest(self, graph, data):
        n, edges = graph
        src = _name(data.draw(st.integers(min_value=0, max_value=n - 1)))
        dst = _name(data.draw(st.integers(min_value=0, max_value=n - 1)))
        engine = GraphQueryEngine(SymbolStore(_index(n, edges)))
        G = _nx(n, edges)

        path = engine.find_path(REPO, src, dst)
        if not nx.has_path(G, src, dst):
            assert path is None
            return
        assert len(path) - 1 == nx.shortest_path_length(G, src, dst)
        for a, b in zip(path, path[1:]):
            assert G.has_edge(a.id, b.id)

    @given(graph=call_graphs())
    @settings(max_examples=60, deadline=None)
    def test_cycles_are_real(self, graph):
        n, edges = graph
        engine = GraphQueryEngine(SymbolStore(_index(n, edges)))
        G = _nx(n, edges)

        cycles = engine.detect_cycles(REPO)
        for cycle in cycles:
            ids = [node.id for node in cycle]
            assert len(ids) == len(set(ids))
            for a, b in zip(ids, ids[1:] + ids[:1]):
                assert G.has_edge(a, b)
        assert bool(cycles) == (not nx.is_directed_acyclic_graph(G))


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class TestScoringProperties:
    @given(
        components=st.tuples(scores, scores, scores, scores),
        weights=st.tuples(*[st.floats(min_value=0, max_value=2, allow_nan=False)] * 4),
    )
    @settings(max_examples=100, deadline=None)
    def test_overall_in_range(self, components, weights):
        config = HealthScoreConfig.from_dict({"weights": dict(
            zip(("complexity", "quality", "stability", "maintainability"), weights)
        )})
        conn = make_db()
        scorer = HealthScorer(SymbolStore(conn), CapabilityStore(conn), config)
        overall = scorer.overall_score(*components)
        assert 0.0 <= overall <= 100.0
        assert scorer.health_status(overall) in set(HealthStatus)

    @given(
        avg=st.floats(min_value=0, max_value=200, allow_nan=False),
        peak=st.floats(min_value=0, max_value=500, allow_nan=False),
        coverage=scores,
        lint=st.integers(min_value=0, max_value=20),
        docs=st.floats(min_value=0, max_value=1, allow_nan=False),
        count=st.integers(min_value=0, max_value=500),
    )
    @settings(max_examples=100, deadline=None)
    def test_components_in_range(self, avg, peak, coverage, lint, docs, count):
        conn = make_db()
        scorer = HealthScorer(SymbolStore(conn), CapabilityStore(conn))
        for value in (
            scorer.complexity_score(avg, peak),
            scorer.quality_score(coverage, lint, docs),
            scorer.maintainability_score(avg, docs, count),
        ):
            assert 0.0 <= value <= 100.0

    @given(
        symbols=st.integers(min_value=0, max_value=50),
        complexity=st.floats(min_value=-100, max_value=100, allow_nan=False),
        health=st.floats(min_value=-100, max_value=100, allow_nan=False),
    )
    def test_breaking_change_dominates(self, symbols, complexity, health):
        assert determine_significance(symbols, complexity, health, True) == ChangeSignificance.CRITICAL
        plain = determine_significance(symbols, complexity, health, False)
        assert plain.rank < ChangeSignificance.CRITICAL.rank

    @given(
        symbols=st.integers(min_value=0, max_value=50),
        extra=st.integers(min_value=0, max_value=50),
        complexity=st.floats(min_value=-100, max_value=100, allow_nan=False),
    )
    def test_more_symbols_never_less_significant(self, symbols, extra, complexity):
        low = determine_significance(symbols, complexity, 0)
        high = determine_significance(symbols + extra, complexity, 0)
        assert high.rank >= low.rank
