"""Call-graph construction, caching and traversal."""

from capgraph.graph.builder import build_reference_graph
from capgraph.graph.cache import GraphCache
from capgraph.graph.callgraph import CallGraphBuilder, CallGraphOptions
from capgraph.graph.cycles import find_call_cycles, format_cycles
from capgraph.graph.queries import GraphQueryEngine, Hotspot

__all__ = [
    "build_reference_graph",
    "GraphCache",
    "CallGraphBuilder",
    "CallGraphOptions",
    "find_call_cycles",
    "format_cycles",
    "GraphQueryEngine",
    "Hotspot",
]
