"""Shared helpers for commands: index checks and service wiring."""

from __future__ import annotations

from dataclasses import dataclass

from capgraph.db.connection import db_exists


def require_index() -> None:
    """Raise IndexMissingError if the index does not exist."""
    if not db_exists():
        from capgraph.exit_codes import IndexMissingError

        raise IndexMissingError()


@dataclass
class Services:
    """Everything a command needs, wired over one open connection."""

    symbols: object
    capabilities: object
    cache: object

    def call_graphs(self):
        from capgraph.graph.callgraph import CallGraphBuilder

        return CallGraphBuilder(self.symbols, self.cache)

    def queries(self):
        from capgraph.graph.queries import GraphQueryEngine

        return GraphQueryEngine(self.symbols)

    def linker(self):
        from capgraph.capability.linker import CapabilityLinker

        return CapabilityLinker(self.symbols, self.capabilities)

    def health(self):
        from capgraph.capability.health import HealthScorer
        from capgraph.config import load_health_config

        return HealthScorer(self.symbols, self.capabilities, load_health_config())

    def evolution(self):
        from capgraph.capability.evolution import EvolutionTracker

        return EvolutionTracker(self.symbols, self.capabilities)


def services(ctx, conn) -> Services:
    from capgraph.config import get_cache_ttl
    from capgraph.db.capability_store import CapabilityStore
    from capgraph.db.store import SymbolStore
    from capgraph.graph.cache import GraphCache

    tenant = ctx.obj.get("tenant") if ctx.obj else None
    return Services(
        symbols=SymbolStore(conn, tenant_id=tenant),
        capabilities=CapabilityStore(conn),
        cache=GraphCache(conn, default_ttl=get_cache_ttl()),
    )


def json_mode(ctx) -> bool:
    return bool(ctx.obj.get("json")) if ctx.obj else False
