"""Domain records for the symbol index and the call-graph layer.

Records are plain dataclasses built once at the store boundary
(see :mod:`capgraph.db.store`).  Call-graph results carry ``to_dict`` /
``from_dict`` pairs that produce the camelCase JSON shape shared with
other consumers of the cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SymbolKind(str, Enum):
    FUNCTION = "FUNCTION"
    METHOD = "METHOD"
    CLASS = "CLASS"
    INTERFACE = "INTERFACE"
    TYPE_ALIAS = "TYPE_ALIAS"
    ENUM = "ENUM"
    ENUM_MEMBER = "ENUM_MEMBER"
    VARIABLE = "VARIABLE"
    CONSTANT = "CONSTANT"
    PROPERTY = "PROPERTY"
    GETTER = "GETTER"
    SETTER = "SETTER"
    CONSTRUCTOR = "CONSTRUCTOR"
    NAMESPACE = "NAMESPACE"
    MODULE = "MODULE"
    PARAMETER = "PARAMETER"
    TYPE_PARAMETER = "TYPE_PARAMETER"


class ReferenceType(str, Enum):
    CALL = "CALL"
    INSTANTIATION = "INSTANTIATION"
    EXTENSION = "EXTENSION"
    TYPE_REFERENCE = "TYPE_REFERENCE"
    IMPORT = "IMPORT"
    PROPERTY_ACCESS = "PROPERTY_ACCESS"
    ASSIGNMENT = "ASSIGNMENT"
    PARAMETER = "PARAMETER"
    RETURN_TYPE = "RETURN_TYPE"
    DECORATOR = "DECORATOR"


class GraphType(str, Enum):
    FILE_IMPORTS = "FILE_IMPORTS"
    SYMBOL_CALLS = "SYMBOL_CALLS"
    CLASS_HIERARCHY = "CLASS_HIERARCHY"
    TYPE_DEPENDENCIES = "TYPE_DEPENDENCIES"
    FULL_DEPENDENCY = "FULL_DEPENDENCY"


# Reference types that count as a call when expanding call trees
CALL_LIKE_REFERENCES = (ReferenceType.CALL.value, ReferenceType.INSTANTIATION.value)

# Symbol kinds that get their own graph in a file-level build
FILE_GRAPH_KINDS = (SymbolKind.FUNCTION.value, SymbolKind.CLASS.value, SymbolKind.METHOD.value)


# ---------------------------------------------------------------------------
# Index records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodeFile:
    id: str
    repository_id: str
    path: str
    language: str | None = None
    line_count: int = 0


@dataclass(frozen=True)
class CodeSymbol:
    """A named code construct with location and complexity metadata."""

    id: str
    repository_id: str
    file_id: str
    name: str
    kind: str
    file_path: str = ""
    parent_id: str | None = None
    signature: str | None = None
    documentation: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    cyclomatic_complexity: int = 1
    line_count: int = 0
    visibility: str = "PUBLIC"
    is_exported: bool = False
    deleted_at: str | None = None

    @property
    def has_documentation(self) -> bool:
        return bool(self.documentation)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class SymbolReference:
    """One call/use site from a source symbol to a target (or external package)."""

    id: int
    repository_id: str
    source_symbol_id: str
    target_symbol_id: str | None
    reference_type: str
    source_file_id: str | None = None
    is_external: bool = False
    external_package: str | None = None
    target_name: str | None = None
    line: int | None = None


@dataclass(frozen=True)
class Capability:
    id: str
    name: str
    tenant_id: str | None = None
    description: str | None = None


@dataclass
class SymbolFilter:
    """Selection criteria for :meth:`SymbolStore.list_symbols`."""

    repository_id: str | None = None
    file_id: str | None = None
    ids: list[str] | None = None
    kinds: list[str] | None = None
    top_level_only: bool = False
    include_deleted: bool = False
    name_or_doc_contains: str | None = None
    exclude_ids: list[str] | None = None
    limit: int | None = None


@dataclass
class ReferenceFilter:
    """Selection criteria for :meth:`SymbolStore.list_references`."""

    repository_id: str | None = None
    source_symbol_id: str | None = None
    target_symbol_id: str | None = None
    source_file_id: str | None = None
    target_file_id: str | None = None
    reference_types: list[str] | None = None
    resolved_only: bool = False
    limit: int | None = None


# ---------------------------------------------------------------------------
# Call-graph results
# ---------------------------------------------------------------------------


@dataclass
class ExternalCallInfo:
    package: str
    symbol: str

    def to_dict(self) -> dict:
        return {"package": self.package, "symbol": self.symbol}

    @classmethod
    def from_dict(cls, data: dict) -> ExternalCallInfo:
        return cls(package=data["package"], symbol=data["symbol"])


@dataclass
class CallGraphMetrics:
    avg_fan_out: float = 0.0
    avg_fan_in: float = 0.0
    max_fan_out: int = 0
    max_fan_in: int = 0
    coupling_score: int = 0

    def to_dict(self) -> dict:
        return {
            "avgFanOut": self.avg_fan_out,
            "avgFanIn": self.avg_fan_in,
            "maxFanOut": self.max_fan_out,
            "maxFanIn": self.max_fan_in,
            "couplingScore": self.coupling_score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CallGraphMetrics:
        return cls(
            avg_fan_out=data["avgFanOut"],
            avg_fan_in=data["avgFanIn"],
            max_fan_out=data["maxFanOut"],
            max_fan_in=data["maxFanIn"],
            coupling_score=data["couplingScore"],
        )


@dataclass
class CallGraphNode:
    """A node of a call tree.  Cycles are broken, so this is never a graph.

    ``call_count`` is the number of CALL and INSTANTIATION reference rows
    leaving the symbol (entering it for incoming trees), external calls
    included.  Imports, type references and other rows are not counted.
    """

    symbol_id: str
    name: str
    kind: str
    file_path: str
    file_id: str
    depth: int
    complexity: int
    call_count: int = 0
    children: list[CallGraphNode] = field(default_factory=list)

    def walk(self):
        """Yield this node and every descendant, depth-first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> dict:
        return {
            "symbolId": self.symbol_id,
            "name": self.name,
            "kind": self.kind,
            "filePath": self.file_path,
            "fileId": self.file_id,
            "depth": self.depth,
            "complexity": self.complexity,
            "callCount": self.call_count,
            "children": [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict) -> CallGraphNode:
        return cls(
            symbol_id=data["symbolId"],
            name=data["name"],
            kind=data["kind"],
            file_path=data["filePath"],
            file_id=data["fileId"],
            depth=data["depth"],
            complexity=data["complexity"],
            call_count=data["callCount"],
            children=[cls.from_dict(c) for c in data.get("children", [])],
        )


@dataclass
class CallGraphData:
    root: CallGraphNode
    total_nodes: int
    max_depth: int
    external_calls: list[ExternalCallInfo] = field(default_factory=list)
    metrics: CallGraphMetrics = field(default_factory=CallGraphMetrics)

    def edge_count(self) -> int:
        return sum(len(node.children) for node in self.root.walk())

    def to_dict(self) -> dict:
        return {
            "root": self.root.to_dict(),
            "totalNodes": self.total_nodes,
            "maxDepth": self.max_depth,
            "externalCalls": [e.to_dict() for e in self.external_calls],
            "metrics": self.metrics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> CallGraphData:
        return cls(
            root=CallGraphNode.from_dict(data["root"]),
            total_nodes=data["totalNodes"],
            max_depth=data["maxDepth"],
            external_calls=[ExternalCallInfo.from_dict(e) for e in data.get("externalCalls", [])],
            metrics=CallGraphMetrics.from_dict(data["metrics"]),
        )


@dataclass
class SymbolNode:
    """Flat symbol entry returned by caller/callee, path and cycle queries."""

    id: str
    name: str
    kind: str
    file_path: str
    file_id: str
    complexity: int
    depth: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "filePath": self.file_path,
            "fileId": self.file_id,
            "complexity": self.complexity,
            "depth": self.depth,
        }


@dataclass
class CallEdge:
    source_symbol_id: str
    target_symbol_id: str
    source_name: str
    target_name: str
    source_file: str
    target_file: str
    reference_type: str
    call_count: int = 1

    def to_dict(self) -> dict:
        return {
            "sourceSymbolId": self.source_symbol_id,
            "targetSymbolId": self.target_symbol_id,
            "sourceName": self.source_name,
            "targetName": self.target_name,
            "sourceFile": self.source_file,
            "targetFile": self.target_file,
            "referenceType": self.reference_type,
            "callCount": self.call_count,
        }


@dataclass
class CachedDependencyGraph:
    repository_id: str
    graph_type: str
    root_id: str
    graph_data: CallGraphData
    node_count: int
    edge_count: int
    max_depth: int
    commit_sha: str | None
    computed_at: str
    is_stale: bool = False
