"""Records and request/response shapes for capability links, health and evolution."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum

from capgraph.models import CodeSymbol


class CapabilityLinkType(str, Enum):
    IMPLEMENTS = "IMPLEMENTS"
    SUPPORTS = "SUPPORTS"
    TESTS = "TESTS"
    CONFIGURES = "CONFIGURES"
    DOCUMENTS = "DOCUMENTS"


class HealthStatus(str, Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class HealthTrend(str, Enum):
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"


class CapabilityEventType(str, Enum):
    SYMBOLS_ADDED = "SYMBOLS_ADDED"
    SYMBOLS_MODIFIED = "SYMBOLS_MODIFIED"
    SYMBOLS_REMOVED = "SYMBOLS_REMOVED"
    COMPLEXITY_SPIKE = "COMPLEXITY_SPIKE"
    REFACTORING = "REFACTORING"
    HEALTH_DECLINE = "HEALTH_DECLINE"
    HEALTH_IMPROVEMENT = "HEALTH_IMPROVEMENT"
    DEPENDENCY_CHANGE = "DEPENDENCY_CHANGE"


class ChangeCategory(str, Enum):
    FEATURE = "FEATURE"
    ENHANCEMENT = "ENHANCEMENT"
    BUGFIX = "BUGFIX"
    REFACTOR = "REFACTOR"
    MAINTENANCE = "MAINTENANCE"
    PERFORMANCE = "PERFORMANCE"
    SECURITY = "SECURITY"


class ChangeSignificance(str, Enum):
    """Severity of an evolution event, declared from least to most severe."""

    TRIVIAL = "TRIVIAL"
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(ChangeSignificance).index(self)

    @classmethod
    def at_or_above(cls, minimum: ChangeSignificance) -> list[ChangeSignificance]:
        return [s for s in cls if s.rank >= cls(minimum).rank]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _CamelDict:
    """Mixin: ``to_dict`` emits every dataclass field under its camelCase name."""

    def to_dict(self) -> dict:
        return {_camel(f.name): _jsonable(getattr(self, f.name)) for f in fields(self)}


def symbol_to_dict(symbol: CodeSymbol) -> dict:
    return {
        "id": symbol.id,
        "repositoryId": symbol.repository_id,
        "fileId": symbol.file_id,
        "filePath": symbol.file_path,
        "name": symbol.name,
        "kind": symbol.kind,
        "cyclomaticComplexity": symbol.cyclomatic_complexity,
        "lineCount": symbol.line_count,
        "hasDocumentation": symbol.has_documentation,
        "isExported": symbol.is_exported,
    }


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


@dataclass
class SymbolCapabilityLink(_CamelDict):
    id: int
    symbol_id: str
    capability_id: str
    link_type: CapabilityLinkType
    confidence: float
    is_auto_linked: bool
    evidence: list[str]
    linked_by: str | None
    linked_at: str
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class LinkedSymbol:
    symbol: CodeSymbol
    link: SymbolCapabilityLink

    def to_dict(self) -> dict:
        return {"symbol": symbol_to_dict(self.symbol), "link": self.link.to_dict()}


@dataclass
class InferredCapabilityLink(_CamelDict):
    symbol_id: str
    capability_id: str
    confidence: float
    link_type: CapabilityLinkType = CapabilityLinkType.IMPLEMENTS
    evidence: list[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class CapabilityInferenceResult(_CamelDict):
    capability_id: str
    capability_name: str
    inferred_links: list[InferredCapabilityLink]
    existing_links: int
    new_links_count: int
    processing_time: float = 0.0


@dataclass
class CapabilityCodeSummary(_CamelDict):
    capability_id: str
    capability_name: str
    total_symbols: int
    total_files: int
    total_lines: int
    avg_complexity: float
    symbols: list[dict]
    files: list[dict]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@dataclass
class CapabilityHealth(_CamelDict):
    """One daily health snapshot of a capability within a repository."""

    capability_id: str
    repository_id: str
    date: date
    symbol_count: int = 0
    total_complexity: int = 0
    avg_complexity: float = 0.0
    max_complexity: int = 0
    total_line_count: int = 0
    documented_symbols: int = 0
    documentation_ratio: float = 0.0
    test_coverage: float = 0.0
    test_symbol_count: int = 0
    lint_issue_count: int = 0
    type_error_count: int = 0
    deprecated_usage_count: int = 0
    files_changed: int = 0
    symbols_added: int = 0
    symbols_modified: int = 0
    symbols_removed: int = 0
    total_churn: int = 0
    incoming_dependencies: int = 0
    outgoing_dependencies: int = 0
    coupling_score: float = 0.0
    cohesion_score: float = 0.0
    complexity_score: float = 0.0
    quality_score: float = 0.0
    stability_score: float = 0.0
    maintainability_score: float = 0.0
    overall_health_score: float = 0.0
    health_status: HealthStatus = HealthStatus.CRITICAL
    health_trend: HealthTrend = HealthTrend.STABLE
    trend_delta: float = 0.0
    id: int | None = None
    created_at: str | None = None


@dataclass
class CapabilityHealthRequest:
    capability_id: str
    repository_id: str
    start_date: date | None = None
    end_date: date | None = None
    limit: int = 30


@dataclass
class HealthAlert(_CamelDict):
    type: str  # "warning" | "critical"
    metric: str
    message: str
    value: float
    threshold: float


@dataclass
class HealthTrendSummary:
    direction: HealthTrend
    delta_7d: float
    delta_30d: float
    volatility: float

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "delta7d": self.delta_7d,
            "delta30d": self.delta_30d,
            "volatility": self.volatility,
        }


@dataclass
class CapabilityHealthTrend(_CamelDict):
    capability_id: str
    capability_name: str
    current_health: CapabilityHealth | None
    history: list[CapabilityHealth]
    trend: HealthTrendSummary
    alerts: list[HealthAlert]


# ---------------------------------------------------------------------------
# Evolution
# ---------------------------------------------------------------------------


@dataclass
class EvolutionEventInput:
    """Caller-supplied facts about a change.  Derived fields are computed on record."""

    event_type: CapabilityEventType
    commit_sha: str
    symbols_affected: list[str] = field(default_factory=list)
    files_affected: list[str] = field(default_factory=list)
    complexity_delta: float = 0.0
    line_count_delta: int = 0
    health_score_delta: float = 0.0
    breaking_change: bool = False
    change_category: ChangeCategory | None = None
    commit_message: str | None = None
    commit_author: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class CapabilityEvolution(_CamelDict):
    capability_id: str
    repository_id: str
    event_type: CapabilityEventType
    event_date: datetime
    commit_sha: str
    significance: ChangeSignificance
    change_category: ChangeCategory = ChangeCategory.MAINTENANCE
    commit_message: str | None = None
    commit_author: str | None = None
    symbols_affected: list[str] = field(default_factory=list)
    symbols_added: int = 0
    symbols_modified: int = 0
    symbols_removed: int = 0
    files_affected: list[str] = field(default_factory=list)
    files_changed: int = 0
    complexity_delta: float = 0.0
    line_count_delta: int = 0
    health_score_delta: float = 0.0
    breaking_change: bool = False
    requires_review: bool = False
    summary: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: str | None = None


@dataclass
class EvolutionFilter:
    capability_id: str | None = None
    repository_id: str | None = None
    event_types: list[CapabilityEventType] | None = None
    change_categories: list[ChangeCategory] | None = None
    min_significance: ChangeSignificance | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int = 100
    offset: int = 0


@dataclass
class TimelineEntry(_CamelDict):
    date: str
    event_count: int = 0
    net_complexity_change: float = 0.0
    net_line_change: int = 0


@dataclass
class CapabilityEvolutionSummary(_CamelDict):
    capability_id: str | None
    capability_name: str
    total_events: int
    events_by_type: dict[str, int]
    events_by_category: dict[str, int]
    events: list[CapabilityEvolution]
    timeline: list[TimelineEntry]
