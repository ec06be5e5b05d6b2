"""Daily multi-factor health scoring for capabilities.

A snapshot is computed from the capability's currently linked, non-deleted
symbols in one repository and upserted under today's UTC date.  Four component
scores (0-100) feed a weighted overall score:

    complexity       100 - avg penalty - max penalty (each capped at 50)
    quality          coverage (40) + lint (30) + documentation (30), capped at 100
    stability        fixed placeholder until churn data is available
    maintainability  complexity, documentation and size factors (40/40/20)
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from capgraph.capability.models import (
    CapabilityHealth,
    CapabilityHealthRequest,
    CapabilityHealthTrend,
    CapabilityLinkType,
    HealthAlert,
    HealthStatus,
    HealthTrend,
    HealthTrendSummary,
)
from capgraph.config import DEFAULT_HEALTH_CONFIG, HealthScoreConfig
from capgraph.db.capability_store import CapabilityStore
from capgraph.db.store import SymbolStore
from capgraph.exit_codes import CapabilityNotFoundError

log = logging.getLogger(__name__)

STABILITY_PLACEHOLDER = 75.0

# Day-over-day score change needed to call a trend
TREND_DELTA = 5.0


def classify_trend(delta: float) -> HealthTrend:
    if delta > TREND_DELTA:
        return HealthTrend.IMPROVING
    if delta < -TREND_DELTA:
        return HealthTrend.DECLINING
    return HealthTrend.STABLE


def delta_for_days(history: list[CapabilityHealth], days: int) -> float:
    """Newest score minus the newest score at least *days* older (0 if none)."""
    if len(history) < 2:
        return 0.0
    now = history[0]
    for past in history[1:]:
        if (now.date - past.date).days >= days:
            return now.overall_health_score - past.overall_health_score
    return 0.0


def volatility(history: list[CapabilityHealth]) -> float:
    """Mean absolute change between consecutive snapshots (0 under 3 points)."""
    if len(history) < 3:
        return 0.0
    deltas = [
        abs(a.overall_health_score - b.overall_health_score)
        for a, b in zip(history, history[1:])
    ]
    return sum(deltas) / len(deltas)


class HealthScorer:
    """Compute and read back capability health snapshots.

    *today* returns the snapshot date; tests inject a fixed one.
    """

    def __init__(
        self,
        symbols: SymbolStore,
        store: CapabilityStore,
        config: HealthScoreConfig | None = None,
        today=None,
    ) -> None:
        self.symbols = symbols
        self.store = store
        self.config = config or DEFAULT_HEALTH_CONFIG
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    # -- component scores ---------------------------------------------------

    def complexity_score(self, avg_complexity: float, max_complexity: float) -> float:
        targets = self.config.complexity_targets
        avg_penalty = min(50.0, avg_complexity / targets.max_avg_complexity * 50)
        max_penalty = min(50.0, max_complexity / targets.max_single_complexity * 50)
        return max(0.0, 100 - avg_penalty - max_penalty)

    def quality_score(self, test_coverage: float, lint_issues: int, documentation_ratio: float) -> float:
        targets = self.config.quality_targets
        coverage = test_coverage / targets.min_test_coverage * 40
        lint = 30.0 if lint_issues == 0 else max(0.0, 30.0 - lint_issues * 5)
        docs = documentation_ratio / targets.min_documentation_ratio * 30
        return min(100.0, coverage + lint + docs)

    def stability_score(self, capability_id: str, repository_id: str) -> float:
        """Stability component.  Override once churn data is available."""
        return STABILITY_PLACEHOLDER

    @staticmethod
    def maintainability_score(avg_complexity: float, documentation_ratio: float, symbol_count: int) -> float:
        complexity_factor = max(0.0, 1 - avg_complexity / 30)
        if symbol_count > 100:
            size_factor = 0.7
        elif symbol_count > 50:
            size_factor = 0.85
        else:
            size_factor = 1.0
        return (complexity_factor * 0.4 + documentation_ratio * 0.4 + size_factor * 0.2) * 100

    def overall_score(self, complexity: float, quality: float, stability: float, maintainability: float) -> float:
        w = self.config.weights
        score = (
            complexity * w.complexity
            + quality * w.quality
            + stability * w.stability
            + maintainability * w.maintainability
        )
        return max(0.0, min(100.0, score))

    def health_status(self, score: float) -> HealthStatus:
        if score >= self.config.thresholds.healthy:
            return HealthStatus.HEALTHY
        if score >= self.config.thresholds.warning:
            return HealthStatus.WARNING
        return HealthStatus.CRITICAL

    # -- snapshots ----------------------------------------------------------

    def calculate_capability_health(self, capability_id: str, repository_id: str) -> CapabilityHealth:
        """Compute today's snapshot and upsert it.  Re-running the same day overwrites."""
        if self.symbols.get_capability(capability_id) is None:
            raise CapabilityNotFoundError(capability_id)

        today: date = self._today()
        pairs = self.store.linked_symbols(capability_id, repository_id=repository_id, include_deleted=False)
        symbols = [s for s, _ in pairs]
        test_links = sum(1 for _, l in pairs if l.link_type == CapabilityLinkType.TESTS)
        impl_links = len(pairs) - test_links

        count = len(symbols)
        complexities = [s.cyclomatic_complexity for s in symbols]
        total_complexity = sum(complexities)
        avg_complexity = total_complexity / count if count else 0.0
        max_complexity = max(complexities, default=0)
        documented = sum(1 for s in symbols if s.has_documentation)
        doc_ratio = documented / count if count else 0.0
        coverage = min(100.0, test_links / impl_links * 100) if impl_links else 0.0

        complexity = self.complexity_score(avg_complexity, max_complexity)
        quality = self.quality_score(coverage, 0, doc_ratio)
        stability = self.stability_score(capability_id, repository_id)
        maintainability = self.maintainability_score(avg_complexity, doc_ratio, count)
        overall = self.overall_score(complexity, quality, stability, maintainability)

        previous = self.store.previous_health(capability_id, repository_id, today)
        trend_delta = overall - previous.overall_health_score if previous else 0.0

        health = self.store.upsert_health(
            CapabilityHealth(
                capability_id=capability_id,
                repository_id=repository_id,
                date=today,
                symbol_count=count,
                total_complexity=total_complexity,
                avg_complexity=avg_complexity,
                max_complexity=max_complexity,
                total_line_count=sum(s.line_count for s in symbols),
                documented_symbols=documented,
                documentation_ratio=doc_ratio,
                test_coverage=coverage,
                test_symbol_count=test_links,
                complexity_score=complexity,
                quality_score=quality,
                stability_score=stability,
                maintainability_score=maintainability,
                overall_health_score=overall,
                health_status=self.health_status(overall),
                health_trend=classify_trend(trend_delta),
                trend_delta=trend_delta,
            )
        )
        log.info(
            "Health for %s in %s on %s: %.1f (%s)",
            capability_id, repository_id, today, overall, health.health_status.value,
        )
        return health

    def get_capability_health(self, request: CapabilityHealthRequest) -> CapabilityHealthTrend:
        capability = self.symbols.get_capability(request.capability_id)
        if capability is None:
            raise CapabilityNotFoundError(request.capability_id)

        history = self.store.health_history(
            request.capability_id,
            request.repository_id,
            start_date=request.start_date,
            end_date=request.end_date,
            limit=request.limit,
        )
        current = history[0] if history else None
        return CapabilityHealthTrend(
            capability_id=capability.id,
            capability_name=capability.name,
            current_health=current,
            history=history,
            trend=HealthTrendSummary(
                direction=current.health_trend if current else HealthTrend.STABLE,
                delta_7d=delta_for_days(history, 7),
                delta_30d=delta_for_days(history, 30),
                volatility=volatility(history),
            ),
            alerts=self.health_alerts(current),
        )

    def health_alerts(self, health: CapabilityHealth | None) -> list[HealthAlert]:
        if health is None:
            return []
        complexity = self.config.complexity_targets
        quality = self.config.quality_targets
        alerts = []

        if health.avg_complexity > complexity.max_avg_complexity:
            alerts.append(HealthAlert(
                type="warning",
                metric="avgComplexity",
                message="Average complexity exceeds target",
                value=health.avg_complexity,
                threshold=complexity.max_avg_complexity,
            ))
        if health.test_coverage < quality.min_test_coverage:
            alerts.append(HealthAlert(
                type="critical" if health.test_coverage < quality.min_test_coverage / 2 else "warning",
                metric="testCoverage",
                message="Test coverage below target",
                value=health.test_coverage,
                threshold=quality.min_test_coverage,
            ))
        if health.documentation_ratio < quality.min_documentation_ratio:
            alerts.append(HealthAlert(
                type="warning",
                metric="documentationRatio",
                message="Documentation coverage below target",
                value=health.documentation_ratio,
                threshold=quality.min_documentation_ratio,
            ))
        return alerts
