"""Health-scoring configuration and project-level overrides.

Defaults can be overridden per project in ``.capgraph/config.json``::

    {
        "cache_ttl": 600,
        "health": {
            "weights": {"quality": 0.4, "stability": 0.15},
            "thresholds": {"healthy": 75}
        }
    }

Only the keys present are overridden; everything else keeps its default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

from capgraph.db.connection import load_project_config
from capgraph.graph.cache import DEFAULT_TTL

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthWeights:
    complexity: float = 0.25
    quality: float = 0.30
    stability: float = 0.25
    maintainability: float = 0.20


@dataclass(frozen=True)
class HealthThresholds:
    healthy: float = 70.0
    warning: float = 40.0


@dataclass(frozen=True)
class ComplexityTargets:
    max_avg_complexity: float = 10.0
    max_single_complexity: float = 25.0


@dataclass(frozen=True)
class QualityTargets:
    min_test_coverage: float = 80.0
    max_lint_issues: int = 0
    min_documentation_ratio: float = 0.5


@dataclass(frozen=True)
class StabilityTargets:
    # Not consumed yet: stability is a fixed score until churn data is wired in
    max_churn_rate: float = 20.0
    max_files_changed_per_day: float = 5.0


@dataclass(frozen=True)
class HealthScoreConfig:
    weights: HealthWeights = field(default_factory=HealthWeights)
    thresholds: HealthThresholds = field(default_factory=HealthThresholds)
    complexity_targets: ComplexityTargets = field(default_factory=ComplexityTargets)
    quality_targets: QualityTargets = field(default_factory=QualityTargets)
    stability_targets: StabilityTargets = field(default_factory=StabilityTargets)

    @classmethod
    def from_dict(cls, data: dict) -> HealthScoreConfig:
        """Build a config from a (possibly partial) nested dict of overrides."""
        config = cls()
        for section in fields(cls):
            overrides = data.get(section.name)
            if overrides is None:
                continue
            if not isinstance(overrides, dict):
                raise ValueError(f"health.{section.name} must be an object")
            current = getattr(config, section.name)
            known = {f.name for f in fields(current)}
            values = {}
            for key, value in overrides.items():
                if key not in known:
                    log.warning("Ignoring unknown health config key %s.%s", section.name, key)
                    continue
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValueError(f"health.{section.name}.{key} must be a number")
                values[key] = value
            config = replace(config, **{section.name: replace(current, **values)})
        for key in data:
            if key not in {f.name for f in fields(cls)}:
                log.warning("Ignoring unknown health config section %s", key)
        return config

    def to_dict(self) -> dict:
        return {
            f.name: {g.name: getattr(getattr(self, f.name), g.name) for g in fields(getattr(self, f.name))}
            for f in fields(self)
        }


DEFAULT_HEALTH_CONFIG = HealthScoreConfig()


def load_health_config(project_root: Path | None = None) -> HealthScoreConfig:
    """Defaults merged with the ``"health"`` section of the project config."""
    overrides = load_project_config(project_root).get("health")
    if not overrides:
        return DEFAULT_HEALTH_CONFIG
    if not isinstance(overrides, dict):
        raise ValueError("health config must be an object")
    return HealthScoreConfig.from_dict(overrides)


def get_cache_ttl(project_root: Path | None = None) -> int:
    """Call-graph cache TTL in seconds (``cache_ttl`` in the project config)."""
    value = load_project_config(project_root).get("cache_ttl", DEFAULT_TTL)
    try:
        ttl = int(value)
    except (TypeError, ValueError):
        log.warning("Invalid cache_ttl %r, using %d", value, DEFAULT_TTL)
        return DEFAULT_TTL
    return max(0, ttl)
