"""Capability change events: recording, significance, summaries and detection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from capgraph.capability.models import (
    CapabilityEventType,
    CapabilityEvolution,
    CapabilityEvolutionSummary,
    ChangeCategory,
    ChangeSignificance,
    EvolutionEventInput,
    EvolutionFilter,
    TimelineEntry,
)
from capgraph.db.capability_store import CapabilityStore
from capgraph.db.store import SymbolStore
from capgraph.exit_codes import CapabilityNotFoundError

log = logging.getLogger(__name__)

# Total linked complexity growth over the last snapshot that counts as a spike
COMPLEXITY_SPIKE_THRESHOLD = 50

_COUNTED_EVENTS = {
    CapabilityEventType.SYMBOLS_ADDED: "symbols_added",
    CapabilityEventType.SYMBOLS_MODIFIED: "symbols_modified",
    CapabilityEventType.SYMBOLS_REMOVED: "symbols_removed",
}


def determine_significance(
    symbols_affected: int,
    complexity_delta: float,
    health_score_delta: float,
    breaking_change: bool = False,
) -> ChangeSignificance:
    if breaking_change:
        return ChangeSignificance.CRITICAL
    if symbols_affected > 10 or abs(health_score_delta) > 20:
        return ChangeSignificance.MAJOR
    if symbols_affected > 5 or abs(complexity_delta) > 20:
        return ChangeSignificance.MODERATE
    if symbols_affected > 0:
        return ChangeSignificance.MINOR
    return ChangeSignificance.TRIVIAL


def complexity_spike_detector(tracker, capability_id, repository_id, commit_sha, previous_commit_sha):
    """Propose a COMPLEXITY_SPIKE when linked complexity grew past the threshold.

    Compares the current total complexity of linked, non-deleted symbols with
    the most recent stored health snapshot.  No snapshot means no baseline.
    """
    previous = tracker.store.latest_health(capability_id, repository_id)
    if previous is None:
        return []
    pairs = tracker.store.linked_symbols(capability_id, repository_id=repository_id, include_deleted=False)
    current = sum(s.cyclomatic_complexity for s, _ in pairs)
    delta = current - previous.total_complexity
    if delta <= COMPLEXITY_SPIKE_THRESHOLD:
        return []
    return [
        EvolutionEventInput(
            event_type=CapabilityEventType.COMPLEXITY_SPIKE,
            commit_sha=commit_sha,
            symbols_affected=[s.id for s, _ in pairs],
            files_affected=sorted({s.file_id for s, _ in pairs}),
            complexity_delta=delta,
            change_category=ChangeCategory.MAINTENANCE,
            summary=f"Complexity increased by {delta}",
        )
    ]


DEFAULT_DETECTORS = (complexity_spike_detector,)


class EvolutionTracker:
    """Record and summarise capability evolution events.

    ``detectors`` is the list of heuristics run by :meth:`detect_evolution`.
    Each is called as ``detector(tracker, capability_id, repository_id,
    commit_sha, previous_commit_sha)`` and returns event inputs to record.
    """

    def __init__(self, symbols: SymbolStore, store: CapabilityStore, detectors=None, clock=None) -> None:
        self.symbols = symbols
        self.store = store
        self.detectors = list(DEFAULT_DETECTORS if detectors is None else detectors)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record_evolution_event(
        self,
        capability_id: str,
        repository_id: str,
        event: EvolutionEventInput,
    ) -> CapabilityEvolution:
        event_type = CapabilityEventType(event.event_type)
        affected = list(event.symbols_affected)
        significance = determine_significance(
            len(affected), event.complexity_delta, event.health_score_delta, event.breaking_change
        )
        counts = {col: 0 for col in _COUNTED_EVENTS.values()}
        if event_type in _COUNTED_EVENTS:
            counts[_COUNTED_EVENTS[event_type]] = len(affected)

        recorded = self.store.insert_evolution(
            CapabilityEvolution(
                capability_id=capability_id,
                repository_id=repository_id,
                event_type=event_type,
                event_date=self._clock().replace(microsecond=0),
                commit_sha=event.commit_sha,
                commit_message=event.commit_message,
                commit_author=event.commit_author,
                symbols_affected=affected,
                files_affected=list(event.files_affected),
                files_changed=len(event.files_affected),
                complexity_delta=event.complexity_delta,
                line_count_delta=event.line_count_delta,
                health_score_delta=event.health_score_delta,
                breaking_change=event.breaking_change,
                requires_review=significance.rank >= ChangeSignificance.MAJOR.rank,
                change_category=ChangeCategory(event.change_category or ChangeCategory.MAINTENANCE),
                significance=significance,
                summary=event.summary,
                description=event.description,
                tags=list(event.tags),
                **counts,
            )
        )
        log.info(
            "Recorded %s for %s @ %s (%s)",
            event_type.value, capability_id, event.commit_sha, significance.value,
        )
        return recorded

    def get_capability_evolution(self, flt: EvolutionFilter | None = None) -> CapabilityEvolutionSummary:
        """Matching events newest first, with per-type, per-category and per-day rollups."""
        flt = flt or EvolutionFilter()
        name = "All Capabilities"
        if flt.capability_id is not None:
            capability = self.symbols.get_capability(flt.capability_id)
            if capability is None:
                raise CapabilityNotFoundError(flt.capability_id)
            name = capability.name

        events = self.store.list_evolution(flt)

        by_type: dict[str, int] = {}
        by_category: dict[str, int] = {}
        timeline: dict[str, TimelineEntry] = {}
        for event in events:
            by_type[event.event_type.value] = by_type.get(event.event_type.value, 0) + 1
            by_category[event.change_category.value] = by_category.get(event.change_category.value, 0) + 1
            day = event.event_date.astimezone(timezone.utc).date().isoformat()
            entry = timeline.setdefault(day, TimelineEntry(date=day))
            entry.event_count += 1
            entry.net_complexity_change += event.complexity_delta
            entry.net_line_change += event.line_count_delta

        return CapabilityEvolutionSummary(
            capability_id=flt.capability_id,
            capability_name=name,
            total_events=len(events),
            events_by_type=by_type,
            events_by_category=by_category,
            events=events,
            timeline=[timeline[d] for d in sorted(timeline)],
        )

    def detect_evolution(
        self,
        capability_id: str,
        repository_id: str,
        commit_sha: str,
        previous_commit_sha: str | None = None,
    ) -> list[CapabilityEvolution]:
        """Run every detector and record the events they propose."""
        if self.symbols.get_capability(capability_id) is None:
            raise CapabilityNotFoundError(capability_id)
        recorded = []
        for detector in self.detectors:
            for proposed in detector(self, capability_id, repository_id, commit_sha, previous_commit_sha):
                recorded.append(self.record_evolution_event(capability_id, repository_id, proposed))
        return recorded
