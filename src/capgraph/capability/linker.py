"""Symbol-to-capability links: manual upserts, queries and name-based inference."""

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import datetime, timezone

from capgraph.capability.models import (
    CapabilityCodeSummary,
    CapabilityInferenceResult,
    CapabilityLinkType,
    InferredCapabilityLink,
    LinkedSymbol,
    SymbolCapabilityLink,
    symbol_to_dict,
)
from capgraph.db.capability_store import CapabilityStore
from capgraph.db.store import SymbolStore
from capgraph.exit_codes import CapabilityNotFoundError
from capgraph.models import SymbolFilter

log = logging.getLogger(__name__)

# Fixed evidence-based confidences for inferred links
NAME_MATCH_CONFIDENCE = 0.7
DOC_MATCH_CONFIDENCE = 0.5


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


class CapabilityLinker:
    def __init__(self, symbols: SymbolStore, links: CapabilityStore) -> None:
        self.symbols = symbols
        self.links = links

    def _require_capability(self, capability_id: str):
        capability = self.symbols.get_capability(capability_id)
        if capability is None:
            raise CapabilityNotFoundError(capability_id)
        return capability

    # -- manual links -------------------------------------------------------

    def link_symbol_to_capability(
        self,
        symbol_id: str,
        capability_id: str,
        link_type: CapabilityLinkType = CapabilityLinkType.IMPLEMENTS,
        confidence: float = 1.0,
        evidence=(),
        linked_by: str | None = None,
    ) -> SymbolCapabilityLink:
        """Create or overwrite the link for this pair.

        Manual links are never auto-linked; a second call for the same pair
        replaces the type, confidence and evidence of the first.
        """
        link = self.links.upsert_link(
            symbol_id,
            capability_id,
            CapabilityLinkType(link_type),
            _clamp(confidence),
            list(evidence),
            linked_by,
            _now(),
        )
        log.info("Linked %s to capability %s (%s)", symbol_id, capability_id, link.link_type.value)
        return link

    def unlink_symbol_from_capability(self, symbol_id: str, capability_id: str) -> bool:
        return self.links.delete_link(symbol_id, capability_id) > 0

    # -- queries ------------------------------------------------------------

    def get_capability_symbols(
        self,
        capability_id: str,
        min_confidence: float | None = None,
        link_types=None,
    ) -> list[LinkedSymbol]:
        pairs = self.links.linked_symbols(
            capability_id, min_confidence=min_confidence, link_types=link_types
        )
        return [LinkedSymbol(symbol=s, link=l) for s, l in pairs]

    def get_symbol_capabilities(self, symbol_id: str) -> list[SymbolCapabilityLink]:
        return self.links.links_for_symbol(symbol_id)

    def get_capability_code(
        self,
        capability_id: str,
        min_confidence: float | None = None,
        include_tests: bool = True,
    ) -> CapabilityCodeSummary:
        """Everything linked to a capability, grouped by file, with totals."""
        capability = self._require_capability(capability_id)
        pairs = self.links.linked_symbols(
            capability_id,
            min_confidence=min_confidence,
            exclude_link_types=None if include_tests else [CapabilityLinkType.TESTS],
        )

        files: dict[str, dict] = {}
        for symbol, _link in pairs:
            entry = files.setdefault(
                symbol.file_id, {"fileId": symbol.file_id, "path": symbol.file_path, "symbolCount": 0}
            )
            entry["symbolCount"] += 1

        total_complexity = sum(s.cyclomatic_complexity for s, _ in pairs)
        return CapabilityCodeSummary(
            capability_id=capability.id,
            capability_name=capability.name,
            total_symbols=len(pairs),
            total_files=len(files),
            total_lines=sum(s.line_count for s, _ in pairs),
            avg_complexity=total_complexity / len(pairs) if pairs else 0.0,
            symbols=[
                {
                    "symbol": symbol_to_dict(s),
                    "linkType": link.link_type.value,
                    "confidence": link.confidence,
                    "filePath": s.file_path,
                }
                for s, link in pairs
            ],
            files=list(files.values()),
        )

    # -- inference ----------------------------------------------------------

    def infer_capability_links(
        self,
        repository_id: str,
        capability_id: str | None = None,
        threshold: float = 0.5,
        max_links: int = 20,
    ) -> list[CapabilityInferenceResult]:
        """Propose links for symbols whose name or docs mention a capability name.

        A name match scores 0.7 and a documentation-only match 0.5; proposals
        under *threshold* are dropped.  Nothing is written.
        """
        if capability_id is not None:
            capabilities = [self._require_capability(capability_id)]
        else:
            capabilities = self.symbols.list_capabilities()

        results = []
        for capability in capabilities:
            started = time.perf_counter()
            linked = self.links.linked_symbol_ids(capability.id)
            candidates = self.symbols.list_symbols(
                SymbolFilter(
                    repository_id=repository_id,
                    name_or_doc_contains=capability.name,
                    exclude_ids=sorted(linked),
                    limit=max_links,
                )
            )

            needle = capability.name.lower()
            inferred = []
            for symbol in candidates:
                if needle in symbol.name.lower():
                    confidence = NAME_MATCH_CONFIDENCE
                    evidence = [f'Name contains "{capability.name}"']
                else:
                    confidence = DOC_MATCH_CONFIDENCE
                    evidence = [f'Documentation mentions "{capability.name}"']
                if confidence < threshold:
                    continue
                inferred.append(
                    InferredCapabilityLink(
                        symbol_id=symbol.id,
                        capability_id=capability.id,
                        confidence=confidence,
                        evidence=evidence,
                        reasoning="Inferred from name/documentation similarity",
                    )
                )

            results.append(
                CapabilityInferenceResult(
                    capability_id=capability.id,
                    capability_name=capability.name,
                    inferred_links=inferred,
                    existing_links=len(linked),
                    new_links_count=len(inferred),
                    processing_time=round(time.perf_counter() - started, 4),
                )
            )
        return results

    def apply_inferred_links(self, links, linked_by: str | None = None) -> int:
        """Persist inferred links as auto-linked.  Already-linked pairs are skipped."""
        links = list(links)
        created = 0
        for link in links:
            try:
                self.links.insert_link(
                    link.symbol_id,
                    link.capability_id,
                    CapabilityLinkType(link.link_type),
                    _clamp(link.confidence),
                    link.evidence,
                    linked_by,
                    _now(),
                )
            except sqlite3.IntegrityError:
                log.debug("Skipping existing link %s -> %s", link.symbol_id, link.capability_id)
                continue
            created += 1
        log.info("Applied %d of %d inferred links", created, len(links))
        return created
