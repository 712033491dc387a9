"""
Candidate aggregation: one catalog search per mood, merged into a single
deduplicated candidate set.

Merge order is mood-list order, then each query's own relevance order, so
"first occurrence wins" is reproducible even though the searches run
concurrently.
"""
import asyncio
import re
from dataclasses import dataclass, field
from typing import Dict, List, Protocol, Sequence, Tuple

from .duration import DurationBand
from .errors import CatalogUnavailable, NoCandidates
from .logger import logger
from .schemas import CatalogEntry

RESULTS_PER_MOOD = 15
MAX_CANDIDATES = 20

_NON_WORD_RE = re.compile(r"[^\w\s]")


class CatalogSearch(Protocol):
    async def search(
        self,
        query: str,
        max_results: int = ...,
        min_seconds: int | None = ...,
        max_seconds: int | None = ...,
    ) -> List[CatalogEntry]: ...


@dataclass
class AggregationResult:
    # insertion order == aggregation order
    candidates: Dict[str, CatalogEntry]
    failures: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ordered(self) -> List[CatalogEntry]:
        return list(self.candidates.values())

    @property
    def failed_moods(self) -> List[str]:
        return [mood for mood, _ in self.failures]


def search_query_for(mood: str) -> str:
    """'Need a laugh 😂' -> 'Need a laugh'. Falls back to the raw label when nothing is left."""
    cleaned = " ".join(_NON_WORD_RE.sub("", mood).split())
    return cleaned or mood


def merge_candidates(result_lists: Sequence[Sequence[CatalogEntry]], cap: int = MAX_CANDIDATES) -> Dict[str, CatalogEntry]:
    merged: Dict[str, CatalogEntry] = {}
    for entries in result_lists:
        for entry in entries:
            if len(merged) >= cap:
                return merged
            merged.setdefault(entry.videoId, entry)
    return merged


async def aggregate_candidates(
    catalog: CatalogSearch,
    moods: Sequence[str],
    band: DurationBand,
    per_query: int = RESULTS_PER_MOOD,
    cap: int = MAX_CANDIDATES,
) -> AggregationResult:
    queries = [search_query_for(m) for m in moods]
    outcomes = await asyncio.gather(
        *(
            catalog.search(q, per_query, min_seconds=band.min_seconds, max_seconds=band.max_seconds)
            for q in queries
        ),
        return_exceptions=True,
    )

    found: List[List[CatalogEntry]] = []
    failures: List[Tuple[str, Exception]] = []
    for mood, query, outcome in zip(moods, queries, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning(f"Search failed for query '{query}': {outcome}")
            failures.append((mood, outcome))
            continue
        found.append(outcome)

    candidates = merge_candidates(found, cap=cap)
    if not candidates:
        if failures and len(failures) == len(queries):
            # Nothing succeeded: report why instead of blaming the filters.
            errors = [err for _, err in failures]
            raise next((e for e in errors if isinstance(e, CatalogUnavailable)), errors[0])
        raise NoCandidates(
            "No videos found matching your preferences. Try adjusting your time or mood selection."
        )

    logger.info(
        f"Aggregated {len(candidates)} unique candidates from {len(found)}/{len(queries)} mood queries"
    )
    return AggregationResult(candidates=candidates, failures=failures)
