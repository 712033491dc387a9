"""
Mood set + target minutes -> one Suggestion.

    classify duration -> aggregate candidates (one search per mood)
    -> ranking oracle picks one -> reconcile against candidates -> assemble
"""
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

import httpx

from .aggregator import CatalogSearch, aggregate_candidates
from .assembler import assemble_suggestion
from .config import Settings
from .duration import MAX_TARGET_MINUTES, MIN_TARGET_MINUTES, TARGET_STEP_MINUTES, classify
from .errors import InvalidInput
from .llm_client import RankingOracle, RankingRequest, build_oracle, reconcile
from .logger import logger
from .schemas import CatalogEntry, Suggestion
from .youtube_client import YouTubeClient


class Catalog(CatalogSearch, Protocol):
    async def fetch_batch(self, video_ids: Sequence[str]) -> List[CatalogEntry]: ...


@dataclass(frozen=True)
class SuggestionOutcome:
    suggestion: Suggestion
    # oracle pick not honoured, or re-verification failed
    degraded: bool = False
    candidate_count: int = 0
    failed_moods: List[str] = field(default_factory=list)


def normalize_moods(moods: Sequence[str]) -> List[str]:
    out: List[str] = []
    for mood in moods:
        mood = (mood or "").strip()
        if mood and mood not in out:
            out.append(mood)
    return out


def validate_request(moods: Sequence[str], target_minutes: int) -> List[str]:
    cleaned = normalize_moods(moods)
    if not cleaned:
        raise InvalidInput("Please select at least one mood.")
    if isinstance(target_minutes, bool) or not isinstance(target_minutes, int):
        raise InvalidInput("Duration must be a whole number of minutes.")
    if not MIN_TARGET_MINUTES <= target_minutes <= MAX_TARGET_MINUTES:
        raise InvalidInput(
            f"Duration must be between {MIN_TARGET_MINUTES} and {MAX_TARGET_MINUTES} minutes."
        )
    if target_minutes % TARGET_STEP_MINUTES:
        raise InvalidInput(f"Duration must be a multiple of {TARGET_STEP_MINUTES} minutes.")
    return cleaned


class SuggestionPipeline:
    def __init__(self, settings: Settings, catalog: Catalog, oracle: RankingOracle):
        self._settings = settings
        self._catalog = catalog
        self._oracle = oracle

    async def get_suggestion(self, moods: Sequence[str], target_minutes: int) -> SuggestionOutcome:
        moods = validate_request(moods, target_minutes)
        band, bucket = classify(target_minutes)
        logger.info(
            f"Suggestion request moods={moods} minutes={target_minutes} "
            f"band={band.min_seconds}-{band.max_seconds}s bucket={bucket}"
        )

        aggregation = await aggregate_candidates(
            self._catalog,
            moods,
            band,
            per_query=self._settings.RESULTS_PER_MOOD,
            cap=self._settings.MAX_CANDIDATES,
        )
        request = RankingRequest(moods=moods, target_minutes=target_minutes, candidates=aggregation.ordered)
        selection = await self._oracle.select(request)
        reconciled = reconcile(request, selection)

        entry = reconciled.entry
        degraded = reconciled.degraded
        if self._settings.VERIFY_SELECTION:
            fresh = await self._verify(entry)
            if fresh is None:
                degraded = True
            else:
                entry = fresh

        suggestion = assemble_suggestion(entry, reconciled.result)
        logger.info(
            f"Suggesting {suggestion.videoId} ({suggestion.duration}) from {len(request.candidates)} candidates"
            + (" [degraded]" if degraded else "")
        )
        return SuggestionOutcome(
            suggestion=suggestion,
            degraded=degraded,
            candidate_count=len(request.candidates),
            failed_moods=aggregation.failed_moods,
        )

    async def _verify(self, entry: CatalogEntry) -> Optional[CatalogEntry]:
        found = await self._catalog.fetch_batch([entry.videoId])
        if not found:
            logger.warning(f"Could not re-verify {entry.videoId}; keeping the search snapshot.")
            return None
        return found[0]


def build_pipeline(settings: Settings, http_client: httpx.AsyncClient) -> SuggestionPipeline:
    catalog = YouTubeClient(settings.YOUTUBE_API_KEY, http_client)
    return SuggestionPipeline(settings, catalog, build_oracle(settings))
