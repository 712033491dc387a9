from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol
import json

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError, field_validator

from .aggregator import search_query_for
from .config import Settings
from .duration import describe_target, duration_bucket, duration_band
from .errors import OracleRequestError, OracleResponseInvalid
from .logger import logger
from .schemas import CatalogEntry, SelectionResult

MIN_TAGS = 3
MAX_TAGS = 5
DESCRIPTION_PREVIEW_CHARS = 200

SYSTEM_PROMPT = "You are a precise JSON generator. Output strictly valid JSON."


@dataclass(frozen=True)
class RankingRequest:
    moods: List[str]
    target_minutes: int
    # aggregation order; the first entry is the fallback pick
    candidates: List[CatalogEntry]

    def lookup(self, video_id: str) -> Optional[CatalogEntry]:
        return next((c for c in self.candidates if c.videoId == video_id), None)


class OracleSelection(BaseModel):
    """What the ranking oracle answered, before reconciliation."""

    selectedVideoId: str
    tags: List[str] = []
    promotionalSummary: Optional[str] = None

    @field_validator("selectedVideoId")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("selectedVideoId must not be empty")
        return v.strip()

    @field_validator("tags", mode="before")
    @classmethod
    def _string_tags(cls, v: Any) -> Any:
        # null, numbers and nested values are dropped rather than failing the answer
        if not isinstance(v, list):
            return [] if v is None else v
        return [t for t in v if isinstance(t, str)]


@dataclass(frozen=True)
class Reconciliation:
    entry: CatalogEntry
    result: SelectionResult
    degraded: bool = False


class RankingOracle(Protocol):
    async def select(self, request: RankingRequest) -> OracleSelection: ...


def build_selection_prompt(request: RankingRequest) -> str:
    minutes = request.target_minutes
    lines: List[str] = []
    lines.append(
        'You are "Moment", an expert YouTube concierge. Your purpose is to select the perfect '
        "video for a user based on their moods and available time."
    )
    lines.append("")
    lines.append("User's request:")
    lines.append(
        f"- Time Available: A video that is {describe_target(minutes)}, "
        f"with a duration as close to {minutes} minutes as possible."
    )
    lines.append(f"- Current Moods: {', '.join(request.moods)}")
    lines.append("")
    lines.append(
        f"Here are {len(request.candidates)} real YouTube videos that match the duration criteria. "
        "Select the ONE best video that:"
    )
    lines.append("1. Best matches the user's current moods")
    lines.append('2. Is a "hidden gem" - high-quality and engaging, not just a generic viral hit')
    lines.append("3. The user likely hasn't seen before")
    lines.append(f"4. Has a duration closest to {minutes} minutes")
    lines.append("")
    lines.append("Available videos:")
    for i, c in enumerate(request.candidates, start=1):
        lines.append(f"{i}. Video ID: {c.videoId}")
        lines.append(f"   Title: {c.title}")
        lines.append(f"   Channel: {c.channelName}")
        lines.append(f"   Duration: {c.durationFormatted}")
        lines.append(f"   Description: {c.description[:DESCRIPTION_PREVIEW_CHARS]}...")
        lines.append("")
    lines.append(
        "Select the best video by its videoId and provide tags and a compelling promotional summary."
    )
    lines.append(
        'Return ONLY a valid JSON object of the form: '
        '{"selectedVideoId":"...","tags":["...","...","..."],"promotionalSummary":"..."} '
        "where tags holds 3-5 short keywords describing the video's content that align with the moods, "
        "and promotionalSummary is a single paragraph of 3-4 sentences explaining why this video is "
        "the perfect moment for the user's mood and time."
    )
    return "\n".join(lines)


def parse_selection(raw: Optional[str]) -> OracleSelection:
    try:
        obj = json.loads(raw or "")
    except json.JSONDecodeError as e:
        logger.error(f"Ranking oracle returned invalid JSON. Raw response: {raw!r}")
        raise OracleResponseInvalid("Invalid response from the ranking service. Please try again.") from e
    if not isinstance(obj, dict):
        raise OracleResponseInvalid("Invalid response from the ranking service. Please try again.")
    try:
        return OracleSelection.model_validate(obj)
    except ValidationError as e:
        logger.error(f"Ranking oracle response failed validation: {e}")
        raise OracleResponseInvalid("The ranking service did not select a valid video. Please try again.") from e


def _normalize_tags(tags: List[str], request: RankingRequest) -> List[str]:
    out: List[str] = []
    seen = set()

    def add(tag: str) -> None:
        tag = tag.strip()
        if tag and tag.casefold() not in seen and len(out) < MAX_TAGS:
            seen.add(tag.casefold())
            out.append(tag)

    for tag in tags:
        add(tag)
    if len(out) < MIN_TAGS:
        band = duration_band(request.target_minutes)
        fillers = [search_query_for(m) for m in request.moods]
        fillers += [
            f"{request.target_minutes} min",
            duration_bucket(band.max_seconds).capitalize(),
            "YouTube",
            "Video",
        ]
        for tag in fillers:
            if len(out) >= MIN_TAGS:
                break
            add(tag)
    return out


def reconcile(request: RankingRequest, selection: OracleSelection) -> Reconciliation:
    """
    Bind the oracle's pick back to our own candidate data. An unknown ID does
    not fail the request: the first candidate is used and the outcome is
    flagged as degraded.
    """
    if not request.candidates:
        raise ValueError("reconcile() needs at least one candidate")

    entry = request.lookup(selection.selectedVideoId)
    degraded = entry is None
    if entry is None:
        logger.warning(
            f"Selected video ID {selection.selectedVideoId} not found in candidates. Using first video."
        )
        entry = request.candidates[0]

    summary = (selection.promotionalSummary or "").strip()
    if not summary:
        summary = f"A perfect {request.target_minutes}-minute video for your current mood."

    result = SelectionResult(
        videoId=entry.videoId,
        tags=_normalize_tags(selection.tags, request),
        promotionalSummary=summary,
    )
    return Reconciliation(entry=entry, result=result, degraded=degraded)


class StaticRankingOracle:
    """LLM_PROVIDER=none: deterministic pick of the first candidate."""

    async def select(self, request: RankingRequest) -> OracleSelection:
        first = request.candidates[0]
        logger.info("LLM_PROVIDER=none, bypassing ranking oracle; picking first candidate.")
        return OracleSelection(
            selectedVideoId=first.videoId,
            tags=[search_query_for(m) for m in request.moods],
            promotionalSummary=(
                f"{first.title} from {first.channelName} runs {first.durationFormatted}, "
                f"a good fit for {request.target_minutes} minutes of {', '.join(request.moods)}."
            ),
        )


class OpenAIRankingOracle:
    """
    Ranking oracle backed by an OpenAI-compatible chat completion endpoint
    (OpenAI, Gemini's OpenAI endpoint, Groq, OpenRouter, Ollama, etc.).
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self._settings = settings
        self._client = client or _openai_client(settings)

    async def select(self, request: RankingRequest) -> OracleSelection:
        prompt = build_selection_prompt(request)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            # Try with response_format (OpenAI supports; some providers may not)
            try:
                completion = await self._client.chat.completions.create(
                    model=self._settings.OPENAI_MODEL,
                    messages=messages,
                    temperature=0.8,
                    max_tokens=700,
                    response_format={"type": "json_object"},
                )
            except openai.BadRequestError as rf_err:
                if "response_format" not in str(rf_err):
                    raise
                logger.warning(f"Provider may not support response_format; retrying without it: {rf_err}")
                completion = await self._client.chat.completions.create(
                    model=self._settings.OPENAI_MODEL,
                    messages=messages,
                    temperature=0.8,
                    max_tokens=700,
                )
        except openai.AuthenticationError as e:
            raise OracleRequestError("Ranking service rejected the API key. Please check OPENAI_API_KEY.") from e
        except openai.RateLimitError as e:
            raise OracleRequestError("Ranking service quota exceeded. Please check your API usage limits.") from e
        except openai.APIConnectionError as e:
            raise OracleRequestError("Network error reaching the ranking service. Please try again.") from e
        except openai.APIError as e:
            raise OracleRequestError(f"Ranking service error: {e}") from e

        if not completion.choices:
            raise OracleResponseInvalid("The ranking service returned no answer. Please try again.")
        return parse_selection(completion.choices[0].message.content)


def _openai_client(settings: Settings) -> AsyncOpenAI:
    """
    Build an async OpenAI client, optionally pointing to an OpenAI-compatible base_url.
    """
    kwargs: Dict[str, Any] = {
        "api_key": settings.OPENAI_API_KEY,
        "timeout": settings.REQUESTS_TIMEOUT * 3,
        # failures surface to the caller, who may re-run the whole request
        "max_retries": 0,
    }
    if settings.OPENAI_BASE_URL:
        kwargs["base_url"] = settings.OPENAI_BASE_URL
    return AsyncOpenAI(**kwargs)


def build_oracle(settings: Settings) -> RankingOracle:
    if not settings.oracle_enabled:
        return StaticRankingOracle()
    # Treat other OpenAI-compatible endpoints via OPENAI_BASE_URL as "openai"
    if settings.LLM_PROVIDER.lower() not in ("openai",):
        logger.warning(
            f"LLM_PROVIDER={settings.LLM_PROVIDER} treated as OpenAI-compatible via OPENAI_BASE_URL."
        )
    return OpenAIRankingOracle(settings)
