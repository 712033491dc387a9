from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from .duration import MAX_TARGET_MINUTES, MIN_TARGET_MINUTES, TARGET_STEP_MINUTES


class CatalogEntry(BaseModel):
    """Snapshot of one video's metadata as returned by the catalog at fetch time."""

    model_config = ConfigDict(frozen=True)

    videoId: str
    title: str
    channelName: str
    channelId: str = ""
    duration: str = Field(..., description="Raw ISO-8601 duration, e.g. 'PT14M32S'")
    durationFormatted: str = Field(..., description="Human-readable duration, e.g. '14:32'")
    durationSeconds: int
    thumbnailUrl: str = ""
    publishedAt: Optional[str] = None
    description: str = ""
    viewCount: Optional[int] = None


class SelectionResult(BaseModel):
    videoId: str
    tags: List[str] = Field(..., min_length=3, max_length=5)
    promotionalSummary: str


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    videoId: str
    title: str
    youtubeUrl: str
    thumbnailUrl: str
    channelName: str
    duration: str
    tags: List[str] = []
    promotionalSummary: str


class SuggestRequest(BaseModel):
    moods: List[str] = Field(..., min_length=1, max_length=12, description="Mood labels (e.g., 'Curious', 'Need a laugh')")
    minutes: int = Field(
        15,
        ge=MIN_TARGET_MINUTES,
        le=MAX_TARGET_MINUTES,
        multiple_of=TARGET_STEP_MINUTES,
        description="Target duration in minutes",
    )


class SuggestResponse(BaseModel):
    suggestion: Suggestion
    degraded: bool = Field(False, description="True when the ranking oracle's pick could not be honoured")
    source_counts: dict
