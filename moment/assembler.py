from .schemas import CatalogEntry, SelectionResult, Suggestion
from .youtube_client import watch_url


def assemble_suggestion(entry: CatalogEntry, result: SelectionResult) -> Suggestion:
    """Verified catalog metadata + oracle-written tags/summary -> final Suggestion."""
    return Suggestion(
        videoId=entry.videoId,
        title=entry.title,
        youtubeUrl=watch_url(entry.videoId),
        thumbnailUrl=entry.thumbnailUrl,
        channelName=entry.channelName,
        duration=entry.durationFormatted,
        tags=list(result.tags),
        promotionalSummary=result.promotionalSummary,
    )
