import re
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from .duration import duration_bucket
from .errors import (
    CatalogRequestError,
    CatalogUnavailable,
    InvalidIdentity,
    NotFound,
)
from .logger import logger
from .schemas import CatalogEntry

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
WATCH_BASE_URL = "https://www.youtube.com/watch"

VIDEO_PARTS = "snippet,contentDetails,statistics"
VIDEO_FIELDS = (
    "items(id,snippet(title,channelTitle,channelId,description,publishedAt,thumbnails),"
    "contentDetails(duration),statistics(viewCount))"
)
# The API caps both search page size and /videos id lists at 50
MAX_PAGE_SIZE = 50
BATCH_SIZE = 50

VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
ISO_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")

UNAVAILABLE_REASONS = {"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "keyInvalid", "forbidden"}


def _duration_parts(iso_duration: str) -> Optional[tuple]:
    match = ISO_DURATION_RE.fullmatch(iso_duration or "")
    if not match:
        return None
    return tuple(int(part or 0) for part in match.groups())


def parse_duration_seconds(iso_duration: str) -> Optional[int]:
    """'PT1H2M3S' -> 3723. None when the string is not a PT#H#M#S duration."""
    parts = _duration_parts(iso_duration)
    if parts is None:
        return None
    hours, minutes, seconds = parts
    return hours * 3600 + minutes * 60 + seconds


def format_duration(iso_duration: str) -> str:
    """'PT14M32S' -> '14:32', 'PT1H2M3S' -> '1:02:03'. Unparsable input gives '0:00'."""
    parts = _duration_parts(iso_duration)
    if parts is None:
        return "0:00"
    hours, minutes, seconds = parts
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def is_valid_video_id(video_id: str) -> bool:
    return bool(VIDEO_ID_RE.match(video_id or ""))


def watch_url(video_id: str) -> str:
    return f"{WATCH_BASE_URL}?v={video_id}"


def _thumbnail_url(thumbnails: Dict[str, Any]) -> str:
    for size in ("high", "medium", "default"):
        thumb = thumbnails.get(size)
        url = thumb.get("url") if isinstance(thumb, dict) else None
        if url:
            return url
    return ""


def _to_entry(item: Dict[str, Any]) -> Optional[CatalogEntry]:
    """Normalize one /videos item. Returns None for items we cannot use."""
    if not isinstance(item, dict):
        return None
    snippet = item.get("snippet")
    details = item.get("contentDetails")
    video_id = item.get("id")
    if not isinstance(snippet, dict) or not isinstance(details, dict) or not isinstance(video_id, str):
        logger.debug(f"Skipping malformed item {video_id!r}")
        return None

    raw_duration = details.get("duration")
    seconds = parse_duration_seconds(raw_duration) if isinstance(raw_duration, str) else None
    if seconds is None:
        logger.debug(f"Skipping {video_id}: unparsable duration {raw_duration!r}")
        return None

    statistics = item.get("statistics")
    view_count = statistics.get("viewCount") if isinstance(statistics, dict) else None
    thumbnails = snippet.get("thumbnails")
    try:
        return CatalogEntry(
            videoId=video_id,
            title=snippet.get("title") or "",
            channelName=snippet.get("channelTitle") or "",
            channelId=snippet.get("channelId") or "",
            duration=raw_duration,
            durationFormatted=format_duration(raw_duration),
            durationSeconds=seconds,
            thumbnailUrl=_thumbnail_url(thumbnails) if isinstance(thumbnails, dict) else "",
            publishedAt=snippet.get("publishedAt"),
            description=snippet.get("description") or "",
            viewCount=int(view_count) if str(view_count or "").isdigit() else None,
        )
    except ValidationError as e:
        logger.debug(f"Skipping {video_id}: {e}")
        return None


class YouTubeClient:
    """Thin async wrapper over the YouTube Data API v3 search and videos endpoints."""

    def __init__(self, api_key: str, http_client: httpx.AsyncClient):
        if not api_key:
            raise ValueError("YouTube API key is required when initialising YouTubeClient")
        self._api_key = api_key
        self._client = http_client

    async def search(
        self,
        query: str,
        max_results: int = 20,
        min_seconds: int | None = None,
        max_seconds: int | None = None,
    ) -> List[CatalogEntry]:
        """
        Search videos by free text and keep those whose duration lies in
        [min_seconds, max_seconds]. Over-fetches so the duration filter still
        leaves up to `max_results` entries; relevance order is preserved.
        """
        params = {
            "q": query,
            "part": "snippet",
            "type": "video",
            "maxResults": min(max_results * 2, MAX_PAGE_SIZE),
            "videoDuration": duration_bucket(max_seconds),
            "order": "relevance",
        }
        data = await self._get(YOUTUBE_SEARCH_URL, params)
        hits = data.get("items")
        video_ids = []
        for it in hits if isinstance(hits, list) else []:
            hit_id = it.get("id") if isinstance(it, dict) else None
            vid = hit_id.get("videoId") if isinstance(hit_id, dict) else None
            if isinstance(vid, str) and vid:
                video_ids.append(vid)
        if not video_ids:
            logger.info(f"YouTube search returned no videos for query='{query}'")
            return []

        details = await self._fetch_videos(video_ids)
        results: List[CatalogEntry] = []
        skipped = 0
        for item in details:
            entry = _to_entry(item)
            if entry is None:
                skipped += 1
                continue
            if min_seconds is not None and entry.durationSeconds < min_seconds:
                continue
            if max_seconds is not None and entry.durationSeconds > max_seconds:
                continue
            results.append(entry)
            if len(results) >= max_results:
                break

        logger.info(
            f"YouTube search query='{query}' hits={len(video_ids)} kept={len(results)} skipped={skipped}"
        )
        return results

    async def fetch_by_id(self, video_id: str) -> CatalogEntry:
        if not is_valid_video_id(video_id):
            raise InvalidIdentity(
                f"Invalid video ID format: {video_id}. YouTube video IDs must be exactly 11 characters."
            )
        try:
            items = await self._fetch_videos([video_id])
        except CatalogRequestError as e:
            if e.status == 404:
                raise NotFound(f"Video not found: {video_id}. It may have been deleted or made private.") from e
            raise

        entries = [entry for entry in map(_to_entry, items) if entry is not None]
        if not entries:
            raise NotFound(f"Video not found: {video_id}. It may have been deleted, made private, or the ID is incorrect.")
        return entries[0]

    async def fetch_batch(self, video_ids: Sequence[str]) -> List[CatalogEntry]:
        """Best-effort bulk lookup. IDs that do not resolve are left out; a failed chunk is skipped."""
        results: List[CatalogEntry] = []
        for start in range(0, len(video_ids), BATCH_SIZE):
            chunk = list(video_ids[start:start + BATCH_SIZE])
            try:
                items = await self._fetch_videos(chunk)
            except (CatalogRequestError, CatalogUnavailable) as e:
                logger.warning(f"Batch lookup failed for chunk starting at index {start}: {e}")
                continue
            results.extend(entry for entry in map(_to_entry, items) if entry is not None)
        return results

    async def _fetch_videos(self, video_ids: Sequence[str]) -> List[Dict[str, Any]]:
        params = {
            "id": ",".join(video_ids),
            "part": VIDEO_PARTS,
            "fields": VIDEO_FIELDS,
        }
        data = await self._get(YOUTUBE_VIDEOS_URL, params)
        items = data.get("items")
        return items if isinstance(items, list) else []

    async def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = await self._client.get(url, params={**params, "key": self._api_key})
        except httpx.HTTPError as e:
            raise CatalogRequestError(f"Network error talking to YouTube: {e}") from e

        if r.status_code >= 400:
            self._raise_for_error(r)

        try:
            data = r.json()
        except ValueError as e:
            raise CatalogRequestError("YouTube returned a malformed response", status=r.status_code) from e
        if not isinstance(data, dict):
            raise CatalogRequestError("YouTube returned a malformed response", status=r.status_code)
        return data

    @staticmethod
    def _raise_for_error(r: httpx.Response) -> None:
        message = f"HTTP {r.status_code}: {r.reason_phrase}"
        reasons: set = set()
        try:
            error = r.json().get("error") or {}
            message = error.get("message") or message
            reasons = {e.get("reason") for e in error.get("errors") or [] if isinstance(e, dict)}
        except (ValueError, AttributeError):
            pass

        if r.status_code in (401, 403) or reasons & UNAVAILABLE_REASONS:
            raise CatalogUnavailable(
                "YouTube API quota exceeded or API key invalid. Please check your API key and quota."
            )
        raise CatalogRequestError(f"YouTube API error: {message}", status=r.status_code)
