import pytest

from moment.config import Settings
from moment.schemas import CatalogEntry
from moment.youtube_client import format_duration, parse_duration_seconds


@pytest.fixture
def anyio_backend() -> str:
    # run async tests on asyncio only
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        YOUTUBE_API_KEY="yt-key",
        OPENAI_API_KEY="sk-test",
        LLM_PROVIDER="openai",
    )


@pytest.fixture
def make_entry():
    def _make(video_id: str, duration: str = "PT15M", title: str | None = None, **extra) -> CatalogEntry:
        fields = dict(
            videoId=video_id,
            title=title or f"Video {video_id}",
            channelName=f"Channel {video_id}",
            channelId=f"UC{video_id}",
            duration=duration,
            durationFormatted=format_duration(duration),
            durationSeconds=parse_duration_seconds(duration),
            thumbnailUrl=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
            publishedAt="2024-01-01T00:00:00Z",
            description=f"About {video_id}",
        )
        fields.update(extra)
        return CatalogEntry(**fields)

    return _make


@pytest.fixture
def video_item():
    """Raw /videos API item, as YouTube returns it."""

    def _item(video_id: str, duration: str = "PT15M", **snippet) -> dict:
        return {
            "id": video_id,
            "snippet": {
                "title": snippet.get("title", f"Video {video_id}"),
                "channelTitle": snippet.get("channelTitle", "Some Channel"),
                "channelId": "UC123",
                "description": snippet.get("description", "A description"),
                "publishedAt": "2024-01-01T00:00:00Z",
                "thumbnails": {
                    "default": {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg"},
                    "high": {"url": f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"},
                },
            },
            "contentDetails": {"duration": duration},
            "statistics": {"viewCount": "1234"},
        }

    return _item
