import pytest

from moment.duration import duration_band
from moment.errors import InvalidInput, NoCandidates, OracleResponseInvalid
from moment.llm_client import OracleSelection, RankingRequest
from moment.pipeline import SuggestionPipeline, normalize_moods
from moment.youtube_client import parse_duration_seconds


class FakeCatalog:
    def __init__(self, by_query: dict, verified: list | None = None):
        self.by_query = by_query
        self.verified = verified
        self.searches: list[tuple] = []
        self.batches: list[list[str]] = []

    async def search(self, query, max_results=20, min_seconds=None, max_seconds=None):
        self.searches.append((query, max_results, min_seconds, max_seconds))
        return [
            e for e in self.by_query.get(query, [])
            if min_seconds <= e.durationSeconds <= max_seconds
        ][:max_results]

    async def fetch_batch(self, video_ids):
        self.batches.append(list(video_ids))
        return list(self.verified or [])


class StubOracle:
    """Deterministic stand-in for the ranking oracle."""

    def __init__(self, pick=None, tags=("Science", "Wonder", "Physics"), summary="Worth your time."):
        self.pick = pick
        self.tags = list(tags)
        self.summary = summary
        self.requests: list[RankingRequest] = []

    async def select(self, request: RankingRequest) -> OracleSelection:
        self.requests.append(request)
        pick = self.pick or request.candidates[-1].videoId
        return OracleSelection(selectedVideoId=pick, tags=self.tags, promotionalSummary=self.summary)


@pytest.fixture
def curious_catalog(make_entry) -> FakeCatalog:
    durations = ["PT12M", "PT14M5S", "PT15M", "PT18M", "PT21M", "PT25M", "PT29M59S", "PT30M"]
    entries = [make_entry(f"cur{i:08d}", d) for i, d in enumerate(durations)]
    return FakeCatalog({"Curious": entries + [make_entry("toolong0001", "PT45M")]})


def _minutes(formatted: str) -> float:
    parts = [int(p) for p in formatted.split(":")]
    seconds = 0
    for p in parts:
        seconds = seconds * 60 + p
    return seconds / 60


@pytest.mark.anyio
async def test_curious_fifteen_minutes_end_to_end(test_settings, curious_catalog):
    oracle = StubOracle()
    pipeline = SuggestionPipeline(test_settings, curious_catalog, oracle)

    outcome = await pipeline.get_suggestion(["Curious"], 15)

    assert curious_catalog.searches == [("Curious", 15, 720, 1800)]
    assert len(oracle.requests[0].candidates) == 8
    assert outcome.candidate_count == 8
    assert outcome.degraded is False

    s = outcome.suggestion
    assert s.videoId == "cur00000007"
    assert 3 <= len(s.tags) <= 5
    assert 12 <= _minutes(s.duration) <= 30
    assert s.youtubeUrl == "https://www.youtube.com/watch?v=cur00000007"
    assert s.promotionalSummary == "Worth your time."


@pytest.mark.anyio
async def test_suggestion_duration_lies_in_band(test_settings, curious_catalog):
    pipeline = SuggestionPipeline(test_settings, curious_catalog, StubOracle(pick="cur00000000"))
    outcome = await pipeline.get_suggestion(["Curious"], 15)

    band = duration_band(15)
    entry = next(e for e in curious_catalog.by_query["Curious"] if e.videoId == outcome.suggestion.videoId)
    assert band.contains(parse_duration_seconds(entry.duration))


@pytest.mark.anyio
async def test_unknown_pick_falls_back_to_first_candidate(test_settings, curious_catalog):
    pipeline = SuggestionPipeline(test_settings, curious_catalog, StubOracle(pick="notacandid8"))

    outcome = await pipeline.get_suggestion(["Curious"], 15)

    assert outcome.degraded is True
    assert outcome.suggestion.videoId == "cur00000000"
    assert outcome.suggestion.tags == ["Science", "Wonder", "Physics"]


@pytest.mark.anyio
async def test_dedupe_across_moods_keeps_first_seen(test_settings, make_entry):
    catalog = FakeCatalog(
        {
            "Curious": [make_entry("sharedAAAAA", title="first"), make_entry("aaaaaaaaaaa")],
            "Creative": [make_entry("sharedAAAAA", title="second"), make_entry("bbbbbbbbbbb")],
        }
    )
    oracle = StubOracle(pick="sharedAAAAA")
    outcome = await SuggestionPipeline(test_settings, catalog, oracle).get_suggestion(
        ["Curious 🤔", "Creative 🎨"], 15
    )

    ids = [c.videoId for c in oracle.requests[0].candidates]
    assert ids == ["sharedAAAAA", "aaaaaaaaaaa", "bbbbbbbbbbb"]
    assert outcome.suggestion.title == "first"


@pytest.mark.parametrize(
    "moods,minutes",
    [([], 15), (["  ", ""], 15), (["Curious"], 0), (["Curious"], 3), (["Curious"], 125), (["Curious"], 17)],
)
@pytest.mark.anyio
async def test_invalid_input_rejected_before_any_search(test_settings, curious_catalog, moods, minutes):
    pipeline = SuggestionPipeline(test_settings, curious_catalog, StubOracle())

    with pytest.raises(InvalidInput):
        await pipeline.get_suggestion(moods, minutes)
    assert curious_catalog.searches == []


@pytest.mark.anyio
async def test_no_candidates_propagates(test_settings):
    pipeline = SuggestionPipeline(test_settings, FakeCatalog({}), StubOracle())

    with pytest.raises(NoCandidates):
        await pipeline.get_suggestion(["Curious"], 15)


@pytest.mark.anyio
async def test_oracle_failure_propagates(test_settings, curious_catalog):
    class BrokenOracle:
        async def select(self, request):
            raise OracleResponseInvalid("Invalid response from the ranking service. Please try again.")

    with pytest.raises(OracleResponseInvalid):
        await SuggestionPipeline(test_settings, curious_catalog, BrokenOracle()).get_suggestion(["Curious"], 15)


@pytest.mark.anyio
async def test_verify_selection_uses_fresh_metadata(test_settings, curious_catalog, make_entry):
    fresh = make_entry("cur00000007", "PT30M", title="Renamed upstream")
    curious_catalog.verified = [fresh]
    settings = test_settings.model_copy(update={"VERIFY_SELECTION": True})

    outcome = await SuggestionPipeline(settings, curious_catalog, StubOracle()).get_suggestion(["Curious"], 15)

    assert curious_catalog.batches == [["cur00000007"]]
    assert outcome.suggestion.title == "Renamed upstream"
    assert outcome.degraded is False


@pytest.mark.anyio
async def test_verify_selection_missing_video_is_degraded(test_settings, curious_catalog):
    settings = test_settings.model_copy(update={"VERIFY_SELECTION": True})

    outcome = await SuggestionPipeline(settings, curious_catalog, StubOracle()).get_suggestion(["Curious"], 15)

    assert outcome.degraded is True
    assert outcome.suggestion.videoId == "cur00000007"


def test_normalize_moods_preserves_order():
    assert normalize_moods(["Curious", " Creative ", "Curious", ""]) == ["Curious", "Creative"]
