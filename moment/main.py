from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Header, Depends, HTTPException
from fastapi.responses import JSONResponse, HTMLResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from .config import settings
from .duration import MAX_TARGET_MINUTES, MIN_TARGET_MINUTES, TARGET_STEP_MINUTES
from .errors import SuggestionError
from .logger import logger
from .pipeline import SuggestionPipeline, build_pipeline
from .schemas import CatalogEntry, SuggestRequest, SuggestResponse
from .youtube_client import YouTubeClient

MOOD_PRESETS = [
    "Inspired ✨",
    "Nostalgic 🕰️",
    "Curious 🤔",
    "Need a laugh 😂",
    "Learn something 🧠",
    "Relax & Unwind 🧘",
    "Feeling Energetic ⚡",
    "Deep Dive 🤿",
    "Heartwarming ❤️",
    "Mind-Bending 🤯",
    "Adventurous 🗺️",
    "Creative 🎨",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing credentials are fatal at boot, not a per-request error
    settings.require_credentials()
    async with httpx.AsyncClient(timeout=settings.REQUESTS_TIMEOUT) as client:
        app.state.http_client = client
        app.state.pipeline = build_pipeline(settings, client)
        logger.info(f"Pipeline ready (LLM_PROVIDER={settings.LLM_PROVIDER})")
        yield


app = FastAPI(title="moment", version="1.0.0", lifespan=lifespan)

# Prometheus metrics – add middleware BEFORE app starts
try:
    from prometheus_fastapi_instrumentator import Instrumentator
    if not getattr(app.state, "metrics_instrumented", False):
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")
        app.state.metrics_instrumented = True
except Exception as e:
    logger.warning(f"Metrics disabled: {e}")

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])
app.state.limiter = limiter


def get_pipeline(request: Request) -> SuggestionPipeline:
    return request.app.state.pipeline


def get_catalog(request: Request) -> YouTubeClient:
    return YouTubeClient(settings.YOUTUBE_API_KEY, request.app.state.http_client)


def require_api_token(authorization: str = Header(default="")):
    """
    Enforce Bearer token only if API_TOKEN is set.
    - 401 if header missing
    - 403 if token wrong
    """
    expected = settings.API_TOKEN
    if not expected:
        return  # auth disabled if no token set

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")

    token = authorization.split(" ", 1)[1].strip()
    if token != expected:
        raise HTTPException(status_code=403, detail="Invalid token")


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded. Please try again later."})


@app.exception_handler(SuggestionError)
def suggestion_error_handler(request: Request, exc: SuggestionError):
    logger.warning(f"{request.url.path} failed with {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/moods")
async def moods():
    return {
        "moods": MOOD_PRESETS,
        "minutes": {"min": MIN_TARGET_MINUTES, "max": MAX_TARGET_MINUTES, "step": TARGET_STEP_MINUTES, "default": 15},
    }


@app.get("/", response_class=HTMLResponse)
async def index():
    boxes = "\n".join(
        f'  <label><input type="checkbox" name="mood" value="{m}"{" checked" if i == 2 else ""}> {m}</label>'
        for i, m in enumerate(MOOD_PRESETS)
    )
    return f"""
<!doctype html><meta charset="utf-8">
<title>Moment</title>
<style>body{{font-family:system-ui;margin:2rem;max-width:780px}} label{{display:inline-block;margin:.25rem .5rem}} input,button{{padding:.5rem;margin:.25rem}}</style>
<h1>Moment</h1>
<p>Your YouTube discovery companion.</p>
<h3>How much time do you have? <span id="mv">15</span> min</h3>
<input id="minutes" type="range" min="{MIN_TARGET_MINUTES}" max="{MAX_TARGET_MINUTES}" step="{TARGET_STEP_MINUTES}" value="15"
       oninput="document.getElementById('mv').textContent=this.value">
<h3>What's your mood?</h3>
<div>
{boxes}
</div>
<button id="go" onclick="go()">Find my Moment</button>
<pre id="out"></pre>
<script>
async function go(){{
  const moods = [...document.querySelectorAll('input[name=mood]:checked')].map(e => e.value);
  const body = {{moods, minutes: parseInt(document.getElementById('minutes').value, 10)}};
  const headers = {{'Content-Type':'application/json'}};
  const token = localStorage.getItem('apiToken');
  if (token) headers['Authorization'] = 'Bearer ' + token;
  const btn = document.getElementById('go');
  btn.disabled = true;
  try {{
    const r = await fetch('/suggest', {{method:'POST', headers, body: JSON.stringify(body)}});
    document.getElementById('out').textContent = await r.text();
  }} finally {{
    btn.disabled = false;
  }}
}}
</script>
"""


@app.post("/suggest", response_model=SuggestResponse, dependencies=[Depends(require_api_token)])
@limiter.limit(settings.RATE_LIMIT)
async def suggest(req: SuggestRequest, request: Request, pipeline: SuggestionPipeline = Depends(get_pipeline)):
    outcome = await pipeline.get_suggestion(req.moods, req.minutes)
    resp = SuggestResponse(
        suggestion=outcome.suggestion,
        degraded=outcome.degraded,
        source_counts={
            "youtube_candidates": outcome.candidate_count,
            "failed_moods": len(outcome.failed_moods),
        },
    )
    logger.info(f"Responding with {outcome.suggestion.videoId} (degraded={outcome.degraded})")
    return resp


@app.get("/videos/{video_id}", response_model=CatalogEntry, dependencies=[Depends(require_api_token)])
async def video(video_id: str, catalog: YouTubeClient = Depends(get_catalog)):
    return await catalog.fetch_by_id(video_id)
