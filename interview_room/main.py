from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
import asyncio
import logging
import os

from interview_room import __version__
from interview_room.api.ws_interview import router as interview_ws_router
from interview_room.models import BufferView, EmotionSample, ScoreSnapshot
from interview_room.report.renderer import get_renderer
from interview_room.schemas import ScoreRequest, ScoreResponse, SessionScoreResponse
from interview_room.scoring.engine import ScoringEngine, transcript_view
from interview_room.scoring.narrative import NarrativeAnalyzer
from interview_room.session.registry import session_registry
from interview_room.system_metrics import get_metrics_snapshot
from core.config import QA_MODE
from core.logger import configure_logging

configure_logging()

app = FastAPI(title="Interview Room", version=__version__)
logger = logging.getLogger("interview_room.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(interview_ws_router)

scoring_engine = ScoringEngine()
narrative_analyzer = NarrativeAnalyzer()
SESSION_TTL_SEC = max(30.0, float(os.getenv("SESSION_TTL_SEC", "900")))
SESSION_CLEANUP_INTERVAL_SEC = max(1.0, float(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
_session_cleanup_task: asyncio.Task | None = None


def _request_view(body: ScoreRequest) -> BufferView:
    samples = [
        EmotionSample(label=item.emotion, score=item.score, at=float(item.timestamp or 0.0))
        for item in body.emotions
    ]
    return transcript_view(body.transcription, samples, body.duration or 0.0)


async def _score_view(view: BufferView) -> ScoreSnapshot:
    snapshot = scoring_engine.compute(view)
    if snapshot.has_data:
        snapshot = await narrative_analyzer.enrich(snapshot, view)
    return snapshot


@app.get("/healthz")
def healthz():
    return {"status": "ok", "version": __version__, "qa_mode": QA_MODE}


@app.get("/api/metrics")
def metrics():
    _cleanup_sessions()
    return get_metrics_snapshot(extra={"sessions_registered": session_registry.active_count()})


@app.post("/api/score", response_model=ScoreResponse)
async def score_interview(body: ScoreRequest):
    snapshot = await _score_view(_request_view(body))
    return snapshot.to_dict()


@app.post("/api/report")
async def generate_report(body: ScoreRequest, format: str = "markdown"):
    try:
        renderer = get_renderer(format)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    view = _request_view(body)
    snapshot = await _score_view(view)
    content = renderer.render(snapshot, view.turns, view.emotions, view.duration_sec)

    if str(format).strip().lower() == "csv":
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=interview_report.csv"},
        )
    return Response(content=content, media_type="text/markdown")


@app.get("/api/sessions")
def list_sessions(active_only: bool = False):
    _cleanup_sessions()
    items = session_registry.summaries()
    if active_only:
        items = [item for item in items if item["active"]]
    return {"count": len(items), "sessions": items}


@app.get("/api/session/{session_id}/score", response_model=SessionScoreResponse)
def get_session_score(session_id: str):
    item = session_registry.get(session_id)
    if not item:
        raise HTTPException(status_code=404, detail="Session not found")

    session = item["interview_session"]
    return {
        "session_id": session_id,
        "active": bool(item.get("active")),
        "machine_state": session.state.machine_state.value,
        "turn_count": len(session.state.turns),
        "score": session.latest_score.to_dict(),
    }


def _cleanup_sessions() -> int:
    removed = session_registry.cleanup_inactive(SESSION_TTL_SEC)
    narrative_analyzer.cache.purge_expired()
    if removed:
        logger.info("Removed %s inactive sessions", removed)
    return removed


async def _session_cleanup_loop():
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
        _cleanup_sessions()


@app.on_event("startup")
async def startup_handler():
    global _session_cleanup_task
    logger.info(
        "[SYSTEM] startup qa_mode=%s session_ttl_sec=%s cleanup_interval_sec=%s",
        QA_MODE,
        SESSION_TTL_SEC,
        SESSION_CLEANUP_INTERVAL_SEC,
    )
    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")
