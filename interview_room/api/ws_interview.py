import asyncio
import json
import logging
import time
import uuid

from fastapi import APIRouter, WebSocket

from core.config import load_settings
from core.logger import log_event
from interview_room.api.adapters import WebSocketOutbox, WebSocketSpeechSink, WebSocketSpeechSource
from interview_room.channels import QueueEmotionSource
from interview_room.models import EmotionSample, ScoreSnapshot, Utterance
from interview_room.scoring.narrative import NarrativeAnalyzer
from interview_room.session.interview import InterviewSession
from interview_room.session.registry import session_registry

logger = logging.getLogger("interview_room.ws_interview")

router = APIRouter()

MAX_WS_TEXT_BYTES = 64 * 1024


def _to_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_flag(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off", ""}


@router.websocket("/ws/interview")
async def interview_ws(websocket: WebSocket):
    session_id = str(uuid.uuid4())
    open_conversation = str(websocket.query_params.get("greeting") or "true").strip().lower() != "false"

    await websocket.accept()

    settings = load_settings()
    outbox = WebSocketOutbox(websocket)
    outbox.start()
    source = WebSocketSpeechSource(outbox)
    sink = WebSocketSpeechSink(outbox, playback_timeout_sec=settings.playback_timeout_sec)
    emotions = QueueEmotionSource()
    session = InterviewSession(
        source=source,
        sink=sink,
        emotion_source=emotions,
        settings=settings,
        session_id=session_id,
        narrative=NarrativeAnalyzer(),
    )

    def _log_event(event: str, **fields):
        log_event("ws_interview", event, session_id, **fields)

    async def _publish_score(snapshot: ScoreSnapshot) -> None:
        outbox.post({"type": "score", "session_id": session_id, "score": snapshot.to_dict()})

    session.monitor.subscribe(_publish_score)
    session_registry.register(session_id, session)
    outbox.post({"type": "session", "session_id": session_id, "questions": list(session.machine.plan.questions)})
    _log_event("connect")

    stop_reason = "other"
    closed_waiter = asyncio.create_task(session.wait_closed())
    try:
        await session.start(open_conversation=open_conversation)

        while True:
            receive_task = asyncio.create_task(websocket.receive())
            done, _ = await asyncio.wait({receive_task, closed_waiter}, return_when=asyncio.FIRST_COMPLETED)
            if receive_task not in done:
                # session ended on its own (time limit)
                receive_task.cancel()
                await asyncio.gather(receive_task, return_exceptions=True)
                stop_reason = session.stop_reason or "other"
                break
            msg = receive_task.result()
            if msg["type"] == "websocket.disconnect":
                stop_reason = "client_disconnect"
                break

            text_payload = str(msg.get("text") or "")
            if not text_payload:
                continue
            if len(text_payload.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                logger.warning("WS message too large | session_id=%s", session_id)
                outbox.post({"type": "error", "detail": "message too large"})
                continue

            try:
                payload = json.loads(text_payload)
            except json.JSONDecodeError:
                outbox.post({"type": "error", "detail": "invalid json"})
                continue
            if not isinstance(payload, dict):
                outbox.post({"type": "error", "detail": "invalid message"})
                continue

            session_registry.touch(session_id)
            payload_type = str(payload.get("type") or "").strip().lower()
            _log_event("message_received", message_type=payload_type or "unknown")

            if payload_type == "utterance":
                source.push(Utterance(
                    text=str(payload.get("text") or ""),
                    is_final=_to_flag(payload.get("is_final"), True),
                    confidence=max(0.0, min(1.0, _to_float(payload.get("confidence"), 1.0))),
                    captured_at=time.monotonic(),
                ))
            elif payload_type == "emotion":
                label = str(payload.get("label") or payload.get("emotion") or "").strip()
                emotions.push(EmotionSample(label=label, score=_to_float(payload.get("score"), -1.0)))
            elif payload_type == "playback_finished":
                speech_id = payload.get("id")
                if speech_id is not None and not isinstance(speech_id, int):
                    outbox.post({"type": "error", "detail": "invalid speech id"})
                    continue
                sink.playback_finished(speech_id)
            elif payload_type == "ping":
                outbox.post({"type": "pong", "session_id": session_id, "ts": time.time()})
            elif payload_type == "stop":
                stop_reason = "stop_command"
                break
            else:
                outbox.post({"type": "error", "detail": f"unknown message type: {payload_type or 'missing'}"})
    except Exception:
        stop_reason = "error"
        logger.exception("Interview socket failed | session_id=%s", session_id)
    finally:
        closed_waiter.cancel()
        await session.stop(stop_reason)
        session_registry.mark_inactive(session_id, reason=stop_reason)
        try:
            snapshot = await session.final_snapshot()
            outbox.post({"type": "ended", "session_id": session_id, "reason": stop_reason, "score": snapshot.to_dict()})
            await outbox.drain()
        finally:
            await outbox.close()
            _log_event("disconnect", reason=stop_reason, turns=len(session.state.turns))
