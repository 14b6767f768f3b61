from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.config import OPENAI_API_KEY, QA_MODE, TurnTakingSettings, load_settings
from core.logger import log_event
from interview_room.errors import SessionClosedError
from interview_room.interfaces import EmotionSource, ReplyOracle, ReportRenderer, SpeechSink, SpeechSource
from interview_room.models import EmotionSample, ScoreSnapshot, SessionState
from interview_room.oracle.cache import TTLCache
from interview_room.oracle.fallback import FallbackOracle
from interview_room.oracle.openai_oracle import OpenAIReplyOracle
from interview_room.report.renderer import MarkdownReportRenderer
from interview_room.scoring.engine import ScoringEngine
from interview_room.scoring.monitor import LiveScoreMonitor
from interview_room.scoring.narrative import NarrativeAnalyzer
from interview_room.system_metrics import decrement_metric, increment_metric
from interview_room.turn.machine import TurnTakingMachine
from interview_room.turn.plan import InterviewPlan
from interview_room.turn.timers import TimerRegistry

logger = logging.getLogger("interview_room.interview_session")


def build_default_oracle(settings: TurnTakingSettings) -> ReplyOracle:
    if QA_MODE or not OPENAI_API_KEY:
        logger.info("Using fallback reply oracle (qa_mode=%s key_present=%s)", QA_MODE, bool(OPENAI_API_KEY))
        return FallbackOracle()
    cache = TTLCache(ttl_sec=settings.oracle_cache_ttl_sec, max_items=settings.oracle_cache_max_items)
    return OpenAIReplyOracle(cache=cache, timeout_sec=settings.reply_timeout_sec)


class InterviewSession:
    """
    Wires one interview together: turn-taking machine, emotion intake and
    the live score monitor, all sharing one SessionState.
    """

    def __init__(
        self,
        source: SpeechSource,
        sink: SpeechSink,
        oracle: Optional[ReplyOracle] = None,
        emotion_source: Optional[EmotionSource] = None,
        settings: Optional[TurnTakingSettings] = None,
        session_id: Optional[str] = None,
        plan: Optional[InterviewPlan] = None,
        engine: Optional[ScoringEngine] = None,
        narrative: Optional[NarrativeAnalyzer] = None,
    ):
        self.settings = settings or load_settings()
        self.state = SessionState(session_id=session_id)
        self.source = source
        self.machine = TurnTakingMachine(
            source=source,
            sink=sink,
            oracle=oracle or build_default_oracle(self.settings),
            state=self.state,
            settings=self.settings,
            plan=plan,
        )
        self.monitor = LiveScoreMonitor(
            self.state,
            engine=engine,
            settings=self.settings,
            narrative=narrative,
        )
        self.machine.add_turn_listener(self.monitor.notify_growth)
        if emotion_source is not None:
            emotion_source.subscribe(self.add_emotion)

        self.timers = TimerRegistry()
        self.started = False
        self.closed = False
        self.stop_reason: Optional[str] = None
        self._closed_event = asyncio.Event()

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def latest_score(self) -> ScoreSnapshot:
        return self.monitor.latest

    async def start(self, greeting: Optional[str] = None, open_conversation: bool = True) -> None:
        if self.started or self.closed:
            return
        self.started = True
        increment_metric("sessions_started")
        increment_metric("sessions_active")

        self.machine.start()
        self.monitor.start()
        if self.settings.max_interview_sec > 0:
            self.timers.schedule("time_limit", self.settings.max_interview_sec, self._on_time_up)
        log_event("interview_session", "started", self.session_id, questions=len(self.machine.plan.questions))

        if open_conversation:
            await self.machine.open(greeting)

    async def _on_time_up(self) -> None:
        logger.info("Interview time limit reached | session_id=%s limit_sec=%s", self.session_id, self.settings.max_interview_sec)
        await self.stop("time_up")

    async def wait_closed(self) -> Optional[str]:
        await self._closed_event.wait()
        return self.stop_reason

    def add_emotion(self, sample: EmotionSample) -> None:
        if self.closed:
            raise SessionClosedError(self.session_id)
        if not sample.is_valid:
            logger.debug("Emotion sample out of range dropped | label=%s", sample.label)
            return
        self.state.append_emotion(sample)
        increment_metric("emotion_samples_received")
        self.monitor.notify_growth(sample)

    async def stop(self, reason: str = "stop") -> bool:
        if self.closed:
            return False
        self.closed = True
        self.stop_reason = reason

        await self.timers.cancel_all()
        await self.machine.end(reason)
        await self.monitor.stop()

        close = getattr(self.source, "close", None)
        if close is not None:
            await close()

        if self.started:
            decrement_metric("sessions_active")
        increment_metric("sessions_ended")
        log_event("interview_session", "stopped", self.session_id, reason=reason, duration_sec=self.state.duration_sec)
        self._closed_event.set()
        return True

    async def final_snapshot(self) -> ScoreSnapshot:
        return await self.monitor.final_snapshot()

    async def render_report(self, renderer: Optional[ReportRenderer] = None) -> str:
        snapshot = await self.final_snapshot()
        renderer = renderer or MarkdownReportRenderer()
        return renderer.render(snapshot, self.state.turns, self.state.emotions, self.state.duration_sec)
