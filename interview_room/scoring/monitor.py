from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from core.config import TurnTakingSettings
from core.logger import log_event
from interview_room.models import ScoreSnapshot, SessionState
from interview_room.scoring.engine import ScoringEngine
from interview_room.scoring.narrative import NarrativeAnalyzer
from interview_room.system_metrics import increment_metric, observe_score_compute_ms
from interview_room.turn.timers import TimerRegistry

logger = logging.getLogger("interview_room.scoring.monitor")

SnapshotListener = Callable[[ScoreSnapshot], Awaitable[None]]

GROWTH_TIMER = "growth"


class LiveScoreMonitor:
    """
    Keeps a live ScoreSnapshot for one session.

    Recomputes on a periodic tick and on buffer-growth notifications, the
    latter throttled to one recompute per min interval. The engine runs in a
    worker thread over an immutable BufferView, so emotion appends and
    turn-taking never wait on scoring.
    """

    def __init__(
        self,
        session: SessionState,
        engine: Optional[ScoringEngine] = None,
        settings: Optional[TurnTakingSettings] = None,
        narrative: Optional[NarrativeAnalyzer] = None,
        clock=time.monotonic,
    ):
        self.session = session
        self.engine = engine or ScoringEngine()
        self.settings = settings or TurnTakingSettings()
        self.narrative = narrative
        self._clock = clock
        self._lock = asyncio.Lock()
        self._timers = TimerRegistry()
        self._listeners: list[SnapshotListener] = []
        self.latest: ScoreSnapshot = self.engine.empty_snapshot()
        self.last_computed_at: Optional[float] = None
        self.compute_count = 0
        self.running = False

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self.running or self._timers.closed:
            return
        self.running = True
        self._timers.create_task(self._tick_loop())

    async def stop(self) -> None:
        self.running = False
        await self._timers.cancel_all()

    async def _tick_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.settings.score_interval_sec)
            await self.recompute("tick")

    def notify_growth(self, *_args) -> None:
        """Buffer-growth hook. Accepts and ignores the appended item."""
        if not self.running or self._timers.is_pending(GROWTH_TIMER):
            return

        delay = 0.0
        if self.last_computed_at is not None:
            since = self._clock() - self.last_computed_at
            delay = max(0.0, self.settings.score_min_interval_sec - since)
        self._timers.schedule(GROWTH_TIMER, delay, self._on_growth_timer)

    async def _on_growth_timer(self) -> None:
        await self.recompute("growth")

    async def recompute(self, reason: str = "manual") -> ScoreSnapshot:
        async with self._lock:
            view = self.session.view()
            started = time.perf_counter()
            snapshot = await asyncio.to_thread(self.engine.compute, view)
            observe_score_compute_ms((time.perf_counter() - started) * 1000.0)

            self.latest = snapshot
            self.last_computed_at = self._clock()
            self.compute_count += 1
            increment_metric("score_snapshots_computed")
            log_event(
                "score_monitor",
                "snapshot_computed",
                self.session.session_id,
                reason=reason,
                overall=snapshot.overall,
                words=snapshot.word_count,
                emotions=snapshot.emotion_count,
            )

        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Snapshot listener failed")
        return snapshot

    async def final_snapshot(self) -> ScoreSnapshot:
        """Fresh snapshot with narrative enrichment, for end-of-interview reports."""
        snapshot = await self.recompute("final")
        if self.narrative is None:
            return snapshot
        enriched = await self.narrative.enrich(snapshot, self.session.view())
        self.latest = enriched
        return enriched
