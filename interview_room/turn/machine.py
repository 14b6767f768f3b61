from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from core.config import TurnTakingSettings
from core.logger import configure_logging, log_event
from interview_room.errors import InvalidTransitionError, ReplyOracleError
from interview_room.interfaces import ReplyOracle, SpeechSink, SpeechSource
from interview_room.models import ConversationTurn, MachineState, SessionState, Speaker, Utterance
from interview_room.oracle.fallback import FallbackReplies
from interview_room.system_metrics import increment_metric, observe_reply_latency_ms
from interview_room.transcript.echo_filter import EchoFilter
from interview_room.transcript.normalizer import normalize_utterance
from interview_room.turn.completion import CompletionHeuristic
from interview_room.turn.plan import InterviewPlan
from interview_room.turn.timers import TimerRegistry

configure_logging()

logger = logging.getLogger("interview_room.turn_machine")

COMPLETION_TIMER = "completion"
COOLDOWN_TIMER = "cooldown"

_ALLOWED_TRANSITIONS: dict[MachineState, set[MachineState]] = {
    MachineState.LISTENING: {MachineState.AWAITING_REPLY, MachineState.ENDED},
    MachineState.AWAITING_REPLY: {MachineState.SPEAKING, MachineState.LISTENING, MachineState.ENDED},
    MachineState.SPEAKING: {MachineState.MUTE_COOLDOWN, MachineState.ENDED},
    MachineState.MUTE_COOLDOWN: {MachineState.LISTENING, MachineState.ENDED},
    MachineState.ENDED: set(),
}

TurnListener = Callable[[ConversationTurn], None]


class TurnTakingMachine:
    """
    Owns the conversation turn log and decides when the Agent speaks.

    LISTENING -> AWAITING_REPLY -> SPEAKING -> MUTE_COOLDOWN -> LISTENING,
    and any state -> ENDED on stop. Only one reply is ever in flight: the
    LISTENING -> AWAITING_REPLY step is a check-and-set under an asyncio.Lock.
    The machine is the only caller of source.start()/stop().
    """

    def __init__(
        self,
        source: SpeechSource,
        sink: SpeechSink,
        oracle: ReplyOracle,
        state: Optional[SessionState] = None,
        settings: Optional[TurnTakingSettings] = None,
        echo_filter: Optional[EchoFilter] = None,
        heuristic: Optional[CompletionHeuristic] = None,
        fallback: Optional[FallbackReplies] = None,
        plan: Optional[InterviewPlan] = None,
        history_limit: int = 6,
    ):
        self.settings = settings or TurnTakingSettings()
        self.source = source
        self.sink = sink
        self.oracle = oracle
        self.session = state or SessionState()
        self.echo_filter = echo_filter or EchoFilter(self.settings)
        self.heuristic = heuristic or CompletionHeuristic(self.settings)
        self.fallback = fallback or FallbackReplies()
        self.plan = plan or InterviewPlan()
        self.history_limit = max(0, int(history_limit))

        self.lock = asyncio.Lock()
        self.timers = TimerRegistry()
        self._pending_human: list[str] = []
        self._deferred: list[str] = []
        self._listeners: list[TurnListener] = []
        self._started = False
        self.reply_task: Optional[asyncio.Task] = None

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def state(self) -> MachineState:
        return self.session.machine_state

    @property
    def pending_human_text(self) -> str:
        return " ".join(self._pending_human).strip()

    @property
    def deferred_count(self) -> int:
        return len(self._deferred)

    def add_turn_listener(self, listener: TurnListener) -> None:
        self._listeners.append(listener)

    # -------------------------
    # TRANSITIONS
    # -------------------------

    def _transition(self, target: MachineState, reason: str) -> None:
        current = self.session.machine_state
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current, target)
        self.session.machine_state = target
        logger.info(f"[SESSION {self.session_id}] Transition {current.value} → {target.value} | reason={reason}")
        log_event("turn_machine", "transition", self.session_id, source=current.value, target=target.value, reason=reason)

    def _append_turn(self, speaker: Speaker, text: str) -> ConversationTurn:
        turn = ConversationTurn(speaker=speaker, text=text)
        self.session.append_turn(turn)
        for listener in list(self._listeners):
            try:
                listener(turn)
            except Exception:
                logger.exception("Turn listener failed")
        return turn

    # -------------------------
    # LIFECYCLE
    # -------------------------

    def start(self) -> None:
        if self._started or self.state == MachineState.ENDED:
            return
        self._started = True
        self.source.subscribe(self.handle_utterance)
        self.source.start()
        log_event("turn_machine", "started", self.session_id)

    async def open(self, greeting: Optional[str] = None) -> bool:
        """
        Speak the opening line (greeting plus first planned question).
        Goes through the same exclusion as a reply; returns False if another
        reply is already in flight.
        """
        if not await self.try_begin_reply("open"):
            return False
        text = self.plan.opening_line(greeting)
        self.reply_task = self.timers.create_task(self._speak(text))
        return self.reply_task is not None

    async def end(self, reason: str = "stop") -> bool:
        if self.state == MachineState.ENDED:
            return False

        self._transition(MachineState.ENDED, reason)
        self.session.mark_ended()
        self._pending_human.clear()
        self._deferred.clear()
        self.echo_filter.clear()

        try:
            self.sink.cancel_all()
        except Exception as exc:
            logger.warning("Sink cancel failed | session=%s err=%s", self.session_id, exc)
        self.source.stop()
        await self.timers.cancel_all()

        log_event("turn_machine", "ended", self.session_id, reason=reason, turns=len(self.session.turns))
        return True

    # -------------------------
    # INPUT
    # -------------------------

    async def handle_utterance(self, utterance: Utterance) -> None:
        if self.state == MachineState.ENDED:
            return

        if not utterance.is_final:
            logger.debug("Interim utterance ignored")
            return

        normalized = normalize_utterance(utterance.text)
        if not normalized:
            logger.debug("Empty utterance dropped")
            return

        analysis = self.echo_filter.evaluate(normalized, utterance.captured_at)
        if not analysis.accepted:
            if analysis.reason == "duplicate":
                increment_metric("duplicates_rejected")
            elif analysis.reason == "echo":
                increment_metric("echoes_rejected")
            log_event(
                "echo_filter",
                "utterance_rejected",
                self.session_id,
                reason=analysis.reason,
                match_ratio=analysis.match_ratio,
                sequence_match=analysis.sequence_match,
                text=normalized,
            )
            return

        if self.state != MachineState.LISTENING:
            # flushed as Human turns once LISTENING resumes
            self._deferred.append(normalized)
            logger.info("Utterance deferred | state=%s pending=%s", self.state.value, len(self._deferred))
            return

        self._accept_human(normalized)

    def _accept_human(self, text: str) -> None:
        self._append_turn(Speaker.HUMAN, text)
        self._pending_human.append(text)
        self._schedule_completion()

    def _schedule_completion(self) -> None:
        if self.state != MachineState.LISTENING:
            return

        decision = self.heuristic.classify(self.pending_human_text)
        if not decision.should_schedule:
            self.timers.cancel(COMPLETION_TIMER)
            logger.debug("Completion incomplete | chars=%s", len(self.pending_human_text))
            return

        self.timers.schedule(COMPLETION_TIMER, decision.delay_sec, self._on_completion_timer)
        log_event(
            "turn_machine",
            "completion_scheduled",
            self.session_id,
            level=decision.level.value,
            delay_sec=decision.delay_sec,
        )

    async def _on_completion_timer(self) -> None:
        await self.trigger_reply("completion_timer")

    # -------------------------
    # REPLY
    # -------------------------

    async def try_begin_reply(self, reason: str) -> bool:
        async with self.lock:
            if self.state != MachineState.LISTENING:
                increment_metric("overlapping_triggers_ignored")
                logger.info(
                    f"[SESSION {self.session_id}] Reply trigger ignored (state={self.state.value}) | reason={reason}"
                )
                return False

            self.timers.cancel(COMPLETION_TIMER)
            self._transition(MachineState.AWAITING_REPLY, reason)
            return True

    async def trigger_reply(self, reason: str = "manual") -> bool:
        if not await self.try_begin_reply(reason):
            return False

        human_text = self.pending_human_text
        self._pending_human.clear()
        self.reply_task = self.timers.create_task(self._run_reply(human_text))
        return self.reply_task is not None

    async def _run_reply(self, human_text: str) -> None:
        started = time.monotonic()
        history = self.session.history(self.history_limit)
        context = self.plan.context()

        try:
            reply = await asyncio.wait_for(
                self.oracle.generate_reply(human_text, history, context),
                timeout=self.settings.reply_timeout_sec,
            )
            reply = str(reply or "").strip()
            if not reply:
                raise ReplyOracleError("empty reply")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            increment_metric("oracle_fallbacks")
            logger.warning("Reply oracle failed, using fallback | session=%s err=%s", self.session_id, exc)
            reply = self.fallback.next_reply()

        observe_reply_latency_ms((time.monotonic() - started) * 1000.0)
        if self.state != MachineState.AWAITING_REPLY:
            return

        increment_metric("replies_generated")
        self.plan.advance()
        await self._speak(reply)

    async def _speak(self, text: str) -> None:
        self._transition(MachineState.SPEAKING, "reply_ready")
        self.source.stop()
        self.echo_filter.set_agent_context(text)
        self._append_turn(Speaker.AGENT, text)

        try:
            await self.sink.speak(text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            increment_metric("synthesis_errors")
            logger.warning("Speech synthesis failed, treating as complete | session=%s err=%s", self.session_id, exc)

        if self.state != MachineState.SPEAKING:
            return

        self.echo_filter.mark_agent_finished()
        self._transition(MachineState.MUTE_COOLDOWN, "playback_finished")
        self.timers.schedule(COOLDOWN_TIMER, self.settings.mute_cooldown_sec, self._resume_listening)

    async def _resume_listening(self) -> None:
        if self.state != MachineState.MUTE_COOLDOWN:
            return

        self._transition(MachineState.LISTENING, "cooldown_elapsed")
        self.source.start()

        deferred = list(self._deferred)
        self._deferred.clear()
        for text in deferred:
            self._append_turn(Speaker.HUMAN, text)
            self._pending_human.append(text)
        if deferred:
            self._schedule_completion()
