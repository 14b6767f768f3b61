from __future__ import annotations

from typing import Awaitable, Callable, Protocol, Sequence

from interview_room.models import ConversationTurn, EmotionSample, ScoreSnapshot, Utterance


UtteranceHandler = Callable[[Utterance], Awaitable[None]]
EmotionHandler = Callable[[EmotionSample], None]


class SpeechSource(Protocol):
    """
    Emits Utterance events to a single subscriber, in recognizer arrival order.
    stop() must be safe to call repeatedly.
    """

    def subscribe(self, handler: UtteranceHandler) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


class SpeechSink(Protocol):
    async def speak(self, text: str) -> None:
        """Resolves (or raises) exactly once when playback ends."""
        ...

    def cancel_all(self) -> None:
        ...


class ReplyOracle(Protocol):
    async def generate_reply(
        self,
        human_text: str,
        history: Sequence[ConversationTurn],
        context: dict,
    ) -> str:
        ...


class EmotionSource(Protocol):
    def subscribe(self, handler: EmotionHandler) -> None:
        ...


class ReportRenderer(Protocol):
    def render(
        self,
        snapshot: ScoreSnapshot,
        turns: Sequence[ConversationTurn],
        emotions: Sequence[EmotionSample],
        duration_sec: float,
    ) -> str:
        ...
