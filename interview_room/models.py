from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import uuid


class Speaker(str, Enum):
    HUMAN = "human"
    AGENT = "agent"


class MachineState(str, Enum):
    LISTENING = "listening"
    AWAITING_REPLY = "awaiting_reply"
    SPEAKING = "speaking"
    MUTE_COOLDOWN = "mute_cooldown"
    ENDED = "ended"


class RecommendationTier(str, Enum):
    STRONG_HIRE = "STRONG_HIRE"
    HIRE = "HIRE"
    LEAN_HIRE = "LEAN_HIRE"
    NO_HIRE = "NO_HIRE"


@dataclass(frozen=True)
class Utterance:
    """
    One unit of recognized speech as delivered by the speech source.
    Only final utterances are considered by the turn-taking machine.
    """
    text: str
    is_final: bool = True
    confidence: float = 1.0
    captured_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class ConversationTurn:
    speaker: Speaker
    text: str
    at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class EmotionSample:
    label: str
    score: float
    at: float = field(default_factory=time.monotonic)

    @property
    def is_valid(self) -> bool:
        return 0.0 <= float(self.score) <= 1.0


@dataclass(frozen=True)
class SubScores:
    communication: int = 0
    confidence: int = 0
    technical_knowledge: int = 0
    problem_solving: int = 0
    emotional_intelligence: int = 0
    articulation: int = 0

    def to_dict(self) -> dict:
        return {
            "communication": self.communication,
            "confidence": self.confidence,
            "technical_knowledge": self.technical_knowledge,
            "problem_solving": self.problem_solving,
            "emotional_intelligence": self.emotional_intelligence,
            "articulation": self.articulation,
        }


@dataclass(frozen=True)
class ScoreSnapshot:
    """
    Immutable, point-in-time score derived from the session buffers.
    A new instance is produced on every computation.
    """
    overall: int
    subscores: SubScores
    insights: tuple[str, ...]
    recommendations: tuple[str, ...]
    recommendation_tier: RecommendationTier
    analysis: str = ""
    word_count: int = 0
    emotion_count: int = 0
    duration_sec: float = 0.0
    computed_at: float = field(default_factory=time.time)

    @property
    def has_data(self) -> bool:
        return self.word_count > 0 or self.emotion_count > 0

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "subscores": self.subscores.to_dict(),
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "recommendation_tier": self.recommendation_tier.value,
            "analysis": self.analysis,
            "word_count": self.word_count,
            "emotion_count": self.emotion_count,
            "duration_sec": round(self.duration_sec, 2),
            "computed_at": self.computed_at,
        }


@dataclass(frozen=True)
class BufferView:
    """
    Read-only copy of the session buffers handed to the scoring engine.
    """
    turns: tuple[ConversationTurn, ...]
    emotions: tuple[EmotionSample, ...]
    duration_sec: float

    @property
    def human_text(self) -> str:
        return " ".join(t.text for t in self.turns if t.speaker == Speaker.HUMAN and t.text).strip()


class SessionState:
    """
    Holds all buffers for ONE interview session.
    The turn log is append-only; emotion samples may arrive at any time.
    """

    def __init__(self, session_id: Optional[str] = None, clock=time.monotonic):
        self.session_id = session_id or str(uuid.uuid4())
        self._clock = clock
        self._turns: list[ConversationTurn] = []
        self._emotions: list[EmotionSample] = []
        self.machine_state = MachineState.LISTENING
        self.started_at = clock()
        self.ended_at: Optional[float] = None

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def emotions(self) -> tuple[EmotionSample, ...]:
        return tuple(self._emotions)

    @property
    def duration_sec(self) -> float:
        end = self.ended_at if self.ended_at is not None else self._clock()
        return max(0.0, end - self.started_at)

    def append_turn(self, turn: ConversationTurn) -> int:
        self._turns.append(turn)
        return len(self._turns)

    def append_emotion(self, sample: EmotionSample) -> int:
        self._emotions.append(sample)
        return len(self._emotions)

    def mark_ended(self) -> None:
        if self.ended_at is None:
            self.ended_at = self._clock()

    def history(self, limit: Optional[int] = None) -> list[ConversationTurn]:
        items = list(self._turns)
        if limit is not None:
            items = items[-max(0, int(limit)):] if limit else []
        return items

    def view(self) -> BufferView:
        return BufferView(
            turns=tuple(self._turns),
            emotions=tuple(self._emotions),
            duration_sec=self.duration_sec,
        )
