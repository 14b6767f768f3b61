from __future__ import annotations

import logging
import math
import time
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from interview_room.models import (
    BufferView,
    ConversationTurn,
    EmotionSample,
    RecommendationTier,
    ScoreSnapshot,
    Speaker,
    SubScores,
)
from interview_room.scoring import vocabulary as vocab
from interview_room.scoring.insights import build_insights, build_recommendations, recommendation_tier

logger = logging.getLogger("interview_room.scoring")

NO_DATA_INSIGHT = "No interview data available for analysis"
NO_DATA_RECOMMENDATION = "Complete the interview to receive assessment"


def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


@dataclass(frozen=True)
class TextStats:
    """Word-level statistics of the accumulated human transcript."""
    text: str
    words: tuple[str, ...]
    sentences: tuple[str, ...]
    filler_count: int

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def avg_words_per_sentence(self) -> float:
        return self.word_count / len(self.sentences) if self.sentences else 0.0

    @classmethod
    def from_text(cls, text: str) -> "TextStats":
        cleaned = str(text or "").strip()
        return cls(
            text=cleaned,
            words=tuple(vocab.extract_words(cleaned)),
            sentences=tuple(vocab.split_sentences(cleaned)),
            filler_count=vocab.count_fillers(cleaned),
        )


# -------------------------
# SUB-SCORES
# -------------------------

def communication_score(stats: TextStats) -> int:
    words = stats.word_count
    if words == 0:
        return 0

    if 50 <= words <= 150:
        word_score = min(words / 150 * 45, 45)
    elif 150 < words <= 300:
        word_score = 45 + min((words - 150) / 150 * 35, 35)
    elif words > 300:
        word_score = 75 - min((words - 300) / 200 * 15, 15)
    elif words >= 10:
        word_score = words / 50 * 30
    else:
        word_score = words * 3

    avg_len = stats.avg_words_per_sentence
    if 8 <= avg_len <= 20:
        structure_score = 20
    elif 5 <= avg_len <= 25:
        structure_score = 15
    else:
        structure_score = 5

    unique = {
        w.lower() for w in stats.words
        if len(w) > 2 and w.lower() not in vocab.DIVERSITY_STOPWORDS
    }
    diversity_score = min(len(unique) / words * 60, 20)
    filler_penalty = min(stats.filler_count * 2, 15)

    return clamp_score(word_score + structure_score + diversity_score - filler_penalty)


def confidence_score(samples: Sequence[EmotionSample], raw_count: int, stats: TextStats) -> int:
    if raw_count == 0:
        return 50 if len(stats.text) > 20 else 30
    if not samples:
        return 40

    total = len(samples)
    mean = sum(s.score for s in samples) / total
    confident_ratio = sum(1 for s in samples if s.label.lower() in vocab.CONFIDENT_LABELS) / total
    nervous_ratio = sum(1 for s in samples if s.label.lower() in vocab.NERVOUS_LABELS) / total
    return clamp_score(mean * 50 + confident_ratio * 30 - nervous_ratio * 20)


def technical_score(stats: TextStats) -> int:
    if not stats.text:
        return 0
    technical = len(vocab.matched_terms(stats.text, vocab.TECHNICAL_KEYWORDS))
    methodology = len(vocab.matched_terms(stats.text, vocab.METHODOLOGY_KEYWORDS))
    soft = len(vocab.matched_terms(stats.text, vocab.SOFT_SKILL_KEYWORDS))
    return clamp_score(min(technical * 5, 40) + min(methodology * 8, 30) + min(soft * 5, 30))


def problem_solving_score(stats: TextStats) -> int:
    if not stats.text:
        return 0
    lowered = stats.text.lower()
    indicators = len(vocab.matched_terms(lowered, vocab.PROBLEM_SOLVING_INDICATORS))
    structure = len(vocab.matched_terms(lowered, vocab.STRUCTURED_THINKING_PHRASES))
    examples = sum(vocab.count_term(lowered, phrase) for phrase in vocab.EXAMPLE_PHRASES)
    return clamp_score(min(indicators * 4, 50) + min(structure * 8, 30) + min(examples * 10, 20))


def emotional_intelligence_score(samples: Sequence[EmotionSample], raw_count: int) -> int:
    if raw_count == 0:
        return 50
    if not samples:
        return 40

    scores = [s.score for s in samples]
    mean = sum(scores) / len(scores)
    variance = sum((s - mean) ** 2 for s in scores) / len(scores)
    stability = max(0.0, 50 - variance * 100)
    positive_ratio = sum(1 for s in samples if s.label.lower() in vocab.POSITIVE_LABELS) / len(samples)
    return clamp_score(stability + positive_ratio * 50)


def articulation_score(stats: TextStats) -> int:
    words = stats.word_count
    if words == 0:
        return 0
    filler_penalty = min(stats.filler_count / words * 100, 40)
    counts = Counter(w.lower() for w in stats.words)
    repeated = sum(1 for c in counts.values() if c > vocab.REPEAT_THRESHOLD)
    repetition_penalty = min(repeated * 5, 20)
    return clamp_score(80 - filler_penalty - repetition_penalty)


def weighted_overall(subscores: SubScores) -> int:
    values = subscores.to_dict()
    total = sum(values[name] * weight for name, weight in vocab.WEIGHTS.items())
    return clamp_score(total)


def transcript_view(
    transcription: str,
    emotions: Optional[Iterable[EmotionSample]] = None,
    duration_sec: float = 0.0,
) -> BufferView:
    """Wrap a whole submitted transcript as a single Human turn for stateless scoring."""
    text = str(transcription or "").strip()
    turns: tuple[ConversationTurn, ...] = ()
    if text:
        turns = (ConversationTurn(speaker=Speaker.HUMAN, text=text),)
    return BufferView(turns=turns, emotions=tuple(emotions or ()), duration_sec=max(0.0, float(duration_sec or 0.0)))


# -------------------------
# ENGINE
# -------------------------

class ScoringEngine:
    """
    Pure, deterministic scoring over a read-only BufferView.
    Safe to call from a worker thread.
    """

    def empty_snapshot(self, duration_sec: float = 0.0) -> ScoreSnapshot:
        return ScoreSnapshot(
            overall=0,
            subscores=SubScores(),
            insights=(NO_DATA_INSIGHT,),
            recommendations=(NO_DATA_RECOMMENDATION,),
            recommendation_tier=RecommendationTier.NO_HIRE,
            analysis="No data available for analysis",
            duration_sec=max(0.0, float(duration_sec or 0.0)),
        )

    def compute(self, view: BufferView) -> ScoreSnapshot:
        started = time.perf_counter()
        stats = TextStats.from_text(view.human_text)
        raw_samples = tuple(view.emotions)
        samples = tuple(s for s in raw_samples if s.is_valid)
        duration = max(0.0, float(view.duration_sec or 0.0))

        if not stats.text and not raw_samples:
            logger.info("No scorable data, returning empty snapshot")
            return self.empty_snapshot(duration)

        subscores = SubScores(
            communication=communication_score(stats),
            confidence=confidence_score(samples, len(raw_samples), stats),
            technical_knowledge=technical_score(stats),
            problem_solving=problem_solving_score(stats),
            emotional_intelligence=emotional_intelligence_score(samples, len(raw_samples)),
            articulation=articulation_score(stats),
        )
        overall = weighted_overall(subscores)

        snapshot = ScoreSnapshot(
            overall=overall,
            subscores=subscores,
            insights=tuple(build_insights(stats, samples, subscores, duration)),
            recommendations=tuple(build_recommendations(overall, stats, samples, subscores)),
            recommendation_tier=recommendation_tier(overall),
            word_count=stats.word_count,
            emotion_count=len(raw_samples),
            duration_sec=duration,
        )
        logger.info(
            "Score computed | overall=%s words=%s emotions=%s elapsed_ms=%.1f",
            overall,
            stats.word_count,
            len(raw_samples),
            (time.perf_counter() - started) * 1000.0,
        )
        return snapshot

