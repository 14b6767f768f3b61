from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import time
from collections import Counter
from typing import Optional

from core.config import ANALYSIS_MODEL, OPENAI_API_KEY, QA_MODE
from interview_room.models import BufferView, ScoreSnapshot
from interview_room.oracle import openai_oracle
from interview_room.oracle.cache import TTLCache
from interview_room.oracle.prompts import ANALYSIS_PROMPT
from interview_room.scoring import vocabulary as vocab

logger = logging.getLogger("interview_room.scoring.narrative")


def analysis_cache_key(view: BufferView) -> str:
    text = view.human_text
    word_count = len([w for w in text.split() if len(w) > 1])
    avg_emotion = 0
    if view.emotions:
        avg_emotion = int(sum(e.score for e in view.emotions) / len(view.emotions) * 100 + 0.5)
    bucket = int(max(0.0, view.duration_sec) // 30)
    head = re.sub(r"\s", "", text[:50])
    return f"{word_count}_{avg_emotion}_{bucket}_{head}"


def fallback_analysis(view: BufferView) -> str:
    text = view.human_text
    lowered = text.lower()
    minutes = int(max(0.0, view.duration_sec) // 60)
    words = len(text.split())
    detail = "good" if len(text) > 200 else "adequate"
    emotion_line = "Emotion tracking shows varied engagement" if view.emotions else "Limited emotion data available"
    examples = (
        "good use of examples"
        if "example" in lowered or "experience" in lowered
        else "opportunity for more specific examples"
    )
    approach = "thorough" if view.duration_sec > 300 else "concise"
    return (
        "Interview Analysis Summary:\n"
        f"- Duration: {minutes} minutes with {words} words spoken\n"
        f"- Communication demonstrates {detail} detail level\n"
        f"- {emotion_line}\n"
        f"- Response structure shows {examples}\n"
        f"- Overall performance indicates {approach} approach to questions"
    )


def build_analysis_prompt(snapshot: ScoreSnapshot, view: BufferView) -> str:
    text = view.human_text
    sentences = vocab.split_sentences(text)
    words = vocab.extract_words(text)
    avg_len = f"{len(words) / len(sentences):.1f}" if sentences else "0"
    rate = int(len(words) / view.duration_sec * 60 + 0.5) if view.duration_sec > 0 else 0

    if view.emotions:
        top = Counter(e.label for e in view.emotions).most_common(3)
        emotion_summary = "Top emotions: " + ", ".join(f"{label} ({count} times)" for label, count in top)
    else:
        emotion_summary = "No emotion data available"

    technical = vocab.matched_terms(text, vocab.INSIGHT_TECHNICAL_TERMS)
    problem = vocab.matched_terms(text, vocab.INSIGHT_PROBLEM_SOLVING_TERMS)
    return (
        f"Duration: {int(view.duration_sec // 60)}m {int(view.duration_sec % 60)}s\n"
        f"Total words: {len(words)}\n"
        f"Sentences: {len(sentences)} (avg {avg_len} words/sentence)\n"
        f"Speaking rate: {rate} words per minute\n"
        f"{emotion_summary}\n"
        f"Technical terms: {', '.join(technical) or 'None detected'}\n"
        f"Problem-solving language: {', '.join(problem) or 'None detected'}\n"
        f"Computed overall score: {snapshot.overall}\n\n"
        f'Candidate answers excerpt:\n"{text[:2000]}"'
    )


class NarrativeAnalyzer:
    """
    Optional natural-language assessment attached to a snapshot.
    Results are cached by request shape; live calls are rate limited to one
    per window and any failure falls back to a deterministic summary.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        enabled: Optional[bool] = None,
        model: Optional[str] = None,
        rate_limit_sec: float = 60.0,
        timeout_sec: float = 12.0,
        clock=time.monotonic,
    ):
        self.cache = cache or TTLCache(ttl_sec=60.0, max_items=64)
        self.enabled = (bool(OPENAI_API_KEY) and not QA_MODE) if enabled is None else bool(enabled)
        self.model = model or ANALYSIS_MODEL
        self.rate_limit_sec = max(0.0, float(rate_limit_sec))
        self.timeout_sec = max(0.1, float(timeout_sec))
        self._clock = clock
        self._last_call_at: Optional[float] = None

    def _rate_limited(self) -> bool:
        if self._last_call_at is None:
            return False
        return (self._clock() - self._last_call_at) < self.rate_limit_sec

    async def analyze(self, snapshot: ScoreSnapshot, view: BufferView) -> str:
        if not snapshot.has_data:
            return snapshot.analysis or "No data available for analysis"

        if not self.enabled:
            return fallback_analysis(view)

        key = analysis_cache_key(view)
        cached = self.cache.get(key)
        if cached:
            logger.info("Using cached analysis")
            return cached

        if self._rate_limited():
            logger.info("Analysis rate limited, using fallback")
            return fallback_analysis(view)

        self._last_call_at = self._clock()
        try:
            response = await asyncio.wait_for(
                openai_oracle.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": ANALYSIS_PROMPT},
                        {"role": "user", "content": build_analysis_prompt(snapshot, view)},
                    ],
                    temperature=0.4,
                    max_tokens=400,
                ),
                timeout=self.timeout_sec,
            )
            analysis = str(response.choices[0].message.content or "").strip()
        except asyncio.TimeoutError:
            logger.warning("Analysis timeout, using fallback")
            return fallback_analysis(view)
        except Exception as exc:
            logger.warning("Analysis failure, using fallback | err=%s", exc)
            return fallback_analysis(view)

        if not analysis:
            return fallback_analysis(view)
        self.cache.set(key, analysis)
        return analysis

    async def enrich(self, snapshot: ScoreSnapshot, view: BufferView) -> ScoreSnapshot:
        analysis = await self.analyze(snapshot, view)
        return dataclasses.replace(snapshot, analysis=analysis)
