from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from core.config import TurnTakingSettings
from interview_room import rules
from interview_room.transcript.normalizer import normalize_utterance

logger = logging.getLogger("interview_room.echo_filter")

_PUNCTUATION_RE = re.compile(r"[^\w\s']")


def tokenize(text: str) -> list[str]:
    cleaned = _PUNCTUATION_RE.sub(" ", str(text or "").lower())
    return [token for token in cleaned.split() if len(token) >= rules.ECHO_MIN_TOKEN_LEN]


@dataclass(frozen=True)
class EchoAnalysis:
    accepted: bool
    reason: str
    match_count: int = 0
    match_ratio: float = 0.0
    sequence_match: bool = False
    elapsed_sec: Optional[float] = None


class EchoFilter:
    """
    Decides whether a final utterance is the system's own voice re-captured
    by the microphone, and drops exact repeats of the previous accepted utterance.

    Agent context is set when the Agent starts speaking and its end time is
    recorded when playback finishes. While the Agent is still speaking the
    elapsed time counts as zero.
    """

    def __init__(self, settings: Optional[TurnTakingSettings] = None, clock=time.monotonic):
        self.settings = settings or TurnTakingSettings()
        self._clock = clock
        self.agent_text: str = ""
        self.agent_finished_at: Optional[float] = None
        self.last_accepted: Optional[str] = None

    # -------------------------
    # AGENT CONTEXT
    # -------------------------

    def set_agent_context(self, text: str) -> None:
        self.agent_text = str(text or "")
        self.agent_finished_at = None
        # the recognizer legitimately repeats short answers across turns
        self.last_accepted = None

    def mark_agent_finished(self, at: Optional[float] = None) -> None:
        self.agent_finished_at = self._clock() if at is None else float(at)

    def clear(self) -> None:
        self.agent_text = ""
        self.agent_finished_at = None
        self.last_accepted = None

    # -------------------------
    # DECISIONS
    # -------------------------

    def _elapsed(self, captured_at: Optional[float]) -> float:
        if self.agent_finished_at is None:
            return 0.0
        now = self._clock() if captured_at is None else float(captured_at)
        return max(0.0, now - self.agent_finished_at)

    def check_echo(self, candidate: str, captured_at: Optional[float] = None) -> EchoAnalysis:
        if not self.agent_text.strip():
            return EchoAnalysis(accepted=True, reason="no_agent_context")

        elapsed = self._elapsed(captured_at)
        if elapsed > self.settings.echo_window_sec:
            return EchoAnalysis(accepted=True, reason="outside_window", elapsed_sec=elapsed)

        candidate_tokens = tokenize(candidate)
        if not candidate_tokens:
            return EchoAnalysis(accepted=True, reason="no_tokens", elapsed_sec=elapsed)

        agent_tokens = set(tokenize(self.agent_text))
        agent_lower = self.agent_text.lower()

        match_count = sum(1 for token in candidate_tokens if token in agent_tokens)
        match_ratio = match_count / len(candidate_tokens)
        sequence_match = any(
            f"{candidate_tokens[i]} {candidate_tokens[i + 1]}" in agent_lower
            for i in range(len(candidate_tokens) - 1)
        )

        s = self.settings
        is_echo = (
            match_ratio > s.echo_high_ratio
            or (sequence_match and match_ratio > s.echo_sequence_ratio)
            or (match_count >= s.echo_short_min_matches and len(candidate_tokens) < s.echo_short_max_tokens)
            or (elapsed < s.echo_early_window_sec and match_ratio > s.echo_early_ratio)
        )

        return EchoAnalysis(
            accepted=not is_echo,
            reason="echo" if is_echo else "distinct",
            match_count=match_count,
            match_ratio=round(match_ratio, 3),
            sequence_match=sequence_match,
            elapsed_sec=elapsed,
        )

    def is_duplicate(self, normalized: str) -> bool:
        return bool(normalized) and normalized == self.last_accepted

    def evaluate(self, candidate: str, captured_at: Optional[float] = None) -> EchoAnalysis:
        """
        Full accept/reject decision. Records the candidate as the last accepted
        utterance when it survives.
        """
        normalized = normalize_utterance(candidate)
        if not normalized:
            return EchoAnalysis(accepted=False, reason="empty")

        if self.is_duplicate(normalized):
            logger.info("Duplicate utterance filtered")
            return EchoAnalysis(accepted=False, reason="duplicate")

        analysis = self.check_echo(normalized, captured_at)
        if not analysis.accepted:
            logger.info(
                "Echo detected | ratio=%.2f sequence=%s matches=%s elapsed=%.2fs",
                analysis.match_ratio,
                analysis.sequence_match,
                analysis.match_count,
                analysis.elapsed_sec or 0.0,
            )
            return analysis

        self.last_accepted = normalized
        return analysis
