from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.config import TurnTakingSettings
from interview_room import rules

_TERMINAL_PUNCTUATION_RE = re.compile(r"[.!?]['\")\]]*\s*$")


class CompletionLevel(str, Enum):
    DEFINITE = "definite"
    PROBABLE = "probable"
    TENTATIVE = "tentative"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class CompletionDecision:
    level: CompletionLevel
    delay_sec: Optional[float]

    @property
    def should_schedule(self) -> bool:
        return self.delay_sec is not None


def _contains_phrase(text: str, phrase: str) -> bool:
    pattern = r"(?<!\w)" + re.escape(phrase) + r"(?!\w)"
    return re.search(pattern, text) is not None


class CompletionHeuristic:
    """
    Decides how long to wait after accepted speech before replying.
    Evaluated in priority order: definite, probable, tentative.
    """

    def __init__(
        self,
        settings: Optional[TurnTakingSettings] = None,
        closing_phrases: tuple[str, ...] = rules.CLOSING_PHRASES,
        connectives: tuple[str, ...] = rules.MEDIAL_CONNECTIVES,
    ):
        self.settings = settings or TurnTakingSettings()
        self.closing_phrases = tuple(p.lower() for p in closing_phrases)
        self.connectives = tuple(c.lower() for c in connectives)

    def has_terminal_punctuation(self, text: str) -> bool:
        return _TERMINAL_PUNCTUATION_RE.search(text) is not None

    def has_closing_phrase(self, text: str) -> bool:
        lowered = text.lower()
        return any(_contains_phrase(lowered, phrase) for phrase in self.closing_phrases)

    def has_connective(self, text: str) -> bool:
        lowered = text.lower()
        return any(_contains_phrase(lowered, word) for word in self.connectives)

    def classify(self, text: str) -> CompletionDecision:
        s = self.settings
        cleaned = str(text or "").strip()
        length = len(cleaned)

        if length >= s.definite_min_chars and (
            self.has_terminal_punctuation(cleaned) or self.has_closing_phrase(cleaned)
        ):
            return CompletionDecision(CompletionLevel.DEFINITE, s.definite_delay_sec)

        if length >= s.probable_min_chars or (
            length >= s.definite_min_chars and self.has_connective(cleaned)
        ):
            return CompletionDecision(CompletionLevel.PROBABLE, s.probable_delay_sec)

        if length >= s.tentative_min_chars:
            return CompletionDecision(CompletionLevel.TENTATIVE, s.tentative_delay_sec)

        return CompletionDecision(CompletionLevel.INCOMPLETE, None)
