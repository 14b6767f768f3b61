"""
Fixed keyword vocabularies and label sets used by the scoring engine.
Scoring is keyword based on purpose: deterministic and testable.
"""

from __future__ import annotations

import re
from functools import lru_cache

WEIGHTS = {
    "communication": 0.25,
    "confidence": 0.20,
    "technical_knowledge": 0.20,
    "problem_solving": 0.15,
    "emotional_intelligence": 0.10,
    "articulation": 0.10,
}

FILLER_WORDS = ("um", "uh", "like", "you know", "basically", "actually", "literally")

DIVERSITY_STOPWORDS = frozenset({"the", "and", "but", "for", "are", "that", "this", "was"})

CONFIDENT_LABELS = frozenset({"confident", "happy", "positive", "calm"})
NERVOUS_LABELS = frozenset({"nervous", "worried", "sad", "anxious"})
POSITIVE_LABELS = frozenset({"happy", "confident", "positive", "calm", "focused"})
# recommendations only look at outright anxiety, not sadness
ANXIOUS_LABELS = frozenset({"nervous", "worried", "anxious"})

TECHNICAL_KEYWORDS = (
    "project", "experience", "technology", "system", "development", "design",
    "implementation", "solution", "framework", "database", "api", "architecture",
    "algorithm", "optimization", "testing", "deployment", "cloud", "security",
)

METHODOLOGY_KEYWORDS = (
    "agile", "scrum", "waterfall", "ci/cd", "devops", "version control",
    "git", "docker", "kubernetes", "microservices", "mvc", "rest",
)

SOFT_SKILL_KEYWORDS = (
    "team", "collaboration", "leadership", "communication", "problem-solving",
    "analytical", "creative", "innovative", "adaptable", "learning",
)

PROBLEM_SOLVING_INDICATORS = (
    "challenge", "problem", "solution", "approach", "analyze", "evaluate",
    "consider", "alternative", "option", "strategy", "method", "process",
    "step", "first", "then", "finally", "because", "therefore", "result",
)

STRUCTURED_THINKING_PHRASES = (
    "first of all", "to begin with", "next", "furthermore", "in addition",
    "on the other hand", "however", "therefore", "as a result", "in conclusion",
)

EXAMPLE_PHRASES = ("for example", "such as", "instance", "specifically")

# Narrower lists used only in insight wording
INSIGHT_TECHNICAL_TERMS = (
    "project", "system", "development", "technology", "framework",
    "database", "api", "solution", "implementation",
)
INSIGHT_PROBLEM_SOLVING_TERMS = (
    "challenge", "problem", "solution", "approach", "analyze", "strategy", "method",
)

REPEAT_THRESHOLD = 3

_WORD_RE = re.compile(r"[a-zA-Z][a-zA-Z'-]+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@lru_cache(maxsize=512)
def keyword_pattern(term: str, plural: bool = True) -> re.Pattern:
    """
    Whole-word pattern for a keyword or phrase. Single words also match a
    plural suffix so "projects" counts as "project".
    """
    escaped = re.escape(term.lower())
    if plural and " " not in term and term.isalpha():
        escaped += r"(?:s|es)?"
    return re.compile(r"(?<!\w)" + escaped + r"(?!\w)")


def contains_term(text: str, term: str) -> bool:
    return keyword_pattern(term).search(text) is not None


def count_term(text: str, term: str) -> int:
    return len(keyword_pattern(term).findall(text))


def matched_terms(text: str, terms) -> list[str]:
    lowered = str(text or "").lower()
    return [term for term in terms if contains_term(lowered, term)]


def extract_words(text: str) -> list[str]:
    return _WORD_RE.findall(str(text or ""))


def split_sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(str(text or "")) if len(s.strip()) > 5]


def count_fillers(text: str) -> int:
    lowered = str(text or "").lower()
    return sum(len(keyword_pattern(filler, plural=False).findall(lowered)) for filler in FILLER_WORDS)
