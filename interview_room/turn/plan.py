from __future__ import annotations

from threading import Lock
from typing import Optional


DEFAULT_QUESTIONS = (
    "Tell me about yourself and your professional background.",
    "What interests you most about this role?",
    "Describe a challenging project you've worked on recently.",
    "How do you handle working under pressure?",
    "Where do you see yourself in 5 years?",
)

DEFAULT_GREETING = (
    "Hi there! I'm Sarah, and I'll be conducting your interview today. "
    "I'm really excited to get to know you better! Let's start with the first question."
)


class InterviewPlan:
    """
    Ordered list of planned questions.
    Advances by one after every Agent reply and stays on the last question.
    """

    def __init__(self, questions: Optional[tuple[str, ...]] = None):
        items = tuple(str(q).strip() for q in (questions or DEFAULT_QUESTIONS) if str(q or "").strip())
        self.questions = items or DEFAULT_QUESTIONS
        self.index = 0
        self._lock = Lock()

    @property
    def current_question(self) -> str:
        return self.questions[self.index]

    @property
    def next_question(self) -> Optional[str]:
        if self.index < len(self.questions) - 1:
            return self.questions[self.index + 1]
        return None

    def advance(self) -> int:
        with self._lock:
            if self.index < len(self.questions) - 1:
                self.index += 1
            return self.index

    def opening_line(self, greeting: Optional[str] = None) -> str:
        intro = str(greeting if greeting is not None else DEFAULT_GREETING).strip()
        return f"{intro} {self.questions[0]}".strip()

    def context(self) -> dict:
        return {
            "question_index": self.index,
            "current_question": self.current_question,
            "next_question": self.next_question,
            "total_questions": len(self.questions),
            "context": "video interview",
        }
