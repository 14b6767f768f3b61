from __future__ import annotations

from threading import Lock
from typing import Optional


FALLBACK_REPLIES = (
    "I'd like to dig deeper into that. Can you walk me through a specific example with concrete details about the situation and your role?",
    "That's a good start, but I need more specifics. What exact challenges did you face and how did you measure your success?",
    "I appreciate that overview. Now let's get into the details. What was your specific contribution and what were the measurable outcomes?",
    "That gives me a general sense, but I'd like to understand your process better. Can you break down your approach step by step?",
    "Thanks for sharing that. To better assess your experience, can you provide specific metrics or results?",
)


class FallbackReplies:
    """
    Canned probing replies used whenever the oracle fails.
    Rotates in order so consecutive fallbacks never repeat.
    """

    def __init__(self, replies: Optional[tuple[str, ...]] = None):
        self.replies = tuple(r for r in (replies or FALLBACK_REPLIES) if str(r or "").strip()) or FALLBACK_REPLIES
        self._index = 0
        self._lock = Lock()

    def next_reply(self) -> str:
        with self._lock:
            reply = self.replies[self._index % len(self.replies)]
            self._index += 1
            return reply


class FallbackOracle:
    """ReplyOracle that never calls out; used in QA mode and when no API key is configured."""

    def __init__(self, replies: Optional[FallbackReplies] = None):
        self.replies = replies or FallbackReplies()

    async def generate_reply(self, human_text, history, context) -> str:
        return self.replies.next_reply()
