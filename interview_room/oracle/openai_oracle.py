from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Optional, Sequence

from openai import AsyncOpenAI

from core.config import OPENAI_API_KEY, REPLY_MODEL
from interview_room.errors import ReplyOracleError
from interview_room.models import ConversationTurn, Speaker
from interview_room.oracle.cache import TTLCache
from interview_room.oracle.prompts import INTERVIEWER_PROMPT, build_turn_context

logger = logging.getLogger("interview_room.oracle")

client = AsyncOpenAI(api_key=OPENAI_API_KEY or "missing-key")


def _cache_key(human_text: str, context_block: str) -> str:
    raw = f"{context_block}\n{human_text}".strip().lower()
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


class OpenAIReplyOracle:
    """
    ReplyOracle backed by the OpenAI chat completions API.
    Retries with a short backoff, then raises ReplyOracleError; the
    turn-taking machine turns that into a fallback reply.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        cache: Optional[TTLCache] = None,
        timeout_sec: float = 10.0,
        retries: int = 1,
        temperature: float = 0.7,
        max_tokens: int = 160,
    ):
        self.model = model or REPLY_MODEL
        self.cache = cache
        self.timeout_sec = max(0.1, float(timeout_sec))
        self.retries = max(0, int(retries))
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_messages(self, human_text: str, history: Sequence[ConversationTurn], context: dict) -> list[dict]:
        messages = [{"role": "system", "content": INTERVIEWER_PROMPT}]
        context_block = build_turn_context(context)
        if context_block:
            messages.append({"role": "system", "content": context_block})

        for turn in history:
            content = str(turn.text or "").strip()
            if not content:
                continue
            role = "assistant" if turn.speaker == Speaker.AGENT else "user"
            messages.append({"role": role, "content": content})

        messages.append({"role": "user", "content": human_text})
        return messages

    async def generate_reply(self, human_text: str, history: Sequence[ConversationTurn], context: dict) -> str:
        text = str(human_text or "").strip()
        context_block = build_turn_context(context)
        key = _cache_key(text, context_block)

        if self.cache is not None:
            cached = self.cache.get(key)
            if cached:
                logger.info("Reply cache hit")
                return cached

        messages = self.build_messages(text, history, context)

        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                response = await asyncio.wait_for(
                    client.chat.completions.create(
                        model=self.model,
                        messages=messages,
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                    ),
                    timeout=self.timeout_sec,
                )
                reply = str(response.choices[0].message.content or "").strip()
                if not reply:
                    raise ReplyOracleError("empty completion")
                if self.cache is not None:
                    self.cache.set(key, reply)
                return reply
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("generate_reply timeout | attempt=%s", attempt + 1)
            except Exception as exc:
                last_error = exc
                logger.warning("generate_reply failure | attempt=%s err=%s", attempt + 1, exc)

            if attempt < self.retries:
                await asyncio.sleep(0.35 * (attempt + 1))

        raise ReplyOracleError(f"reply generation failed after retries: {last_error}")
