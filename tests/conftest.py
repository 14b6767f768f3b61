import asyncio
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("COMPLETION_DEFINITE_DELAY_SEC", "0.02")
    monkeypatch.setenv("COMPLETION_PROBABLE_DELAY_SEC", "0.04")
    monkeypatch.setenv("COMPLETION_TENTATIVE_DELAY_SEC", "0.06")
    monkeypatch.setenv("MUTE_COOLDOWN_SEC", "0.02")
    monkeypatch.setenv("REPLY_TIMEOUT_SEC", "1.0")
    monkeypatch.setenv("PLAYBACK_TIMEOUT_SEC", "5.0")
    monkeypatch.setenv("SCORE_INTERVAL_SEC", "30")
    monkeypatch.setenv("SCORE_MIN_INTERVAL_SEC", "0")


@pytest.fixture
def fast_settings():
    from core.config import TurnTakingSettings

    return TurnTakingSettings(
        definite_delay_sec=0.02,
        probable_delay_sec=0.04,
        tentative_delay_sec=0.06,
        mute_cooldown_sec=0.02,
        reply_timeout_sec=0.5,
        score_interval_sec=30.0,
        score_min_interval_sec=0.0,
    )


class FakeOracle:
    def __init__(self, reply: str = "Can you walk me through a specific example?", delay: float = 0.0, error: Exception | None = None):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls: list[dict] = []
        self.active = 0
        self.max_active = 0

    async def generate_reply(self, human_text, history, context):
        self.calls.append({"human_text": human_text, "history": list(history), "context": dict(context)})
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.reply
        finally:
            self.active -= 1


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return bool(predicate())


@pytest.fixture
def fake_oracle_cls():
    return FakeOracle
