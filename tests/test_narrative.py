from types import SimpleNamespace

import pytest

from interview_room.models import BufferView, ConversationTurn, EmotionSample, Speaker
from interview_room.oracle import openai_oracle
from interview_room.scoring.engine import ScoringEngine
from interview_room.scoring.narrative import NarrativeAnalyzer, analysis_cache_key, fallback_analysis


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _view(text: str, duration_sec: float = 95.0) -> BufferView:
    return BufferView(
        turns=(ConversationTurn(speaker=Speaker.HUMAN, text=text),),
        emotions=(EmotionSample("confident", 0.7, at=1.0),),
        duration_sec=duration_sec,
    )


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_fallback_analysis_summarizes_the_view():
    text = fallback_analysis(_view("For example, my experience with billing systems taught me a lot."))

    assert text.startswith("Interview Analysis Summary:")
    assert "Duration: 1 minutes" in text
    assert "good use of examples" in text


def test_cache_key_depends_on_request_shape():
    a = analysis_cache_key(_view("I built the billing platform."))
    b = analysis_cache_key(_view("I built the billing platform.", duration_sec=200.0))
    assert a != b
    assert a == analysis_cache_key(_view("I built the billing platform."))


@pytest.mark.asyncio
async def test_disabled_analyzer_uses_fallback():
    view = _view("I built the billing platform.")
    snapshot = ScoringEngine().compute(view)
    analyzer = NarrativeAnalyzer(enabled=False)

    enriched = await analyzer.enrich(snapshot, view)

    assert enriched.analysis.startswith("Interview Analysis Summary:")
    assert enriched.overall == snapshot.overall


@pytest.mark.asyncio
async def test_empty_snapshot_keeps_no_data_analysis():
    engine = ScoringEngine()
    view = BufferView(turns=(), emotions=(), duration_sec=0.0)
    analyzer = NarrativeAnalyzer(enabled=True)

    assert await analyzer.analyze(engine.compute(view), view) == "No data available for analysis"


@pytest.mark.asyncio
async def test_live_analysis_is_cached_and_rate_limited(monkeypatch: pytest.MonkeyPatch):
    calls = []

    async def _fake_create(*args, **kwargs):
        calls.append(kwargs)
        return _completion("Clear, structured answers with good technical depth.")

    monkeypatch.setattr(openai_oracle.client.chat.completions, "create", _fake_create)
    clock = _Clock()
    analyzer = NarrativeAnalyzer(enabled=True, model="test-model", rate_limit_sec=60, clock=clock)
    engine = ScoringEngine()

    first_view = _view("I built the billing platform.")
    first = await analyzer.analyze(engine.compute(first_view), first_view)
    again = await analyzer.analyze(engine.compute(first_view), first_view)
    assert first == again == "Clear, structured answers with good technical depth."
    assert len(calls) == 1

    other_view = _view("I migrated our services to the cloud over two quarters.")
    clock.now = 10.0
    limited = await analyzer.analyze(engine.compute(other_view), other_view)
    assert limited.startswith("Interview Analysis Summary:")
    assert len(calls) == 1

    clock.now = 61.0
    live = await analyzer.analyze(engine.compute(other_view), other_view)
    assert live == "Clear, structured answers with good technical depth."
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_failed_analysis_falls_back(monkeypatch: pytest.MonkeyPatch):
    async def _boom(*args, **kwargs):
        raise RuntimeError("forced")

    monkeypatch.setattr(openai_oracle.client.chat.completions, "create", _boom)
    analyzer = NarrativeAnalyzer(enabled=True)
    view = _view("I built the billing platform.")

    analysis = await analyzer.analyze(ScoringEngine().compute(view), view)

    assert analysis.startswith("Interview Analysis Summary:")
