import asyncio
from dataclasses import replace

import pytest

from conftest import wait_until
from interview_room.models import ConversationTurn, EmotionSample, SessionState, Speaker
from interview_room.scoring.monitor import LiveScoreMonitor
from interview_room.scoring.narrative import NarrativeAnalyzer


def _session_with_answer() -> SessionState:
    state = SessionState()
    state.append_turn(ConversationTurn(speaker=Speaker.HUMAN, text="I built the billing platform for our customers."))
    return state


@pytest.mark.asyncio
async def test_initial_snapshot_is_empty(fast_settings):
    monitor = LiveScoreMonitor(SessionState(), settings=fast_settings)
    assert monitor.latest.overall == 0
    assert monitor.latest.has_data is False
    assert monitor.compute_count == 0


@pytest.mark.asyncio
async def test_growth_notification_recomputes_and_notifies(fast_settings):
    state = _session_with_answer()
    monitor = LiveScoreMonitor(state, settings=fast_settings)
    received = []

    async def _listener(snapshot):
        received.append(snapshot)

    monitor.subscribe(_listener)
    monitor.start()
    monitor.notify_growth()

    assert await wait_until(lambda: monitor.compute_count == 1)
    assert received and received[0].word_count > 0
    assert monitor.latest is received[0]

    await monitor.stop()


@pytest.mark.asyncio
async def test_growth_recomputes_are_throttled(fast_settings):
    settings = replace(fast_settings, score_min_interval_sec=0.2)
    state = _session_with_answer()
    monitor = LiveScoreMonitor(state, settings=settings)
    monitor.start()

    await monitor.recompute("manual")
    for _ in range(5):
        state.append_emotion(EmotionSample("calm", 0.6))
        monitor.notify_growth()

    await asyncio.sleep(0.05)
    assert monitor.compute_count == 1

    assert await wait_until(lambda: monitor.compute_count == 2, timeout=1.0)
    await asyncio.sleep(0.3)
    assert monitor.compute_count == 2
    assert monitor.latest.emotion_count == 5

    await monitor.stop()


@pytest.mark.asyncio
async def test_periodic_tick_recomputes(fast_settings):
    settings = replace(fast_settings, score_interval_sec=0.05)
    monitor = LiveScoreMonitor(_session_with_answer(), settings=settings)
    monitor.start()

    assert await wait_until(lambda: monitor.compute_count >= 2, timeout=1.0)

    await monitor.stop()
    count = monitor.compute_count
    await asyncio.sleep(0.15)
    assert monitor.compute_count == count


@pytest.mark.asyncio
async def test_stopped_monitor_ignores_growth(fast_settings):
    monitor = LiveScoreMonitor(_session_with_answer(), settings=fast_settings)
    monitor.start()
    await monitor.stop()

    monitor.notify_growth()
    await asyncio.sleep(0.05)

    assert monitor.running is False
    assert monitor.compute_count == 0


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_recompute(fast_settings):
    monitor = LiveScoreMonitor(_session_with_answer(), settings=fast_settings)

    async def _broken(_snapshot):
        raise RuntimeError("listener down")

    monitor.subscribe(_broken)
    snapshot = await monitor.recompute("manual")

    assert snapshot.word_count > 0
    assert monitor.latest is snapshot


@pytest.mark.asyncio
async def test_final_snapshot_carries_offline_analysis(fast_settings):
    monitor = LiveScoreMonitor(
        _session_with_answer(),
        settings=fast_settings,
        narrative=NarrativeAnalyzer(enabled=False),
    )

    snapshot = await monitor.final_snapshot()

    assert snapshot.analysis.startswith("Interview Analysis Summary:")
    assert monitor.latest is snapshot
