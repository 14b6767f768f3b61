import asyncio
from dataclasses import replace

import pytest

from conftest import FakeOracle, wait_until
from interview_room.channels import QueueSpeechSource, RecordingSpeechSink
from interview_room.errors import InvalidTransitionError
from interview_room.models import MachineState, Speaker, Utterance
from interview_room.oracle.fallback import FALLBACK_REPLIES
from interview_room.system_metrics import get_metric
from interview_room.turn.machine import COMPLETION_TIMER, TurnTakingMachine

ANSWER = "I believe my background in backend systems makes me a strong fit."


class InspectingSink(RecordingSpeechSink):
    """Captures machine state at the moment synthesis starts."""

    def __init__(self):
        super().__init__()
        self.machine = None
        self.observed = []

    async def speak(self, text: str) -> None:
        turns = self.machine.session.turns
        self.observed.append(
            {
                "state": self.machine.state,
                "last_turn": turns[-1] if turns else None,
                "listening": self.machine.source.listening,
            }
        )
        await super().speak(text)


def _build(settings, oracle, sink=None, source=None):
    source = source or QueueSpeechSource()
    sink = sink or RecordingSpeechSink()
    machine = TurnTakingMachine(source, sink, oracle, settings=settings)
    return machine, source, sink


async def _shutdown(machine, source):
    await machine.end()
    await source.close()


@pytest.mark.asyncio
async def test_human_answer_leads_to_one_reply_and_back_to_listening(fast_settings):
    oracle = FakeOracle()
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()

    await machine.handle_utterance(Utterance(text=ANSWER))
    assert await wait_until(lambda: len(sink.spoken) == 1 and machine.state == MachineState.LISTENING)

    assert len(oracle.calls) == 1
    call = oracle.calls[0]
    assert call["human_text"] == ANSWER
    assert call["history"][-1].speaker == Speaker.HUMAN
    assert call["context"]["question_index"] == 0
    assert machine.plan.index == 1

    assert [t.speaker for t in machine.session.turns] == [Speaker.HUMAN, Speaker.AGENT]
    assert sink.spoken == [oracle.reply]
    assert source.stop_calls == 1
    assert source.start_calls == 2
    assert source.listening is True

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_concurrent_triggers_start_exactly_one_reply(fast_settings):
    oracle = FakeOracle(delay=0.05)
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()
    before = get_metric("overlapping_triggers_ignored")

    results = await asyncio.gather(machine.trigger_reply("a"), machine.trigger_reply("b"))

    assert sorted(results) == [False, True]
    assert get_metric("overlapping_triggers_ignored") == before + 1
    assert await wait_until(lambda: machine.state == MachineState.LISTENING and oracle.active == 0)
    assert len(oracle.calls) == 1
    assert len(sink.spoken) == 1

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_bursts_of_triggers_never_overlap_replies(fast_settings):
    oracle = FakeOracle(delay=0.02)
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()

    for i in range(8):
        await asyncio.gather(
            machine.trigger_reply("burst"),
            machine.handle_utterance(Utterance(text=f"My answer number {i} covers databases.")),
            machine.trigger_reply("burst"),
        )
        await asyncio.sleep(0.01)

    await wait_until(lambda: machine.state == MachineState.LISTENING and oracle.active == 0, timeout=3.0)
    await asyncio.sleep(0.1)
    await wait_until(lambda: machine.state == MachineState.LISTENING and oracle.active == 0, timeout=3.0)

    assert oracle.max_active == 1
    agent_turns = [t for t in machine.session.turns if t.speaker == Speaker.AGENT]
    assert len(agent_turns) == len(sink.spoken)

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_agent_turn_is_logged_and_mic_closed_before_synthesis(fast_settings):
    oracle = FakeOracle()
    sink = InspectingSink()
    machine, source, _ = _build(fast_settings, oracle, sink=sink)
    sink.machine = machine
    machine.start()

    assert await machine.trigger_reply("manual") is True
    assert await wait_until(lambda: machine.state == MachineState.LISTENING and sink.observed)

    observed = sink.observed[0]
    assert observed["state"] == MachineState.SPEAKING
    assert observed["last_turn"].speaker == Speaker.AGENT
    assert observed["last_turn"].text == oracle.reply
    assert observed["listening"] is False

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_oracle_error_speaks_fallback_reply(fast_settings):
    oracle = FakeOracle(error=RuntimeError("oracle down"))
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()
    before = get_metric("oracle_fallbacks")

    await machine.handle_utterance(Utterance(text=ANSWER))
    assert await wait_until(lambda: sink.spoken and machine.state == MachineState.LISTENING)

    assert sink.spoken == [FALLBACK_REPLIES[0]]
    assert get_metric("oracle_fallbacks") == before + 1
    assert machine.session.turns[-1].text == FALLBACK_REPLIES[0]

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_oracle_timeout_and_empty_reply_use_rotating_fallbacks(fast_settings):
    settings = replace(fast_settings, reply_timeout_sec=0.05)
    oracle = FakeOracle(delay=1.0)
    machine, source, sink = _build(settings, oracle)
    machine.start()

    await machine.trigger_reply("manual")
    assert await wait_until(lambda: len(sink.spoken) == 1 and machine.state == MachineState.LISTENING)

    oracle.delay = 0.0
    oracle.reply = "   "
    await machine.trigger_reply("manual")
    assert await wait_until(lambda: len(sink.spoken) == 2 and machine.state == MachineState.LISTENING)

    assert sink.spoken == [FALLBACK_REPLIES[0], FALLBACK_REPLIES[1]]

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_synthesis_failure_still_returns_to_listening(fast_settings):
    oracle = FakeOracle()
    sink = RecordingSpeechSink(fail=True)
    machine, source, _ = _build(fast_settings, oracle, sink=sink)
    machine.start()
    before = get_metric("synthesis_errors")

    await machine.trigger_reply("manual")
    assert await wait_until(lambda: sink.spoken and machine.state == MachineState.LISTENING)

    assert get_metric("synthesis_errors") == before + 1
    assert machine.session.turns[-1].speaker == Speaker.AGENT
    assert source.listening is True

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_mic_is_closed_while_speaking(fast_settings):
    oracle = FakeOracle()
    sink = RecordingSpeechSink(playback_sec=0.2)
    machine, source, _ = _build(fast_settings, oracle, sink=sink)
    machine.start()

    assert await machine.open() is True
    assert await wait_until(lambda: machine.state == MachineState.SPEAKING)

    assert source.listening is False
    assert source.push(Utterance(text="hello there everyone")) is False

    assert await wait_until(lambda: machine.state == MachineState.LISTENING)
    assert source.push(Utterance(text="hello there everyone")) is True

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_open_speaks_greeting_and_first_question(fast_settings):
    oracle = FakeOracle()
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()

    assert await machine.open("Welcome.") is True
    assert await wait_until(lambda: sink.spoken and machine.state == MachineState.LISTENING)

    assert sink.spoken == [f"Welcome. {machine.plan.questions[0]}"]
    assert oracle.calls == []
    assert machine.plan.index == 0

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_speech_during_reply_is_deferred_then_flushed(fast_settings):
    oracle = FakeOracle(delay=0.1)
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()

    await machine.handle_utterance(Utterance(text=ANSWER))
    assert await wait_until(lambda: machine.state == MachineState.AWAITING_REPLY)

    await machine.handle_utterance(Utterance(text="Another point about my project work."))
    assert machine.deferred_count == 1
    assert len(machine.session.turns) == 1

    assert await wait_until(lambda: len(machine.session.turns) >= 3)
    turns = machine.session.turns
    assert turns[1].speaker == Speaker.AGENT
    assert turns[2].speaker == Speaker.HUMAN
    assert turns[2].text == "Another point about my project work."

    assert await wait_until(lambda: len(oracle.calls) == 2)
    assert oracle.calls[1]["human_text"] == "Another point about my project work."

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_echo_of_agent_reply_is_rejected(fast_settings):
    oracle = FakeOracle()
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()

    await machine.trigger_reply("manual")
    assert await wait_until(lambda: sink.spoken and machine.state == MachineState.LISTENING)
    before = get_metric("echoes_rejected")
    turn_count = len(machine.session.turns)

    await machine.handle_utterance(Utterance(text="walk me through a specific example"))

    assert len(machine.session.turns) == turn_count
    assert get_metric("echoes_rejected") == before + 1
    assert machine.timers.is_pending(COMPLETION_TIMER) is False

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_interim_and_blank_utterances_are_ignored(fast_settings):
    oracle = FakeOracle()
    machine, source, _ = _build(fast_settings, oracle)
    machine.start()

    await machine.handle_utterance(Utterance(text="hello there friend", is_final=False))
    await machine.handle_utterance(Utterance(text="   "))

    assert machine.session.turns == ()
    assert machine.timers.is_pending(COMPLETION_TIMER) is False

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_new_fragment_reschedules_pending_completion(fast_settings):
    settings = replace(fast_settings, tentative_delay_sec=0.3)
    oracle = FakeOracle()
    machine, source, sink = _build(settings, oracle)
    machine.start()

    await machine.handle_utterance(Utterance(text="I was working on"))
    first_timer = machine.timers._timers[COMPLETION_TIMER]
    await asyncio.sleep(0.1)
    assert oracle.calls == []

    await machine.handle_utterance(Utterance(text="Billing migrations for two years."))
    assert machine.timers._timers[COMPLETION_TIMER] is not first_timer

    assert await wait_until(lambda: len(sink.spoken) == 1 and machine.state == MachineState.LISTENING)
    await asyncio.sleep(0.35)

    assert len(oracle.calls) == 1
    assert oracle.calls[0]["human_text"] == "I was working on Billing migrations for two years."
    assert first_timer.cancelled()

    await _shutdown(machine, source)


@pytest.mark.asyncio
async def test_end_cancels_pending_completion_and_is_idempotent(fast_settings):
    oracle = FakeOracle()
    machine, source, sink = _build(fast_settings, oracle)
    machine.start()

    await machine.handle_utterance(Utterance(text="I was working there"))
    assert machine.timers.is_pending(COMPLETION_TIMER) is True

    assert await machine.end("test") is True
    await asyncio.sleep(0.1)

    assert machine.state == MachineState.ENDED
    assert oracle.calls == []
    assert source.listening is False
    assert sink.cancelled == 1
    assert machine.session.ended_at is not None
    assert await machine.end("again") is False

    await machine.handle_utterance(Utterance(text=ANSWER))
    assert len(machine.session.turns) == 1
    assert await machine.trigger_reply("late") is False

    await source.close()


@pytest.mark.asyncio
async def test_end_during_playback_stops_speaking(fast_settings):
    oracle = FakeOracle()
    sink = RecordingSpeechSink(playback_sec=5.0)
    machine, source, _ = _build(fast_settings, oracle, sink=sink)
    machine.start()

    await machine.trigger_reply("manual")
    assert await wait_until(lambda: machine.state == MachineState.SPEAKING)

    await asyncio.wait_for(machine.end("stop"), timeout=1.0)
    await asyncio.sleep(0.05)

    assert machine.state == MachineState.ENDED
    assert source.listening is False

    await source.close()


def test_disallowed_transition_raises(fast_settings):
    machine, _, _ = _build(fast_settings, FakeOracle())

    with pytest.raises(InvalidTransitionError) as exc:
        machine._transition(MachineState.SPEAKING, "skip")

    assert exc.value.current == MachineState.LISTENING
    assert exc.value.target == MachineState.SPEAKING
