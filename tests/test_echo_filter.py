import pytest

from interview_room.transcript.echo_filter import EchoFilter, tokenize


class _Clock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_tokenize_strips_punctuation_and_short_tokens():
    assert tokenize("Let's get a good start, on this!") == ["let's", "get", "good", "start", "this"]


def test_rejects_echo_shortly_after_agent_speech():
    clock = _Clock()
    echo = EchoFilter(clock=clock)
    echo.set_agent_context("Let's get a good start on this")
    echo.mark_agent_finished(at=10.0)

    analysis = echo.evaluate("that's a good start", captured_at=10.4)

    assert analysis.accepted is False
    assert analysis.reason == "echo"
    assert analysis.match_count == 2


def test_accepts_full_overlap_outside_echo_window():
    echo = EchoFilter(clock=_Clock())
    echo.set_agent_context("Let's get a good start on this")
    echo.mark_agent_finished(at=10.0)

    analysis = echo.evaluate("Let's get a good start on this", captured_at=15.0)

    assert analysis.accepted is True
    assert analysis.reason == "outside_window"


def test_speech_while_agent_is_still_speaking_counts_as_zero_elapsed():
    echo = EchoFilter(clock=_Clock())
    echo.set_agent_context("Describe a challenging project you've worked on recently")

    analysis = echo.check_echo("a challenging project recently", captured_at=500.0)

    assert analysis.accepted is False
    assert analysis.elapsed_sec == 0.0


@pytest.mark.parametrize(
    "agent_text, candidate",
    [
        ("Tell me about your background", "I enjoy distributed databases"),
        ("Where do you see yourself in five years?", "Leading platform engineering teams"),
        ("How do you handle pressure?", "Yes."),
        ("What interests you most about this role?", "The compensation package matters"),
    ],
)
def test_zero_match_ratio_is_always_accepted(agent_text, candidate):
    echo = EchoFilter(clock=_Clock())
    echo.set_agent_context(agent_text)
    echo.mark_agent_finished(at=100.0)

    analysis = echo.check_echo(candidate, captured_at=100.1)

    assert analysis.match_ratio == 0
    assert analysis.accepted is True


def test_sequence_match_with_moderate_ratio_is_rejected():
    echo = EchoFilter(clock=_Clock())
    echo.set_agent_context("Can you break down your approach step by step")
    echo.mark_agent_finished(at=0.0)

    # 2 of 5 scorable tokens match, but "your approach" is a contiguous agent phrase
    analysis = echo.check_echo("sure your approach makes sense", captured_at=2.0)

    assert analysis.sequence_match is True
    assert analysis.accepted is False


def test_distinct_answer_with_some_shared_words_is_accepted():
    echo = EchoFilter(clock=_Clock())
    echo.set_agent_context("Tell me about a project you led")
    echo.mark_agent_finished(at=0.0)

    analysis = echo.check_echo(
        "I migrated our billing platform to event sourcing which reduced incidents by half",
        captured_at=2.5,
    )

    assert analysis.accepted is True
    assert analysis.reason == "distinct"


def test_duplicate_of_previous_accepted_is_rejected_until_agent_speaks_again():
    echo = EchoFilter(clock=_Clock())

    assert echo.evaluate("I worked at Acme for three years").accepted is True
    second = echo.evaluate("i worked at acme for three years")
    assert second.accepted is False
    assert second.reason == "duplicate"

    echo.set_agent_context("Interesting, tell me more")
    assert echo.evaluate("I worked at Acme for three years").accepted is True


def test_empty_candidate_is_dropped():
    echo = EchoFilter(clock=_Clock())
    analysis = echo.evaluate("   ")
    assert analysis.accepted is False
    assert analysis.reason == "empty"
