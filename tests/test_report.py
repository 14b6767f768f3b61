import csv
import io

import pytest

from interview_room.models import ConversationTurn, EmotionSample, Speaker
from interview_room.report.renderer import (
    CsvReportRenderer,
    MarkdownReportRenderer,
    get_renderer,
    summarize_emotions,
)
from interview_room.scoring.engine import ScoringEngine, transcript_view

TURNS = (
    ConversationTurn(speaker=Speaker.AGENT, text="Tell me about yourself and your professional background."),
    ConversationTurn(
        speaker=Speaker.HUMAN,
        text="I lead a team that builds the billing system. For example, we moved our database to the cloud.",
    ),
)
EMOTIONS = (
    EmotionSample("confident", 0.8, at=1.0),
    EmotionSample("confident", 0.7, at=2.0),
    EmotionSample("nervous", 0.4, at=3.0),
)


def _snapshot():
    return ScoringEngine().compute(transcript_view(TURNS[1].text, EMOTIONS, duration_sec=75.0))


def test_summarize_emotions_orders_by_frequency():
    assert summarize_emotions(EMOTIONS) == {"confident": 67, "nervous": 33}
    assert summarize_emotions(()) == {}


def test_markdown_report_sections():
    snapshot = _snapshot()
    report = MarkdownReportRenderer().render(snapshot, TURNS, EMOTIONS, 75.0)

    assert report.startswith("# AI Video Interview Report")
    for heading in (
        "## Interview Summary",
        "## Overall Assessment",
        "## Detailed Score Breakdown",
        "## Insights",
        "## Emotion Analysis",
        "## Recommendations",
        "## Transcript",
    ):
        assert heading in report
    assert f"- Score: {snapshot.overall}/100" in report
    assert "- Duration: 1m 15s" in report
    assert "**Interviewer:** Tell me about yourself" in report
    assert "- confident: 67%" in report


def test_csv_report_has_header_and_summary_row():
    snapshot = _snapshot()
    content = CsvReportRenderer().render(snapshot, TURNS, EMOTIONS, 75.0)

    rows = list(csv.reader(io.StringIO(content)))
    assert len(rows) == 2
    row = dict(zip(rows[0], rows[1]))
    assert int(row["overall"]) == snapshot.overall
    assert row["recommendation_tier"] == snapshot.recommendation_tier.value
    assert row["dominant_emotion"] == "confident"
    assert int(row["emotion_count"]) == 3


def test_get_renderer_rejects_unknown_format():
    assert isinstance(get_renderer("CSV"), CsvReportRenderer)
    assert isinstance(get_renderer("md"), MarkdownReportRenderer)
    with pytest.raises(ValueError):
        get_renderer("pdf")
