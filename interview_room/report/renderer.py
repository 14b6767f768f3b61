from __future__ import annotations

import csv
import io
from collections import Counter
from typing import Sequence

from interview_room.models import ConversationTurn, EmotionSample, ScoreSnapshot, Speaker
from interview_room.scoring import vocabulary as vocab
from interview_room.scoring.insights import format_duration, speaking_rate_wpm

SUBSCORE_LABELS = (
    ("communication", "Communication Skills"),
    ("confidence", "Confidence Level"),
    ("technical_knowledge", "Technical Knowledge"),
    ("problem_solving", "Problem Solving"),
    ("emotional_intelligence", "Emotional Intelligence"),
    ("articulation", "Articulation"),
)


def summarize_emotions(emotions: Sequence[EmotionSample]) -> dict[str, int]:
    """Share of each emotion label, as whole percentages, most frequent first."""
    if not emotions:
        return {}
    counts = Counter(str(e.label or "unknown").lower() for e in emotions)
    total = len(emotions)
    return {label: int(count / total * 100 + 0.5) for label, count in counts.most_common()}


def _human_text(turns: Sequence[ConversationTurn]) -> str:
    return " ".join(t.text for t in turns if t.speaker == Speaker.HUMAN and t.text).strip()


class MarkdownReportRenderer:
    """Human-readable interview report. Read-only consumer of a snapshot and the buffers."""

    title = "AI Video Interview Report"

    def render(
        self,
        snapshot: ScoreSnapshot,
        turns: Sequence[ConversationTurn],
        emotions: Sequence[EmotionSample],
        duration_sec: float,
    ) -> str:
        text = _human_text(turns)
        words = vocab.extract_words(text)
        unique = {w.lower() for w in words}
        sentences = vocab.split_sentences(text)

        lines = [f"# {self.title}", ""]

        lines += [
            "## Interview Summary",
            f"- Duration: {format_duration(duration_sec)}",
            f"- Words Spoken: {len(words)}",
            f"- Unique Words: {len(unique)}",
            f"- Speaking Rate: {speaking_rate_wpm(len(words), duration_sec)} words/minute",
            f"- Sentence Count: {len(sentences)}",
            f"- Emotion Data Points: {len(emotions)}",
            "",
        ]

        lines += [
            "## Overall Assessment",
            f"- Score: {snapshot.overall}/100",
            f"- Recommendation: {snapshot.recommendation_tier.value.replace('_', ' ')}",
            "",
            "## Detailed Score Breakdown",
        ]
        values = snapshot.subscores.to_dict()
        for key, label in SUBSCORE_LABELS:
            lines.append(f"- {label}: {values[key]}/100")
        lines.append("")

        lines.append("## Insights")
        lines += [f"- {item}" for item in snapshot.insights] or ["- None"]
        lines.append("")

        if snapshot.analysis.strip():
            lines.append("## Analysis")
            lines += [line.strip() for line in snapshot.analysis.splitlines() if line.strip()]
            lines.append("")

        shares = summarize_emotions(emotions)
        if shares:
            lines.append("## Emotion Analysis")
            lines += [f"- {label}: {pct}%" for label, pct in shares.items()]
            lines.append("")

        lines.append("## Recommendations")
        lines += [f"- {item}" for item in snapshot.recommendations] or ["- None"]
        lines.append("")

        if turns:
            lines.append("## Transcript")
            for turn in turns:
                who = "Interviewer" if turn.speaker == Speaker.AGENT else "Candidate"
                lines.append(f"**{who}:** {turn.text}")
                lines.append("")

        return "\n".join(lines).rstrip() + "\n"


class CsvReportRenderer:
    """One header row plus one summary row, for spreadsheet export."""

    columns = [
        "overall",
        "recommendation_tier",
        "communication",
        "confidence",
        "technical_knowledge",
        "problem_solving",
        "emotional_intelligence",
        "articulation",
        "word_count",
        "emotion_count",
        "duration_sec",
        "dominant_emotion",
        "insights",
        "recommendations",
    ]

    def render(
        self,
        snapshot: ScoreSnapshot,
        turns: Sequence[ConversationTurn],
        emotions: Sequence[EmotionSample],
        duration_sec: float,
    ) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(self.columns)

        values = snapshot.subscores.to_dict()
        shares = summarize_emotions(emotions)
        writer.writerow([
            snapshot.overall,
            snapshot.recommendation_tier.value,
            values["communication"],
            values["confidence"],
            values["technical_knowledge"],
            values["problem_solving"],
            values["emotional_intelligence"],
            values["articulation"],
            len(vocab.extract_words(_human_text(turns))),
            len(emotions),
            round(max(0.0, float(duration_sec or 0.0)), 2),
            next(iter(shares), ""),
            " | ".join(snapshot.insights),
            " | ".join(snapshot.recommendations),
        ])
        return output.getvalue()


def get_renderer(fmt: str):
    normalized = str(fmt or "markdown").strip().lower()
    if normalized == "csv":
        return CsvReportRenderer()
    if normalized in {"markdown", "md"}:
        return MarkdownReportRenderer()
    raise ValueError(f"Unsupported report format: {fmt}")
