from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from interview_room.models import EmotionSample, RecommendationTier, SubScores
from interview_room.scoring import vocabulary as vocab

if TYPE_CHECKING:
    from interview_room.scoring.engine import TextStats

RELAXATION_RECOMMENDATION = "Work on relaxation techniques and confidence building exercises"
DETAIL_RECOMMENDATION = "Practice providing more detailed and comprehensive answers"


def format_duration(duration_sec: float) -> str:
    total = max(0, int(duration_sec or 0))
    return f"{total // 60}m {total % 60}s"


def speaking_rate_wpm(word_count: int, duration_sec: float) -> int:
    if duration_sec <= 0:
        return 0
    return int(word_count / duration_sec * 60 + 0.5)


def recommendation_tier(overall: int) -> RecommendationTier:
    if overall >= 85:
        return RecommendationTier.STRONG_HIRE
    if overall >= 70:
        return RecommendationTier.HIRE
    if overall >= 55:
        return RecommendationTier.LEAN_HIRE
    return RecommendationTier.NO_HIRE


def build_insights(
    stats: "TextStats",
    samples: Sequence[EmotionSample],
    subscores: SubScores,
    duration_sec: float,
) -> list[str]:
    insights: list[str] = []
    words = stats.word_count
    avg_len = int(stats.avg_words_per_sentence + 0.5)

    if subscores.communication >= 80:
        insights.append(
            f"Excellent communication skills: {words} well-chosen words with strong sentence structure "
            f"(avg {avg_len} words/sentence)"
        )
    elif subscores.communication >= 60:
        insights.append(
            f"Good communication foundation with {words} words spoken, but could benefit from more detailed explanations"
        )
    else:
        insights.append(
            f"Communication needs improvement: only {words} words spoken with average sentence length of {avg_len} words"
        )

    rate = speaking_rate_wpm(words, duration_sec)
    if rate > 0:
        if 120 <= rate <= 160:
            insights.append(f"Optimal speaking pace at {rate} words per minute, clear and easy to follow")
        elif rate > 160:
            insights.append(f"Speaking pace is fast at {rate} words per minute, consider slowing down for clarity")
        else:
            insights.append(f"Speaking pace is slow at {rate} words per minute, could indicate hesitation or nervousness")

    if samples:
        stability = int(sum(s.score for s in samples) / len(samples) * 100 + 0.5)
        count = len(samples)
        if subscores.confidence >= 80:
            insights.append(
                f"High confidence level demonstrated with {stability}% average emotional stability across {count} emotion readings"
            )
        elif subscores.confidence >= 60:
            insights.append(
                f"Moderate confidence with {stability}% emotional stability, some nervousness detected in {count} readings"
            )
        else:
            insights.append(
                f"Lower confidence detected with {stability}% emotional stability across {count} readings, "
                "practice and preparation recommended"
            )

    found_technical = vocab.matched_terms(stats.text, vocab.INSIGHT_TECHNICAL_TERMS)
    if subscores.technical_knowledge >= 70:
        shown = ", ".join(found_technical[:3]) + ("..." if len(found_technical) > 3 else "")
        insights.append(f"Strong technical knowledge evidenced by use of {len(found_technical)} industry terms: {shown}")
    elif found_technical:
        insights.append(
            f"Some technical knowledge shown with {len(found_technical)} relevant terms, but could demonstrate deeper expertise"
        )
    else:
        insights.append(
            "Limited technical vocabulary detected, consider incorporating more industry-specific terminology and examples"
        )

    duration_label = format_duration(duration_sec)
    if duration_sec < 120:
        insights.append(
            f"Brief response duration ({duration_label}), consider providing more comprehensive examples and details"
        )
    elif duration_sec > 300:
        insights.append(
            f"Comprehensive response duration ({duration_label}), excellent detail but ensure key points are clear"
        )
    else:
        insights.append(
            f"Good response length ({duration_label}), appropriate balance of detail and conciseness"
        )

    found_problem_solving = vocab.matched_terms(stats.text, vocab.INSIGHT_PROBLEM_SOLVING_TERMS)
    if len(found_problem_solving) >= 3:
        insights.append(
            f"Strong problem-solving communication demonstrated through {len(found_problem_solving)} relevant terms"
        )
    elif found_problem_solving:
        insights.append("Some problem-solving language present but could elaborate more on analytical thinking processes")

    return insights


def build_recommendations(
    overall: int,
    stats: "TextStats",
    samples: Sequence[EmotionSample],
    subscores: SubScores,
) -> list[str]:
    if overall >= 85:
        recommendations = [
            "Continue leveraging strong interview skills",
            "Consider mentoring others in interview preparation",
        ]
    elif overall >= 70:
        recommendations = [
            "Practice providing more specific examples and details",
            "Work on maintaining consistent confidence throughout responses",
        ]
    elif overall >= 50:
        recommendations = [
            "Focus on structured response techniques (STAR method)",
            "Practice common interview questions with timed responses",
            "Work on technical vocabulary and industry knowledge",
        ]
    else:
        recommendations = [
            "Invest in comprehensive interview preparation",
            "Consider mock interviews with feedback",
            "Build confidence through practice and preparation",
            "Study common interview patterns and response structures",
        ]

    if stats.word_count < 100:
        recommendations.append(DETAIL_RECOMMENDATION)

    anxious = sum(1 for s in samples if s.label.lower() in vocab.ANXIOUS_LABELS)
    if subscores.confidence < 50 or (samples and anxious > len(samples) * 0.3):
        recommendations.append(RELAXATION_RECOMMENDATION)

    return recommendations
