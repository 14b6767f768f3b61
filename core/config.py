import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from interview_room import rules

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_PROJECT_ENV_PATH = _PROJECT_ROOT / ".env"
load_dotenv(dotenv_path=_PROJECT_ENV_PATH, override=False)

OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
REPLY_MODEL = str(os.getenv("REPLY_MODEL") or "gpt-4o-mini").strip()
ANALYSIS_MODEL = str(os.getenv("ANALYSIS_MODEL") or REPLY_MODEL).strip()
QA_MODE = os.getenv("QA_MODE", "false").lower() == "true"


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        return default


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


@dataclass(frozen=True)
class TurnTakingSettings:
    echo_window_sec: float = rules.ECHO_WINDOW_SEC
    echo_early_window_sec: float = rules.ECHO_EARLY_WINDOW_SEC
    echo_high_ratio: float = rules.ECHO_HIGH_RATIO
    echo_sequence_ratio: float = rules.ECHO_SEQUENCE_RATIO
    echo_early_ratio: float = rules.ECHO_EARLY_RATIO
    echo_short_max_tokens: int = rules.ECHO_SHORT_MAX_TOKENS
    echo_short_min_matches: int = rules.ECHO_SHORT_MIN_MATCHES

    definite_delay_sec: float = rules.COMPLETION_DEFINITE_DELAY_SEC
    probable_delay_sec: float = rules.COMPLETION_PROBABLE_DELAY_SEC
    tentative_delay_sec: float = rules.COMPLETION_TENTATIVE_DELAY_SEC
    definite_min_chars: int = rules.COMPLETION_DEFINITE_MIN_CHARS
    probable_min_chars: int = rules.COMPLETION_PROBABLE_MIN_CHARS
    tentative_min_chars: int = rules.COMPLETION_TENTATIVE_MIN_CHARS

    mute_cooldown_sec: float = rules.MUTE_COOLDOWN_SEC
    reply_timeout_sec: float = rules.REPLY_TIMEOUT_SEC
    playback_timeout_sec: float = rules.PLAYBACK_TIMEOUT_SEC

    score_interval_sec: float = rules.SCORE_INTERVAL_SEC
    score_min_interval_sec: float = rules.SCORE_MIN_INTERVAL_SEC

    oracle_cache_ttl_sec: float = rules.ORACLE_CACHE_TTL_SEC
    oracle_cache_max_items: int = rules.ORACLE_CACHE_MAX_ITEMS

    max_interview_sec: float = rules.MAX_INTERVIEW_SEC


def load_settings() -> TurnTakingSettings:
    """
    Build tuning settings from the environment.
    Every value falls back to the default in interview_room.rules.
    """
    return TurnTakingSettings(
        echo_window_sec=_env_float("ECHO_WINDOW_SEC", rules.ECHO_WINDOW_SEC),
        echo_early_window_sec=_env_float("ECHO_EARLY_WINDOW_SEC", rules.ECHO_EARLY_WINDOW_SEC),
        echo_high_ratio=_env_float("ECHO_HIGH_RATIO", rules.ECHO_HIGH_RATIO),
        echo_sequence_ratio=_env_float("ECHO_SEQUENCE_RATIO", rules.ECHO_SEQUENCE_RATIO),
        echo_early_ratio=_env_float("ECHO_EARLY_RATIO", rules.ECHO_EARLY_RATIO),
        echo_short_max_tokens=_env_int("ECHO_SHORT_MAX_TOKENS", rules.ECHO_SHORT_MAX_TOKENS, minimum=1),
        echo_short_min_matches=_env_int("ECHO_SHORT_MIN_MATCHES", rules.ECHO_SHORT_MIN_MATCHES, minimum=1),
        definite_delay_sec=_env_float("COMPLETION_DEFINITE_DELAY_SEC", rules.COMPLETION_DEFINITE_DELAY_SEC),
        probable_delay_sec=_env_float("COMPLETION_PROBABLE_DELAY_SEC", rules.COMPLETION_PROBABLE_DELAY_SEC),
        tentative_delay_sec=_env_float("COMPLETION_TENTATIVE_DELAY_SEC", rules.COMPLETION_TENTATIVE_DELAY_SEC),
        mute_cooldown_sec=_env_float("MUTE_COOLDOWN_SEC", rules.MUTE_COOLDOWN_SEC),
        reply_timeout_sec=_env_float("REPLY_TIMEOUT_SEC", rules.REPLY_TIMEOUT_SEC, minimum=0.1),
        playback_timeout_sec=_env_float("PLAYBACK_TIMEOUT_SEC", rules.PLAYBACK_TIMEOUT_SEC, minimum=0.1),
        score_interval_sec=_env_float("SCORE_INTERVAL_SEC", rules.SCORE_INTERVAL_SEC, minimum=0.05),
        score_min_interval_sec=_env_float("SCORE_MIN_INTERVAL_SEC", rules.SCORE_MIN_INTERVAL_SEC),
        oracle_cache_ttl_sec=_env_float("ORACLE_CACHE_TTL_SEC", rules.ORACLE_CACHE_TTL_SEC),
        oracle_cache_max_items=_env_int("ORACLE_CACHE_MAX_ITEMS", rules.ORACLE_CACHE_MAX_ITEMS, minimum=1),
        max_interview_sec=_env_float("MAX_INTERVIEW_SEC", rules.MAX_INTERVIEW_SEC),
    )
