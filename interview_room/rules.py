"""
All turn-taking and scoring thresholds live here.
Changing these changes system behavior.
Every value can be overridden from the environment (see core.config.load_settings).
"""

# Echo suppression (seconds / ratios)
ECHO_WINDOW_SEC = 3.0
ECHO_EARLY_WINDOW_SEC = 1.0
ECHO_HIGH_RATIO = 0.6
ECHO_SEQUENCE_RATIO = 0.3
ECHO_EARLY_RATIO = 0.5
ECHO_SHORT_MAX_TOKENS = 4
ECHO_SHORT_MIN_MATCHES = 2
ECHO_MIN_TOKEN_LEN = 3

# Completion heuristic (seconds / characters)
COMPLETION_DEFINITE_DELAY_SEC = 0.3
COMPLETION_PROBABLE_DELAY_SEC = 0.8
COMPLETION_TENTATIVE_DELAY_SEC = 1.3
COMPLETION_DEFINITE_MIN_CHARS = 11
COMPLETION_PROBABLE_MIN_CHARS = 26
COMPLETION_TENTATIVE_MIN_CHARS = 13

CLOSING_PHRASES = (
    "thank you",
    "thanks",
    "that's all",
    "that is all",
    "i'm done",
    "i am done",
    "to conclude",
    "in conclusion",
    "that's it",
)
MEDIAL_CONNECTIVES = ("and", "so", "but", "because")

# Post-speech grace period before the microphone re-opens
MUTE_COOLDOWN_SEC = 1.5

# Playback: an unacknowledged agent utterance counts as finished after this
PLAYBACK_TIMEOUT_SEC = 30.0

# Reply oracle
REPLY_TIMEOUT_SEC = 12.0
ORACLE_CACHE_TTL_SEC = 60.0
ORACLE_CACHE_MAX_ITEMS = 256

# Live scoring cadence
SCORE_INTERVAL_SEC = 15.0
SCORE_MIN_INTERVAL_SEC = 5.0

# Interview ends on its own after this long; 0 disables the limit
MAX_INTERVIEW_SEC = 1200.0
