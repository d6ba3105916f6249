"""
Configuration and constants for the VibeLink engine.
"""
import os
from dataclasses import dataclass
from typing import Dict


def _env_int(name: str, default: int) -> int:
    """Read an integer override from the environment."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    """Read a float override from the environment."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# =============================================================================
# TIME CONSTANTS (milliseconds)
# =============================================================================
SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

# =============================================================================
# VIBE CHECK CONFIGURATION
# =============================================================================
# Minimum wait between two votes from the same user for the same venue
VOTE_COOLDOWN_MS = _env_int("VIBELINK_VOTE_COOLDOWN_MS", HOUR_MS)

# Aggregates older than this are hidden from reads (never deleted)
DATA_DECAY_MS = _env_int("VIBELINK_DATA_DECAY_MS", 4 * HOUR_MS)

VIP_VOTE_WEIGHT = 2.0
REGULAR_VOTE_WEIGHT = 1.0

# Inclusive bounds for music / density ratings
MIN_VOTE_SCORE = 1
MAX_VOTE_SCORE = 5

# =============================================================================
# FEED RANKING
# =============================================================================
@dataclass
class FeedWeights:
    """Weights and thresholds for the NEARBY and FOLLOWING feeds."""
    # NEARBY scoring
    recency: float = 0.7
    vibe_level: float = 0.3
    vibe_boost: float = 50.0

    # Items younger than this count as live and get full recency
    live_window_hours: float = 6.0
    recency_decay_per_hour: float = 5.0

    # Vibe percentage assumed for venues with no fresh data
    neutral_vibe_level: float = 50.0

    # Mean of music/density at or above this earns the boost
    hot_vibe_threshold: float = 4.0

    # FOLLOWING
    friend_presence_threshold: int = 3
    friend_presence_priority: int = 1_000_000

    def to_dict(self) -> Dict[str, float]:
        return {
            "recency": self.recency,
            "vibe_level": self.vibe_level,
            "vibe_boost": self.vibe_boost,
            "live_window_hours": self.live_window_hours,
            "recency_decay_per_hour": self.recency_decay_per_hour,
            "neutral_vibe_level": self.neutral_vibe_level,
            "hot_vibe_threshold": self.hot_vibe_threshold,
            "friend_presence_threshold": self.friend_presence_threshold,
            "friend_presence_priority": self.friend_presence_priority,
        }

DEFAULT_FEED_WEIGHTS = FeedWeights()

# =============================================================================
# FRIEND SUGGESTIONS
# =============================================================================
# Base priority per suggestion source
PRIORITY_WEIGHTS = {
    "CONTACT": 100,      # people in your phone contacts
    "SOCIAL": 80,        # people you follow on the social network
    "MUTUAL": 60,        # mutual friends, plus a per-friend bonus
    "VENUE": 40,         # people who frequent the same venues
    "ALGORITHMIC": 20,
}
MUTUAL_FRIEND_BONUS = 2

SUGGESTION_CACHE_TTL_MS = _env_int("VIBELINK_SUGGESTION_CACHE_TTL_MS", 5 * MINUTE_MS)


@dataclass
class SuggestionConfig:
    """Configuration for one friend-suggestion merge."""
    include_contacts: bool = True
    include_social: bool = True
    include_mutual: bool = True
    include_venue: bool = True
    include_algorithmic: bool = True

    max_suggestions: int = 20

    use_cache: bool = True
    cache_ttl_ms: int = SUGGESTION_CACHE_TTL_MS

    # Deadline for the whole provider fan-out, in seconds
    timeout_s: float = 5.0

DEFAULT_SUGGESTION_CONFIG = SuggestionConfig()

# =============================================================================
# FRIEND LOCATIONS
# =============================================================================
FRIEND_REFRESH_INTERVAL_S = _env_float("VIBELINK_FRIEND_REFRESH_S", 5.0)
