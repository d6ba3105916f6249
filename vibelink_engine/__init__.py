"""
VibeLink Engine - Vibe Aggregation & Social Ranking
===================================================

Crowd-sourced venue vibes, a ranked content feed, friend clustering and
friend suggestions for a nightlife app.

Modules:
    - config: Configuration and constants
    - models: Shared data types
    - exceptions: Error types
    - store: Key-value repositories for vibe state and cooldowns
    - identity: Badge-tier lookups
    - vibes: Weighted vibe aggregation with decay and cooldowns
    - feed: NEARBY / FOLLOWING feed ranking
    - clustering: Friend grouping and cluster centroids
    - location: Atomically swapped friend-location snapshots
    - scheduler: Cancellable periodic tasks
    - suggestions: Multi-source friend-suggestion merging
    - engine: Facade wiring everything together
"""

from .engine import FeedPage, VibeEngine
from .exceptions import CooldownError, StoreError, ValidationError, VibeEngineError
from .models import (
    BadgeTier,
    ContentItem,
    EnergyLevel,
    FeedMode,
    FriendPresence,
    GeoPoint,
    RawCandidate,
    SuggestedPerson,
    SuggestionSource,
    VibeVote,
    WaitTime,
)

__version__ = "1.0.0"
__author__ = "VibeLink Team"
