"""
Feed Ranking Engine
===================

Orders venue and performer content for the two feed tabs.

NEARBY (scored):
----------------

    age_h     = (now - item.timestamp) / 1h
    recency   = 100                       if age_h < 6
              = max(0, 100 - 5 × age_h)   otherwise
    vibe      = vibe percentage of the venue, 50 when unknown or stale
    boost     = 50 if mean(music, density) >= 4 or the viewer is VIP there
    score     = 0.7 × recency + 0.3 × vibe + boost

FOLLOWING (filtered + prioritized):
-----------------------------------

    keep if the performer is followed or >= 3 friends are at the venue
    priority  = 1_000_000 + timestamp   with friends present
              = timestamp               otherwise

    Items with friends present always sort ahead of those without.

Both modes sort descending and keep input order among equal keys.
Ranking is recomputed on every call; nothing is cached.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .clustering import count_by_venue
from .config import DEFAULT_FEED_WEIGHTS, FeedWeights, HOUR_MS
from .identity import IdentityProvider
from .models import ContentItem, FeedMode, FriendPresence
from .utils import Clock, now_ms
from .vibes import VibeAggregator

logger = logging.getLogger(__name__)


@dataclass
class ScoreBreakdown:
    """How an item's rank key was computed."""
    item_id: str
    final_score: float

    # NEARBY components
    recency_score: float = 0.0
    vibe_level: float = 0.0
    vibe_boost: float = 0.0
    age_hours: float = 0.0

    # FOLLOWING components
    friend_count: int = 0
    followed_performer: bool = False
    friend_presence: bool = False


@dataclass
class RankedItem:
    """A content item with its rank key."""
    item: ContentItem
    score: float
    breakdown: ScoreBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.item.id,
            "venue_id": self.item.venue_id,
            "performer_id": self.item.performer_id,
            "timestamp_ms": self.item.timestamp_ms,
            "score": round(self.score, 4),
        }


class FeedRanker:
    """
    Scores and orders content items.

    Reads venue vibes from the aggregator and badge tiers from the
    identity provider; everything else arrives as call arguments.
    """

    def __init__(
        self,
        aggregator: VibeAggregator,
        identity: IdentityProvider,
        weights: FeedWeights = DEFAULT_FEED_WEIGHTS,
        clock: Clock = now_ms,
    ):
        """
        Initialize the ranker.

        Args:
            aggregator: Source of venue vibe aggregates
            identity: Badge-tier lookup for the viewer boost
            weights: Scoring weights and thresholds
            clock: Source of the current time in epoch ms
        """
        self.aggregator = aggregator
        self.identity = identity
        self.weights = weights
        self.clock = clock

    def rank(
        self,
        items: Iterable[ContentItem],
        mode: FeedMode,
        viewer_id: Optional[str] = None,
        followed_performer_ids: Iterable[str] = (),
        friends: Sequence[FriendPresence] = (),
    ) -> List[RankedItem]:
        """
        Rank items for one feed tab.

        Args:
            items: Content to rank
            mode: NEARBY or FOLLOWING
            viewer_id: Viewer, for the VIP boost in NEARBY mode
            followed_performer_ids: Performers the viewer follows (FOLLOWING)
            friends: Current visible-friends snapshot (FOLLOWING)

        Returns:
            Ranked items, best first
        """
        mode = FeedMode(mode)
        if mode == FeedMode.NEARBY:
            return self.rank_nearby(items, viewer_id)
        return self.rank_following(items, followed_performer_ids, friends)

    # =========================================================================
    # NEARBY
    # =========================================================================

    def rank_nearby(
        self,
        items: Iterable[ContentItem],
        viewer_id: Optional[str] = None,
    ) -> List[RankedItem]:
        now = self.clock()
        results = []

        for item in items:
            breakdown = self._score_nearby(item, viewer_id, now)
            results.append(RankedItem(item, breakdown.final_score, breakdown))

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def _score_nearby(
        self,
        item: ContentItem,
        viewer_id: Optional[str],
        now: int
    ) -> ScoreBreakdown:
        w = self.weights
        age_hours = (now - item.timestamp_ms) / HOUR_MS

        if age_hours < w.live_window_hours:
            recency = 100.0
        else:
            recency = max(0.0, 100.0 - age_hours * w.recency_decay_per_hour)

        percentage = self.aggregator.calculate_vibe_percentage(item.venue_id)
        vibe_level = float(percentage) if percentage is not None else w.neutral_vibe_level

        boost = w.vibe_boost if self._is_boosted(item.venue_id, viewer_id) else 0.0

        score = recency * w.recency + vibe_level * w.vibe_level + boost

        return ScoreBreakdown(
            item_id=item.id,
            final_score=score,
            recency_score=recency,
            vibe_level=vibe_level,
            vibe_boost=boost,
            age_hours=age_hours,
        )

    def _is_boosted(self, venue_id: str, viewer_id: Optional[str]) -> bool:
        """Hot venue, or the viewer holds a top-tier badge there."""
        mean = self.aggregator.vibe_score(venue_id)
        if mean is not None and mean >= self.weights.hot_vibe_threshold:
            return True
        return bool(viewer_id) and self.identity.is_vip(viewer_id, venue_id)

    # =========================================================================
    # FOLLOWING
    # =========================================================================

    def rank_following(
        self,
        items: Iterable[ContentItem],
        followed_performer_ids: Iterable[str] = (),
        friends: Sequence[FriendPresence] = (),
    ) -> List[RankedItem]:
        w = self.weights
        followed = set(followed_performer_ids)
        friend_counts = count_by_venue(friends)
        results = []

        for item in items:
            friend_count = friend_counts.get(item.venue_id, 0)
            has_friends = friend_count >= w.friend_presence_threshold
            is_followed = item.performer_id is not None and item.performer_id in followed

            if not is_followed and not has_friends:
                continue

            priority = item.timestamp_ms
            if has_friends:
                priority += w.friend_presence_priority

            breakdown = ScoreBreakdown(
                item_id=item.id,
                final_score=float(priority),
                friend_count=friend_count,
                followed_performer=is_followed,
                friend_presence=has_friends,
            )
            results.append(RankedItem(item, float(priority), breakdown))

        # The presence offset is small next to epoch-ms timestamps, so the
        # bucket is part of the sort key to keep friend items on top.
        results.sort(key=lambda r: (r.breakdown.friend_presence, r.score), reverse=True)
        logger.debug(f"FOLLOWING feed kept {len(results)} items")
        return results
