"""
VibeLink Engine
===============

Wires the aggregator, feed ranker, friend clusterer and suggestion
merger together around injected collaborators:
    - repositories for vibe aggregates and cooldowns
    - an identity provider for badge tiers
    - a location provider for visible friend positions
    - suggestion providers for contacts / social / venue candidates

Usage:
    engine = VibeEngine(identity=BadgeDirectory(), location_provider=fetch_friends)
    engine.start()
    engine.submit_vote("u1", "club-9", music=4, density=5,
                       energy="Wild", wait_time="10-30m")
    page = engine.rank_feed(items, FeedMode.NEARBY, viewer_id="u1")
    print(page.to_json())
    engine.stop()
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .clustering import FriendClusterer
from .config import (
    DEFAULT_FEED_WEIGHTS,
    DEFAULT_SUGGESTION_CONFIG,
    FRIEND_REFRESH_INTERVAL_S,
    FeedWeights,
    SuggestionConfig,
)
from .feed import FeedRanker, RankedItem
from .identity import IdentityProvider
from .location import FriendPresenceFeed, LocationProvider
from .models import (
    ContentItem,
    Cooldown,
    EnergyLevel,
    FeedMode,
    FriendCluster,
    FriendPresence,
    RawCandidate,
    SuggestedPerson,
    VenueVibeState,
    VibeVote,
    WaitTime,
)
from .scheduler import Scheduler, ThreadScheduler
from .store import Repository
from .suggestions import SuggestionMerger, SuggestionProvider
from .utils import Clock, now_ms
from .vibes import VibeAggregator

logger = logging.getLogger(__name__)


@dataclass
class FeedPage:
    """One ranked feed response."""
    mode: FeedMode
    items: List[RankedItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode.value,
            "count": len(self.items),
            "items": [r.to_dict() for r in self.items],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class VibeEngine:
    """
    Entry point for the surrounding application.

    Components are built once and held for the engine's lifetime; the
    friend-location refresh only runs between start() and stop().
    """

    def __init__(
        self,
        identity: IdentityProvider,
        location_provider: Optional[LocationProvider] = None,
        vibe_store: Optional[Repository[VenueVibeState]] = None,
        cooldown_store: Optional[Repository[Cooldown]] = None,
        contacts_provider: Optional[SuggestionProvider] = None,
        social_provider: Optional[SuggestionProvider] = None,
        venue_provider: Optional[SuggestionProvider] = None,
        algorithmic_provider: Optional[SuggestionProvider] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Clock = now_ms,
        feed_weights: FeedWeights = DEFAULT_FEED_WEIGHTS,
        suggestion_config: SuggestionConfig = DEFAULT_SUGGESTION_CONFIG,
        refresh_interval_s: float = FRIEND_REFRESH_INTERVAL_S,
    ):
        """
        Initialize the engine.

        Args:
            identity: Badge-tier lookup
            location_provider: Returns visible friend positions
            vibe_store: Venue aggregates keyed by venue_id
            cooldown_store: Cooldowns keyed by (user_id, venue_id)
            contacts_provider: Contact-match suggestion source
            social_provider: Social-following suggestion source
            venue_provider: Venue co-visitor suggestion source
            algorithmic_provider: Model-ranked suggestion source
            scheduler: Drives the friend-location refresh
            clock: Source of the current time in epoch ms
            feed_weights: Feed scoring configuration
            suggestion_config: Default suggestion merge configuration
            refresh_interval_s: Seconds between friend-location refreshes
        """
        self.clock = clock
        self.identity = identity

        self.aggregator = VibeAggregator(
            identity,
            vibe_store=vibe_store,
            cooldown_store=cooldown_store,
            clock=clock,
        )
        self.ranker = FeedRanker(self.aggregator, identity, feed_weights, clock=clock)
        self.clusterer = FriendClusterer()
        self.suggester = SuggestionMerger(
            contacts_provider=contacts_provider,
            social_provider=social_provider,
            venue_provider=venue_provider,
            algorithmic_provider=algorithmic_provider,
            config=suggestion_config,
            clock=clock,
        )
        self.friends = FriendPresenceFeed(
            location_provider or (lambda: ()),
            scheduler or ThreadScheduler(),
            interval_s=refresh_interval_s,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        self.friends.start()
        logger.info("VibeLink engine started")

    def stop(self) -> None:
        self.friends.stop()
        logger.info("VibeLink engine stopped")

    # =========================================================================
    # VIBE CHECKS
    # =========================================================================

    def submit_vote(
        self,
        user_id: str,
        venue_id: str,
        music: float,
        density: float,
        energy: Union[EnergyLevel, str],
        wait_time: Union[WaitTime, str],
    ) -> VenueVibeState:
        """Submit a vibe check; see VibeAggregator.submit_vote for errors."""
        vote = VibeVote(
            user_id=user_id,
            venue_id=venue_id,
            music_score=music,
            density_score=density,
            energy_level=energy,
            wait_time=wait_time,
        )
        return self.aggregator.submit_vote(vote)

    def get_vibe(self, venue_id: str) -> Optional[VenueVibeState]:
        return self.aggregator.get_vibe(venue_id)

    def vibe_percentage(self, venue_id: str) -> Optional[int]:
        return self.aggregator.calculate_vibe_percentage(venue_id)

    def can_vote(self, user_id: str, venue_id: str) -> bool:
        return self.aggregator.can_vote(user_id, venue_id)

    def cooldown_remaining(self, user_id: str, venue_id: str) -> int:
        return self.aggregator.get_cooldown_remaining(user_id, venue_id)

    # =========================================================================
    # FEED
    # =========================================================================

    def rank_feed(
        self,
        items: Iterable[ContentItem],
        mode: Union[FeedMode, str],
        viewer_id: Optional[str] = None,
        followed_performer_ids: Iterable[str] = (),
    ) -> FeedPage:
        """Rank content against the current friend snapshot."""
        mode = FeedMode(mode)
        ranked = self.ranker.rank(
            items,
            mode,
            viewer_id=viewer_id,
            followed_performer_ids=followed_performer_ids,
            friends=self.friends.snapshot(),
        )
        return FeedPage(mode=mode, items=ranked)

    # =========================================================================
    # FRIENDS
    # =========================================================================

    def largest_friend_cluster(self) -> Optional[FriendCluster]:
        return self.clusterer.find_largest_cluster(self.friends.snapshot())

    def friends_at_venue(self, venue_id: str) -> List[FriendPresence]:
        return self.clusterer.friends_at_venue(self.friends.snapshot(), venue_id)

    def suggestions(
        self,
        excluded_ids: Iterable[str] = (),
        mutual_candidates: Sequence[RawCandidate] = (),
        config: Optional[SuggestionConfig] = None,
    ) -> List[SuggestedPerson]:
        return self.suggester.get_suggestions(excluded_ids, mutual_candidates, config)

    def invalidate_suggestions(self) -> None:
        """Call after the viewer follows or blocks someone."""
        self.suggester.invalidate_cache()
