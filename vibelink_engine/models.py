"""
Data Model
==========

Value types shared by the aggregator, the feed ranker, the friend
clusterer and the suggestion merger.

All timestamps are integer epoch milliseconds.
"""

from enum import Enum
from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field


class EnergyLevel(str, Enum):
    CHILL = "Chill"
    SOCIAL = "Social"
    WILD = "Wild"


class WaitTime(str, Enum):
    SHORT = "0-10m"
    MEDIUM = "10-30m"
    LONG = "30m+"


class BadgeTier(str, Enum):
    GUEST = "GUEST"
    REGULAR = "REGULAR"
    PLATINUM = "PLATINUM"
    WHALE = "WHALE"


# Tiers whose votes count double
VIP_TIERS = frozenset({BadgeTier.PLATINUM, BadgeTier.WHALE})


class SuggestionSource(str, Enum):
    CONTACT = "CONTACT"
    SOCIAL = "SOCIAL"
    MUTUAL = "MUTUAL"
    VENUE = "VENUE"
    ALGORITHMIC = "ALGORITHMIC"


class FeedMode(str, Enum):
    NEARBY = "NEARBY"
    FOLLOWING = "FOLLOWING"


# =============================================================================
# VIBE CHECKS
# =============================================================================
@dataclass(frozen=True)
class VibeVote:
    """A single crowd report for a venue."""
    user_id: str
    venue_id: str
    music_score: float
    density_score: float
    energy_level: EnergyLevel
    wait_time: WaitTime

    # Filled in by the aggregator when the vote is accepted
    weight: float = 1.0
    timestamp_ms: int = 0


@dataclass(frozen=True)
class VenueVibeState:
    """Running weighted aggregate of every accepted vote for a venue."""
    venue_id: str
    music_score: float
    density_score: float

    # Sum of vote weights; only ever grows
    total_weight: float

    # Last vote wins
    energy_level: EnergyLevel
    wait_time: WaitTime

    last_updated_ms: int

    @property
    def mean_score(self) -> float:
        return (self.music_score + self.density_score) / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "venue_id": self.venue_id,
            "music_score": self.music_score,
            "density_score": self.density_score,
            "total_weight": self.total_weight,
            "energy_level": self.energy_level.value,
            "wait_time": self.wait_time.value,
            "last_updated_ms": self.last_updated_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VenueVibeState":
        return cls(
            venue_id=data["venue_id"],
            music_score=float(data["music_score"]),
            density_score=float(data["density_score"]),
            total_weight=float(data["total_weight"]),
            energy_level=EnergyLevel(data["energy_level"]),
            wait_time=WaitTime(data["wait_time"]),
            last_updated_ms=int(data["last_updated_ms"]),
        )


@dataclass(frozen=True)
class Cooldown:
    """Last accepted vote time for one (user, venue) pair."""
    user_id: str
    venue_id: str
    last_vote_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "venue_id": self.venue_id,
            "last_vote_ms": self.last_vote_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cooldown":
        return cls(
            user_id=data["user_id"],
            venue_id=data["venue_id"],
            last_vote_ms=int(data["last_vote_ms"]),
        )


# =============================================================================
# CONTENT & PRESENCE
# =============================================================================
@dataclass(frozen=True)
class ContentItem:
    """A video or post owned by the content store."""
    id: str
    venue_id: str
    timestamp_ms: int
    performer_id: Optional[str] = None


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class FriendPresence:
    """
    A friend's last known position, already filtered for the viewer's
    visibility by the location provider.
    """
    user_id: str
    location: GeoPoint
    last_updated_ms: int
    is_active: bool = True
    venue_id: Optional[str] = None
    venue_name: Optional[str] = None


@dataclass
class FriendCluster:
    """The venue holding the most visible friends."""
    venue_id: str
    centroid: GeoPoint
    members: List[FriendPresence] = field(default_factory=list)
    venue_name: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "venue_id": self.venue_id,
            "venue_name": self.venue_name,
            "count": self.count,
            "location": self.centroid.to_dict(),
            "friends": [m.user_id for m in self.members],
        }


# =============================================================================
# FRIEND SUGGESTIONS
# =============================================================================
@dataclass(frozen=True)
class RawCandidate:
    """
    A person surfaced by one suggestion provider.

    user_id is None when the person is not on the app yet (e.g. a phone
    contact without an account); those are dropped during the merge.
    """
    user_id: Optional[str]
    display_name: Optional[str] = None
    mutual_count: int = 0

    # Source-specific hint: a social handle, a venue name, ...
    detail: Optional[str] = None


@dataclass(frozen=True)
class SuggestedPerson:
    """A merged, prioritized friend suggestion."""
    id: str
    source: SuggestionSource
    priority: float
    mutual_count: int = 0
    display_name: Optional[str] = None
    detail: Optional[str] = None

    @property
    def label(self) -> str:
        """Human-readable reason for the suggestion."""
        if self.source == SuggestionSource.CONTACT:
            return "In your contacts"
        if self.source == SuggestionSource.SOCIAL:
            return f"You follow @{self.detail}" if self.detail else "You follow them"
        if self.source == SuggestionSource.MUTUAL:
            if self.mutual_count == 1:
                return "1 mutual friend"
            return f"{self.mutual_count} mutual friends"
        if self.source == SuggestionSource.VENUE and self.detail:
            return f"Frequents {self.detail}"
        return "Suggested for you"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "source": self.source.value,
            "priority": self.priority,
            "mutual_count": self.mutual_count,
            "label": self.label,
        }
