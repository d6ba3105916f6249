"""
Vibe Aggregation
================

Folds crowd votes into a per-venue running weighted average.

Mathematical Formulation:
-------------------------

For a venue with aggregate score S and accumulated weight W, a new vote
with value v and weight w gives:

    S' = (S × W + v × w) / (W + w)
    W' = W + w

applied independently to the music and density scores. Energy level and
wait time are not averaged; the latest vote wins.

w is 2.0 for voters holding a WHALE or PLATINUM badge at the venue,
1.0 otherwise.

Aggregates older than the decay window are hidden from reads but kept, so
the next accepted vote keeps averaging against the accumulated weight.
"""

import logging
from dataclasses import replace
from numbers import Real
from typing import Optional, Tuple

from .config import (
    VOTE_COOLDOWN_MS,
    DATA_DECAY_MS,
    VIP_VOTE_WEIGHT,
    REGULAR_VOTE_WEIGHT,
    MIN_VOTE_SCORE,
    MAX_VOTE_SCORE,
)
from .exceptions import CooldownError, ValidationError
from .identity import IdentityProvider
from .models import Cooldown, EnergyLevel, VenueVibeState, VibeVote, WaitTime
from .store import InMemoryRepository, Repository
from .utils import Clock, KeyedLocks, now_ms, round_half_up

logger = logging.getLogger(__name__)


class VibeAggregator:
    """
    Ingests vibe-check votes and serves decayed per-venue aggregates.

    Vote submission is serialized per venue, so the cooldown
    check-and-set and the aggregate update happen as one step.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        vibe_store: Optional[Repository[VenueVibeState]] = None,
        cooldown_store: Optional[Repository[Cooldown]] = None,
        clock: Clock = now_ms,
        cooldown_ms: int = VOTE_COOLDOWN_MS,
        decay_ms: int = DATA_DECAY_MS,
    ):
        """
        Initialize the aggregator.

        Args:
            identity: Badge-tier lookup used for vote weighting
            vibe_store: Venue aggregates keyed by venue_id
            cooldown_store: Cooldowns keyed by (user_id, venue_id)
            clock: Source of the current time in epoch ms
            cooldown_ms: Minimum interval between votes per user and venue
            decay_ms: Age at which an aggregate stops being visible
        """
        self.identity = identity
        self.vibe_store = vibe_store if vibe_store is not None else InMemoryRepository()
        self.cooldown_store = cooldown_store if cooldown_store is not None else InMemoryRepository()
        self.clock = clock
        self.cooldown_ms = cooldown_ms
        self.decay_ms = decay_ms
        self._venue_locks = KeyedLocks()

    # =========================================================================
    # WRITES
    # =========================================================================

    def submit_vote(self, vote: VibeVote) -> VenueVibeState:
        """
        Validate and apply a vote.

        Args:
            vote: The incoming vote; its weight and timestamp are ignored
                and recomputed here

        Returns:
            The venue's updated aggregate

        Raises:
            ValidationError: A score is outside [1, 5] or an enum is unknown
            CooldownError: The user voted for this venue too recently
        """
        energy, wait = self._validate(vote)

        with self._venue_locks.get(vote.venue_id):
            now = self.clock()

            remaining = self._remaining(vote.user_id, vote.venue_id, now)
            if remaining > 0:
                logger.info(
                    f"Rejected vote from {vote.user_id} on {vote.venue_id}: "
                    f"cooldown {remaining}ms"
                )
                raise CooldownError(vote.user_id, vote.venue_id, remaining)

            weight = self._vote_weight(vote.user_id, vote.venue_id)
            accepted = replace(
                vote,
                energy_level=energy,
                wait_time=wait,
                weight=weight,
                timestamp_ms=now,
            )

            state = self._fold(self.vibe_store.get(vote.venue_id), accepted)
            self.vibe_store.set(vote.venue_id, state)
            self.cooldown_store.set(
                (vote.user_id, vote.venue_id),
                Cooldown(vote.user_id, vote.venue_id, now),
            )

        logger.debug(
            f"Accepted vote on {vote.venue_id} (weight={weight}): "
            f"music={state.music_score:.3f} density={state.density_score:.3f} "
            f"total_weight={state.total_weight}"
        )
        return state

    def _fold(self, existing: Optional[VenueVibeState], vote: VibeVote) -> VenueVibeState:
        """Apply an accepted vote to the previous aggregate (if any)."""
        if existing is None:
            return VenueVibeState(
                venue_id=vote.venue_id,
                music_score=float(vote.music_score),
                density_score=float(vote.density_score),
                total_weight=vote.weight,
                energy_level=vote.energy_level,
                wait_time=vote.wait_time,
                last_updated_ms=vote.timestamp_ms,
            )

        total = existing.total_weight + vote.weight
        return VenueVibeState(
            venue_id=vote.venue_id,
            music_score=(existing.music_score * existing.total_weight
                         + vote.music_score * vote.weight) / total,
            density_score=(existing.density_score * existing.total_weight
                           + vote.density_score * vote.weight) / total,
            total_weight=total,
            energy_level=vote.energy_level,
            wait_time=vote.wait_time,
            last_updated_ms=vote.timestamp_ms,
        )

    def _vote_weight(self, user_id: str, venue_id: str) -> float:
        if self.identity.is_vip(user_id, venue_id):
            return VIP_VOTE_WEIGHT
        return REGULAR_VOTE_WEIGHT

    def _validate(self, vote: VibeVote) -> Tuple[EnergyLevel, WaitTime]:
        """Check ranges and coerce enum fields; returns the coerced enums."""
        if not vote.user_id or not vote.venue_id:
            raise ValidationError("Vote requires a user_id and a venue_id")

        for name in ("music_score", "density_score"):
            value = getattr(vote, name)
            if isinstance(value, bool) or not isinstance(value, Real):
                raise ValidationError(f"{name} must be a number, got {value!r}")
            if not MIN_VOTE_SCORE <= value <= MAX_VOTE_SCORE:
                raise ValidationError(
                    f"{name} must be between {MIN_VOTE_SCORE} and {MAX_VOTE_SCORE}, got {value}"
                )

        try:
            energy = EnergyLevel(vote.energy_level)
        except ValueError:
            raise ValidationError(f"Unknown energy level: {vote.energy_level!r}")
        try:
            wait = WaitTime(vote.wait_time)
        except ValueError:
            raise ValidationError(f"Unknown wait time: {vote.wait_time!r}")

        return energy, wait

    # =========================================================================
    # READS
    # =========================================================================

    def get_vibe(self, venue_id: str) -> Optional[VenueVibeState]:
        """Current aggregate, or None if there is none or it has decayed."""
        state = self.vibe_store.get(venue_id)
        if state is None:
            return None
        if self.clock() - state.last_updated_ms >= self.decay_ms:
            return None
        return state

    def get_raw_vibe(self, venue_id: str) -> Optional[VenueVibeState]:
        """Stored aggregate regardless of age."""
        return self.vibe_store.get(venue_id)

    def vibe_score(self, venue_id: str) -> Optional[float]:
        """Mean of music and density (1..5) for a fresh aggregate."""
        state = self.get_vibe(venue_id)
        if state is None:
            return None
        return state.mean_score

    def calculate_vibe_percentage(self, venue_id: str) -> Optional[int]:
        """
        Vibe as a 0-100 percentage.

        percentage = round(((music + density) / 2) / 5 × 100)
        """
        score = self.vibe_score(venue_id)
        if score is None:
            return None
        return round_half_up(score * 100 / MAX_VOTE_SCORE)

    def can_vote(self, user_id: str, venue_id: str) -> bool:
        return self.get_cooldown_remaining(user_id, venue_id) == 0

    def get_cooldown_remaining(self, user_id: str, venue_id: str) -> int:
        """Milliseconds until the user may vote on the venue again."""
        return self._remaining(user_id, venue_id, self.clock())

    def _remaining(self, user_id: str, venue_id: str, now: int) -> int:
        cooldown = self.cooldown_store.get((user_id, venue_id))
        if cooldown is None:
            return 0
        return max(0, self.cooldown_ms - (now - cooldown.last_vote_ms))
