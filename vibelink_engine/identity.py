"""
Identity Provider
=================

Badge-tier lookups used to weight votes and boost feed items.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple, Union

from .models import BadgeTier, VIP_TIERS


class IdentityProvider(ABC):
    """Answers loyalty-tier questions about a user at a venue."""

    @abstractmethod
    def badge_tier(self, user_id: str, venue_id: str) -> Optional[BadgeTier]:
        """Tier the user holds at the venue, or None without a badge."""

    def is_vip(self, user_id: str, venue_id: str) -> bool:
        return self.badge_tier(user_id, venue_id) in VIP_TIERS


class BadgeDirectory(IdentityProvider):
    """In-memory badge table keyed by (user_id, venue_id)."""

    def __init__(self, badges: Optional[Dict[Tuple[str, str], Union[BadgeTier, str]]] = None):
        self._badges: Dict[Tuple[str, str], BadgeTier] = {}
        self._lock = threading.Lock()
        for (user_id, venue_id), tier in (badges or {}).items():
            self.grant(user_id, venue_id, tier)

    def grant(self, user_id: str, venue_id: str, tier: Union[BadgeTier, str]) -> None:
        with self._lock:
            self._badges[(user_id, venue_id)] = BadgeTier(tier)

    def revoke(self, user_id: str, venue_id: str) -> None:
        with self._lock:
            self._badges.pop((user_id, venue_id), None)

    def badge_tier(self, user_id: str, venue_id: str) -> Optional[BadgeTier]:
        with self._lock:
            return self._badges.get((user_id, venue_id))
