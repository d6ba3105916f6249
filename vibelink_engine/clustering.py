"""
Friend Clustering
=================

Groups visible friends by the venue they are at and locates the
largest group on the map.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np

from .models import FriendCluster, FriendPresence, GeoPoint


def group_by_venue(friends: Iterable[FriendPresence]) -> Dict[str, List[FriendPresence]]:
    """Friends keyed by venue_id, in first-seen order; venue-less entries are skipped."""
    groups: Dict[str, List[FriendPresence]] = {}
    for friend in friends:
        if not friend.venue_id:
            continue
        groups.setdefault(friend.venue_id, []).append(friend)
    return groups


def count_by_venue(friends: Iterable[FriendPresence]) -> Dict[str, int]:
    """Number of distinct friends present at each venue."""
    return {
        venue_id: len({m.user_id for m in members})
        for venue_id, members in group_by_venue(friends).items()
    }


def centroid(points: List[GeoPoint]) -> GeoPoint:
    """Unweighted mean of latitudes and longitudes."""
    coords = np.array([[p.latitude, p.longitude] for p in points], dtype=float)
    lat, lon = coords.mean(axis=0)
    return GeoPoint(latitude=float(lat), longitude=float(lon))


class FriendClusterer:
    """
    Finds where the viewer's friends are gathered.

    Input is the location provider's snapshot, already filtered for
    visibility; no privacy rules are applied here.
    """

    def find_largest_cluster(self, friends: Iterable[FriendPresence]) -> Optional[FriendCluster]:
        """
        Locate the venue with the most friends.

        Ties go to the venue seen first in the input.

        Returns:
            The cluster with its centroid, or None when no friend is at a venue
        """
        groups = group_by_venue(friends)

        largest_venue = None
        largest_count = 0
        for venue_id, members in groups.items():
            if len(members) > largest_count:
                largest_venue = venue_id
                largest_count = len(members)

        if largest_venue is None:
            return None

        members = groups[largest_venue]
        return FriendCluster(
            venue_id=largest_venue,
            centroid=centroid([m.location for m in members]),
            members=list(members),
            venue_name=members[0].venue_name,
        )

    def friends_at_venue(self, friends: Iterable[FriendPresence], venue_id: str) -> List[FriendPresence]:
        return [f for f in friends if f.venue_id == venue_id]
