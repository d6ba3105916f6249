"""
End-to-end tests for the VibeEngine facade.
"""

import json
import unittest
from unittest.mock import Mock

from vibelink_engine import VibeEngine
from vibelink_engine.config import HOUR_MS
from vibelink_engine.exceptions import CooldownError, ValidationError
from vibelink_engine.identity import BadgeDirectory
from vibelink_engine.models import (
    BadgeTier,
    ContentItem,
    FeedMode,
    FriendPresence,
    GeoPoint,
    RawCandidate,
)
from vibelink_engine.scheduler import ManualScheduler

from tests.support import FakeClock


def friend(user_id, venue_id, lat=0.0, lon=0.0):
    return FriendPresence(user_id, GeoPoint(lat, lon), last_updated_ms=0, venue_id=venue_id)


class TestVibeEngine(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.scheduler = ManualScheduler()
        self.badges = BadgeDirectory()
        self.friends = [
            friend("f1", "club", 0, 0),
            friend("f2", "club", 0, 2),
            friend("f3", "club", 2, 0),
            friend("f4", "bar", 5, 5),
        ]
        self.contacts = Mock(return_value=[RawCandidate("c1")])
        self.engine = VibeEngine(
            identity=self.badges,
            location_provider=lambda: list(self.friends),
            contacts_provider=self.contacts,
            scheduler=self.scheduler,
            clock=self.clock,
        )
        self.engine.start()

    def tearDown(self):
        self.engine.stop()

    def test_vote_then_percentage(self):
        state = self.engine.submit_vote("u1", "club", music=4, density=5, energy="Wild", wait_time="10-30m")

        self.assertEqual(state.total_weight, 1.0)
        self.assertEqual(self.engine.vibe_percentage("club"), 90)
        self.assertIsNone(self.engine.vibe_percentage("elsewhere"))
        self.assertFalse(self.engine.can_vote("u1", "club"))
        self.assertEqual(self.engine.cooldown_remaining("u1", "club"), HOUR_MS)

    def test_cooldown_and_validation_errors(self):
        self.engine.submit_vote("u1", "club", 3, 3, "Chill", "0-10m")

        with self.assertRaises(CooldownError):
            self.engine.submit_vote("u1", "club", 5, 5, "Chill", "0-10m")
        with self.assertRaises(ValidationError):
            self.engine.submit_vote("u2", "club", 6, 3, "Chill", "0-10m")

        self.clock.advance(HOUR_MS)
        self.engine.submit_vote("u1", "club", 5, 5, "Chill", "0-10m")
        self.assertEqual(self.engine.get_vibe("club").total_weight, 2.0)

    def test_vip_vote_counts_double(self):
        self.badges.grant("vip", "club", BadgeTier.PLATINUM)
        self.engine.submit_vote("regular", "club", 1, 1, "Chill", "0-10m")
        state = self.engine.submit_vote("vip", "club", 4, 4, "Chill", "0-10m")

        self.assertEqual(state.total_weight, 3.0)
        self.assertAlmostEqual(state.music_score, 3.0)

    def test_rank_feed_page(self):
        items = [
            ContentItem("old", "bar", self.clock.now - 10 * HOUR_MS),
            ContentItem("new", "bar", self.clock.now),
        ]

        page = self.engine.rank_feed(items, "NEARBY")

        self.assertEqual(page.mode, FeedMode.NEARBY)
        self.assertEqual([r.item.id for r in page.items], ["new", "old"])
        data = json.loads(page.to_json())
        self.assertEqual(data["mode"], "NEARBY")
        self.assertEqual(data["count"], 2)
        self.assertEqual(data["items"][0]["id"], "new")

    def test_following_uses_friend_snapshot(self):
        items = [
            ContentItem("at-club", "club", self.clock.now - HOUR_MS),
            ContentItem("at-bar", "bar", self.clock.now),
        ]

        page = self.engine.rank_feed(items, FeedMode.FOLLOWING)

        self.assertEqual([r.item.id for r in page.items], ["at-club"])
        self.assertFalse(page.is_empty)

    def test_cluster_follows_refresh(self):
        cluster = self.engine.largest_friend_cluster()
        self.assertEqual(cluster.venue_id, "club")
        self.assertEqual(cluster.count, 3)

        self.friends = [friend("f1", "bar"), friend("f2", "bar")]
        self.scheduler.advance(5)

        self.assertEqual(self.engine.largest_friend_cluster().venue_id, "bar")
        self.assertEqual(self.engine.friends_at_venue("club"), [])

    def test_no_friends_before_start(self):
        engine = VibeEngine(identity=self.badges, scheduler=ManualScheduler(), clock=self.clock)
        self.assertIsNone(engine.largest_friend_cluster())
        self.assertTrue(engine.rank_feed([], FeedMode.FOLLOWING).is_empty)

    def test_suggestions_and_invalidate(self):
        first = self.engine.suggestions(mutual_candidates=[RawCandidate("m1", mutual_count=1)])
        self.assertEqual([s.id for s in first], ["c1", "m1"])

        self.engine.suggestions(mutual_candidates=[RawCandidate("m1", mutual_count=1)])
        self.assertEqual(self.contacts.call_count, 1)

        self.engine.invalidate_suggestions()
        self.engine.suggestions(mutual_candidates=[RawCandidate("m1", mutual_count=1)])
        self.assertEqual(self.contacts.call_count, 2)


if __name__ == '__main__':
    unittest.main()
