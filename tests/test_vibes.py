"""
Tests for vibe aggregation: weighting, cooldowns and decay.
"""

import threading
import unittest
from dataclasses import FrozenInstanceError

from vibelink_engine.config import HOUR_MS, MINUTE_MS
from vibelink_engine.exceptions import CooldownError, ValidationError
from vibelink_engine.identity import BadgeDirectory
from vibelink_engine.models import BadgeTier, EnergyLevel, VibeVote, WaitTime
from vibelink_engine.store import InMemoryRepository
from vibelink_engine.vibes import VibeAggregator

from tests.support import FakeClock


def make_vote(user_id="u1", venue_id="v1", music=4, density=4,
              energy=EnergyLevel.SOCIAL, wait=WaitTime.SHORT):
    return VibeVote(
        user_id=user_id,
        venue_id=venue_id,
        music_score=music,
        density_score=density,
        energy_level=energy,
        wait_time=wait,
    )


class TestVibeAggregation(unittest.TestCase):
    """Weighted running averages."""

    def setUp(self):
        self.clock = FakeClock()
        self.badges = BadgeDirectory()
        self.aggregator = VibeAggregator(self.badges, clock=self.clock)

    def test_first_vote_initializes_state(self):
        state = self.aggregator.submit_vote(make_vote(music=3, density=5))

        self.assertEqual(state.music_score, 3.0)
        self.assertEqual(state.density_score, 5.0)
        self.assertEqual(state.total_weight, 1.0)
        self.assertEqual(state.last_updated_ms, self.clock.now)

    def test_weighted_average(self):
        self.aggregator.submit_vote(make_vote(user_id="a", music=4))
        self.badges.grant("b", "v1", BadgeTier.WHALE)
        state = self.aggregator.submit_vote(make_vote(user_id="b", music=2))

        self.assertAlmostEqual(state.music_score, (4 * 1 + 2 * 2) / 3)
        self.assertAlmostEqual(state.music_score, 2.667, places=3)
        self.assertEqual(state.total_weight, 3.0)

    def test_vip_votes_count_double(self):
        self.badges.grant("vip", "v1", BadgeTier.PLATINUM)
        state = self.aggregator.submit_vote(make_vote(user_id="vip"))
        self.assertEqual(state.total_weight, 2.0)

    def test_badge_at_other_venue_does_not_count(self):
        self.badges.grant("u1", "elsewhere", BadgeTier.WHALE)
        state = self.aggregator.submit_vote(make_vote(user_id="u1"))
        self.assertEqual(state.total_weight, 1.0)

    def test_lower_tiers_are_regular_weight(self):
        self.badges.grant("u1", "v1", BadgeTier.REGULAR)
        state = self.aggregator.submit_vote(make_vote(user_id="u1"))
        self.assertEqual(state.total_weight, 1.0)

    def test_energy_and_wait_last_vote_wins(self):
        self.aggregator.submit_vote(make_vote(user_id="a", energy=EnergyLevel.CHILL, wait=WaitTime.LONG))
        state = self.aggregator.submit_vote(make_vote(user_id="b", energy=EnergyLevel.WILD, wait=WaitTime.SHORT))

        self.assertEqual(state.energy_level, EnergyLevel.WILD)
        self.assertEqual(state.wait_time, WaitTime.SHORT)

    def test_string_enums_are_accepted(self):
        state = self.aggregator.submit_vote(make_vote(energy="Wild", wait="30m+"))
        self.assertEqual(state.energy_level, EnergyLevel.WILD)
        self.assertEqual(state.wait_time, WaitTime.LONG)

    def test_venues_are_independent(self):
        self.aggregator.submit_vote(make_vote(venue_id="v1", music=5))
        self.aggregator.submit_vote(make_vote(venue_id="v2", music=1))

        self.assertEqual(self.aggregator.get_vibe("v1").music_score, 5.0)
        self.assertEqual(self.aggregator.get_vibe("v2").music_score, 1.0)

    def test_returned_state_cannot_be_modified(self):
        state = self.aggregator.submit_vote(make_vote(music=5, density=5))

        with self.assertRaises(FrozenInstanceError):
            state.total_weight = 0.0
        with self.assertRaises(FrozenInstanceError):
            self.aggregator.get_raw_vibe("v1").music_score = 1.0

        stored = self.aggregator.get_vibe("v1")
        self.assertEqual(stored.total_weight, 1.0)
        self.assertEqual(stored.music_score, 5.0)


class TestVoteValidation(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.aggregator = VibeAggregator(BadgeDirectory(), clock=self.clock)

    def assert_rejected(self, vote):
        with self.assertRaises(ValidationError):
            self.aggregator.submit_vote(vote)
        self.assertIsNone(self.aggregator.get_raw_vibe(vote.venue_id))
        self.assertTrue(self.aggregator.can_vote(vote.user_id, vote.venue_id))

    def test_scores_out_of_range(self):
        self.assert_rejected(make_vote(music=0))
        self.assert_rejected(make_vote(music=6))
        self.assert_rejected(make_vote(density=0.5))
        self.assert_rejected(make_vote(density=5.5))

    def test_non_numeric_score(self):
        self.assert_rejected(make_vote(music="4"))
        self.assert_rejected(make_vote(density=True))

    def test_unknown_enums(self):
        self.assert_rejected(make_vote(energy="Rowdy"))
        self.assert_rejected(make_vote(wait="forever"))

    def test_missing_ids(self):
        with self.assertRaises(ValidationError):
            self.aggregator.submit_vote(make_vote(user_id=""))

    def test_bounds_are_inclusive(self):
        state = self.aggregator.submit_vote(make_vote(music=1, density=5))
        self.assertEqual((state.music_score, state.density_score), (1.0, 5.0))

    def test_validation_error_is_value_error(self):
        with self.assertRaises(ValueError):
            self.aggregator.submit_vote(make_vote(music=9))


class TestCooldown(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.aggregator = VibeAggregator(BadgeDirectory(), clock=self.clock)

    def test_second_vote_within_window_rejected(self):
        self.aggregator.submit_vote(make_vote())
        self.clock.advance(10 * MINUTE_MS)

        with self.assertRaises(CooldownError) as ctx:
            self.aggregator.submit_vote(make_vote(music=1))

        self.assertEqual(ctx.exception.remaining_ms, 50 * MINUTE_MS)
        self.assertEqual(ctx.exception.venue_id, "v1")
        # No mutation
        self.assertEqual(self.aggregator.get_vibe("v1").music_score, 4.0)
        self.assertEqual(self.aggregator.get_vibe("v1").total_weight, 1.0)

    def test_vote_after_window_accepted(self):
        self.aggregator.submit_vote(make_vote(music=4))
        self.clock.advance(HOUR_MS)

        state = self.aggregator.submit_vote(make_vote(music=2))
        self.assertEqual(state.music_score, 3.0)

    def test_cooldown_is_per_venue_and_user(self):
        self.aggregator.submit_vote(make_vote(user_id="u1", venue_id="v1"))

        self.aggregator.submit_vote(make_vote(user_id="u1", venue_id="v2"))
        self.aggregator.submit_vote(make_vote(user_id="u2", venue_id="v1"))
        self.assertEqual(self.aggregator.get_vibe("v1").total_weight, 2.0)

    def test_can_vote_and_remaining(self):
        self.assertTrue(self.aggregator.can_vote("u1", "v1"))
        self.assertEqual(self.aggregator.get_cooldown_remaining("u1", "v1"), 0)

        self.aggregator.submit_vote(make_vote())
        self.clock.advance(15 * MINUTE_MS)

        self.assertFalse(self.aggregator.can_vote("u1", "v1"))
        self.assertEqual(self.aggregator.get_cooldown_remaining("u1", "v1"), 45 * MINUTE_MS)

        self.clock.advance(2 * HOUR_MS)
        self.assertTrue(self.aggregator.can_vote("u1", "v1"))
        self.assertEqual(self.aggregator.get_cooldown_remaining("u1", "v1"), 0)

    def test_concurrent_votes_only_one_accepted(self):
        accepted = []
        rejected = []
        barrier = threading.Barrier(8)

        def vote():
            barrier.wait()
            try:
                self.aggregator.submit_vote(make_vote())
                accepted.append(1)
            except CooldownError:
                rejected.append(1)

        threads = [threading.Thread(target=vote) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(accepted), 1)
        self.assertEqual(len(rejected), 7)
        self.assertEqual(self.aggregator.get_vibe("v1").total_weight, 1.0)


class TestDecay(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.aggregator = VibeAggregator(BadgeDirectory(), clock=self.clock)

    def test_missing_venue(self):
        self.assertIsNone(self.aggregator.get_vibe("nowhere"))
        self.assertIsNone(self.aggregator.calculate_vibe_percentage("nowhere"))

    def test_stale_data_hidden_but_preserved(self):
        self.aggregator.submit_vote(make_vote(user_id="a", music=4, density=4))
        self.clock.advance_hours(3.99)
        self.assertIsNotNone(self.aggregator.get_vibe("v1"))

        self.clock.advance_hours(0.01)
        self.assertIsNone(self.aggregator.get_vibe("v1"))
        self.assertIsNone(self.aggregator.calculate_vibe_percentage("v1"))
        self.assertIsNotNone(self.aggregator.get_raw_vibe("v1"))

        state = self.aggregator.submit_vote(make_vote(user_id="b", music=2, density=2))
        self.assertEqual(state.total_weight, 2.0)
        self.assertEqual(state.music_score, 3.0)
        self.assertIsNotNone(self.aggregator.get_vibe("v1"))

    def test_vibe_percentage(self):
        self.aggregator.submit_vote(make_vote(music=4, density=5))
        self.assertEqual(self.aggregator.calculate_vibe_percentage("v1"), 90)

    def test_vibe_percentage_rounds_half_up(self):
        # mean 3.375 -> 67.5
        self.aggregator.submit_vote(make_vote(user_id="a", music=3, density=3.75))
        self.assertEqual(self.aggregator.calculate_vibe_percentage("v1"), 68)


class TestCustomStores(unittest.TestCase):

    def test_state_goes_through_injected_repositories(self):
        vibes = InMemoryRepository()
        cooldowns = InMemoryRepository()
        clock = FakeClock()
        aggregator = VibeAggregator(BadgeDirectory(), vibes, cooldowns, clock=clock)

        aggregator.submit_vote(make_vote())

        self.assertEqual(vibes.get("v1").music_score, 4.0)
        self.assertEqual(cooldowns.get(("u1", "v1")).last_vote_ms, clock.now)


if __name__ == '__main__':
    unittest.main()
