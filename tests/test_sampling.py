"""Tests for torpath.sampling module."""

import random
from unittest.mock import Mock

from torpath.sampling import make_rng, weighted_sample


class FixedDraw:
    """Random source that always returns the same value."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


class TestWeightedSample:
    """weighted_sample() behavior."""

    def test_empty_returns_none(self, rng):
        assert weighted_sample([], rng) is None

    def test_singleton_returned_without_draw(self, make_relay):
        relay = make_relay("Only", "1.1.1.1", bandwidth=0)
        source = Mock()
        assert weighted_sample([relay], source) is relay
        source.random.assert_not_called()

    def test_proportional_to_bandwidth(self, make_relay):
        small = make_relay("Small", "1.1.1.1", bandwidth=1)
        big = make_relay("Big", "2.2.2.2", bandwidth=99)
        source = make_rng(2024)

        trials = 10000
        hits = sum(1 for _ in range(trials) if weighted_sample([small, big], source) is big)
        assert abs(hits / trials - 0.99) <= 0.05

    def test_zero_draw_picks_first(self, make_relay):
        relays = [make_relay("A", "1.1.1.1", bandwidth=10), make_relay("B", "2.2.2.2", bandwidth=10)]
        assert weighted_sample(relays, FixedDraw(0.0)).nickname == "A"

    def test_draw_scans_in_order(self, make_relay):
        relays = [
            make_relay("A", "1.1.1.1", bandwidth=10),
            make_relay("B", "2.2.2.2", bandwidth=30),
            make_relay("C", "3.3.3.3", bandwidth=60),
        ]
        assert weighted_sample(relays, FixedDraw(0.05)).nickname == "A"
        assert weighted_sample(relays, FixedDraw(0.25)).nickname == "B"
        assert weighted_sample(relays, FixedDraw(0.75)).nickname == "C"

    def test_top_of_range_falls_back_to_last(self, make_relay):
        relays = [make_relay("A", "1.1.1.1", bandwidth=1), make_relay("B", "2.2.2.2", bandwidth=2)]
        assert weighted_sample(relays, FixedDraw(0.999999)).nickname == "B"

    def test_overshooting_draw_returns_last(self):
        assert weighted_sample(["x", "y"], FixedDraw(5.0), weight=lambda item: 1.0) == "y"

    def test_custom_weight(self):
        items = ["light", "heavy"]
        weights = {"light": 0.0, "heavy": 1.0}
        assert weighted_sample(items, FixedDraw(0.5), weight=weights.get) == "heavy"

    def test_accepts_stdlib_random(self, make_relay):
        relays = [make_relay("A", "1.1.1.1"), make_relay("B", "2.2.2.2")]
        assert weighted_sample(relays, random.Random(3)) in relays

    def test_seeded_generators_agree(self, make_relay):
        relays = [make_relay(f"R{i}", f"{i}.0.0.1", bandwidth=i + 1) for i in range(10)]
        first = [weighted_sample(relays, rng).nickname for rng in [make_rng(5)] for _ in range(20)]
        second = [weighted_sample(relays, rng).nickname for rng in [make_rng(5)] for _ in range(20)]
        assert first == second
