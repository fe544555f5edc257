from datetime import timedelta

import pytest

from twinfeed.utils.recency import (
    filter_recent_feeds,
    percentile,
    recency_weight,
    weighted_avg,
    weighted_median,
)

from conftest import TODAY, make_feed


class TestRecencyWeight:
    def test_tiers(self):
        assert recency_weight(TODAY - timedelta(days=2), TODAY) == 3
        assert recency_weight(TODAY - timedelta(days=7), TODAY) == 3
        assert recency_weight(TODAY - timedelta(days=10), TODAY) == 2
        assert recency_weight(TODAY - timedelta(days=40), TODAY) == 1

    def test_recent_never_weighs_less_than_older(self):
        weights = [recency_weight(TODAY - timedelta(hours=h), TODAY) for h in range(0, 60 * 24, 6)]
        assert weights == sorted(weights, reverse=True), "Weights must not increase with age"


class TestWeightedAggregates:
    def test_empty_inputs_yield_zero(self):
        assert weighted_median([]) == 0
        assert weighted_avg([]) == 0
        assert percentile([], 25) == 0

    def test_weighted_median(self):
        assert weighted_median([(3, 1), (1, 1), (2, 1)]) == 2

    def test_weighted_median_follows_heavy_values(self):
        assert weighted_median([(1, 1), (10, 3)]) == 10

    def test_weighted_avg(self):
        assert weighted_avg([(10, 3), (20, 1)]) == pytest.approx(12.5)

    def test_percentile_uses_floor_index(self):
        assert percentile([40, 10, 30, 20], 75) == 30


class TestWindow:
    def test_events_outside_window_are_dropped(self):
        old = make_feed(TODAY - timedelta(days=61))
        kept = make_feed(TODAY - timedelta(days=59))
        assert filter_recent_feeds([old, kept], TODAY) == [kept]

    def test_custom_window(self):
        feed = make_feed(TODAY - timedelta(days=10))
        assert filter_recent_feeds([feed], TODAY, window_days=7) == []
