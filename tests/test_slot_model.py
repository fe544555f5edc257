import pytest

from twinfeed.services.slot_model import (
    SlotStatistics,
    compute_slot_interval,
    compute_slot_volume,
    slot_id_for_hour,
)

from conftest import TODAY, at, make_feed


class TestSlotBoundaries:
    @pytest.mark.parametrize("hour,expected", [
        (5, "night"), (6, "morning"), (9, "morning"), (10, "midday"),
        (14, "afternoon"), (18, "evening"), (21, "evening"), (22, "night"), (0, "night"),
    ])
    def test_slot_for_hour(self, hour, expected):
        assert slot_id_for_hour(hour) == expected


class TestSlotStatistics:
    def test_static_baseline_below_three_samples(self, colette):
        feeds = [make_feed(at(7, 0, 1)), make_feed(at(10, 0, 1))]
        assert compute_slot_interval(colette, "morning", feeds, TODAY) == 3.5
        assert compute_slot_volume(colette, "morning", feeds, TODAY) == 129

    def test_data_driven_interval(self, colette):
        feeds = []
        for days_ago in (3, 2, 1):
            feeds += [make_feed(at(7, 0, days_ago)), make_feed(at(10, 0, days_ago))]
        # 10:00 → next day 07:00 is longer than 12h and ignored
        assert compute_slot_interval(colette, "morning", feeds, TODAY) == pytest.approx(3.0)

    def test_data_driven_volume(self, colette):
        feeds = [make_feed(at(8, 0, d), volume_ml=150) for d in (3, 2, 1)]
        assert compute_slot_volume(colette, "morning", feeds, TODAY) == pytest.approx(150)

    def test_nursing_feeds_do_not_count_for_volume(self, colette):
        feeds = [make_feed(at(8, 0, d), type="nursing") for d in (3, 2, 1)]
        assert compute_slot_volume(colette, "morning", feeds, TODAY) == 129

    def test_memoized_per_call(self, colette):
        stats = SlotStatistics(colette, [], TODAY)
        first = stats.interval_h("evening")
        assert stats.interval_for_hour(19) == first
        assert list(stats._intervals) == ["evening"]
