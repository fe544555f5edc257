import pytest

from twinfeed.services.accuracy import compute_day_accuracy

from conftest import at, make_feed, make_sleep


@pytest.fixture
def feed_day():
    """Yesterday every 3h from 05:30; today 3h then 4h apart."""
    yesterday = [make_feed(at(h, 30, 1)) for h in range(5, 24, 3)]
    today = [make_feed(at(6, 0)), make_feed(at(9, 0)), make_feed(at(13, 0))]
    return yesterday + today


class TestDayAccuracy:
    def test_none_without_history(self):
        assert compute_day_accuracy([], [], at(14, 0)) is None
        assert compute_day_accuracy([make_feed(at(8, 0)), make_feed(at(11, 0))], [], at(14, 0)) is None

    def test_feed_dimension_only(self, feed_day):
        # 180 min hits the historical median, 240 min misses it by more than 45 min
        assert compute_day_accuracy(feed_day, [], at(14, 0)) == pytest.approx(0.5)

    def test_feeds_and_naps_weighted_by_sample_count(self, feed_day):
        sleeps = [make_sleep(at(9, 0, d), at(9, 40, d)) for d in range(1, 6)]
        sleeps += [make_sleep(at(9, 30), at(10, 10)), make_sleep(at(12, 0), at(12, 45))]
        assert compute_day_accuracy(feed_day, sleeps, at(14, 0)) == pytest.approx(0.75)

    def test_implausible_gaps_ignored(self, feed_day):
        # 20 min top-up is not an interval
        feeds = feed_day + [make_feed(at(13, 20))]
        assert compute_day_accuracy(feeds, [], at(14, 0)) == pytest.approx(0.5)

    def test_history_outside_window_is_ignored(self):
        stale_history = [make_feed(at(h, 0, 80)) for h in range(6, 24, 3)]
        today = [make_feed(at(6, 0)), make_feed(at(9, 0))]
        assert compute_day_accuracy(stale_history + today, [], at(14, 0)) is None
