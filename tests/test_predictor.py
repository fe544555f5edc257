import math
from datetime import timedelta

import pytest

from twinfeed.services.predictor import format_impact, predict_next_feed

from conftest import at, make_feed, make_sleep


def _rule_ids(prediction):
    return [e.rule_id for e in prediction.explanations]


def _assert_volume_clamped(prediction):
    low = math.ceil(prediction.slot_mean_ml * 0.5)
    high = math.floor(prediction.slot_mean_ml * 1.5)
    assert low <= prediction.volume.predicted_ml <= high


@pytest.fixture
def compensation_feeds():
    return [make_feed(at(7, 0), 150), make_feed(at(10, 30), 140), make_feed(at(14, 0), 50)]


@pytest.fixture
def post_nap_history():
    """Three days where the first feed comes 20 min after the midday nap, plus today's nap."""
    feeds, sleeps = [], []
    for days_ago in (3, 2, 1):
        feeds += [make_feed(at(7, 0, days_ago)), make_feed(at(13, 20, days_ago)), make_feed(at(17, 0, days_ago))]
        sleeps.append(make_sleep(at(12, 10, days_ago), at(13, 0, days_ago)))
    feeds.append(make_feed(at(10, 0)))
    sleeps.append(make_sleep(at(12, 10), at(13, 0)))
    return feeds, sleeps


class TestFormatImpact:
    def test_french_impact_strings(self):
        assert format_impact(0.75, "intervalle") == "-25% intervalle"
        assert format_impact(1.10, "volume") == "+10% volume"


class TestProfileFallback:
    def test_zero_history_uses_profile(self, colette):
        now = at(14, 10)
        prediction = predict_next_feed(colette, [], [], now)

        assert prediction.profile_fallback is True
        assert prediction.confidence == "low"
        assert prediction.timing.predicted_time >= now
        assert _rule_ids(prediction) == ["PROFILE_DEFAULT"]

    def test_stale_tracking_uses_profile(self, colette):
        now = at(20, 0)
        prediction = predict_next_feed(colette, [make_feed(at(9, 0))], [], now)

        assert prediction.profile_fallback is True
        assert "STALE_TRACKING" in _rule_ids(prediction)
        assert prediction.timing.predicted_time >= now

    def test_staleness_cutoff_is_configurable(self, colette):
        now = at(15, 0)
        feeds = [make_feed(at(11, 0))]
        assert predict_next_feed(colette, feeds, [], now).profile_fallback is False
        assert predict_next_feed(colette, feeds, [], now, stale_after_hours=3).profile_fallback is True

    def test_projection_from_slot_start(self, colette):
        # Afternoon slot starts at 14:00 and its static interval is 2.5h
        prediction = predict_next_feed(colette, [], [], at(15, 0))
        assert prediction.timing.predicted_time == at(16, 30)


class TestTiming:
    def test_compensation_shortens_interval(self, colette, compensation_feeds):
        now = at(14, 10)
        prediction = predict_next_feed(colette, compensation_feeds, [], now)

        compensation = [e for e in prediction.explanations if e.rule_id == "COMPENSATION"]
        assert len(compensation) == 1
        assert compensation[0].impact == "-25% intervalle"

        baseline_feeds = compensation_feeds[:2] + [make_feed(at(14, 0), 135)]
        baseline = predict_next_feed(colette, baseline_feeds, [], now)
        assert "COMPENSATION" not in _rule_ids(baseline)
        assert prediction.timing.predicted_time < baseline.timing.predicted_time
        assert prediction.timing.predicted_time >= now

    def test_evening_reduction_recorded(self, colette, compensation_feeds):
        prediction = predict_next_feed(colette, compensation_feeds, [], at(14, 10))
        # last feed at 14h + ~4h median interval targets the evening slot
        assert "TIMING_EVENING" in _rule_ids(prediction)

    def test_post_nap_rebase(self, colette, post_nap_history):
        feeds, sleeps = post_nap_history
        prediction = predict_next_feed(colette, feeds, sleeps, at(13, 5))

        assert prediction.timing.predicted_time == at(13, 20)
        assert "POST_NAP_REBASE" in _rule_ids(prediction)

    def test_rebase_anchors_on_night_wake_up(self, colette):
        # Night split by a 02:45 feed, woke at 06:30 with no feed since
        sleeps = [make_sleep(at(20, 0, 1), at(2, 30)), make_sleep(at(3, 0), at(6, 30))]
        prediction = predict_next_feed(colette, [make_feed(at(2, 45))], sleeps, at(6, 40))

        assert prediction.timing.predicted_time == at(7, 0)
        rebase = [e for e in prediction.explanations if e.rule_id == "POST_NAP_REBASE"]
        assert len(rebase) == 1
        assert "06:30" in rebase[0].text

    def test_post_nap_rebase_elapsed_stays_in_future(self, colette, post_nap_history):
        feeds, sleeps = post_nap_history
        now = at(13, 40)
        prediction = predict_next_feed(colette, feeds, sleeps, now)
        assert prediction.timing.predicted_time >= now

    def test_past_prediction_is_chained_forward(self, colette):
        now = at(16, 0)
        prediction = predict_next_feed(colette, [make_feed(at(10, 0))], [], now)

        assert prediction.timing.predicted_time >= now
        assert "TIMING_CATCH_UP" in _rule_ids(prediction)

    def test_tightly_spaced_data_terminates(self, colette):
        base = at(12, 0)
        feeds = [make_feed(base + timedelta(minutes=i)) for i in range(50)]
        now = at(16, 0)
        assert predict_next_feed(colette, feeds, [], now).timing.predicted_time >= now

    def test_future_events_are_ignored(self, colette):
        now = at(9, 0)
        feeds = [make_feed(at(8, 0)), make_feed(at(11, 0))]
        prediction = predict_next_feed(colette, feeds, [], now)
        assert prediction.profile_fallback is False
        assert prediction.timing.predicted_time >= now

    def test_always_after_now(self, colette, regular_history):
        for hour in range(0, 24, 2):
            now = at(hour, 45)
            feeds = [f for f in regular_history if f.timestamp <= now]
            prediction = predict_next_feed(colette, feeds, [], now)
            assert prediction.timing.predicted_time >= now, f"prediction in the past at {now}"


class TestVolume:
    def test_small_previous_feed_nudges_volume(self, colette, compensation_feeds):
        prediction = predict_next_feed(colette, compensation_feeds, [], at(14, 10))
        assert "VOLUME_COMPENSATION" in _rule_ids(prediction)
        _assert_volume_clamped(prediction)

    def test_volume_within_slot_clamp(self, colette, isaure, regular_history):
        for profile in (colette, isaure):
            for hour in range(0, 24, 3):
                now = at(hour, 15)
                prediction = predict_next_feed(profile, regular_history, [], now)
                _assert_volume_clamped(prediction)

    def test_extreme_modifiers_stay_clamped(self, colette):
        # Growth spurt, evening boost and profile boost stack on a low data-driven mean
        feeds = [make_feed(at(h, 0, d), 60) for d in range(10, 0, -1) for h in (7, 11, 15, 19)]
        feeds += [make_feed(at(h, 0), 200) for h in (7, 11, 15)]
        prediction = predict_next_feed(colette, feeds, [], at(18, 0))
        _assert_volume_clamped(prediction)


class TestConfidence:
    def test_high_confidence_with_dense_history(self, colette, regular_history):
        prediction = predict_next_feed(colette, regular_history, [], at(3, 0))
        assert prediction.confidence == "high"

    def test_medium_and_low(self, colette):
        now = at(12, 0)
        medium = [make_feed(now - timedelta(hours=3 * i + 1)) for i in range(14)]
        low = [make_feed(now - timedelta(hours=3 * i + 1)) for i in range(5)]
        assert predict_next_feed(colette, medium, [], now).confidence == "medium"
        assert predict_next_feed(colette, low, [], now).confidence == "low"
