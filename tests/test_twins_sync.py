import pytest

from twinfeed.core.models import Prediction, TimingPrediction, VolumePrediction
from twinfeed.services.twins_sync import classify_gap, compute_sync_rate, compute_sync_status

from conftest import at, make_feed


def _prediction(subject, predicted_time):
    return Prediction(
        subject=subject,
        timing=TimingPrediction(predicted_time, 30, predicted_time, predicted_time),
        volume=VolumePrediction(130, 20, 110, 150),
        explanations=[],
        confidence="medium",
        slot="morning",
        generated_at=at(8, 0),
    )


class TestClassifyGap:
    @pytest.mark.parametrize("gap,state", [
        (15, "synchronized"), (20, "synchronized"), (30, "slightly_offset"),
        (45, "slightly_offset"), (90, "desynchronized"),
    ])
    def test_thresholds(self, gap, state):
        assert classify_gap(gap) == state


class TestSyncRate:
    def test_share_of_feeds_taken_together(self):
        feeds_a = [make_feed(at(8, 0)), make_feed(at(11, 0)), make_feed(at(14, 0))]
        feeds_b = [
            make_feed(at(8, 10), subject="isaure"),
            make_feed(at(11, 45), subject="isaure"),
            make_feed(at(14, 20), subject="isaure"),
        ]
        assert compute_sync_rate(feeds_a, feeds_b) == pytest.approx(2 / 3)

    def test_empty_side(self):
        assert compute_sync_rate([make_feed(at(8, 0))], []) == 0.0


class TestSyncStatus:
    def test_missing_prediction(self):
        assert compute_sync_status(_prediction("colette", at(9, 0)), None, [], []) is None

    def test_synchronized_has_no_window(self):
        status = compute_sync_status(
            _prediction("colette", at(9, 0)), _prediction("isaure", at(9, 15)), [], []
        )
        assert status.state == "synchronized"
        assert status.gap_minutes == 15
        assert status.common_window_start is None
        assert status.suggestion is None

    def test_desynchronized_suggests_curated_window(self):
        status = compute_sync_status(
            _prediction("colette", at(11, 0)), _prediction("isaure", at(9, 30)), [], []
        )
        assert status.state == "desynchronized"
        assert status.common_window_start == at(10, 0)
        assert status.common_window_end == at(10, 30)
        assert status.suggestion == "Fenêtre idéale : Mi-matinée (10h-11h)"

    def test_suggestion_outside_curated_windows(self):
        status = compute_sync_status(
            _prediction("colette", at(14, 0)), _prediction("isaure", at(15, 0)), [], []
        )
        assert status.suggestion == "Essayez de nourrir les deux vers 14h30"
