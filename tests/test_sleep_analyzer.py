from twinfeed.services.sleep_analyzer import analyze_sleep

from conftest import at, make_feed, make_sleep


class TestNextNap:
    def test_default_window_midpoint(self, colette, colette_sleep):
        analysis = analyze_sleep(colette, colette_sleep, [], [], at(8, 0))

        assert analysis.next_nap.predicted_time == at(9, 30)
        assert analysis.next_nap.based_on == "default_window"
        assert analysis.next_nap.estimated_duration_min == 36

    def test_default_window_passed_midpoint(self, colette, colette_sleep):
        analysis = analyze_sleep(colette, colette_sleep, [], [], at(9, 50))
        assert analysis.next_nap.predicted_time == at(10, 5)

    def test_inter_nap_gap_from_history(self, colette, colette_sleep):
        sleeps = []
        for days_ago in (3, 2, 1):
            sleeps += [
                make_sleep(at(9, 0, days_ago), at(9, 40, days_ago)),
                make_sleep(at(12, 0, days_ago), at(12, 45, days_ago)),
            ]
        sleeps.append(make_sleep(at(9, 0), at(9, 40)))
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(10, 0))

        assert analysis.median_inter_nap_min == 140
        assert analysis.next_nap.based_on == "inter_nap"
        assert analysis.next_nap.predicted_time == at(12, 0)

    def test_wake_window_without_history(self, colette, colette_sleep):
        sleeps = [make_sleep(at(9, 0), at(9, 40))]
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(10, 0))

        assert analysis.next_nap.based_on == "wake_window"
        assert analysis.next_nap.predicted_time == at(11, 40)

    def test_feed_latency_before_first_nap(self, colette, colette_sleep):
        feeds, sleeps = [], []
        for days_ago in (3, 2, 1):
            feeds.append(make_feed(at(8, 0, days_ago)))
            sleeps.append(make_sleep(at(9, 30, days_ago), at(10, 10, days_ago)))
        feeds.append(make_feed(at(7, 30)))
        analysis = analyze_sleep(colette, colette_sleep, sleeps, feeds, at(8, 0))

        assert analysis.median_feed_to_nap_min == 90
        assert analysis.next_nap.based_on == "feed_latency"
        assert analysis.next_nap.predicted_time == at(9, 0)

    def test_no_prediction_while_asleep(self, colette, colette_sleep):
        sleeps = [make_sleep(at(9, 10))]
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(9, 30))

        assert analysis.next_nap is None
        assert analysis.sleeping_since == at(9, 10)

    def test_no_prediction_once_all_naps_done(self, colette, colette_sleep):
        sleeps = [
            make_sleep(at(9, 0), at(9, 40)),
            make_sleep(at(12, 0), at(12, 40)),
            make_sleep(at(16, 20), at(17, 0)),
        ]
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(17, 30))

        assert analysis.naps_today == 3
        assert analysis.total_sleep_today_min == 120
        assert analysis.next_nap is None


class TestBedtime:
    def test_short_nap_day_pulls_bedtime_earlier(self, colette, colette_sleep):
        # Two default windows started, no nap logged: 72 min deficit → 36 min earlier
        analysis = analyze_sleep(colette, colette_sleep, [], [], at(15, 0))

        assert analysis.bedtime.predicted_time == at(20, 24)
        assert analysis.bedtime.based_on == "default"
        assert analysis.bedtime.estimated_duration_min == 376

    def test_default_bedtime_without_deficit(self, colette, colette_sleep):
        sleeps = [make_sleep(at(9, 0), at(9, 40)), make_sleep(at(12, 0), at(12, 40))]
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(15, 0))
        assert analysis.bedtime.predicted_time == at(21, 0)

    def test_bedtime_capped_by_wake_window(self, colette, colette_sleep):
        sleeps = [
            make_sleep(at(9, 0), at(9, 40)),
            make_sleep(at(12, 0), at(12, 40)),
            make_sleep(at(16, 20), at(17, 0)),
        ]
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(17, 30))
        assert analysis.bedtime.predicted_time == at(20, 0)

    def test_bedtime_from_history(self, colette, colette_sleep):
        sleeps = [make_sleep(at(21, 15, d), at(7, 15, d - 1)) for d in (4, 3, 2)]
        analysis = analyze_sleep(colette, colette_sleep, sleeps, [], at(8, 0))

        assert analysis.bedtime.based_on == "history"
        assert analysis.bedtime.predicted_time == at(21, 15)
        assert analysis.bedtime.estimated_duration_min == 600

    def test_bedtime_suppressed_when_past(self, colette, colette_sleep):
        analysis = analyze_sleep(colette, colette_sleep, [], [], at(22, 0))
        assert analysis.bedtime is None
