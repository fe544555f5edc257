from twinfeed.core.profiles import PROFILES
from twinfeed.services.alerts import Alert, AlertType, generate_alerts
from twinfeed.services.twins_sync import SyncStatus

from conftest import at, make_feed


def _types(alerts):
    return [a.type for a in alerts]


def _colette_alerts(feeds, now, sync_status=None, dismissed=frozenset()):
    return generate_alerts({"colette": PROFILES["colette"]}, {"colette": feeds}, sync_status, now, dismissed)


class TestFeedSizeAlerts:
    def test_very_small_feed(self):
        feed = make_feed(at(14, 0), 50)
        alerts = _colette_alerts([feed], at(14, 30))

        assert _types(alerts) == [AlertType.VERY_SMALL_FEED.value]
        assert alerts[0].id == f"very-small-colette-{feed.id}"
        assert alerts[0].severity == "warning"
        assert "50 ml" in alerts[0].message and "135 ml" in alerts[0].message

    def test_small_feed(self):
        alerts = _colette_alerts([make_feed(at(14, 0), 85)], at(14, 30))
        assert _types(alerts) == [AlertType.SMALL_FEED.value]
        assert alerts[0].severity == "info"

    def test_nursing_feed_has_no_size_alert(self):
        assert _colette_alerts([make_feed(at(14, 0), type="nursing")], at(14, 30)) == []


class TestIntervalAndAppetite:
    def test_long_interval(self):
        alerts = _colette_alerts([make_feed(at(6, 0))], at(14, 0))
        assert _types(alerts) == [AlertType.LONG_INTERVAL.value]
        assert "8.0h" in alerts[0].message

    def test_appetite_drop(self):
        feeds = [make_feed(at(h, 0, 10), 150) for h in range(7, 17)]
        feeds += [make_feed(at(8, 0, 1), 80), make_feed(at(12, 0, 1), 80), make_feed(at(8, 0), 80), make_feed(at(11, 0), 80)]
        alerts = _colette_alerts(feeds, at(12, 0))
        assert AlertType.APPETITE_DROP.value in _types(alerts)

    def test_growth_spurt(self):
        feeds = [make_feed(at(h, 0, 10), 100) for h in range(7, 17)]
        feeds += [make_feed(at(8, 0, 1), 160), make_feed(at(12, 0, 1), 160), make_feed(at(8, 0), 160), make_feed(at(11, 0), 160)]
        alerts = _colette_alerts(feeds, at(12, 0))
        assert _types(alerts) == [AlertType.GROWTH_SPURT.value]


class TestDesyncAndDismissal:
    def test_twins_desync(self):
        status = SyncStatus("desynchronized", 90, 0.5, suggestion="Fenêtre idéale : Réveil (7h-8h)")
        alerts = generate_alerts(PROFILES, {}, status, at(7, 0))

        assert _types(alerts) == [AlertType.TWINS_DESYNC.value]
        assert alerts[0].id == "twins-desync"
        assert "90 minutes" in alerts[0].message
        assert alerts[0].message.endswith("(7h-8h)")

    def test_small_gap_is_not_alerted(self):
        status = SyncStatus("slightly_offset", 40, 0.5)
        assert generate_alerts(PROFILES, {}, status, at(7, 0)) == []

    def test_dismissed_alerts_are_filtered(self):
        feeds = [make_feed(at(6, 0))]
        assert _colette_alerts(feeds, at(14, 0), dismissed={"long-interval-colette"}) == []


class TestAlertSerialization:
    def test_to_dict_uses_iso_timestamps(self):
        alert = Alert(id="a", type="SMALL_FEED", severity="info", message="m", created_at=at(14, 0))
        data = alert.to_dict()
        assert data["created_at"] == "2026-03-10T14:00:00"
        assert data["subject"] is None
