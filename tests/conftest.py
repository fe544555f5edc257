import itertools
from datetime import datetime, timedelta

import pytest

from twinfeed.core.models import FeedEvent, SleepEvent
from twinfeed.core.profiles import DEFAULT_SLEEP, PROFILES

# Tuesday; all scenarios are laid out around this day
TODAY = datetime(2026, 3, 10)

_ids = itertools.count(1)


def at(hour, minute=0, days_ago=0):
    return TODAY - timedelta(days=days_ago) + timedelta(hours=hour, minutes=minute)


def make_feed(timestamp, volume_ml=130.0, subject="colette", type="bottle"):
    return FeedEvent(
        id=f"f{next(_ids)}",
        subject=subject,
        timestamp=timestamp,
        type=type,
        volume_ml=volume_ml if type == "bottle" else 0.0,
    )


def make_sleep(start, end=None, subject="colette"):
    duration = (end - start).total_seconds() / 60.0 if end else 0.0
    return SleepEvent(id=f"s{next(_ids)}", subject=subject, start=start, end=end, duration_min=duration)


@pytest.fixture
def colette():
    return PROFILES["colette"]


@pytest.fixture
def isaure():
    return PROFILES["isaure"]


@pytest.fixture
def colette_sleep():
    return DEFAULT_SLEEP["colette"]


@pytest.fixture
def regular_history():
    """Two weeks of colette feeds every ~3h30 from 07:00, 130 ml each."""
    feeds = []
    for days_ago in range(14, 0, -1):
        for hour, minute in [(7, 0), (10, 30), (14, 0), (17, 30), (21, 0), (2, 0)]:
            day_offset = days_ago - 1 if hour < 6 else days_ago
            feeds.append(make_feed(at(hour, minute, day_offset)))
    return sorted(feeds, key=lambda f: f.timestamp)
