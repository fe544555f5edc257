"""One-call forecast for the household: every engine output for both twins."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Sequence

from twinfeed.core.models import DetectedPattern, FeedEvent, Prediction, Profile, SleepEvent
from twinfeed.core.profiles import DEFAULT_SLEEP, PROFILES, SIBLINGS
from twinfeed.services.accuracy import compute_day_accuracy
from twinfeed.services.alerts import Alert, generate_alerts
from twinfeed.services.feed_sleep_insights import FeedSleepAnalysis, analyze_feed_sleep_links
from twinfeed.services.patterns import detect_patterns
from twinfeed.services.predictor import predict_next_feed
from twinfeed.services.sleep_analyzer import SleepAnalysis, analyze_sleep
from twinfeed.services.twins_sync import SyncStatus, compute_sync_status
from twinfeed.utils.recency import filter_recent_feeds, filter_recent_sleeps

logger = logging.getLogger(__name__)


@dataclass
class SubjectForecast:
    subject: str
    name: str
    prediction: Prediction
    sleep: SleepAnalysis
    patterns: List[DetectedPattern]
    insights: FeedSleepAnalysis
    accuracy: Optional[float]


@dataclass
class ForecastSnapshot:
    generated_at: datetime
    subjects: Dict[str, SubjectForecast] = field(default_factory=dict)
    sync: Optional[SyncStatus] = None
    alerts: List[Alert] = field(default_factory=list)


# Used by: build_forecast, api/forecast.py
def partition_feeds(
    feeds: Iterable[FeedEvent],
    profiles: Mapping[str, Profile] = PROFILES
) -> Dict[str, List[FeedEvent]]:
    """Feeds per known subject, sorted by time. Unknown subjects are dropped."""
    by_subject: Dict[str, List[FeedEvent]] = defaultdict(list)
    for feed in feeds:
        if feed.subject not in profiles:
            logger.warning(f"Dropping feed {feed.id}: unknown subject {feed.subject!r}")
            continue
        by_subject[feed.subject].append(feed)
    return {key: sorted(by_subject.get(key, []), key=lambda f: f.timestamp) for key in profiles}


# Used by: build_forecast, api/forecast.py
def partition_sleeps(
    sleeps: Iterable[SleepEvent],
    profiles: Mapping[str, Profile] = PROFILES
) -> Dict[str, List[SleepEvent]]:
    by_subject: Dict[str, List[SleepEvent]] = defaultdict(list)
    for sleep in sleeps:
        if sleep.subject not in profiles:
            logger.warning(f"Dropping sleep {sleep.id}: unknown subject {sleep.subject!r}")
            continue
        by_subject[sleep.subject].append(sleep)
    return {key: sorted(by_subject.get(key, []), key=lambda s: s.start) for key in profiles}


def sibling_of(key: str, profiles: Mapping[str, Profile]) -> Optional[str]:
    sibling = SIBLINGS.get(key)
    if sibling in profiles:
        return sibling
    others = [k for k in profiles if k != key]
    return others[0] if len(others) == 1 else None


# Used by: api/forecast.py
def build_forecast(
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    now: datetime,
    dismissed_alerts: AbstractSet[str] = frozenset(),
    profiles: Mapping[str, Profile] = PROFILES
) -> ForecastSnapshot:
    """Predictions, sleep analysis, patterns, insights and accuracy per subject, plus sync and alerts.

    Pure: the result depends only on the arguments.
    """
    logger.info(f"Building forecast at {now.isoformat()} for {len(feeds)} feed(s), {len(sleeps)} sleep(s)")

    feeds_by_subject = partition_feeds(feeds, profiles)
    sleeps_by_subject = partition_sleeps(sleeps, profiles)
    snapshot = ForecastSnapshot(generated_at=now)

    for key, profile in profiles.items():
        subject_feeds = feeds_by_subject[key]
        subject_sleeps = sleeps_by_subject[key]
        sibling = sibling_of(key, profiles)
        sibling_feeds = feeds_by_subject.get(sibling, []) if sibling else []
        sibling_name = profiles[sibling].name if sibling else None

        prediction = predict_next_feed(
            profile, subject_feeds, subject_sleeps, now,
            sibling_feeds=sibling_feeds, sibling_name=sibling_name
        )
        recent_feeds = filter_recent_feeds((f for f in subject_feeds if f.timestamp <= now), now)
        recent_sleeps = filter_recent_sleeps((s for s in subject_sleeps if s.start <= now), now)
        recent_sibling = filter_recent_feeds((f for f in sibling_feeds if f.timestamp <= now), now)
        patterns = detect_patterns(
            profile, recent_feeds, recent_sleeps, recent_sibling, now, sibling_name=sibling_name
        )
        sleep_profile = DEFAULT_SLEEP.get(key) or next(iter(DEFAULT_SLEEP.values()))

        snapshot.subjects[key] = SubjectForecast(
            subject=key,
            name=profile.name,
            prediction=prediction,
            sleep=analyze_sleep(profile, sleep_profile, subject_sleeps, subject_feeds, now),
            patterns=patterns,
            insights=analyze_feed_sleep_links(profile, subject_feeds, subject_sleeps, now),
            accuracy=compute_day_accuracy(subject_feeds, subject_sleeps, now),
        )

    recent_by_subject = {
        key: filter_recent_feeds((f for f in feeds_by_subject[key] if f.timestamp <= now), now)
        for key in profiles
    }

    keys = list(profiles)
    if len(keys) == 2:
        first, second = keys
        snapshot.sync = compute_sync_status(
            snapshot.subjects[first].prediction,
            snapshot.subjects[second].prediction,
            recent_by_subject[first],
            recent_by_subject[second],
        )

    snapshot.alerts = generate_alerts(
        profiles, feeds_by_subject, snapshot.sync, now, dismissed_alerts
    )
    return snapshot
