"""Predicts the next nap and tonight's bedtime from sleep and feed history."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from twinfeed.core.constants import (
    WAKE_WINDOW_OPTIMAL_MIN, WAKE_WINDOW_OPTIMAL_MAX, WAKE_WINDOW_MAX_BEFORE_OVERTIRED,
    NAP_DAY_START_HOUR, NAP_DAY_END_HOUR,
    NIGHT_SLEEP_MIN_START_HOUR, NIGHT_SLEEP_MIN_DURATION_MINUTES,
    INTER_NAP_MAX_MINUTES, FEED_TO_NAP_MAX_MINUTES, SLEEP_MIN_SAMPLES,
    SLEEP_PREDICTION_CONFIDENCE_MINUTES, NAP_FALLBACK_LEAD_MINUTES,
    BEDTIME_DEFICIT_THRESHOLD_MINUTES, BEDTIME_DEFICIT_FACTOR, BEDTIME_MAX_PULL_MINUTES,
)
from twinfeed.core.models import FeedEvent, Profile, SleepEvent, SleepProfile
from twinfeed.utils.recency import (
    filter_recent_feeds, filter_recent_sleeps, recency_weight, weighted_avg, weighted_median,
)

logger = logging.getLogger(__name__)


@dataclass
class SleepPrediction:
    predicted_time: datetime
    confidence_minutes: int
    estimated_duration_min: int
    based_on: str  # "inter_nap", "wake_window", "feed_latency", "default_window", "history", "default"


@dataclass
class SleepAnalysis:
    subject: str
    total_sleep_today_min: float
    naps_today: int
    next_nap: Optional[SleepPrediction]
    bedtime: Optional[SleepPrediction]
    median_inter_nap_min: Optional[float]  # None if insufficient data
    avg_nap_duration_min: int
    median_feed_to_nap_min: Optional[float] = None
    sleeping_since: Optional[datetime] = None


def is_daytime_nap(sleep: SleepEvent) -> bool:
    return NAP_DAY_START_HOUR <= sleep.start.hour < NAP_DAY_END_HOUR


def is_night_sleep(sleep: SleepEvent) -> bool:
    return (
        sleep.start.hour >= NIGHT_SLEEP_MIN_START_HOUR
        and sleep.duration_min > NIGHT_SLEEP_MIN_DURATION_MINUTES
    )


# Used by: analyze_sleep, feed_sleep_insights.py
def find_last_feed_before(
    feeds: Sequence[FeedEvent],
    before: datetime,
    max_minutes_before: float
) -> Optional[FeedEvent]:
    """Latest feed strictly before `before`, at most `max_minutes_before` earlier."""
    earliest = before - timedelta(minutes=max_minutes_before)
    best = None
    for feed in feeds:
        if earliest <= feed.timestamp < before:
            if best is None or feed.timestamp > best.timestamp:
                best = feed
    return best


def _at_clock(now: datetime, minutes_of_day: float) -> datetime:
    base = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return base + timedelta(minutes=round(minutes_of_day))


def _feed_to_nap_latency(
    naps: Sequence[SleepEvent],
    feeds: Sequence[FeedEvent],
    now: datetime
) -> Optional[float]:
    samples = []
    for nap in naps:
        last_feed = find_last_feed_before(feeds, nap.start, FEED_TO_NAP_MAX_MINUTES)
        if last_feed is None:
            continue
        latency = (nap.start - last_feed.timestamp).total_seconds() / 60.0
        if latency > 0:
            samples.append((latency, recency_weight(nap.start, now)))

    if len(samples) < SLEEP_MIN_SAMPLES:
        return None
    return weighted_median(samples)


def _inter_nap_gap(naps: Sequence[SleepEvent], now: datetime) -> Optional[float]:
    samples = []
    for prev, curr in zip(naps, naps[1:]):
        if not prev.is_complete:
            continue
        gap = (curr.start - prev.end).total_seconds() / 60.0
        if 0 < gap < INTER_NAP_MAX_MINUTES:
            samples.append((gap, recency_weight(curr.start, now)))

    if len(samples) < SLEEP_MIN_SAMPLES:
        return None
    return weighted_median(samples)


def _predict_next_nap(
    sleep_profile: SleepProfile,
    today_naps: List[SleepEvent],
    feeds: Sequence[FeedEvent],
    today_start: datetime,
    now: datetime,
    median_inter_nap: Optional[float],
    median_latency: Optional[float]
) -> Optional[SleepPrediction]:
    """First strategy yielding a future time wins."""
    predicted_time = None
    based_on = None
    last_nap = today_naps[-1] if today_naps else None

    if last_nap is not None and last_nap.is_complete:
        if median_inter_nap is not None:
            candidate = last_nap.end + timedelta(minutes=median_inter_nap)
            if candidate > now:
                predicted_time, based_on = candidate, "inter_nap"

        if predicted_time is None:
            wake_window = (WAKE_WINDOW_OPTIMAL_MIN + WAKE_WINDOW_OPTIMAL_MAX) / 2
            candidate = last_nap.end + timedelta(minutes=wake_window)
            if candidate > now:
                predicted_time, based_on = candidate, "wake_window"

    elif not today_naps and median_latency is not None:
        feeds_today = [f for f in feeds if today_start <= f.timestamp <= now]
        if feeds_today:
            candidate = feeds_today[-1].timestamp + timedelta(minutes=median_latency)
            if candidate > now:
                predicted_time, based_on = candidate, "feed_latency"

    if predicted_time is None:
        current_h = now.hour + now.minute / 60.0
        for window in sleep_profile.best_nap_times[len(today_naps):]:
            if current_h < window.end_h:
                candidate = _at_clock(now, window.midpoint_h * 60)
                if candidate <= now:
                    candidate = now + timedelta(minutes=NAP_FALLBACK_LEAD_MINUTES)
                predicted_time, based_on = candidate, "default_window"
                break

    if predicted_time is None:
        return None
    return SleepPrediction(
        predicted_time=predicted_time,
        confidence_minutes=SLEEP_PREDICTION_CONFIDENCE_MINUTES,
        estimated_duration_min=0,
        based_on=based_on,
    )


def _predict_bedtime(
    sleep_profile: SleepProfile,
    sleeps: Sequence[SleepEvent],
    today_naps: List[SleepEvent],
    total_today: float,
    avg_nap_duration: float,
    now: datetime
) -> Optional[SleepPrediction]:
    nights = [s for s in sleeps if is_night_sleep(s)]
    weights = [recency_weight(s.start, now) for s in nights]

    if len(nights) >= SLEEP_MIN_SAMPLES:
        bedtime_minutes = weighted_median(
            (s.start.hour * 60 + s.start.minute, w) for s, w in zip(nights, weights)
        )
        duration = round(weighted_avg((s.duration_min, w) for s, w in zip(nights, weights)))
        based_on = "history"
    else:
        bedtime_minutes = sleep_profile.typical_bedtime_hour * 60
        duration = round(sleep_profile.night_duration_min)
        based_on = "default"

    bedtime = _at_clock(now, bedtime_minutes)

    # Short nap day: pull bedtime earlier
    current_h = now.hour + now.minute / 60.0
    windows_started = sum(1 for w in sleep_profile.best_nap_times if w.start_h <= current_h)
    expected_total = avg_nap_duration * windows_started
    deficit = expected_total - total_today
    if deficit > BEDTIME_DEFICIT_THRESHOLD_MINUTES:
        pull = min(deficit * BEDTIME_DEFICIT_FACTOR, BEDTIME_MAX_PULL_MINUTES)
        bedtime -= timedelta(minutes=round(pull))
        logger.debug(f"Nap deficit {deficit:.0f} min, bedtime pulled {pull:.0f} min earlier")

    # Last nap of the day done: do not exceed the maximum wake window
    last_nap = today_naps[-1] if today_naps else None
    if (
        len(today_naps) >= sleep_profile.naps_per_day
        and last_nap is not None
        and last_nap.is_complete
    ):
        latest = last_nap.end + timedelta(minutes=WAKE_WINDOW_MAX_BEFORE_OVERTIRED)
        bedtime = min(bedtime, latest)

    if bedtime <= now:
        return None
    return SleepPrediction(
        predicted_time=bedtime,
        confidence_minutes=SLEEP_PREDICTION_CONFIDENCE_MINUTES,
        estimated_duration_min=duration,
        based_on=based_on,
    )


# Used by: forecast.py
def analyze_sleep(
    profile: Profile,
    sleep_profile: SleepProfile,
    sleeps: Sequence[SleepEvent],
    feeds: Sequence[FeedEvent],
    now: datetime
) -> SleepAnalysis:
    """Today's nap totals plus next-nap and bedtime predictions for one subject."""
    sleeps = sorted(
        filter_recent_sleeps((s for s in sleeps if s.start <= now), now),
        key=lambda s: s.start
    )
    feeds = sorted(
        filter_recent_feeds((f for f in feeds if f.timestamp <= now), now),
        key=lambda f: f.timestamp
    )

    today_start = now.replace(hour=NAP_DAY_START_HOUR, minute=0, second=0, microsecond=0)
    today_naps = [s for s in sleeps if s.start >= today_start and is_daytime_nap(s)]
    total_today = sum(s.duration_min for s in today_naps)

    in_progress = [s for s in sleeps if not s.is_complete]
    sleeping_since = in_progress[-1].start if in_progress else None

    all_naps = [s for s in sleeps if is_daytime_nap(s)]
    median_latency = _feed_to_nap_latency(all_naps, feeds, now)
    median_inter_nap = _inter_nap_gap(all_naps, now)

    completed_naps = [s for s in all_naps if s.is_complete]
    if len(completed_naps) >= SLEEP_MIN_SAMPLES:
        avg_nap_duration = round(weighted_avg(
            (s.duration_min, recency_weight(s.start, now)) for s in completed_naps
        ))
    else:
        avg_nap_duration = round(sleep_profile.nap_duration_min)

    next_nap = None
    if sleeping_since is None and len(today_naps) < sleep_profile.naps_per_day:
        next_nap = _predict_next_nap(
            sleep_profile, today_naps, feeds, today_start, now,
            median_inter_nap, median_latency
        )
        if next_nap is not None:
            next_nap.estimated_duration_min = avg_nap_duration

    bedtime = _predict_bedtime(
        sleep_profile, sleeps, today_naps, total_today, avg_nap_duration, now
    )

    logger.info(
        f"{profile.key}: {len(today_naps)} nap(s) today, "
        f"next nap {next_nap.predicted_time.strftime('%H:%M') if next_nap else '-'}, "
        f"bedtime {bedtime.predicted_time.strftime('%H:%M') if bedtime else '-'}"
    )

    return SleepAnalysis(
        subject=profile.key,
        total_sleep_today_min=total_today,
        naps_today=len(today_naps),
        next_nap=next_nap,
        bedtime=bedtime,
        median_inter_nap_min=median_inter_nap,
        avg_nap_duration_min=avg_nap_duration,
        median_feed_to_nap_min=median_latency,
        sleeping_since=sleeping_since,
    )
