"""Recency weighting and the rolling data window.

Every aggregate in the engine is computed over events from the last
DATA_WINDOW_DAYS days, weighted so recent behaviour dominates:
<=7 days = 3x, 8-21 days = 2x, 22-60 days = 1x.
Empty inputs yield 0, never an error.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from twinfeed.core.constants import (
    RECENCY_RECENT_DAYS, RECENCY_MEDIUM_DAYS,
    RECENCY_WEIGHT_RECENT, RECENCY_WEIGHT_MEDIUM, RECENCY_WEIGHT_OLD,
)
from twinfeed.core.models import FeedEvent, SleepEvent
from twinfeed.core.settings import settings

WeightedValue = Tuple[float, float]

SECONDS_PER_DAY = 86400.0


def recency_weight(timestamp: datetime, now: datetime) -> int:
    days_ago = (now - timestamp).total_seconds() / SECONDS_PER_DAY
    if days_ago <= RECENCY_RECENT_DAYS:
        return RECENCY_WEIGHT_RECENT
    if days_ago <= RECENCY_MEDIUM_DAYS:
        return RECENCY_WEIGHT_MEDIUM
    return RECENCY_WEIGHT_OLD


def _window_cutoff(now: datetime, window_days: Optional[int]) -> datetime:
    days = settings.DATA_WINDOW_DAYS if window_days is None else window_days
    return now - timedelta(days=days)


# Used by: predictor.py, sleep_analyzer.py, feed_sleep_insights.py, forecast.py
def filter_recent_feeds(
    feeds: Iterable[FeedEvent],
    now: datetime,
    window_days: Optional[int] = None
) -> List[FeedEvent]:
    cutoff = _window_cutoff(now, window_days)
    return [f for f in feeds if f.timestamp >= cutoff]


# Used by: predictor.py, sleep_analyzer.py, feed_sleep_insights.py, forecast.py
def filter_recent_sleeps(
    sleeps: Iterable[SleepEvent],
    now: datetime,
    window_days: Optional[int] = None
) -> List[SleepEvent]:
    cutoff = _window_cutoff(now, window_days)
    return [s for s in sleeps if s.start >= cutoff]


def weighted_median(pairs: Iterable[WeightedValue]) -> float:
    """First value whose cumulative weight reaches half the total."""
    ordered = sorted(pairs, key=lambda p: p[0])
    if not ordered:
        return 0.0

    half = sum(w for _, w in ordered) / 2
    cumulative = 0.0
    for value, weight in ordered:
        cumulative += weight
        if cumulative >= half:
            return value
    return ordered[-1][0]


def weighted_avg(pairs: Iterable[WeightedValue]) -> float:
    """Σ(value×weight)/Σ(weight)."""
    total_weighted = 0.0
    total_weight = 0.0
    for value, weight in pairs:
        total_weighted += value * weight
        total_weight += weight

    if total_weight == 0:
        return 0.0
    return total_weighted / total_weight


def percentile(values: Sequence[float], p: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    idx = int((p / 100) * (len(ordered) - 1))
    return ordered[idx]


def plain_average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
