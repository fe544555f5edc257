"""Scores how closely today's rhythm matched the historical one."""

import logging
from datetime import datetime
from statistics import median
from typing import List, Optional, Sequence, Tuple

from twinfeed.core.constants import (
    ACCURACY_DAY_START_HOUR,
    ACCURACY_INTERVAL_MIN_MINUTES, ACCURACY_INTERVAL_MAX_MINUTES,
    ACCURACY_INTERVAL_TOLERANCE_MINUTES,
    ACCURACY_NAP_MIN_MINUTES, ACCURACY_NAP_MAX_MINUTES, ACCURACY_NAP_TOLERANCE_MINUTES,
    ACCURACY_MIN_HISTORY,
)
from twinfeed.core.models import FeedEvent, SleepEvent
from twinfeed.utils.recency import filter_recent_feeds, filter_recent_sleeps

logger = logging.getLogger(__name__)


def _plausible_intervals(feeds: Sequence[FeedEvent]) -> List[float]:
    intervals = []
    for prev, curr in zip(feeds, feeds[1:]):
        gap = (curr.timestamp - prev.timestamp).total_seconds() / 60.0
        if ACCURACY_INTERVAL_MIN_MINUTES <= gap <= ACCURACY_INTERVAL_MAX_MINUTES:
            intervals.append(gap)
    return intervals


def _score(
    history: Sequence[float],
    today: Sequence[float],
    tolerance: float
) -> Optional[Tuple[float, int]]:
    """(fraction of today's values within tolerance of the historical median, weight)."""
    if len(history) < ACCURACY_MIN_HISTORY or not today:
        return None
    typical = median(history)
    hits = sum(1 for value in today if abs(value - typical) <= tolerance)
    return hits / len(today), len(today)


# Used by: forecast.py
def compute_day_accuracy(
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    now: datetime
) -> Optional[float]:
    """Combined feed/nap accuracy in [0, 1] for one subject, or None without enough data.

    Feed dimension: today's inter-feed intervals within ±45 min of the
    historical median interval. Nap dimension: today's sleep durations within
    ±20 min of the historical median. Both are weighted by today's sample count.
    """
    day_start = now.replace(hour=ACCURACY_DAY_START_HOUR, minute=0, second=0, microsecond=0)

    feeds = filter_recent_feeds((f for f in feeds if f.timestamp <= now), now)
    sleeps = filter_recent_sleeps((s for s in sleeps if s.start <= now), now)

    ordered = sorted(feeds, key=lambda f: f.timestamp)
    feed_score = _score(
        _plausible_intervals([f for f in ordered if f.timestamp < day_start]),
        _plausible_intervals([f for f in ordered if f.timestamp >= day_start]),
        ACCURACY_INTERVAL_TOLERANCE_MINUTES,
    )

    completed = [s for s in sleeps if s.is_complete and s.start <= now]
    history = [
        s.duration_min for s in completed
        if s.start < day_start and ACCURACY_NAP_MIN_MINUTES <= s.duration_min <= ACCURACY_NAP_MAX_MINUTES
    ]
    today = [s.duration_min for s in completed if s.start >= day_start]
    nap_score = _score(history, today, ACCURACY_NAP_TOLERANCE_MINUTES)

    scores = [s for s in (feed_score, nap_score) if s is not None]
    if not scores:
        return None

    total_weight = sum(weight for _, weight in scores)
    accuracy = sum(score * weight for score, weight in scores) / total_weight
    logger.debug(f"Day accuracy {accuracy:.2f} from {total_weight} sample(s)")
    return accuracy
